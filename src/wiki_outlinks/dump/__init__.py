from .xml_reader import DumpReader, PageParser
from .multistream import MultistreamDump, read_multistream_index
from .sql_reader import (
    SqlDumpReader,
    iter_linktarget_rows,
    iter_page_rows,
    iter_pagelink_rows,
    iter_redirect_rows,
    parse_values,
)
from .tsv import iter_tsv, trim_sql_dump
from .templates import extract_templates, write_templates

__all__ = [
    "DumpReader",
    "PageParser",
    "MultistreamDump",
    "read_multistream_index",
    "SqlDumpReader",
    "iter_linktarget_rows",
    "iter_page_rows",
    "iter_pagelink_rows",
    "iter_redirect_rows",
    "parse_values",
    "iter_tsv",
    "trim_sql_dump",
    "extract_templates",
    "write_templates",
]
