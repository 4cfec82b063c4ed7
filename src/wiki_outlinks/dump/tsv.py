"""
Trimmed tab-separated intermediates of the SQL dumps.

Trimming a table dump once keeps only the columns the pipeline needs; later
steps (and DuckDB) read the small gzip TSV instead of re-parsing SQL.
"""

import gzip
import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Tuple, Union

from wiki_outlinks.exceptions import DumpFormatError
from wiki_outlinks.utils.files import open_text
from .sql_reader import SqlDumpReader

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _page_fields(row: Dict) -> Tuple:
    return row["page_id"], row["page_namespace"], row["page_title"], int(bool(row["page_is_redirect"]))


def _redirect_fields(row: Dict) -> Tuple:
    return row["rd_from"], row["rd_namespace"], row["rd_title"]


def _link_fields(row: Dict) -> Tuple:
    if "pl_target_id" not in row:
        raise DumpFormatError(
            "pagelinks dump uses the pl_namespace/pl_title schema; "
            "it has no linktarget ids to trim, build from the SQL dump directly"
        )
    return row["pl_from"], row["pl_from_namespace"], row["pl_target_id"]


def _target_fields(row: Dict) -> Tuple:
    return row["lt_id"], row["lt_namespace"], row["lt_title"]


# kind → (table, row → output fields)
TRIM_KINDS: Dict[str, Tuple[str, Callable[[Dict], Tuple]]] = {
    "pages": ("page", _page_fields),
    "redirects": ("redirect", _redirect_fields),
    "links": ("pagelinks", _link_fields),
    "targets": ("linktarget", _target_fields),
}


def trim_sql_dump(kind: str, input_file: PathLike, output_file: PathLike) -> int:
    """Write the needed columns of a table dump to a gzip TSV. Returns rows written."""
    if kind not in TRIM_KINDS:
        raise ValueError(f"Unknown dump kind {kind!r}: must be one of {', '.join(TRIM_KINDS)}")
    table, fields = TRIM_KINDS[kind]

    written = 0
    reader = SqlDumpReader(input_file, table=table)
    with gzip.open(output_file, "wt", encoding="utf-8") as fout:
        for row in reader.iter_rows():
            fout.write("\t".join(str(value) for value in fields(row)) + "\n")
            written += 1

    logger.info(f"Trimmed {kind}: {input_file} → {output_file} ({written:,} rows)")
    return written


def iter_tsv(path: PathLike, min_fields: int, name: str = "") -> Iterator[List[str]]:
    """Yield the fields of each line, logging and skipping lines that are too short."""
    name = name or Path(path).name
    with open_text(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.rstrip("\n")
            if not line:
                continue
            parts = line.split("\t")
            if len(parts) < min_fields:
                logger.error(
                    f"Line {line_num} in {name} has only {len(parts)} parts, expected {min_fields}: {line!r}"
                )
                continue
            yield parts
