"""
Template extraction: copies every Template: page of a dump into a small
standalone XML file, so templates can be expanded without the full dump.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union
from xml.sax.saxutils import escape

from wiki_outlinks.models import Page
from wiki_outlinks.utils.files import open_text
from .multistream import MultistreamDump, read_multistream_index
from .xml_reader import DumpReader

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TEMPLATE_NAMESPACE = 10

PAGE_FORMAT = (
    "  <page>\n"
    "    <title>{title}</title>\n"
    "    <ns>{namespace}</ns>\n"
    "    <id>{id}</id>\n"
    "    <revision>\n"
    "      <text xml:space=\"preserve\">{text}</text>\n"
    "    </revision>\n"
    "  </page>\n"
)


def render_template(page: Page, prefix: str = "Template:") -> str:
    """One <page> record with the full title and the template wikitext."""
    return PAGE_FORMAT.format(
        title=escape(prefix + page.title),
        namespace=page.namespace,
        id=page.id,
        text=escape(page.text or ""),
    )


def write_templates(pages: Iterable[Page], path: PathLike, prefix: str = "Template:") -> int:
    """
    Write template pages as a <mediawiki> document that DumpReader can read back.

    Pages outside the template namespace are ignored. Returns the number of
    templates written.
    """
    written = 0
    with open_text(path, "wt") as f:
        f.write("<mediawiki>\n")
        for page in pages:
            if page.namespace != TEMPLATE_NAMESPACE:
                continue
            f.write(render_template(page, prefix))
            written += 1
        f.write("</mediawiki>\n")
    logger.info(f"{written:,} templates written to {path}")
    return written


def extract_templates(
    dump_path: PathLike,
    output: PathLike,
    index_path: Optional[PathLike] = None,
    skip_prefixes: Sequence[str] = (),
) -> int:
    """
    Extract all templates of a dump.

    For a multistream dump only the streams that the offset index lists for
    a Template: title are decompressed.
    """
    if index_path is not None:
        dump = MultistreamDump(
            dump_path,
            index_path,
            namespaces=[TEMPLATE_NAMESPACE],
            skip_prefixes=skip_prefixes,
        )
        siteinfo = dump.read_siteinfo()
        prefix = siteinfo.prefix(TEMPLATE_NAMESPACE) or "Template:"
        offsets = read_multistream_index(index_path, title_prefix=prefix)
        return write_templates(dump.iter_pages(offsets), output, prefix)

    reader = DumpReader(dump_path, namespaces=[TEMPLATE_NAMESPACE], skip_prefixes=skip_prefixes)
    pages = reader.iter_pages()
    first = next(pages, None)
    # siteinfo is known once the first page has been read
    prefix = reader.siteinfo.prefix(TEMPLATE_NAMESPACE) or "Template:"
    return write_templates(_chain(first, pages), output, prefix)


def _chain(first: Optional[Page], rest: Iterable[Page]):
    if first is not None:
        yield first
    yield from rest
