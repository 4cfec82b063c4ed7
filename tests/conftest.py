"""
Pytest configuration and shared fixtures: a tiny wiki written out as an XML
dump, a bz2 multistream dump and MySQL table dumps.

The wiki (namespace 0 unless noted):

    1  Anarchism             links Political philosophy, Philosophy, USA, itself,
                             a missing page, a file, a category, an interwiki link
                             and, after ==References==, Capitalism
    2  Philosophy            links Anarchism (twice), Political philosophy
    3  Political philosophy  links Philosophy, US
    4  USA                   redirect → United States
    5  United States         links Philosophy
    6  US                    redirect → USA (chain of two)
    7  Loop A                redirect → Loop B
    8  Loop B                redirect → Loop A
    9  Broken                redirect → Nowhere (dangling)
    10 Template:Infobox      namespace 10
    11 Capitalism            links Anarchism, Loop A
"""

import bz2
import gzip
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

import pytest

from wiki_outlinks.config import PipelineConfig
from wiki_outlinks.index import OutlinkIndex
from wiki_outlinks.redirects import RedirectResolver

# Configure logging for tests
logging.basicConfig(level=logging.INFO)

HEADER = """<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.11/" version="0.11" xml:lang="en">
  <siteinfo>
    <sitename>Wikipedia</sitename>
    <dbname>enwiki</dbname>
    <base>https://en.wikipedia.org/wiki/Main_Page</base>
    <namespaces>
      <namespace key="-2" case="first-letter">Media</namespace>
      <namespace key="-1" case="first-letter">Special</namespace>
      <namespace key="0" case="first-letter" />
      <namespace key="6" case="first-letter">File</namespace>
      <namespace key="10" case="first-letter">Template</namespace>
      <namespace key="14" case="first-letter">Category</namespace>
    </namespaces>
  </siteinfo>
"""
FOOTER = "</mediawiki>\n"

# (id, ns, title, redirect target, text)
PAGES: List[Tuple[int, int, str, Optional[str], str]] = [
    (1, 0, "Anarchism", None,
     "'''Anarchism''' is a [[political philosophy|''philosophy'']] related to [[Philosophy]]. "
     "See [[USA]], [[anarchism]], [[File:Flag.svg|thumb]], [[Missing page]], "
     "[[fr:Anarchisme]] and [[#History]].\n"
     "[[Category:Political ideologies|Anarchism]]\n"
     "==References==\n[[Capitalism]]"),
    (2, 0, "Philosophy", None, "[[Anarchism]] and [[Political_philosophy]] and [[Anarchism|anarchy]]"),
    (3, 0, "Political philosophy", None, "[[Philosophy]] in the [[US]]"),
    (4, 0, "USA", "United States", "#REDIRECT [[United States]]"),
    (5, 0, "United States", None, "[[Philosophy]]\n[[Category:Countries]]"),
    (6, 0, "US", "USA", "#REDIRECT [[USA]]"),
    (7, 0, "Loop A", "Loop B", "#REDIRECT [[Loop B]]"),
    (8, 0, "Loop B", "Loop A", "#REDIRECT [[Loop A]]"),
    (9, 0, "Broken", "Nowhere", "#REDIRECT [[Nowhere]]"),
    (10, 10, "Template:Infobox", None, "[[Philosophy]]"),
    (11, 0, "Capitalism", None, "[[Anarchism]] [[Loop A]]"),
]

# Canonical outlinks of the wiki above
EXPECTED_OUTLINKS: Dict[int, set] = {
    1: {2, 3, 5},
    2: {1, 3},
    3: {2, 5},
    5: {2},
    11: {1},
}


def render_page(page_id: int, namespace: int, title: str, redirect: Optional[str], text: str) -> str:
    redirect_elem = f"    <redirect title={quoteattr(redirect)} />\n" if redirect else ""
    return (
        "  <page>\n"
        f"    <title>{escape(title)}</title>\n"
        f"    <ns>{namespace}</ns>\n"
        f"    <id>{page_id}</id>\n"
        f"{redirect_elem}"
        "    <revision>\n"
        f"      <id>{page_id * 100}</id>\n"
        f"      <text xml:space=\"preserve\">{escape(text)}</text>\n"
        "    </revision>\n"
        "  </page>\n"
    )


def render_dump(pages=PAGES) -> str:
    return HEADER + "".join(render_page(*page) for page in pages) + FOOTER


@pytest.fixture
def expected_outlinks() -> Dict[int, set]:
    return {source: set(targets) for source, targets in EXPECTED_OUTLINKS.items()}


@pytest.fixture
def xml_dump(tmp_path: Path) -> Path:
    """The sample wiki as a plain XML dump."""
    path = tmp_path / "enwiki-pages-articles.xml"
    path.write_text(render_dump(), encoding="utf-8")
    return path


@pytest.fixture
def xml_dump_bz2(tmp_path: Path) -> Path:
    """The sample wiki as a bz2-compressed XML dump."""
    path = tmp_path / "enwiki-pages-articles.xml.bz2"
    path.write_bytes(bz2.compress(render_dump().encode("utf-8")))
    return path


@pytest.fixture
def multistream_dump(tmp_path: Path) -> Tuple[Path, Path]:
    """The sample wiki as a bz2 multistream dump plus its offset index."""
    streams = [
        bz2.compress(HEADER.encode("utf-8")),
        bz2.compress("".join(render_page(*page) for page in PAGES[:5]).encode("utf-8")),
        bz2.compress(("".join(render_page(*page) for page in PAGES[5:]) + FOOTER).encode("utf-8")),
    ]
    offsets = [0]
    for stream in streams[:-1]:
        offsets.append(offsets[-1] + len(stream))

    dump_path = tmp_path / "enwiki-pages-articles-multistream.xml.bz2"
    dump_path.write_bytes(b"".join(streams))

    lines = []
    for offset, pages in ((offsets[1], PAGES[:5]), (offsets[2], PAGES[5:])):
        lines.extend(f"{offset}:{page_id}:{title}" for page_id, _, title, _, _ in pages)
    index_path = tmp_path / "enwiki-pages-articles-multistream-index.txt.bz2"
    index_path.write_bytes(bz2.compress(("\n".join(lines) + "\n").encode("utf-8")))
    return dump_path, index_path


def _sql_value(value) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, str):
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"
    return str(value)


def render_sql(table: str, columns: List[str], rows: List[tuple], per_insert: int = 3) -> str:
    lines = [
        f"-- MySQL dump of `{table}`",
        f"DROP TABLE IF EXISTS `{table}`;",
        f"CREATE TABLE `{table}` (",
    ]
    lines.extend(f"  `{column}` varbinary(255) NOT NULL," for column in columns)
    lines.append(f"  PRIMARY KEY (`{columns[0]}`)")
    lines.append(") ENGINE=InnoDB DEFAULT CHARSET=binary;")
    lines.append(f"/*!40000 ALTER TABLE `{table}` DISABLE KEYS */;")
    for i in range(0, len(rows), per_insert):
        values = ",".join("(" + ",".join(_sql_value(v) for v in row) + ")" for row in rows[i:i + per_insert])
        lines.append(f"INSERT INTO `{table}` VALUES {values};")
    lines.append(f"/*!40000 ALTER TABLE `{table}` ENABLE KEYS */;")
    return "\n".join(lines) + "\n"


PAGE_ROWS = [
    (page_id, ns, title.split(":", 1)[-1].replace(" ", "_"), int(redirect is not None), 0)
    for page_id, ns, title, redirect, _ in PAGES
]
REDIRECT_ROWS = [
    (4, 0, "United_States", "", ""),
    (6, 0, "USA", "", None),
    (7, 0, "Loop_B", "", ""),
    (8, 0, "Loop_A", "", ""),
    (9, 0, "Nowhere", "", ""),
    (12, 0, "Anarchism", "en", ""),
]
LINKTARGET_ROWS = [
    (101, 0, "Philosophy"),
    (102, 0, "Political_philosophy"),
    (103, 0, "USA"),
    (104, 0, "Anarchism"),
    (105, 0, "US"),
    (106, 0, "Missing_page"),
    (107, 0, "Loop_A"),
    (108, 14, "Political_ideologies"),
]
PAGELINK_ROWS = [
    (1, 0, 102), (1, 0, 101), (1, 0, 103), (1, 0, 104), (1, 0, 106), (1, 0, 108),
    (2, 0, 104), (2, 0, 102),
    (3, 0, 101), (3, 0, 105),
    (5, 0, 101),
    (10, 10, 101),
    (11, 0, 104), (11, 0, 107),
]


@pytest.fixture
def sql_dumps(tmp_path: Path) -> Dict[str, Path]:
    """The sample wiki as gzip MySQL dumps of page, redirect, pagelinks and linktarget."""
    tables = {
        "page": (["page_id", "page_namespace", "page_title", "page_is_redirect", "page_is_new"], PAGE_ROWS),
        "redirect": (["rd_from", "rd_namespace", "rd_title", "rd_interwiki", "rd_fragment"], REDIRECT_ROWS),
        "pagelinks": (["pl_from", "pl_from_namespace", "pl_target_id"], PAGELINK_ROWS),
        "linktarget": (["lt_id", "lt_namespace", "lt_title"], LINKTARGET_ROWS),
    }
    paths = {}
    for table, (columns, rows) in tables.items():
        path = tmp_path / f"enwiki-{table}.sql.gz"
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write(render_sql(table, columns, rows))
        paths[table] = path
    return paths


@pytest.fixture
def resolver() -> RedirectResolver:
    """Resolved redirects of the sample wiki."""
    resolver = RedirectResolver()
    for page_id, ns, title, redirect, _ in PAGES:
        if ns != 0:
            continue
        resolver.add_page(page_id, ns, title, is_redirect=redirect is not None)
        if redirect:
            resolver.add_redirect(page_id, 0, redirect)
    return resolver.resolve()


@pytest.fixture
def sample_index() -> OutlinkIndex:
    """Outlink index of the sample wiki: five canonical pages."""
    return OutlinkIndex(EXPECTED_OUTLINKS, page_count=5)


@pytest.fixture
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(output_dir=str(tmp_path / "output"), progress_interval=2, use_rich=False)
