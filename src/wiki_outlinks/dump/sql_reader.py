"""
Reader for MySQL table dumps published alongside the XML dumps
(page.sql.gz, redirect.sql.gz, pagelinks.sql.gz, linktarget.sql.gz).

Tables supported
----------------
page        → page_id,  page_namespace,    page_title, page_is_redirect
redirect    → rd_from,  rd_namespace,      rd_title
pagelinks   → pl_from,  pl_from_namespace, pl_target_id             (2024+ schema)
              pl_from,  pl_namespace,      pl_title, pl_from_namespace  (older schema)
linktarget  → lt_id,    lt_namespace,      lt_title

Column order is read from the CREATE TABLE statement of the dump itself, so
schema changes between dump generations do not shift fields.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from wiki_outlinks.exceptions import DumpFormatError
from wiki_outlinks.logging_config import ProgressLogger
from wiki_outlinks.utils.files import open_text

logger = logging.getLogger(__name__)

# Used when a dump has been cut down to its INSERT lines.
DEFAULT_COLUMNS: Dict[str, List[str]] = {
    "page": ["page_id", "page_namespace", "page_title", "page_is_redirect"],
    "redirect": ["rd_from", "rd_namespace", "rd_title", "rd_interwiki", "rd_fragment"],
    "pagelinks": ["pl_from", "pl_from_namespace", "pl_target_id"],
    "linktarget": ["lt_id", "lt_namespace", "lt_title"],
}

CREATE_RE = re.compile(r"^CREATE TABLE `(\w+)` \(")
COLUMN_RE = re.compile(r"^\s+`(\w+)`\s")
INSERT_RE = re.compile(r"^INSERT INTO `(\w+)` VALUES ")

# One token of a VALUES payload: quoted string, NULL, number or punctuation.
TOKEN_RE = re.compile(
    r"'((?:[^'\\]|\\.)*)'"
    r"|(NULL)"
    r"|(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)"
    r"|([(),;])",
    re.DOTALL,
)

ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
ESCAPES = {"0": "\0", "n": "\n", "r": "\r", "t": "\t", "Z": "\x1a", "b": "\b"}


def unescape_sql_string(value: str) -> str:
    """Undo MySQL string literal escaping (\\', \\\\, \\n, ...)."""
    if "\\" not in value:
        return value
    return ESCAPE_RE.sub(lambda m: ESCAPES.get(m.group(1), m.group(1)), value)


def _number(text: str) -> Union[int, float]:
    return float(text) if ("." in text or "e" in text or "E" in text) else int(text)


def parse_values(payload: str) -> Iterator[Tuple[Any, ...]]:
    """Parse the "(...),(...);" payload of an INSERT statement into tuples."""
    row: Optional[List[Any]] = None
    for match in TOKEN_RE.finditer(payload):
        string, null, number, punct = match.groups()
        if punct is not None:
            if punct == "(":
                if row is not None:
                    raise DumpFormatError(f"Nested tuple at position {match.start()}")
                row = []
            elif punct == ")":
                if row is None:
                    raise DumpFormatError(f"Unbalanced ')' at position {match.start()}")
                yield tuple(row)
                row = None
            continue
        if row is None:
            raise DumpFormatError(f"Value outside of a tuple at position {match.start()}")
        if string is not None:
            row.append(unescape_sql_string(string))
        elif null is not None:
            row.append(None)
        else:
            row.append(_number(number))
    if row is not None:
        raise DumpFormatError("Unterminated tuple at end of INSERT payload")


class SqlDumpReader:
    """
    Streams the rows of one table dump as dicts keyed by column name.

    Usage:
        for row in SqlDumpReader("enwiki-latest-page.sql.gz").iter_rows():
            row["page_id"], row["page_title"]
    """

    def __init__(self, path: Union[str, Path], table: Optional[str] = None, progress_interval: int = 1_000):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"SQL dump not found: {self.path}")
        self.table = table
        self.progress_interval = progress_interval
        self.columns: Optional[List[str]] = None

    def iter_rows(self) -> Iterator[Dict[str, Any]]:
        """Yield every row of the table as a column -> value dict."""
        processed = rows = 0
        progress = ProgressLogger(logger, "INSERT lines", self.progress_interval)
        row_count = lambda: f"{rows:,} rows"
        creating: Optional[str] = None
        declared: List[str] = []

        logger.info(f"Reading SQL dump {self.path}")
        with open_text(self.path) as f:
            for line in f:
                if creating is not None:
                    column = COLUMN_RE.match(line)
                    if column:
                        declared.append(column.group(1))
                        continue
                    if line.startswith(")"):
                        if self.table is None or creating == self.table:
                            self.columns = declared
                            logger.debug(f"Columns of `{creating}`: {declared}")
                        creating = None
                    continue

                created = CREATE_RE.match(line)
                if created:
                    creating, declared = created.group(1), []
                    continue

                insert = INSERT_RE.match(line)
                if not insert:
                    continue
                table = insert.group(1)
                if self.table is None:
                    self.table = table
                elif table != self.table:
                    continue
                columns = self._columns_for(table)

                processed += 1
                progress.step(row_count)

                try:
                    for values in parse_values(line[insert.end():]):
                        rows += 1
                        yield dict(zip(columns, values))
                except DumpFormatError as e:
                    raise DumpFormatError(f"{self.path}: INSERT line {processed}: {e.message}") from e

        logger.info(f"Finished {self.path.name}: {processed:,} INSERT lines → {rows:,} rows")

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return self.iter_rows()

    def _columns_for(self, table: str) -> List[str]:
        if self.columns is None:
            if table not in DEFAULT_COLUMNS:
                raise DumpFormatError(f"No CREATE TABLE for unknown table `{table}` in {self.path}")
            logger.warning(f"No CREATE TABLE for `{table}` in {self.path}; assuming default columns")
            self.columns = DEFAULT_COLUMNS[table]
        return self.columns


# --- Typed row helpers ---

def iter_page_rows(path: Union[str, Path]) -> Iterator[Tuple[int, int, str, bool]]:
    """(page_id, namespace, title, is_redirect) for every row of a page dump."""
    for row in SqlDumpReader(path, table="page"):
        yield int(row["page_id"]), int(row["page_namespace"]), row["page_title"], bool(row["page_is_redirect"])


def iter_redirect_rows(path: Union[str, Path]) -> Iterator[Tuple[int, int, str]]:
    """(source_page_id, target_namespace, target_title) for local redirects."""
    for row in SqlDumpReader(path, table="redirect"):
        # Interwiki redirects point outside this wiki
        if row.get("rd_interwiki"):
            continue
        yield int(row["rd_from"]), int(row["rd_namespace"]), row["rd_title"]


def iter_linktarget_rows(path: Union[str, Path]) -> Iterator[Tuple[int, int, str]]:
    """(linktarget_id, namespace, title) for every row of a linktarget dump."""
    for row in SqlDumpReader(path, table="linktarget"):
        yield int(row["lt_id"]), int(row["lt_namespace"]), row["lt_title"]


def iter_pagelink_rows(path: Union[str, Path]) -> Iterator[Dict[str, Any]]:
    """
    Rows of a pagelinks dump. Rows carry either pl_target_id (current schema,
    resolve through linktarget) or pl_namespace/pl_title (older dumps).
    """
    return SqlDumpReader(path, table="pagelinks").iter_rows()
