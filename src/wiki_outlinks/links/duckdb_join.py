"""
Joins trimmed pagelinks, linktarget and page TSVs with DuckDB.

For full English Wikipedia the linktarget map does not fit comfortably in a
Python dict, so the join runs out of core in DuckDB and streams id pairs to
a gzip TSV that LinkExtractor.extract_from_tsv() consumes.

Creates and reuses the DuckDB cache given as db_path (in memory by default).
"""

import logging
import textwrap
from pathlib import Path
from typing import List, Optional, Union

import duckdb

from wiki_outlinks.utils.files import open_text

logger = logging.getLogger(__name__)

BUF = 4 * 1024 * 1024  # 4 MB CSV buffer

PathLike = Union[str, Path]


def _sql_path(path: PathLike) -> str:
    return str(path).replace("'", "''")


def _read_tsv(path: PathLike, columns: str) -> str:
    """read_csv() call for a headerless TSV with fixed column types."""
    return (
        f"read_csv('{_sql_path(path)}', delim='\\t', header=false, "
        f"buffer_size={BUF}, columns={{{columns}}})"
    )


def table_exists(con: duckdb.DuckDBPyConnection, name: str) -> bool:
    return con.execute(
        "SELECT 1 FROM information_schema.tables WHERE table_name = ?",
        [name]
    ).fetchone() is not None


def count_lines(path: PathLike) -> int:
    """Count the number of lines in a (possibly compressed) file."""
    logger.info(f"Counting lines in {path} …")
    with open_text(path) as f:
        return sum(1 for _ in f)


def ensure_table_from_file(con: duckdb.DuckDBPyConnection, name: str, path: PathLike, columns: str, indexes: List[str]):
    """Ensure a DuckDB table exists and matches the file line count. Recreate if needed."""
    recreate = True
    if table_exists(con, name):
        logger.info(f"`{name}` table exists. Verifying row count…")
        db_count = con.execute(f"SELECT COUNT(*) FROM {name}").fetchone()[0]
        file_count = count_lines(path)
        logger.info(f"DB rows: {db_count:,}, File rows: {file_count:,}")
        if db_count == file_count:
            logger.info(f"Row count matches. Keeping existing `{name}` table.")
            recreate = False
        else:
            logger.info(f"Mismatch detected. Rebuilding `{name}` table.")
            con.execute(f"DROP TABLE {name}")

    if recreate:
        logger.info(f"Creating `{name}` table from {path} …")
        con.execute(f"CREATE TABLE {name} AS SELECT * FROM {_read_tsv(path, columns)}")
        for index in indexes:
            index_name = f"{name}_{'_'.join(col.strip() for col in index.split(','))}"
            con.execute(f"CREATE INDEX {index_name} ON {name} ({index})")
        logger.info(f"`{name}` table created and indexed.")


def join_links_with_duckdb(
    pages_tsv: PathLike,
    linktargets_tsv: PathLike,
    links_tsv: PathLike,
    output: PathLike,
    db_path: Optional[PathLike] = None,
) -> int:
    """
    Resolve pl_target_id through linktarget to page ids.

    Inputs are the trimmed TSVs written by trim_sql_dump() for the kinds
    pages, targets and links. Output is src_id<TAB>tgt_id, no header, ordered
    by source. The source is still the raw pl_from and targets may be
    redirects, so the result goes through the redirect resolver afterwards.

    Returns the number of rows written.
    """
    database = str(db_path) if db_path is not None else ":memory:"
    logger.info(f"Opening DuckDB database {database}…")
    con = duckdb.connect(database)
    try:
        ensure_table_from_file(
            con,
            name="pages",
            path=pages_tsv,
            columns="'page_id': 'UBIGINT', 'ns': 'INTEGER', 'title': 'VARCHAR', 'is_redirect': 'INTEGER'",
            indexes=["page_id", "ns, title"],
        )
        ensure_table_from_file(
            con,
            name="linktargets",
            path=linktargets_tsv,
            columns="'lt_id': 'UBIGINT', 'ns': 'INTEGER', 'title': 'VARCHAR'",
            indexes=["lt_id", "ns, title"],
        )

        logger.info("Performing join to generate edge list…")
        links = _read_tsv(links_tsv, "'pl_from': 'UBIGINT', 'pl_from_ns': 'INTEGER', 'pl_target_id': 'UBIGINT'")
        con.execute(textwrap.dedent(f"""
            COPY (
                SELECT
                    l.pl_from       AS src_id,
                    tgt.page_id     AS tgt_id
                FROM {links} AS l
                JOIN linktargets AS lt ON lt.lt_id = l.pl_target_id
                JOIN pages AS tgt ON tgt.ns = lt.ns AND tgt.title = lt.title
                ORDER BY src_id, tgt_id
            )
            TO '{_sql_path(output)}'
            (DELIMITER '\\t', HEADER false);
        """))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (CTRL+C). Stopping DuckDB…")
        con.interrupt()
        raise
    finally:
        con.close()

    written = count_lines(output)
    logger.info(f"Join complete. {written:,} rows written to {output}")
    return written
