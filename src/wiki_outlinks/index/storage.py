"""
Persisting the outlink index.

The SQLite layout matches the wiki_graph.sqlite database read by OutlinkStore:

    pages(id, namespace, title, is_redirect)     titles in storage form (underscores)
    redirects(source_id, target_id)              resolved, target is canonical
    links(id, outgoing_links_count, incoming_links_count,
          outgoing_links, incoming_links)        pipe-separated page ids
    meta(key, value)                             page_count for relatedness
"""

import gzip
import logging
import sqlite3
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

from wiki_outlinks.exceptions import IndexNotFoundError
from wiki_outlinks.redirects import RedirectResolver
from .outlink_index import OutlinkIndex

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SCHEMA = """
CREATE TABLE pages (
    id INTEGER PRIMARY KEY,
    namespace INTEGER NOT NULL,
    title TEXT NOT NULL,
    is_redirect INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX pages_title ON pages (title COLLATE NOCASE);

CREATE TABLE redirects (
    source_id INTEGER PRIMARY KEY,
    target_id INTEGER NOT NULL
);

CREATE TABLE links (
    id INTEGER PRIMARY KEY,
    outgoing_links_count INTEGER NOT NULL,
    incoming_links_count INTEGER NOT NULL,
    outgoing_links TEXT NOT NULL,
    incoming_links TEXT NOT NULL
);

CREATE TABLE meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

BATCH_SIZE = 10_000


def _join_ids(ids) -> str:
    return "|".join(str(page_id) for page_id in sorted(ids))


def _split_ids(value: Optional[str]):
    return [int(page_id) for page_id in value.split("|") if page_id] if value else []


def grouped_links(index: OutlinkIndex) -> Iterator[Tuple[int, int, int, str, str]]:
    """(id, outgoing count, incoming count, outgoing, incoming) for every page in the index."""
    for page_id in sorted(index.pages()):
        outgoing = index.outlinks(page_id)
        incoming = index.inlinks(page_id)
        yield page_id, len(outgoing), len(incoming), _join_ids(outgoing), _join_ids(incoming)


def write_sqlite(index: OutlinkIndex, path: PathLike, resolver: Optional[RedirectResolver] = None) -> Path:
    """Write the index (and the resolver's pages and redirects) to a fresh SQLite file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        # The index is rebuilt wholesale on every import
        logger.info(f"Replacing existing database {path}")
        path.unlink()

    with sqlite3.connect(path) as db:
        db.executescript(SCHEMA)

        if resolver is not None:
            db.executemany(
                "INSERT INTO pages (id, namespace, title, is_redirect) VALUES (?, ?, ?, ?)",
                (
                    (page_id, key.namespace, key.title.replace(" ", "_"), int(is_redirect))
                    for page_id, key, is_redirect in resolver.all_pages()
                ),
            )
            db.executemany(
                "INSERT INTO redirects (source_id, target_id) VALUES (?, ?)",
                resolver.redirects().items(),
            )

        batch = []
        for row in grouped_links(index):
            batch.append(row)
            if len(batch) >= BATCH_SIZE:
                db.executemany("INSERT INTO links VALUES (?, ?, ?, ?, ?)", batch)
                batch = []
        if batch:
            db.executemany("INSERT INTO links VALUES (?, ?, ?, ?, ?)", batch)

        db.execute("INSERT INTO meta (key, value) VALUES ('page_count', ?)", (str(index.page_count),))
    logger.info(f"Wrote outlink index ({len(index):,} linking pages, {index.edge_count:,} edges) to {path}")
    return path


def read_sqlite(path: PathLike) -> OutlinkIndex:
    """Load an OutlinkIndex back from a database written by write_sqlite()."""
    path = Path(path)
    if not path.exists():
        raise IndexNotFoundError(f"Outlink index not found at {path.resolve()}")

    with sqlite3.connect(path) as db:
        outlinks = {
            page_id: _split_ids(outgoing)
            for page_id, outgoing in db.execute("SELECT id, outgoing_links FROM links WHERE outgoing_links_count > 0")
        }
        row = db.execute("SELECT value FROM meta WHERE key = 'page_count'").fetchone()
    page_count = int(row[0]) if row else None
    return OutlinkIndex(outlinks, page_count=page_count)


def write_grouped_links_tsv(index: OutlinkIndex, path: PathLike) -> int:
    """Write id, counts and pipe-separated outgoing/incoming links per page as gzip TSV."""
    written = 0
    with gzip.open(path, "wt", encoding="utf-8") as f:
        for row in grouped_links(index):
            f.write("\t".join(str(column) for column in row) + "\n")
            written += 1
    logger.info(f"Wrote grouped links of {written:,} pages to {path}")
    return written
