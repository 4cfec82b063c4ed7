"""
OutlinkStore - read-only async access to an outlink index written by write_sqlite().
Answers title lookups, link lists, mutual-outlink counts and relatedness.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import aiosqlite

from wiki_outlinks.exceptions import IndexNotFoundError
from wiki_outlinks.utils.wiki_helpers import (
    get_readable_page_title,
    get_sanitized_page_title,
    validate_page_id,
    validate_page_title,
)
from .outlink_index import milne_witten

logger = logging.getLogger(__name__)


def _split_ids(value: Optional[str]) -> List[int]:
    return [int(page_id) for page_id in value.split("|") if page_id] if value else []


class OutlinkStore:
    """
    Async gateway to the wiki_graph.sqlite outlink index.

    Key methods:
    - get_page_id(title) -> Optional[int]: canonical id, following redirects
    - count_mutual_outlinks(page_ids) -> int: pages linking to all the given pages
    - relatedness(a, b) -> float: Milne & Witten relatedness
    """

    def __init__(self, db_path: Union[str, Path] = "output/wiki_graph.sqlite"):
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            raise IndexNotFoundError(f"Outlink index not found at {self.db_path.resolve()}")

        self.max_variables = 32766  # SQLite >= 3.32.0 default, updated from PRAGMA
        self._initialize_variable_limit()
        self._page_count: Optional[int] = None

    def _initialize_variable_limit(self):
        """Read the SQLite variable limit from PRAGMA compile_options."""
        try:
            with sqlite3.connect(self.db_path) as db:
                for (option,) in db.execute("PRAGMA compile_options"):
                    if option.startswith("MAX_VARIABLE_NUMBER="):
                        self.max_variables = int(option.split("=")[1])
                        logger.debug(f"SQLite MAX_VARIABLE_NUMBER: {self.max_variables}")
                        break
        except sqlite3.Error as e:
            logger.warning(f"Failed to read SQLite variable limit: {e}, using default: {self.max_variables}")

    async def get_page_id(self, title: str, namespace: int = 0) -> Optional[int]:
        """
        Get the canonical page ID for a title. Matching is case-insensitive,
        exact-case non-redirect pages win, and redirects are followed to their
        resolved target.

        Args:
            title (str): The page title to look up.
            namespace (int): Namespace to restrict the search to, -1 for all namespaces.

        Returns:
            Optional[int]: The canonical page ID, or None if not found.
        """
        validate_page_title(title)
        sanitized_title = get_sanitized_page_title(title)

        async with aiosqlite.connect(self.db_path) as db:
            if namespace == -1:
                query = "SELECT id, title, is_redirect FROM pages WHERE title = ? COLLATE NOCASE"
                args: Tuple = (sanitized_title,)
            else:
                query = "SELECT id, title, is_redirect FROM pages WHERE title = ? COLLATE NOCASE AND namespace = ?"
                args = (sanitized_title, namespace)

            async with db.execute(query, args) as cursor:
                results = await cursor.fetchall()

            if not results:
                logger.debug(f"No page found for title: '{title}' in namespace={namespace}")
                return None

            for page_id, db_title, is_redirect in results:
                if db_title == sanitized_title and not is_redirect:
                    return page_id

            for page_id, db_title, is_redirect in results:
                if not is_redirect:
                    return page_id

            # Prefer the exact-case redirect, then any
            results.sort(key=lambda row: row[1] != sanitized_title)
            for page_id, _, _ in results:
                async with db.execute("SELECT target_id FROM redirects WHERE source_id = ?", (page_id,)) as cursor:
                    row = await cursor.fetchone()
                if row:
                    return row[0]

            logger.warning(f"Page '{title}' (namespace={namespace}) is a redirect with no resolved target")
            return None

    async def get_page_title(self, page_id: int) -> Optional[str]:
        """Get the readable title for a page ID."""
        validate_page_id(page_id)

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT title FROM pages WHERE id = ?", (page_id,)) as cursor:
                row = await cursor.fetchone()
        return get_readable_page_title(row[0]) if row else None

    async def get_outgoing_links(self, page_id: int) -> List[int]:
        """Page IDs this page links to."""
        validate_page_id(page_id)
        return await self._get_link_column(page_id, "outgoing_links")

    async def get_incoming_links(self, page_id: int) -> List[int]:
        """Page IDs linking to this page."""
        validate_page_id(page_id)
        return await self._get_link_column(page_id, "incoming_links")

    async def _get_link_column(self, page_id: int, column: str) -> List[int]:
        if column not in ("outgoing_links", "incoming_links"):
            raise ValueError(f"Invalid link column name: {column}")

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(f"SELECT {column} FROM links WHERE id = ?", (page_id,)) as cursor:
                row = await cursor.fetchone()
        return _split_ids(row[0]) if row else []

    async def batch_get_page_titles(self, page_ids: List[int]) -> List[Optional[str]]:
        """Titles for multiple page IDs, in order. Missing IDs give None."""
        if not page_ids:
            return []

        for pid in page_ids:
            validate_page_id(pid)

        if len(page_ids) > self.max_variables:
            return await self._batch_get_page_titles_chunked(page_ids)

        results: List[Optional[str]] = [None] * len(page_ids)
        positions: Dict[int, List[int]] = {}
        for i, page_id in enumerate(page_ids):
            positions.setdefault(page_id, []).append(i)

        placeholders = ",".join("?" * len(positions))
        query = f"SELECT id, title FROM pages WHERE id IN ({placeholders})"

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(query, list(positions)) as cursor:
                async for row_id, sanitized_title in cursor:
                    for i in positions.get(row_id, ()):
                        results[i] = get_readable_page_title(sanitized_title)
        return results

    async def _batch_get_page_titles_chunked(self, page_ids: List[int]) -> List[Optional[str]]:
        results: List[Optional[str]] = []
        chunk_size = self.max_variables

        logger.debug(f"Chunking {len(page_ids)} page IDs into batches of {chunk_size}")

        for i in range(0, len(page_ids), chunk_size):
            results.extend(await self.batch_get_page_titles(page_ids[i:i + chunk_size]))
        return results

    async def get_page_count(self) -> int:
        """N for relatedness: the page count stored at build time."""
        if self._page_count is None:
            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute("SELECT value FROM meta WHERE key = 'page_count'") as cursor:
                    row = await cursor.fetchone()
                if row:
                    self._page_count = int(row[0])
                else:
                    async with db.execute("SELECT COUNT(*) FROM links") as cursor:
                        self._page_count = (await cursor.fetchone())[0]
        return self._page_count

    async def count_mutual_outlinks(self, page_ids: Iterable[int]) -> int:
        """Number of pages whose outlinks contain every one of the given pages."""
        ids = set(page_ids)
        if not ids:
            return 0

        inlink_sets = []
        for page_id in ids:
            validate_page_id(page_id)
            inlink_sets.append(set(await self._get_link_column(page_id, "incoming_links")))

        inlink_sets.sort(key=len)
        return len(set.intersection(*inlink_sets))

    async def relatedness(self, a: int, b: int) -> float:
        """Milne & Witten relatedness of two pages."""
        validate_page_id(a)
        validate_page_id(b)
        if a == b:
            return 1.0

        in_a = set(await self._get_link_column(a, "incoming_links"))
        in_b = set(await self._get_link_column(b, "incoming_links"))
        return milne_witten(len(in_a), len(in_b), len(in_a & in_b), await self.get_page_count())

    async def get_database_stats(self) -> Tuple[int, int]:
        """Total number of pages and links."""
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM pages") as cursor:
                page_count_row = await cursor.fetchone()
                page_count = page_count_row[0] if page_count_row else 0

            async with db.execute("SELECT SUM(outgoing_links_count) FROM links") as cursor:
                link_count_row = await cursor.fetchone()
                link_count = link_count_row[0] if link_count_row and link_count_row[0] is not None else 0

        return page_count, int(link_count)
