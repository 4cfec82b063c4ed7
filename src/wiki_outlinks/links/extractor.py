"""
Link extraction: turns wikitext anchors or pagelinks table rows into
LinkEdges between canonical pages.

Both ends of every edge go through the resolved RedirectResolver: links
containing non-existing pages are eliminated and redirects are replaced with
the pages to which they redirect.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Set, Tuple, Union

from wiki_outlinks.dump.tsv import iter_tsv
from wiki_outlinks.exceptions import ResolverNotReadyError
from wiki_outlinks.logging_config import ProgressLogger
from wiki_outlinks.models import DEFAULT_NAMESPACES, LinkEdge, LinkStats, Page
from wiki_outlinks.redirects import RedirectResolver
from wiki_outlinks.utils.wiki_helpers import split_namespace
from .anchors import extract_anchors

logger = logging.getLogger(__name__)


class LinkExtractor:
    """
    Produces canonical LinkEdges from one of three link sources.

    Usage:
        extractor = LinkExtractor(resolver)
        edges = list(extractor.extract_from_pages(reader.iter_pages()))
    """

    def __init__(
        self,
        resolver: RedirectResolver,
        namespaces: Iterable[int] = (0,),
        include_self_links: bool = False,
        references_cutoff: bool = True,
        site_namespaces: Mapping[int, str] = DEFAULT_NAMESPACES,
        progress_interval: int = 100_000,
    ):
        if not resolver.is_resolved:
            raise ResolverNotReadyError("Links can only be extracted once redirects are resolved")
        self.resolver = resolver
        self.namespaces: Set[int] = set(namespaces)
        self.include_self_links = include_self_links
        self.references_cutoff = references_cutoff
        self.site_namespaces = dict(site_namespaces)
        self.progress_interval = progress_interval
        self.stats = LinkStats()

    def _edge(self, source_id: Optional[int], target_id: Optional[int]) -> Optional[LinkEdge]:
        """Count and filter one candidate link whose ends are already canonical."""
        stats = self.stats
        if source_id is None:
            stats.unknown_source += 1
            return None
        if target_id is None:
            stats.unknown_target += 1
            return None
        if source_id == target_id and not self.include_self_links:
            stats.self_links += 1
            return None
        return LinkEdge(source_id, target_id)

    def _dedupe(self, edges: Iterable[Optional[LinkEdge]]) -> Iterator[LinkEdge]:
        """Keep the first occurrence of each edge, assuming edges are grouped by source."""
        current_source = None
        targets: Set[int] = set()
        progress = ProgressLogger(logger, "links", self.progress_interval)
        kept = lambda: f"{self.stats.kept:,} kept"
        for edge in edges:
            self.stats.seen += 1
            progress.step(kept)
            if edge is None:
                continue
            if edge.source_page_id != current_source:
                current_source = edge.source_page_id
                targets = set()
            if edge.target_page_id in targets:
                self.stats.duplicates += 1
                continue
            targets.add(edge.target_page_id)
            self.stats.kept += 1
            yield edge

    # --- Wikitext anchors ---

    def extract_from_pages(self, pages: Iterable[Page]) -> Iterator[LinkEdge]:
        """Edges from the anchors in the wikitext of each non-redirect page."""
        yield from self._dedupe(self._page_candidates(pages))
        self._log_stats("wikitext")

    def _page_candidates(self, pages: Iterable[Page]) -> Iterator[Optional[LinkEdge]]:
        for page in pages:
            if page.is_redirect or page.text is None:
                continue
            if page.namespace not in self.namespaces:
                continue
            source_id = self.resolver.canonical_id(page.id)
            for anchor in extract_anchors(page.text, self.site_namespaces, self.references_cutoff):
                namespace, title = split_namespace(anchor.target, self.site_namespaces)
                if namespace not in self.namespaces:
                    self.stats.filtered_namespace += 1
                    yield None
                    continue
                yield self._edge(source_id, self.resolver.canonical_id_for_title(namespace, title))

    # --- SQL pagelinks ---

    def extract_from_sql(
        self,
        pagelink_rows: Iterable[Mapping[str, Any]],
        linktargets: Optional[Mapping[int, Tuple[int, str]]] = None,
    ) -> Iterator[LinkEdge]:
        """Edges from pagelinks rows.

        Rows with pl_target_id need the linktarget table as a map
        lt_id -> (namespace, title); older rows carry pl_namespace/pl_title.
        """
        yield from self._dedupe(self._sql_candidates(pagelink_rows, linktargets))
        self._log_stats("pagelinks")

    def _sql_candidates(
        self,
        rows: Iterable[Mapping[str, Any]],
        linktargets: Optional[Mapping[int, Tuple[int, str]]],
    ) -> Iterator[Optional[LinkEdge]]:
        for row in rows:
            if row.get("pl_from_namespace", 0) not in self.namespaces:
                self.stats.filtered_namespace += 1
                yield None
                continue
            if "pl_target_id" in row:
                if linktargets is None:
                    raise ValueError("pagelinks rows reference pl_target_id but no linktarget table was given")
                target = linktargets.get(int(row["pl_target_id"]))
                if target is None:
                    self.stats.unknown_target += 1
                    yield None
                    continue
                namespace, title = target
            else:
                namespace, title = int(row["pl_namespace"]), row["pl_title"]
            if namespace not in self.namespaces:
                self.stats.filtered_namespace += 1
                yield None
                continue
            yield self._edge(
                self.resolver.canonical_id(int(row["pl_from"])),
                self.resolver.canonical_id_for_title(namespace, title),
            )

    # --- Id pairs ---

    def extract_from_tsv(self, edges_tsv: Union[str, Path]) -> Iterator[LinkEdge]:
        """Edges from a source_id<TAB>target_id file, such as the DuckDB join output."""
        yield from self._dedupe(
            self._edge(self.resolver.canonical_id(int(source)), self.resolver.canonical_id(int(target)))
            for source, target, *_ in iter_tsv(edges_tsv, 2, "links file")
        )
        self._log_stats("id pairs")

    def _log_stats(self, source: str) -> None:
        stats = self.stats
        logger.info(
            f"Links from {source}: {stats.seen:,} seen, {stats.kept:,} kept, "
            f"{stats.duplicates:,} duplicates, {stats.self_links:,} self links, "
            f"{stats.unknown_source:,} unknown sources, {stats.unknown_target:,} unknown targets"
        )


def load_linktargets(rows: Iterable[Tuple[int, int, str]], namespaces: Optional[Iterable[int]] = None) -> Dict[int, Tuple[int, str]]:
    """Map lt_id -> (namespace, title) from linktarget rows."""
    wanted = set(namespaces) if namespaces is not None else None
    return {
        lt_id: (namespace, title)
        for lt_id, namespace, title in rows
        if wanted is None or namespace in wanted
    }
