"""
Redirect resolution: every redirect page is mapped to the non-redirect page at
the end of its chain, so that links never point at redirect stubs.

The resolver has two phases. Pages and redirects are registered first; then
resolve() follows every chain once and freezes the mapping. Lookups before
resolve() and registrations after it raise ResolverNotReadyError.
"""

import gzip
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Set, Tuple, Union

from wiki_outlinks.dump.tsv import iter_tsv
from wiki_outlinks.exceptions import ResolverNotReadyError
from wiki_outlinks.models import DEFAULT_NAMESPACES, Page, RedirectStats, TitleKey
from wiki_outlinks.utils.wiki_helpers import split_namespace

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 100

_DANGLING = "dangling"
_CYCLIC = "cyclic"
_TOO_LONG = "too_long"


class RedirectResolver:
    """
    Maps page ids and titles to canonical (non-redirect) page ids.

    Usage:
        resolver = RedirectResolver()
        resolver.add_page(1, 0, "United States")
        resolver.add_page(2, 0, "USA", is_redirect=True)
        resolver.add_redirect(2, 0, "United States")
        resolver.resolve()
        resolver.canonical_id(2)  # -> 1
    """

    def __init__(self, max_hops: int = DEFAULT_MAX_HOPS):
        if max_hops < 1:
            raise ValueError("max_hops must be at least 1")
        self.max_hops = max_hops
        self.stats = RedirectStats()

        self._ids_by_title: Dict[TitleKey, int] = {}
        self._titles_by_id: Dict[int, TitleKey] = {}
        self._flagged: Set[int] = set()
        self._targets: Dict[int, Union[int, TitleKey]] = {}
        self._canonical: Dict[int, int] = {}
        self._hops: Dict[int, int] = {}
        self._duplicates: Set[int] = set()
        self._resolved = False

    # --- Registration ---

    def add_page(self, page_id: int, namespace: int, title: str, is_redirect: bool = False) -> None:
        """Register a page. The first page registered under a title wins; later ones are ignored."""
        self._check_open()
        key = TitleKey.of(namespace, title)
        if not key.title:
            logger.warning(f"Ignoring page {page_id} with empty title")
            return
        existing = self._ids_by_title.setdefault(key, page_id)
        if existing != page_id:
            logger.debug(f"Duplicate title {key} for pages {existing} and {page_id}; keeping {existing}")
            self._duplicates.add(page_id)
            self.stats.duplicate_titles += 1
            return
        self._titles_by_id[page_id] = key
        if is_redirect:
            self._flagged.add(page_id)

    def add_redirect(self, source_id: int, target_namespace: int, target_title: str) -> None:
        """Register a redirect whose target is known by title."""
        self._check_open()
        if source_id in self._duplicates:
            return
        self._targets[source_id] = TitleKey.of(target_namespace, target_title)
        self._flagged.add(source_id)

    def add_redirect_id(self, source_id: int, target_id: int) -> None:
        """Register a redirect whose target is already known by id."""
        self._check_open()
        if source_id in self._duplicates:
            return
        self._targets[source_id] = target_id
        self._flagged.add(source_id)

    def add_dump_page(self, page: Page, namespaces: Mapping[int, str] = DEFAULT_NAMESPACES) -> None:
        """Register a page read from an XML dump, including its redirect target."""
        self.add_page(page.id, page.namespace, page.title, page.is_redirect)
        if page.is_redirect and page.redirect_title:
            namespace, title = split_namespace(page.redirect_title, dict(namespaces))
            self.add_redirect(page.id, namespace, title)

    # --- Resolution ---

    def resolve(self) -> "RedirectResolver":
        """Follow every redirect chain to its final page and freeze the resolver."""
        self._check_open()
        stats = self.stats
        stats.redirects = len(self._flagged)
        stats.missing_record = len(self._flagged - self._targets.keys())
        failed: Dict[int, str] = {}

        logger.info(f"Resolving {len(self._targets):,} redirects over {len(self._titles_by_id):,} pages")
        for source_id in self._targets:
            outcome, hops = self._follow(source_id, failed)
            if isinstance(outcome, int):
                self._canonical[source_id] = outcome
                self._hops[source_id] = hops
                stats.resolved += 1
            else:
                failed[source_id] = outcome
                if outcome == _CYCLIC:
                    stats.cyclic += 1
                elif outcome == _TOO_LONG:
                    stats.too_long += 1
                else:
                    stats.dangling += 1

        self._resolved = True
        logger.info(
            f"Redirects: {stats.resolved:,} resolved, {stats.dangling:,} dangling, "
            f"{stats.cyclic:,} cyclic, {stats.too_long:,} too long, "
            f"{stats.missing_record:,} flagged without target"
        )
        return self

    def _direct_target(self, page_id: int) -> Optional[int]:
        target = self._targets.get(page_id)
        if isinstance(target, TitleKey):
            return self._ids_by_title.get(target)
        return target

    def _follow(self, source_id: int, failed: Dict[int, str]) -> Tuple[Union[int, str], int]:
        """Walk one chain. Returns (canonical id or failure reason, hops taken)."""
        seen = {source_id}
        current = self._direct_target(source_id)
        hops = 1
        while True:
            if current is None or current not in self._titles_by_id:
                return _DANGLING, hops
            if current in self._canonical:
                # Already resolved: the chain continues for another _hops[current] hops
                hops += self._hops[current]
                if hops > self.max_hops:
                    return _TOO_LONG, hops
                return self._canonical[current], hops
            if current in failed:
                return failed[current], hops
            if current not in self._flagged:
                return current, hops
            # Break out of circular paths: the redirects only point to other redirects.
            if current in seen:
                return _CYCLIC, hops
            seen.add(current)
            hops += 1
            if hops > self.max_hops:
                return _TOO_LONG, hops
            current = self._direct_target(current)

    # --- Lookups (after resolve) ---

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    def canonical_id(self, page_id: int) -> Optional[int]:
        """Canonical page for an id: itself, its final redirect target, or None."""
        self._check_resolved()
        if page_id in self._flagged:
            return self._canonical.get(page_id)
        return page_id if page_id in self._titles_by_id else None

    def canonical_id_for_title(self, namespace: int, title: str) -> Optional[int]:
        """Canonical page for a title in a namespace, or None if unknown or unresolvable."""
        self._check_resolved()
        page_id = self._ids_by_title.get(TitleKey.of(namespace, title))
        if page_id is None:
            return None
        return self.canonical_id(page_id)

    def page_id_for_title(self, namespace: int, title: str) -> Optional[int]:
        """The page registered under a title, redirect or not."""
        return self._ids_by_title.get(TitleKey.of(namespace, title))

    def is_canonical(self, page_id: int) -> bool:
        self._check_resolved()
        return page_id in self._titles_by_id and page_id not in self._flagged

    def title_of(self, page_id: int) -> Optional[TitleKey]:
        return self._titles_by_id.get(page_id)

    def redirects(self) -> Mapping[int, int]:
        """Read-only view of resolved redirect source → canonical target."""
        self._check_resolved()
        return MappingProxyType(self._canonical)

    def canonical_pages(self) -> Iterator[Tuple[int, TitleKey]]:
        """(page_id, title) of every non-redirect page."""
        self._check_resolved()
        for page_id, key in self._titles_by_id.items():
            if page_id not in self._flagged:
                yield page_id, key

    def all_pages(self) -> Iterator[Tuple[int, TitleKey, bool]]:
        """(page_id, title, is_redirect) of every registered page."""
        for page_id, key in self._titles_by_id.items():
            yield page_id, key, page_id in self._flagged

    def annotate(self, page: Page) -> Page:
        """Return a copy of a redirect page with its canonical target filled in."""
        if not page.is_redirect:
            return page
        return page.model_copy(update={"redirect_target_id": self.canonical_id(page.id)})

    def __len__(self) -> int:
        return len(self._titles_by_id)

    def write_redirects_tsv(self, path: Union[str, Path]) -> int:
        """Write resolved redirects as gzip TSV source_id<TAB>target_id. Returns rows written."""
        self._check_resolved()
        with gzip.open(path, "wt", encoding="utf-8") as f:
            for source_id, target_id in self._canonical.items():
                f.write(f"{source_id}\t{target_id}\n")
        logger.info(f"Wrote {len(self._canonical):,} redirects to {path}")
        return len(self._canonical)

    def _check_open(self) -> None:
        if self._resolved:
            raise ResolverNotReadyError("Redirect resolver is already resolved; rebuild it for a new dump")

    def _check_resolved(self) -> None:
        if not self._resolved:
            raise ResolverNotReadyError("Redirect resolver must be resolved before canonical lookups")

    # --- Builders ---

    @classmethod
    def from_pages(
        cls,
        pages: Iterable[Page],
        namespaces: Mapping[int, str] = DEFAULT_NAMESPACES,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> "RedirectResolver":
        """Build and resolve from XML dump pages."""
        resolver = cls(max_hops=max_hops)
        for page in pages:
            resolver.add_dump_page(page, namespaces)
        return resolver.resolve()

    @classmethod
    def from_sql(
        cls,
        page_rows: Iterable[Tuple[int, int, str, bool]],
        redirect_rows: Iterable[Tuple[int, int, str]],
        namespaces: Optional[Iterable[int]] = None,
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> "RedirectResolver":
        """Build and resolve from page and redirect table rows."""
        wanted = set(namespaces) if namespaces is not None else None
        resolver = cls(max_hops=max_hops)
        for page_id, namespace, title, is_redirect in page_rows:
            if wanted is None or namespace in wanted:
                resolver.add_page(page_id, namespace, title, is_redirect)
        for source_id, namespace, title in redirect_rows:
            # Redirects from pages outside the namespaces of interest are dropped
            if source_id in resolver._titles_by_id:
                resolver.add_redirect(source_id, namespace, title)
        return resolver.resolve()

    @classmethod
    def from_tsv(
        cls,
        pages_tsv: Union[str, Path],
        redirects_tsv: Union[str, Path],
        max_hops: int = DEFAULT_MAX_HOPS,
    ) -> "RedirectResolver":
        """Build and resolve from trimmed TSV files.

        The redirects file is either trimmed rows (rd_from, namespace, title) or
        already-resolved id pairs (source_id, target_id).
        """
        resolver = cls(max_hops=max_hops)
        for page_id, namespace, title, is_redirect in iter_tsv(pages_tsv, 4, "pages file"):
            resolver.add_page(int(page_id), int(namespace), title, is_redirect == "1")
        for parts in iter_tsv(redirects_tsv, 2, "redirects file"):
            source_id = int(parts[0])
            if source_id not in resolver._titles_by_id:
                continue
            if len(parts) == 2:
                resolver.add_redirect_id(source_id, int(parts[1]))
            else:
                resolver.add_redirect(source_id, int(parts[1]), parts[2])
        return resolver.resolve()
