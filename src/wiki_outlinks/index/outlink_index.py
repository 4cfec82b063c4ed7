"""
The mutual-outlink index: canonical page id → pages it links to, with the
reverse view needed to count pages that link to several entities at once.
"""

import logging
import math
from collections import defaultdict
from types import MappingProxyType
from typing import DefaultDict, FrozenSet, Iterable, Iterator, Mapping, Optional, Set, Tuple

from wiki_outlinks.models import LinkEdge

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet[int] = frozenset()


class OutlinkIndex:
    """
    Read-only outlink index.

    Built once from canonical LinkEdges after redirects are resolved; a new
    dump import builds a new index rather than updating this one.
    """

    def __init__(self, outlinks: Mapping[int, Iterable[int]], page_count: Optional[int] = None):
        frozen = {source: frozenset(targets) for source, targets in outlinks.items() if targets}
        reverse: DefaultDict[int, Set[int]] = defaultdict(set)
        for source, targets in frozen.items():
            for target in targets:
                reverse[target].add(source)

        self._outlinks: Mapping[int, FrozenSet[int]] = MappingProxyType(frozen)
        self._inlinks: Mapping[int, FrozenSet[int]] = MappingProxyType(
            {target: frozenset(sources) for target, sources in reverse.items()}
        )
        self._edge_count = sum(len(targets) for targets in frozen.values())
        known_pages = len(self._outlinks.keys() | self._inlinks.keys())
        self._page_count = max(page_count or 0, known_pages)

    @classmethod
    def build(cls, edges: Iterable[LinkEdge], page_count: Optional[int] = None) -> "OutlinkIndex":
        """Aggregate canonical edges into an index."""
        grouped: DefaultDict[int, Set[int]] = defaultdict(set)
        for source, target in edges:
            grouped[source].add(target)
        index = cls(grouped, page_count=page_count)
        logger.info(
            f"Built outlink index: {len(index):,} linking pages, "
            f"{index.edge_count:,} edges, {index.page_count:,} pages total"
        )
        return index

    # --- Lookups ---

    def outlinks(self, page_id: int) -> FrozenSet[int]:
        """Pages linked from the given page."""
        return self._outlinks.get(page_id, _EMPTY)

    def inlinks(self, page_id: int) -> FrozenSet[int]:
        """Pages linking to the given page."""
        return self._inlinks.get(page_id, _EMPTY)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._outlinks or page_id in self._inlinks

    def __len__(self) -> int:
        return len(self._outlinks)

    def __iter__(self) -> Iterator[int]:
        return iter(self._outlinks)

    def items(self) -> Iterator[Tuple[int, FrozenSet[int]]]:
        return iter(self._outlinks.items())

    def pages(self) -> Set[int]:
        """Every page that links or is linked to."""
        return set(self._outlinks.keys() | self._inlinks.keys())

    def edges(self) -> Iterator[LinkEdge]:
        for source, targets in self._outlinks.items():
            for target in sorted(targets):
                yield LinkEdge(source, target)

    @property
    def edge_count(self) -> int:
        return self._edge_count

    @property
    def page_count(self) -> int:
        """Number of pages in the collection, used as N in relatedness."""
        return self._page_count

    # --- Mutual outlinks ---

    def mutual_outlinks(self, page_ids: Iterable[int]) -> FrozenSet[int]:
        """Pages whose outlinks contain every one of the given pages."""
        ids = set(page_ids)
        if not ids:
            return _EMPTY
        # Intersect starting from the rarest page
        sets = sorted((self.inlinks(page_id) for page_id in ids), key=len)
        result = sets[0]
        for other in sets[1:]:
            if not result:
                break
            result = result & other
        return frozenset(result)

    def count_mutual_outlinks(self, page_ids: Iterable[int]) -> int:
        return len(self.mutual_outlinks(page_ids))

    def relatedness(self, a: int, b: int) -> float:
        """Milne & Witten relatedness of two pages, from 0 (unrelated) to 1."""
        if a == b:
            return 1.0
        return milne_witten(
            len(self.inlinks(a)),
            len(self.inlinks(b)),
            self.count_mutual_outlinks((a, b)),
            self.page_count,
        )


def milne_witten(inlinks_a: int, inlinks_b: int, common: int, page_count: int) -> float:
    """
    rel = 1 - (log(max) - log(common)) / (log(N) - log(min)), where max/min are
    the larger/smaller in-link counts, common the pages linking to both and N
    the number of pages. Clamped to [0, 1]; degenerate inputs give 0.
    """
    low, high = min(inlinks_a, inlinks_b), max(inlinks_a, inlinks_b)
    if low <= 0 or common <= 0 or page_count <= 0:
        return 0.0
    denominator = math.log(page_count) - math.log(low)
    if denominator <= 0:
        return 0.0
    rel = 1.0 - (math.log(high) - math.log(common)) / denominator
    return min(max(rel, 0.0), 1.0)
