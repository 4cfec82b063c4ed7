"""
Anchor statistics: how often each surface form links to each page, and which
categories each page is filed under. These feed the surface form dictionary
of an entity linker; the outlink index supplies its relatedness measure.
"""

import gzip
import logging
from collections import Counter, defaultdict
from pathlib import Path
from typing import DefaultDict, Dict, Iterable, Mapping, Union

from wiki_outlinks.models import DEFAULT_NAMESPACES, Anchor, Page
from wiki_outlinks.utils.wiki_helpers import normalize_title
from .anchors import extract_anchors, extract_categories

logger = logging.getLogger(__name__)


class AnchorCounter:
    """Counts surface form → entity pairs over the anchors of many pages."""

    def __init__(self, namespaces: Mapping[int, str] = DEFAULT_NAMESPACES, references_cutoff: bool = True):
        self.namespaces = dict(namespaces)
        self.references_cutoff = references_cutoff
        self._counts: DefaultDict[str, Counter] = defaultdict(Counter)
        self.pages_seen = 0

    def add_anchor(self, anchor: Anchor) -> None:
        surface = anchor.surface.strip().lower()
        entity = normalize_title(anchor.target)
        if surface and entity:
            self._counts[surface][entity] += 1

    def add_page(self, page: Page) -> None:
        if page.is_redirect or not page.text:
            return
        self.pages_seen += 1
        for anchor in extract_anchors(page.text, self.namespaces, self.references_cutoff):
            self.add_anchor(anchor)

    def add_pages(self, pages: Iterable[Page]) -> "AnchorCounter":
        for page in pages:
            self.add_page(page)
        return self

    def counts(self, surface: str) -> Dict[str, int]:
        """Entity → count for a surface form (case-insensitive)."""
        return dict(self._counts.get(surface.strip().lower(), {}))

    def occurrences(self, surface: str) -> int:
        """Number of times the surface form was used as an anchor."""
        return sum(self._counts.get(surface.strip().lower(), Counter()).values())

    def commonness(self, surface: str, entity: str) -> float:
        """Share of the surface form's anchors that point to the entity."""
        total = self.occurrences(surface)
        if total == 0:
            return 0.0
        return self._counts[surface.strip().lower()][normalize_title(entity)] / total

    def __len__(self) -> int:
        return len(self._counts)

    def write_tsv(self, path: Union[str, Path]) -> int:
        """Write surface<TAB>entity<TAB>count lines, sorted by surface form. Returns rows written."""
        written = 0
        with gzip.open(path, "wt", encoding="utf-8") as f:
            for surface in sorted(self._counts):
                for entity, count in self._counts[surface].most_common():
                    f.write(f"{surface}\t{entity}\t{count}\n")
                    written += 1
        logger.info(f"Wrote {written:,} anchor counts for {len(self._counts):,} surface forms to {path}")
        return written


def write_categories_tsv(
    pages: Iterable[Page],
    path: Union[str, Path],
    namespaces: Mapping[int, str] = DEFAULT_NAMESPACES,
) -> int:
    """Write id<TAB>title<TAB>"cat1","cat2" for every page with text. Returns rows written."""
    written = 0
    with gzip.open(path, "wt", encoding="utf-8") as f:
        for page in pages:
            if page.is_redirect or not page.text:
                continue
            categories = ",".join(
                '"{}"'.format(category.name.replace('"', '\\"'))
                for category in extract_categories(page.text, namespaces)
            )
            f.write(f"{page.id}\t{page.title}\t{categories}\n")
            written += 1
    logger.info(f"Wrote categories of {written:,} pages to {path}")
    return written
