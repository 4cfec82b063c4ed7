from .anchors import extract_anchors, extract_categories, parse_anchor
from .extractor import LinkExtractor, load_linktargets
from .anchor_counts import AnchorCounter, write_categories_tsv

__all__ = [
    "extract_anchors",
    "extract_categories",
    "parse_anchor",
    "LinkExtractor",
    "load_linktargets",
    "AnchorCounter",
    "write_categories_tsv",
]
