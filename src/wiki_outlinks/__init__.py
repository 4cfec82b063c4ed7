"""
wiki_outlinks - Mutual-outlink index from Wikipedia dumps

Reads XML and SQL dumps, resolves redirects to canonical pages, extracts
page-to-page links and aggregates them into an outlink index for
entity-relatedness scoring.
"""

from .config import PipelineConfig
from .exceptions import WikiOutlinksException
from .index import OutlinkIndex, OutlinkStore
from .pipeline import BuildResult, build_from_multistream, build_from_sql, build_from_xml, write_outputs
from .redirects import RedirectResolver

__all__ = [
    "PipelineConfig",
    "WikiOutlinksException",
    "OutlinkIndex",
    "OutlinkStore",
    "BuildResult",
    "build_from_multistream",
    "build_from_sql",
    "build_from_xml",
    "write_outputs",
    "RedirectResolver",
]
