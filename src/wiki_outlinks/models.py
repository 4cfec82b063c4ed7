from typing import Dict, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from wiki_outlinks.utils.wiki_helpers import normalize_title

# --- Namespaces ---

# English Wikipedia namespace table, used when a dump carries no <siteinfo>.
DEFAULT_NAMESPACES: Dict[int, str] = {
    -2: "Media",
    -1: "Special",
    0: "",
    1: "Talk",
    2: "User",
    3: "User talk",
    4: "Wikipedia",
    5: "Wikipedia talk",
    6: "File",
    7: "File talk",
    8: "MediaWiki",
    9: "MediaWiki talk",
    10: "Template",
    11: "Template talk",
    12: "Help",
    13: "Help talk",
    14: "Category",
    15: "Category talk",
    100: "Portal",
    101: "Portal talk",
    118: "Draft",
    119: "Draft talk",
    828: "Module",
    829: "Module talk",
}

CATEGORY_NAMESPACE = 14


class SiteInfo(BaseModel):
    """Site metadata from the <siteinfo> header of an XML dump."""
    sitename: str = ""
    dbname: str = ""
    base: str = Field("", description="URL of the main page")
    namespaces: Dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_NAMESPACES))

    @property
    def url_base(self) -> str:
        """Base URL for article links, e.g. https://en.wikipedia.org/wiki"""
        return self.base.rsplit("/", 1)[0] if "/" in self.base else self.base

    def prefix(self, namespace: int) -> str:
        name = self.namespaces.get(namespace, "")
        return f"{name}:" if name else ""


# --- Data Models ---

class Page(BaseModel):
    """A page record read from a dump."""
    id: int = Field(..., gt=0, description="MediaWiki page_id")
    namespace: int = Field(0, description="Namespace key")
    title: str = Field(..., min_length=1, description="Normalized title without namespace prefix")
    is_redirect: bool = False
    redirect_title: Optional[str] = Field(None, description="Redirect target title as written in the dump")
    redirect_target_id: Optional[int] = Field(None, description="Canonical target, filled once redirects are resolved")
    text: Optional[str] = Field(None, description="Raw wikitext, if it was read")

    @property
    def key(self) -> "TitleKey":
        return TitleKey(self.namespace, self.title)


class TitleKey(NamedTuple):
    """Lookup key of a page: namespace plus normalized title."""
    namespace: int
    title: str

    @classmethod
    def of(cls, namespace: int, title: str) -> "TitleKey":
        return cls(namespace, normalize_title(title))


class LinkEdge(NamedTuple):
    """A link between two canonical (non-redirect) pages."""
    source_page_id: int
    target_page_id: int


class Anchor(BaseModel):
    """A wikitext link: [[target]] or [[target|surface]]."""
    target: str
    surface: str

    @property
    def is_labelled(self) -> bool:
        return self.surface != self.target


class Category(BaseModel):
    """Wikipedia category label."""
    name: str

    def fqn(self) -> str:
        """Fully qualified name of the category page."""
        return f"Category:{self.name}"


# --- Reporting ---

class RedirectStats(BaseModel):
    redirects: int = 0
    resolved: int = 0
    dangling: int = 0
    cyclic: int = 0
    too_long: int = 0
    missing_record: int = Field(0, description="Pages flagged as redirects without a redirect target")
    duplicate_titles: int = Field(0, description="Pages ignored because an earlier page has the same title")


class LinkStats(BaseModel):
    seen: int = 0
    kept: int = 0
    duplicates: int = 0
    self_links: int = 0
    unknown_source: int = 0
    unknown_target: int = 0
    filtered_namespace: int = 0


class BuildReport(BaseModel):
    """Summary of one ingestion run."""
    pages_read: int = 0
    redirects: RedirectStats = Field(default_factory=RedirectStats)
    links: LinkStats = Field(default_factory=LinkStats)
    index_pages: int = 0
    index_edges: int = 0
    elapsed_seconds: float = 0.0
    outputs: List[str] = Field(default_factory=list)
