"""
Wikitext link parsing.

We consider two anchor forms:
- [[abc]] is seen as "abc" in text and links to page "abc".
- [[a|b]] is labelled "b" but links to page "a".
"""

import re
from typing import Iterator, List, Mapping, Optional

from wiki_outlinks.models import CATEGORY_NAMESPACE, DEFAULT_NAMESPACES, Anchor, Category
from wiki_outlinks.utils.wiki_helpers import normalize_title, split_namespace

REFERENCES_RE = re.compile(r"==\s*References\s*==")

# Prefix of an interwiki or sister-project link (wikt:, fr:, s:, hdl:, ...).
EXT_LINK_RE = re.compile(r"^[A-Za-z][A-Za-z-]*:")

FILE_NAMESPACES = {-2, 6}
FILE_ALIASES = ("Image:",)


def parse_anchor(anchor: str) -> Anchor:
    """Parse the inside of [[...]] into an Anchor."""
    if "|" in anchor:
        page, surface = anchor.split("|", 1)
        page = page.strip().split("#", 1)[0].strip()
        surface = surface.strip().strip("'")
        if surface:
            return Anchor(target=page, surface=surface)
        return Anchor(target=page, surface=page)
    page = anchor.strip()
    return Anchor(target=page.split("#", 1)[0].strip(), surface=page)


def iter_link_bodies(text: str) -> Iterator[str]:
    """Yield the raw text between every "[[" and the next "]]".

    Links nested in file captions are found on their own since every "[["
    starts a new candidate.
    """
    begin = text.find("[[")
    while begin != -1:
        end = text.find("]]", begin + 2)
        if end == -1:
            return
        yield text[begin + 2:end]
        begin = text.find("[[", begin + 2)


def strip_references(text: str) -> str:
    """Drop everything from the last ==References== heading on."""
    last = None
    for last in REFERENCES_RE.finditer(text):
        pass
    return text[:last.start()] if last is not None else text


def extract_anchors(
    text: str,
    namespaces: Mapping[int, str] = DEFAULT_NAMESPACES,
    references_cutoff: bool = True,
) -> List[Anchor]:
    """Extract page links from wikitext.

    Skipped: same-page section links, files, categorisation links, and links
    to other wikis or sister projects.
    """
    if references_cutoff:
        text = strip_references(text)
    namespaces = dict(namespaces)

    anchors = []
    for body in iter_link_bodies(text):
        anchor = _anchor_from_body(body, namespaces)
        if anchor is not None:
            anchors.append(anchor)
    return anchors


def _anchor_from_body(body: str, namespaces: dict) -> Optional[Anchor]:
    body = body.lstrip()
    if not body or body.startswith("#") or "\n\n" in body:
        return None
    colon_link = body.startswith(":")
    if colon_link:
        body = body[1:]

    anchor = parse_anchor(body)
    if not anchor.target:
        return None
    if anchor.target.startswith(FILE_ALIASES):
        return None

    namespace, _ = split_namespace(anchor.target, namespaces)
    if namespace == 0:
        if EXT_LINK_RE.match(anchor.target):
            return None
    elif namespace in FILE_NAMESPACES:
        return None
    elif namespace == CATEGORY_NAMESPACE and not colon_link:
        # [[Category:X]] files the page under X; only [[:Category:X]] is a link
        return None
    return anchor


def extract_categories(text: str, namespaces: Mapping[int, str] = DEFAULT_NAMESPACES) -> List[Category]:
    """Extract the categories a page is filed under, without sort keys."""
    namespaces = dict(namespaces)
    categories = []
    seen = set()
    for body in iter_link_bodies(text):
        body = body.strip()
        if body.startswith(":"):
            continue
        namespace, rest = split_namespace(body.split("|", 1)[0], namespaces)
        if namespace != CATEGORY_NAMESPACE:
            continue
        name = normalize_title(rest)
        if name and name not in seen:
            seen.add(name)
            categories.append(Category(name=name))
    return categories
