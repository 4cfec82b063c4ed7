"""
Streaming reader for MediaWiki XML page dumps (pages-articles*.xml[.bz2|.gz]).

Parsing is done by the MediaWiki utilities: mwtypes.files.reader opens plain
or compressed dumps, mwxml.Dump walks <siteinfo> and the <page> elements
lazily, so memory stays flat over a full dump.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Sequence, Set, Union

import mwtypes
import mwxml
from mwxml.errors import MalformedXML

from wiki_outlinks.exceptions import DumpFormatError
from wiki_outlinks.logging_config import ProgressLogger
from wiki_outlinks.models import Page, SiteInfo
from wiki_outlinks.utils.wiki_helpers import normalize_title, split_namespace

logger = logging.getLogger(__name__)


def siteinfo_from_dump(site_info) -> SiteInfo:
    """Convert mwxml's SiteInfo into ours."""
    info = SiteInfo(
        sitename=site_info.name or "",
        dbname=site_info.dbname or "",
        base=site_info.base or "",
    )
    if site_info.namespaces:
        info.namespaces = {ns.id: (ns.name or "") for ns in site_info.namespaces}
    return info


class PageParser:
    """
    Turns mwxml pages into Page records.

    Shared by the single-file reader and the multistream reader, which feeds it
    one decompressed stream at a time.
    """

    def __init__(
        self,
        namespaces: Optional[Iterable[int]] = (0,),
        include_text: bool = True,
        skip_prefixes: Sequence[str] = (),
        siteinfo: Optional[SiteInfo] = None,
    ):
        self.namespaces: Optional[Set[int]] = set(namespaces) if namespaces is not None else None
        self.include_text = include_text
        self.skip_prefixes = tuple(skip_prefixes)
        self.siteinfo = siteinfo or SiteInfo()
        self.pages_read = 0
        self.pages_skipped = 0
        self.pages_malformed = 0

    def parse(self, source: IO, source_name: str = "<stream>") -> Iterator[Page]:
        """Yield the pages found in an XML stream."""
        try:
            dump = mwxml.Dump.from_file(source)
            # Streams cut out of a multistream dump carry no <siteinfo>
            if dump.site_info is not None and dump.site_info.namespaces:
                self.siteinfo = siteinfo_from_dump(dump.site_info)
                logger.info(
                    f"Dump siteinfo: {self.siteinfo.sitename or '?'} "
                    f"({len(self.siteinfo.namespaces)} namespaces)"
                )
            for mw_page in dump:
                page = self.convert(mw_page)
                if page is not None:
                    self.pages_read += 1
                    yield page
        except (ET.ParseError, MalformedXML, ValueError) as e:
            raise DumpFormatError(f"Malformed XML in {source_name}: {e}") from e

    def convert(self, mw_page) -> Optional[Page]:
        """Convert an mwxml page, returning None for filtered or malformed pages."""
        page_id = mw_page.id or 0
        full_title = (mw_page.title or "").strip()
        if page_id <= 0 or not full_title:
            self.pages_malformed += 1
            logger.warning(f"Skipping malformed page (id={page_id}, title={full_title!r})")
            return None

        if self.skip_prefixes and full_title.startswith(self.skip_prefixes):
            self.pages_skipped += 1
            return None

        namespace, title = self._split_title(mw_page.namespace, full_title)
        if self.namespaces is not None and namespace not in self.namespaces:
            self.pages_skipped += 1
            return None

        title = normalize_title(title)
        if not title:
            self.pages_malformed += 1
            logger.warning(f"Skipping page {page_id} with empty title after normalization")
            return None

        text = None
        if self.include_text:
            # Full-history dumps carry every revision; the last one is current.
            for revision in mw_page:
                text = revision.text or ""

        return Page(
            id=page_id,
            namespace=namespace,
            title=title,
            is_redirect=mw_page.redirect is not None,
            redirect_title=mw_page.redirect,
            text=text,
        )

    def _split_title(self, namespace: Optional[int], full_title: str):
        if namespace is None:
            return split_namespace(full_title, self.siteinfo.namespaces)
        if namespace == 0:
            return 0, full_title
        prefix = self.siteinfo.prefix(namespace)
        if prefix and full_title.startswith(prefix):
            return namespace, full_title[len(prefix):]
        if ":" in full_title:
            return namespace, full_title.split(":", 1)[1]
        return namespace, full_title


class DumpReader:
    """
    Reader for a single-file XML page dump.

    Usage:
        reader = DumpReader("enwiki-latest-pages-articles.xml.bz2")
        for page in reader.iter_pages():
            ...
    """

    def __init__(
        self,
        path: Union[str, Path],
        namespaces: Optional[Iterable[int]] = (0,),
        include_text: bool = True,
        skip_prefixes: Sequence[str] = (),
        progress_interval: int = 100_000,
    ):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Dump file not found: {self.path}")
        self.progress_interval = progress_interval
        self.parser = PageParser(
            namespaces=namespaces,
            include_text=include_text,
            skip_prefixes=skip_prefixes,
        )

    @property
    def siteinfo(self) -> SiteInfo:
        return self.parser.siteinfo

    def iter_pages(self) -> Iterator[Page]:
        """Stream every page of the dump that passes the namespace and prefix filters."""
        logger.info(f"Reading pages from {self.path}")
        progress = ProgressLogger(logger, "pages", self.progress_interval)
        skipped = lambda: f"{self.parser.pages_skipped:,} skipped"
        with mwtypes.files.reader(str(self.path)) as f:
            for page in self.parser.parse(f, str(self.path)):
                progress.step(skipped)
                yield page
        logger.info(
            f"Finished {self.path.name} in {progress.elapsed:.1f}s: {progress.count:,} pages, "
            f"{self.parser.pages_skipped:,} skipped, {self.parser.pages_malformed:,} malformed"
        )

    def __iter__(self) -> Iterator[Page]:
        return self.iter_pages()
