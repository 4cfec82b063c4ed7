"""
Access to bz2 multistream dumps (pages-articles-multistream.xml.bz2).

A multistream dump is a concatenation of independent bz2 streams: the first
holds the <mediawiki> header and <siteinfo>, each following one holds up to
100 <page> elements. The companion index file lists "offset:page_id:title"
for every page, so a single stream can be decompressed without reading the
rest of the file.
"""

import bz2
import io
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Union

import mwxml
from mwxml.errors import MalformedXML

from wiki_outlinks.exceptions import DumpFormatError
from wiki_outlinks.logging_config import ProgressLogger
from wiki_outlinks.models import Page, SiteInfo
from wiki_outlinks.utils.files import open_text
from .xml_reader import PageParser, siteinfo_from_dump

logger = logging.getLogger(__name__)

CHUNK_SIZE = 256 * 1024


def read_multistream_index(path: Union[str, Path], title_prefix: Optional[str] = None) -> List[int]:
    """
    Return the sorted, de-duplicated stream offsets listed in a multistream index.

    With title_prefix, only streams holding at least one page whose title
    starts with it are returned, e.g. "Template:" for the template streams.
    """
    offsets = set()
    with open_text(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.rstrip("\n")
            if not line:
                continue
            # Titles may contain ':'; split off offset and page id only
            offset, _, rest = line.partition(":")
            if not rest:
                logger.error(f"Line {line_num} in index file has no ':' separator: {line!r}")
                continue
            if title_prefix is not None and not rest.partition(":")[2].startswith(title_prefix):
                continue
            try:
                offsets.add(int(offset))
            except ValueError:
                logger.error(f"Line {line_num} in index file has invalid offset: {line!r}")
    logger.info(f"{len(offsets):,} streams listed in {path}")
    return sorted(offsets)


class MultistreamDump:
    """
    Random access over a multistream dump using its offset index.

    Usage:
        dump = MultistreamDump(dump_path, index_path)
        siteinfo = dump.read_siteinfo()
        for page in dump.iter_pages():
            ...
    """

    def __init__(
        self,
        dump_path: Union[str, Path],
        index_path: Union[str, Path],
        namespaces: Optional[Iterable[int]] = (0,),
        include_text: bool = True,
        skip_prefixes: Sequence[str] = (),
        progress_interval: int = 1_000,
    ):
        self.dump_path = Path(dump_path)
        self.index_path = Path(index_path)
        for path in (self.dump_path, self.index_path):
            if not path.exists():
                raise FileNotFoundError(f"Dump file not found: {path}")
        self.progress_interval = progress_interval
        self.parser = PageParser(
            namespaces=namespaces,
            include_text=include_text,
            skip_prefixes=skip_prefixes,
        )
        self._offsets: Optional[List[int]] = None

    @property
    def offsets(self) -> List[int]:
        if self._offsets is None:
            self._offsets = read_multistream_index(self.index_path)
        return self._offsets

    @property
    def siteinfo(self) -> SiteInfo:
        return self.parser.siteinfo

    def read_stream(self, offset: int) -> bytes:
        """Decompress the single bz2 stream starting at the given byte offset."""
        decompressor = bz2.BZ2Decompressor()
        chunks = []
        with open(self.dump_path, "rb") as f:
            f.seek(offset)
            while not decompressor.eof:
                data = f.read(CHUNK_SIZE)
                if not data:
                    raise DumpFormatError(f"Truncated bz2 stream at offset {offset} in {self.dump_path}")
                try:
                    chunks.append(decompressor.decompress(data))
                except OSError as e:
                    raise DumpFormatError(f"Invalid bz2 stream at offset {offset} in {self.dump_path}: {e}") from e
        return b"".join(chunks)

    def read_siteinfo(self) -> SiteInfo:
        """Parse <siteinfo> from the header stream and use it for title splitting."""
        header = self.read_stream(0)
        if b"<siteinfo" not in header:
            logger.warning(f"No <siteinfo> in header stream of {self.dump_path}; using default namespaces")
            return self.parser.siteinfo
        if b"</mediawiki>" not in header:
            header += b"</mediawiki>"
        try:
            dump = mwxml.Dump.from_file(io.BytesIO(header))
        except (ET.ParseError, MalformedXML, ValueError) as e:
            raise DumpFormatError(f"Malformed <siteinfo> in {self.dump_path}: {e}") from e
        self.parser.siteinfo = siteinfo_from_dump(dump.site_info)
        return self.parser.siteinfo

    def iter_stream(self, offset: int) -> Iterator[Page]:
        """Yield the pages of one stream."""
        data = self.read_stream(offset)
        data = data.replace(b"</mediawiki>", b"")
        if b"<mediawiki" in data:
            # Header stream: siteinfo only, no pages
            return
        wrapped = io.BytesIO(b"<mediawiki>" + data + b"</mediawiki>")
        yield from self.parser.parse(wrapped, f"{self.dump_path.name}@{offset}")

    def iter_pages(self, offsets: Optional[Sequence[int]] = None) -> Iterator[Page]:
        """Yield the pages of every stream listed in the index (or of the given streams), in file order."""
        offsets = self.offsets if offsets is None else sorted(offsets)
        logger.info(f"Reading {len(offsets):,} streams from {self.dump_path}")
        progress = ProgressLogger(logger, "streams", self.progress_interval, total=len(offsets))
        pages = lambda: f"{self.parser.pages_read:,} pages"
        for offset in offsets:
            yield from self.iter_stream(offset)
            progress.step(pages)
        logger.info(f"Finished {self.dump_path.name}: {self.parser.pages_read:,} pages")

    def __iter__(self) -> Iterator[Page]:
        return self.iter_pages()
