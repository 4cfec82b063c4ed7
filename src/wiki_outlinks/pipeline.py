"""
End-to-end builds: dump in, resolved outlink index out.

Every build follows the same order. Pages are registered with a
RedirectResolver, the resolver is completed, links are rewritten to canonical
ids, and the edges are aggregated into an OutlinkIndex.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from wiki_outlinks.config import PipelineConfig
from wiki_outlinks.dump import (
    DumpReader,
    MultistreamDump,
    iter_linktarget_rows,
    iter_page_rows,
    iter_pagelink_rows,
    iter_redirect_rows,
    trim_sql_dump,
)
from wiki_outlinks.index import OutlinkIndex, write_grouped_links_tsv, write_sqlite
from wiki_outlinks.links import LinkExtractor, load_linktargets
from wiki_outlinks.models import BuildReport, LinkEdge, Page
from wiki_outlinks.redirects import RedirectResolver

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class BuildResult:
    """Everything one ingestion produced."""
    index: OutlinkIndex
    resolver: RedirectResolver
    report: BuildReport


def _finish(
    edges: Iterable[LinkEdge],
    extractor: LinkExtractor,
    resolver: RedirectResolver,
    report: BuildReport,
    started: float,
) -> BuildResult:
    page_count = sum(1 for _ in resolver.canonical_pages())
    index = OutlinkIndex.build(edges, page_count=page_count)

    report.redirects = resolver.stats
    report.links = extractor.stats
    report.index_pages = len(index)
    report.index_edges = index.edge_count
    report.elapsed_seconds = round(time.time() - started, 2)
    logger.info(
        f"Build finished in {report.elapsed_seconds:.1f}s: {report.pages_read:,} pages, "
        f"{report.index_pages:,} linking pages, {report.index_edges:,} edges"
    )
    return BuildResult(index=index, resolver=resolver, report=report)


def _build_from_page_source(open_reader: Callable[[bool], object], config: PipelineConfig) -> BuildResult:
    """Two passes over a page dump: titles and redirects first, then wikitext."""
    started = time.time()
    report = BuildReport()

    # Pass 1: titles and redirects only
    reader = open_reader(False)
    resolver = RedirectResolver(max_hops=config.max_redirect_hops)
    for page in reader.iter_pages():
        # siteinfo is parsed while iterating, so look it up per page
        resolver.add_dump_page(page, reader.siteinfo.namespaces)
    resolver.resolve()
    report.pages_read = reader.parser.pages_read

    # Pass 2: anchors in wikitext
    reader = open_reader(True)
    pages = reader.iter_pages()
    first = next(pages, None)
    extractor = LinkExtractor(
        resolver,
        namespaces=config.namespaces,
        include_self_links=config.include_self_links,
        references_cutoff=config.references_cutoff,
        site_namespaces=reader.siteinfo.namespaces,
        progress_interval=config.progress_interval,
    )
    edges = extractor.extract_from_pages(_prepend(first, pages))
    return _finish(edges, extractor, resolver, report, started)


def _prepend(first: Optional[Page], rest: Iterable[Page]):
    if first is not None:
        yield first
    yield from rest


def build_from_xml(dump_path: PathLike, config: Optional[PipelineConfig] = None) -> BuildResult:
    """Build the index from a single-file XML dump (plain, .bz2 or .gz)."""
    config = config or PipelineConfig()
    logger.info(f"Building outlink index from XML dump {dump_path}")

    def open_reader(include_text: bool) -> DumpReader:
        return DumpReader(
            dump_path,
            namespaces=config.namespaces,
            include_text=include_text,
            skip_prefixes=config.skip_title_prefixes,
            progress_interval=config.progress_interval,
        )

    return _build_from_page_source(open_reader, config)


def build_from_multistream(
    dump_path: PathLike,
    index_path: PathLike,
    config: Optional[PipelineConfig] = None,
) -> BuildResult:
    """Build the index from a bz2 multistream dump and its offset index."""
    config = config or PipelineConfig()
    logger.info(f"Building outlink index from multistream dump {dump_path}")

    def open_reader(include_text: bool) -> MultistreamDump:
        dump = MultistreamDump(
            dump_path,
            index_path,
            namespaces=config.namespaces,
            include_text=include_text,
            skip_prefixes=config.skip_title_prefixes,
        )
        dump.read_siteinfo()
        return dump

    return _build_from_page_source(open_reader, config)


def build_from_sql(
    page_sql: PathLike,
    redirect_sql: PathLike,
    pagelinks_sql: PathLike,
    linktarget_sql: Optional[PathLike] = None,
    config: Optional[PipelineConfig] = None,
) -> BuildResult:
    """
    Build the index from the page, redirect and pagelinks table dumps.

    Newer pagelinks dumps reference link targets by id and need the linktarget
    dump. When config.duckdb_path is set, that join runs in DuckDB over trimmed
    TSVs instead of an in-memory lookup table.
    """
    config = config or PipelineConfig()
    started = time.time()
    report = BuildReport()
    logger.info(f"Building outlink index from SQL dumps {page_sql}, {redirect_sql}, {pagelinks_sql}")

    resolver = RedirectResolver.from_sql(
        iter_page_rows(page_sql),
        iter_redirect_rows(redirect_sql),
        namespaces=config.namespaces,
        max_hops=config.max_redirect_hops,
    )
    report.pages_read = len(resolver)

    extractor = LinkExtractor(
        resolver,
        namespaces=config.namespaces,
        include_self_links=config.include_self_links,
        progress_interval=config.progress_interval,
    )

    if linktarget_sql is not None and config.duckdb_path:
        edges = extractor.extract_from_tsv(_join_in_duckdb(page_sql, linktarget_sql, pagelinks_sql, config))
    else:
        linktargets = None
        if linktarget_sql is not None:
            linktargets = load_linktargets(iter_linktarget_rows(linktarget_sql), config.namespaces)
            logger.info(f"Loaded {len(linktargets):,} link targets")
        edges = extractor.extract_from_sql(iter_pagelink_rows(pagelinks_sql), linktargets)

    return _finish(edges, extractor, resolver, report, started)


def _join_in_duckdb(page_sql: PathLike, linktarget_sql: PathLike, pagelinks_sql: PathLike, config: PipelineConfig) -> Path:
    # Imported here so duckdb is only loaded for the large-dump path
    from wiki_outlinks.links.duckdb_join import join_links_with_duckdb

    work_dir = config.output_path / "trimmed"
    work_dir.mkdir(parents=True, exist_ok=True)
    pages_tsv = work_dir / "pages.tsv.gz"
    targets_tsv = work_dir / "linktargets.tsv.gz"
    links_tsv = work_dir / "pagelinks.tsv.gz"
    edges_tsv = work_dir / "edges.tsv.gz"

    trim_sql_dump("pages", page_sql, pages_tsv)
    trim_sql_dump("targets", linktarget_sql, targets_tsv)
    trim_sql_dump("links", pagelinks_sql, links_tsv)
    join_links_with_duckdb(pages_tsv, targets_tsv, links_tsv, edges_tsv, db_path=config.duckdb_path)
    return edges_tsv


def write_outputs(result: BuildResult, config: Optional[PipelineConfig] = None) -> List[Path]:
    """Write the SQLite index, resolved redirects and grouped links under config.output_dir."""
    config = config or PipelineConfig()
    config.output_path.mkdir(parents=True, exist_ok=True)

    outputs = [
        write_sqlite(result.index, config.sqlite_path, result.resolver),
        config.redirects_path,
        config.links_path,
    ]
    result.resolver.write_redirects_tsv(config.redirects_path)
    write_grouped_links_tsv(result.index, config.links_path)

    result.report.outputs = [str(path) for path in outputs]
    return outputs
