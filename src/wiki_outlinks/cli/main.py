import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from wiki_outlinks.config import PipelineConfig
from wiki_outlinks.dump import DumpReader, MultistreamDump, extract_templates, trim_sql_dump
from wiki_outlinks.dump.tsv import TRIM_KINDS
from wiki_outlinks.exceptions import PageNotFoundException, WikiOutlinksException
from wiki_outlinks.index import OutlinkStore
from wiki_outlinks.links import AnchorCounter, write_categories_tsv
from wiki_outlinks.logging_config import setup_logging
from wiki_outlinks.pipeline import build_from_multistream, build_from_sql, build_from_xml, write_outputs
from wiki_outlinks.redirects import RedirectResolver

logger = logging.getLogger(__name__)

app = typer.Typer(help="Build a mutual-outlink index from Wikipedia dumps.")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="JSON config file. Defaults to WIKI_OUTLINKS_* variables.")
OUTPUT_DIR_OPTION = typer.Option(None, "--output-dir", "-o", help="Directory for generated files.")
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR.")
INDEX_OPTION = typer.Option(None, "--index", "-i", help="Offset index of a bz2 multistream dump.")


def _load_config(config_file: Optional[Path], **overrides) -> PipelineConfig:
    if config_file is not None:
        config = PipelineConfig.from_file(config_file, **overrides)
    else:
        config = PipelineConfig.from_env(**overrides)
    setup_logging(level=config.log_level, use_rich=config.use_rich)
    return config


def _open_pages(dump: Path, index: Optional[Path], config: PipelineConfig, include_text: bool):
    if index is not None:
        reader = MultistreamDump(
            dump,
            index,
            namespaces=config.namespaces,
            include_text=include_text,
            skip_prefixes=config.skip_title_prefixes,
        )
        reader.read_siteinfo()
        return reader
    return DumpReader(
        dump,
        namespaces=config.namespaces,
        include_text=include_text,
        skip_prefixes=config.skip_title_prefixes,
        progress_interval=config.progress_interval,
    )


def _fail(error: Exception) -> typer.Exit:
    message = getattr(error, "message", str(error))
    logger.error(message)
    return typer.Exit(code=1)


@app.command()
def build(
    dump: Path = typer.Argument(..., help="XML page dump (.xml, .xml.bz2, .xml.gz) or multistream dump."),
    index: Optional[Path] = INDEX_OPTION,
    config_file: Optional[Path] = CONFIG_OPTION,
    output_dir: Optional[str] = OUTPUT_DIR_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Build the outlink index from an XML page dump.
    """
    config = _load_config(config_file, output_dir=output_dir, log_level=log_level)
    try:
        if index is not None:
            result = build_from_multistream(dump, index, config)
        else:
            result = build_from_xml(dump, config)
        write_outputs(result, config)
    except (WikiOutlinksException, FileNotFoundError) as e:
        raise _fail(e)

    typer.echo(result.report.model_dump_json(indent=2))


@app.command("build-sql")
def build_sql(
    page_sql: Path = typer.Argument(..., help="page table dump."),
    redirect_sql: Path = typer.Argument(..., help="redirect table dump."),
    pagelinks_sql: Path = typer.Argument(..., help="pagelinks table dump."),
    linktarget_sql: Optional[Path] = typer.Option(
        None, "--linktarget", "-t", help="linktarget table dump, required by pagelinks dumps with pl_target_id."
    ),
    duckdb_path: Optional[str] = typer.Option(
        None, "--duckdb-path", help="Join pagelinks and linktarget in this on-disk DuckDB database."
    ),
    config_file: Optional[Path] = CONFIG_OPTION,
    output_dir: Optional[str] = OUTPUT_DIR_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Build the outlink index from the page, redirect and pagelinks SQL dumps.
    """
    config = _load_config(config_file, output_dir=output_dir, log_level=log_level, duckdb_path=duckdb_path)
    try:
        result = build_from_sql(page_sql, redirect_sql, pagelinks_sql, linktarget_sql, config)
        write_outputs(result, config)
    except (WikiOutlinksException, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    typer.echo(result.report.model_dump_json(indent=2))


@app.command()
def redirects(
    dump: Path = typer.Argument(..., help="XML page dump."),
    output: Path = typer.Argument(..., help="Gzip TSV of source_id, target_id."),
    index: Optional[Path] = INDEX_OPTION,
    config_file: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Resolve every redirect of a dump to its canonical page.
    """
    config = _load_config(config_file, log_level=log_level)
    try:
        reader = _open_pages(dump, index, config, include_text=False)
        resolver = RedirectResolver(max_hops=config.max_redirect_hops)
        for page in reader.iter_pages():
            resolver.add_dump_page(page, reader.siteinfo.namespaces)
        resolver.resolve()
        resolver.write_redirects_tsv(output)
    except (WikiOutlinksException, FileNotFoundError) as e:
        raise _fail(e)

    typer.echo(resolver.stats.model_dump_json(indent=2))


@app.command()
def trim(
    kind: str = typer.Argument(..., help=f"One of: {', '.join(TRIM_KINDS)}."),
    input_file: Path = typer.Argument(..., help="SQL table dump."),
    output_file: Path = typer.Argument(..., help="Gzip TSV to write."),
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Keep only the columns the pipeline needs from a SQL table dump.
    """
    _load_config(None, log_level=log_level)
    if not input_file.exists():
        raise _fail(FileNotFoundError(f"Dump file not found: {input_file}"))
    try:
        written = trim_sql_dump(kind, input_file, output_file)
    except (WikiOutlinksException, ValueError) as e:
        raise _fail(e)

    typer.echo(f"{written} rows written to {output_file}")


@app.command()
def anchors(
    dump: Path = typer.Argument(..., help="XML page dump."),
    output: Path = typer.Argument(..., help="Gzip TSV of surface, entity, count."),
    index: Optional[Path] = INDEX_OPTION,
    config_file: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Count how often each anchor text links to each page.
    """
    config = _load_config(config_file, log_level=log_level)
    try:
        reader = _open_pages(dump, index, config, include_text=True)
        counter = AnchorCounter(reader.siteinfo.namespaces, references_cutoff=config.references_cutoff)
        for page in reader.iter_pages():
            counter.namespaces = reader.siteinfo.namespaces
            counter.add_page(page)
        written = counter.write_tsv(output)
    except (WikiOutlinksException, FileNotFoundError) as e:
        raise _fail(e)

    typer.echo(f"{written} anchor counts for {len(counter)} surface forms written to {output}")


@app.command()
def categories(
    dump: Path = typer.Argument(..., help="XML page dump."),
    output: Path = typer.Argument(..., help="Gzip TSV of id, title, categories."),
    index: Optional[Path] = INDEX_OPTION,
    config_file: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    List the categories of every page.
    """
    config = _load_config(config_file, log_level=log_level)
    try:
        reader = _open_pages(dump, index, config, include_text=True)
        written = write_categories_tsv(reader.iter_pages(), output)
    except (WikiOutlinksException, FileNotFoundError) as e:
        raise _fail(e)

    typer.echo(f"Categories of {written} pages written to {output}")


@app.command()
def templates(
    dump: Path = typer.Argument(..., help="XML page dump or multistream dump."),
    output: Path = typer.Argument(..., help="XML file of the template pages (.xml or .xml.gz)."),
    index: Optional[Path] = INDEX_OPTION,
    config_file: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Copy every template page of a dump into a standalone XML file.
    """
    _load_config(config_file, log_level=log_level)
    try:
        written = extract_templates(dump, output, index_path=index)
    except (WikiOutlinksException, FileNotFoundError) as e:
        raise _fail(e)

    typer.echo(f"{written} templates written to {output}")


@app.command()
def relatedness(
    title_a: str = typer.Argument(..., help="First page title."),
    title_b: str = typer.Argument(..., help="Second page title."),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Outlink index database. Defaults to the configured output."),
    config_file: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
):
    """
    Milne & Witten relatedness of two pages from a built index.
    """
    config = _load_config(config_file, log_level=log_level)
    try:
        store = OutlinkStore(db_path or config.sqlite_path)
        rel, common = asyncio.run(_relatedness_async(store, title_a, title_b))
    except (WikiOutlinksException, ValueError) as e:
        raise _fail(e)

    typer.echo(f"{title_a}\t{title_b}\t{rel:.6f}\t{common}")


async def _relatedness_async(store: OutlinkStore, title_a: str, title_b: str):
    ids = []
    for title in (title_a, title_b):
        page_id = await store.get_page_id(title)
        if page_id is None:
            raise PageNotFoundException(f"Page not found in index: '{title}'")
        ids.append(page_id)

    rel = await store.relatedness(*ids)
    common = await store.count_mutual_outlinks(ids)
    return rel, common


if __name__ == "__main__":
    app()
