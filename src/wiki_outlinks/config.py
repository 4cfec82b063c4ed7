import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

# Title prefixes the original extraction never treated as entities.
DEFAULT_SKIP_PREFIXES = ["Wikipedia:", "Template:", "Portal:", "File:", "User talk:", "File talk:"]


class PipelineConfig(BaseModel):
    """Configuration for a dump ingestion run."""

    # Which pages take part in the index
    namespaces: List[int] = Field(default_factory=lambda: [0], description="Namespace keys whose pages are indexed")
    skip_title_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SKIP_PREFIXES),
        description="Pages whose full title starts with one of these are ignored"
    )

    # Redirect / link handling
    max_redirect_hops: int = Field(100, ge=1, description="Longest redirect chain that is still followed")
    include_self_links: bool = Field(False, description="Keep links from a page to itself")
    references_cutoff: bool = Field(True, description="Ignore wikitext after the last ==References== heading")

    # Outputs
    output_dir: str = Field("output", description="Directory for generated files")
    sqlite_filename: str = Field("wiki_graph.sqlite", description="Name of the outlink index database")
    redirects_filename: str = Field("redirects.tsv.gz", description="Name of the resolved redirects TSV")
    links_filename: str = Field("links.grouped.tsv.gz", description="Name of the grouped links TSV")
    duckdb_path: Optional[str] = Field(None, description="On-disk DuckDB cache for joining very large link dumps")

    # Logging
    progress_interval: int = Field(100_000, ge=1, description="Log progress every N records")
    log_level: str = "INFO"
    use_rich: bool = True

    @property
    def output_path(self) -> Path:
        """Get the output directory as a Path object."""
        return Path(self.output_dir)

    @property
    def sqlite_path(self) -> Path:
        return self.output_path / self.sqlite_filename

    @property
    def redirects_path(self) -> Path:
        return self.output_path / self.redirects_filename

    @property
    def links_path(self) -> Path:
        return self.output_path / self.links_filename

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """Create config from WIKI_OUTLINKS_* environment variables."""
        values: Dict[str, Any] = {}
        env = os.environ

        if "WIKI_OUTLINKS_NAMESPACES" in env:
            values["namespaces"] = [int(ns) for ns in env["WIKI_OUTLINKS_NAMESPACES"].split(",") if ns.strip()]
        if "WIKI_OUTLINKS_SKIP_PREFIXES" in env:
            values["skip_title_prefixes"] = [p for p in env["WIKI_OUTLINKS_SKIP_PREFIXES"].split(",") if p]
        if "WIKI_OUTLINKS_MAX_REDIRECT_HOPS" in env:
            values["max_redirect_hops"] = int(env["WIKI_OUTLINKS_MAX_REDIRECT_HOPS"])
        if "WIKI_OUTLINKS_INCLUDE_SELF_LINKS" in env:
            values["include_self_links"] = env["WIKI_OUTLINKS_INCLUDE_SELF_LINKS"].lower() == "true"
        if "WIKI_OUTLINKS_OUTPUT_DIR" in env:
            values["output_dir"] = env["WIKI_OUTLINKS_OUTPUT_DIR"]
        if "WIKI_OUTLINKS_DUCKDB_PATH" in env:
            values["duckdb_path"] = env["WIKI_OUTLINKS_DUCKDB_PATH"]
        if "WIKI_OUTLINKS_LOG_LEVEL" in env:
            values["log_level"] = env["WIKI_OUTLINKS_LOG_LEVEL"]
        if "WIKI_OUTLINKS_USE_RICH" in env:
            values["use_rich"] = env["WIKI_OUTLINKS_USE_RICH"].lower() == "true"

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @classmethod
    def from_file(cls, filepath: Union[str, Path], **overrides: Any) -> "PipelineConfig":
        """Loads configuration from a JSON file."""
        config_path = Path(filepath)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            values = json.load(f)

        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
