"""
Configuration for conversation insights.

Settings come from ``INSIGHTS_*`` environment variables or from the
``insights`` section of a YAML file:

```yaml
insights:
  backend: sqlite            # or duckdb
  sqlite_path: /var/lib/inbox/insights.db
  duckdb_path: /var/lib/inbox/insights.duckdb
  max_concurrency: 16
  default_per_page: 20
  max_per_page: 100
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from .exceptions import InsightsError
from .search.filters import DEFAULT_PER_PAGE, MAX_PER_PAGE
from .stores.base import ConversationStore
from .stores.duckdb import DuckDBConfig, DuckDBStore
from .stores.sqlite import SQLiteConfig, SQLiteStore

BackendName = Literal["sqlite", "duckdb"]

_BACKENDS = ("sqlite", "duckdb")


@dataclass
class InsightsConfig:
    """Top-level configuration.

    Attributes:
        backend: Which store to open.
        sqlite: SQLite store settings.
        duckdb: DuckDB store settings.
        max_concurrency: Upper bound on concurrent per-session store reads.
        default_per_page: Search page size when a filter does not set one.
        max_per_page: Largest page size a search may request.
    """

    backend: BackendName = "sqlite"
    sqlite: SQLiteConfig = field(default_factory=SQLiteConfig)
    duckdb: DuckDBConfig = field(default_factory=DuckDBConfig)
    max_concurrency: int = 16
    default_per_page: int = DEFAULT_PER_PAGE
    max_per_page: int = MAX_PER_PAGE

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            raise InsightsError(
                f"Unknown backend: {self.backend}", {"allowed": list(_BACKENDS)}
            )
        if self.max_concurrency < 1:
            raise InsightsError("max_concurrency must be at least 1")
        if not 1 <= self.default_per_page <= self.max_per_page:
            raise InsightsError("default_per_page must be between 1 and max_per_page")

    @classmethod
    def from_env(cls) -> InsightsConfig:
        """Create config from environment variables."""
        return cls(
            backend=os.environ.get("INSIGHTS_BACKEND", "sqlite"),  # type: ignore[arg-type]
            sqlite=SQLiteConfig.from_env(),
            duckdb=DuckDBConfig.from_env(),
            max_concurrency=int(os.environ.get("INSIGHTS_MAX_CONCURRENCY", "16")),
            default_per_page=int(os.environ.get("INSIGHTS_DEFAULT_PER_PAGE", str(DEFAULT_PER_PAGE))),
            max_per_page=int(os.environ.get("INSIGHTS_MAX_PER_PAGE", str(MAX_PER_PAGE))),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> InsightsConfig:
        """Create config from the ``insights`` section of a YAML file."""
        config_path = Path(path)
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InsightsError(f"Cannot read config file: {config_path}", {"cause": str(e)}) from e

        section: dict[str, Any] = data.get("insights", {}) or {}
        return cls(
            backend=section.get("backend", "sqlite"),
            sqlite=SQLiteConfig(db_path=section.get("sqlite_path", ":memory:")),
            duckdb=DuckDBConfig(db_path=section.get("duckdb_path", ":memory:")),
            max_concurrency=int(section.get("max_concurrency", 16)),
            default_per_page=int(section.get("default_per_page", DEFAULT_PER_PAGE)),
            max_per_page=int(section.get("max_per_page", MAX_PER_PAGE)),
        )

    async def open_store(self) -> ConversationStore:
        """Create and initialize the configured store."""
        if self.backend == "duckdb":
            return await DuckDBStore.create(self.duckdb)
        return await SQLiteStore.create(self.sqlite)
