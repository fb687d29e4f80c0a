from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from routefinder.repo.ignore import DEFAULT_EXCLUDE_GLOBS


class Settings(BaseSettings):
    """Indexer settings. Read from ROUTEFINDER_* environment variables or a .env file."""

    model_config = SettingsConfigDict(env_prefix="ROUTEFINDER_", env_file=".env", extra="ignore")

    include_globs: list[str] = Field(default_factory=lambda: ["**/*.java"])
    exclude_globs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_GLOBS))

    # batch size is concurrency_limit * concurrency_multiplier, capped at max_concurrency
    concurrency_limit: int = Field(default=20, ge=1)
    concurrency_multiplier: int = Field(default=3, ge=1)
    max_concurrency: int = Field(default=100, ge=1)

    enable_cache: bool = True
    use_prefilter: bool = True

    cache_dir: Optional[Path] = None  # default: <root>/.routefinder
    cache_file_name: str = "endpoints-cache.json"

    @property
    def batch_size(self) -> int:
        return max(1, min(self.concurrency_limit * self.concurrency_multiplier, self.max_concurrency))

    def cache_path_for_root(self, root: Path) -> Path:
        base = self.cache_dir if self.cache_dir is not None else root / ".routefinder"
        return base / self.cache_file_name
