"""Catalog loading and priority-ordered aggregation across repositories."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from skillbox.config import RepositoryEntry
from skillbox.exceptions import CatalogError
from skillbox.logging import get_logger

log = get_logger(__name__)

DEFAULT_CATALOG_RELPATH = ".claude-plugin/marketplace.json"
AGGREGATED_CATALOG_NAME = "Skillbox Aggregated Marketplace"


class Author(BaseModel):
    name: str
    url: str = ""


def _coerce_author(value: Any) -> Any:
    if isinstance(value, str):
        return {"name": value}
    return value


class CatalogPlugin(BaseModel):
    """A plugin entry of a repository catalog."""

    name: str
    description: str
    category: str | None = None
    author: Author | None = None
    authors: list[Author] | None = None
    skills: list[str] = Field(default_factory=list)
    # Provenance, stamped during aggregation.
    source_repo: str | None = None
    source_url: str | None = None
    source_path: str | None = None

    @field_validator("author", mode="before")
    @classmethod
    def _author_from_string(cls, value: Any) -> Any:
        return _coerce_author(value)

    @field_validator("authors", mode="before")
    @classmethod
    def _authors_from_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_coerce_author(item) for item in value]
        return value

    def skill_dir_names(self) -> list[str]:
        return [skill_dir_name(path) for path in self.skills]


class Catalog(BaseModel):
    name: str | None = None
    version: str | None = None
    plugins: list[CatalogPlugin]


def clean_skill_path(skill_path: str) -> str:
    """Normalize a catalog skill path (``./docs/writer`` -> ``docs/writer``)."""
    cleaned = str(skill_path or "").replace("\\", "/").strip()
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned.lstrip("/").rstrip("/")


def skill_dir_name(skill_path: str) -> str:
    return clean_skill_path(skill_path).rsplit("/", 1)[-1]


def load_catalog(path: str | Path) -> Catalog | None:
    """Read one catalog file; unreadable or malformed files yield None."""
    catalog_path = Path(path)
    if not catalog_path.is_file():
        log.debug("Catalog file not found", path=str(catalog_path))
        return None
    try:
        payload = json.loads(catalog_path.read_text(encoding="utf-8"))
        return Catalog.model_validate(payload)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        log.warning("Skipping unreadable catalog", path=str(catalog_path), error=str(exc))
        return None


def resolve_local_path(local_path: str, base_dir: Path | None = None) -> Path:
    path = Path(local_path).expanduser()
    if base_dir is not None and not path.is_absolute():
        return base_dir / path
    return path


def repository_catalog_path(
    repo: RepositoryEntry,
    catalog_relpath: str = DEFAULT_CATALOG_RELPATH,
    base_dir: Path | None = None,
) -> Path:
    return resolve_local_path(repo.local_path, base_dir) / catalog_relpath


def merge_catalogs(sources: Iterable[tuple[RepositoryEntry, Catalog]]) -> list[CatalogPlugin]:
    """Merge catalogs in the given order; the first plugin seen under a name wins."""
    merged: list[CatalogPlugin] = []
    seen: set[str] = set()
    for repo, catalog in sources:
        for plugin in catalog.plugins:
            if plugin.name in seen:
                continue
            seen.add(plugin.name)
            merged.append(
                plugin.model_copy(
                    update={
                        "source_repo": repo.name,
                        "source_url": repo.url,
                        "source_path": repo.local_path,
                    }
                )
            )
    return merged


def order_repositories(repositories: Iterable[RepositoryEntry]) -> list[RepositoryEntry]:
    """Enabled repositories, lowest priority number first."""
    return sorted(
        (repo for repo in repositories if repo.enabled),
        key=lambda repo: repo.priority,
    )


def aggregate_catalog(
    repositories: Iterable[RepositoryEntry],
    catalog_relpath: str = DEFAULT_CATALOG_RELPATH,
    version: str | None = None,
    base_dir: Path | None = None,
) -> Catalog:
    """Build the merged catalog of all enabled repositories.

    Relative repository paths are anchored at ``base_dir`` when given.
    """
    sources: list[tuple[RepositoryEntry, Catalog]] = []
    for repo in order_repositories(repositories):
        catalog = load_catalog(repository_catalog_path(repo, catalog_relpath, base_dir))
        if catalog is None:
            continue
        sources.append((repo, catalog))
    plugins = merge_catalogs(sources)
    log.debug("Aggregated catalog", repositories=len(sources), plugins=len(plugins))
    return Catalog(name=AGGREGATED_CATALOG_NAME, version=version, plugins=plugins)


def legacy_catalog_candidates(cwd: Path, source_dir_name: str, catalog_relpath: str) -> list[Path]:
    return [
        cwd / source_dir_name / catalog_relpath,
        cwd.parent / source_dir_name / catalog_relpath,
    ]


def find_legacy_catalog(cwd: Path, source_dir_name: str, catalog_relpath: str) -> Catalog | None:
    """Return the first readable catalog at the conventional checkout locations."""
    for candidate in legacy_catalog_candidates(cwd, source_dir_name, catalog_relpath):
        catalog = load_catalog(candidate)
        if catalog is not None:
            log.info("Using fallback catalog", path=str(candidate))
            return catalog
    return None


def find_plugin(catalog: Catalog, name: str) -> CatalogPlugin | None:
    for plugin in catalog.plugins:
        if plugin.name == name:
            return plugin
    return None


def find_plugin_for_skill(catalog: Catalog | None, skill_name: str) -> CatalogPlugin | None:
    """Find the first plugin listing a skill path whose last segment is ``skill_name``."""
    if catalog is None:
        return None
    for plugin in catalog.plugins:
        if skill_name in plugin.skill_dir_names():
            return plugin
    return None


def validate_repository(path: str | Path, catalog_relpath: str = DEFAULT_CATALOG_RELPATH) -> int:
    """Check a repository checkout and return the number of plugins it declares."""
    catalog_path = Path(path) / catalog_relpath
    if not catalog_path.is_file():
        raise CatalogError(f"Repository does not contain {catalog_relpath}")
    try:
        payload = json.loads(catalog_path.read_text(encoding="utf-8"))
        catalog = Catalog.model_validate(payload)
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogError(f"Failed to read {catalog_relpath}: {exc}") from exc
    except (json.JSONDecodeError, ValidationError) as exc:
        raise CatalogError(f"Invalid {catalog_relpath} format: {exc}") from exc
    return len(catalog.plugins)
