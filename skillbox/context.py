"""Process-wide state shared by scan and install calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from skillbox.agents import AgentRegistry
from skillbox.catalog import (
    Catalog,
    CatalogPlugin,
    aggregate_catalog,
    clean_skill_path,
    find_legacy_catalog,
    order_repositories,
    resolve_local_path,
    skill_dir_name,
)
from skillbox.config import Config
from skillbox.history import HistoryLedger
from skillbox.logging import configure_logging, get_logger
from skillbox.metadata import SKILL_MARKER, read_skill_identity

log = get_logger(__name__)


@dataclass
class SkillboxContext:
    """Explicit runtime state for Skillbox.

    Built once at startup and passed by reference into every scan and
    install call. Nothing here is mutated by those calls, so concurrent
    calls only share read-only configuration.
    """

    config: Config
    agents: AgentRegistry
    history: HistoryLedger
    cwd: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_config(
        cls,
        config: Config,
        history: HistoryLedger,
        cwd: Path | str | None = None,
    ) -> "SkillboxContext":
        return cls(
            config=config,
            agents=AgentRegistry.from_config(config.agents),
            history=history,
            cwd=Path(cwd) if cwd is not None else Path.cwd(),
        )

    @classmethod
    def bootstrap(
        cls,
        history: HistoryLedger,
        config_path: Path | str | None = None,
    ) -> "SkillboxContext":
        """Load configuration, configure logging and build the context."""
        config = Config.from_yaml(config_path)
        configure_logging(config)
        ctx = cls.from_config(config, history)
        log.debug("Skillbox context ready", agents=len(ctx.agents.all_agents()), cwd=str(ctx.cwd))
        return ctx

    def load_catalog(self) -> Catalog:
        """Merged catalog of enabled repositories, or the legacy checkout when empty."""
        marketplace = self.config.marketplace
        catalog = aggregate_catalog(
            marketplace.repositories,
            catalog_relpath=marketplace.catalog_relpath,
            version=self.config.version,
            base_dir=self.cwd,
        )
        if catalog.plugins:
            return catalog
        legacy = find_legacy_catalog(self.cwd, marketplace.source_dir_name, marketplace.catalog_relpath)
        if legacy is not None:
            return legacy
        log.warning("No catalog resolved from configured repositories")
        return catalog

    def skill_search_roots(self) -> list[Path]:
        marketplace = self.config.marketplace
        roots = [
            resolve_local_path(repo.local_path, self.cwd)
            for repo in order_repositories(marketplace.repositories)
        ]
        for fallback in (self.cwd / marketplace.source_dir_name, self.cwd.parent / marketplace.source_dir_name):
            if fallback not in roots:
                roots.append(fallback)
        return roots

    def plugin_skill_details(self, plugin: CatalogPlugin) -> list[tuple[str, str]]:
        """Display name and description of each skill a catalog plugin lists."""
        roots = self.skill_search_roots()
        details: list[tuple[str, str]] = []
        for skill_path in plugin.skills:
            relative = clean_skill_path(skill_path)
            skill_dir = next(
                (root / relative for root in roots if (root / relative / SKILL_MARKER).is_file()),
                None,
            )
            if skill_dir is None:
                log.debug("Skill document not found in any repository", skill=skill_path)
                details.append((skill_dir_name(skill_path), f"Skill from {skill_path}"))
                continue
            details.append(read_skill_identity(skill_dir, label=skill_path))
        return details
