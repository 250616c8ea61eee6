"""Installed plugin discovery across agents and scopes."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from skillbox.catalog import Catalog, find_plugin_for_skill
from skillbox.exceptions import ProjectPathRequiredError
from skillbox.history import ProjectPathSource
from skillbox.logging import get_logger
from skillbox.metadata import INSTALL_STAMP, resolve_metadata
from skillbox.models import (
    SCOPE_GLOBAL,
    SCOPE_PROJECT,
    InstalledPluginRecord,
    PluginLocation,
    ScanResult,
)
from skillbox.walker import directory_size, find_skill_dirs, is_readable_dir

if TYPE_CHECKING:
    from skillbox.context import SkillboxContext

log = get_logger(__name__)

PROJECT_FALLBACK_DESCRIPTION = "Project local skill"
GLOBAL_FALLBACK_DESCRIPTION = "Locally detected skill"


def modified_at_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, UTC).isoformat()


class ScanAccumulator:
    """Groups skill directory observations into plugin records.

    One accumulator belongs to one scan call. Records are keyed by logical
    name; every observation bumps the scope and agent counters once, whether
    or not it merged into an existing record.
    """

    def __init__(self, catalog: Catalog | None = None, stamp_filename: str = INSTALL_STAMP) -> None:
        self.catalog = catalog
        self.stamp_filename = stamp_filename
        self.result = ScanResult()
        self._records: dict[str, InstalledPluginRecord] = {}

    def observe(
        self,
        agent_id: str,
        scope: str,
        skill_dir: Path,
        project_path: str | None = None,
    ) -> InstalledPluginRecord | None:
        try:
            installed_at = modified_at_iso(skill_dir)
        except OSError as exc:
            log.debug("Skipping vanished skill directory", path=str(skill_dir), error=str(exc))
            return None

        skill_name = skill_dir.name
        metadata = resolve_metadata(skill_dir, self.stamp_filename)
        plugin = find_plugin_for_skill(self.catalog, skill_name) if scope == SCOPE_PROJECT else None
        if plugin is not None:
            name = plugin.name
            category = plugin.category
            description = plugin.description
        elif scope == SCOPE_PROJECT:
            name = skill_name
            category = metadata.category
            description = metadata.description or PROJECT_FALLBACK_DESCRIPTION
        else:
            name = skill_name
            category = metadata.category
            description = metadata.description or GLOBAL_FALLBACK_DESCRIPTION
            project_path = None

        path_text = str(skill_dir)
        record = self._records.get(name)
        if record is None:
            record = InstalledPluginRecord(
                name=name,
                category=category,
                description=description,
                version=metadata.version,
                installed_at=installed_at,
                location=PluginLocation(scope=scope, project_path=project_path, paths=[path_text]),
                agents=[agent_id],
                skills=[skill_name],
                size_bytes=directory_size(skill_dir),
                paths_by_agent={agent_id: path_text},
                source_type=metadata.source_type,
            )
            self._records[name] = record
            self.result.plugins.append(record)
        else:
            if agent_id not in record.agents:
                record.agents.append(agent_id)
            if skill_name not in record.skills:
                record.skills.append(skill_name)
            if path_text not in record.location.paths:
                record.location.paths.append(path_text)
                record.size_bytes += directory_size(skill_dir)
            record.paths_by_agent[agent_id] = path_text

        self.result.by_scope.increment(scope)
        self.result.by_agent[agent_id] = self.result.by_agent.get(agent_id, 0) + 1
        return record

    def observe_root(
        self,
        agent_id: str,
        scope: str,
        root: Path,
        project_path: str | None = None,
        **walk_options: Any,
    ) -> None:
        for skill_dir in find_skill_dirs(root, **walk_options):
            self.observe(agent_id, scope, skill_dir, project_path)

    def finish(self) -> ScanResult:
        self.result.total_count = len(self.result.plugins)
        return self.result


def _project_roots(ctx: SkillboxContext, scope: str | None, project_path: str | None) -> list[str]:
    if project_path:
        return [project_path]
    if isinstance(ctx.history, ProjectPathSource):
        return sorted({path for path in ctx.history.project_paths() if path})
    if scope == SCOPE_PROJECT:
        raise ProjectPathRequiredError()
    return []


def scan_installed_plugins(
    ctx: SkillboxContext,
    scope: str | None = None,
    project_path: str | None = None,
    catalog: Catalog | None = None,
) -> ScanResult:
    """Scan every agent's skill roots and group what is installed.

    Agents are visited in registry order, global scope before project
    scope.
    """
    if catalog is None:
        catalog = ctx.load_catalog()
    scan_cfg = ctx.config.scan
    walk_options = {
        "max_depth": scan_cfg.max_depth,
        "ignore_names": scan_cfg.ignore_names,
        "allowed_dot_dir": scan_cfg.allowed_dot_dir,
    }
    accumulator = ScanAccumulator(catalog, ctx.config.install.stamp_filename)
    agents = ctx.agents.all_agents()

    if scope is None or scope == SCOPE_GLOBAL:
        for agent in agents:
            root = ctx.agents.global_path(agent.id)
            if root is not None and is_readable_dir(root):
                accumulator.observe_root(agent.id, SCOPE_GLOBAL, root, **walk_options)

    if scope is None or scope == SCOPE_PROJECT:
        for project_root in _project_roots(ctx, scope, project_path):
            for agent in agents:
                root = ctx.agents.project_path(agent.id, project_root)
                if root is not None and is_readable_dir(root):
                    accumulator.observe_root(agent.id, SCOPE_PROJECT, root, project_root, **walk_options)

    result = accumulator.finish()
    log.info(
        "Scanned installed plugins",
        plugins=result.total_count,
        global_skills=result.by_scope.global_count,
        project_skills=result.by_scope.project_count,
    )
    return result


def score_record(record: InstalledPluginRecord, query: str) -> float:
    needle = query.lower()
    score = 0.0
    name = record.name.lower()
    if needle in name:
        score += 3.0
        if name == needle:
            score += 2.0
    if record.category and needle in record.category.lower():
        score += 2.0
    if record.description and needle in record.description.lower():
        score += 1.0
    return score


def rank_records(records: list[InstalledPluginRecord], query: str) -> list[InstalledPluginRecord]:
    """Filter and order records by match score; ties keep their scan order."""
    if not query:
        return list(records)
    scored = [(score_record(record, query), record) for record in records]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: -item[0])
    return [record for _, record in scored]


def search_installed_plugins(
    ctx: SkillboxContext,
    query: str,
    scope: str | None = None,
    project_path: str | None = None,
    catalog: Catalog | None = None,
) -> list[InstalledPluginRecord]:
    result = scan_installed_plugins(ctx, scope=scope, project_path=project_path, catalog=catalog)
    return rank_records(result.plugins, query)
