"""Skill installation into agent skill directories.

Each requested agent is handled on its own: a failure for one agent is
reported in its outcome string and the remaining agents still proceed.
Nothing is rolled back across agents. Exactly one history entry is
appended per call, including calls that fail before touching disk.
"""

from __future__ import annotations

import json
import shutil
from collections import deque
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from skillbox.catalog import (
    Catalog,
    CatalogPlugin,
    clean_skill_path,
    find_plugin,
    resolve_local_path,
    skill_dir_name,
)
from skillbox.exceptions import (
    InstallError,
    InvalidSkillSourceError,
    PluginNotFoundError,
    SkillboxError,
    SourceRootNotFoundError,
)
from skillbox.history import OPERATION_INSTALL, OPERATION_UNINSTALL, new_history_entry
from skillbox.logging import get_logger
from skillbox.metadata import SKILL_MARKER
from skillbox.models import (
    SCOPE_GLOBAL,
    SCOPE_PROJECT,
    SOURCE_LOCAL_DIRECTORY,
    SOURCE_MARKETPLACE,
    AgentOutcome,
    InstalledPluginRecord,
    InstallReport,
)

if TYPE_CHECKING:
    from skillbox.context import SkillboxContext

log = get_logger(__name__)

OUTCOME_SUCCESS = "Success"
OUTCOME_INVALID_PATH = "Invalid path config"


def source_root_candidates(plugin: CatalogPlugin, ctx: SkillboxContext) -> list[Path]:
    """Candidate checkout roots for a plugin, in lookup order."""
    marketplace = ctx.config.marketplace
    candidates: list[Path] = []
    configured = str(marketplace.plugin_source_paths.get(plugin.name) or "").strip()
    if configured:
        candidates.append(resolve_local_path(configured, ctx.cwd))
    if plugin.source_path:
        candidates.append(resolve_local_path(plugin.source_path, ctx.cwd))
    candidates.append(ctx.cwd / marketplace.source_dir_name)
    candidates.append(ctx.cwd.parent / marketplace.source_dir_name)
    resource_dir = str(ctx.config.install.resource_dir or "").strip()
    if resource_dir:
        resources = Path(resource_dir).expanduser()
        candidates.append(resources / marketplace.source_dir_name)
        candidates.append(resources / "_up_" / marketplace.source_dir_name)
    return candidates


def resolve_source_root(plugin: CatalogPlugin, ctx: SkillboxContext) -> Path:
    """Return the first candidate root that holds the catalog file."""
    candidates = source_root_candidates(plugin, ctx)
    relpath = ctx.config.marketplace.catalog_relpath
    for candidate in candidates:
        if (candidate / relpath).is_file():
            return candidate
    raise SourceRootNotFoundError([str(item) for item in candidates], str(ctx.cwd))


def copy_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` into ``destination``, overwriting files with the same relative path.

    Files already in ``destination`` that are absent from ``source`` are
    left in place.
    """
    pending: deque[tuple[Path, Path]] = deque([(source, destination)])
    while pending:
        src_dir, dst_dir = pending.popleft()
        dst_dir.mkdir(parents=True, exist_ok=True)
        for entry in sorted(src_dir.iterdir(), key=lambda item: item.name):
            target = dst_dir / entry.name
            if entry.is_dir():
                if entry.is_symlink():
                    log.debug("Skipping symlinked directory", path=str(entry))
                    continue
                pending.append((entry, target))
            else:
                shutil.copy2(entry, target)


def write_install_stamp(
    destination: Path,
    installed_from: str,
    scope: str,
    source_type: str,
    filename: str = ".metadata.json",
) -> None:
    stamp = {
        "installed_from": installed_from,
        "installation_scope": scope,
        "installed_date": datetime.now(UTC).isoformat(),
        "source_type": source_type,
    }
    (destination / filename).write_text(json.dumps(stamp, indent=2), encoding="utf-8")


def resolve_target_root(
    ctx: SkillboxContext,
    agent_id: str,
    scope: str,
    project_path: str | None,
) -> Path | None:
    if scope == SCOPE_GLOBAL:
        return ctx.agents.global_path(agent_id)
    if not project_path:
        return None
    return ctx.agents.project_path(agent_id, project_path)


def _install_for_agent(
    ctx: SkillboxContext,
    agent_id: str,
    scope: str,
    project_path: str | None,
    sources: list[tuple[str, Path]],
    source_type: str,
) -> AgentOutcome:
    target_root = resolve_target_root(ctx, agent_id, scope, project_path)
    if target_root is None:
        return AgentOutcome(agent_id, False, OUTCOME_INVALID_PATH)
    try:
        target_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return AgentOutcome(agent_id, False, f"Failed to create dir ({exc})")

    failures: list[str] = []
    for skill_name, source in sources:
        if not source.is_dir():
            failures.append(f"Source skill not found ({source})")
            continue
        destination = target_root / skill_name
        try:
            copy_tree(source, destination)
        except OSError as exc:
            failures.append(f"Copy failed for {skill_name} ({exc})")
            continue
        try:
            write_install_stamp(
                destination,
                str(source),
                scope,
                source_type,
                ctx.config.install.stamp_filename,
            )
        except OSError as exc:
            log.warning("Failed to write install stamp", path=str(destination), error=str(exc))

    if failures:
        return AgentOutcome(agent_id, False, "; ".join(failures))
    return AgentOutcome(agent_id, True, OUTCOME_SUCCESS)


def _append_history(
    ctx: SkillboxContext,
    plugin_name: str,
    agent_ids: list[str],
    scope: str,
    project_path: str | None,
    operation: str,
    success: bool,
    error_message: str | None,
    skills: list[str],
) -> None:
    entry = new_history_entry(
        plugin_name,
        agent_ids,
        scope,
        project_path,
        operation,
        success,
        error_message=error_message,
        skills_installed=skills,
    )
    try:
        ctx.history.append(entry)
    except Exception as exc:
        log.warning("Failed to record install history", plugin=plugin_name, error=str(exc))


def _check_scope(scope: str) -> None:
    if scope not in (SCOPE_GLOBAL, SCOPE_PROJECT):
        raise InstallError(f"Unknown installation scope: {scope}")


def _install_sources(
    ctx: SkillboxContext,
    name: str,
    agent_ids: list[str],
    scope: str,
    project_path: str | None,
    sources: list[tuple[str, Path]],
    source_type: str,
) -> InstallReport:
    outcomes = [
        _install_for_agent(ctx, agent_id, scope, project_path, sources, source_type)
        for agent_id in agent_ids
    ]
    report = InstallReport(
        plugin_name=name,
        success=all(outcome.ok for outcome in outcomes),
        outcomes=outcomes,
        skills=[skill_name for skill_name, _ in sources],
    )
    _append_history(
        ctx,
        name,
        agent_ids,
        scope,
        project_path,
        OPERATION_INSTALL,
        report.success,
        report.error_text,
        report.skills,
    )
    log.info(
        "Install finished",
        plugin=name,
        scope=scope,
        agents=len(agent_ids),
        success=report.success,
    )
    return report


def install_plugin(
    ctx: SkillboxContext,
    plugin_name: str,
    agent_ids: list[str],
    scope: str,
    project_path: str | None = None,
    catalog: Catalog | None = None,
) -> InstallReport:
    """Install every skill of a catalog plugin for the given agents."""
    try:
        _check_scope(scope)
        if catalog is None:
            catalog = ctx.load_catalog()
        plugin = find_plugin(catalog, plugin_name)
        if plugin is None:
            raise PluginNotFoundError(plugin_name)
        source_root = resolve_source_root(plugin, ctx)
    except SkillboxError as exc:
        _append_history(ctx, plugin_name, agent_ids, scope, project_path, OPERATION_INSTALL, False, str(exc), [])
        raise

    sources = [
        (skill_dir_name(skill_path), source_root / clean_skill_path(skill_path))
        for skill_path in plugin.skills
    ]
    return _install_sources(ctx, plugin_name, agent_ids, scope, project_path, sources, SOURCE_MARKETPLACE)


def install_local_skill(
    ctx: SkillboxContext,
    skill_path: str | Path,
    agent_ids: list[str],
    scope: str,
    project_path: str | None = None,
) -> InstallReport:
    """Install a single skill directory from local disk."""
    source = Path(skill_path).expanduser()
    skill_name = source.name
    try:
        _check_scope(scope)
        if not source.exists():
            raise InvalidSkillSourceError(str(skill_path), "Skill path does not exist")
        if not (source / SKILL_MARKER).is_file():
            raise InvalidSkillSourceError(str(skill_path), "Invalid skill directory (missing SKILL.md)")
    except SkillboxError as exc:
        _append_history(ctx, skill_name, agent_ids, scope, project_path, OPERATION_INSTALL, False, str(exc), [])
        raise

    return _install_sources(
        ctx,
        skill_name,
        agent_ids,
        scope,
        project_path,
        [(skill_name, source)],
        SOURCE_LOCAL_DIRECTORY,
    )


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def uninstall_skill(
    ctx: SkillboxContext,
    record: InstalledPluginRecord,
    agent_ids: list[str] | None = None,
) -> InstallReport:
    """Remove a scanned plugin's directories for some or all of its agents."""
    selected = list(agent_ids) if agent_ids else list(record.agents)
    scope = record.location.scope
    project_path = record.location.project_path
    outcomes: list[AgentOutcome] = []

    for agent_id in selected:
        target_root = resolve_target_root(ctx, agent_id, scope, project_path)
        if target_root is None:
            outcomes.append(AgentOutcome(agent_id, False, OUTCOME_INVALID_PATH))
            continue
        paths = [Path(path) for path in record.location.paths if _is_within(Path(path), target_root)]
        if not paths:
            outcomes.append(AgentOutcome(agent_id, False, "Not installed"))
            continue
        failures: list[str] = []
        for path in paths:
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
            except OSError as exc:
                failures.append(f"Remove failed for {path.name} ({exc})")
        if failures:
            outcomes.append(AgentOutcome(agent_id, False, "; ".join(failures)))
        else:
            outcomes.append(AgentOutcome(agent_id, True, OUTCOME_SUCCESS))

    report = InstallReport(
        plugin_name=record.name,
        success=all(outcome.ok for outcome in outcomes),
        outcomes=outcomes,
        skills=list(record.skills),
    )
    _append_history(
        ctx,
        record.name,
        selected,
        scope,
        project_path,
        OPERATION_UNINSTALL,
        report.success,
        report.error_text,
        [],
    )
    log.info("Uninstall finished", plugin=record.name, scope=scope, success=report.success)
    return report
