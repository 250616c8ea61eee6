"""Flat export of every catalog skill with its SKILL.md identity."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

from skillbox.catalog import Catalog, CatalogPlugin, clean_skill_path, resolve_local_path, skill_dir_name
from skillbox.exceptions import CatalogError
from skillbox.logging import get_logger
from skillbox.metadata import SKILL_MARKER, parse_skill_identity
from skillbox.models import ExportedSkill

if TYPE_CHECKING:
    from skillbox.context import SkillboxContext

log = get_logger(__name__)

EXPORT_FILENAME = "marketplace_skills_catalog.json"
NOT_FOUND_DESCRIPTION = "SKILL.md not found"
READ_FAILED_DESCRIPTION = "Failed to read SKILL.md"
PARSE_FAILED_DESCRIPTION = "No description found in SKILL.md (parsing failed)"


def _plugin_roots(ctx: SkillboxContext, plugin: CatalogPlugin) -> list[Path]:
    roots = [resolve_local_path(plugin.source_path, ctx.cwd)] if plugin.source_path else []
    for root in ctx.skill_search_roots():
        if root not in roots:
            roots.append(root)
    return roots


def _find_skill_document(roots: list[Path], relative: str) -> Path | None:
    for root in roots:
        candidate = root / relative / SKILL_MARKER
        try:
            if candidate.is_file():
                return candidate
        except OSError:
            continue
    return None


def export_skill(ctx: SkillboxContext, plugin: CatalogPlugin, skill_path: str) -> ExportedSkill:
    fallback_name = skill_dir_name(skill_path) or skill_path
    document = _find_skill_document(_plugin_roots(ctx, plugin), clean_skill_path(skill_path))
    if document is None:
        name, description = fallback_name, NOT_FOUND_DESCRIPTION
    else:
        try:
            identity = parse_skill_identity(document.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            log.debug("Skipping unreadable skill document", path=str(document), error=str(exc))
            identity = (fallback_name, READ_FAILED_DESCRIPTION)
        name, description = identity or (fallback_name, PARSE_FAILED_DESCRIPTION)
    return ExportedSkill(
        plugin_name=plugin.name,
        skill_path=skill_path,
        name=name,
        description=description,
    )


def export_catalog(
    ctx: SkillboxContext,
    output_path: str | Path,
    catalog: Catalog | None = None,
) -> list[ExportedSkill]:
    """Write every skill of every catalog plugin to ``output_path`` as one JSON list.

    Skills whose document is missing or unparsable are still exported,
    named after their directory and described by the failure.
    """
    if catalog is None:
        catalog = ctx.load_catalog()
    if not catalog.plugins:
        raise CatalogError("No catalog plugins to export")

    exported = [
        export_skill(ctx, plugin, skill_path)
        for plugin in catalog.plugins
        for skill_path in plugin.skills
    ]

    target = Path(output_path).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps([asdict(skill) for skill in exported], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as exc:
        raise CatalogError(f"Failed to write catalog file: {exc}") from exc

    log.info("Exported catalog skills", count=len(exported), path=str(target))
    return exported
