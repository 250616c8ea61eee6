"""Per-skill metadata resolution from SKILL.md, skill.json and the install stamp."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from skillbox.logging import get_logger
from skillbox.models import ResolvedMetadata

log = get_logger(__name__)

SKILL_MARKER = "SKILL.md"
SKILL_DESCRIPTOR = "skill.json"
INSTALL_STAMP = ".metadata.json"


def _parse_frontmatter_lines(block: list[str]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    for line in block:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        parsed[key] = value.strip().strip('"').strip("'")
    return parsed


def parse_frontmatter(content: str) -> dict[str, Any]:
    """Parse the ``---`` delimited block at the top of a skill document.

    The block is read as YAML. Descriptions often contain bare colons that
    YAML rejects, so an unparsable block is read again as plain
    ``key: value`` lines.
    """
    text = (content or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    if not lines or lines[0].strip() != "---":
        return {}
    end = next(
        (index for index in range(1, len(lines)) if lines[index].strip() == "---"),
        None,
    )
    if end is None:
        return {}
    block = lines[1:end]
    if not any(line.strip() for line in block):
        return {}
    try:
        parsed = yaml.safe_load("\n".join(block))
    except yaml.YAMLError:
        return _parse_frontmatter_lines(block)
    if not isinstance(parsed, dict):
        return _parse_frontmatter_lines(block)
    # Bare scalars such as `yes` or `2024-01-01` stay as written.
    raw = _parse_frontmatter_lines([line for line in block if line[:1] not in (" ", "\t")])
    result: dict[str, Any] = {}
    for key, value in parsed.items():
        key = str(key)
        if key in raw and value is not None and not isinstance(value, (str, dict, list)):
            value = raw[key]
        result[key] = value
    return result


def _as_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        text = str(value).strip()
        return text or None
    return None


def merge_metadata(
    frontmatter: dict[str, Any] | None,
    descriptor: dict[str, Any] | None,
    stamp: dict[str, Any] | None,
) -> ResolvedMetadata:
    """Combine the three metadata sources, earlier sources winning per field."""
    resolved = ResolvedMetadata()

    if frontmatter:
        resolved.description = _as_text(frontmatter.get("description"))

    if descriptor:
        version = _as_text(descriptor.get("version"))
        if version is not None:
            resolved.version = version
        if resolved.description is None:
            resolved.description = _as_text(descriptor.get("description"))
        if resolved.category is None:
            resolved.category = _as_text(descriptor.get("category"))

    if stamp:
        resolved.source_type = _as_text(stamp.get("source_type"))

    return resolved


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from disk, returning None when absent or malformed."""
    if not path.is_file():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.debug("Skipping unreadable metadata file", path=str(path), error=str(exc))
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def read_frontmatter(skill_dir: Path) -> dict[str, Any] | None:
    skill_md = skill_dir / SKILL_MARKER
    if not skill_md.is_file():
        return None
    try:
        content = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.debug("Skipping unreadable skill document", path=str(skill_md), error=str(exc))
        return None
    return parse_frontmatter(content)


def resolve_metadata(skill_dir: str | Path, stamp_filename: str = INSTALL_STAMP) -> ResolvedMetadata:
    """Resolve version, description, category and source type for a skill directory."""
    directory = Path(skill_dir)
    return merge_metadata(
        read_frontmatter(directory),
        read_json_object(directory / SKILL_DESCRIPTOR),
        read_json_object(directory / stamp_filename),
    )


def read_skill_identity(skill_dir: str | Path, label: str | None = None) -> tuple[str, str]:
    """Return the display name and description of a skill.

    Falls back to the directory name and a generic description when the
    frontmatter does not provide them.
    """
    directory = Path(skill_dir)
    frontmatter = read_frontmatter(directory) or {}
    name = _as_text(frontmatter.get("name")) or directory.name
    description = _as_text(frontmatter.get("description")) or f"Skill from {label or directory}"
    return name, description


def parse_skill_identity(content: str) -> tuple[str, str] | None:
    """Name and description from a skill document, or None unless both are present."""
    frontmatter = parse_frontmatter(content)
    name = _as_text(frontmatter.get("name"))
    description = _as_text(frontmatter.get("description"))
    if name is None or description is None:
        return None
    return name, description
