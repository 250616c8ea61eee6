"""Bounded-depth discovery of skill directories on disk."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from skillbox.logging import get_logger
from skillbox.metadata import SKILL_MARKER, read_frontmatter
from skillbox.models import LocalSkill, LocalSkillScanResult, SkillDirectory

log = get_logger(__name__)

DEFAULT_MAX_DEPTH = 5
DEFAULT_IGNORE_NAMES = frozenset(
    {".git", "node_modules", "__pycache__", "target", "dist", "build", ".venv", "venv"}
)
DEFAULT_ALLOWED_DOT_DIR = ".curated"


def _list_child_dirs(directory: Path) -> list[Path]:
    try:
        children = [entry for entry in directory.iterdir() if is_readable_dir(entry)]
    except OSError as exc:
        log.debug("Skipping unreadable directory", path=str(directory), error=str(exc))
        return []
    children.sort(key=lambda item: item.name)
    return children


def _should_descend(name: str, ignore_names: Iterable[str], allowed_dot_dir: str) -> bool:
    if name in ignore_names:
        return False
    if name.startswith(".") and name != allowed_dot_dir:
        return False
    return True


def is_skill_dir(path: Path) -> bool:
    try:
        return (path / SKILL_MARKER).is_file()
    except OSError as exc:
        log.debug("Skipping untraversable directory", path=str(path), error=str(exc))
        return False


def is_readable_dir(path: Path) -> bool:
    """``Path.is_dir`` that reports unreachable paths as missing instead of raising."""
    try:
        return path.is_dir()
    except OSError as exc:
        log.debug("Skipping unreachable directory", path=str(path), error=str(exc))
        return False


def find_skill_dirs(
    root: str | Path,
    max_depth: int = DEFAULT_MAX_DEPTH,
    ignore_names: Iterable[str] = DEFAULT_IGNORE_NAMES,
    allowed_dot_dir: str = DEFAULT_ALLOWED_DOT_DIR,
) -> list[Path]:
    """Find directories below ``root`` that contain SKILL.md.

    A directory at depth ``max_depth`` (children of root are depth 1) is
    the deepest one inspected. Once a directory is recognized as a skill its
    subtree is not searched, since skills do not nest.
    """
    ignored = frozenset(ignore_names)
    found: list[Path] = []
    pending: list[tuple[Path, int]] = [(Path(root), max_depth)]
    while pending:
        directory, budget = pending.pop()
        if budget <= 0:
            continue
        descend: list[Path] = []
        for child in _list_child_dirs(directory):
            if not _should_descend(child.name, ignored, allowed_dot_dir):
                continue
            if is_skill_dir(child):
                found.append(child)
            else:
                descend.append(child)
        # Reversed so the stack pops children in name order.
        pending.extend((child, budget - 1) for child in reversed(descend))
    return found


def directory_size(path: str | Path) -> int:
    """Total byte size of regular files below ``path``; unreadable entries count as zero."""
    total = 0
    pending: list[Path] = [Path(path)]
    while pending:
        directory = pending.pop()
        try:
            entries = list(directory.iterdir())
        except OSError:
            continue
        for entry in entries:
            try:
                if entry.is_symlink():
                    total += entry.lstat().st_size
                elif entry.is_dir():
                    pending.append(entry)
                else:
                    total += entry.stat().st_size
            except OSError:
                continue
    return total


def inspect_skill_directory(path: str | Path) -> SkillDirectory:
    directory = Path(path)
    return SkillDirectory(
        path=str(directory),
        has_marker=is_skill_dir(directory),
        has_scripts=(directory / "scripts").exists(),
        has_references=(directory / "references").exists(),
        has_assets=(directory / "assets").exists(),
        size_bytes=directory_size(directory),
    )


def scan_local_skills(directory: str | Path, max_depth: int = 1) -> LocalSkillScanResult:
    """Preview the skills found in a local directory before importing them."""
    root = Path(directory)
    if not is_readable_dir(root):
        return LocalSkillScanResult(
            success=False,
            path=str(directory),
            error_message="Directory does not exist or is not a directory",
        )

    skills: list[LocalSkill] = []
    errors: list[str] = []
    for skill_path in find_skill_dirs(root, max_depth=max_depth):
        frontmatter = read_frontmatter(skill_path) or {}
        name = str(frontmatter.get("name") or "").strip()
        description = str(frontmatter.get("description") or "").strip()
        if not name or not description:
            errors.append(f"Failed to parse {skill_path}: missing name or description")
            continue
        info = inspect_skill_directory(skill_path)
        skills.append(
            LocalSkill(
                name=name,
                description=description,
                path=str(skill_path),
                has_scripts=info.has_scripts,
                has_references=info.has_references,
                has_assets=info.has_assets,
                size_bytes=info.size_bytes,
            )
        )

    log.info("Scanned local skills directory", path=str(root), found=len(skills), errors=len(errors))
    return LocalSkillScanResult(
        success=bool(skills),
        path=str(directory),
        skills_found=skills,
        error_message="; ".join(errors) if errors else None,
        total_skills=len(skills),
    )
