"""Install history ledger interface.

The ledger itself is owned by the host application; the core only appends
one entry per install or uninstall attempt.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

OPERATION_INSTALL = "install"
OPERATION_UNINSTALL = "uninstall"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass
class HistoryEntry:
    id: str
    plugin_name: str
    agents: list[str]
    scope: str
    project_path: str | None
    operation: str
    installed_at: str
    status: str
    error_message: str | None = None
    skills_installed: list[str] = field(default_factory=list)


@runtime_checkable
class HistoryLedger(Protocol):
    def append(self, entry: HistoryEntry) -> None: ...


@runtime_checkable
class ProjectPathSource(Protocol):
    """Optional ledger capability: project roots of past successful installs."""

    def project_paths(self) -> Iterable[str]: ...


def new_history_entry(
    plugin_name: str,
    agents: Iterable[str],
    scope: str,
    project_path: str | None,
    operation: str,
    success: bool,
    error_message: str | None = None,
    skills_installed: Iterable[str] = (),
) -> HistoryEntry:
    return HistoryEntry(
        id=str(uuid.uuid4()),
        plugin_name=plugin_name,
        agents=list(agents),
        scope=scope,
        project_path=project_path,
        operation=operation,
        installed_at=datetime.now(UTC).isoformat(),
        status=STATUS_SUCCESS if success else STATUS_FAILED,
        error_message=error_message,
        skills_installed=list(skills_installed),
    )
