"""Transient records produced by scans and installs."""

from __future__ import annotations

from dataclasses import dataclass, field

SCOPE_GLOBAL = "global"
SCOPE_PROJECT = "project"

SOURCE_MARKETPLACE = "Marketplace"
SOURCE_LOCAL_DIRECTORY = "LocalDirectory"


@dataclass
class SkillDirectory:
    """A directory holding SKILL.md, observed during one scan."""

    path: str
    has_marker: bool
    has_scripts: bool = False
    has_references: bool = False
    has_assets: bool = False
    size_bytes: int = 0

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


@dataclass
class ResolvedMetadata:
    version: str | None = None
    description: str | None = None
    category: str | None = None
    source_type: str | None = None


@dataclass
class PluginLocation:
    scope: str
    project_path: str | None = None
    paths: list[str] = field(default_factory=list)


@dataclass
class InstalledPluginRecord:
    """Skill directories grouped under one logical plugin name."""

    name: str
    installed_at: str
    location: PluginLocation
    category: str | None = None
    description: str | None = None
    version: str | None = None
    agents: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    size_bytes: int = 0
    paths_by_agent: dict[str, str] = field(default_factory=dict)
    source_type: str | None = None


@dataclass
class ScanSummary:
    global_count: int = 0
    project_count: int = 0

    def increment(self, scope: str) -> None:
        if scope == SCOPE_GLOBAL:
            self.global_count += 1
        else:
            self.project_count += 1


@dataclass
class ScanResult:
    total_count: int = 0
    by_scope: ScanSummary = field(default_factory=ScanSummary)
    by_agent: dict[str, int] = field(default_factory=dict)
    plugins: list[InstalledPluginRecord] = field(default_factory=list)


@dataclass
class LocalSkill:
    name: str
    description: str
    path: str
    source: str = SOURCE_LOCAL_DIRECTORY
    has_scripts: bool = False
    has_references: bool = False
    has_assets: bool = False
    size_bytes: int = 0


@dataclass
class LocalSkillScanResult:
    success: bool
    path: str
    skills_found: list[LocalSkill] = field(default_factory=list)
    error_message: str | None = None
    total_skills: int = 0


@dataclass
class AgentOutcome:
    """Result of one agent's part of an install or uninstall."""

    agent_id: str
    ok: bool
    message: str

    def __str__(self) -> str:
        return f"{self.agent_id}: {self.message}"


@dataclass
class InstallReport:
    plugin_name: str
    success: bool
    outcomes: list[AgentOutcome] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return ", ".join(str(outcome) for outcome in self.outcomes)

    @property
    def error_text(self) -> str | None:
        if self.success:
            return None
        return "; ".join(str(outcome) for outcome in self.outcomes)


@dataclass
class ExportedSkill:
    plugin_name: str
    skill_path: str
    name: str
    description: str
