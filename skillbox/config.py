"""Configuration management for Skillbox."""

from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.skillbox/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "skillbox.yaml"

OFFICIAL_REPO_ID = "skillbox-official"
OFFICIAL_REPO_NAME = "Skillbox"
OFFICIAL_REPO_URL = "https://github.com/Jst-Well-Dan/Skill-Box"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class RepositoryEntry(BaseModel):
    """A prioritized catalog repository checked out on local disk."""

    id: str
    name: str
    url: str = ""
    kind: Literal["official", "custom"] = Field(default="custom", alias="type")
    enabled: bool = True
    priority: int = Field(default=10, ge=0)
    local_path: str = ""
    last_updated: str = Field(default_factory=_now_iso)
    auth_type: str = "public"

    model_config = ConfigDict(populate_by_name=True)


def default_official_repository() -> RepositoryEntry:
    return RepositoryEntry(
        id=OFFICIAL_REPO_ID,
        name=OFFICIAL_REPO_NAME,
        url=OFFICIAL_REPO_URL,
        kind="official",
        enabled=True,
        priority=0,
        local_path="../Skill-Box",
    )


def _is_official_candidate(entry: RepositoryEntry) -> bool:
    return (
        entry.kind == "official"
        or entry.id == OFFICIAL_REPO_ID
        or entry.url == OFFICIAL_REPO_URL
    )


def normalize_repositories(entries: list[RepositoryEntry]) -> list[RepositoryEntry]:
    """Keep exactly one official repository, first in the list."""
    officials = [entry for entry in entries if _is_official_candidate(entry)]
    others = [entry for entry in entries if not _is_official_candidate(entry)]
    if officials:
        official = officials[0].model_copy(
            update={"id": OFFICIAL_REPO_ID, "name": OFFICIAL_REPO_NAME, "kind": "official"}
        )
    else:
        official = default_official_repository()
    return [official, *others]


class AgentSpec(BaseModel):
    """Skill directory conventions of one external agent integration."""

    id: str
    name: str
    global_path: str
    project_path: str
    category: str = "Core"


def _agent(agent_id: str, name: str, project_path: str, global_path: str, category: str = "Core") -> AgentSpec:
    return AgentSpec(
        id=agent_id,
        name=name,
        project_path=project_path,
        global_path=global_path,
        category=category,
    )


DEFAULT_AGENTS: list[AgentSpec] = [
    _agent("claude", "Claude Code", ".claude/skills/", "~/.claude/skills/"),
    _agent("cursor", "Cursor", ".cursor/skills/", "~/.cursor/skills/"),
    _agent("windsurf", "Windsurf", ".windsurf/skills/", "~/.codeium/windsurf/skills/"),
    _agent("trae", "Trae", ".trae/skills/", "~/.trae/skills/"),
    _agent("github_copilot", "GitHub Copilot", ".agents/skills/", "~/.copilot/skills/"),
    _agent("antigravity", "Antigravity", ".agent/skills/", "~/.gemini/antigravity/skills/"),
    _agent("cline", "Cline", ".cline/skills/", "~/.cline/skills/"),
    _agent("gemini", "Gemini CLI", ".agents/skills/", "~/.gemini/skills/"),
    _agent("kiro", "Kiro CLI", ".kiro/skills/", "~/.kiro/skills/"),
    _agent("kilocode", "Kilo Code", ".kilocode/skills/", "~/.kilocode/skills/"),
    _agent("openclaw", "OpenClaw", "skills/", "~/.openclaw/skills/"),
    _agent("opencode", "OpenCode", ".agents/skills/", "~/.config/opencode/skills/"),
    _agent("goose", "Goose", ".goose/skills/", "~/.config/goose/skills/", "Community"),
    _agent("codebuddy", "CodeBuddy", ".codebuddy/skills/", "~/.codebuddy/skills/", "Community"),
    _agent("continue", "Continue", ".continue/skills/", "~/.continue/skills/", "Community"),
    _agent("iflow", "iFlow CLI", ".iflow/skills/", "~/.iflow/skills/", "Community"),
    _agent("roo", "Roo Code", ".roo/skills/", "~/.roo/skills/", "Community"),
    _agent("amp", "Amp", ".agents/skills/", "~/.config/agents/skills/", "Community"),
    _agent("droid", "Droid", ".factory/skills/", "~/.factory/skills/", "Community"),
    _agent("augment", "Augment", ".augment/skills/", "~/.augment/skills/", "Community"),
    _agent("junie", "Junie", ".junie/skills/", "~/.junie/skills/", "Community"),
    _agent("qwen_code", "Qwen Code", ".qwen/skills/", "~/.qwen/skills/", "Community"),
]


class MarketplaceConfig(BaseModel):
    """Catalog repositories and source lookup configuration."""

    repositories: list[RepositoryEntry] = Field(
        default_factory=lambda: [default_official_repository()]
    )
    catalog_relpath: str = ".claude-plugin/marketplace.json"
    source_dir_name: str = "Skill-Box"
    plugin_source_paths: dict[str, str] = Field(default_factory=dict)

    @field_validator("repositories")
    @classmethod
    def _single_official(cls, value: list[RepositoryEntry]) -> list[RepositoryEntry]:
        return normalize_repositories(value)


class AgentsConfig(BaseModel):
    """Agent registry table."""

    table: list[AgentSpec] = Field(default_factory=lambda: list(DEFAULT_AGENTS))
    custom_paths: dict[str, str] = Field(default_factory=dict)


class ScanConfig(BaseModel):
    """Installed-skill discovery limits."""

    max_depth: int = Field(default=5, ge=0)
    ignore_names: list[str] = [
        ".git",
        "node_modules",
        "__pycache__",
        "target",
        "dist",
        "build",
        ".venv",
        "venv",
    ]
    allowed_dot_dir: str = ".curated"


class InstallConfig(BaseModel):
    """Installation behavior."""

    stamp_filename: str = ".metadata.json"
    resource_dir: str = ""


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for Skillbox."""

    version: str = "1.0"
    marketplace: MarketplaceConfig = Field(default_factory=MarketplaceConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="SKILLBOX_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from the resolved YAML file.

        Values present in the file take precedence over ``SKILLBOX_*``
        environment variables; env only fills keys the file leaves unset.
        """
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True, by_alias=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
