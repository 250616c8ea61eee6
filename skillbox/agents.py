"""Agent registry: where each agent keeps its skills per scope."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from skillbox.config import AgentSpec, AgentsConfig


def expand_home(path_text: str) -> Path:
    """Expand a leading ``~`` using USERPROFILE or HOME."""
    if not path_text.startswith("~"):
        return Path(path_text)
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or "."
    sub = path_text[1:].lstrip("/\\")
    return Path(home) / sub


class AgentRegistry:
    """Lookup of agent skill roots for the global and project scopes.

    Agents are kept in table order; scans visit them in that order, which
    decides whose path wins in a record's ``paths_by_agent`` map.
    """

    def __init__(self, agents: Iterable[AgentSpec], custom_paths: dict[str, str] | None = None) -> None:
        self._agents: dict[str, AgentSpec] = {}
        for agent in agents:
            self._agents.setdefault(agent.id, agent)
        self._custom_paths = dict(custom_paths or {})

    @classmethod
    def from_config(cls, config: AgentsConfig) -> "AgentRegistry":
        return cls(config.table, config.custom_paths)

    def all_agents(self) -> list[AgentSpec]:
        return list(self._agents.values())

    def get(self, agent_id: str) -> AgentSpec | None:
        return self._agents.get(agent_id)

    def global_path(self, agent_id: str) -> Path | None:
        agent = self._agents.get(agent_id)
        if agent is None:
            return None
        custom = str(self._custom_paths.get(agent_id) or "").strip()
        return expand_home(custom or agent.global_path)

    def project_path(self, agent_id: str, project_root: str | Path) -> Path | None:
        agent = self._agents.get(agent_id)
        if agent is None:
            return None
        return Path(project_root) / agent.project_path
