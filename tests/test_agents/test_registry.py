from pathlib import Path

from skillbox.agents import AgentRegistry, expand_home
from skillbox.config import DEFAULT_AGENTS, AgentsConfig, AgentSpec
from skillbox.context import SkillboxContext


class _NullHistory:
    def append(self, entry) -> None:
        pass


def test_expand_home_prefers_userprofile(monkeypatch):
    monkeypatch.setenv("USERPROFILE", "/users/dev")
    monkeypatch.setenv("HOME", "/home/dev")

    assert expand_home("~/.claude/skills") == Path("/users/dev/.claude/skills")
    assert expand_home("/opt/skills") == Path("/opt/skills")


def test_expand_home_falls_back_to_home(monkeypatch):
    monkeypatch.delenv("USERPROFILE", raising=False)
    monkeypatch.setenv("HOME", "/home/dev")

    assert expand_home("~/.codex/skills/") == Path("/home/dev/.codex/skills")


def test_custom_path_overrides_global_path(tmp_path: Path):
    agent = AgentSpec(id="claude", name="Claude", global_path="/nowhere", project_path=".claude/skills/")
    registry = AgentRegistry.from_config(
        AgentsConfig(table=[agent], custom_paths={"claude": str(tmp_path / "custom")})
    )

    assert registry.global_path("claude") == tmp_path / "custom"
    assert registry.project_path("claude", tmp_path / "proj") == tmp_path / "proj" / ".claude" / "skills"


def test_unknown_agent_has_no_paths():
    registry = AgentRegistry([])

    assert registry.global_path("ghost") is None
    assert registry.project_path("ghost", "/tmp/project") is None


def test_registry_keeps_table_order_and_first_duplicate():
    first = AgentSpec(id="a", name="First", global_path="/a", project_path=".a/")
    second = AgentSpec(id="b", name="Second", global_path="/b", project_path=".b/")
    shadow = AgentSpec(id="a", name="Shadow", global_path="/x", project_path=".x/")

    registry = AgentRegistry([first, second, shadow])

    assert [agent.name for agent in registry.all_agents()] == ["First", "Second"]


def test_default_table_has_unique_ids():
    ids = [agent.id for agent in DEFAULT_AGENTS]

    assert len(ids) == len(set(ids))
    assert "claude" in ids


def test_bootstrap_loads_yaml_and_builds_registry(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "agents:\n"
        "  table:\n"
        "    - id: solo\n"
        "      name: Solo\n"
        f"      global_path: {tmp_path / 'solo'}\n"
        "      project_path: .solo/skills/\n"
        "logging:\n"
        "  level: WARNING\n"
        "  format: json\n",
        encoding="utf-8",
    )

    ctx = SkillboxContext.bootstrap(_NullHistory(), config_path)

    assert [agent.id for agent in ctx.agents.all_agents()] == ["solo"]
    assert ctx.config.logging.format == "json"
