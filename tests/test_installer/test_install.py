import json
from pathlib import Path

import pytest

from skillbox.config import (
    AgentsConfig,
    AgentSpec,
    Config,
    InstallConfig,
    MarketplaceConfig,
    RepositoryEntry,
)
from skillbox.context import SkillboxContext
from skillbox.exceptions import InvalidSkillSourceError, PluginNotFoundError, SourceRootNotFoundError
from skillbox.installer import copy_tree, install_local_skill, install_plugin, uninstall_skill
from skillbox.scanner import scan_installed_plugins


class RecordingHistory:
    def __init__(self):
        self.entries = []

    def append(self, entry) -> None:
        self.entries.append(entry)


def _write_source_repo(root: Path) -> Path:
    catalog_dir = root / ".claude-plugin"
    catalog_dir.mkdir(parents=True, exist_ok=True)
    (catalog_dir / "marketplace.json").write_text(
        json.dumps(
            {
                "name": "Team Skills",
                "plugins": [
                    {
                        "name": "writer",
                        "description": "Documentation writer",
                        "category": "docs",
                        "skills": ["./docs/writer"],
                    },
                    {
                        "name": "broken",
                        "description": "Lists a skill that is not in the checkout",
                        "skills": ["./docs/missing"],
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    skill = root / "docs" / "writer"
    (skill / "references").mkdir(parents=True)
    (skill / "SKILL.md").write_text(
        "---\nname: Writer\ndescription: Writes docs\n---\n\n# Writer\n",
        encoding="utf-8",
    )
    (skill / "references" / "style.md").write_text("Use short sentences.", encoding="utf-8")
    return root


def _agent(agent_id: str, global_path: Path) -> AgentSpec:
    return AgentSpec(
        id=agent_id,
        name=agent_id,
        global_path=str(global_path),
        project_path=f".{agent_id}/skills/",
    )


def _context(tmp_path: Path, agents: list[AgentSpec], history: RecordingHistory, repo: Path | None = None) -> SkillboxContext:
    repositories = []
    if repo is not None:
        repositories.append(
            RepositoryEntry(
                id="team",
                name="Team",
                url="https://example.com/team.git",
                kind="custom",
                priority=1,
                local_path=str(repo),
            )
        )
    cfg = Config(
        marketplace=MarketplaceConfig(repositories=repositories),
        agents=AgentsConfig(table=agents),
    )
    workdir = tmp_path / "app"
    workdir.mkdir(exist_ok=True)
    return SkillboxContext.from_config(cfg, history, cwd=workdir)


def test_install_plugin_copies_skill_into_agent_global_root(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    global_root = tmp_path / "home" / "sample" / "skills"
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", global_root)], history, repo)

    report = install_plugin(ctx, "writer", ["sample-agent"], "global")

    destination = global_root / "writer"
    assert report.success is True
    assert report.message == "sample-agent: Success"
    assert (destination / "SKILL.md").read_text(encoding="utf-8").startswith("---\nname: Writer")
    assert (destination / "references" / "style.md").is_file()
    stamp = json.loads((destination / ".metadata.json").read_text(encoding="utf-8"))
    assert stamp["installation_scope"] == "global"
    assert stamp["source_type"] == "Marketplace"
    assert stamp["installed_from"] == str(repo / "docs" / "writer")
    assert len(history.entries) == 1
    entry = history.entries[0]
    assert entry.status == "success"
    assert entry.operation == "install"
    assert entry.plugin_name == "writer"
    assert entry.skills_installed == ["writer"]
    assert entry.error_message is None

    scan = scan_installed_plugins(ctx, scope="global")
    assert [record.name for record in scan.plugins] == ["writer"]
    assert scan.plugins[0].description == "Writes docs"
    assert scan.plugins[0].source_type == "Marketplace"


def test_partial_failure_is_isolated_per_agent(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    history = RecordingHistory()
    ctx = _context(
        tmp_path,
        [_agent("good", tmp_path / "home" / "good" / "skills"), _agent("bad", blocker / "skills")],
        history,
        repo,
    )

    report = install_plugin(ctx, "writer", ["good", "bad"], "global")

    assert report.success is False
    assert [outcome.ok for outcome in report.outcomes] == [True, False]
    assert str(report.outcomes[0]) == "good: Success"
    assert str(report.outcomes[1]).startswith("bad: Failed to create dir")
    assert (tmp_path / "home" / "good" / "skills" / "writer" / "SKILL.md").is_file()
    assert len(history.entries) == 1
    assert history.entries[0].status == "failed"
    assert history.entries[0].error_message


def test_unknown_agent_and_missing_project_path_are_per_agent_outcomes(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("known", tmp_path / "home" / "known")], history, repo)

    report = install_plugin(ctx, "writer", ["known", "ghost"], "project")

    assert report.message == "known: Invalid path config, ghost: Invalid path config"
    assert report.success is False
    assert len(history.entries) == 1


def test_project_scope_installs_under_project_root(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    project = tmp_path / "project"
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", tmp_path / "home")], history, repo)

    report = install_plugin(ctx, "writer", ["sample-agent"], "project", project_path=str(project))

    assert report.success is True
    assert (project / ".sample-agent" / "skills" / "writer" / "SKILL.md").is_file()
    assert history.entries[0].project_path == str(project)


def test_missing_source_skill_marks_agent_failed(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", tmp_path / "home")], history, repo)

    report = install_plugin(ctx, "broken", ["sample-agent"], "global")

    assert report.success is False
    assert "Source skill not found" in report.message


def test_unknown_plugin_records_failed_history_and_raises(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", tmp_path / "home")], history, repo)

    with pytest.raises(PluginNotFoundError):
        install_plugin(ctx, "nope", ["sample-agent"], "global")

    assert len(history.entries) == 1
    assert history.entries[0].status == "failed"
    assert "nope" in history.entries[0].error_message


def test_source_root_error_lists_every_candidate(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", tmp_path / "home")], history, repo)
    catalog = ctx.load_catalog()
    # Catalog resolved, but the checkout vanished before install.
    (repo / ".claude-plugin" / "marketplace.json").unlink()
    ctx.config.install = InstallConfig(resource_dir=str(tmp_path / "resources"))

    with pytest.raises(SourceRootNotFoundError) as exc_info:
        install_plugin(ctx, "writer", ["sample-agent"], "global", catalog=catalog)

    candidates = exc_info.value.candidates
    assert candidates[0] == str(repo)
    assert str(tmp_path / "app" / "Skill-Box") in candidates
    assert str(tmp_path / "Skill-Box") in candidates
    assert str(tmp_path / "resources" / "Skill-Box") in candidates
    assert str(tmp_path / "resources" / "_up_" / "Skill-Box") in candidates
    assert history.entries[-1].status == "failed"


def test_install_local_skill_stamps_local_directory_source(tmp_path: Path):
    source = tmp_path / "mine" / "notes"
    source.mkdir(parents=True)
    (source / "SKILL.md").write_text("---\nname: Notes\ndescription: Take notes\n---\n", encoding="utf-8")
    global_root = tmp_path / "home" / "skills"
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", global_root)], history)

    report = install_local_skill(ctx, source, ["sample-agent"], "global")

    assert report.success is True
    stamp = json.loads((global_root / "notes" / ".metadata.json").read_text(encoding="utf-8"))
    assert stamp["source_type"] == "LocalDirectory"
    assert history.entries[0].plugin_name == "notes"
    assert history.entries[0].skills_installed == ["notes"]


def test_install_local_skill_rejects_directory_without_marker(tmp_path: Path):
    source = tmp_path / "not-a-skill"
    source.mkdir()
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", tmp_path / "home")], history)

    with pytest.raises(InvalidSkillSourceError):
        install_local_skill(ctx, source, ["sample-agent"], "global")

    assert history.entries[0].status == "failed"


def test_copy_tree_overwrites_but_keeps_extra_destination_files(tmp_path: Path):
    source = tmp_path / "src"
    (source / "sub").mkdir(parents=True)
    (source / "SKILL.md").write_text("new", encoding="utf-8")
    (source / "sub" / "a.txt").write_text("a", encoding="utf-8")
    destination = tmp_path / "dst"
    destination.mkdir()
    (destination / "SKILL.md").write_text("old", encoding="utf-8")
    (destination / "local-notes.txt").write_text("keep me", encoding="utf-8")

    copy_tree(source, destination)

    assert (destination / "SKILL.md").read_text(encoding="utf-8") == "new"
    assert (destination / "sub" / "a.txt").read_text(encoding="utf-8") == "a"
    assert (destination / "local-notes.txt").read_text(encoding="utf-8") == "keep me"


def test_reinstall_is_idempotent(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    global_root = tmp_path / "home" / "skills"
    history = RecordingHistory()
    ctx = _context(tmp_path, [_agent("sample-agent", global_root)], history, repo)

    install_plugin(ctx, "writer", ["sample-agent"], "global")
    report = install_plugin(ctx, "writer", ["sample-agent"], "global")

    assert report.success is True
    assert sorted(path.name for path in (global_root / "writer").iterdir()) == [
        ".metadata.json",
        "SKILL.md",
        "references",
    ]
    assert len(history.entries) == 2


def test_uninstall_removes_agent_copies_and_records_history(tmp_path: Path):
    repo = _write_source_repo(tmp_path / "repo")
    history = RecordingHistory()
    ctx = _context(
        tmp_path,
        [_agent("one", tmp_path / "home" / "one"), _agent("two", tmp_path / "home" / "two")],
        history,
        repo,
    )
    install_plugin(ctx, "writer", ["one", "two"], "global")
    record = scan_installed_plugins(ctx, scope="global").plugins[0]

    report = uninstall_skill(ctx, record, ["one"])

    assert report.success is True
    assert not (tmp_path / "home" / "one" / "writer").exists()
    assert (tmp_path / "home" / "two" / "writer").is_dir()
    assert history.entries[-1].operation == "uninstall"
    assert history.entries[-1].agents == ["one"]
