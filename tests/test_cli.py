import logging

import pytest

import bumpkit.cli as cli_module
from bumpkit.bumper import VersionBumper
from bumpkit.commit import CommitGenerator
from bumpkit.logger import ROOT_LOGGER


@pytest.fixture(autouse=True)
def _drop_log_handlers():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def scripted(monkeypatch, make_llm):
    """Route the CLI's generators through a scripted LLM."""

    def _script(*responses):
        def _commit_generator(config, debug=False):
            return CommitGenerator(config=config, llm_client=make_llm(*responses, cfg=config))

        def _version_bumper(config, debug=False):
            return VersionBumper(config=config, llm_client=make_llm(*responses, cfg=config))

        monkeypatch.setattr(cli_module, "CommitGenerator", _commit_generator)
        monkeypatch.setattr(cli_module, "VersionBumper", _version_bumper)

    return _script


def _cli(*answers):
    queue = list(answers)

    def _input(prompt):
        if not queue:
            raise EOFError
        return queue.pop(0)

    return cli_module.CLI(input_func=_input)


def test_cli_help_returns_zero():
    assert cli_module.CLI().run(["--help"]) == 0


def test_cli_without_command_prints_help(capsys):
    assert cli_module.CLI().run([]) == 1
    assert "usage: bumpkit" in capsys.readouterr().out


def test_cli_rejects_unknown_bump():
    assert cli_module.CLI().run(["version", "--bump", "huge"]) == 2


def test_commit_without_changes(git_repo, commit, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    scripted()
    assert _cli().run(["--repo", str(git_repo), "commit"]) == 0
    assert "No changes to process." in capsys.readouterr().out


def test_commit_dry_run(git_repo, commit, git, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    (git_repo / "a.txt").write_text("b")
    scripted("change a", "fix(core): change a")

    assert _cli().run(["--repo", str(git_repo), "commit", "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "Message: fix(core): change a" in out
    assert git("log", "-1", "--format=%s") == "chore: init"


def test_commit_yes(git_repo, commit, git, scripted):
    commit("a.txt", "a", "chore: init")
    (git_repo / "a.txt").write_text("b")
    scripted("change a", "fix(core): change a")

    assert _cli().run(["--repo", str(git_repo), "commit", "--yes"]) == 0
    assert git("log", "-1", "--format=%s") == "fix(core): change a"


def test_interactive_edit_then_commit(git_repo, commit, git, scripted):
    commit("a.txt", "a", "chore: init")
    (git_repo / "a.txt").write_text("b")
    scripted("change a", "fix(core): change a")

    cli = _cli("e", "docs: describe a", "c")
    assert cli.run(["--repo", str(git_repo), "commit"]) == 0
    assert git("log", "-1", "--format=%s") == "docs: describe a"


def test_interactive_quit_leaves_tree_alone(git_repo, commit, git, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    (git_repo / "a.txt").write_text("b")
    scripted("change a", "fix(core): change a")

    assert _cli("q").run(["--repo", str(git_repo), "commit"]) == 0
    assert "Nothing committed." in capsys.readouterr().out
    assert git("log", "-1", "--format=%s") == "chore: init"


def test_generation_failure_exits_one(git_repo, commit, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    (git_repo / "a.txt").write_text("b")
    scripted("change a", "nope", "nope", "nope")

    assert _cli().run(["--repo", str(git_repo), "commit", "--yes"]) == 1
    err = capsys.readouterr().err
    assert "Error: llm_gen_failed" in err


def test_invalid_config_exits_one(git_repo, capsys):
    (git_repo / ".bumpkit.yaml").write_text("llm:\n  provider: mystery\n")
    assert _cli().run(["--repo", str(git_repo), "commit"]) == 1
    assert "config_error" in capsys.readouterr().err


def test_version_bump_yes(git_repo, commit, git, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    git("tag", "v1.0.0")
    scripted()

    rc = _cli().run(["--repo", str(git_repo), "version", "--bump", "minor", "--yes"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "Current version:  1.0.0" in out
    assert "Proposed version: 1.1.0" in out
    assert "v1.1.0" in git("tag", "--list").split("\n")


def test_version_from_model_declined(git_repo, commit, git, scripted, capsys):
    commit("a.txt", "a", "chore: init")
    git("tag", "v1.0.0")
    commit("b.txt", "b", "feat: add b")
    scripted("minor:beta1")

    assert _cli("n").run(["--repo", str(git_repo), "version"]) == 0
    out = capsys.readouterr().out
    assert "Proposed version: 1.1.0-beta1" in out
    assert "Version unchanged." in out
    assert git("tag", "--list") == "v1.0.0"


def test_version_dry_run(git_repo, commit, git, scripted):
    commit("a.txt", "a", "chore: init")
    git("tag", "v1.0.0")
    scripted()

    rc = _cli().run(["--repo", str(git_repo), "version", "--pre", "rc1", "--dry-run"])
    assert rc == 0
    assert git("tag", "--list") == "v1.0.0"
