import subprocess
from collections.abc import Generator
from pathlib import Path
from typing import Callable, List

import pytest

from bumpkit.config import Config, clear_active_config
from bumpkit.llm import LLMClient
from bumpkit.providers.base import BaseDriver
from bumpkit.providers.ratelimit import clear_shared_budgets


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    for name in (
        "BUMPKIT_LLM_PROVIDER",
        "BUMPKIT_LLM_MODEL",
        "BUMPKIT_LLM_BASE_URL",
        "BUMPKIT_MAX_RETRIES",
        "BUMPKIT_LLM_REQUEST_TIMEOUT",
        "BUMPKIT_LOG_LEVEL",
        "BUMPKIT_REPO_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    clear_active_config()
    clear_shared_budgets()
    yield
    clear_active_config()
    clear_shared_budgets()


def run_git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A throwaway repository on branch ``main`` with no commits."""
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git(repo, "init", "-q")
    run_git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    run_git(repo, "config", "user.name", "Test User")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "commit.gpgsign", "false")
    run_git(repo, "config", "tag.gpgsign", "false")
    return repo


def commit_file(repo: Path, name: str, content: str, message: str) -> None:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    run_git(repo, "add", name)
    run_git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def git(git_repo: Path) -> Callable[..., str]:
    """Run a git command inside ``git_repo``."""
    return lambda *args: run_git(git_repo, *args)


@pytest.fixture
def commit(git_repo: Path) -> Callable[[str, str, str], None]:
    """Write ``name`` with ``content`` and commit it with ``message``."""
    return lambda name, content, message: commit_file(git_repo, name, content, message)


@pytest.fixture
def config(git_repo: Path) -> Config:
    cfg = Config(repo_path=str(git_repo))
    cfg.git.include_gitignore = True
    return cfg


class ScriptedDriver(BaseDriver):
    """Driver returning canned answers and recording every exchange."""

    def __init__(self, responses: List[str], config=None) -> None:
        super().__init__(config)
        self.responses = list(responses)
        self.calls: List[dict] = []

    def generate(self, system_prompt, user_prompt, functions, ctx):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "function": functions[0].name if functions else None,
            }
        )
        if not self.responses:
            raise AssertionError("unexpected LLM call")
        answer = self.responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def calls_for(self, name: str) -> List[dict]:
        return [call for call in self.calls if call["function"] == name]


@pytest.fixture
def make_llm(config: Config) -> Callable[..., LLMClient]:
    def _make(*responses, cfg: Config = None) -> LLMClient:
        driver = ScriptedDriver(list(responses))
        return LLMClient(cfg or config, driver=driver)

    return _make
