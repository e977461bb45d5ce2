"""Command-line interface for bumpkit."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, List, Optional

from . import __version__
from .bumper import VersionBumper
from .commit import CommitGenerator, CommitWorkflowState
from .config import Config, load_config
from .context import Context
from .exceptions import BumpkitError, InputError, NoChangesError, ValidationError
from .git import find_git_repo_root
from .logger import setup_logging

BUMP_CHOICES = ("major", "minor", "patch", "none")


class CLI:
    """Argument parsing plus the interactive commit and version loops."""

    def __init__(self, input_func: Callable[[str], str] = input) -> None:
        self._input = input_func
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="bumpkit",
            description="LLM-assisted Conventional Commits and semantic version bumps",
        )
        parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
        parser.add_argument("--repo", help="Path to the Git repository (default: current)")
        parser.add_argument("--config", help="Configuration file (default: <repo>/.bumpkit.yaml)")
        parser.add_argument("--model", help="LLM model name")
        parser.add_argument("--base-url", help="OpenAI-compatible API base URL")
        parser.add_argument("--max-retries", type=int, help="Commit message attempts")
        parser.add_argument("--debug", action="store_true", help="Enable debug logging")

        sub = parser.add_subparsers(dest="command")

        commit = sub.add_parser("commit", help="Generate and create a commit")
        commit.add_argument("--yes", "-y", action="store_true", help="Commit without asking")
        commit.add_argument(
            "--dry-run", action="store_true", help="Only print the generated message"
        )

        version = sub.add_parser("version", help="Propose and apply a version bump")
        version.add_argument("--bump", choices=BUMP_CHOICES, help="Bump kind to apply")
        version.add_argument("--pre", default="", help="Pre-release, e.g. alpha1, beta2, rc1")
        version.add_argument("--yes", "-y", action="store_true", help="Apply without asking")
        version.add_argument(
            "--dry-run", action="store_true", help="Only print the proposed version"
        )
        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        try:
            parsed = self.parser.parse_args(args)
        except SystemExit as exc:
            return int(exc.code or 0)

        if not parsed.command:
            self.parser.print_help()
            return 1

        ctx = Context()
        try:
            config = self._load_config(parsed)
            setup_logging(config.logging, "debug" if parsed.debug else None)
            if parsed.command == "commit":
                return self._run_commit(parsed, config, ctx)
            if parsed.command == "version":
                return self._run_version(parsed, config, ctx)
            raise InputError(f"unknown command '{parsed.command}'")
        except NoChangesError:
            print("No changes to process.")
            return 0
        except BumpkitError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            ctx.cancel()
            print("Aborted.", file=sys.stderr)
            return 130

    def _load_config(self, parsed: argparse.Namespace) -> Config:
        if parsed.repo:
            repo_root = Path(parsed.repo)
        else:
            repo_root = find_git_repo_root() or Path.cwd()
        overrides = {
            "model": parsed.model,
            "base_url": parsed.base_url,
            "max_retries": parsed.max_retries,
        }
        return load_config(
            repo_root=repo_root,
            config_file=Path(parsed.config) if parsed.config else None,
            overrides={k: v for k, v in overrides.items() if v is not None},
        )

    def _ask(self, prompt: str) -> str:
        try:
            return self._input(prompt).strip()
        except EOFError:
            return ""

    @staticmethod
    def _print_state(state: CommitWorkflowState) -> None:
        print("Files:")
        for path in state.files:
            print(f"  {path}")
        print()
        print(f"Message: {state.message}")
        if state.last_error:
            print(f"Problem: {state.last_error}")

    def _run_commit(self, parsed: argparse.Namespace, config: Config, ctx: Context) -> int:
        generator = CommitGenerator(config=config, debug=parsed.debug)
        generator.generate_commit_message(ctx)
        state = generator.get_workflow_state(ctx)
        self._print_state(state)

        if parsed.dry_run:
            return 0
        if parsed.yes:
            message = generator.commit(ctx)
            print(f"Committed: {message}")
            return 0

        while True:
            choice = self._ask("[c]ommit, [e]dit, [r]egenerate, [q]uit: ").lower()
            if choice in ("c", "commit"):
                try:
                    message = generator.commit(ctx)
                except ValidationError as exc:
                    print(f"Cannot commit: {exc}")
                    continue
                print(f"Committed: {message}")
                return 0
            if choice in ("e", "edit"):
                text = self._ask("New message: ")
                if not text:
                    continue
                generator.set_manual_message(text)
                state = generator.get_workflow_state(ctx)
                self._print_state(state)
            elif choice in ("r", "regenerate"):
                generator.clear_manual_message()
                state = generator.regenerate(ctx)
                self._print_state(state)
            elif choice in ("q", "quit", ""):
                print("Nothing committed.")
                return 0
            else:
                print(f"Unknown choice '{choice}'")

    def _run_version(self, parsed: argparse.Namespace, config: Config, ctx: Context) -> int:
        bumper = VersionBumper(config=config, debug=parsed.debug)
        if parsed.bump or parsed.pre:
            bumper.propose_version_change(parsed.bump or "none", parsed.pre)
        else:
            bumper.analyze_version_change(ctx)
        state = bumper.get_workflow_state()

        print(f"Current version:  {state.current}")
        print(f"Proposed version: {state.proposed}")
        actions = []
        if state.files and not state.has_commit:
            actions.append("update " + ", ".join(state.files))
        if state.needs_commit:
            actions.append("commit" + (" (signed)" if state.sign else ""))
        if state.needs_tag:
            actions.append(f"tag v{state.proposed}" + (" (signed)" if state.sign else ""))
        print("Actions: " + ("; ".join(actions) if actions else "none"))

        if parsed.dry_run or not actions:
            return 0
        if not parsed.yes:
            answer = self._ask("Apply version change? [y/N]: ").lower()
            if answer not in ("y", "yes"):
                bumper.clear_proposed_version()
                print("Version unchanged.")
                return 0
        bumper.apply_version_change(ctx)
        print(f"Version {state.proposed} applied.")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    return CLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
