"""Shared fixtures: a fake git executable keyed on the command being run."""

from pathlib import Path

import pytest

from mcp_sandbox import git


class FakeGit:
    """
    Stands in for ``git.run_command`` and answers by git subcommand.

    Calls are recorded without the shared ``-c`` options so assertions read
    like the git subcommand being run; ``raw_calls`` keeps them.
    """

    def __init__(self, root: Path):
        self.root = root
        self.responses: dict[str, str] = {"rev-parse": f"{root}\n"}
        self.failures: dict[str, str] = {}
        self.calls: list[list[str]] = []
        self.raw_calls: list[list[str]] = []
        self.cwds: list[Path | None] = []

    def respond(self, key: str, output: str) -> None:
        self.responses[key] = output

    def fail(self, key: str, message: str = "fatal: not a git repository") -> None:
        self.failures[key] = message

    @staticmethod
    def key(cmd: list[str]) -> str:
        args = cmd[1:]
        if args and args[0] == "diff":
            for flag in ("--name-status", "--numstat"):
                if flag in args:
                    return flag
            return "patch"
        return args[0] if args else ""

    def calls_for(self, key: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if self.key(cmd) == key]

    async def __call__(self, cmd: list[str], cwd: Path | None = None) -> str:
        self.raw_calls.append(cmd)
        self.cwds.append(cwd)
        prefix = ["git", *git.GIT_CONFIG_ARGS]
        if cmd[: len(prefix)] == prefix:
            cmd = ["git", *cmd[len(prefix) :]]
        self.calls.append(cmd)
        key = self.key(cmd)
        if key in self.failures:
            raise git.CommandError(f"Command failed: {' '.join(cmd)}\nstderr: {self.failures[key]}")
        return self.responses.get(key, "")


@pytest.fixture
def fake_git(monkeypatch, tmp_path):
    fake = FakeGit(tmp_path)
    monkeypatch.setattr(git, "run_command", fake)
    return fake
