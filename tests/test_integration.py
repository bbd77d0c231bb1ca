"""End-to-end tests against a real temporary git repository."""

import shutil
import subprocess

import pytest

from mcp_sandbox import git, reviewer
from mcp_sandbox.diff import collect_diff_insights
from mcp_sandbox.heuristics import evaluate
from mcp_sandbox.models import DiffOptions

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo, *args):
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=repo,
        check=True,
        capture_output=True,
    )


@pytest.fixture
def repo(tmp_path):
    _git(tmp_path, "init", "-q")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "old_name.py").write_text("".join(f"line {i}\n" for i in range(20)))
    (tmp_path / "README.md").write_text("# Project\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "Initial commit")
    return tmp_path


class TestRealRepository:
    """Test cases that shell out to git."""

    @pytest.mark.asyncio
    async def test_rename_binary_and_patch(self, repo):
        """Test a staged rename, a binary addition and patch matching."""
        _git(repo, "mv", "src/old_name.py", "src/new_name.py")
        (repo / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00binary")
        (repo / "README.md").write_text("# Project\n\nMore.\n")
        _git(repo, "add", ".")

        root = await git.resolve_repo_root(repo)
        insights = await collect_diff_insights(root, DiffOptions(include_patch=True))
        files = {f.path: f for f in insights.files}

        assert sorted(files) == ["README.md", "logo.png", "src/new_name.py"]
        renamed = files["src/new_name.py"]
        assert renamed.change_type == "R"
        assert renamed.previous_path == "src/old_name.py"
        assert files["logo.png"].is_binary
        assert files["logo.png"].additions is None
        assert files["README.md"].additions == 2
        assert files["README.md"].patch.startswith("diff --git a/README.md b/README.md")
        assert insights.total_additions == 2

    @pytest.mark.asyncio
    async def test_working_tree_and_status(self, repo):
        """Test working tree changes and the context tool."""
        (repo / "README.md").write_text("# Changed\n")
        (repo / "notes.txt").write_text("todo\n")

        insights = await collect_diff_insights(repo, DiffOptions(source="working"))
        context = await reviewer.collect_context(
            workingDirectory=str(repo / "src"), includeRecentCommits=True
        )

        assert [f.path for f in insights.files] == ["README.md"]
        assert context["status"]["unstaged"] == [
            {"status": "M", "path": "README.md", "previous_path": None}
        ]
        assert context["status"]["untracked"] == ["notes.txt"]
        assert context["recent_commits"][0]["summary"] == "Initial commit"

    @pytest.mark.asyncio
    async def test_outside_repository(self, tmp_path_factory):
        """Test that a plain directory is reported as not a repository."""
        plain = tmp_path_factory.mktemp("plain")
        if subprocess.run(["git", "rev-parse"], cwd=plain, capture_output=True).returncode == 0:
            pytest.skip("temporary directory is inside a git repository")

        with pytest.raises(git.CommandError, match="not a git repository"):
            await git.resolve_repo_root(plain)

    @pytest.mark.asyncio
    async def test_non_ascii_file_name(self, repo):
        """Test that a non-ASCII name keeps its path, classification, patch and filter."""
        (repo / "café.py").write_text("print('hi')\n")
        _git(repo, "add", ".")

        insights = await collect_diff_insights(repo, DiffOptions(include_patch=True))
        scoped = await collect_diff_insights(repo, DiffOptions(paths=["café.py"]))
        status = await git.read_status(repo)

        assert [f.path for f in insights.files] == ["café.py"]
        assert insights.files[0].patch is not None
        assert [f.path for f in scoped.files] == ["café.py"]
        assert status.staged[0].path == "café.py"
        assert evaluate(insights).metrics.code_files == 1

    @pytest.mark.asyncio
    async def test_glob_pathspec(self, repo):
        """Test that a glob path scope keeps every file git matched."""
        (repo / "a.py").write_text("a = 1\n")
        (repo / "src" / "b.py").write_text("b = 1\n")
        (repo / "notes.md").write_text("notes\n")
        _git(repo, "add", ".")

        insights = await collect_diff_insights(repo, DiffOptions(paths=["*.py"]))

        assert [f.path for f in insights.files] == ["a.py", "src/b.py"]
