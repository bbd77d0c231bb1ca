from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, Literal

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from mcp_sandbox import git
from mcp_sandbox.config import setup_logging
from mcp_sandbox.diff import collect_diff_insights
from mcp_sandbox.formatting import (
    format_context_summary,
    format_diff_summary,
    format_heuristic_summary,
    format_patch_appendix,
)
from mcp_sandbox.heuristics import evaluate
from mcp_sandbox.models import DiffOptions, HeuristicConfig

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "code-reviewer",
    instructions=(
        "Call collect-context for branch and status, diff-insights for a structured view "
        "of staged or working tree changes, and run-heuristics for review findings."
    ),
)


def _fail(tool: str, exc: Exception) -> ToolError:
    logger.warning("%s failed: %s", tool, exc)
    return ToolError(f"{tool} failed: {exc}")


async def _repo_root(working_directory: str | None) -> Path:
    directory = git.resolve_working_directory(working_directory)
    return await git.resolve_repo_root(directory)


async def _tool_version(label: str, cmd: list[str]) -> tuple[str, str]:
    try:
        output = (await git.run_command(cmd)).strip()
        if output:
            return label, output.splitlines()[0]
    except git.CommandError as exc:
        return label, f"unavailable ({exc})"
    return label, "unavailable"


# parameter names are the published tool argument names
@mcp.tool(name="collect-context")
async def collect_context(
    workingDirectory: str | None = None,
    includeGitStatus: bool = True,
    includeRecentCommits: bool = False,
    recentCommitLimit: Annotated[int, Field(ge=1, le=git.MAX_COMMIT_LIMIT)] = 5,
) -> dict:
    """
    Describe the repository around a working directory.

    Returns the repository root plus, on request, the branch/status breakdown
    and the most recent commits.
    """
    try:
        root = await _repo_root(workingDirectory)
        status = await git.read_status(root) if includeGitStatus else None
        commits = (
            await git.read_history(root, recentCommitLimit) if includeRecentCommits else None
        )
    except (git.ReviewerError, ValueError) as exc:
        raise _fail("collect-context", exc) from exc

    payload: dict[str, object] = {"repository_root": str(root)}
    if status is not None:
        payload["status"] = status.model_dump(mode="json")
    if commits is not None:
        payload["recent_commits"] = [c.model_dump(mode="json") for c in commits]
    payload["summary"] = format_context_summary(str(root), status, commits)
    return payload


@mcp.tool(name="diff-insights")
async def diff_insights(
    workingDirectory: str | None = None,
    source: Literal["staged", "working"] = "staged",
    paths: list[str] | None = None,
    includePatch: bool = False,
    maxPatchLines: Annotated[int, Field(ge=10, le=2000)] = 400,
) -> dict:
    """
    Summarize staged or working tree changes per file.

    Each file carries its change type, line counts (null for binary files) and
    the previous path for renames. With includePatch, a unified diff excerpt
    of at most maxPatchLines lines is attached to each file.
    """
    options = DiffOptions(
        source=source,
        paths=paths or [],
        include_patch=includePatch,
        max_patch_lines=maxPatchLines,
    )
    try:
        root = await _repo_root(workingDirectory)
        insights = await collect_diff_insights(root, options)
    except (git.ReviewerError, ValueError) as exc:
        raise _fail("diff-insights", exc) from exc

    summary = format_diff_summary(insights)
    if includePatch:
        appendix = format_patch_appendix(insights)
        if appendix:
            summary = f"{summary}\n\n{appendix}"
    return {**insights.model_dump(mode="json"), "summary": summary}


@mcp.tool(name="run-heuristics")
async def run_heuristics(
    workingDirectory: str | None = None,
    source: Literal["staged", "working"] = "staged",
    paths: list[str] | None = None,
    largeFileThreshold: Annotated[int, Field(ge=50, le=5000)] = 400,
    requireTestsForCode: bool = True,
    includePatchContextLines: Annotated[int, Field(ge=50, le=2000)] = 400,
    warnOnConfigChanges: bool = True,
) -> dict:
    """
    Run review heuristics over staged or working tree changes.

    Flags large files, code changes without tests, configuration edits and
    binary files, and suggests next steps. Patch excerpts of large files are
    appended to the summary, capped at includePatchContextLines lines each.
    """
    options = DiffOptions(
        source=source,
        paths=paths or [],
        include_patch=True,
        max_patch_lines=includePatchContextLines,
    )
    config = HeuristicConfig(
        large_file_threshold=largeFileThreshold,
        require_tests_for_code=requireTestsForCode,
        warn_on_config_changes=warnOnConfigChanges,
    )
    try:
        root = await _repo_root(workingDirectory)
        insights = await collect_diff_insights(root, options)
    except (git.ReviewerError, ValueError) as exc:
        raise _fail("run-heuristics", exc) from exc

    report = evaluate(insights, config)
    summary = format_heuristic_summary(report)
    large = next((f for f in report.findings if f.id == "large-files"), None)
    if large is not None:
        appendix = format_patch_appendix(insights, set(large.affected_files))
        if appendix:
            summary = f"{summary}\n\nLarge file excerpts:\n{appendix}"
    return {**report.model_dump(mode="json"), "summary": summary}


@mcp.tool(name="server-info")
async def server_info() -> dict:
    """
    Return basic environment and tool version info for debugging.
    """
    versions = dict(
        [
            ("python", sys.version.splitlines()[0]),
            await _tool_version("git", ["git", "--version"]),
        ]
    )
    return {
        "cwd": str(Path.cwd()),
        "versions": versions,
        "notes": "Useful for diagnosing a missing git executable or a mismatched environment.",
    }


def main() -> None:
    setup_logging()
    logger.info("Starting code-reviewer MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
