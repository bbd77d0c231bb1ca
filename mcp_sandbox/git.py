from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from pathlib import Path

from mcp_sandbox.config import get_settings
from mcp_sandbox.models import CommitRecord, ConflictEntry, RepoStatus, StatusEntry

logger = logging.getLogger(__name__)

MAX_COMMIT_LIMIT = 20
LOG_FORMAT = "%H%x09%an%x09%ar%x09%s"
UNMERGED_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}
READ_CHUNK_SIZE = 64 * 1024

# paths are printed raw; names with quotes, backslashes or control
# characters are still C-quoted and go through unquote_path
GIT_CONFIG_ARGS = ["-c", "core.quotePath=false"]

_C_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}

_TRACKING_RE = re.compile(r"^(?P<head>.*?)(?: \[(?P<tracking>[^\]]*)\])?$")


class ReviewerError(RuntimeError):
    pass


class PathNotFoundError(ReviewerError):
    pass


class CommandError(ReviewerError):
    pass


async def _read_bounded(process: asyncio.subprocess.Process, limit: int) -> bytes | None:
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await process.stdout.read(READ_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        total += len(chunk)
        if total > limit:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            return None
        chunks.append(chunk)


async def run_command(cmd: list[str], cwd: Path | None = None) -> str:
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CommandError(f"Command failed: {' '.join(cmd)}\n{exc}") from exc

    limit = get_settings().max_output_bytes
    stdout_raw, stderr_raw = await asyncio.gather(
        _read_bounded(process, limit), process.stderr.read()
    )
    await process.wait()
    if stdout_raw is None:
        raise CommandError(f"Command output exceeded {limit} bytes: {' '.join(cmd)}")

    stdout = stdout_raw.decode("utf-8", errors="replace")
    if process.returncode != 0:
        stderr = stderr_raw.decode("utf-8", errors="replace").strip()
        raise CommandError(
            "Command failed: "
            + " ".join(cmd)
            + (f"\nstdout: {stdout.strip()}" if stdout.strip() else "")
            + (f"\nstderr: {stderr}" if stderr else "")
        )
    return stdout


async def run_git(args: list[str], cwd: Path) -> str:
    return await run_command(["git", *GIT_CONFIG_ARGS, *args], cwd=cwd)


def unquote_path(path: str) -> str:
    """
    Undo git's C-style quoting of a path, e.g. ``"caf\\303\\251.py"``.

    Unquoted paths are returned unchanged. Octal escapes are raw bytes of the
    UTF-8 encoded name.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    body = path[1:-1]
    decoded = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            octal = body[i + 1 : i + 4]
            if len(octal) == 3 and octal[0] in "0123" and all(c in "01234567" for c in octal):
                decoded.append(int(octal, 8))
                i += 4
                continue
            escaped = _C_ESCAPES.get(body[i + 1])
            if escaped is not None:
                decoded.append(escaped)
                i += 2
                continue
        decoded.extend(char.encode("utf-8"))
        i += 1
    return decoded.decode("utf-8", errors="replace")


def resolve_working_directory(path: str | None = None) -> Path:
    """
    Turn an optional, possibly relative path into an absolute directory.

    Relative paths are resolved against the process working directory.
    """
    if not path:
        return Path.cwd().resolve()
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    try:
        resolved = candidate.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathNotFoundError(f"Working directory not found: {path}") from exc
    if not resolved.is_dir():
        raise PathNotFoundError(f"Working directory is not a directory: {path}")
    return resolved


async def resolve_repo_root(directory: Path) -> Path:
    try:
        root = (await run_git(["rev-parse", "--show-toplevel"], cwd=directory)).strip()
    except CommandError as exc:
        raise CommandError(f"Path is not a git repository: {directory}\n{exc}") from exc
    if not root:
        raise CommandError(f"Unable to resolve git root for: {directory}")
    return Path(root)


def _parse_branch_line(line: str, status: RepoStatus) -> None:
    match = _TRACKING_RE.match(line[3:].strip())
    if match is None:
        return
    head = match.group("head")
    tracking = match.group("tracking")

    for prefix in ("No commits yet on ", "Initial commit on "):
        if head.startswith(prefix):
            head = head[len(prefix):]
            break

    if head.startswith("HEAD (no branch)") or head == "HEAD":
        return

    if "..." in head:
        branch, upstream = head.split("...", 1)
        status.branch = branch or None
        status.upstream = upstream or None
    else:
        status.branch = head or None

    if tracking:
        for token in tracking.split(","):
            parts = token.strip().split()
            if len(parts) != 2 or not parts[1].isdigit():
                continue
            if parts[0] == "ahead":
                status.ahead = int(parts[1])
            elif parts[0] == "behind":
                status.behind = int(parts[1])


def parse_status(output: str) -> RepoStatus:
    """Parse ``git status --short --branch`` output."""
    status = RepoStatus()
    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith("## "):
            _parse_branch_line(line, status)
            continue
        if line.startswith("?? "):
            status.untracked.append(unquote_path(line[3:]))
            continue
        if len(line) < 4:
            continue

        code = line[:2]
        path = line[3:]
        previous_path = None
        if " -> " in path:
            previous_path, path = path.split(" -> ", 1)
            previous_path = unquote_path(previous_path)
        path = unquote_path(path)

        if "U" in code or code in UNMERGED_CODES:
            status.conflicts.append(ConflictEntry(path=path, detail=code))
            continue

        index_code, worktree_code = code[0], code[1]
        if index_code not in (" ", "?"):
            status.staged.append(
                StatusEntry(status=index_code, path=path, previous_path=previous_path)
            )
        if worktree_code != " ":
            status.unstaged.append(StatusEntry(status=worktree_code, path=path))
    return status


async def read_status(root: Path) -> RepoStatus:
    output = await run_git(["status", "--short", "--branch"], cwd=root)
    return parse_status(output)


def parse_log(output: str) -> list[CommitRecord]:
    commits: list[CommitRecord] = []
    for line in output.splitlines():
        parts = line.split("\t", 3)
        if len(parts) != 4:
            continue
        commit_hash, author, relative_date, summary = parts
        commits.append(
            CommitRecord(
                hash=commit_hash, author=author, relative_date=relative_date, summary=summary
            )
        )
    return commits


async def read_history(root: Path, limit: int = 5) -> list[CommitRecord]:
    if not 1 <= limit <= MAX_COMMIT_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_COMMIT_LIMIT}, got {limit}")
    output = await run_git(["log", f"-n{limit}", f"--pretty=format:{LOG_FORMAT}"], cwd=root)
    return parse_log(output)
