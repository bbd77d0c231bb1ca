from __future__ import annotations

import fnmatch
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

from mcp_sandbox.git import run_git, unquote_path
from mcp_sandbox.models import DiffFileChange, DiffInsights, DiffOptions, DiffSource

logger = logging.getLogger(__name__)

PATCH_CONTEXT_LINES = 3
PATCH_HEADER_PREFIX = "diff --git "

GLOB_CHARS = ("*", "?", "[")

_QUOTED_PATH = r'"(?:[^"\\]|\\.)*"'
_HEADER_RE = re.compile(
    rf"^diff --git (?P<old>{_QUOTED_PATH}|a/.*?) (?P<new>{_QUOTED_PATH}|b/.+)$"
)


@dataclass
class NameStatusEntry:
    path: str
    change_type: str
    previous_path: str | None = None


@dataclass
class NumstatEntry:
    path: str
    additions: int | None
    deletions: int | None
    previous_path: str | None = None


@dataclass
class PatchSegment:
    old_path: str
    new_path: str
    text: str


def normalize_path(path: str) -> str:
    return posixpath.normpath(path.replace("\\", "/"))


def _base_command(source: DiffSource) -> list[str]:
    cmd = ["diff"]
    if source == "staged":
        cmd.append("--cached")
    return cmd


def _scoped(cmd: list[str], paths: list[str]) -> list[str]:
    if paths:
        return [*cmd, "--", *paths]
    return cmd


def parse_name_status(output: str) -> dict[str, NameStatusEntry]:
    """Parse ``git diff --name-status`` output, keyed by normalized path."""
    entries: dict[str, NameStatusEntry] = {}
    for line in output.splitlines():
        fields = line.split("\t")
        if len(fields) < 2 or not fields[0]:
            continue
        change_type = fields[0][0]
        if change_type in ("R", "C") and len(fields) >= 3:
            entry = NameStatusEntry(
                path=unquote_path(fields[2]),
                change_type=change_type,
                previous_path=unquote_path(fields[1]),
            )
        else:
            entry = NameStatusEntry(path=unquote_path(fields[1]), change_type=change_type)
        entries[normalize_path(entry.path)] = entry
    return entries


def _expand_rename(path: str) -> tuple[str | None, str]:
    # numstat prints renames as "old => new" or "dir/{old => new}/file"
    if " => " not in path:
        return None, path
    if "{" in path and "}" in path:
        prefix, rest = path.split("{", 1)
        inner, suffix = rest.split("}", 1)
        old_inner, new_inner = inner.split(" => ", 1)
        old = (prefix + old_inner + suffix).replace("//", "/")
        new = (prefix + new_inner + suffix).replace("//", "/")
        return old, new
    old, new = path.split(" => ", 1)
    return old, new


def _parse_count(value: str) -> int | None:
    if value == "-":
        return None
    return int(value)


def parse_numstat(output: str) -> dict[str, NumstatEntry]:
    """Parse ``git diff --numstat`` output, keyed by normalized path."""
    entries: dict[str, NumstatEntry] = {}
    for line in output.splitlines():
        fields = line.split("\t", 2)
        if len(fields) != 3:
            continue
        added, deleted, raw_path = fields
        try:
            additions = _parse_count(added)
            deletions = _parse_count(deleted)
        except ValueError:
            logger.debug("Skipping malformed numstat line: %r", line)
            continue
        previous_path, path = _expand_rename(unquote_path(raw_path))
        path = unquote_path(path)
        if previous_path is not None:
            previous_path = unquote_path(previous_path)
        entries[normalize_path(path)] = NumstatEntry(
            path=path, additions=additions, deletions=deletions, previous_path=previous_path
        )
    return entries


def infer_change_type(additions: int | None, deletions: int | None) -> str:
    """Last-resort change type when name-status has no entry for a path."""
    if additions == 0 and deletions == 0:
        return "M"
    if additions is not None and deletions is None:
        return "A"
    return "M"


def _matches_filter(path: str, filters: list[str]) -> bool:
    """Mirror git pathspec scoping: exact path, directory prefix or glob."""
    for raw in filters:
        if raw.startswith(":"):
            # magic pathspecs were already applied by git
            return True
        wanted = normalize_path(raw)
        if wanted == ".":
            return True
        if path == wanted or path.startswith(wanted.rstrip("/") + "/"):
            return True
        if any(char in wanted for char in GLOB_CHARS) and fnmatch.fnmatchcase(path, wanted):
            return True
    return False


def merge_diff_entries(
    name_status: dict[str, NameStatusEntry],
    numstat: dict[str, NumstatEntry],
    paths: list[str] | None = None,
) -> list[DiffFileChange]:
    """
    Correlate name-status and numstat results into one record per path.

    Name-status supplies the change type and previous path whenever it has
    the path. Paths only reported by name-status get zero counts and are
    flagged binary.
    """
    merged: dict[str, DiffFileChange] = {}
    for key, stat in numstat.items():
        reported = name_status.get(key)
        if reported is not None:
            change_type = reported.change_type
            previous_path = reported.previous_path
        else:
            change_type = infer_change_type(stat.additions, stat.deletions)
            previous_path = stat.previous_path
        merged[key] = DiffFileChange(
            path=key,
            change_type=change_type,
            additions=stat.additions,
            deletions=stat.deletions,
            is_binary=stat.additions is None or stat.deletions is None,
            previous_path=normalize_path(previous_path) if previous_path else None,
        )

    for key, reported in name_status.items():
        if key in merged:
            continue
        merged[key] = DiffFileChange(
            path=key,
            change_type=reported.change_type,
            additions=0,
            deletions=0,
            is_binary=True,
            previous_path=normalize_path(reported.previous_path) if reported.previous_path else None,
        )

    files = list(merged.values())
    if paths:
        files = [f for f in files if _matches_filter(f.path, paths)]
    return sorted(files, key=lambda f: f.path)


def _strip_side_prefix(raw: str) -> str:
    path = unquote_path(raw)
    return path[2:] if path[:2] in ("a/", "b/") else path


def parse_patch_header(line: str) -> tuple[str, str] | None:
    """Return ``(old_path, new_path)`` from a ``diff --git`` header line."""
    match = _HEADER_RE.match(line)
    if match is None:
        return None
    return _strip_side_prefix(match.group("old")), _strip_side_prefix(match.group("new"))


def split_patch(text: str) -> list[PatchSegment]:
    """
    Split a unified diff into one segment per ``diff --git`` header.

    Lines before the first header are ignored; the last segment is flushed at
    end of input whether or not it looks complete.
    """
    segments: list[PatchSegment] = []
    current: list[str] = []
    header: tuple[str, str] | None = None

    def flush() -> None:
        if header is not None and current:
            segments.append(
                PatchSegment(old_path=header[0], new_path=header[1], text="\n".join(current))
            )

    for line in text.splitlines():
        if line.startswith(PATCH_HEADER_PREFIX):
            flush()
            current = [line]
            header = parse_patch_header(line)
            continue
        if header is not None:
            current.append(line)
    flush()
    return segments


def truncate_patch(text: str, max_lines: int) -> str:
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    omitted = len(lines) - max_lines
    return "\n".join(lines[:max_lines]) + f"\n[patch truncated: {omitted} more lines]"


def attach_patches(files: list[DiffFileChange], patch_text: str, max_lines: int) -> None:
    by_path: dict[str, DiffFileChange] = {f.path: f for f in files}
    by_previous: dict[str, DiffFileChange] = {
        f.previous_path: f for f in files if f.previous_path
    }

    for segment in split_patch(patch_text):
        record = None
        for candidate in (normalize_path(segment.new_path), normalize_path(segment.old_path)):
            record = by_path.get(candidate) or by_previous.get(candidate)
            if record is not None:
                break
        if record is None:
            logger.debug("No diff record for patch segment %s", segment.new_path)
            continue
        record.patch = truncate_patch(segment.text, max_lines)


async def collect_diff_insights(root: Path, options: DiffOptions) -> DiffInsights:
    base = _base_command(options.source)

    name_status_raw = await run_git(
        _scoped([*base, "--name-status", "--find-renames"], options.paths), cwd=root
    )
    numstat_raw = await run_git(
        _scoped([*base, "--numstat", "--find-renames"], options.paths), cwd=root
    )
    files = merge_diff_entries(
        parse_name_status(name_status_raw), parse_numstat(numstat_raw), options.paths
    )

    if options.include_patch:
        patch_raw = await run_git(
            _scoped(
                [*base, "--find-renames", f"--unified={PATCH_CONTEXT_LINES}", "--no-color"],
                options.paths,
            ),
            cwd=root,
        )
        attach_patches(files, patch_raw, options.max_patch_lines)

    logger.debug("Collected %d changed files from %s (%s)", len(files), root, options.source)
    return DiffInsights(repository_root=str(root), source=options.source, files=files)
