from __future__ import annotations

from mcp_sandbox.models import CommitRecord, DiffInsights, HeuristicReport, RepoStatus

SOURCE_LABELS = {"staged": "staged changes", "working": "working tree changes"}


def _format_counts(additions: int | None, deletions: int | None, is_binary: bool) -> str:
    if is_binary:
        return "binary"
    return f"+{additions or 0}/-{deletions or 0}"


def format_status(status: RepoStatus) -> list[str]:
    lines: list[str] = []
    branch = status.branch or "(detached HEAD)"
    tracking = f" tracking {status.upstream}" if status.upstream else ""
    lines.append(f"Branch: {branch}{tracking}")
    if status.ahead or status.behind:
        lines.append(f"Ahead: {status.ahead or 0}, behind: {status.behind or 0}")
    if status.is_clean:
        lines.append("Working tree clean.")
        return lines

    for label, entries in (("Staged", status.staged), ("Unstaged", status.unstaged)):
        if entries:
            lines.append(f"{label} ({len(entries)}):")
            lines.extend(f"  {entry.status} {entry.path}" for entry in entries)
    if status.untracked:
        lines.append(f"Untracked ({len(status.untracked)}):")
        lines.extend(f"  {path}" for path in status.untracked)
    if status.conflicts:
        lines.append(f"Conflicts ({len(status.conflicts)}):")
        lines.extend(f"  {c.detail} {c.path}" for c in status.conflicts)
    return lines


def format_context_summary(
    repository_root: str,
    status: RepoStatus | None = None,
    commits: list[CommitRecord] | None = None,
) -> str:
    lines = [f"Repository: {repository_root}"]
    if status is not None:
        lines.extend(format_status(status))
    if commits is not None:
        lines.append(f"Recent commits ({len(commits)}):")
        for commit in commits:
            lines.append(
                f"  {commit.hash[:7]} {commit.summary} ({commit.author}, {commit.relative_date})"
            )
    return "\n".join(lines)


def format_diff_summary(insights: DiffInsights) -> str:
    label = SOURCE_LABELS.get(insights.source, insights.source)
    if not insights.files:
        return f"No {label} in {insights.repository_root}."

    lines = [
        f"{insights.file_count} file(s) with {label} in {insights.repository_root}: "
        f"+{insights.total_additions}/-{insights.total_deletions}",
    ]
    for change in insights.files:
        renamed = f" (from {change.previous_path})" if change.previous_path else ""
        counts = _format_counts(change.additions, change.deletions, change.is_binary)
        lines.append(f"  {change.change_type} {change.path}{renamed} [{counts}]")
    return "\n".join(lines)


def format_patch_appendix(insights: DiffInsights, paths: set[str] | None = None) -> str:
    sections: list[str] = []
    for change in insights.files:
        if change.patch is None:
            continue
        if paths is not None and change.path not in paths:
            continue
        sections.append(f"--- {change.path} ---\n{change.patch}")
    return "\n\n".join(sections)


def format_heuristic_summary(report: HeuristicReport) -> str:
    metrics = report.metrics
    lines = [
        f"Files: {metrics.file_count} (code {metrics.code_files}, tests {metrics.test_files}, "
        f"binary {metrics.binary_files}, large {metrics.large_files})",
        f"Churn: +{metrics.total_additions}/-{metrics.total_deletions}",
    ]
    if report.findings:
        lines.append("Findings:")
        for finding in report.findings:
            lines.append(f"  [{finding.severity}] {finding.id} ({finding.category}): {finding.summary}")
            if finding.recommendation:
                lines.append(f"    -> {finding.recommendation}")
    else:
        lines.append("Findings: none")
    if report.suggestions:
        lines.append("Suggestions:")
        lines.extend(f"  - {suggestion}" for suggestion in report.suggestions)
    return "\n".join(lines)
