from __future__ import annotations

import logging
import posixpath
import re

from mcp_sandbox.models import (
    DiffFileChange,
    DiffInsights,
    HeuristicConfig,
    HeuristicMetrics,
    HeuristicReport,
    ReviewFinding,
)

logger = logging.getLogger(__name__)

CODE_EXTENSIONS = {
    ".c",
    ".cc",
    ".cjs",
    ".cpp",
    ".cs",
    ".dart",
    ".go",
    ".h",
    ".hpp",
    ".java",
    ".js",
    ".jsx",
    ".kt",
    ".kts",
    ".m",
    ".mjs",
    ".php",
    ".py",
    ".rb",
    ".rs",
    ".scala",
    ".sh",
    ".svelte",
    ".swift",
    ".ts",
    ".tsx",
    ".vue",
}

TEST_DIRECTORIES = {"test", "tests", "__tests__"}
_TEST_NAME_RE = re.compile(r"(?:[._-](?:test|spec)\.[^.]+$)|(?:^test_[^/]+\.py$)")

CONFIG_FILENAMES = {
    "package.json",
    "package-lock.json",
    "pnpm-lock.yaml",
    "pnpm-workspace.yaml",
    "yarn.lock",
    "tsconfig.json",
    "angular.json",
    ".eslintrc",
    ".eslintrc.json",
    ".prettierrc",
    ".babelrc",
    "babel.config.json",
    "jest.config.js",
    "vitest.config.ts",
    "pyproject.toml",
    "requirements.txt",
    "requirements-dev.txt",
    "ruff.toml",
    "mypy.ini",
    "Pipfile",
    "Pipfile.lock",
    "poetry.lock",
    "uv.lock",
    "setup.cfg",
    "setup.py",
    "tox.ini",
    "pytest.ini",
    "go.mod",
    "go.sum",
    "Cargo.toml",
    "Cargo.lock",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "settings.gradle",
    "settings.gradle.kts",
    "composer.json",
    "composer.lock",
    "Gemfile",
    "Gemfile.lock",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    "Makefile",
    ".gitlab-ci.yml",
    "azure-pipelines.yml",
}
CONFIG_DIRECTORIES = {"config", "configs", "infrastructure"}
WORKFLOW_DIRECTORIES = (".github/workflows/", ".circleci/")


def _directories(path: str) -> list[str]:
    return path.split("/")[:-1]


def is_test_file(path: str) -> bool:
    if any(part in TEST_DIRECTORIES for part in _directories(path)):
        return True
    return bool(_TEST_NAME_RE.search(posixpath.basename(path)))


def is_code_file(path: str) -> bool:
    _, ext = posixpath.splitext(path)
    return ext.lower() in CODE_EXTENSIONS and not is_test_file(path)


def is_config_file(path: str) -> bool:
    name = posixpath.basename(path)
    if name in CONFIG_FILENAMES:
        return True
    if name == ".env" or name.startswith(".env.") or name.endswith(".env"):
        return True
    if any(path.startswith(prefix) or f"/{prefix}" in path for prefix in WORKFLOW_DIRECTORIES):
        return True
    return any(part in CONFIG_DIRECTORIES for part in _directories(path))


def is_large_file(change: DiffFileChange, threshold: int) -> bool:
    return not change.is_binary and change.churn >= threshold


def _large_files_finding(files: list[DiffFileChange], threshold: int) -> ReviewFinding:
    lines = [f"- {f.path}: {f.churn} lines changed (+{f.additions}/-{f.deletions})" for f in files]
    return ReviewFinding(
        id="large-files",
        category="risk",
        severity="warn",
        summary=f"{len(files)} file(s) changed by at least {threshold} lines.",
        details="\n".join(lines),
        affected_files=[f.path for f in files],
        recommendation="Review large changes carefully or split them into smaller commits.",
    )


def _missing_tests_finding(code_files: list[DiffFileChange]) -> ReviewFinding:
    return ReviewFinding(
        id="missing-tests",
        category="testing",
        severity="warn",
        summary="Code changed without any accompanying test changes.",
        details=f"{len(code_files)} code file(s) changed and no test files were touched.",
        affected_files=[f.path for f in code_files],
        recommendation="Add or update tests that exercise the changed code.",
    )


def _config_edits_finding(config_files: list[DiffFileChange]) -> ReviewFinding:
    return ReviewFinding(
        id="config-edits",
        category="dependencies",
        severity="info",
        summary=f"{len(config_files)} configuration or dependency file(s) changed.",
        details="Configuration, manifest or CI changes can affect builds and deployments.",
        affected_files=[f.path for f in config_files],
        recommendation="Double-check dependency versions, lockfiles and environment settings.",
    )


def _binary_files_finding(binary_files: list[DiffFileChange]) -> ReviewFinding:
    return ReviewFinding(
        id="binary-files",
        category="maintenance",
        severity="info",
        summary=f"{len(binary_files)} binary file(s) changed.",
        details="Binary changes cannot be reviewed line by line and are excluded from churn totals.",
        affected_files=[f.path for f in binary_files],
        recommendation="Confirm binary assets are intended and stored appropriately.",
    )


def _suggestions(insights: DiffInsights, finding_ids: set[str]) -> list[str]:
    if not insights.files:
        if insights.source == "staged":
            return ["No staged changes found. Stage files with `git add` before requesting a review."]
        return ["No working tree changes found. Nothing to review yet."]

    suggestions: list[str] = []
    if "large-files" in finding_ids:
        suggestions.append("Consider splitting large changes into smaller, focused commits.")
    if "missing-tests" in finding_ids:
        suggestions.append("Add tests covering the modified code paths before merging.")
    if not finding_ids:
        suggestions.append("No heuristic issues detected; proceed with a manual review.")
    return suggestions


def evaluate(insights: DiffInsights, config: HeuristicConfig | None = None) -> HeuristicReport:
    """
    Run the review heuristics over a diff.

    Each finding is independent of the others: a file can be large, code and
    configuration at the same time and show up in every matching finding.
    """
    if config is None:
        config = HeuristicConfig()

    files = insights.files
    test_files = [f for f in files if is_test_file(f.path)]
    code_files = [f for f in files if is_code_file(f.path)]
    config_files = [f for f in files if is_config_file(f.path)]
    binary_files = [f for f in files if f.is_binary]
    large_files = [f for f in files if is_large_file(f, config.large_file_threshold)]

    findings: list[ReviewFinding] = []
    if large_files:
        findings.append(_large_files_finding(large_files, config.large_file_threshold))
    if config.require_tests_for_code and code_files and not test_files:
        findings.append(_missing_tests_finding(code_files))
    if config.warn_on_config_changes and config_files:
        findings.append(_config_edits_finding(config_files))
    if binary_files:
        findings.append(_binary_files_finding(binary_files))

    metrics = HeuristicMetrics(
        file_count=insights.file_count,
        total_additions=insights.total_additions,
        total_deletions=insights.total_deletions,
        large_files=len(large_files),
        binary_files=len(binary_files),
        code_files=len(code_files),
        test_files=len(test_files),
    )
    logger.debug("Heuristics produced %d finding(s)", len(findings))
    return HeuristicReport(
        metrics=metrics,
        findings=findings,
        suggestions=_suggestions(insights, {f.id for f in findings}),
        insights=insights,
    )
