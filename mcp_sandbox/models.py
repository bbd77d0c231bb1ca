"""Records produced by the git readers, the diff pipeline and the heuristics."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

DiffSource = Literal["staged", "working"]
FindingCategory = Literal["testing", "risk", "dependencies", "maintenance", "general"]
FindingSeverity = Literal["info", "warn", "critical"]


class StatusEntry(BaseModel):
    status: str
    path: str
    previous_path: str | None = None


class ConflictEntry(BaseModel):
    path: str
    detail: str


class RepoStatus(BaseModel):
    branch: str | None = None
    upstream: str | None = None
    ahead: int | None = Field(default=None, ge=0)
    behind: int | None = Field(default=None, ge=0)
    staged: list[StatusEntry] = Field(default_factory=list)
    unstaged: list[StatusEntry] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)
    conflicts: list[ConflictEntry] = Field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked or self.conflicts)


class CommitRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    author: str
    relative_date: str
    summary: str


class DiffFileChange(BaseModel):
    path: str
    change_type: str  # 'A' (added), 'M' (modified), 'D' (deleted), 'R' (renamed), 'C' (copied)
    additions: int | None = Field(default=None, ge=0)
    deletions: int | None = Field(default=None, ge=0)
    is_binary: bool = False
    previous_path: str | None = None  # For renamed and copied files
    patch: str | None = None

    @property
    def churn(self) -> int:
        return (self.additions or 0) + (self.deletions or 0)


class DiffInsights(BaseModel):
    repository_root: str
    source: DiffSource
    files: list[DiffFileChange] = Field(default_factory=list)

    @computed_field
    @property
    def file_count(self) -> int:
        return len(self.files)

    @computed_field
    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files if f.additions is not None)

    @computed_field
    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files if f.deletions is not None)


class DiffOptions(BaseModel):
    source: DiffSource = "staged"
    paths: list[str] = Field(default_factory=list)
    include_patch: bool = False
    max_patch_lines: int = Field(default=400, ge=10, le=2000)


class HeuristicConfig(BaseModel):
    large_file_threshold: int = Field(default=400, ge=50, le=5000)
    require_tests_for_code: bool = True
    warn_on_config_changes: bool = True


class ReviewFinding(BaseModel):
    id: str
    category: FindingCategory
    severity: FindingSeverity
    summary: str
    details: str
    affected_files: list[str] = Field(default_factory=list)
    recommendation: str | None = None


class HeuristicMetrics(BaseModel):
    file_count: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    large_files: int = 0
    binary_files: int = 0
    code_files: int = 0
    test_files: int = 0


class HeuristicReport(BaseModel):
    metrics: HeuristicMetrics
    findings: list[ReviewFinding] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    insights: DiffInsights
