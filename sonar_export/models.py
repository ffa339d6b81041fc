"""Data models for the HTML issue report.

Contains dataclasses used to carry data from the API to the template:
    - Issue            (raw API record, read-only)
    - DisplayIssue     (per-issue projection rendered in the report)
    - ReportMetrics    (counts by severity / type / status / file / rule)
    - ReportMetadata
    - QualityGate, QualityGateCondition
    - ExportResult
"""

from dataclasses import asdict, dataclass, field
from typing import Any

SEVERITIES    = ("BLOCKER", "CRITICAL", "MAJOR", "MINOR", "INFO")
STATUSES      = ("OPEN", "CONFIRMED", "REOPENED", "RESOLVED", "CLOSED")
TYPES         = ("BUG", "VULNERABILITY", "CODE_SMELL", "SECURITY_HOTSPOT")
OPEN_STATUSES = ("OPEN", "CONFIRMED", "REOPENED")


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Issue:
    key: str
    rule: str
    severity: str
    component: str
    status: str
    message: str
    type: str
    creation_date: str
    project: str | None = None
    line: int | None = None
    update_date: str | None = None
    assignee: str | None = None
    author: str | None = None
    tags: tuple[str, ...] = ()
    effort: str | None = None
    debt: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "Issue":
        """Keep only the fields we care about from a raw SonarQube issue."""
        return cls(
            key=raw.get("key", ""),
            rule=raw.get("rule", ""),
            severity=raw.get("severity", ""),
            component=raw.get("component", ""),
            status=raw.get("status", ""),
            message=raw.get("message", ""),
            type=raw.get("type", ""),
            creation_date=raw.get("creationDate", ""),
            project=raw.get("project"),
            line=raw.get("line"),
            update_date=raw.get("updateDate"),
            assignee=raw.get("assignee"),
            author=raw.get("author"),
            tags=tuple(raw.get("tags") or ()),
            effort=raw.get("effort"),
            debt=raw.get("debt"),
        )


@dataclass
class DisplayIssue:
    key: str
    file: str
    line: int | str
    message: str
    severity: str
    status: str
    type: str
    rule: str
    component: str
    creation_date: str
    update_date: str | None = None
    assignee: str | None = None
    author: str | None = None
    tags: list[str] = field(default_factory=list)
    effort: str | None = None
    debt: str | None = None


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class ReportMetrics:
    total: int = 0
    severities: dict[str, int] = field(default_factory=dict)
    types: dict[str, int] = field(default_factory=dict)
    statuses: dict[str, int] = field(default_factory=dict)
    components: dict[str, int] = field(default_factory=dict)
    rules: dict[str, int] = field(default_factory=dict)

    @property
    def high_severity(self) -> int:
        """Number of BLOCKER and CRITICAL issues."""
        return self.severities.get("BLOCKER", 0) + self.severities.get("CRITICAL", 0)


@dataclass
class ReportMetadata:
    generated_at: str
    project_key: str
    sonarqube_url: str
    total_issues: int
    report_version: str
    excluded_statuses: list[str] = field(default_factory=list)
    include_resolved_issues: bool = False


@dataclass
class QualityGateCondition:
    metric: str
    operator: str
    status: str
    value: str | None = None
    error_threshold: str | None = None
    warning_threshold: str | None = None
    actual_value: str | None = None


@dataclass
class QualityGate:
    status: str = "NONE"  # PASSED | FAILED | NONE
    conditions: list[QualityGateCondition] = field(default_factory=list)


@dataclass
class ExportResult:
    success: bool
    output_path: str = ""
    issues_count: int = 0
    metrics: ReportMetrics = field(default_factory=ReportMetrics)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
