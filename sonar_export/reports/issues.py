"""Issue fetching, transformation and aggregation.

Functions:
    fetch_all_issues(client, project_key, ...)   -> list[Issue]
    process_issues(issues)                       -> list[DisplayIssue]
    calculate_metrics(items, extractors)         -> dict[str, dict[str, int]]
    build_report_metrics(display_issues)         -> ReportMetrics
"""

import logging
import warnings
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from sonar_export.client import SonarClient, SonarClientError
from sonar_export.models import OPEN_STATUSES, DisplayIssue, Issue, ReportMetrics
from sonar_export.utils import escape_html, extract_filename, format_date

log = logging.getLogger(__name__)

PAGE_SIZE = 500
MAX_ISSUES = 10_000
PAGINATION_WARNING_THRESHOLD = 10_000

ProgressCallback = Callable[[int, int], None]


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def fetch_all_issues(
    client: SonarClient,
    project_key: str,
    *,
    organization: str | None = None,
    page_size: int = PAGE_SIZE,
    max_issues: int = MAX_ISSUES,
    exclude_statuses: Sequence[str] = ("CLOSED",),
    include_resolved_issues: bool = False,
    on_progress: ProgressCallback | None = None,
) -> list[Issue]:
    """Fetch up to *max_issues* issues of a project, page by page.

    Status filtering happens on two layers. Unless *include_resolved_issues*
    is set, the server is asked for OPEN, CONFIRMED and REOPENED issues only.
    Independently of that, every issue whose status is in *exclude_statuses*
    is dropped from each page as it arrives.

    *on_progress* is called after every page with
    ``(fetched_so_far, min(server_total, max_issues))``.

    Any request failure aborts the whole fetch and propagates the client
    exception; nothing fetched so far is returned.
    """
    if max_issues <= 0:
        raise ValueError(f"max_issues must be positive, got {max_issues}")
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    excluded = set(exclude_statuses)
    statuses = None if include_resolved_issues else ",".join(OPEN_STATUSES)

    all_issues: list[Issue] = []
    page = 1
    warned = False

    log.info("Starting to fetch issues for project: %s", project_key)

    while len(all_issues) < max_issues:
        params = {
            "componentKeys": project_key,
            "organization":  organization,
            "ps":            min(page_size, max_issues - len(all_issues)),
            "p":             page,
            "statuses":      statuses,
        }
        try:
            data = client.get("/api/issues/search", params)
        except SonarClientError as exc:
            log.error("Failed to fetch page %d: %s", page, exc)
            raise

        raw_issues: list[dict[str, Any]] = data.get("issues", [])
        total: int = data.get("paging", {}).get("total", 0)

        if total > PAGINATION_WARNING_THRESHOLD and max_issues > PAGINATION_WARNING_THRESHOLD \
                and not warned:
            warnings.warn(
                f"Result set exceeds {PAGINATION_WARNING_THRESHOLD} items (total={total}). "
                "SonarQube caps pagination at 10 000, some results may be missing.",
                UserWarning,
                stacklevel=2,
            )
            warned = True

        kept = [Issue.from_api(raw) for raw in raw_issues if raw.get("status") not in excluded]
        all_issues.extend(kept[: max_issues - len(all_issues)])

        log.debug("Fetched page %d: %d issues (total: %d)", page, len(kept), len(all_issues))

        if on_progress is not None:
            on_progress(len(all_issues), min(total, max_issues))

        if page * page_size >= total or not raw_issues:
            break

        page += 1

    log.info("Successfully fetched %d issues", len(all_issues))
    return all_issues


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------

def to_display_issue(issue: Issue) -> DisplayIssue:
    return DisplayIssue(
        key=issue.key,
        file=extract_filename(issue.component),
        line=issue.line if issue.line is not None else "N/A",
        message=escape_html(issue.message),
        severity=issue.severity,
        status=issue.status,
        type=issue.type,
        rule=issue.rule,
        component=issue.component,
        creation_date=format_date(issue.creation_date),
        update_date=format_date(issue.update_date) if issue.update_date else None,
        assignee=issue.assignee,
        author=issue.author,
        tags=list(issue.tags),
        effort=issue.effort,
        debt=issue.debt,
    )


def process_issues(issues: Iterable[Issue]) -> list[DisplayIssue]:
    return [to_display_issue(i) for i in issues]


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def calculate_metrics(
    items: Iterable[Any],
    extractors: dict[str, Callable[[Any], str]],
) -> dict[str, dict[str, int]]:
    """Count items per category for every dimension in *extractors*.

    Each item adds exactly one to one category of every dimension, so the
    counts of a dimension always sum to the number of items.
    """
    items = list(items)
    metrics: dict[str, dict[str, int]] = {}
    for name, extract in extractors.items():
        counts: dict[str, int] = {}
        for item in items:
            category = extract(item)
            counts[category] = counts.get(category, 0) + 1
        metrics[name] = counts
    return metrics


def build_report_metrics(issues: Sequence[DisplayIssue]) -> ReportMetrics:
    metrics = calculate_metrics(issues, {
        "severities": lambda i: i.severity,
        "types":      lambda i: i.type,
        "statuses":   lambda i: i.status,
        "components": lambda i: i.file,
        "rules":      lambda i: i.rule,
    })
    return ReportMetrics(total=len(issues), **metrics)
