"""Project overview data shown by the ``enhanced`` template.

Functions:
    get_project_measures(client, project_key, organization)     -> dict
    get_quality_gate_status(client, project_key, organization)  -> QualityGate

Both are best-effort: a failing request is logged as a warning and an empty
result is returned so the report can still be produced.
"""

import logging

from sonar_export.client import SonarClient, SonarClientError
from sonar_export.models import QualityGate, QualityGateCondition

log = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Metric keys
# --------------------------------------------------------------------------- #

_PROJECT_METRICS: list[str] = [
    "coverage",
    "duplicated_lines_density",
    "ncloc",
    "sqale_index",
    "sqale_rating",
    "reliability_rating",
    "security_rating",
    "complexity",
]

_RATINGS = ("A", "B", "C", "D", "E")

_MINUTES_PER_DAY = 8 * 60

# SonarQube reports OK / ERROR; older versions also WARN
_GATE_STATUS = {"OK": "PASSED", "ERROR": "FAILED", "WARN": "PASSED"}


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _parse_value(raw: dict):
    """Return a numeric value from a SonarQube measure dict, or None if absent.

    Current-code values live under ``"value"``; older versions expose some
    values under ``"period": {"value": ...}`` only.
    """
    val = raw.get("value")
    if val is None:
        period = raw.get("period")
        val = period.get("value") if isinstance(period, dict) else None
    if val is None:
        return None
    try:
        f = float(val)
        # Return int when the float is a whole number (e.g. 88.0 → 88)
        return int(f) if f == int(f) else f
    except (ValueError, TypeError):
        return val


def _measures_to_dict(measures: list[dict]) -> dict:
    """Convert a list of SonarQube measure dicts to ``{metric_key: value}``."""
    return {m["metric"]: _parse_value(m) for m in measures}


def format_technical_debt(minutes) -> str:
    """``0`` → ``0min``, ``45`` → ``45min``, ``1500`` → ``3d 1h``.

    A day is 8 working hours. Minutes are dropped once the debt reaches a day.
    A value that is not a number gives ``N/A``.
    """
    try:
        minutes = int(float(minutes))
    except (TypeError, ValueError):
        return "N/A"

    days, rest = divmod(minutes, _MINUTES_PER_DAY)
    hours, mins = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins and not days:
        parts.append(f"{mins}min")
    return " ".join(parts) or "0min"


def format_rating(value) -> str:
    """Map a SonarQube rating (1..5) to its letter; anything else is ``N/A``."""
    try:
        index = int(float(value)) - 1
    except (TypeError, ValueError):
        return "N/A"
    return _RATINGS[index] if 0 <= index < len(_RATINGS) else "N/A"


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def get_project_measures(
    client: SonarClient,
    project_key: str,
    organization: str | None = None,
) -> dict:
    """Return headline measures for *project_key*, or ``{}`` on failure."""
    log.info("Fetching project measures...")
    params = {
        "component":    project_key,
        "organization": organization,
        "metricKeys":   ",".join(_PROJECT_METRICS),
    }
    try:
        data = client.get("/api/measures/component", params)
    except SonarClientError as exc:
        log.warning("Failed to fetch project measures: %s", exc)
        return {}

    measures = _measures_to_dict(data.get("component", {}).get("measures", []))

    result: dict = {}
    if "coverage" in measures:
        result["coverage"] = measures["coverage"]
    if "duplicated_lines_density" in measures:
        result["duplicated_lines_density"] = measures["duplicated_lines_density"]
    if "ncloc" in measures:
        result["lines_of_code"] = measures["ncloc"]
    if "sqale_index" in measures:
        result["technical_debt"] = format_technical_debt(measures["sqale_index"] or 0)
    if "sqale_rating" in measures:
        result["maintainability_rating"] = format_rating(measures["sqale_rating"])
    if "reliability_rating" in measures:
        result["reliability_rating"] = format_rating(measures["reliability_rating"])
    if "security_rating" in measures:
        result["security_rating"] = format_rating(measures["security_rating"])
    if "complexity" in measures:
        result["complexity"] = measures["complexity"]
    return result


def get_quality_gate_status(
    client: SonarClient,
    project_key: str,
    organization: str | None = None,
) -> QualityGate:
    """Return the quality gate of *project_key*; status ``NONE`` on failure."""
    log.info("Fetching quality gate status...")
    params = {"projectKey": project_key, "organization": organization}
    try:
        data = client.get("/api/qualitygates/project_status", params)
    except SonarClientError as exc:
        log.warning("Failed to fetch quality gate status: %s", exc)
        return QualityGate()

    status = data.get("projectStatus", {})
    conditions = [
        QualityGateCondition(
            metric=c.get("metricKey", ""),
            operator=c.get("comparator", ""),
            status=c.get("status", ""),
            value=c.get("periodValue") or c.get("value"),
            error_threshold=c.get("errorThreshold"),
            warning_threshold=c.get("warningThreshold"),
            actual_value=c.get("actualValue"),
        )
        for c in status.get("conditions") or []
    ]
    return QualityGate(
        status=_GATE_STATUS.get(status.get("status"), "NONE"),
        conditions=conditions,
    )
