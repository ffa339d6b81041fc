"""HTML report generation.

Functions:
    render_report(template, context, template_dirs)   -> str
    export_html(config, issues, ...)                  -> ExportResult
    collect_issues(config, client, on_progress)       -> list[Issue]
    write_report(config, client, issues)              -> ExportResult
    export_issues(config, client, on_progress)        -> ExportResult

Templates are Jinja2 files named ``<name>.html.j2``. The packaged ones are
``default`` (classic table) and ``enhanced`` (dashboard with quality gate and
project measures). Extra directories passed as *template_dirs* are searched
first.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound

from sonar_export import __version__
from sonar_export.client import SonarClient
from sonar_export.config import Config
from sonar_export.models import (
    ExportResult,
    Issue,
    QualityGate,
    ReportMetadata,
)
from sonar_export.reports.issues import (
    ProgressCallback,
    build_report_metrics,
    fetch_all_issues,
    process_issues,
)
from sonar_export.reports.project import get_project_measures, get_quality_gate_status
from sonar_export.utils import format_date

log = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".html.j2"
ENHANCED_TEMPLATE = "enhanced"


class ConnectionFailedError(Exception):
    """Raised when the SonarQube server cannot be reached before an export."""


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _number(value) -> str:
    return f"{value:,}" if isinstance(value, (int, float)) else str(value)


def _environment(template_dirs: Sequence[str | Path] | None) -> Environment:
    search_path = [str(d) for d in (template_dirs or ())] + [str(TEMPLATES_DIR)]
    env = Environment(loader=FileSystemLoader(search_path), autoescape=True)
    env.filters["format_date"] = format_date
    env.filters["number"] = _number
    return env


def render_report(
    template: str,
    context: dict,
    template_dirs: Sequence[str | Path] | None = None,
) -> str:
    """Render the named template with *context*.

    Raises:
        jinja2.TemplateNotFound: no ``<template>.html.j2`` on the search path.
        jinja2.TemplateError:    the template cannot be parsed or rendered.
    """
    env = _environment(template_dirs)
    return env.get_template(f"{template}{TEMPLATE_SUFFIX}").render(**context)


def export_html(
    config: Config,
    issues: Sequence[Issue],
    *,
    output_path: str | None = None,
    filename: str | None = None,
    template: str | None = None,
    quality_gate: QualityGate | None = None,
    measures: dict | None = None,
    template_dirs: Sequence[str | Path] | None = None,
) -> ExportResult:
    """Render *issues* into an HTML file and return what was written.

    A missing or broken template is reported as ``success=False``. Errors
    creating the output directory or writing the file are raised.
    """
    output_path = output_path or config.export.output_path
    filename = filename or config.export.filename
    template = template or config.export.template

    log.info("Starting HTML export with %d issues", len(issues))

    display_issues = process_issues(issues)
    metrics = build_report_metrics(display_issues)
    metadata = ReportMetadata(
        generated_at=format_date(datetime.now()),
        project_key=config.sonarqube.project_key,
        sonarqube_url=config.sonarqube.url,
        total_issues=len(display_issues),
        report_version=__version__,
        excluded_statuses=list(config.export.exclude_statuses),
        include_resolved_issues=config.export.include_resolved_issues,
    )
    context = {
        "issues":       display_issues,
        "metrics":      metrics,
        "metadata":     metadata,
        "quality_gate": quality_gate or QualityGate(),
        "measures":     measures or {},
    }

    try:
        html = render_report(template, context, template_dirs)
    except TemplateNotFound as exc:
        log.error("Failed to generate HTML report: template not found: %s", exc.name)
        return ExportResult(success=False, error=f"Template not found: {exc.name}")
    except (TemplateError, OSError) as exc:
        log.error("Failed to generate HTML report: %s", exc)
        return ExportResult(success=False, error=f"Failed to read template '{template}': {exc}")

    out_dir = Path(output_path)
    out_dir.mkdir(parents=True, exist_ok=True)
    file_path = out_dir / filename
    file_path.write_text(html, encoding="utf-8")

    log.info("HTML report generated successfully: %s", file_path)
    return ExportResult(
        success=True,
        output_path=str(file_path),
        issues_count=len(issues),
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------

def collect_issues(
    config: Config,
    client: SonarClient,
    on_progress: ProgressCallback | None = None,
) -> list[Issue]:
    """Check connectivity, then fetch every issue matching the export settings.

    Raises:
        ConnectionFailedError: the server did not answer the status check.
        SonarClientError:      a page of issues could not be fetched.
    """
    sonar = config.sonarqube

    log.info("Validating SonarQube connection...")
    if not client.validate_connection():
        raise ConnectionFailedError(f"Failed to connect to SonarQube at '{sonar.url}'")

    project_info = client.get_project_info(sonar.project_key, sonar.organization)
    if project_info:
        log.info("Project found: %s", project_info.get("name"))

    log.info("Fetching issues from SonarQube...")
    return fetch_all_issues(
        client,
        sonar.project_key,
        organization=sonar.organization,
        max_issues=config.export.max_issues,
        exclude_statuses=config.export.exclude_statuses,
        include_resolved_issues=config.export.include_resolved_issues,
        on_progress=on_progress,
    )


def write_report(config: Config, client: SonarClient, issues: Sequence[Issue]) -> ExportResult:
    """Render *issues* with the configured template.

    The ``enhanced`` template also gets the quality gate and project measures.
    """
    sonar = config.sonarqube
    quality_gate = None
    measures = None
    if config.export.template == ENHANCED_TEMPLATE:
        quality_gate = get_quality_gate_status(client, sonar.project_key, sonar.organization)
        measures = get_project_measures(client, sonar.project_key, sonar.organization)

    log.info("Generating HTML report...")
    return export_html(config, issues, quality_gate=quality_gate, measures=measures)


def export_issues(
    config: Config,
    client: SonarClient | None = None,
    on_progress: ProgressCallback | None = None,
) -> ExportResult:
    """Check connectivity, fetch every matching issue and write the report.

    Raises:
        ConnectionFailedError: the server did not answer the status check.
        SonarClientError:      a page of issues could not be fetched.
    """
    client = client or SonarClient.from_settings(config.sonarqube)
    issues = collect_issues(config, client, on_progress)
    return write_report(config, client, issues)
