"""CLI entry point: command definitions using Click.

Commands:
    init          Create a config file interactively
    export        Fetch issues and write the HTML report
    validate      Check connectivity and project access only
"""

import functools
import logging
import sys
from pathlib import Path

import click

from sonar_export import __version__

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers shared by the data commands
# ---------------------------------------------------------------------------

def _connection_options(func):
    """Flags overriding the ``sonarqube`` section of the configuration."""
    options = [
        click.option("-c", "--config", "config_path", default=None,
                     help="Path to the configuration file."),
        click.option("--url", default=None, help="SonarQube server URL."),
        click.option("--token", default=None, help="SonarQube authentication token."),
        click.option("--project", default=None, help="SonarQube project key."),
        click.option("--organization", default=None,
                     help="SonarQube organization (for SonarCloud)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _sonarqube_overrides(url, token, project, organization) -> dict:
    given = {
        "url": url,
        "token": token,
        "project_key": project,
        "organization": organization,
    }
    return {k: v for k, v in given.items() if v is not None}


def _load_config(config_path: str | None, overrides: dict):
    """Load and validate the configuration and set up logging. Exits on error."""
    from sonar_export.config import ConfigError, load
    from sonar_export.log import configure_logging

    try:
        config = load(config_path, overrides=overrides)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    configure_logging(config.logging)
    return config


def _handle_client_errors(func):
    """Decorator that catches SonarClient exceptions and exits cleanly."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonar_export.client import (
            AuthenticationError,
            ForbiddenError,
            NetworkError,
            NotFoundError,
            SonarClientError,
        )
        from sonar_export.exporter import ConnectionFailedError

        try:
            return func(*args, **kwargs)
        except ConnectionFailedError as exc:
            click.echo(f"Connection error: {exc}", err=True)
            sys.exit(1)
        except AuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except ForbiddenError as exc:
            click.echo(f"Permission error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except SonarClientError as exc:
            click.echo(f"SonarQube error: {exc}", err=True)
            sys.exit(1)
        except OSError as exc:
            click.echo(f"Export failed: {exc}", err=True)
            sys.exit(1)

    return wrapper


def _report_progress(current: int, total: int) -> None:
    from sonar_export.utils import progress_bar

    percentage = round(current / total * 100) if total else 100
    log.info("Progress: %s issues (%d%%)", progress_bar(current, total), percentage)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(__version__, prog_name="sonarqube-exporter")
def cli() -> None:
    """Export SonarQube issues to a static, interactive HTML report."""


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default=None,
              help="Path of the config file to write.  [default: .sonarqube-exporter.json]")
@click.option("--global", "use_global", is_flag=True, default=False,
              help="Write the per-user config file (~/.sonarqube-exporter.json).")
def init_command(output_path: str | None, use_global: bool) -> None:
    """Create a configuration file interactively."""
    from sonar_export.config import (
        CONFIG_FILENAMES,
        ConfigError,
        SonarQubeSettings,
        generate_template,
        global_config_path,
    )

    if use_global and output_path:
        click.echo("Error: --global and --output cannot be used together.", err=True)
        sys.exit(1)
    target = global_config_path() if use_global else Path(output_path or CONFIG_FILENAMES[0])
    if target.exists():
        click.echo(
            f"Error: '{target}' already exists. Remove it first or choose a different path.",
            err=True,
        )
        sys.exit(1)

    click.echo("This will create a SonarQube exporter configuration file.")
    url = click.prompt("SonarQube server URL (e.g. https://sonarcloud.io)").strip()
    token = click.prompt("SonarQube token", hide_input=True).strip()
    project_key = click.prompt("Project key").strip()
    organization = click.prompt(
        "Organization (optional, for SonarCloud)", default="", show_default=False,
    ).strip()

    settings = SonarQubeSettings(
        url=url,
        token=token,
        project_key=project_key,
        organization=organization or None,
    )
    try:
        path = generate_template(target, settings)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Configuration saved to '{path}'.")
    click.echo("You can now run `sonarqube-exporter validate` and `sonarqube-exporter export`.")


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

@cli.command("export")
@_connection_options
@click.option("-o", "--output", "output_path", default=None, help="Output directory path.")
@click.option("-f", "--filename", default=None, help="Output filename.")
@click.option("--template", default=None,
              help='Template: "default" (classic table view) or "enhanced" (dashboard).')
@click.option("--max-issues", type=int, default=None,
              help="Maximum number of issues to fetch.  [default: 10000]")
@click.option("--include-resolved", is_flag=True, default=False,
              help="Include resolved issues in the report.")
@click.option("--exclude-statuses", default=None,
              help="Comma-separated list of statuses to exclude.  [default: CLOSED]")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable verbose logging.")
@_handle_client_errors
def export_command(config_path, url, token, project, organization, output_path, filename,
                   template, max_issues, include_resolved, exclude_statuses, verbose) -> None:
    """Export SonarQube issues to an HTML report."""
    from sonar_export.client import SonarClient
    from sonar_export.exporter import collect_issues, write_report

    export = {
        "output_path": output_path,
        "filename": filename,
        "template": template,
        "max_issues": max_issues,
        "include_resolved_issues": include_resolved or None,
        "exclude_statuses": exclude_statuses,
    }
    overrides = {
        "sonarqube": _sonarqube_overrides(url, token, project, organization),
        "export": {k: v for k, v in export.items() if v is not None},
    }
    if verbose:
        overrides["logging"] = {"level": "debug"}

    config = _load_config(config_path, overrides)
    sonar = config.sonarqube

    log.info("Starting SonarQube issues export...")
    log.debug("Configuration: url=%s project=%s export=%s", sonar.url, sonar.project_key,
              config.export)

    client = SonarClient.from_settings(sonar)
    issues = collect_issues(config, client, on_progress=_report_progress)

    if not issues:
        log.warning("No issues found. Check your project key or run a new analysis.")
        return

    result = write_report(config, client, issues)

    if not result.success:
        click.echo(f"Failed to generate report: {result.error}", err=True)
        sys.exit(1)

    metrics = result.metrics
    click.echo("Report generated successfully!")
    click.echo(f"  File:                {result.output_path}")
    click.echo(f"  Issues:              {result.issues_count}")
    click.echo(f"  Blocker + critical:  {metrics.high_severity}")
    click.echo(f"  Bugs:                {metrics.types.get('BUG', 0)}")
    click.echo(f"  Vulnerabilities:     {metrics.types.get('VULNERABILITY', 0)}")


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

@cli.command("validate")
@_connection_options
@_handle_client_errors
def validate_command(config_path, url, token, project, organization) -> None:
    """Validate the SonarQube connection and configuration."""
    from sonar_export.client import SonarClient

    overrides = {"sonarqube": _sonarqube_overrides(url, token, project, organization)}
    config = _load_config(config_path, overrides)
    sonar = config.sonarqube

    log.info("Testing SonarQube connection...")
    client = SonarClient.from_settings(sonar)
    if not client.validate_connection():
        click.echo("SonarQube connection failed.", err=True)
        sys.exit(1)
    click.echo("SonarQube connection successful.")

    project_info = client.get_project_info(sonar.project_key, sonar.organization)
    if project_info:
        click.echo(f"Project found: {project_info.get('name')} ({project_info.get('key')})")
    else:
        click.echo(f"Warning: project '{sonar.project_key}' not found or no access.", err=True)
