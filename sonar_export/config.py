"""Configuration loading and validation.

Usage:
    config = load()                                    # raises ConfigError on bad config
    config = load(".sonarqube-exporter.json")
    config = load(overrides={"export": {"max_issues": 500}})
    generate_template(".sonarqube-exporter.json")      # writes example file to disk

Sources, lowest precedence first: built-in defaults, environment variables
(the process environment over a `.env` file in the working directory),
the first config file found on the search path, explicit overrides.
"""

import json
import os
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from dotenv import dotenv_values

DEFAULT_URL = "http://localhost:9000"

DOTENV_FILE = ".env"

LOG_LEVELS = ("error", "warn", "warning", "info", "debug")

CONFIG_FILENAMES = (
    ".sonarqube-exporter.json",
    ".sonarqube-exporter.yaml",
    "sonarqube-exporter.config.json",
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SonarQubeSettings:
    url: str = DEFAULT_URL
    token: str = ""
    project_key: str = ""
    organization: str | None = None


@dataclass(frozen=True)
class ExportSettings:
    output_path: str = "./reports"
    filename: str = "sonarqube-issues-report.html"
    exclude_statuses: tuple[str, ...] = ("CLOSED",)
    include_resolved_issues: bool = False
    max_issues: int = 10_000
    template: str = "default"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "info"
    file: str | None = None


@dataclass(frozen=True)
class Config:
    sonarqube: SonarQubeSettings = field(default_factory=SonarQubeSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


_SECTIONS = {
    "sonarqube": SonarQubeSettings,
    "export":    ExportSettings,
    "logging":   LoggingSettings,
}

# (section, field, variable)
_ENV_VARS = (
    ("sonarqube", "url",                     "SONARQUBE_URL"),
    ("sonarqube", "token",                   "SONARQUBE_TOKEN"),
    ("sonarqube", "project_key",             "SONARQUBE_PROJECT_KEY"),
    ("sonarqube", "organization",            "SONARQUBE_ORGANIZATION"),
    ("export",    "output_path",             "EXPORT_OUTPUT_PATH"),
    ("export",    "filename",                "EXPORT_FILENAME"),
    ("export",    "exclude_statuses",        "EXPORT_EXCLUDE_STATUSES"),
    ("export",    "include_resolved_issues", "EXPORT_INCLUDE_RESOLVED"),
    ("export",    "max_issues",              "EXPORT_MAX_ISSUES"),
    ("export",    "template",                "EXPORT_TEMPLATE"),
    ("logging",   "level",                   "LOG_LEVEL"),
    ("logging",   "file",                    "LOG_FILE"),
)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(
    config_path: str | None = None,
    overrides: dict[str, dict[str, Any]] | None = None,
    search_paths: list[Path] | None = None,
) -> Config:
    """Load, merge and validate the configuration.

    *config_path*, when given, must exist; otherwise the first existing file
    of *search_paths* (default: :func:`default_search_paths`) is used, if any.
    Keys in files and *overrides* may be camelCase or snake_case.

    Raises:
        ConfigError: if a file is missing or malformed, or if any field is
                     invalid. Every violated rule is listed in the message.
    """
    merged: dict[str, dict[str, Any]] = {name: {} for name in _SECTIONS}

    _merge(merged, _from_env())

    path = _find_config_file(config_path, search_paths)
    if path is not None:
        _merge(merged, _read_config_file(path))

    if overrides:
        _merge(merged, overrides)

    config = _build(merged)
    _validate(config)
    return config


def default_search_paths() -> list[Path]:
    return [Path(name) for name in CONFIG_FILENAMES] + [global_config_path()]


def _find_config_file(config_path: str | None, search_paths: list[Path] | None) -> Path | None:
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(
                f"Config file not found: '{config_path}'\n"
                "Run `sonarqube-exporter init` to generate a template."
            )
        return path

    candidates = default_search_paths() if search_paths is None else search_paths
    for candidate in candidates:
        if Path(candidate).is_file():
            return Path(candidate)
    return None


def _read_config_file(path: Path) -> dict:
    try:
        with path.open(encoding="utf-8") as f:
            if path.suffix == ".json":
                raw = json.load(f)
            else:
                raw = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse '{path}': {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read '{path}': {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{path}' must be a mapping at the top level.")
    return raw


def _from_env() -> dict[str, dict[str, Any]]:
    """Read the known variables from ``.env`` and the process environment.

    Variables already set in the process environment win over ``.env``.
    """
    environ = {**dotenv_values(DOTENV_FILE), **os.environ}
    values: dict[str, dict[str, Any]] = {name: {} for name in _SECTIONS}
    for section, name, var in _ENV_VARS:
        value = environ.get(var)
        if value:
            values[section][name] = value
    return values


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    """``projectKey`` → ``project_key``; snake_case keys are left as is."""
    return _CAMEL_RE.sub("_", key).lower()


def _merge(target: dict[str, dict[str, Any]], source: dict) -> None:
    for section, values in source.items():
        if section not in _SECTIONS or not values:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"'{section}' must be a mapping.")
        for key, value in values.items():
            # null means "not set": the lower layers (or the default) apply
            if value is None:
                continue
            target[section][_snake(key)] = value


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _as_statuses(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(s).strip().upper() for s in value if str(s).strip())


def _as_int(value: Any) -> Any:
    """Return an int when *value* looks like one; leave it for validation otherwise."""
    if isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return value


_COERCE = {
    "include_resolved_issues": _as_bool,
    "exclude_statuses":        _as_statuses,
    "max_issues":              _as_int,
}


def _build(merged: dict[str, dict[str, Any]]) -> Config:
    sections = {}
    for name, cls in _SECTIONS.items():
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in merged[name].items():
            if key not in known:
                continue
            if key in _COERCE:
                value = _COERCE[key](value)
            elif isinstance(value, str):
                value = value.strip()
            values[key] = value
        sections[name] = replace(cls(), **values)
    return Config(**sections)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate(config: Config) -> None:
    """Raise ConfigError listing every invalid field."""
    errors: list[str] = []
    sonar = config.sonarqube

    if not sonar.url:
        errors.append(
            "  - 'sonarqube.url' is missing (or set the SONARQUBE_URL environment variable)"
        )
    elif not _is_valid_url(str(sonar.url)):
        errors.append(f"  - 'sonarqube.url' is not a valid URL: '{sonar.url}'")
    if not sonar.token:
        errors.append(
            "  - 'sonarqube.token' is missing (or set the SONARQUBE_TOKEN environment variable)"
        )
    if not sonar.project_key:
        errors.append(
            "  - 'sonarqube.projectKey' is missing "
            "(or set the SONARQUBE_PROJECT_KEY environment variable)"
        )

    max_issues = config.export.max_issues
    if isinstance(max_issues, bool) or not isinstance(max_issues, int) or max_issues <= 0:
        errors.append(f"  - 'export.maxIssues' must be a positive number, got '{max_issues}'")

    if str(config.logging.level).lower() not in LOG_LEVELS:
        errors.append(
            f"  - 'logging.level' must be one of {', '.join(LOG_LEVELS)}, "
            f"got '{config.logging.level}'"
        )

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = {
    "sonarqube": {
        "url": "https://sonarqube.example.com",
        "token": "squ_xxxxxxxxxxxx",
        "projectKey": "my-project",
    },
    "export": {
        "outputPath": "./reports",
        "filename": "sonarqube-issues-report.html",
        "excludeStatuses": ["CLOSED"],
        "includeResolvedIssues": False,
        "maxIssues": 10000,
        "template": "default",
    },
    "logging": {
        "level": "info",
    },
}


def generate_template(
    output_path: str | Path = CONFIG_FILENAMES[0],
    sonarqube: SonarQubeSettings | None = None,
) -> Path:
    """Write a configuration file to *output_path* and return its path.

    With *sonarqube*, its values replace the placeholder connection section;
    ``organization`` is written only when set. Missing parent directories
    are created.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )

    content = dict(TEMPLATE)
    if sonarqube is not None:
        section = {
            "url": sonarqube.url,
            "token": sonarqube.token,
            "projectKey": sonarqube.project_key,
        }
        if sonarqube.organization:
            section["organization"] = sonarqube.organization
        content["sonarqube"] = section

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2) + "\n", encoding="utf-8")
    return path


def global_config_path() -> Path:
    """Per-user configuration file, the last entry of the search path."""
    return Path.home() / CONFIG_FILENAMES[0]
