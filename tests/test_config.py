"""Tests for sonar_export/config.py"""

import json
import os
import textwrap
from pathlib import Path

import pytest

from sonar_export.config import (
    Config,
    ConfigError,
    ExportSettings,
    default_search_paths,
    generate_template,
    load,
)

_ENV = (
    "SONARQUBE_URL", "SONARQUBE_TOKEN", "SONARQUBE_PROJECT_KEY", "SONARQUBE_ORGANIZATION",
    "EXPORT_OUTPUT_PATH", "EXPORT_FILENAME", "EXPORT_EXCLUDE_STATUSES",
    "EXPORT_INCLUDE_RESOLVED", "EXPORT_MAX_ISSUES", "EXPORT_TEMPLATE", "LOG_LEVEL", "LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the caller's environment and config files."""
    for var in _ENV:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def write_json(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


VALID = {
    "sonarqube": {
        "url": "https://sonar.example.com",
        "token": "squ_abc123",
        "projectKey": "my-project",
    },
}


# ---------------------------------------------------------------------------
# load(): happy path and defaults
# ---------------------------------------------------------------------------

def test_load_valid_json_config(tmp_path):
    p = write_json(tmp_path / "cfg.json", VALID)
    config = load(str(p))
    assert config.sonarqube.url == "https://sonar.example.com"
    assert config.sonarqube.token == "squ_abc123"
    assert config.sonarqube.project_key == "my-project"
    assert config.sonarqube.organization is None


def test_defaults_fill_missing_sections(tmp_path):
    config = load(str(write_json(tmp_path / "cfg.json", VALID)))
    assert config.export == ExportSettings()
    assert config.export.exclude_statuses == ("CLOSED",)
    assert config.export.max_issues == 10_000
    assert config.logging.level == "info"
    assert config.logging.file is None


def test_load_yaml_config(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text(textwrap.dedent("""\
        sonarqube:
          url: "https://sonar.example.com"
          token: "squ_abc123"
          project_key: "my-project"
        export:
          excludeStatuses: [CLOSED, RESOLVED]
          maxIssues: 250
        """), encoding="utf-8")
    config = load(str(p))
    assert config.sonarqube.project_key == "my-project"
    assert config.export.exclude_statuses == ("CLOSED", "RESOLVED")
    assert config.export.max_issues == 250


def test_config_is_frozen(tmp_path):
    config = load(str(write_json(tmp_path / "cfg.json", VALID)))
    with pytest.raises(AttributeError):
        config.sonarqube.token = "other"


# ---------------------------------------------------------------------------
# load(): file discovery
# ---------------------------------------------------------------------------

def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load(str(tmp_path / "no-such-file.json"))


def test_first_file_on_search_path_wins(tmp_path):
    first = write_json(tmp_path / "first.json", VALID)
    second = write_json(tmp_path / "second.json", {
        "sonarqube": {**VALID["sonarqube"], "projectKey": "other"},
    })
    config = load(search_paths=[tmp_path / "absent.json", first, second])
    assert config.sonarqube.project_key == "my-project"


def test_default_search_path_finds_file_in_cwd(tmp_path):
    write_json(tmp_path / ".sonarqube-exporter.json", VALID)
    assert load().sonarqube.project_key == "my-project"


def test_default_search_path_includes_home():
    assert default_search_paths()[-1] == Path.home() / ".sonarqube-exporter.json"


def test_malformed_json_raises(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="Failed to parse"):
        load(str(p))


def test_non_mapping_file_raises(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load(str(p))


# ---------------------------------------------------------------------------
# load(): precedence
# ---------------------------------------------------------------------------

def test_env_supplies_values_without_file(monkeypatch):
    monkeypatch.setenv("SONARQUBE_URL", "https://env.example.com")
    monkeypatch.setenv("SONARQUBE_TOKEN", "squ_env")
    monkeypatch.setenv("SONARQUBE_PROJECT_KEY", "env-project")
    monkeypatch.setenv("EXPORT_EXCLUDE_STATUSES", "CLOSED,RESOLVED")
    monkeypatch.setenv("EXPORT_INCLUDE_RESOLVED", "true")
    monkeypatch.setenv("EXPORT_MAX_ISSUES", "42")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load(search_paths=[])

    assert config.sonarqube.url == "https://env.example.com"
    assert config.sonarqube.project_key == "env-project"
    assert config.export.exclude_statuses == ("CLOSED", "RESOLVED")
    assert config.export.include_resolved_issues is True
    assert config.export.max_issues == 42
    assert config.logging.level == "debug"


def test_file_overrides_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SONARQUBE_TOKEN", "squ_env")
    monkeypatch.setenv("SONARQUBE_ORGANIZATION", "env-org")
    config = load(str(write_json(tmp_path / "cfg.json", VALID)))
    assert config.sonarqube.token == "squ_abc123"
    assert config.sonarqube.organization == "env-org"


def test_dotenv_file_supplies_values(tmp_path):
    (tmp_path / ".env").write_text(
        "SONARQUBE_URL=https://dotenv.example.com\n"
        "SONARQUBE_TOKEN=squ_dotenv\n"
        "SONARQUBE_PROJECT_KEY=dotenv-project\n",
        encoding="utf-8",
    )
    config = load(search_paths=[])
    assert config.sonarqube.url == "https://dotenv.example.com"
    assert config.sonarqube.token == "squ_dotenv"
    assert config.sonarqube.project_key == "dotenv-project"


def test_process_env_beats_dotenv_and_file_beats_both(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text(
        "SONARQUBE_TOKEN=squ_dotenv\nSONARQUBE_ORGANIZATION=dotenv-org\nEXPORT_MAX_ISSUES=7\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SONARQUBE_ORGANIZATION", "env-org")
    config = load(str(write_json(tmp_path / "cfg.json", VALID)))

    assert config.sonarqube.token == "squ_abc123"
    assert config.sonarqube.organization == "env-org"
    assert config.export.max_issues == 7


def test_dotenv_does_not_touch_process_environment(tmp_path):
    (tmp_path / ".env").write_text("SONARQUBE_TOKEN=squ_dotenv\n", encoding="utf-8")
    load(search_paths=[], overrides={"sonarqube": {"project_key": "p"}})
    assert "SONARQUBE_TOKEN" not in os.environ


def test_null_values_in_file_fall_back(tmp_path, monkeypatch):
    monkeypatch.setenv("EXPORT_FILENAME", "env.html")
    p = write_json(tmp_path / "cfg.json", {
        **VALID,
        "export": {"excludeStatuses": None, "outputPath": None, "filename": None,
                   "maxIssues": None, "includeResolvedIssues": None},
        "logging": {"level": None},
    })
    config = load(str(p))

    assert config.export.exclude_statuses == ("CLOSED",)
    assert config.export.output_path == "./reports"
    assert config.export.filename == "env.html"
    assert config.export.max_issues == 10_000
    assert config.export.include_resolved_issues is False
    assert config.logging.level == "info"


def test_overrides_beat_file(tmp_path):
    p = write_json(tmp_path / "cfg.json", VALID)
    config = load(str(p), overrides={
        "sonarqube": {"project_key": "cli-project"},
        "export": {"maxIssues": 5000, "output_path": "./custom-reports"},
    })
    assert config.sonarqube.project_key == "cli-project"
    assert config.sonarqube.token == "squ_abc123"
    assert config.export.max_issues == 5000
    assert config.export.output_path == "./custom-reports"
    assert config.export.filename == "sonarqube-issues-report.html"


def test_default_url_used_when_nothing_set():
    config = load(search_paths=[], overrides={"sonarqube": {"token": "t", "project_key": "p"}})
    assert config.sonarqube.url == "http://localhost:9000"


# ---------------------------------------------------------------------------
# load(): validation
# ---------------------------------------------------------------------------

def test_all_missing_fields_reported_together():
    with pytest.raises(ConfigError) as excinfo:
        load(search_paths=[], overrides={
            "sonarqube": {"url": "", "token": "", "project_key": ""},
        })
    message = str(excinfo.value)
    assert "sonarqube.url" in message
    assert "sonarqube.token" in message
    assert "sonarqube.projectKey" in message


def test_invalid_url_rejected():
    with pytest.raises(ConfigError, match="not a valid URL"):
        load(search_paths=[], overrides={
            "sonarqube": {"url": "sonar.example.com", "token": "t", "project_key": "p"},
        })


@pytest.mark.parametrize("value", [0, -5, "many"])
def test_max_issues_must_be_positive(value):
    with pytest.raises(ConfigError, match="maxIssues"):
        load(search_paths=[], overrides={
            "sonarqube": {"token": "t", "project_key": "p"},
            "export": {"max_issues": value},
        })


def test_unknown_log_level_rejected():
    with pytest.raises(ConfigError, match="logging.level"):
        load(search_paths=[], overrides={
            "sonarqube": {"token": "t", "project_key": "p"},
            "logging": {"level": "loud"},
        })


def test_unknown_keys_are_ignored():
    config = load(search_paths=[], overrides={
        "sonarqube": {"token": "t", "project_key": "p", "colour": "blue"},
        "extra": {"a": 1},
    })
    assert isinstance(config, Config)


# ---------------------------------------------------------------------------
# generate_template()
# ---------------------------------------------------------------------------

def test_generate_template_creates_loadable_file(tmp_path):
    out = tmp_path / "template.json"
    generate_template(str(out))
    data = json.loads(out.read_text(encoding="utf-8"))
    assert set(data) == {"sonarqube", "export", "logging"}
    config = load(str(out))
    assert config.sonarqube.project_key == "my-project"


def test_generate_template_refuses_to_overwrite(tmp_path):
    out = tmp_path / "template.json"
    out.write_text("existing content")
    with pytest.raises(ConfigError, match="already exists"):
        generate_template(str(out))
