"""Tests for backend configuration loading."""

import json
from pathlib import Path

import pytest

from outcome_reporter.config import (
    ConfigError,
    expand_env,
    load_backend_configs,
    parse_backend_configs,
)


def test_parse_backend_configs() -> None:
    """Returns configuration per backend name."""
    configs = parse_backend_configs(
        json.dumps(
            {
                "testrail": {"server_url": "https://t.io", "project_key": "1"},
                "allure": {"server_url": "http://allure:5050"},
            }
        )
    )

    assert configs == {
        "testrail": {"server_url": "https://t.io", "project_key": "1"},
        "allure": {"server_url": "http://allure:5050"},
    }


def test_expands_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    """Credentials can be taken from the environment."""
    monkeypatch.setenv("TESTRAIL_API_KEY", "s3cret")

    configs = parse_backend_configs(
        '{"testrail": {"credential": "${TESTRAIL_API_KEY}", "close_run": true}}'
    )

    assert configs["testrail"] == {"credential": "s3cret", "close_run": True}


def test_expand_env_nested(monkeypatch: pytest.MonkeyPatch) -> None:
    """Expansion reaches into lists and objects."""
    monkeypatch.setenv("ENV_NAME", "staging")

    value = expand_env({"tags": ["$ENV_NAME", 1], "nested": {"env": "$ENV_NAME"}})

    assert value == {"tags": ["staging", 1], "nested": {"env": "staging"}}


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("{not json", "Invalid backend configuration"),
        ('["testrail"]', "must be a JSON object"),
        ('{"testrail": "url"}', "Configuration for 'testrail'"),
    ],
)
def test_parse_rejects_malformed(text: str, message: str) -> None:
    """Raises ConfigError for malformed configuration."""
    with pytest.raises(ConfigError, match=message):
        parse_backend_configs(text)


def test_load_backend_configs(tmp_path: Path) -> None:
    """Reads configuration from a file."""
    path = tmp_path / "backends.json"
    path.write_text('{"allure": {"server_url": "http://allure:5050"}}')

    assert load_backend_configs(path) == {
        "allure": {"server_url": "http://allure:5050"}
    }


def test_load_missing_file(tmp_path: Path) -> None:
    """A missing file is a ConfigError."""
    with pytest.raises(ConfigError, match="Cannot read"):
        load_backend_configs(tmp_path / "missing.json")
