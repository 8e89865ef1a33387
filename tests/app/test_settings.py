from __future__ import annotations

import json
from pathlib import Path

import pytest

from configwatch.app.config import WatchSettings, load_settings
from configwatch.domain.errors import SettingsError
from configwatch.domain.models import SourceKind

SETTINGS_YAML = """\
profiles: [prod]
retry_interval_seconds: 2
max_consecutive_failures: 5
sources:
  - kind: git
    location: https://git.example.com/config.git
    credentials_ref: env:CONFIG_REPO_TOKEN
    poll_interval_seconds: 30
    revision: v1.4.0
  - kind: directory
    location: /etc/app/config
    optional: true
"""


def test_load_yaml_settings(tmp_path: Path) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text(SETTINGS_YAML, encoding="utf-8")

    settings = load_settings(path, environ={})

    assert settings.profiles == ["prod"]
    assert settings.retry_interval_seconds == 2
    sources = settings.to_sources()
    assert [source.kind for source in sources] == [SourceKind.REPOSITORY, SourceKind.DIRECTORY]
    assert sources[0].ref == "v1.4.0"
    assert sources[0].credentials_ref == "env:CONFIG_REPO_TOKEN"
    assert sources[1].optional is True
    assert settings.merge_plan().profiles == ("default", "prod")


def test_load_json_settings_from_env_path(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"sources": [{"kind": "http", "location": "https://cfg/{name}/{profiles}"}]}),
        encoding="utf-8",
    )

    settings = load_settings(environ={"CONFIGWATCH_CONFIG": str(path)})

    assert settings.sources[0].kind == "endpoint"


def test_environment_overrides(tmp_path: Path) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text(SETTINGS_YAML, encoding="utf-8")

    settings = load_settings(
        path,
        environ={
            "CONFIGWATCH_PROFILES": "dev, eu",
            "CONFIGWATCH_FETCH_TIMEOUT": "2.5",
            "CONFIGWATCH_CACHE_DIR": str(tmp_path / "mirrors"),
        },
    )

    assert settings.profiles == ["dev", "eu"]
    assert settings.cache_dir == str(tmp_path / "mirrors")
    assert all(source.timeout_seconds == 2.5 for source in settings.to_sources())


def test_missing_default_file_yields_empty_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    settings = load_settings(environ={})

    assert settings == WatchSettings()


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(SettingsError, match="not found"):
        load_settings(tmp_path / "absent.yaml", environ={})


@pytest.mark.parametrize(
    "content",
    [
        "sources: [unclosed\n",
        "- a list\n",
        "unknown_field: 1\n",
        "sources:\n  - kind: vault\n    location: x\n",
        "sources:\n  - kind: directory\n    location: '  '\n",
        "sources:\n  - kind: directory\n    location: /x\n    colour: red\n",
        "max_consecutive_failures: 0\n",
    ],
)
def test_invalid_settings_raise_settings_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SettingsError):
        load_settings(path, environ={})


def test_bad_timeout_override_is_an_error(tmp_path: Path) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text("sources: []\n", encoding="utf-8")

    with pytest.raises(SettingsError, match="CONFIGWATCH_FETCH_TIMEOUT"):
        load_settings(path, environ={"CONFIGWATCH_FETCH_TIMEOUT": "soon"})


def test_log_level_is_not_a_settings_field(tmp_path: Path) -> None:
    path = tmp_path / "configwatch.yaml"
    path.write_text("log_level: DEBUG\n", encoding="utf-8")

    with pytest.raises(SettingsError, match="log_level"):
        load_settings(path, environ={})
