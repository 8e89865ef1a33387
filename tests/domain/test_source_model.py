from __future__ import annotations

import pytest

from configwatch.domain.models import ConfigSource, DocumentFormat, SourceKind, classify_document


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("git", SourceKind.REPOSITORY),
        ("Repository", SourceKind.REPOSITORY),
        ("dir", SourceKind.DIRECTORY),
        ("native", SourceKind.DIRECTORY),
        ("https", SourceKind.ENDPOINT),
    ],
)
def test_source_kind_aliases(raw: str, expected: SourceKind) -> None:
    assert SourceKind.from_string(raw) is expected


def test_unknown_source_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        SourceKind.from_string("vault")


def test_config_source_defaults_and_ref() -> None:
    source = ConfigSource(kind=SourceKind.REPOSITORY, location="https://git.example.com/cfg.git")

    assert source.name == "application"
    assert source.ref == "main"
    assert source.timeout_seconds == 10.0
    assert source.description == "repository:https://git.example.com/cfg.git@main"

    pinned = ConfigSource(kind="git", location="/srv/cfg.git", revision="v1.2.0")  # type: ignore[arg-type]
    assert pinned.kind is SourceKind.REPOSITORY
    assert pinned.ref == "v1.2.0"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"location": "  "},
        {"location": "/etc/app", "timeout_seconds": 0},
        {"location": "/etc/app", "poll_interval_seconds": -1},
    ],
)
def test_config_source_validation(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        ConfigSource(kind=SourceKind.DIRECTORY, **kwargs)


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("application.yml", ("default", DocumentFormat.YAML)),
        ("application-prod.properties", ("prod", DocumentFormat.PROPERTIES)),
        ("application-eu-west.json", ("eu-west", DocumentFormat.JSON)),
        ("application-.yml", None),
        ("other.yml", None),
        ("application.txt", None),
    ],
)
def test_classify_document(filename: str, expected: tuple | None) -> None:
    assert classify_document(filename, "application") == expected
