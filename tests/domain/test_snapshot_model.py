from __future__ import annotations

import pytest

from configwatch.domain.errors import TypeMismatchError
from configwatch.domain.models import ConfigSnapshot, ConfigValue, ValueType


def _snapshot() -> ConfigSnapshot:
    return ConfigSnapshot.from_mapping(
        {
            "server": {"port": 8080, "host": "localhost", "debug": False},
            "db": {"timeout": "30", "ratio": 0.5},
            "hosts": ["a", "b"],
            "flag": "yes",
            "unset": None,
        },
        version=3,
    )


def test_empty_snapshot_has_version_zero() -> None:
    snapshot = ConfigSnapshot.empty()

    assert snapshot.version == 0
    assert len(snapshot) == 0
    assert snapshot.get("anything", default="fallback") == "fallback"


def test_values_are_flattened_and_typed() -> None:
    snapshot = _snapshot()

    assert snapshot.keys() == [
        "server.port",
        "server.host",
        "server.debug",
        "db.timeout",
        "db.ratio",
        "hosts[0]",
        "hosts[1]",
        "flag",
    ]
    assert snapshot.value("server.port") == ConfigValue(ValueType.NUMBER, 8080)
    assert snapshot.value("server.debug").type is ValueType.BOOLEAN
    assert "unset" not in snapshot
    assert "server" in snapshot


def test_get_coerces_to_requested_type() -> None:
    snapshot = _snapshot()

    assert snapshot.get("server.port") == 8080
    assert snapshot.get("server.port", str) == "8080"
    assert snapshot.get("db.timeout", int) == 30
    assert snapshot.get("db.ratio", float) == 0.5
    assert snapshot.get("flag", bool) is True
    assert snapshot.get("server.debug", str) == "false"
    assert snapshot.get("db.timeout", ValueType.NUMBER) == 30


def test_get_returns_subtrees() -> None:
    snapshot = _snapshot()

    assert snapshot.get("server") == {"port": 8080, "host": "localhost", "debug": False}
    assert snapshot.get("hosts") == ["a", "b"]
    assert snapshot.get("hosts", list) == ["a", "b"]
    assert snapshot.get("db", dict) == {"timeout": "30", "ratio": 0.5}


@pytest.mark.parametrize(
    ("key", "requested"),
    [
        ("server.host", int),
        ("server.host", bool),
        ("db.ratio", int),
        ("server.port", dict),
        ("server", int),
        ("hosts", dict),
    ],
)
def test_get_raises_type_mismatch(key: str, requested: object) -> None:
    with pytest.raises(TypeMismatchError) as excinfo:
        _snapshot().get(key, requested)

    assert excinfo.value.key == key


def test_snapshot_cannot_be_mutated() -> None:
    source = {"a": ConfigValue.of(1)}
    snapshot = ConfigSnapshot(values=source, version=1)
    source["b"] = ConfigValue.of(2)

    assert "b" not in snapshot
    with pytest.raises(TypeError):
        snapshot.values["c"] = ConfigValue.of(3)  # type: ignore[index]


def test_as_dict_rebuilds_nested_structure() -> None:
    assert _snapshot().as_dict() == {
        "server": {"port": 8080, "host": "localhost", "debug": False},
        "db": {"timeout": "30", "ratio": 0.5},
        "hosts": ["a", "b"],
        "flag": "yes",
    }
