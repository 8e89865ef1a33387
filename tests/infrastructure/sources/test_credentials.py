from __future__ import annotations

import base64
from pathlib import Path

import pytest

from configwatch.domain.errors import AuthError, FetchError
from configwatch.infrastructure.sources import Credentials, resolve_credentials


def test_no_reference_means_no_credentials() -> None:
    assert resolve_credentials(None) is None
    assert resolve_credentials("") is None


def test_env_reference_resolves_bearer_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONFIG_TOKEN", "s3cret\n")

    credentials = resolve_credentials("env:CONFIG_TOKEN")

    assert credentials == Credentials("s3cret")
    assert credentials.authorization_header() == "Bearer s3cret"
    assert "s3cret" not in repr(credentials)


def test_file_reference_with_user_password_uses_basic_auth(tmp_path: Path) -> None:
    secret = tmp_path / "token"
    secret.write_text("deploy:hunter2\n", encoding="utf-8")

    credentials = resolve_credentials(f"file:{secret}")

    expected = base64.b64encode(b"deploy:hunter2").decode("ascii")
    assert credentials is not None
    assert credentials.is_basic
    assert credentials.authorization_header() == f"Basic {expected}"


@pytest.mark.parametrize("ref", ["token", "env:", "vault:path", "env:CONFIGWATCH_UNSET_VAR", "file:/nonexistent/secret"])
def test_unresolvable_references_raise_auth_error(ref: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CONFIGWATCH_UNSET_VAR", raising=False)

    with pytest.raises(AuthError):
        resolve_credentials(ref)


def test_auth_error_is_a_fetch_error() -> None:
    assert issubclass(AuthError, FetchError)


def test_fetch_error_reasons() -> None:
    assert FetchError("down").reason == "io"
    assert FetchError("slow", reason="timeout").timed_out
    assert AuthError("denied").reason == "auth"
    assert not AuthError("denied").timed_out
