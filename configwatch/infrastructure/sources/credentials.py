"""Resolution of ``credentials_ref`` values.

A reference never contains the secret itself. Supported forms:

- ``env:VAR`` reads the secret from an environment variable.
- ``file:/run/secrets/config_token`` reads it from a (Docker secret) file.

A secret of the form ``user:password`` is sent as HTTP basic auth; anything
else is sent as a bearer token.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from pathlib import Path

from configwatch.domain.errors import AuthError


@dataclass(frozen=True)
class Credentials:
    """A resolved secret ready to be turned into an Authorization header."""

    secret: str

    def __repr__(self) -> str:
        return "Credentials(secret=***)"

    @property
    def is_basic(self) -> bool:
        return ":" in self.secret

    def authorization_header(self) -> str:
        if self.is_basic:
            encoded = base64.b64encode(self.secret.encode("utf-8")).decode("ascii")
            return f"Basic {encoded}"
        return f"Bearer {self.secret}"


def resolve_credentials(ref: str | None) -> Credentials | None:
    """Resolve ``ref`` to :class:`Credentials`, or None when no ref is set.

    Raises:
        AuthError: If the reference is malformed or points at nothing.
    """
    if not ref:
        return None
    scheme, sep, target = ref.partition(":")
    if not sep or not target:
        raise AuthError(f"Malformed credentials reference {ref!r}; use env:VAR or file:PATH")

    if scheme == "env":
        secret = os.environ.get(target)
        if not secret:
            raise AuthError(f"Credentials variable {target} is not set")
    elif scheme == "file":
        try:
            secret = Path(target).expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            raise AuthError(f"Cannot read credentials file {target}: {exc}") from exc
    else:
        raise AuthError(f"Unknown credentials scheme {scheme!r} in {ref!r}")

    secret = secret.strip()
    if not secret:
        raise AuthError(f"Credentials reference {ref!r} resolved to an empty secret")
    return Credentials(secret)


__all__ = ["Credentials", "resolve_credentials"]
