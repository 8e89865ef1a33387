"""Adapter for configuration stored in a git repository.

Each repository source is mirrored into a bare cache directory. The first
fetch clones, later fetches update the mirror, and documents are read straight
from the object database at the resolved commit, so no working tree is ever
checked out. All git calls of one fetch share the source's timeout budget.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator

from configwatch.domain.errors import AuthError, FetchError
from configwatch.domain.models import (
    ConfigSource,
    MergePlan,
    RawDocument,
    SourceKind,
    classify_document,
)
from configwatch.infrastructure.observability import get_logger

from .base import SourceAdapter
from .credentials import resolve_credentials

logger = get_logger(__name__)

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "permission denied (publickey",
    "invalid username or password",
    "terminal prompts disabled",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
)


def default_cache_dir() -> Path:
    """Return the directory holding repository mirrors."""
    configured = os.environ.get("CONFIGWATCH_CACHE_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path(tempfile.gettempdir()) / "configwatch-mirrors"


class RepositorySourceAdapter(SourceAdapter):
    """Reads documents from a branch tip or a pinned revision of a git repo.

    Only one fetch works on a given mirror at a time; a second caller waits
    for the lock within its own deadline and fails with reason ``busy``.
    """

    kind = SourceKind.REPOSITORY

    def __init__(self, cache_dir: Path | str | None = None, git_executable: str = "git") -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.git_executable = git_executable
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -------------------- git plumbing --------------------
    def mirror_path(self, source: ConfigSource) -> Path:
        digest = hashlib.sha1(source.location.encode("utf-8")).hexdigest()[:16]
        return self.cache_dir / f"{digest}.git"

    def _mirror_lock(self, mirror: Path) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(mirror, threading.Lock())

    @staticmethod
    def _remaining(source: ConfigSource, deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FetchError(
                f"git fetch exceeded {source.timeout_seconds}s",
                source=source.description,
                reason="timeout",
            )
        return remaining

    def git_command(
        self, args: list[str], *, auth_header: str | None = None
    ) -> tuple[list[str], dict[str, str]]:
        """Return the argv and environment for one git invocation.

        The authorization header travels in ``GIT_CONFIG_*`` variables so the
        secret never shows up in the process list.
        """
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}
        if auth_header:
            env.update(
                {
                    "GIT_CONFIG_COUNT": "1",
                    "GIT_CONFIG_KEY_0": "http.extraHeader",
                    "GIT_CONFIG_VALUE_0": f"Authorization: {auth_header}",
                }
            )
        return [self.git_executable, *args], env

    def _run(
        self,
        args: list[str],
        source: ConfigSource,
        deadline: float,
        *,
        auth_header: str | None = None,
    ) -> bytes:
        remaining = self._remaining(source, deadline)
        command, env = self.git_command(args, auth_header=auth_header)
        try:
            # run() kills the child when the timeout expires
            completed = subprocess.run(
                command, capture_output=True, timeout=remaining, env=env, check=False
            )
        except subprocess.TimeoutExpired as exc:
            raise FetchError(
                f"git {args[0]} timed out after {source.timeout_seconds}s",
                source=source.description,
                reason="timeout",
            ) from exc
        except OSError as exc:
            raise FetchError(f"Cannot run git: {exc}", source=source.description) from exc

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            lowered = stderr.lower()
            if any(marker in lowered for marker in _AUTH_MARKERS):
                raise AuthError(
                    f"Repository rejected credentials: {stderr}", source=source.description
                )
            raise FetchError(f"git {args[0]} failed: {stderr}", source=source.description)
        return completed.stdout

    def _git_dir_args(self, mirror: Path) -> list[str]:
        return ["--git-dir", str(mirror)]

    def _resolve(self, mirror: Path, ref: str, source: ConfigSource, deadline: float) -> str | None:
        try:
            out = self._run(
                self._git_dir_args(mirror) + ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                source,
                deadline,
            )
        except AuthError:
            raise
        except FetchError as exc:
            if exc.timed_out:
                raise
            return None
        return out.decode("ascii").strip() or None

    def _sync_mirror(self, source: ConfigSource, deadline: float) -> Path:
        mirror = self.mirror_path(source)
        credentials = resolve_credentials(source.credentials_ref)
        auth_header = credentials.authorization_header() if credentials else None

        if (mirror / "HEAD").exists():
            if source.revision and self._resolve(mirror, source.revision, source, deadline):
                # Pinned revision already present locally; nothing to fetch
                return mirror
            self._run(
                self._git_dir_args(mirror) + ["fetch", "--prune", "--quiet", "origin"],
                source,
                deadline,
                auth_header=auth_header,
            )
            return mirror

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Cloning configuration repository %s", source.location)
        try:
            self._run(
                ["clone", "--mirror", "--quiet", "--", source.location, str(mirror)],
                source,
                deadline,
                auth_header=auth_header,
            )
        except FetchError:
            shutil.rmtree(mirror, ignore_errors=True)
            raise
        return mirror

    # -------------------- adapter contract --------------------
    def _checkout(self, source: ConfigSource, deadline: float) -> tuple[Path, str]:
        mirror = self._sync_mirror(source, deadline)
        commit = self._resolve(mirror, source.ref, source, deadline)
        if commit is None:
            raise FetchError(f"Unknown revision '{source.ref}'", source=source.description)
        return mirror, commit

    def resolve_commit(self, source: ConfigSource) -> str:
        """Update the mirror and return the commit the source points at."""
        deadline = time.monotonic() + source.timeout_seconds
        with self._locked(source, deadline):
            return self._checkout(source, deadline)[1]

    def fetch(
        self, source: ConfigSource, plan: MergePlan | None = None
    ) -> frozenset[RawDocument]:
        deadline = time.monotonic() + source.timeout_seconds
        with self._locked(source, deadline):
            return self._read_documents(source, plan, deadline)

    @contextmanager
    def _locked(self, source: ConfigSource, deadline: float) -> Iterator[None]:
        lock = self._mirror_lock(self.mirror_path(source))
        if not lock.acquire(timeout=self._remaining(source, deadline)):
            raise FetchError(
                f"Mirror of {source.location} is busy with another fetch",
                source=source.description,
                reason="busy",
            )
        try:
            yield
        finally:
            lock.release()

    def _read_documents(
        self, source: ConfigSource, plan: MergePlan | None, deadline: float
    ) -> frozenset[RawDocument]:
        mirror, commit = self._checkout(source, deadline)

        search_path = source.search_path.strip("/")
        ls_args = self._git_dir_args(mirror) + ["ls-tree", "--name-only", commit]
        if search_path:
            ls_args += ["--", f"{search_path}/"]
        listing = self._run(ls_args, source, deadline).decode("utf-8").splitlines()

        documents: set[RawDocument] = set()
        for path in listing:
            classified = classify_document(PurePosixPath(path).name, source.name)
            if classified is None:
                continue
            profile, fmt = classified
            if not self.wanted(profile, plan):
                continue
            content = self._run(
                self._git_dir_args(mirror) + ["cat-file", "blob", f"{commit}:{path}"],
                source,
                deadline,
            )
            documents.add(
                RawDocument(
                    name=PurePosixPath(path).name,
                    content=content,
                    format=fmt,
                    profile=profile,
                    origin=f"{source.location}@{commit[:12]}:{path}",
                )
            )
        logger.debug(
            "Read %d documents from %s at %s", len(documents), source.location, commit[:12]
        )
        return frozenset(documents)


__all__ = ["RepositorySourceAdapter", "default_cache_dir"]
