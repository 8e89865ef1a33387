from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from configwatch.domain.errors import FetchError
from configwatch.domain.models import ConfigSource, MergePlan, SourceKind
from configwatch.infrastructure.parsers import parse_document
from configwatch.infrastructure.sources import RepositorySourceAdapter

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-c", "user.name=Config Bot", "-c", "user.email=bot@example.com", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


def _commit(repo: Path, files: dict[str, str], message: str) -> str:
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    _git(repo, "add", "--all")
    _git(repo, "commit", "--quiet", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture()
def config_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "config-repo"
    repo.mkdir()
    _git(repo, "init", "--quiet")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    _commit(
        repo,
        {
            "application.yml": "timeout: 30\nretries: 3\n",
            "application-prod.yml": "timeout: 60\n",
            "notes.txt": "not configuration\n",
        },
        "initial",
    )
    return repo


def _source(repo: Path, **kwargs) -> ConfigSource:
    return ConfigSource(kind=SourceKind.REPOSITORY, location=str(repo), timeout_seconds=30, **kwargs)


def _by_name(documents) -> dict[str, dict]:
    return {doc.name: parse_document(doc) for doc in documents}


def test_fetches_branch_tip(config_repo: Path, tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    documents = adapter.fetch(_source(config_repo), MergePlan.from_active("prod"))

    assert _by_name(documents) == {
        "application.yml": {"timeout": 30, "retries": 3},
        "application-prod.yml": {"timeout": 60},
    }
    head = _git(config_repo, "rev-parse", "HEAD")
    assert all(doc.origin.startswith(f"{config_repo}@{head[:12]}:") for doc in documents)
    assert adapter.mirror_path(_source(config_repo)).is_dir()


def test_later_fetch_sees_new_commits(config_repo: Path, tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")
    source = _source(config_repo)
    adapter.fetch(source)

    new_head = _commit(config_repo, {"application.yml": "timeout: 45\n"}, "bump timeout")

    assert adapter.resolve_commit(source) == new_head
    assert _by_name(adapter.fetch(source))["application.yml"] == {"timeout": 45}


def test_pinned_revision_ignores_newer_commits(config_repo: Path, tmp_path: Path) -> None:
    _git(config_repo, "tag", "v1")
    _commit(config_repo, {"application.yml": "timeout: 99\n"}, "later change")
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    documents = adapter.fetch(_source(config_repo, revision="v1"))

    assert _by_name(documents)["application.yml"] == {"timeout": 30, "retries": 3}


def test_search_path_limits_listing(config_repo: Path, tmp_path: Path) -> None:
    _commit(config_repo, {"billing/application.yml": "currency: EUR\n"}, "billing config")
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    documents = adapter.fetch(_source(config_repo, search_path="billing"))

    assert _by_name(documents) == {"application.yml": {"currency": "EUR"}}


def test_unknown_revision_raises_fetch_error(config_repo: Path, tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    with pytest.raises(FetchError, match="Unknown revision"):
        adapter.fetch(_source(config_repo, branch="does-not-exist"))


def test_unreachable_repository_raises_fetch_error(tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    with pytest.raises(FetchError):
        adapter.fetch(_source(tmp_path / "missing-repo"))
    assert not adapter.mirror_path(_source(tmp_path / "missing-repo")).exists()


def test_auth_header_is_passed_in_environment(tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    command, env = adapter.git_command(["fetch", "origin"], auth_header="Bearer s3cret")

    assert command == ["git", "fetch", "origin"]
    assert not any("s3cret" in part for part in command)
    assert env["GIT_CONFIG_COUNT"] == "1"
    assert env["GIT_CONFIG_KEY_0"] == "http.extraHeader"
    assert env["GIT_CONFIG_VALUE_0"] == "Authorization: Bearer s3cret"


def test_git_command_without_credentials_sets_no_header(tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")

    _, env = adapter.git_command(["fetch", "origin"])

    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert not any(value.startswith("Authorization:") for value in env.values())


def test_busy_mirror_fails_with_busy_reason(config_repo: Path, tmp_path: Path) -> None:
    adapter = RepositorySourceAdapter(cache_dir=tmp_path / "cache")
    source = ConfigSource(
        kind=SourceKind.REPOSITORY, location=str(config_repo), timeout_seconds=0.2
    )
    lock = adapter._mirror_lock(adapter.mirror_path(source))
    lock.acquire()
    try:
        with pytest.raises(FetchError) as excinfo:
            adapter.fetch(source)
    finally:
        lock.release()

    assert excinfo.value.reason == "busy"
    assert not adapter.mirror_path(source).exists()
