from __future__ import annotations

import asyncio
from pathlib import Path

from configwatch.app.config import WatchSettings
from configwatch.services import ConfigWatcher


def _settings(config_dir: Path, **kwargs) -> WatchSettings:
    return WatchSettings.model_validate(
        {"sources": [{"kind": "directory", "location": str(config_dir)}], **kwargs}
    )


def test_watcher_from_settings_serves_merged_values(tmp_path: Path) -> None:
    (tmp_path / "application.yml").write_text("timeout: 30\nretries: 3\n", encoding="utf-8")
    (tmp_path / "application-prod.yml").write_text("timeout: 60\n", encoding="utf-8")
    watcher = ConfigWatcher.from_settings(_settings(tmp_path, profiles=["prod"]))

    result = asyncio.run(watcher.refresh_now())

    assert result.status == "success"
    assert watcher.plan.profiles == ("default", "prod")
    assert watcher.get("timeout", int) == 60
    assert watcher.current().as_dict() == {"timeout": 60, "retries": 3}


def test_profile_argument_overrides_settings(tmp_path: Path) -> None:
    (tmp_path / "application.yml").write_text("mode: base\n", encoding="utf-8")
    (tmp_path / "application-dev.yml").write_text("mode: dev\n", encoding="utf-8")
    watcher = ConfigWatcher.from_settings(_settings(tmp_path, profiles=["prod"]), profiles=["dev"])

    asyncio.run(watcher.refresh_now())

    assert watcher.get("mode") == "dev"


def test_watcher_callbacks(tmp_path: Path) -> None:
    config_file = tmp_path / "application.yml"
    config_file.write_text("value: 1\n", encoding="utf-8")
    watcher = ConfigWatcher.from_settings(
        _settings(tmp_path, max_consecutive_failures=1, retry_interval_seconds=0)
    )
    changes: list[tuple[int, int]] = []
    degraded: list[str] = []
    recovered: list[int] = []
    watcher.on_change(lambda old, new: changes.append((old.version, new.version)))
    watcher.on_degraded(lambda status: degraded.append(status.last_error))
    watcher.on_recovered(lambda status: recovered.append(status.version))

    async def run() -> None:
        await watcher.refresh_now()
        config_file.write_text("value: [unclosed\n", encoding="utf-8")
        await watcher.refresh_now()
        config_file.write_text("value: 2\n", encoding="utf-8")
        await watcher.refresh_now()

    asyncio.run(run())

    assert changes == [(0, 1), (1, 2)]
    assert len(degraded) == 1
    assert "application.yml" in degraded[0]
    assert recovered == [2]
    assert watcher.status()["total_failures"] == 1
