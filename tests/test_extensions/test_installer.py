"""Tests for tykctl.extensions.installer -- install, remove, reconcile, search."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest
import yaml

from tykctl.exceptions import ConflictError, HookError, NotFoundError
from tykctl.extensions import ExtensionInstaller
from tykctl.extensions.installer import OWNER_MARKER
from tykctl.hooks import HookData, HookManager
from tykctl.models import Installed

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX mode bits")


@pytest.fixture
def hooks(tmp_path: Path) -> HookManager:
    return HookManager(hook_dir=tmp_path / "hooks")


@pytest.fixture
def installer(tmp_path: Path, hooks: HookManager) -> ExtensionInstaller:
    return ExtensionInstaller(
        tmp_path / "config", hooks=hooks, extensions_dir=tmp_path / "data" / "extensions"
    )


class TestInstall:
    @posix_only
    def test_writes_binary_and_registry(self, tmp_path: Path, installer: ExtensionInstaller) -> None:
        record = installer.install("acme", "widgets")

        binary = tmp_path / "data" / "extensions" / "tykctl-widgets" / "tykctl-widgets"
        assert record.path == str(binary)
        assert binary.read_text() == (
            '#!/bin/bash\necho "Extension acme/widgets is not yet implemented"\n'
        )
        assert binary.stat().st_mode & 0o111

        raw = yaml.safe_load((tmp_path / "config" / "extensions.yaml").read_text())
        assert raw["widgets"]["version"] == "1.0.0"
        assert raw["widgets"]["repository"] == "https://github.com/acme/widgets"
        assert raw["widgets"]["path"] == str(binary)

    def test_writes_owner_marker(self, tmp_path: Path, installer: ExtensionInstaller) -> None:
        installer.install("acme", "widgets")
        marker = tmp_path / "data" / "extensions" / "tykctl-widgets" / OWNER_MARKER
        assert marker.read_text() == str((tmp_path / "config").resolve())

    def test_conflict_without_force(self, installer: ExtensionInstaller) -> None:
        installer.install("acme", "widgets")
        with pytest.raises(ConflictError, match="--force"):
            installer.install("acme", "widgets")

    def test_force_reinstalls(self, installer: ExtensionInstaller) -> None:
        first = installer.install("acme", "widgets")
        second = installer.install("other", "widgets", force=True)
        assert second.repository == "https://github.com/other/widgets"
        assert second.installed_at >= first.installed_at
        assert "other/widgets" in Path(second.path).read_text()

    def test_before_hook_failure_writes_nothing(
        self, tmp_path: Path, installer: ExtensionInstaller, hooks: HookManager
    ) -> None:
        def refuse(data: HookData) -> None:
            raise RuntimeError("not on my watch")

        hooks.register_builtin("before-install", refuse)
        with pytest.raises(HookError, match="before install hook failed"):
            installer.install("acme", "widgets")

        assert not (tmp_path / "data" / "extensions").exists()
        assert installer.list_installed() == []

    def test_after_hook_failure_keeps_install(
        self, installer: ExtensionInstaller, hooks: HookManager
    ) -> None:
        hooks.register_builtin("after-install", lambda d: 1 / 0)
        record = installer.install("acme", "widgets")
        assert Path(record.path).exists()
        assert [r.name for r in installer.list_installed()] == ["widgets"]

    def test_hook_payloads(self, installer: ExtensionInstaller, hooks: HookManager) -> None:
        seen: list[HookData] = []
        hooks.register_builtin("before-install", seen.append)
        hooks.register_builtin("after-install", seen.append)
        record = installer.install("acme", "widgets")

        before, after = seen
        assert before.event == "before-install"
        assert before.extension_path == ""
        assert before.metadata == {"owner": "acme", "repo": "widgets"}
        assert after.event == "after-install"
        assert after.extension_path == record.path
        assert after.metadata["version"] == "1.0.0"


class TestRemove:
    def test_removes_directory_and_record(self, installer: ExtensionInstaller) -> None:
        record = installer.install("acme", "widgets")
        removed = installer.remove("widgets")

        assert removed.name == "widgets"
        assert not Path(record.path).parent.exists()
        assert installer.list_installed() == []

    def test_record_outside_extensions_dir_keeps_files(
        self, tmp_path: Path, installer: ExtensionInstaller, monkeypatch, caplog
    ) -> None:
        work = tmp_path / "work"
        work.mkdir()
        precious = work / "precious.txt"
        precious.write_text("keep me")
        monkeypatch.chdir(work)
        installer.registry.put(
            Installed(
                name="foo",
                version="1.0.0",
                repository="https://github.com/acme/foo",
                installed_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
                path="tykctl-foo",
            )
        )

        installer.remove("foo")

        assert precious.read_text() == "keep me"
        assert installer.registry.get("foo") is None
        assert "removing the record only" in caplog.text

    def test_unknown_extension(self, installer: ExtensionInstaller) -> None:
        with pytest.raises(NotFoundError, match="tykctl extension list"):
            installer.remove("widgets")

    def test_before_hook_failure_keeps_everything(
        self, installer: ExtensionInstaller, hooks: HookManager
    ) -> None:
        record = installer.install("acme", "widgets")
        hooks.register_builtin("before-uninstall", lambda d: 1 / 0)
        with pytest.raises(HookError, match="before uninstall hook failed"):
            installer.remove("widgets")
        assert Path(record.path).exists()
        assert installer.registry.get("widgets") is not None

    def test_uninstall_hooks_see_record(
        self, installer: ExtensionInstaller, hooks: HookManager
    ) -> None:
        seen: list[HookData] = []
        hooks.register_builtin("after-uninstall", seen.append)
        installer.install("acme", "widgets")
        installer.remove("widgets")

        [data] = seen
        assert data.metadata == {
            "version": "1.0.0",
            "repository": "https://github.com/acme/widgets",
        }


class TestListAndReconcile:
    def test_list_sorted(self, installer: ExtensionInstaller) -> None:
        installer.install("acme", "zeta")
        installer.install("acme", "alpha")
        assert [r.name for r in installer.list_installed()] == ["alpha", "zeta"]

    def test_reconcile_removes_orphans(self, tmp_path: Path, installer: ExtensionInstaller) -> None:
        installer.install("acme", "widgets")
        installer.install("acme", "orphan")
        installer.registry.delete("orphan")
        orphan = tmp_path / "data" / "extensions" / "tykctl-orphan"
        unrelated = tmp_path / "data" / "extensions" / "notes"
        unrelated.mkdir()

        assert installer.reconcile() == [orphan]
        assert not orphan.exists()
        assert unrelated.exists()
        assert Path(installer.binary_path("widgets")).exists()

    def test_reconcile_keeps_unmarked_directories(
        self, tmp_path: Path, installer: ExtensionInstaller
    ) -> None:
        manual = tmp_path / "data" / "extensions" / "tykctl-manual"
        manual.mkdir(parents=True)
        (manual / "tykctl-manual").write_text("x")

        assert installer.reconcile() == []
        assert manual.exists()

    def test_reconcile_ignores_other_registries(self, tmp_path: Path, hooks: HookManager) -> None:
        shared = tmp_path / "data" / "extensions"
        first = ExtensionInstaller(tmp_path / "cfg-a", hooks=hooks, extensions_dir=shared)
        second = ExtensionInstaller(tmp_path / "cfg-b", hooks=hooks, extensions_dir=shared)
        record = first.install("acme", "widgets")

        assert second.reconcile() == []
        assert Path(record.path).exists()
        assert first.reconcile() == []

    def test_reconcile_without_dir(self, installer: ExtensionInstaller) -> None:
        assert installer.reconcile() == []


class TestSearch:
    def _installer(self, tmp_path: Path, handler, token=None) -> ExtensionInstaller:
        return ExtensionInstaller(
            tmp_path / "config",
            hooks=HookManager(hook_dir=tmp_path / "hooks"),
            extensions_dir=tmp_path / "extensions",
            github_token=token,
            transport=httpx.MockTransport(handler),
        )

    def test_query_and_results(self, tmp_path: Path) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "name": "widgets",
                            "full_name": "acme/widgets",
                            "description": "Widget tooling",
                            "stargazers_count": 42,
                            "updated_at": "2026-03-01T00:00:00Z",
                        },
                        {"name": "gadgets", "full_name": "acme/gadgets", "stargazers_count": 7},
                    ]
                },
            )

        results = self._installer(tmp_path, handler, token="secret").search("gateway", limit=5)

        assert [r.name for r in results] == ["widgets", "gadgets"]
        assert results[0].stars == 42
        assert results[1].description is None

        [request] = requests
        assert request.url.path == "/search/repositories"
        assert request.url.params["q"] == "topic:tykctl-extension gateway"
        assert request.url.params["sort"] == "stars"
        assert request.url.params["per_page"] == "5"
        assert request.headers["Authorization"] == "Bearer secret"

    def test_empty_query(self, tmp_path: Path) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params["q"])
            return httpx.Response(200, json={"items": []})

        assert self._installer(tmp_path, handler).search() == []
        assert seen == ["topic:tykctl-extension"]

    def test_http_error_yields_empty(self, tmp_path: Path, caplog) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "rate limited"})

        assert self._installer(tmp_path, handler).search("x") == []
        assert "Extension search failed" in caplog.text

    def test_malformed_items_are_skipped(self, tmp_path: Path, caplog) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": [{"full_name": "x"}, {"name": "ok"}]})

        results = self._installer(tmp_path, handler).search("x")
        assert [r.name for r in results] == ["ok"]
        assert "Skipping malformed search result" in caplog.text

    def test_network_error_yields_empty(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        assert self._installer(tmp_path, handler).search("x") == []
