"""Install, remove, list, and search tykctl extensions.

Each installed extension owns one directory::

    <data_dir>/extensions/tykctl-<name>/tykctl-<name>

and one record in the registry (see
:mod:`tykctl.extensions.registry`). Install writes the binary first and
the registry record last; removal deletes the directory first and the
record last. A crash between the two steps therefore leaves at worst an
orphan directory, which :meth:`ExtensionInstaller.reconcile` cleans up.

Several config directories (and so several registries) may share one
extensions directory. Install writes an owner marker (``.tykctl-owner``,
holding the resolved config directory) before the binary, and reconcile
only reaps directories whose marker names its own config directory.

Every operation fires its ``before-*`` and ``after-*`` hooks. A failing
``before`` hook aborts the operation with no side effects; a failing
``after`` hook is logged and the completed operation stands.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import httpx
from pydantic import ValidationError

from tykctl.config import get_extensions_dir
from tykctl.exceptions import ConflictError, HookError, NotFoundError, PluginError
from tykctl.extensions.registry import ExtensionRegistry
from tykctl.hooks import HookData, HookEvent, HookManager
from tykctl.models import ExtensionInfo, Installed
from tykctl.naming import extension_binary_name, extension_name_from_binary, validate_name
from tykctl.platform import write_executable

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
EXTENSION_TOPIC = "tykctl-extension"
DEFAULT_VERSION = "1.0.0"
OWNER_MARKER = ".tykctl-owner"


def _stub_binary(owner: str, repo: str) -> str:
    return f'#!/bin/bash\necho "Extension {owner}/{repo} is not yet implemented"\n'


class ExtensionInstaller:
    """Manages the installed set of extensions.

    Args:
        config_dir: Directory holding ``extensions.yaml``.
        hooks: Hook manager fired around install and removal. A manager
            over the default hook directory is created when omitted.
        extensions_dir: Root of the per-extension binary directories.
            Defaults to :func:`tykctl.config.get_extensions_dir`.
        github_token: Optional token sent with search requests.
        transport: Optional httpx transport, used by tests to stub GitHub.
    """

    def __init__(
        self,
        config_dir: Path,
        hooks: Optional[HookManager] = None,
        extensions_dir: Optional[Path] = None,
        github_token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.registry = ExtensionRegistry(self.config_dir)
        self.hooks = hooks if hooks is not None else HookManager()
        self.extensions_dir = Path(extensions_dir) if extensions_dir else get_extensions_dir()
        self._github_token = github_token
        self._transport = transport

    def binary_path(self, name: str) -> Path:
        """Return where the binary of extension *name* is installed."""
        binary = extension_binary_name(name)
        return self.extensions_dir / binary / binary

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def search(self, query: str = "", limit: int = 30) -> list[ExtensionInfo]:
        """Search GitHub for repositories tagged ``tykctl-extension``.

        Results are sorted by stars, most first. Network and API failures
        are logged and yield an empty list.
        """
        q = f"topic:{EXTENSION_TOPIC} {query}".strip()
        headers = {"Accept": "application/vnd.github+json"}
        if self._github_token:
            headers["Authorization"] = f"Bearer {self._github_token}"
        logger.debug("Searching extensions: %s (limit %d)", q, limit)

        try:
            with httpx.Client(
                base_url=GITHUB_API_URL,
                headers=headers,
                timeout=30.0,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = client.get(
                    "/search/repositories",
                    params={"q": q, "sort": "stars", "order": "desc", "per_page": limit},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Extension search failed: %s", exc)
            return []

        items = payload.get("items", []) if isinstance(payload, dict) else []
        results: list[ExtensionInfo] = []
        for item in items[:limit]:
            try:
                results.append(ExtensionInfo.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed search result: %s", exc)
        logger.info("Found %d extension(s) for %r", len(results), query)
        return results

    # ------------------------------------------------------------------ #
    # Install / remove
    # ------------------------------------------------------------------ #

    def install(self, owner: str, repo: str, force: bool = False) -> Installed:
        """Install extension *repo* from ``github.com/<owner>/<repo>``.

        Args:
            owner: Repository owner.
            repo: Repository name; becomes the extension name.
            force: Overwrite an existing binary instead of failing.

        Returns:
            The registry record that was written.

        Raises:
            HookError: If a ``before-install`` hook fails. Nothing is written.
            ConflictError: If the binary exists and *force* is false.
            PluginError: If the binary cannot be written.
            RegistryError: If the registry cannot be updated.
        """
        validate_name(owner, "repository owner")
        validate_name(repo, "extension name")
        binary_path = self.binary_path(repo)
        logger.info("Installing extension %s/%s", owner, repo)

        self._before(
            HookEvent.BEFORE_INSTALL,
            HookData(extension_name=repo, metadata={"owner": owner, "repo": repo}),
            "install",
        )

        if binary_path.exists() and not force:
            raise ConflictError(
                f"Extension {repo} is already installed at {binary_path}. "
                "Use --force to reinstall."
            )

        try:
            binary_path.parent.mkdir(parents=True, exist_ok=True)
            (binary_path.parent / OWNER_MARKER).write_text(self._owner_id(), encoding="utf-8")
            write_executable(binary_path, _stub_binary(owner, repo))
        except OSError as exc:
            raise PluginError(f"Failed to create extension binary {binary_path}: {exc}") from exc

        record = Installed(
            name=repo,
            version=DEFAULT_VERSION,
            repository=f"https://github.com/{owner}/{repo}",
            installed_at=datetime.now(timezone.utc),
            path=str(binary_path),
        )
        self.registry.put(record)
        logger.info("Extension %s installed at %s", repo, binary_path)

        self._after(
            HookEvent.AFTER_INSTALL,
            HookData(
                extension_name=repo,
                extension_path=str(binary_path),
                metadata={"owner": owner, "repo": repo, "version": record.version},
            ),
        )
        return record

    def remove(self, name: str) -> Installed:
        """Remove extension *name*.

        Returns:
            The registry record that was removed.

        Raises:
            NotFoundError: If *name* is not in the registry.
            HookError: If a ``before-uninstall`` hook fails. Nothing is removed.
            PluginError: If the extension directory cannot be deleted.
        """
        validate_name(name, "extension name")
        record = self.registry.get(name)
        if record is None:
            raise NotFoundError(
                f"Extension {name} not found. Run 'tykctl extension list' to see installed extensions."
            )
        logger.info("Removing extension %s", name)

        metadata = {"version": record.version, "repository": record.repository}
        self._before(
            HookEvent.BEFORE_UNINSTALL,
            HookData(extension_name=name, extension_path=record.path, metadata=dict(metadata)),
            "uninstall",
        )

        ext_dir = self.extensions_dir.resolve() / extension_binary_name(name)
        if Path(record.path).resolve().parent != ext_dir:
            logger.warning(
                "Registry path %r for extension %s is outside %s; removing the record only",
                record.path,
                name,
                ext_dir,
            )
        else:
            try:
                if ext_dir.is_dir():
                    shutil.rmtree(ext_dir)
            except OSError as exc:
                raise PluginError(f"Failed to remove extension directory {ext_dir}: {exc}") from exc
        self.registry.delete(name)
        logger.info("Extension %s removed", name)

        self._after(
            HookEvent.AFTER_UNINSTALL,
            HookData(extension_name=name, extension_path=record.path, metadata=dict(metadata)),
        )
        return record

    def list_installed(self) -> list[Installed]:
        """Return the registry records, sorted by name."""
        return sorted(self.registry.load().values(), key=lambda r: r.name)

    def reconcile(self) -> list[Path]:
        """Delete extension directories that have no registry record.

        Only directories whose owner marker names this config directory are
        considered. Directories installed through another config directory,
        or by hand, are left alone.

        Returns:
            The directories that were removed.
        """
        if not self.extensions_dir.is_dir():
            return []
        known = set(self.registry.load())
        owner = self._owner_id()
        removed: list[Path] = []
        for entry in sorted(self.extensions_dir.iterdir()):
            name = extension_name_from_binary(entry.name)
            if not entry.is_dir() or name is None or name in known:
                continue
            if not self._owned(entry, owner):
                logger.debug("Skipping %s: not installed through %s", entry, self.config_dir)
                continue
            logger.warning("Removing orphaned extension directory %s", entry)
            shutil.rmtree(entry)
            removed.append(entry)
        return removed

    def _owner_id(self) -> str:
        return str(self.config_dir.resolve())

    @staticmethod
    def _owned(ext_dir: Path, owner: str) -> bool:
        try:
            return (ext_dir / OWNER_MARKER).read_text(encoding="utf-8").strip() == owner
        except OSError:
            return False

    # ------------------------------------------------------------------ #
    # Hook helpers
    # ------------------------------------------------------------------ #

    def _before(self, event: str, data: HookData, operation: str) -> None:
        try:
            self.hooks.execute(event, data)
        except HookError as exc:
            raise HookError(
                f"before {operation} hook failed: {exc}",
                event=event,
                hook_name=exc.hook_name,
            ) from exc

    def _after(self, event: str, data: HookData) -> None:
        try:
            self.hooks.execute(event, data)
        except HookError as exc:
            logger.error("%s hook failed, continuing: %s", event, exc)
