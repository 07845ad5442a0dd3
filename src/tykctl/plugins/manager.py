"""Plugin manager -- discovery, installation, and execution of plugin executables.

This module contains :class:`PluginManager`, the central coordinator for an
extension's plugins. Plugins are plain executables found by file name rather
than through any registry: every executable named
``tykctl-<extension>-<name>`` in one of the configured discovery paths is a
plugin called ``<name>``.

Execution runs the plugin as a child process that inherits the parent's
stdio and environment, plus a block of ``TYKCTL_*`` variables describing
the plugin and its extension (see :meth:`PluginManager.build_environment`).
Timeouts come from :class:`~tykctl.models.ExecutionConfig`::

    TYKCTL_WIDGETS_PLUGIN_TIMEOUT=30s   # extension-specific, wins
    TYKCTL_PLUGIN_TIMEOUT=1m            # global fallback

Failures are raised, never turned into a process exit here: a non-zero
child exit becomes :class:`~tykctl.exceptions.NonZeroExitError` whose
``exit_code`` is the child's, and :func:`tykctl.app.main` is the only
place that actually exits.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Optional, Sequence

from tykctl.config import format_duration, load_execution_config
from tykctl.exceptions import (
    ConflictError,
    ExecutionError,
    NonZeroExitError,
    NotFoundError,
    PluginError,
    PluginTimeoutError,
)
from tykctl.models import ExecutionConfig, ExecutionResult, Plugin
from tykctl.naming import (
    env_token,
    plugin_file_name,
    plugin_name_from_file,
    plugin_prefix,
    validate_name,
)
from tykctl.platform import (
    WINDOWS_EXECUTABLE_SUFFIXES,
    build_command,
    copy_executable,
    exit_code_from_returncode,
    is_executable,
    is_windows,
    kill_process_tree,
    popen_kwargs,
    write_executable,
)
from tykctl.plugins.wrapper import get_generator

logger = logging.getLogger(__name__)


class PluginManager:
    """Discovers, installs, removes, and executes the plugins of one extension.

    Instances hold no mutable state beyond their configuration and are not
    guarded for concurrent use; callers running plugins from several threads
    must serialise access themselves.

    Args:
        extension: The extension whose plugins are managed (e.g. ``"widgets"``).
        config: Execution settings. When omitted they are read from the
            process environment via
            :func:`~tykctl.config.load_execution_config`.

    Example:
        Typical usage::

            manager = PluginManager("widgets")
            for plugin in manager.discover():
                print(plugin.name, plugin.path)
            manager.execute(manager.find("deploy").path, ["--env", "prod"])
    """

    def __init__(self, extension: str, config: Optional[ExecutionConfig] = None) -> None:
        self.extension = validate_name(extension, "extension name")
        self.config = config if config is not None else load_execution_config(extension)

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #

    def discover(self, paths: Optional[Sequence[Path]] = None) -> list[Plugin]:
        """Find every plugin executable in the discovery paths.

        Each directory is scanned independently, entries sorted by name, and
        results concatenated in path order. The same plugin name found in
        two directories is reported twice; nothing is shadowed.
        Directories that are missing or unreadable are skipped without error.

        Args:
            paths: Directories to scan. Defaults to
                ``config.discovery_paths``.

        Returns:
            One :class:`~tykctl.models.Plugin` per matching executable.
        """
        search = self.config.discovery_paths if paths is None else paths
        plugins: list[Plugin] = []
        for directory in search:
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError as exc:
                logger.debug("Skipping plugin path %s: %s", directory, exc)
                continue
            for entry in entries:
                name = plugin_name_from_file(
                    self.extension, entry.name, strip_suffix=is_windows()
                )
                if name is None:
                    continue
                path = Path(directory) / entry.name
                if not is_executable(path):
                    logger.debug("Ignoring non-executable %s", path)
                    continue
                plugins.append(Plugin(name=name, path=path, extension=self.extension))
        return plugins

    def find(self, name: str) -> Plugin:
        """Return the first discovered plugin called *name*.

        Raises:
            NotFoundError: If no discovery path holds a matching executable.
        """
        for plugin in self.discover():
            if plugin.name == name:
                return plugin
        raise NotFoundError(
            f"Plugin '{name}' not found for extension '{self.extension}'. "
            f"Run 'tykctl plugin list --extension {self.extension}' to see available plugins"
        )

    # ------------------------------------------------------------------ #
    # Installation
    # ------------------------------------------------------------------ #

    def _target_dir(self, plugin_dir: Optional[Path]) -> Path:
        return Path(plugin_dir) if plugin_dir is not None else self.config.plugin_dir

    def _ensure_absent(self, name: str, target: Path) -> None:
        if target.exists():
            raise ConflictError(f"Plugin {name} already exists at {target}")

    def install_from_file(
        self,
        source: Path,
        plugin_dir: Optional[Path] = None,
        name: Optional[str] = None,
    ) -> Path:
        """Install a single executable as a plugin.

        The plugin name defaults to the source file name without its
        extension. The copy is always made executable, whatever the source
        permissions were.

        Args:
            source: File to install.
            plugin_dir: Destination directory (default: ``config.plugin_dir``).
            name: Plugin name overriding the one derived from *source*.

        Returns:
            Path of the installed plugin.

        Raises:
            ConflictError: If a plugin with that name is already installed.
            PluginError: If *source* is not a readable file.
        """
        source = Path(source)
        if not source.is_file():
            raise PluginError(f"Plugin source {source} is not a file")
        plugin_name = validate_name(name or source.stem, "plugin name")
        target_dir = self._target_dir(plugin_dir)
        file_name = plugin_file_name(self.extension, plugin_name)
        if is_windows() and source.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES:
            file_name += source.suffix.lower()
        target = target_dir / file_name
        self._ensure_absent(plugin_name, target)

        target_dir.mkdir(parents=True, exist_ok=True)
        try:
            copy_executable(source, target)
        except OSError as exc:
            raise PluginError(f"Failed to install plugin {plugin_name}: {exc}") from exc
        logger.info("Installed plugin '%s' at %s", plugin_name, target)
        return target

    def install_from_directory(
        self,
        source_dir: Path,
        plugin_dir: Optional[Path] = None,
        name: Optional[str] = None,
    ) -> list[Path]:
        """Install the executables found in *source_dir*.

        Three layouts are recognised:

        1. Executables already named ``tykctl-<extension>-*`` are copied one by
           one; ones that are already installed are skipped with a warning.
        2. Exactly one other executable is copied as plugin *name* (default:
           the directory's name).
        3. Several other executables get a generated dispatcher installed as
           plugin *name*, routing its first argument to the matching binary
           inside *source_dir*. The bundle must stay where it is.

        Returns:
            Paths of the plugins that were installed.

        Raises:
            PluginError: If the directory is unreadable or holds no executables.
            ConflictError: For layouts 2 and 3, if the plugin already exists.
        """
        source_dir = Path(source_dir)
        try:
            entries = sorted(os.scandir(source_dir), key=lambda e: e.name)
        except OSError as exc:
            raise PluginError(f"Failed to read source directory {source_dir}: {exc}") from exc

        prefix = plugin_prefix(self.extension)
        named: list[str] = []
        others: list[str] = []
        for entry in entries:
            if not is_executable(source_dir / entry.name):
                continue
            (named if entry.name.startswith(prefix) else others).append(entry.name)

        if not named and not others:
            raise PluginError(f"No executable files found in directory {source_dir}")

        target_dir = self._target_dir(plugin_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        if named:
            installed: list[Path] = []
            for file_name in named:
                dest = target_dir / file_name
                if dest.exists():
                    logger.warning("Plugin %s already exists, skipping", file_name[len(prefix):])
                    continue
                try:
                    copy_executable(source_dir / file_name, dest)
                except OSError as exc:
                    raise PluginError(
                        f"Failed to install plugin {file_name[len(prefix):]}: {exc}"
                    ) from exc
                installed.append(dest)
            logger.info("Installed %d plugin(s) from %s", len(installed), source_dir)
            return installed

        plugin_name = validate_name(name or source_dir.resolve().name, "plugin name")
        if len(others) == 1:
            source = source_dir / others[0]
            file_name = plugin_file_name(self.extension, plugin_name)
            if is_windows() and source.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES:
                file_name += source.suffix.lower()
            target = target_dir / file_name
            self._ensure_absent(plugin_name, target)
            copy_executable(source, target)
            logger.info("Installed plugin '%s' at %s", plugin_name, target)
            return [target]

        generator = get_generator()
        target = target_dir / (plugin_file_name(self.extension, plugin_name) + generator.suffix)
        self._ensure_absent(plugin_name, target)
        write_executable(target, generator.wrapper(source_dir.resolve(), others))
        logger.info(
            "Created wrapper plugin '%s' at %s dispatching to %s",
            plugin_name,
            target,
            ", ".join(others),
        )
        return [target]

    def create_template(self, name: str, plugin_dir: Optional[Path] = None) -> Path:
        """Write a skeleton plugin that answers ``version``, ``info`` and ``help``.

        Raises:
            ConflictError: If a plugin with that name already exists.
        """
        plugin_name = validate_name(name, "plugin name")
        generator = get_generator()
        target_dir = self._target_dir(plugin_dir)
        target = target_dir / (plugin_file_name(self.extension, plugin_name) + generator.suffix)
        self._ensure_absent(plugin_name, target)
        target_dir.mkdir(parents=True, exist_ok=True)
        write_executable(target, generator.template(plugin_name, self.extension))
        logger.info("Created plugin template '%s' at %s", plugin_name, target)
        return target

    def remove(self, name: str, plugin_dir: Optional[Path] = None) -> Path:
        """Delete an installed plugin.

        Returns:
            The path that was removed.

        Raises:
            NotFoundError: If the plugin is not installed in *plugin_dir*.
        """
        plugin_name = validate_name(name, "plugin name")
        target_dir = self._target_dir(plugin_dir)
        base = plugin_file_name(self.extension, plugin_name)
        candidates = [target_dir / base]
        if is_windows():
            candidates += [target_dir / (base + suffix) for suffix in sorted(WINDOWS_EXECUTABLE_SUFFIXES)]

        for candidate in candidates:
            if candidate.is_file():
                try:
                    candidate.unlink()
                except OSError as exc:
                    raise PluginError(f"Failed to remove plugin {plugin_name}: {exc}") from exc
                logger.info("Removed plugin '%s' from %s", plugin_name, candidate)
                return candidate
        raise NotFoundError(f"Plugin {plugin_name} not found at {candidates[0]}")

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def build_environment(self, plugin_path: Path) -> dict[str, str]:
        """Return the ``TYKCTL_*`` variables injected into a plugin process.

        Values come from :attr:`config` only. ``TYK_<EXT>_URL`` and
        ``TYK_<EXT>_TOKEN`` are included only when they were set when the
        configuration was loaded.

        Args:
            plugin_path: The executable about to run.

        Returns:
            Variables to layer on top of the inherited environment.
        """
        cfg = self.config
        upper = env_token(self.extension)
        plugin_path = Path(plugin_path)
        name = plugin_name_from_file(self.extension, plugin_path.name, strip_suffix=True)
        if name is None:
            name = plugin_path.stem

        env = {
            "TYKCTL_PLUGIN_NAME": name,
            "TYKCTL_PLUGIN_PATH": str(plugin_path),
            "TYKCTL_PLUGIN_EXTENSION": self.extension,
            "TYKCTL_PLUGIN_DIR": str(plugin_path.parent),
            f"TYKCTL_{upper}_CONFIG_DIR": str(cfg.config_dir),
            f"TYKCTL_{upper}_PLUGIN_DIR": str(cfg.plugin_dir),
            f"TYKCTL_{upper}_GLOBAL_CONFIG_DIR": str(cfg.global_config_dir),
        }
        if cfg.api_url:
            env[f"TYK_{upper}_URL"] = cfg.api_url
        if cfg.api_token:
            env[f"TYK_{upper}_TOKEN"] = cfg.api_token
        if cfg.context:
            env[f"TYKCTL_{upper}_CONTEXT"] = cfg.context
        if cfg.debug:
            env[f"TYKCTL_{upper}_DEBUG"] = cfg.debug
        if cfg.verbose:
            env[f"TYKCTL_{upper}_VERBOSE"] = cfg.verbose
        env[f"TYKCTL_{upper}_PLUGIN_DISCOVERY_PATHS"] = ":".join(
            str(p) for p in cfg.discovery_paths
        )
        return env

    def execute(
        self,
        plugin_path: Path,
        args: Sequence[str] = (),
        capture_output: bool = False,
    ) -> ExecutionResult:
        """Run a plugin with the configured timeout.

        See :meth:`execute_with_timeout` for semantics; the timeout is
        :meth:`ExecutionConfig.resolve_timeout() <tykctl.models.ExecutionConfig.resolve_timeout>`.
        """
        return self.execute_with_timeout(
            plugin_path, args, self.config.resolve_timeout(), capture_output
        )

    def execute_with_timeout(
        self,
        plugin_path: Path,
        args: Sequence[str],
        timeout: float,
        capture_output: bool = False,
    ) -> ExecutionResult:
        """Run a plugin and wait for it, killing it if *timeout* expires.

        By default stdin, stdout and stderr are the parent's own streams.
        With *capture_output* stdout is collected into the result and
        stderr is collected for error reporting.

        Args:
            plugin_path: Executable to run.
            args: Arguments forwarded verbatim.
            timeout: Seconds before the process tree is killed; ``0`` waits
                indefinitely.
            capture_output: Collect stdout/stderr instead of inheriting them.

        Returns:
            An :class:`~tykctl.models.ExecutionResult` with ``exit_code == 0``.

        Raises:
            ExecutionError: If the process cannot be started.
            PluginTimeoutError: If *timeout* expired first.
            NonZeroExitError: If the plugin exited non-zero; ``exit_code`` is
                the plugin's, ``stderr`` is populated when capturing.
            KeyboardInterrupt: Re-raised after killing the child when the
                user cancels while waiting.
        """
        plugin_path = Path(plugin_path)
        command = build_command(plugin_path, args)
        env = {**os.environ, **self.build_environment(plugin_path)}
        isolate = timeout > 0
        pipe = subprocess.PIPE if capture_output else None

        logger.debug(
            "Executing plugin %s (timeout=%s)",
            plugin_path,
            format_duration(timeout) if timeout else "none",
        )
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                env=env,
                stdout=pipe,
                stderr=pipe,
                text=capture_output,
                **popen_kwargs(isolate),
            )
        except OSError as exc:
            raise ExecutionError(f"Failed to execute plugin {plugin_path}: {exc}") from exc

        stdout: Optional[str] = None
        stderr = ""
        try:
            if capture_output:
                stdout, stderr = proc.communicate(timeout=timeout or None)
            else:
                proc.wait(timeout=timeout or None)
        except subprocess.TimeoutExpired:
            kill_process_tree(proc, isolate)
            if capture_output:
                proc.communicate()
            raise PluginTimeoutError(
                f"Plugin execution timed out after {format_duration(timeout)}: {plugin_path}",
                timeout=timeout,
            ) from None
        except KeyboardInterrupt:
            kill_process_tree(proc, isolate)
            raise

        duration = time.monotonic() - start
        if proc.returncode != 0:
            code = exit_code_from_returncode(proc.returncode)
            message = f"Plugin {plugin_path.name} exited with code {code}"
            if capture_output and stderr:
                message += f": {stderr.strip()}"
            raise NonZeroExitError(message, exit_code=code, stderr=stderr or "")

        logger.debug("Plugin %s finished in %.3fs", plugin_path.name, duration)
        return ExecutionResult(exit_code=0, stdout=stdout, duration=duration)
