"""Exception hierarchy for tykctl.

All exceptions inherit from :class:`TykctlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`tykctl.exit_codes`.
The top-level error handler in :func:`tykctl.app.main` catches
``TykctlError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    TykctlError (exit 1)
    +-- InvalidUsageError     (exit 2)
    +-- NotFoundError         (exit 4)
    +-- ConflictError         (exit 5)
    +-- RegistryError         (exit 6)
    +-- ConfigError           (exit 1)
    +-- HookError             (exit 11)
    +-- PluginError           (exit 10)
        +-- ExecutionError    (exit 10)
        +-- PluginTimeoutError (exit 124)
        +-- NonZeroExitError  (child's exit code)
"""

from __future__ import annotations

from typing import Optional

from tykctl.exit_codes import (
    EXIT_CONFLICT,
    EXIT_GENERIC_FAILURE,
    EXIT_HOOK_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PLUGIN_ERROR,
    EXIT_REGISTRY_ERROR,
    EXIT_TIMEOUT,
)


class TykctlError(Exception):
    """Base exception for all tykctl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`tykctl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(TykctlError):
    """Raised for invalid CLI arguments or malformed names."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(TykctlError):
    """Raised when an extension, plugin or hook cannot be located."""

    exit_code = EXIT_NOT_FOUND


class ConflictError(TykctlError):
    """Raised when installing over a plugin, extension or hook that already exists."""

    exit_code = EXIT_CONFLICT


class RegistryError(TykctlError):
    """Raised when ``extensions.yaml`` cannot be read, parsed or written.

    There is no automatic recovery: a corrupt registry must be fixed (or
    deleted) by hand.
    """

    exit_code = EXIT_REGISTRY_ERROR


class ConfigError(TykctlError):
    """Raised for configuration problems (bad durations, unusable directories)."""

    exit_code = EXIT_GENERIC_FAILURE


class HookError(TykctlError):
    """Raised when a builtin or external hook fails.

    Args:
        message: Error description.
        event: The hook event that was being dispatched.
        hook_name: Name of the hook that failed, when known.
    """

    exit_code = EXIT_HOOK_FAILURE

    def __init__(
        self,
        message: str,
        event: Optional[str] = None,
        hook_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.event = event
        self.hook_name = hook_name


class PluginError(TykctlError):
    """Raised when a plugin or extension cannot be installed or executed."""

    exit_code = EXIT_PLUGIN_ERROR


class ExecutionError(PluginError):
    """Raised when a child process cannot be spawned (missing file, permission denied)."""


class PluginTimeoutError(PluginError):
    """Raised when a child process is killed because its deadline expired.

    Args:
        message: Error description.
        timeout: The timeout, in seconds, that was exceeded.
    """

    exit_code = EXIT_TIMEOUT

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class NonZeroExitError(PluginError):
    """Raised when a child process ran to completion but exited non-zero.

    The instance's ``exit_code`` is the child's own exit code, so letting the
    error reach :func:`tykctl.app.main` makes tykctl exit with exactly that
    code.

    Args:
        message: Error description.
        exit_code: The child's exit code.
        stderr: Captured standard error, when output capture was active.
    """

    def __init__(self, message: str, exit_code: int, stderr: str = ""):
        super().__init__(message, exit_code=exit_code)
        self.stderr = stderr
