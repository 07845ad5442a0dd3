"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~tykctl.exceptions.TykctlError` subclass.
External tooling (CI scripts, shell wrappers) can inspect the exit code to
determine the failure class without parsing stderr.

A plugin or extension that exits non-zero is the exception to this table:
its exit code is passed through unchanged so that the plugin's failure
looks like tykctl's own failure.

Example::

    $ tykctl extension run widgets
    $ echo $?
    4   # EXIT_NOT_FOUND -- the extension is not installed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested extension, plugin or hook was not found."""

EXIT_CONFLICT = 5
"""The install target already exists."""

EXIT_REGISTRY_ERROR = 6
"""The extension registry file could not be read or parsed."""

EXIT_PLUGIN_ERROR = 10
"""A plugin or extension could not be started."""

EXIT_HOOK_FAILURE = 11
"""A lifecycle hook failed and aborted the operation."""

EXIT_TIMEOUT = 124
"""A plugin exceeded its configured execution timeout (matches ``timeout(1)``)."""

EXIT_INTERRUPTED = 130
"""The user cancelled the command with Ctrl-C."""
