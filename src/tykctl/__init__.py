"""tykctl -- extension, plugin and hook lifecycle engine for the tykctl CLI.

This package owns everything that crosses a process boundary on behalf of
tykctl: discovering plugin executables by naming convention, running them
under timeout control with an injected environment, synthesizing
dispatcher scripts for multi-binary plugin bundles, and firing builtin and
external hooks around extension install/uninstall/run operations.

Typical workflow::

    tykctl extension install acme/widgets   # fires before/after-install hooks
    tykctl plugin list --extension widgets  # discovers tykctl-widgets-* binaries
    tykctl extension run widgets -- deploy  # runs the installed extension

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware paths, duration parsing, and execution configuration.
    naming: The ``tykctl-<extension>-<name>`` file-name contract.
    platform: OS-specific executable checks and subprocess invocation.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
