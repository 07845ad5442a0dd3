"""Typer application and CLI entry point for tykctl.

The root app carries the global output flags and mounts three command
groups: ``extension``, ``plugin`` and ``hook``.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It is the only place that turns errors into process
exit codes: a :class:`~tykctl.exceptions.TykctlError` exits with its
``exit_code`` (for a failed plugin or extension, the child's own code),
Ctrl-C exits 130, and anything unexpected is written to a crash log
under the data directory.
"""

from __future__ import annotations

import logging
import sys
import traceback
from datetime import datetime

import typer

from tykctl import __version__
from tykctl.commands.extension import extension_app
from tykctl.commands.hook import hook_app
from tykctl.commands.plugin import plugin_app
from tykctl.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="tykctl",
    help="Manage tykctl extensions, their plugins, and lifecycle hooks.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.add_typer(extension_app, name="extension", help="Search, install, and run extensions.")
app.add_typer(plugin_app, name="plugin", help="Manage extension plugins.")
app.add_typer(hook_app, name="hook", help="Manage external lifecycle hooks.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tykctl {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~tykctl.output.OutputManager` and the Rich
    log handler from the CLI flags.
    """
    from tykctl.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(verbose=verbose, no_color=output.no_color)


def _write_crash_log() -> str:
    """Write the current traceback under ``<data_dir>/logs`` and return its path."""
    from tykctl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``tykctl`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        rv = app(standalone_mode=False)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except typer.Abort:
        sys.stderr.write("\nAborted.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from click import ClickException

        from tykctl.exceptions import TykctlError
        from tykctl.output import error

        if isinstance(exc, TykctlError):
            logger.debug("Command failed", exc_info=True)
            error(str(exc))
            sys.exit(exc.exit_code)
        if isinstance(exc, ClickException):
            exc.show()
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
    sys.exit(rv if isinstance(rv, int) else 0)
