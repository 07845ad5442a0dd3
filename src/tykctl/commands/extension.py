"""Extension commands -- search, install, remove, list, and run extensions.

Provides the ``tykctl extension`` sub-command group on top of
:class:`~tykctl.extensions.ExtensionInstaller` and
:class:`~tykctl.extensions.ExtensionRunner`. Errors are raised as
:class:`~tykctl.exceptions.TykctlError` subclasses and turned into exit
codes by :func:`tykctl.app.main`.
"""

from __future__ import annotations

from typing import Optional

import typer

from tykctl.output import (
    OutputFormat,
    format_response,
    get_output,
    info,
    print_table,
    success,
    suggest,
)


extension_app = typer.Typer(no_args_is_help=True)


def _installer():
    from tykctl.config import get_config_dir
    from tykctl.extensions import ExtensionInstaller

    return ExtensionInstaller(get_config_dir())


def _split_repository(repository: str) -> tuple[str, str]:
    from tykctl.exceptions import InvalidUsageError

    owner, sep, repo = repository.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise InvalidUsageError(f"Expected <owner>/<repo>, got: {repository}")
    return owner, repo


@extension_app.command("search")
def extension_search(
    query: str = typer.Argument("", help="Search terms."),
    limit: int = typer.Option(30, "--limit", "-l", min=1, max=100, help="Maximum results."),
    token: Optional[str] = typer.Option(
        None, "--token", envvar="GITHUB_TOKEN", help="GitHub token for higher rate limits."
    ),
) -> None:
    """Search GitHub for repositories tagged ``tykctl-extension``.

    Example::

        tykctl extension search gateway
        tykctl extension search --limit 5 --json
    """
    from tykctl.config import get_config_dir
    from tykctl.extensions import ExtensionInstaller

    results = ExtensionInstaller(get_config_dir(), github_token=token).search(query, limit)
    if not results:
        info("No extensions found.")
        return
    print_table(
        ["Name", "Repository", "Stars", "Description"],
        [[r.name, r.full_name, str(r.stars), r.description or ""] for r in results],
        title="Extensions",
    )


@extension_app.command("install")
def extension_install(
    repository: str = typer.Argument(help="Repository as <owner>/<repo>."),
    force: bool = typer.Option(False, "--force", "-f", help="Reinstall if already installed."),
) -> None:
    """Install an extension from GitHub.

    Example::

        tykctl extension install acme/widgets
    """
    owner, repo = _split_repository(repository)
    record = _installer().install(owner, repo, force=force)
    success(f"Installed extension {record.name} {record.version}")
    suggest(f"Run it with: tykctl extension run {record.name}")


@extension_app.command("remove")
def extension_remove(
    name: str = typer.Argument(help="Extension name."),
) -> None:
    """Remove an installed extension and its binary."""
    record = _installer().remove(name)
    success(f"Removed extension {record.name}")


@extension_app.command("list")
def extension_list() -> None:
    """List installed extensions."""
    records = _installer().list_installed()
    if not records:
        info("No extensions installed.")
        suggest("Find one with: tykctl extension search")
        return
    if get_output().format == OutputFormat.JSON:
        format_response([r.model_dump(mode="json") for r in records])
        return
    print_table(
        ["Name", "Version", "Repository", "Installed"],
        [
            [r.name, r.version, r.repository, r.installed_at.strftime("%Y-%m-%d %H:%M")]
            for r in records
        ],
        title="Installed extensions",
    )


@extension_app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def extension_run(
    name: str = typer.Argument(help="Extension name."),
    args: Optional[list[str]] = typer.Argument(None, help="Arguments passed to the extension."),
) -> None:
    """Run an extension, forwarding all remaining arguments.

    The extension's exit code becomes tykctl's exit code.

    Example::

        tykctl extension run widgets -- deploy --env staging
    """
    from tykctl.config import get_config_dir
    from tykctl.extensions import ExtensionRunner

    ExtensionRunner(get_config_dir()).run(name, args or [])


@extension_app.command("reconcile")
def extension_reconcile() -> None:
    """Delete extension directories that have no registry entry."""
    removed = _installer().reconcile()
    if not removed:
        info("Nothing to reconcile.")
        return
    for path in removed:
        info(f"Removed orphan {path}")
    success(f"Removed {len(removed)} orphaned extension director{'y' if len(removed) == 1 else 'ies'}")
