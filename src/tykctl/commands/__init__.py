"""Built-in CLI sub-commands for tykctl.

* :mod:`~tykctl.commands.extension` -- search, install, remove, list, and
  run extensions.
* :mod:`~tykctl.commands.plugin` -- manage an extension's plugin
  executables.
* :mod:`~tykctl.commands.hook` -- manage external hook scripts.

Each module exports a :class:`typer.Typer` sub-application registered on
the root app in :func:`tykctl.app.main`.
"""
