"""Dispatcher and skeleton script generation for plugins.

A plugin bundle may contain several executables that do not follow the
``tykctl-<extension>-<name>`` convention. Rather than installing each one,
the installer synthesizes a single dispatcher at the canonical plugin path
that routes its first argument to the matching binary::

    tykctl-widgets-tools deploy --env prod
    # -> exec "<bundle>/deploy" --env prod

The same generators also produce the boilerplate for a brand-new plugin
(``version``, ``info`` and ``help`` subcommands).

Two implementations exist, selected by :func:`get_generator`:

* :class:`PosixScriptGenerator` -- bash, ``case`` dispatch, ``exec``.
* :class:`WindowsScriptGenerator` -- batch, ``if "%COMMAND%"=="x"`` chains.

The scripts are Jinja2 templates in ``plugins/templates/``
(``wrapper.sh.j2``, ``template.bat.j2``, ...). POSIX templates quote user-supplied
values with the ``shquote`` filter.
"""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from tykctl.platform import is_windows

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the script templates (``plugins/templates/``)."""

TEMPLATE_VERSION = "1.0.0"


def _title(name: str) -> str:
    """``"log-shipper"`` -> ``"Log-Shipper"``, matching the description line of templates."""
    return "-".join(part[:1].upper() + part[1:] for part in name.split("-"))


def _create_jinja_env() -> Environment:
    """Create the Jinja2 environment for the script templates.

    Autoescape is off because the output is shell and batch, not HTML.
    Quoting is explicit through the ``shquote`` filter (``shlex.quote``).
    ``keep_trailing_newline`` keeps the final newline the shells expect.

    Returns:
        A configured :class:`~jinja2.Environment` instance.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["shquote"] = shlex.quote
    env.filters["plugin_title"] = _title
    return env


class ScriptGenerator(ABC):
    """Produces platform-specific plugin scripts."""

    suffix: str = ""
    """File suffix the generated script needs in order to be runnable."""

    def __init__(self) -> None:
        self._env = _create_jinja_env()

    @property
    @abstractmethod
    def wrapper_template(self) -> str:
        """Template file name for the dispatcher."""

    @property
    @abstractmethod
    def skeleton_template(self) -> str:
        """Template file name for a new plugin."""

    def wrapper(self, source_dir: Path, executables: Sequence[str]) -> str:
        """Return a dispatcher that routes ``argv[1]`` to one of *executables*.

        Args:
            source_dir: Directory holding the bundled binaries.
            executables: File names (relative to *source_dir*) to expose.
        """
        return self._render(
            self.wrapper_template,
            source_dir=str(source_dir),
            executables=list(executables),
        )

    def template(self, plugin_name: str, extension: str) -> str:
        """Return a skeleton plugin answering ``version``, ``info`` and ``help``."""
        return self._render(
            self.skeleton_template,
            plugin_name=plugin_name,
            extension=extension,
            version=TEMPLATE_VERSION,
        )

    def _render(self, template_name: str, **context: object) -> str:
        return self._env.get_template(template_name).render(**context)


class PosixScriptGenerator(ScriptGenerator):
    """Generates bash scripts for Linux, macOS and the BSDs."""

    suffix = ""
    wrapper_template = "wrapper.sh.j2"
    skeleton_template = "template.sh.j2"


class WindowsScriptGenerator(ScriptGenerator):
    """Generates batch files for Windows."""

    suffix = ".bat"
    wrapper_template = "wrapper.bat.j2"
    skeleton_template = "template.bat.j2"


def get_generator(windows: Optional[bool] = None) -> ScriptGenerator:
    """Return the generator for the current platform, or for *windows* when given."""
    if windows is None:
        windows = is_windows()
    return WindowsScriptGenerator() if windows else PosixScriptGenerator()
