"""Per-extension plugin executables: discovery, installation, and execution.

A plugin of extension ``E`` is any executable named ``tykctl-E-<name>``
found on the extension's discovery path. There is no registry; the file
system is the only record.

Key classes:

* :class:`PluginManager` -- discovers, installs, removes, and runs plugins.
* :class:`ScriptGenerator` -- renders wrapper scripts and plugin templates
  for the current platform (see :func:`get_generator`).

Example::

    from tykctl.plugins import PluginManager

    manager = PluginManager("widgets")
    plugin = manager.find("deploy")
    manager.execute(plugin.path, ["--env", "staging"])
"""

from tykctl.plugins.manager import PluginManager
from tykctl.plugins.wrapper import ScriptGenerator, get_generator

__all__ = ["PluginManager", "ScriptGenerator", "get_generator"]
