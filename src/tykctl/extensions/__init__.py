"""Extension lifecycle: registry, installer, and runner."""

from tykctl.extensions.installer import ExtensionInstaller
from tykctl.extensions.registry import ExtensionRegistry
from tykctl.extensions.runner import ExtensionRunner

__all__ = ["ExtensionInstaller", "ExtensionRegistry", "ExtensionRunner"]
