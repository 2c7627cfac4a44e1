"""Interactive administration shell."""

from depot.console.shell import AdminShell

__all__ = ["AdminShell"]
