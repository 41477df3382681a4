"""Application services built on the admin core."""

from maikedah_admin.services.admin_console import AdminConsole, OperationResult, open_console

__all__ = ["AdminConsole", "OperationResult", "open_console"]
