"""Retail Audit MCP App Server.

Conditional logic, scoring, and compliance reporting for retail audit
templates, exposed as MCP tools with an interactive dashboard UI.
"""

__version__ = "0.1.0"

from .app_definition import RetailAuditApp


def get_app_html() -> str:
    """Return the MCP App HTML content. Re-renders each call for hot reload."""
    return RetailAuditApp().render()
