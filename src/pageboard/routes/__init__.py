"""
Dashboard routes.

Server-rendered pages and HTMX partials built on Jinja2 templates.
"""

from .dashboard import create_dashboard_router

__all__ = ["create_dashboard_router"]
