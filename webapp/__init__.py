"""Web application package for the DDNS agent."""

from webapp.app import create_app
from webapp.routes import bp

__all__ = ["bp", "create_app"]
