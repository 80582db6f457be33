"""
Storefront concierge package.

The widget core lives in :mod:`concierge.services.widget`; the support
backend it syncs with is a FastAPI app exposed through the lazy helpers below
so that importing the widget never builds the app.
"""


def create_app():
    """Lazy import wrapper for create_app to avoid import-time app creation."""
    from .main import create_app as _create_app
    return _create_app()


def get_app():
    """Get or create the FastAPI application instance."""
    from .main import app
    return app


__all__ = ["create_app", "get_app"]
