"""
API Dependencies package.

Cross-cutting concerns like authentication.
"""

from .auth import verify_api_key, auth_enabled

__all__ = ["verify_api_key", "auth_enabled"]
