"""
HTTP surface of the EcoCredit service.
"""

from .app import create_app
from .auth import AuthService, SessionStore
from .container import ServiceContainer

__all__ = [
    "create_app",
    "AuthService",
    "SessionStore",
    "ServiceContainer",
]
