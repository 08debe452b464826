"""
Services layer for sessions and authentication.

This layer handles:
- Server-side session storage
- Credential verification against the user store
"""

from . import auth_service
from .session_store import SessionStore, SessionRecord

__all__ = [
    "auth_service",
    "SessionStore",
    "SessionRecord"
]
