"""Authentication module.

This module provides:
- Session token minting and verification
- Per-request session resolution (Bearer header or session cookie)
- The get_viewer dependency for routes that require a caller
"""

from termsmith.auth.session import (
    Viewer,
    get_viewer,
    mint_session_token,
    resolve_session,
    verify_session_token,
)

__all__ = [
    "Viewer",
    "get_viewer",
    "mint_session_token",
    "resolve_session",
    "verify_session_token",
]
