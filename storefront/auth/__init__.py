"""
Session and role handling for the storefront.

``SessionStore`` keeps the single current session (user, token, role)
and persists it through ``storefront.auth.persistence``. Credentials are
checked by a backend chosen at startup: an in-memory mock, or a real
HTTP API when ``STOREFRONT_API_BASE`` is set.
"""

from .store import SessionState, SessionStore, normalize_user  # noqa: F401
