"""Bearer token verification for protected API paths."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import jwt

from expenses_core.exceptions import AuthenticationError

PROTECTED_PREFIXES = ("/api/expenses", "/api/wallet", "/api/employees")


def is_protected(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PROTECTED_PREFIXES)


def extract_token(headers: Mapping[str, str], cookies: Mapping[str, str]) -> Optional[str]:
    """Token from ``Authorization: Bearer <token>``, falling back to the ``token`` cookie."""
    header = headers.get("Authorization") or ""
    parts = header.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
        return parts[1].strip()
    return cookies.get("token") or None


def verify_token(token: Optional[str], secret: str) -> Dict[str, Any]:
    if not token:
        raise AuthenticationError("Authentication required")
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
