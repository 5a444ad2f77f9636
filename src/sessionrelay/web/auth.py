"""Bearer-token authentication for the control surface."""

from __future__ import annotations

import hmac

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sessionrelay.web.errors import ApiError

_bearer = HTTPBearer(auto_error=False)


def require_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Reject the request unless it carries the configured API token."""
    expected = request.app.state.config.api_token
    if not expected or credentials is None:
        raise ApiError(401, "Unauthorized")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise ApiError(401, "Unauthorized")
