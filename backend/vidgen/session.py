import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response

from .config import Settings, get_settings

logger = logging.getLogger("vidgen-backend")

USERNAME_COOKIE = "username"


def decode_session_token(token: str, secret: str) -> Dict[str, Any]:
    """Verify an HS256 session token; raises jwt.PyJWTError when invalid."""
    claims = jwt.decode(token, secret, algorithms=["HS256"], options={"require": ["sub", "exp"]})
    return claims


async def verify_session(request: Request, settings: Settings = Depends(get_settings)) -> Optional[Dict[str, Any]]:
    """Dependency that admits only requests carrying a valid session cookie."""
    if not settings.session_secret:
        # Gate disabled (dev mode)
        return None

    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return decode_session_token(token, settings.session_secret)
    except jwt.PyJWTError as e:
        logger.info("Session token rejected: %s", type(e).__name__)
        raise HTTPException(status_code=401, detail="Invalid session")


def set_session_cookies(response: Response, settings: Settings, token: str, username: Optional[str]) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    if username:
        response.set_cookie(
            USERNAME_COOKIE,
            username,
            max_age=settings.session_max_age,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
            path="/",
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(USERNAME_COOKIE, path="/")
