"""Authentication middleware: resolves the viewer from a Supabase access token."""
from fastapi import Depends, WebSocket
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from config.settings import settings
from core.exceptions import AuthRequiredError
from models.user import Viewer
from utils.jwt_utils import decode_access_token

logger = logging.getLogger(__name__)

# auto_error=False: a missing header is an AuthRequiredError, not a bare 403
security = HTTPBearer(auto_error=False)


def viewer_from_token(token: Optional[str]) -> Viewer:
    """Build the Viewer for a raw token or raise AuthRequiredError."""
    if not token:
        raise AuthRequiredError(login_url=settings.LOGIN_URL)

    payload = decode_access_token(token)
    if not payload:
        raise AuthRequiredError("Invalid or expired session", login_url=settings.LOGIN_URL)

    return Viewer(
        id=payload['sub'],
        email=payload.get('email'),
        role=(payload.get('user_metadata') or {}).get('role'),
    )


async def get_current_viewer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Viewer:
    """
    Validate the Bearer token and return the viewer.

    Raises AuthRequiredError, which the app turns into a 401 carrying the
    login URL so the client can redirect.
    """
    return viewer_from_token(credentials.credentials if credentials else None)


def get_websocket_viewer(websocket: WebSocket) -> Optional[Viewer]:
    """Viewer for a WebSocket handshake (``?token=``), or None if unauthenticated."""
    try:
        return viewer_from_token(websocket.query_params.get("token"))
    except AuthRequiredError as e:
        logger.info(f"Rejected WebSocket {websocket.url.path}: {e.message}")
        return None
