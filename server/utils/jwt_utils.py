"""JWT utilities for Supabase Auth access tokens"""
import jwt
from typing import Optional
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Optional[dict]:
    """Verify a Supabase access token and return its claims.

    Returns None for expired, forged, wrong-audience or subject-less tokens.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        return None

    if not payload.get('sub'):
        logger.warning("Token has no subject")
        return None

    return payload
