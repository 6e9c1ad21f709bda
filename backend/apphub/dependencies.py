"""
AppHub Backend — Request Dependencies
======================================

What:  FastAPI dependencies shared by the routers.
How:   The acting user's id is read from the `X-User-Id` header. This is the
       seam where the platform's authentication layer (which validates the
       access token and sets the header, or replaces this dependency)
       plugs in; no token logic lives in this service.
"""

import uuid
from typing import Optional

from fastapi import Header

from apphub.exceptions import AuthenticationError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> uuid.UUID:
    """
    Raises:
        AuthenticationError: Header missing or not a UUID (→ 401)
    """
    if not x_user_id:
        raise AuthenticationError()
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise AuthenticationError(message="Malformed X-User-Id header")
