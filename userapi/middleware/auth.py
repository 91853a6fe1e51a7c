"""
User API Backend — Authentication Step
========================================

What:  HTTP Basic authentication against the users table.
How:   `Authorization: Basic base64(email:password)`. The email is looked up,
       the password checked against the stored bcrypt hash, and the user
       stored on `ctx.user`.
HTTP:  Any failure raises AuthenticationError (→ 401 with
       `WWW-Authenticate: Basic`). The response never says which part failed.
"""

import base64
import binascii
import logging
from typing import Optional, Tuple

from userapi.exceptions import AuthenticationError
from userapi.middleware.chain import AUTHENTICATING, RequestContext, stage
from userapi.services.user_service import user_service, verify_password

logger = logging.getLogger(__name__)


def parse_basic_credentials(header: Optional[str]) -> Tuple[str, str]:
    """
    Splits a Basic Authorization header into (email, password).

    Raises:
        AuthenticationError: header missing, not Basic, or not decodable
    """
    if not header:
        raise AuthenticationError()

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "basic" or not token.strip():
        raise AuthenticationError(context={"reason": "unsupported scheme"})

    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise AuthenticationError(context={"reason": "malformed credentials"})

    email, separator, password = decoded.partition(":")
    if not separator or not email or not password:
        raise AuthenticationError(context={"reason": "malformed credentials"})
    return email, password


@stage(AUTHENTICATING)
async def authenticate(ctx: RequestContext) -> None:
    email, password = parse_basic_credentials(ctx.request.headers.get("Authorization"))

    user = await user_service.get_by_email(ctx.db, email)
    if user is None or not await verify_password(password, user.password):
        logger.warning("Authentication failed for %s", email)
        raise AuthenticationError(message="Invalid credentials")

    ctx.user = user
    return None
