# dreamlog/security/jwt.py
"""
Compact signed tokens used instead of server-side sessions.

Format: ``base64url(header).base64url(payload).base64url(signature)`` with an
HMAC-SHA256 signature over ``header.payload``. The payload carries the
user's token version (``tv``); a token is accepted only while ``tv`` equals
the version currently stored for that user, so bumping the stored version
revokes every token issued before it.
"""
import binascii
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import jwt
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode

from dreamlog.core import clock
from dreamlog.schemas.user import UserRecord
from dreamlog.services.credential_store import CorruptRecordError, UserStore

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Only signature and exp are enforced; other registered claims pass through
DECODE_OPTIONS = {
    "verify_aud": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
    "verify_at_hash": False,
}


def issue_token(payload: Dict[str, Any], secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_access_token(user: UserRecord, secret: str, expires_delta: timedelta) -> str:
    """Login token: ``{email, iat, exp, tv}`` with NumericDate seconds."""
    issued_at = clock.now_ms() // 1000
    payload = {
        "email": user.email,
        "iat": issued_at,
        "exp": issued_at + int(expires_delta.total_seconds()),
        "tv": user.token_version,
    }
    return issue_token(payload, secret)


def _is_canonical_segment(segment: str) -> bool:
    # Base64url leaves spare bits in the final character; only the
    # canonical spelling of a signature is accepted.
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return False
    return base64url_encode(raw).decode("ascii") == segment


def verify_token(token: Optional[str], secret: str) -> Optional[Dict[str, Any]]:
    """
    Return the payload of a valid token, or None.

    Rejected: anything but three segments, a header whose ``alg`` is not
    HS256, a signature mismatch, an ``exp`` in the past, or any parse error.
    """
    if not token or token.count(".") != 2:
        return None

    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") != ALGORITHM:
            return None
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options=DECODE_OPTIONS)
    except (JOSEError, ValueError, TypeError, AttributeError) as exc:
        logger.debug("Token rejected: %s", exc)
        return None

    if not _is_canonical_segment(token.rsplit(".", 1)[1]):
        return None
    return payload


async def resolve_identity(token: Optional[str], secret: str, store: UserStore) -> Optional[UserRecord]:
    """
    Map a bearer token to the user it was issued to.

    Besides signature and expiry, the token's ``tv`` must equal the stored
    ``tokenVersion``. Returns None on any failure.
    """
    payload = verify_token(token, secret)
    if payload is None:
        return None

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        return None

    try:
        user = await store.get(email)
    except CorruptRecordError:
        logger.warning("Stored record for token subject is unreadable")
        return None
    if user is None:
        return None

    tv = payload.get("tv")
    if not isinstance(tv, int) or isinstance(tv, bool) or tv != user.token_version:
        logger.debug("Token version mismatch for %s", email)
        return None
    return user
