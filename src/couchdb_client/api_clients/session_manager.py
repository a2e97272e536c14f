"""Session cookie tracking for CouchDB cookie authentication.

Parses the ``Set-Cookie`` header returned by POST /_session, determines when
the session expires, and decides whether a stored session can still be used.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http.cookies import CookieError, SimpleCookie
from typing import Optional, Tuple

from .models import CreateSessionResponse

logger = logging.getLogger(__name__)

LEGACY_EXPIRES_FORMAT = "%a, %d-%b-%Y %H:%M:%S %Z"

_EXPIRES_RE = re.compile(r"expires=([^;]+)", re.IGNORECASE)


@dataclass(frozen=True)
class Session:
    """Authenticated CouchDB session.

    A session is replaced as a whole on every successful login and is never
    modified afterwards.
    """

    authenticated: bool
    user_name: Optional[str]
    roles: Tuple[str, ...]
    cookie: str
    expires_at: Optional[datetime] = None

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """Check whether the session cookie can still be sent.

        A session without a known expiry never expires on the client side;
        the server invalidates it by answering 401.
        """
        if self.expires_at is None:
            return True
        current = now or datetime.now(timezone.utc)
        return current < self.expires_at

    @classmethod
    def from_login(
        cls, set_cookie: str, payload: CreateSessionResponse
    ) -> "Session":
        """Build a session from a login response."""
        return cls(
            authenticated=payload.ok,
            user_name=payload.name,
            roles=tuple(payload.roles or ()),
            cookie=set_cookie,
            expires_at=parse_cookie_expiry(set_cookie),
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_http_date_expiry(set_cookie: str) -> Optional[datetime]:
    """Read the ``Expires`` attribute of a cookie as an HTTP-date."""
    cookie: SimpleCookie = SimpleCookie()
    try:
        cookie.load(set_cookie)
    except CookieError:
        return None

    for morsel in cookie.values():
        expires = morsel["expires"]
        if not expires:
            continue
        try:
            return _as_utc(parsedate_to_datetime(expires))
        except (TypeError, ValueError, IndexError):
            return None
    return None


def parse_legacy_expiry(set_cookie: str) -> Optional[datetime]:
    """Scan the raw header for ``Expires=`` in the ``Wed, 21-Oct-2015 07:28:00 GMT`` form."""
    match = _EXPIRES_RE.search(set_cookie)
    if not match:
        return None
    try:
        return _as_utc(datetime.strptime(match.group(1).strip(), LEGACY_EXPIRES_FORMAT))
    except ValueError:
        return None


def parse_cookie_expiry(set_cookie: str) -> Optional[datetime]:
    """Determine when a session cookie expires.

    Args:
        set_cookie: Raw ``Set-Cookie`` header value

    Returns:
        Expiry as a UTC datetime, or None when the cookie carries no
        parseable ``Expires`` attribute
    """
    if not set_cookie:
        return None

    expires_at = parse_http_date_expiry(set_cookie)
    if expires_at is None:
        expires_at = parse_legacy_expiry(set_cookie)

    if expires_at is None:
        logger.debug("Session cookie has no parseable expiry")
    return expires_at
