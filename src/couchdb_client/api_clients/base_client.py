"""Base CouchDB API Client.

Provides the request/authentication/response pipeline shared by every CouchDB
operation: URL building, cookie session authentication, request execution and
two-phase response decoding with error classification.
"""

import logging
from functools import lru_cache
from typing import Any, Mapping, Optional, Sequence, Tuple, Type, Union, cast
from urllib.parse import quote, urlencode

import httpx
from pydantic import TypeAdapter, ValidationError

from ..config import CouchDBConfig
from .models import CouchDBError, CreateSessionResponse, RawResponse
from .session_manager import Session

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

QueryParams = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


class CouchDBClientError(Exception):
    """Base exception for CouchDB client errors."""

    default_message = "CouchDB client error."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or self.default_message)
        self.status_code = status_code


class IdMissingError(CouchDBClientError):
    """Exception raised when a document has no identifier."""

    default_message = "The 'id' property is empty or missing in the provided document."


class RevMissingError(CouchDBClientError):
    """Exception raised when a document has no revision."""

    default_message = "The '_rev' property is empty or missing in the provided document."


class UnauthorizedError(CouchDBClientError):
    """Exception raised when CouchDB answers 401 Unauthorized."""

    default_message = "Authentication failed due to an incorrect username or password."


class NoDataError(CouchDBClientError):
    """Exception raised when a response body is empty."""

    default_message = "The response body is missing the expected data."


class UnknownResponseError(CouchDBClientError):
    """Exception raised when CouchDB reports ok=false without an error envelope."""

    default_message = "The response from CouchDB was unrecognized or invalid."


class CouchDBRequestError(CouchDBClientError):
    """Exception wrapping an error envelope reported by CouchDB."""

    operation = "CouchDB"

    def __init__(self, error: CouchDBError, status_code: Optional[int] = None):
        super().__init__(
            f"The {self.operation} request wasn't successful: {error}", status_code
        )
        self.error = error

    @property
    def error_code(self) -> str:
        return self.error.error

    @property
    def reason(self) -> str:
        return self.error.reason


class GetError(CouchDBRequestError):
    operation = "GET"


class InsertError(CouchDBRequestError):
    operation = "INSERT"


class UpdateError(CouchDBRequestError):
    operation = "UPDATE"


class DeleteError(CouchDBRequestError):
    operation = "DELETE"


class FindError(CouchDBRequestError):
    operation = "FIND"


@lru_cache(maxsize=256)
def _type_adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


class CouchDBBaseClient:
    """Base API client with session authentication and common HTTP functionality."""

    def __init__(
        self,
        config: Optional[CouchDBConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize base API client.

        Args:
            config: Connection parameters and credentials; defaults to a local
                CouchDB on http://127.0.0.1:5984
            http_client: Optional shared httpx client. A client passed in here
                belongs to the caller and is never closed by this instance.
        """
        self.config = config or CouchDBConfig()
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._session: Optional[Session] = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get the transport, creating an owned one on first use."""
        if self._owns_http_client and (
            self._http_client is None or self._http_client.is_closed
        ):
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(float(self.config.request_timeout))
            )
        return cast(httpx.AsyncClient, self._http_client)

    @property
    def session(self) -> Optional[Session]:
        """Current session, or None when not authenticated."""
        return self._session

    @property
    def is_authorized(self) -> bool:
        """Whether CouchDB accepted the last login."""
        return self._session is not None and self._session.authenticated

    def build_url(self, path: str, query: Optional[QueryParams] = None) -> str:
        """Build an absolute request URL.

        Args:
            path: Request path starting with "/"
            query: Query parameters; "?" is only appended when non-empty

        Returns:
            URL such as ``http://127.0.0.1:5984/db/doc?rev=1-a``
        """
        url = f"{self.config.base_url}{quote(path)}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    async def ensure_authenticated(self) -> Session:
        """Return a usable session, logging in only when there is none.

        Concurrent callers may log in at the same time; each login produces a
        valid session and the last one stored wins.

        Raises:
            UnauthorizedError: If CouchDB rejects the credentials
            NoDataError: If the login response has no body
        """
        session = self._session
        if session is not None and session.is_usable():
            logger.debug("Returning existing usable session")
            return session

        logger.debug("No usable session, authenticating...")
        return await self._authenticate()

    async def _authenticate(self) -> Session:
        form = urlencode(
            {"name": self.config.user_name, "password": self.config.user_password}
        )
        raw = await self._execute(
            "POST",
            "/_session",
            body=form.encode("utf-8"),
            content_type=FORM_CONTENT_TYPE,
            with_session=False,
        )

        if raw.status_code == 401:
            self._session = None
            raise UnauthorizedError(status_code=401)

        cookies = raw.headers.get_list("set-cookie")
        set_cookie = cookies[-1] if cookies else ""

        if not raw.body:
            raise NoDataError(status_code=raw.status_code)

        payload = CreateSessionResponse.model_validate_json(raw.body)
        session = Session.from_login(set_cookie, payload)
        self._session = session

        if session.expires_at is None:
            logger.debug("Authentication complete, session has no expiry")
        else:
            logger.debug(
                f"Authentication complete, session expires at {session.expires_at.isoformat()}"
            )
        return session

    async def _execute(
        self,
        method: str,
        path: str,
        query: Optional[QueryParams] = None,
        body: Optional[bytes] = None,
        content_type: str = JSON_CONTENT_TYPE,
        with_session: bool = True,
    ) -> RawResponse:
        """Send a request and buffer the whole response.

        Transport errors raised by httpx propagate unchanged.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path
            query: Optional query parameters
            body: Optional request body
            content_type: Value of the Content-Type header
            with_session: Attach the session cookie when one is stored

        Returns:
            Status code, headers and body bytes
        """
        url = self.build_url(path, query)
        headers = {"Content-Type": content_type}
        if with_session and self._session is not None:
            headers["Cookie"] = self._session.cookie

        client = self.http_client
        request = client.build_request(
            method,
            url,
            headers=headers,
            content=body,
            timeout=float(self.config.request_timeout),
        )

        logger.debug(f"{method} {path}")
        response = await client.send(request, stream=True)
        try:
            data = await self._read_body(response)
        finally:
            await response.aclose()

        logger.debug(f"{method} {path} -> {response.status_code} ({len(data)} bytes)")
        return RawResponse(
            status_code=response.status_code, headers=response.headers, body=data
        )

    async def _read_body(self, response: httpx.Response) -> bytes:
        """Read the body up to Content-Length, or up to max_body_size without it."""
        limit = self.config.max_body_size
        content_length = response.headers.get("Content-Length")
        # Content-Length counts encoded bytes, aiter_bytes yields decoded ones
        if content_length is not None and not response.headers.get("Content-Encoding"):
            try:
                declared = int(content_length)
            except ValueError:
                declared = -1
            if declared >= 0:
                limit = declared
            else:
                logger.debug(f"Ignoring invalid Content-Length: {content_length}")

        buffer = bytearray()
        async for chunk in response.aiter_bytes():
            remaining = limit - len(buffer)
            if len(chunk) > remaining:
                buffer.extend(chunk[:remaining])
                logger.warning(
                    f"Response body truncated at {limit} bytes for {response.request.url.path}"
                )
                break
            buffer.extend(chunk)
        return bytes(buffer)

    def _check_authorized(self, raw: RawResponse) -> None:
        """Raise UnauthorizedError on 401 and drop the stored session."""
        if raw.status_code == 401:
            logger.debug("Received 401, dropping session")
            self._session = None
            raise UnauthorizedError(status_code=401)

    def _decode(
        self,
        raw: RawResponse,
        expected_type: Any,
        error_class: Type[CouchDBRequestError],
    ) -> Any:
        """Decode a response body into ``expected_type``.

        The body is decoded as the success shape first. If that fails and the
        body is a CouchDB error envelope, ``error_class`` wrapping it is
        raised; otherwise the original validation error propagates.

        Raises:
            UnauthorizedError: On HTTP 401
            NoDataError: If the body is empty
            CouchDBRequestError: Subclass given by ``error_class``
            pydantic.ValidationError: If the body matches neither shape
        """
        self._check_authorized(raw)
        if not raw.body:
            raise NoDataError(status_code=raw.status_code)

        try:
            return _type_adapter(expected_type).validate_json(raw.body)
        except ValidationError as parsing_error:
            couchdb_error = self._decode_server_error(raw.body)
            if couchdb_error is None:
                raise
            raise error_class(couchdb_error, status_code=raw.status_code) from parsing_error

    @staticmethod
    def _decode_server_error(body: bytes) -> Optional[CouchDBError]:
        try:
            return CouchDBError.model_validate_json(body)
        except ValidationError:
            return None

    async def close(self) -> None:
        """Close the HTTP transport if this client created it."""
        if (
            self._owns_http_client
            and self._http_client is not None
            and not self._http_client.is_closed
        ):
            await self._http_client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def __del__(self):
        """Cleanup when object is destroyed."""
        http_client = getattr(self, "_http_client", None)
        if (
            getattr(self, "_owns_http_client", False)
            and http_client is not None
            and not http_client.is_closed
        ):
            # Cannot use await in __del__, so we'll just log a warning
            logger.warning("CouchDB client was not properly closed")
