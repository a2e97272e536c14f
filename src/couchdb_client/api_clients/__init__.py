"""API Client Abstractions for CouchDB.

All HTTP functionality is contained within the client classes; callers work
with typed documents, typed responses and typed errors.
"""

from .base_client import (
    CouchDBBaseClient,
    CouchDBClientError,
    CouchDBRequestError,
    DeleteError,
    FindError,
    GetError,
    IdMissingError,
    InsertError,
    NoDataError,
    RevMissingError,
    UnauthorizedError,
    UnknownResponseError,
    UpdateError,
)
from .couchdb_client import CouchDBClient, encode_document
from .models import (
    CouchDBDocument,
    CouchDBError,
    CouchDBRepresentable,
    CreateSessionResponse,
    FindResponse,
    RawResponse,
    Row,
    RowsResponse,
    UpdateDBResponse,
    UpdateResponse,
)
from .session_manager import Session, parse_cookie_expiry

__all__ = [
    # Clients
    "CouchDBBaseClient",
    "CouchDBClient",
    "encode_document",
    # Errors
    "CouchDBClientError",
    "CouchDBRequestError",
    "IdMissingError",
    "RevMissingError",
    "UnauthorizedError",
    "NoDataError",
    "UnknownResponseError",
    "GetError",
    "InsertError",
    "UpdateError",
    "DeleteError",
    "FindError",
    # Models
    "CouchDBDocument",
    "CouchDBError",
    "CouchDBRepresentable",
    "CreateSessionResponse",
    "FindResponse",
    "RawResponse",
    "Row",
    "RowsResponse",
    "UpdateDBResponse",
    "UpdateResponse",
    # Session
    "Session",
    "parse_cookie_expiry",
]
