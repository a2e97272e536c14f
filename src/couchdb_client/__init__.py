"""
CouchDB Client - an asynchronous client for the CouchDB REST API.

Cookie session authentication, typed documents and responses, and a typed
error taxonomy on top of httpx and pydantic.
"""

__version__ = "1.0.0"

from .api_clients import (  # noqa: E402
    CouchDBClient,
    CouchDBClientError,
    CouchDBDocument,
    CouchDBError,
    CouchDBRepresentable,
    DeleteError,
    FindError,
    FindResponse,
    GetError,
    IdMissingError,
    InsertError,
    NoDataError,
    RevMissingError,
    RowsResponse,
    Session,
    UnauthorizedError,
    UnknownResponseError,
    UpdateDBResponse,
    UpdateError,
    UpdateResponse,
)
from .config import CouchDBConfig  # noqa: E402

__all__ = [
    "CouchDBClient",
    "CouchDBConfig",
    "CouchDBClientError",
    "CouchDBDocument",
    "CouchDBError",
    "CouchDBRepresentable",
    "DeleteError",
    "FindError",
    "FindResponse",
    "GetError",
    "IdMissingError",
    "InsertError",
    "NoDataError",
    "RevMissingError",
    "RowsResponse",
    "Session",
    "UnauthorizedError",
    "UnknownResponseError",
    "UpdateDBResponse",
    "UpdateError",
    "UpdateResponse",
]
