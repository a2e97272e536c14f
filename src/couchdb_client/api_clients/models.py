"""Data models exchanged with CouchDB.

Documents, operation responses and the server error envelope are pydantic
models; they are decoded from one response body and never mutated afterwards.
"""

import json
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")
DocT = TypeVar("DocT", bound="CouchDBDocument")
R = TypeVar("R", bound="CouchDBRepresentable")


@runtime_checkable
class CouchDBRepresentable(Protocol):
    """Capability of a value that can be stored as a CouchDB document.

    ``to_couchdb_json`` must produce the document body with the identifier
    under ``_id`` and, when set, the revision under ``_rev``.
    """

    @property
    def id(self) -> str: ...

    @property
    def rev(self) -> Optional[str]: ...

    def with_revision(self: R, rev: str) -> R: ...

    def to_couchdb_json(self) -> bytes: ...


class CouchDBDocument(BaseModel):
    """Immutable base model for CouchDB documents.

    ``id`` and ``rev`` are serialized as ``_id`` and ``_rev``. Subclass it and
    add your own fields:

        class Post(CouchDBDocument):
            title: str
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., alias="_id", description="Document identifier")
    rev: Optional[str] = Field(
        default=None, alias="_rev", description="Document revision (MVCC token)"
    )

    def with_revision(self: DocT, rev: str) -> DocT:
        """Return a copy of this document carrying revision ``rev``."""
        return self.model_copy(update={"rev": rev})

    def to_couchdb_json(self) -> bytes:
        """Serialize as a CouchDB document body, leaving out an unset revision."""
        exclude = None if self.rev else {"rev"}
        return self.model_dump_json(by_alias=True, exclude=exclude).encode("utf-8")


class CouchDBError(BaseModel):
    """Error envelope reported by CouchDB."""

    model_config = ConfigDict(frozen=True)

    error: str = Field(..., description="CouchDB error code, e.g. 'conflict'")
    reason: str = Field(..., description="Human-readable error reason")

    def __str__(self) -> str:
        return f"{self.error}: {self.reason}"


class CreateSessionResponse(BaseModel):
    """Payload of POST /_session."""

    model_config = ConfigDict(frozen=True)

    ok: bool = False
    name: Optional[str] = None
    roles: Optional[List[str]] = None


class UpdateResponse(BaseModel):
    """Result of a document insert, update or delete."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    id: str
    rev: str


class UpdateDBResponse(BaseModel):
    """Result of a database create or delete."""

    model_config = ConfigDict(frozen=True)

    ok: bool


class FindResponse(BaseModel, Generic[T]):
    """Result of a Mango query against /{db}/_find."""

    model_config = ConfigDict(frozen=True)

    docs: List[T]
    bookmark: Optional[str] = None


class Row(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True)

    value: T


class RowsResponse(BaseModel, Generic[T]):
    """Result of a view query, e.g. GET /{db}/_design/all/_view/by_name."""

    model_config = ConfigDict(frozen=True)

    total_rows: int
    offset: int
    rows: List[Row[T]]


@dataclass(frozen=True)
class RawResponse:
    """Fully buffered HTTP response."""

    status_code: int
    headers: httpx.Headers
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)
