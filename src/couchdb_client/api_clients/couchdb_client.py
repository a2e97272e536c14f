"""CouchDB API Client.

One coroutine per CouchDB REST endpoint: databases (list, exists, create,
delete) and documents (get, find, insert, update, delete). Every operation
logs in lazily before it runs.
"""

import json
import logging
from typing import Any, List, Mapping, Optional, Type, TypeVar, Union

from .base_client import (
    CouchDBBaseClient,
    DeleteError,
    FindError,
    GetError,
    IdMissingError,
    InsertError,
    QueryParams,
    RevMissingError,
    UnknownResponseError,
    UpdateError,
)
from .models import (
    CouchDBRepresentable,
    FindResponse,
    RawResponse,
    UpdateDBResponse,
    UpdateResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R", bound=CouchDBRepresentable)

RequestBody = Union[bytes, str, Mapping[str, Any]]


def _as_body(body: RequestBody) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def encode_document(doc: CouchDBRepresentable) -> bytes:
    """Serialize a document to its CouchDB JSON body."""
    return doc.to_couchdb_json()


class CouchDBClient(CouchDBBaseClient):
    """Asynchronous CouchDB client.

    Example:

        config = CouchDBConfig(host="127.0.0.1", user_name="admin")
        async with CouchDBClient(config) as client:
            post = await client.insert("posts", Post(id="hello", title="Hi"))
            post = await client.update("posts", post.model_copy(update={"title": "Hello"}))
            docs = await client.find("posts", {"selector": {"title": "Hello"}}, Post)
    """

    # Databases

    async def get_all_dbs(self) -> List[str]:
        """List database names using GET /_all_dbs."""
        await self.ensure_authenticated()
        raw = await self._execute("GET", "/_all_dbs")
        return list(self._decode(raw, List[str], GetError))

    async def db_exists(self, db_name: str) -> bool:
        """Check whether a database exists using HEAD /{db}.

        Raises:
            UnauthorizedError: If authentication fails
        """
        await self.ensure_authenticated()
        raw = await self._execute("HEAD", f"/{db_name}")
        self._check_authorized(raw)
        return raw.status_code == 200

    async def create_db(self, db_name: str) -> UpdateDBResponse:
        """Create a database using PUT /{db}.

        Raises:
            InsertError: If CouchDB reports an error, e.g. file_exists
        """
        await self.ensure_authenticated()
        raw = await self._execute("PUT", f"/{db_name}")
        result: UpdateDBResponse = self._decode(raw, UpdateDBResponse, InsertError)
        logger.debug(f"Created database {db_name}: ok={result.ok}")
        return result

    async def delete_db(self, db_name: str) -> UpdateDBResponse:
        """Delete a database using DELETE /{db}.

        Raises:
            DeleteError: If CouchDB reports an error, e.g. not_found
        """
        await self.ensure_authenticated()
        raw = await self._execute("DELETE", f"/{db_name}")
        result: UpdateDBResponse = self._decode(raw, UpdateDBResponse, DeleteError)
        logger.debug(f"Deleted database {db_name}: ok={result.ok}")
        return result

    # Reads

    async def get_raw(
        self, db_name: str, uri: str, query: Optional[QueryParams] = None
    ) -> RawResponse:
        """Fetch a document or view without decoding it.

        Args:
            db_name: Database name
            uri: Document id or view path, e.g. "_design/all/_view/by_url"
            query: Optional query parameters, e.g. {"key": '"value"'}

        Raises:
            UnauthorizedError: If authentication fails
        """
        await self.ensure_authenticated()
        raw = await self._execute("GET", f"/{db_name}/{uri}", query=query)
        self._check_authorized(raw)
        return raw

    async def get(
        self,
        db_name: str,
        uri: str,
        doc_type: Type[T],
        query: Optional[QueryParams] = None,
    ) -> T:
        """Fetch a document or view and decode it as ``doc_type``.

        Use ``RowsResponse[MyDoc]`` as ``doc_type`` for view queries.

        Raises:
            GetError: If CouchDB reports an error, e.g. not_found
            NoDataError: If the response body is empty
            UnauthorizedError: If authentication fails
        """
        raw = await self.get_raw(db_name, uri, query=query)
        return self._decode(raw, doc_type, GetError)

    async def find_page(
        self, db_name: str, selector: Mapping[str, Any], doc_type: Type[T]
    ) -> FindResponse[T]:
        """Run a Mango query using POST /{db}/_find.

        Args:
            db_name: Database name
            selector: Full request body, e.g. {"selector": {"name": "Sam"}}
            doc_type: Type of the matching documents

        Returns:
            Matching documents and the bookmark for the next page

        Raises:
            FindError: If CouchDB reports an error
        """
        await self.ensure_authenticated()
        raw = await self._execute("POST", f"/{db_name}/_find", body=_as_body(selector))
        return self._decode(raw, FindResponse[doc_type], FindError)  # type: ignore[valid-type]

    async def find(
        self, db_name: str, selector: Mapping[str, Any], doc_type: Type[T]
    ) -> List[T]:
        """Run a Mango query and return only the matching documents."""
        page = await self.find_page(db_name, selector, doc_type)
        return list(page.docs)

    # Writes

    async def insert_raw(self, db_name: str, body: RequestBody) -> UpdateResponse:
        """Insert an already encoded document using POST /{db}.

        Raises:
            InsertError: If CouchDB reports an error, e.g. conflict
        """
        await self.ensure_authenticated()
        raw = await self._execute("POST", f"/{db_name}", body=_as_body(body))
        return self._decode(raw, UpdateResponse, InsertError)

    async def insert(self, db_name: str, doc: R) -> R:
        """Insert a document.

        Returns:
            The document carrying the revision assigned by CouchDB

        Raises:
            InsertError: If CouchDB reports an error, e.g. conflict
            UnknownResponseError: If CouchDB answers ok=false or stores the
                document under a different identifier
        """
        result = await self.insert_raw(db_name, encode_document(doc))
        if not result.ok:
            raise UnknownResponseError()
        if result.id != doc.id:
            raise UnknownResponseError(
                f"Document '{doc.id}' was stored under identifier '{result.id}'."
            )
        logger.debug(f"Inserted {result.id} into {db_name} at revision {result.rev}")
        return doc.with_revision(result.rev)

    async def update_raw(
        self, db_name: str, uri: str, body: RequestBody
    ) -> UpdateResponse:
        """Store an already encoded document using PUT /{db}/{uri}.

        Raises:
            UpdateError: If CouchDB reports an error, e.g. conflict
        """
        await self.ensure_authenticated()
        raw = await self._execute("PUT", f"/{db_name}/{uri}", body=_as_body(body))
        return self._decode(raw, UpdateResponse, UpdateError)

    async def update(self, db_name: str, doc: R) -> R:
        """Update a document; it must carry its current revision.

        Returns:
            The document carrying the new revision

        Raises:
            IdMissingError: If the document id is empty
            RevMissingError: If the document has no revision
            UpdateError: If CouchDB reports an error, e.g. conflict
            UnknownResponseError: If CouchDB answers ok=false
        """
        if not doc.id:
            raise IdMissingError()
        if not doc.rev:
            raise RevMissingError()

        result = await self.update_raw(db_name, doc.id, encode_document(doc))
        if not result.ok:
            raise UnknownResponseError()
        logger.debug(f"Updated {result.id} in {db_name} to revision {result.rev}")
        return doc.with_revision(result.rev)

    async def delete_raw(self, db_name: str, uri: str, rev: str) -> UpdateResponse:
        """Delete a document using DELETE /{db}/{uri}?rev={rev}.

        An empty response body yields ``UpdateResponse(ok=False, id="", rev="")``
        instead of an error.

        Raises:
            DeleteError: If CouchDB reports an error, e.g. conflict
            UnauthorizedError: If authentication fails
        """
        await self.ensure_authenticated()
        raw = await self._execute("DELETE", f"/{db_name}/{uri}", query={"rev": rev})
        self._check_authorized(raw)
        if not raw.body:
            logger.debug(f"Empty response deleting {uri} from {db_name}")
            return UpdateResponse(ok=False, id="", rev="")
        return self._decode(raw, UpdateResponse, DeleteError)

    async def delete(self, db_name: str, doc: CouchDBRepresentable) -> UpdateResponse:
        """Delete a document.

        Raises:
            IdMissingError: If the document id is empty
            RevMissingError: If the document has no revision
            DeleteError: If CouchDB reports an error
        """
        if not doc.id:
            raise IdMissingError()
        if not doc.rev:
            raise RevMissingError()
        return await self.delete_raw(db_name, doc.id, doc.rev)
