"""In-memory CouchDB for testing.

Serves the subset of the CouchDB REST API used by the client through
``httpx.MockTransport``, so tests exercise real requests, real headers and
real response bodies without a running database.
"""

import json
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx

TEST_USERS = {"admin": "secret"}

SESSION_COOKIE = (
    "AuthSession=YWRtaW46NjVGMDQ2RkI6Q0u2; Version=1; "
    "Expires=Wed, 21 Oct 2099 07:28:00 GMT; Max-Age=600; Path=/; HttpOnly"
)


def _json(status_code: int, payload: Any, headers: Optional[Dict[str, str]] = None):
    return httpx.Response(status_code, json=payload, headers=headers)


def _error(status_code: int, error: str, reason: str) -> httpx.Response:
    return _json(status_code, {"error": error, "reason": reason})


class FakeCouchDB:
    """In-memory CouchDB server with request counters."""

    def __init__(self, set_cookie: str = SESSION_COOKIE):
        self.set_cookie = set_cookie
        self.databases: Dict[str, Dict[str, Dict[str, Any]]] = {
            "_global_changes": {},
            "_users": {},
        }
        self.requests: List[httpx.Request] = []
        self.calls: Counter = Counter()
        # Canned (status, body, headers) answers keyed by (method, path)
        self.overrides: Dict[Tuple[str, str], Tuple[int, bytes, Dict[str, str]]] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def respond_with(
        self,
        method: str,
        path: str,
        status_code: int,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Answer every (method, path) request with a canned response."""
        self.overrides[(method, path)] = (status_code, content, headers or {})

    def add_document(self, db_name: str, doc: Dict[str, Any]) -> None:
        self.databases.setdefault(db_name, {})[doc["_id"]] = dict(doc)

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.requests.append(request)
        self.calls[(method, path)] += 1

        override = self.overrides.get((method, path))
        if override is not None:
            status_code, content, headers = override
            return httpx.Response(status_code, content=content, headers=headers)

        if path == "/_session" and method == "POST":
            return self._login(request)

        if "AuthSession=" not in request.headers.get("Cookie", ""):
            return _error(401, "unauthorized", "You are not authorized to access this db.")

        if path == "/_all_dbs" and method == "GET":
            return _json(200, sorted(self.databases))

        parts = [part for part in path.split("/") if part]
        db_name = parts[0]
        if len(parts) == 1:
            return self._database(method, db_name, request)
        if parts[1] == "_find" and method == "POST":
            return self._find(db_name, request)
        return self._document(method, db_name, "/".join(parts[1:]), request)

    def _login(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode("utf-8"))
        name = form.get("name", [""])[0]
        password = form.get("password", [""])[0]
        if TEST_USERS.get(name) != password or not name:
            return _error(401, "unauthorized", "Name or password is incorrect.")
        headers = {"Set-Cookie": self.set_cookie} if self.set_cookie else None
        return _json(200, {"ok": True, "name": name, "roles": ["_admin"]}, headers)

    def _database(
        self, method: str, db_name: str, request: httpx.Request
    ) -> httpx.Response:
        exists = db_name in self.databases
        if method == "HEAD":
            return httpx.Response(200 if exists else 404)
        if method == "PUT":
            if exists:
                return _error(
                    412,
                    "file_exists",
                    "The database could not be created, the file already exists.",
                )
            self.databases[db_name] = {}
            return _json(201, {"ok": True})
        if method == "DELETE":
            if not exists:
                return _error(404, "not_found", "Database does not exist.")
            del self.databases[db_name]
            return _json(200, {"ok": True})
        if method == "POST":
            return self._insert(db_name, request)
        return _error(405, "method_not_allowed", "Only GET,HEAD,POST allowed")

    def _find(self, db_name: str, request: httpx.Request) -> httpx.Response:
        if db_name not in self.databases:
            return _error(404, "not_found", "Database does not exist.")
        query = json.loads(request.content)
        selector = query.get("selector")
        if not isinstance(selector, dict):
            return _error(400, "bad_request", "Missing required key: selector")
        docs = [
            doc
            for doc in self.databases[db_name].values()
            if all(doc.get(key) == value for key, value in selector.items())
        ]
        return _json(200, {"docs": docs, "bookmark": "nil"})

    def _insert(self, db_name: str, request: httpx.Request) -> httpx.Response:
        doc = json.loads(request.content)
        doc_id = doc.get("_id") or uuid.uuid4().hex
        if doc_id in self.databases[db_name]:
            return _error(409, "conflict", "Document update conflict.")
        doc["_id"] = doc_id
        doc["_rev"] = f"1-{uuid.uuid4().hex}"
        self.databases[db_name][doc_id] = doc
        return _json(201, {"ok": True, "id": doc_id, "rev": doc["_rev"]})

    def _document(
        self, method: str, db_name: str, doc_id: str, request: httpx.Request
    ) -> httpx.Response:
        if db_name not in self.databases:
            return _error(404, "not_found", "Database does not exist.")
        documents = self.databases[db_name]
        current = documents.get(doc_id)

        if method == "GET":
            if current is None:
                return _error(404, "not_found", "missing")
            return _json(200, current)

        if method == "PUT":
            doc = json.loads(request.content)
            if current is not None and doc.get("_rev") != current["_rev"]:
                return _error(409, "conflict", "Document update conflict.")
            generation = int(current["_rev"].split("-")[0]) if current else 0
            doc["_id"] = doc_id
            doc["_rev"] = f"{generation + 1}-{uuid.uuid4().hex}"
            documents[doc_id] = doc
            return _json(201, {"ok": True, "id": doc_id, "rev": doc["_rev"]})

        if method == "DELETE":
            if current is None:
                return _error(404, "not_found", "missing")
            if request.url.params.get("rev") != current["_rev"]:
                return _error(409, "conflict", "Document update conflict.")
            del documents[doc_id]
            generation = int(current["_rev"].split("-")[0])
            rev = f"{generation + 1}-{uuid.uuid4().hex}"
            return _json(200, {"ok": True, "id": doc_id, "rev": rev})

        return _error(405, "method_not_allowed", "Only DELETE,GET,HEAD,PUT allowed")
