"""
Request descriptions sent by APIClient.

An APIRequest is a plain value: method, path relative to the base URL,
optional query parameters and body. The client turns it into an httpx
request and attaches credentials.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from http_api.errors import EncodingError


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class ContentType(str, Enum):
    JSON = "application/json"
    NONE = ""


@dataclass(frozen=True)
class APIRequest:
    """
    One logical backend request.

    Attributes:
        method: HTTP method
        path: Path relative to the API base URL, e.g. ``/api/mobile/workouts``
        query: Optional query parameters
        body: Raw request body
        content_type: Content-Type header; NONE sends no header
    """

    method: HTTPMethod = HTTPMethod.GET
    path: str = "/"
    query: Optional[dict[str, Any]] = None
    body: Optional[bytes] = None
    content_type: ContentType = ContentType.JSON

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.content_type is not ContentType.NONE:
            headers["Content-Type"] = self.content_type.value
        return headers

    @classmethod
    def get(cls, path: str, query: Optional[dict[str, Any]] = None) -> APIRequest:
        return cls(method=HTTPMethod.GET, path=path, query=query)

    @classmethod
    def post(cls, path: str, body: Any) -> APIRequest:
        return cls(method=HTTPMethod.POST, path=path, body=_encode_body(body))

    @classmethod
    def put(cls, path: str, body: Any) -> APIRequest:
        return cls(method=HTTPMethod.PUT, path=path, body=_encode_body(body))

    @classmethod
    def delete(cls, path: str) -> APIRequest:
        return cls(method=HTTPMethod.DELETE, path=path, content_type=ContentType.NONE)


def _encode_body(body: Any) -> bytes:
    """Bytes pass through, str is UTF-8 encoded, anything else becomes JSON."""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, BaseModel):
        return body.model_dump_json().encode("utf-8")
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Failed to prepare request data: {exc}") from exc
