"""
Request / Response value types shared by every strategy and adapter.

A Response can be serialized to a single blob so that any BlobStore
(in-memory dict, SQLite row, ...) can hold it without knowing its shape.
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import urlsplit


class NetworkError(Exception):
    """No response could be obtained (offline, DNS failure, timeout, ...).

    HTTP error statuses are NOT network errors; they come back as Responses.
    """


@dataclass
class Request:
    """An intercepted resource request."""

    url: str                 # absolute URL, e.g. "https://costaverde.app/api/boats"
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    mode: Literal["navigate", "cors", "same-origin", "no-cors"] = "cors"

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def cache_key(self) -> str:
        return f"{self.method.upper()} {self.url}"

    @property
    def is_navigation(self) -> bool:
        return self.mode == "navigate"


@dataclass
class Response:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    type: Literal["basic", "cors", "opaque", "error"] = "basic"
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.body)

    def clone(self) -> "Response":
        return Response(
            status=self.status,
            headers=dict(self.headers),
            body=bytes(self.body),
            type=self.type,
            url=self.url,
        )

    def to_blob(self) -> bytes:
        return json.dumps(
            {
                "status": self.status,
                "headers": self.headers,
                "body": base64.b64encode(self.body).decode("ascii"),
                "type": self.type,
                "url": self.url,
            }
        ).encode("utf-8")

    @classmethod
    def from_blob(cls, blob: bytes) -> "Response":
        data = json.loads(blob)
        return cls(
            status=data["status"],
            headers=data.get("headers", {}),
            body=base64.b64decode(data.get("body", "")),
            type=data.get("type", "basic"),
            url=data.get("url", ""),
        )


def json_response(payload: Any, status: int = 200, **kwargs) -> Response:
    return Response(
        status=status,
        headers={"Content-Type": "application/json"},
        body=json.dumps(payload).encode("utf-8"),
        **kwargs,
    )


def text_response(text: str, status: int = 200, **kwargs) -> Response:
    return Response(
        status=status,
        headers={"Content-Type": "text/plain;charset=UTF-8"},
        body=text.encode("utf-8"),
        **kwargs,
    )
