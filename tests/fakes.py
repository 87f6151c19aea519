from __future__ import annotations

import json
from typing import Any, Callable, Iterator, Optional, Union


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        content: bytes = b"",
        headers: Optional[dict[str, str]] = None,
    ):
        if json_body is not None:
            content = json.dumps(json_body).encode("utf-8")
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.closed = False

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


Handler = Callable[[str, str, dict[str, Any]], FakeResponse]


class FakeSession:
    """Stands in for requests.Session; records every call."""

    def __init__(self, responses: Union[list[FakeResponse], Handler]):
        self.responses = responses
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kw: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kw})
        if callable(self.responses):
            return self.responses(method, url, kw)
        return self.responses.pop(0)


def envelope(data: Any, next_cursor: Optional[str] = "", total: Optional[int] = None) -> dict[str, Any]:
    pagination: dict[str, Any] = {}
    if next_cursor is not None:
        pagination["nextCursor"] = next_cursor
    if total is not None:
        pagination["totalItems"] = total
    return {"pagination": pagination, "data": data}


def package_json(pkg_id: str, *, sha1: str = "", size: int = 0, version: str = "23.1.2.9") -> dict[str, Any]:
    return {
        "id": pkg_id,
        "fileName": f"SentinelInstaller-{version}.msi",
        "fileExtension": ".msi",
        "fileSize": size,
        "sha1": sha1,
        "version": version,
        "osType": "windows",
        "status": "ga",
        "accounts": [{"id": "a1", "name": "Acme"}],
        "sites": [{"id": "s1", "name": "Default site"}],
    }
