"""HTTP client for the preview compile authority."""

from __future__ import annotations

from typing import Any

import httpx

from preview_engine.kernel.errors import AuthError, TransportError


class PreviewApiClient:
    """
    HTTP surface of the compile authority. Used for the initial snapshot,
    as the fallback when the socket is down, and to start a dev server.
    """

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.request_count = 0

    def _headers(self, accept: str = "application/json") -> dict:
        """Build request headers."""
        headers = {"Content-Type": "application/json", "Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, accept: str = "application/json", **kwargs: Any) -> httpx.Response:
        url = f"{self.api_url}{path}"
        self.request_count += 1
        try:
            res = await self.client.request(method, url, headers=self._headers(accept), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if res.status_code in (401, 403):
            raise AuthError(f"{method} {path} rejected: {res.status_code}")
        try:
            res.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"{method} {path} returned {res.status_code}") from e
        return res

    def _json(self, res: httpx.Response, what: str) -> dict:
        """Decode a JSON object body; anything else is a transport failure."""
        try:
            data = res.json()
        except ValueError as e:
            raise TransportError(f"{what} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise TransportError(f"{what} returned {type(data).__name__}, expected an object")
        return data

    async def fetch_snapshot(self, project_id: str) -> str:
        """GET the precomputed document for a project."""
        res = await self._request("GET", f"/preview/project/{project_id}/html", accept="text/html")
        return res.text

    async def update_file(self, project_id: str, file_path: str, content: str) -> str:
        """
        PUT one file and receive the recompiled document.

        Returns the html from {"success": true, "html": "..."}.
        """
        res = await self._request(
            "PUT",
            f"/preview/project/{project_id}/file",
            json={"filePath": file_path, "content": content},
        )
        data = self._json(res, f"update of {file_path}")
        if not data.get("success") or "html" not in data:
            raise TransportError(f"update of {file_path} was not accepted")
        return data["html"]

    async def start_dev_server(self, project_id: str) -> str:
        """Ask for an external dev server; returns its URL."""
        res = await self._request("POST", f"/devserver/start/{project_id}")
        url = self._json(res, "dev server start").get("url")
        if not url:
            raise TransportError("dev server start returned no url")
        return url

    async def aclose(self) -> None:
        """Close client."""
        await self.client.aclose()
