"""HTTP client for the Storyline API."""

from __future__ import annotations

from typing import Any

import httpx


class ApiError(Exception):
    """Non-2xx answer from the API, carrying the server's detail text."""

    def __init__(self, status_code: int, detail: str, reason: str | None = None):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.reason = reason


class ApiClient:
    """HTTP client for one project of the Storyline API."""

    def __init__(self, api_url: str, project_id: str | None = None, client: httpx.Client | None = None):
        self.api_url = api_url.rstrip("/")
        self.project_id = project_id
        self.client = client or httpx.Client(timeout=30.0)

    def _request(self, method: str, path: str, data: dict | None = None) -> Any:
        url = f"{self.api_url}{path}"
        res = self.client.request(method, url, json=data, headers={"Accept": "application/json"})
        if res.is_error:
            try:
                body = res.json()
            except ValueError:
                body = {"detail": res.text}
            raise ApiError(res.status_code, str(body.get("detail", res.reason_phrase)), body.get("reason"))
        return res.json()

    def _project_path(self, suffix: str) -> str:
        if not self.project_id:
            raise ApiError(0, "No project selected. Pass --project or run `storyline use <project_id>`.")
        return f"/api/projects/{self.project_id}{suffix}"

    def create_project(self, name: str, seed: bool = True) -> dict:
        return self._request("POST", "/api/projects", {"name": name, "seed": seed})

    def tree(self) -> dict:
        return self._request("GET", self._project_path("/tree"))

    def add_group(self, name: str, parent_id: str | None = None) -> str:
        return self._request("POST", self._project_path("/groups"), {"name": name, "parent_id": parent_id})["id"]

    def add_story(self, group_id: str, title: str | None = None, body: str = "") -> str:
        path = self._project_path(f"/groups/{group_id}/stories")
        return self._request("POST", path, {"title": title, "body": body})["id"]

    def rename(self, node_id: str, name: str) -> int:
        return self._request("PATCH", self._project_path(f"/nodes/{node_id}/name"), {"name": name})["updated"]

    def deletability(self, node_id: str) -> dict:
        return self._request("GET", self._project_path(f"/nodes/{node_id}/deletability"))

    def delete(self, node_id: str) -> dict:
        return self._request("DELETE", self._project_path(f"/nodes/{node_id}"))

    def move(self, node_id: str, parent_id: str | None, index: int) -> dict:
        path = self._project_path(f"/nodes/{node_id}/move")
        return self._request("POST", path, {"parent_id": parent_id, "index": index})

    def link(self, story_id: str, destination_id: str) -> int:
        path = self._project_path(f"/stories/{story_id}/checkpoints")
        return self._request("POST", path, {"destination_id": destination_id})["updated"]

    def unlink(self, story_id: str, destination_id: str) -> int:
        path = self._project_path(f"/stories/{story_id}/checkpoints/{destination_id}")
        return self._request("DELETE", path)["updated"]

    def close(self):
        self.client.close()
