"""Dropbox adapter (Dropbox API v2 over HTTP).

The app folder is path-scoped: a logical file name maps to "/<name>"
and that path is used as the file id.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from mindsync.client.providers.base import CloudStorageProvider
from mindsync.client.providers.types import FileHandle, UserInfo
from mindsync.client.sync.types import MergeFailureError, NotFoundError
from mindsync.core.types import ProviderKind

logger = logging.getLogger(__name__)

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"


def path_for(name: str) -> str:
    """Map a logical file name to its app-folder path."""
    return name if name.startswith("/") else f"/{name}"


def handle_from_dropbox(data: dict[str, Any]) -> FileHandle:
    """Create a FileHandle from Dropbox file metadata."""
    return FileHandle(
        id=data.get("path_lower") or data.get("path_display") or data.get("id", ""),
        name=data.get("name", ""),
        rev=data.get("rev"),
        md5_checksum=data.get("content_hash"),
        modified_time=data.get("server_modified"),
        size=data.get("size"),
    )


class DropboxProvider(CloudStorageProvider):
    """Path-scoped store backed by a Dropbox app folder."""

    kind = ProviderKind.DROPBOX
    authorize_endpoint = "https://www.dropbox.com/oauth2/authorize"
    token_endpoint = "https://api.dropboxapi.com/oauth2/token"

    def _extra_authorize_params(self) -> dict[str, str]:
        return {"token_access_type": "offline"}

    def _handle_response(self, response: httpx.Response) -> None:
        """Map Dropbox's 409 path/not_found errors to NotFoundError."""
        if response.status_code == 409 and "not_found" in response.text:
            raise NotFoundError(f"Dropbox path not found: {response.text[:200]}")
        super()._handle_response(response)

    async def _rpc(self, endpoint: str, payload: dict[str, Any] | None) -> httpx.Response:
        if payload is None:
            return await self._request("POST", f"{API_URL}/{endpoint}")
        return await self._request("POST", f"{API_URL}/{endpoint}", json=payload)

    async def _search_file(self, name: str) -> FileHandle | None:
        try:
            return await self._get_file_metadata(path_for(name))
        except NotFoundError:
            return None

    async def _create_file(self, name: str) -> FileHandle:
        return await self._upload_file(path_for(name), {})

    async def _download_file(self, file_id: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"{CONTENT_URL}/files/download",
            headers={"Dropbox-API-Arg": json.dumps({"path": path_for(file_id)})},
        )
        if not response.content.strip():
            return {}
        try:
            data = json.loads(response.content)
        except json.JSONDecodeError as e:
            raise MergeFailureError(f"Dropbox file {file_id} is not valid JSON") from e
        if not isinstance(data, dict):
            raise MergeFailureError(f"Dropbox file {file_id} does not hold a JSON object")
        return data

    async def _upload_file(self, file_id: str, data: dict[str, Any]) -> FileHandle:
        arg = {
            "path": path_for(file_id),
            "mode": "overwrite",
            "autorename": False,
            "mute": True,
        }
        response = await self._request(
            "POST",
            f"{CONTENT_URL}/files/upload",
            content=json.dumps(data).encode("utf-8"),
            headers={
                "Dropbox-API-Arg": json.dumps(arg),
                "Content-Type": "application/octet-stream",
            },
        )
        return handle_from_dropbox(response.json())

    async def _get_file_metadata(self, file_id: str) -> FileHandle:
        response = await self._rpc("files/get_metadata", {"path": path_for(file_id)})
        return handle_from_dropbox(response.json())

    async def _list_app_files(self) -> list[FileHandle]:
        try:
            response = await self._rpc("files/list_folder", {"path": ""})
        except NotFoundError:
            return []
        body = response.json()
        entries = list(body.get("entries", []))
        while body.get("has_more"):
            response = await self._rpc("files/list_folder/continue", {"cursor": body["cursor"]})
            body = response.json()
            entries.extend(body.get("entries", []))
        return [handle_from_dropbox(e) for e in entries if e.get(".tag") == "file"]

    async def _delete_file(self, file_id: str) -> None:
        await self._rpc("files/delete_v2", {"path": path_for(file_id)})

    async def _get_user_info(self) -> UserInfo:
        response = await self._rpc("users/get_current_account", None)
        data = response.json()
        if self._tokens is not None and data.get("email"):
            self._tokens.account_hint = data["email"]
        return UserInfo(
            id=data.get("account_id", ""),
            email=data.get("email"),
            name=(data.get("name") or {}).get("display_name"),
        )
