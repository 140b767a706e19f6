"""Google Drive adapter (Drive v3 REST, appDataFolder).

Files live in the hidden per-app appDataFolder, so they are addressed by
Drive file id and looked up by name.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mindsync.client.providers.base import CloudStorageProvider
from mindsync.client.providers.types import FileHandle, UserInfo
from mindsync.client.sync.types import MergeFailureError
from mindsync.core.types import ProviderKind

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
APP_DATA_FOLDER = "appDataFolder"
JSON_MIME = "application/json"

METADATA_FIELDS = "id,name,version,headRevisionId,md5Checksum,modifiedTime,size,mimeType"
UPLOAD_FIELDS = "id,name,version,headRevisionId,md5Checksum,modifiedTime"
SCOPES = (
    "https://www.googleapis.com/auth/drive.appdata",
    "https://www.googleapis.com/auth/userinfo.email",
)


def handle_from_drive(data: dict[str, Any]) -> FileHandle:
    """Create a FileHandle from a Drive file resource."""
    return FileHandle.from_dict(data)


class GoogleDriveProvider(CloudStorageProvider):
    """Folder-scoped store backed by the Drive appDataFolder."""

    kind = ProviderKind.GDRIVE
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"

    def _extra_authorize_params(self) -> dict[str, str]:
        params = {
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if self._tokens is not None and self._tokens.account_hint:
            params["login_hint"] = self._tokens.account_hint
        return params

    async def _search_file(self, name: str) -> FileHandle | None:
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        response = await self._request(
            "GET",
            f"{DRIVE_API}/files",
            params={
                "spaces": APP_DATA_FOLDER,
                "q": f"name='{escaped}' and trashed=false",
                "fields": f"files({METADATA_FIELDS})",
            },
        )
        files = response.json().get("files", [])
        if not files:
            return None
        if len(files) > 1:
            logger.warning("Found %d files named %s, using the first", len(files), name)
        return handle_from_drive(files[0])

    async def _create_file(self, name: str) -> FileHandle:
        response = await self._request(
            "POST",
            f"{DRIVE_API}/files",
            params={"fields": "id,name"},
            json={"name": name, "parents": [APP_DATA_FOLDER], "mimeType": JSON_MIME},
        )
        created = handle_from_drive(response.json())
        # A new Drive file has no content; give it an empty JSON object
        return await self._upload_file(created.id, {})

    async def _download_file(self, file_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET", f"{DRIVE_API}/files/{file_id}", params={"alt": "media"}
        )
        if not response.content.strip():
            return {}
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise MergeFailureError(f"Drive file {file_id} is not valid JSON") from e
        if not isinstance(data, dict):
            raise MergeFailureError(f"Drive file {file_id} does not hold a JSON object")
        return data

    async def _upload_file(self, file_id: str, data: dict[str, Any]) -> FileHandle:
        response = await self._request(
            "PATCH",
            f"{DRIVE_UPLOAD_API}/files/{file_id}",
            params={"uploadType": "media", "fields": UPLOAD_FIELDS},
            content=json.dumps(data).encode("utf-8"),
            headers={"Content-Type": JSON_MIME},
        )
        return handle_from_drive(response.json())

    async def _get_file_metadata(self, file_id: str) -> FileHandle:
        response = await self._request(
            "GET", f"{DRIVE_API}/files/{file_id}", params={"fields": METADATA_FIELDS}
        )
        return handle_from_drive(response.json())

    async def _list_app_files(self) -> list[FileHandle]:
        handles: list[FileHandle] = []
        page_token: str | None = None
        while True:
            params = {
                "spaces": APP_DATA_FOLDER,
                "fields": "nextPageToken,files(id,name)",
                "pageSize": "100",
            }
            if page_token:
                params["pageToken"] = page_token
            response = await self._request("GET", f"{DRIVE_API}/files", params=params)
            body = response.json()
            handles.extend(handle_from_drive(f) for f in body.get("files", []))
            page_token = body.get("nextPageToken")
            if not page_token:
                return handles

    async def _delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"{DRIVE_API}/files/{file_id}")

    async def _get_user_info(self) -> UserInfo:
        response = await self._request("GET", USERINFO_URL)
        data = response.json()
        if self._tokens is not None and data.get("email"):
            self._tokens.account_hint = data["email"]
        return UserInfo(id=str(data.get("id", "")), email=data.get("email"), name=data.get("name"))

    async def _verify_session(self) -> None:
        await self._request("GET", f"{DRIVE_API}/about", params={"fields": "user"})
