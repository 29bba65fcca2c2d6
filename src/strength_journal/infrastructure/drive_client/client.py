"""
Google Drive app-data folder provider.

Authenticates with the OAuth2 installed-app flow under the private
``drive.appdata`` scope and keeps the latest snapshot in a single well-known
file inside the ``appDataFolder`` space.
"""

import asyncio
import io
import logging
from pathlib import Path
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from strength_journal.domain.snapshot import Snapshot
from strength_journal.infrastructure.providers.base import SyncProvider
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.utils.exceptions import ProviderAuthError, ProviderIOError
from strength_journal.utils.parameters import DriveConfig

logger = logging.getLogger(__name__)

APP_DATA_SPACE = "appDataFolder"
JSON_MIME_TYPE = "application/json"


class DriveSyncProvider(SyncProvider):
    """
    Provider storing the snapshot in the Google Drive app-data folder.

    The snapshot file is created on the first push and replaced in place on
    every later push.
    """

    name = "Google Drive"

    def __init__(
        self,
        config: DriveConfig,
        codec: SnapshotCodec | None = None,
        service: Any = None,
    ) -> None:
        """
        Initialize Drive provider.

        Args:
            config: Drive configuration.
            codec: Snapshot codec used to encode and parse the remote file.
            service: Pre-built Drive v3 service; skips authentication when given.
        """
        self.config = config
        self.codec = codec or SnapshotCodec()
        self.service: Any = service
        self.credentials: Credentials | None = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Authenticate with Google Drive.

        Raises:
            ProviderAuthError: If authentication fails.
        """
        if self.is_authenticated():
            return

        try:
            self.credentials = await asyncio.to_thread(self._authenticate_oauth2)
            self.service = build(
                "drive", "v3", credentials=self.credentials, cache_discovery=False
            )
        except Exception as e:
            raise ProviderAuthError(f"Authentication failed: {e}") from e

        logger.info("Authenticated with Google Drive")

    async def disconnect(self) -> None:
        """Drop the session and forget the cached token."""
        self.service = None
        self.credentials = None

        token_path = Path(self.config.token_path)
        if token_path.exists():
            token_path.unlink()
            logger.info(f"Removed cached token {token_path}")

    def is_authenticated(self) -> bool:
        if self.service is None:
            return False
        if self.credentials is None:
            return True
        return bool(self.credentials.valid)

    def _authenticate_oauth2(self) -> Credentials:
        """
        Authenticate using OAuth2 installed app flow.

        Returns:
            Valid credentials.
        """
        creds: Credentials | None = None
        token_path = Path(self.config.token_path)

        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), self.config.scopes)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                flow = InstalledAppFlow.from_client_secrets_file(
                    self.config.credentials_path, self.config.scopes
                )
                creds = flow.run_local_server(port=0)

            token_path.parent.mkdir(parents=True, exist_ok=True)
            with open(token_path, "w", encoding="utf-8") as token:
                token.write(creds.to_json())

        return creds

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    async def pull(self) -> Snapshot | None:
        """
        Download and parse the remote snapshot.

        Returns:
            The remote snapshot, or None if it has never been pushed.

        Raises:
            ProviderIOError: If the Drive API call fails.
            MalformedSnapshot: If the remote file is not a valid snapshot.
        """
        raw = await asyncio.to_thread(self._download)
        if raw is None:
            logger.info("No remote snapshot found")
            return None
        return self.codec.parse_snapshot(raw)

    async def push(self, snapshot: Snapshot) -> None:
        """
        Upload the snapshot, creating the remote file on first use.

        Raises:
            ProviderIOError: If the Drive API call fails.
        """
        payload = self.codec.encode_snapshot(snapshot)
        await asyncio.to_thread(self._upload, payload)

    def find_snapshot_file(self) -> str | None:
        """
        Look up the snapshot file id in the app-data folder.

        Returns:
            File id if found, None otherwise.

        Raises:
            ProviderIOError: If listing fails.
        """
        query = f"name = '{self.config.snapshot_name}' and trashed = false"
        try:
            results = (
                self._require_service()
                .files()
                .list(q=query, spaces=APP_DATA_SPACE, fields="files(id, name)")
                .execute()
            )
        except HttpError as e:
            raise ProviderIOError(f"Failed to list app data folder: {e}") from e

        files = results.get("files", [])
        if not files:
            return None

        file_id: str = files[0]["id"]
        return file_id

    def _download(self) -> bytes | None:
        file_id = self.find_snapshot_file()
        if file_id is None:
            return None

        try:
            request = self._require_service().files().get_media(fileId=file_id)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                status, done = downloader.next_chunk()
                if status:
                    logger.debug(f"Download progress: {int(status.progress() * 100)}%")
        except HttpError as e:
            raise ProviderIOError(f"Failed to download snapshot {file_id}: {e}") from e

        logger.info(f"Downloaded remote snapshot {self.config.snapshot_name}")
        return buffer.getvalue()

    def _upload(self, payload: bytes) -> None:
        file_id = self.find_snapshot_file()
        media = MediaIoBaseUpload(io.BytesIO(payload), mimetype=JSON_MIME_TYPE)
        files = self._require_service().files()

        try:
            if file_id is None:
                metadata = {"name": self.config.snapshot_name, "parents": [APP_DATA_SPACE]}
                created = files.create(body=metadata, media_body=media, fields="id").execute()
                logger.info(f"Created remote snapshot {created.get('id')}")
            else:
                files.update(fileId=file_id, media_body=media).execute()
                logger.info(f"Updated remote snapshot {file_id}")
        except HttpError as e:
            raise ProviderIOError(f"Failed to upload snapshot: {e}") from e

    def _require_service(self) -> Any:
        if self.service is None:
            raise ProviderIOError("Not connected to Google Drive")
        return self.service
