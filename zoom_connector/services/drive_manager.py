import io
import logging
from typing import Any, Dict, List, Optional, Union

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload, MediaIoBaseUpload

from config import Settings
from zoom_connector.errors import FileTransferError, FolderCreationError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ['https://www.googleapis.com/auth/drive']
FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

MIME_TYPES = {
    "mp4": "video/mp4",
    "m4a": "audio/m4a",
    "txt": "text/plain",
    "vtt": "text/vtt",
    "json": "application/json",
    "pdf": "application/pdf",
}


def get_mime_type(extension: str) -> Optional[str]:
    """Get MIME type based on file extension."""
    return MIME_TYPES.get((extension or "").lower())


def get_google_credentials(settings: Settings, scopes: List[str]) -> service_account.Credentials:
    return service_account.Credentials.from_service_account_file(
        settings.google_credentials_file,
        scopes=scopes
    )


def escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveStorage:
    """
    Google Drive side of the transfer: folder lookup/creation and uploads.
    Works with My Drive or a shared drive depending on configuration.
    """

    def __init__(self, settings: Settings, service: Any = None):
        self.settings = settings
        if service is None:
            service = build('drive', 'v3', credentials=get_google_credentials(settings, DRIVE_SCOPES),
                            cache_discovery=False)
        self.service = service

    def _write_kwargs(self) -> Dict[str, Any]:
        return {'supportsAllDrives': True} if self.settings.use_shared_drive else {}

    def _list_kwargs(self) -> Dict[str, Any]:
        if self.settings.use_shared_drive:
            return {
                'corpora': 'drive',
                'driveId': self.settings.google_shared_drive_id,
                'includeItemsFromAllDrives': True,
                'supportsAllDrives': True,
            }
        return {}

    def list_folders_by_name(self, name: str, parent_id: str) -> List[Dict[str, Any]]:
        """
        List folders with the given name directly under parent_id.

        Returns:
            List of {'id', 'name'} dictionaries
        """
        query = (
            f"name = '{escape_query_value(name)}' and mimeType = '{FOLDER_MIME_TYPE}' "
            f"and '{escape_query_value(parent_id)}' in parents and trashed = false"
        )
        results = self.service.files().list(
            q=query,
            fields='files(id, name)',
            **self._list_kwargs()
        ).execute()
        return results.get('files', [])

    def create_folder_if_absent(self, name: str, parent_id: str) -> str:
        """
        Find or create a folder under parent_id.

        Returns:
            ID of the existing or newly created folder

        Raises:
            FolderCreationError: if parent_id is missing or cannot be opened
        """
        if not parent_id:
            raise FolderCreationError(f"Missing parent folder ID for '{name}'")

        try:
            self.service.files().get(fileId=parent_id, fields='id', **self._write_kwargs()).execute()
        except HttpError as e:
            logger.error(f"Invalid parent folder ID '{parent_id}' for folder '{name}': {e}")
            raise FolderCreationError(f"Unable to open parent folder '{parent_id}'") from e

        try:
            existing = self.list_folders_by_name(name, parent_id)
            if existing:
                logger.info(f"Found existing folder: {name}")
                return existing[0]['id']

            file_metadata = {
                'name': name,
                'mimeType': FOLDER_MIME_TYPE,
                'parents': [parent_id]
            }
            folder = self.service.files().create(
                body=file_metadata,
                fields='id',
                **self._write_kwargs()
            ).execute()
        except HttpError as e:
            raise FolderCreationError(f"Error creating folder '{name}': {e}") from e

        logger.info(f"Created new folder: {name}")
        return folder['id']

    def create_file(self, name: str, content: Union[str, bytes], parent_id: str,
                    mime_type: Optional[str] = 'text/plain') -> str:
        """
        Create a file in Drive from in-memory content.

        Returns:
            ID of the uploaded file
        """
        data = content.encode('utf-8') if isinstance(content, str) else content
        media = MediaIoBaseUpload(
            io.BytesIO(data),
            mimetype=mime_type or 'application/octet-stream',
            resumable=False
        )
        return self._create(name, parent_id, media)

    def upload_file(self, file_path: str, name: str, parent_id: str,
                    mime_type: Optional[str] = None) -> str:
        """
        Upload a local file to Google Drive.

        Args:
            file_path: Path to the file
            name: Name to give the file in Google Drive
            parent_id: ID of the folder to upload to
            mime_type: MIME type tagged on the upload (optional)

        Returns:
            ID of the uploaded file
        """
        media = MediaFileUpload(
            file_path,
            mimetype=mime_type or 'application/octet-stream',
            resumable=True
        )
        return self._create(name, parent_id, media)

    def _create(self, name: str, parent_id: str, media: Any) -> str:
        file_metadata = {
            'name': name,
            'parents': [parent_id]
        }
        try:
            uploaded = self.service.files().create(
                body=file_metadata,
                media_body=media,
                fields='id',
                **self._write_kwargs()
            ).execute()
        except HttpError as e:
            raise FileTransferError(f"Error uploading {name}: {e}") from e

        logger.info(f"Successfully transferred file: {name}")
        return uploaded['id']

    @staticmethod
    def folder_url(folder_id: str) -> str:
        return f"https://drive.google.com/drive/folders/{folder_id}"
