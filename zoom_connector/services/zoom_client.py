import requests
import logging
from requests.auth import HTTPBasicAuth
from typing import Dict, Any, Optional, Type, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from config import Settings
from zoom_connector.errors import AuthError, FetchError, FileTransferError, ParseError
from zoom_connector.models.schemas import (
    Credential,
    RecordingsPage,
    SummariesPage,
    SummaryDetail,
    UsersPage,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TokenProvider:
    """
    Obtains a Zoom bearer token with the Server-to-Server OAuth
    account_credentials grant and caches it for the life of the process.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self._credential: Optional[Credential] = None

    def acquire(self) -> Credential:
        """
        Get an OAuth token for Zoom API authentication.

        Returns:
            Cached or freshly exchanged Credential

        Raises:
            AuthError: if the exchange fails or the response carries no token
        """
        if self._credential is not None:
            return self._credential

        try:
            response = self.session.post(
                self.settings.zoom_oauth_url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                auth=HTTPBasicAuth(self.settings.zoom_client_id, self.settings.zoom_client_secret),
                data={
                    "grant_type": "account_credentials",
                    "account_id": self.settings.zoom_account_id,
                },
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            raise AuthError(f"Error getting Zoom access token: {e}") from e

        if response.status_code != 200:
            raise AuthError(f"Failed to get Zoom token ({response.status_code}): {response.text}")

        try:
            token_data = response.json()
        except ValueError as e:
            raise AuthError(f"Zoom token response is not JSON: {e}") from e

        token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not token:
            raise AuthError("Zoom token response did not include an access_token")

        self._credential = Credential(token=token)
        logger.info("Obtained new Zoom access token")
        return self._credential

    @property
    def token(self) -> str:
        return self.acquire().token

    def reset(self) -> None:
        """Forget the cached token so the next acquire() exchanges a new one."""
        self._credential = None
        logger.info("Zoom credentials have been reset")


def encode_meeting_uuid(meeting_uuid: str) -> str:
    """
    Encode a meeting UUID for use in a URL path.

    Zoom requires double encoding when the UUID starts with '/' or contains '//'.
    """
    if meeting_uuid.startswith("/") or "//" in meeting_uuid:
        return quote(quote(meeting_uuid, safe=""), safe="")
    return quote(meeting_uuid, safe="")


def with_access_token(download_url: str, token: str) -> str:
    separator = "&" if "?" in download_url else "?"
    return f"{download_url}{separator}access_token={token}"


def parse_payload(model: Type[ModelT], data: Any) -> ModelT:
    """Validate a raw API payload into a typed model, raising ParseError on mismatch."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Unexpected {model.__name__} payload: {e}") from e


class ZoomClient:
    """
    Thin adapter over the Zoom REST API. Every response is validated into a
    schema model before it leaves this class.
    """

    def __init__(self, settings: Settings, token_provider: TokenProvider,
                 session: Optional[requests.Session] = None):
        self.settings = settings
        self.token_provider = token_provider
        self.session = session or token_provider.session
        self.base_url = settings.zoom_base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_provider.token}",
            "Content-Type": "application/json",
        }

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, headers=self._headers(), params=params,
                                        timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request to {path} failed: {e}") from e

        if response.status_code != 200:
            raise FetchError(f"API error for {path} ({response.status_code}): {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Response from {path} is not JSON: {e}") from e

    def list_users_page(self, page_number: int, page_size: int = 300) -> UsersPage:
        data = self._get_json("/users", params={
            "page_size": page_size,
            "page_number": page_number,
            "status": "active",
        })
        return parse_payload(UsersPage, data)

    def list_recordings_page(self, user_id: str, from_date: str, to_date: str,
                             page_number: int, page_size: int = 100) -> RecordingsPage:
        data = self._get_json(f"/users/{quote(user_id, safe='')}/recordings", params={
            "from": from_date,
            "to": to_date,
            "page_size": page_size,
            "page_number": page_number,
        })
        return parse_payload(RecordingsPage, data)

    def list_summaries_page(self, from_time: str, to_time: str,
                            next_page_token: Optional[str] = None, page_size: int = 100) -> SummariesPage:
        params = {
            "from": from_time,
            "to": to_time,
            "page_size": page_size,
        }
        if next_page_token:
            params["next_page_token"] = next_page_token
        data = self._get_json("/meetings/meeting_summaries", params=params)
        return parse_payload(SummariesPage, data)

    def get_summary_detail(self, meeting_uuid: str) -> SummaryDetail:
        data = self._get_json(f"/meetings/{encode_meeting_uuid(meeting_uuid)}/meeting_summary")
        return parse_payload(SummaryDetail, data)

    def download_file(self, download_url: str) -> bytes:
        """
        Download a recording file into memory.

        Raises:
            FileTransferError: on transport errors or a non-200 response
        """
        response = self._download(download_url, stream=False)
        return response.content

    def download_to_path(self, download_url: str, file_path: str) -> str:
        """
        Stream a recording file to disk.

        Args:
            download_url: Zoom download URL (the access token is appended)
            file_path: Destination path

        Returns:
            file_path
        """
        response = self._download(download_url, stream=True)
        try:
            with response, open(file_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=1024 * 1024):
                    f.write(chunk)
        except requests.RequestException as e:
            raise FileTransferError(f"Download interrupted: {e}") from e
        return file_path

    def _download(self, download_url: str, stream: bool) -> requests.Response:
        url = with_access_token(download_url, self.token_provider.token)
        try:
            response = self.session.get(url, allow_redirects=True, stream=stream,
                                        timeout=self.settings.download_timeout)
        except requests.RequestException as e:
            raise FileTransferError(f"Error downloading file: {e}") from e

        if response.status_code != 200:
            response.close()
            raise FileTransferError(f"Failed to download file: {response.status_code}")
        return response

    def delete_recording(self, meeting_uuid: str) -> bool:
        """
        Delete all cloud recording files of a meeting.

        Returns:
            True if Zoom answered 200 or 204, False otherwise
        """
        url = f"{self.base_url}/meetings/{encode_meeting_uuid(meeting_uuid)}/recordings"
        try:
            response = self.session.delete(url, headers=self._headers(),
                                           timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            logger.error(f"Error deleting Zoom recording {meeting_uuid}: {e}")
            return False

        if response.status_code in (200, 204):
            return True

        logger.warning(f"Failed to delete Zoom recording {meeting_uuid} ({response.status_code}): {response.text}")
        return False
