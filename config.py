import os
import json
import logging
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from zoom_connector.errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't')


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ''):
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def parse_folder_mapping(raw: Optional[str]) -> List[Tuple[str, str]]:
    """
    Parse the FOLDER_MAPPING variable.

    The value is a JSON object of keyword -> folder ID. Key order is kept,
    since routing picks the first keyword that matches.
    """
    if not raw:
        return []
    try:
        mapping = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"FOLDER_MAPPING is not valid JSON: {e}")
    if not isinstance(mapping, dict):
        raise ConfigError("FOLDER_MAPPING must be a JSON object of keyword -> folder ID")
    return [(str(keyword), str(folder_id)) for keyword, folder_id in mapping.items()]


class Settings(BaseModel):
    """Connector configuration, built once per process and passed to each component."""

    # Zoom Server-to-Server OAuth app
    zoom_account_id: str = ''
    zoom_client_id: str = ''
    zoom_client_secret: str = ''
    zoom_base_url: str = 'https://api.zoom.us/v2'
    zoom_oauth_url: str = 'https://zoom.us/oauth/token'

    # Google
    google_credentials_file: str = 'credentials.json'
    google_shared_drive_id: Optional[str] = None

    # Fetch window and processing
    days_to_fetch: int = 2
    delete_after_transfer: bool = True
    topic_prefix_to_remove: str = ''
    page_delay_seconds: float = 0.5
    request_timeout: float = 30.0
    download_timeout: float = 300.0

    # Tracking sheet
    tracking_sheet_id: str = ''
    tracking_sheet_name: str = 'Transfer Tracker'
    sheet_id_file: str = os.path.join(PROJECT_ROOT, 'tracking_sheet_id.txt')

    # Routing
    folder_mapping: List[Tuple[str, str]] = Field(default_factory=list)
    default_folder_id: str = ''

    # Logging
    log_level: str = 'INFO'
    log_dir: str = os.path.join(PROJECT_ROOT, 'logs')

    @property
    def use_shared_drive(self) -> bool:
        return bool(self.google_shared_drive_id)

    def validate_for_run(self) -> None:
        """Raise ConfigError if anything a transfer run needs is missing."""
        missing = [
            name for name in ('zoom_account_id', 'zoom_client_id', 'zoom_client_secret', 'default_folder_id')
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        if self.days_to_fetch < 1:
            raise ConfigError("DAYS_TO_FETCH must be at least 1")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment, loading a .env file first.

    Args:
        env_file: Path to a .env file (optional, defaults to python-dotenv's lookup)

    Returns:
        Settings instance
    """
    load_dotenv(env_file)

    try:
        days_to_fetch = int(os.getenv('DAYS_TO_FETCH', '2'))
    except ValueError:
        raise ConfigError(f"DAYS_TO_FETCH must be an integer, got {os.getenv('DAYS_TO_FETCH')!r}")

    settings = Settings(
        zoom_account_id=os.getenv('ZOOM_ACCOUNT_ID', ''),
        zoom_client_id=os.getenv('ZOOM_CLIENT_ID', ''),
        zoom_client_secret=os.getenv('ZOOM_CLIENT_SECRET', ''),
        zoom_base_url=os.getenv('ZOOM_BASE_URL', 'https://api.zoom.us/v2'),
        zoom_oauth_url=os.getenv('ZOOM_OAUTH_URL', 'https://zoom.us/oauth/token'),
        google_credentials_file=os.getenv('GOOGLE_CREDENTIALS_FILE', 'credentials.json'),
        google_shared_drive_id=os.getenv('GOOGLE_SHARED_DRIVE_ID') or None,
        days_to_fetch=days_to_fetch,
        delete_after_transfer=_env_bool('DELETE_AFTER_TRANSFER', 'True'),
        topic_prefix_to_remove=os.getenv('TOPIC_PREFIX_TO_REMOVE', ''),
        page_delay_seconds=_env_float('PAGE_DELAY_SECONDS', 0.5),
        request_timeout=_env_float('REQUEST_TIMEOUT', 30.0),
        download_timeout=_env_float('DOWNLOAD_TIMEOUT', 300.0),
        tracking_sheet_id=os.getenv('TRACKING_SHEET_ID', ''),
        tracking_sheet_name=os.getenv('TRACKING_SHEET_NAME', 'Transfer Tracker'),
        sheet_id_file=os.getenv('TRACKING_SHEET_ID_FILE', os.path.join(PROJECT_ROOT, 'tracking_sheet_id.txt')),
        folder_mapping=parse_folder_mapping(os.getenv('FOLDER_MAPPING')),
        default_folder_id=os.getenv('DEFAULT_FOLDER_ID', ''),
        log_level=os.getenv('LOG_LEVEL', 'INFO'),
        log_dir=os.getenv('LOG_DIR', os.path.join(PROJECT_ROOT, 'logs')),
    )

    logger.debug(f"Loaded settings: {len(settings.folder_mapping)} folder mappings, "
                 f"{settings.days_to_fetch} days to fetch")
    return settings
