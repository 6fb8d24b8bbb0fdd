class ConnectorError(Exception):
    """Base class for connector failures."""


class ConfigError(ConnectorError):
    pass


class AuthError(ConnectorError):
    """Token exchange failed. Fatal for the whole run."""


class FetchError(ConnectorError):
    """A page or window request failed. Truncates that window only."""


class ParseError(ConnectorError):
    """A Zoom API payload did not match the expected schema."""


class FileTransferError(ConnectorError):
    """A single file could not be downloaded or uploaded."""


class FolderCreationError(ConnectorError):
    """The destination folder could not be found or created. Aborts the item."""


class TrackingError(ConnectorError):
    """The tracking sheet could not be opened, read or written."""
