"""
Google Sheets tracking store.

The tracking sheet holds one row per transferred recording or summary and is
read back to skip items already transferred. A separate "Errors" sheet
collects failures caught during a run.
"""

import os
import re
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config import Settings
from zoom_connector.errors import TrackingError
from zoom_connector.models.schemas import TrackingRecord
from zoom_connector.services.drive_manager import get_google_credentials

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ['https://www.googleapis.com/auth/spreadsheets', 'https://www.googleapis.com/auth/drive']

HEADERS = [
    "Meeting Topic",
    "Meeting Date",
    "Files Transferred",
    "Location in Drive",
    "Transfer Date",
    "Host Email"
]
LOCATION_COLUMN_INDEX = HEADERS.index("Location in Drive")
DATE_COLUMN_INDEXES = (HEADERS.index("Meeting Date"), HEADERS.index("Transfer Date"))
DATE_FORMAT_PATTERN = "MM-dd-yyyy"

ERROR_SHEET_NAME = "Errors"
ERROR_HEADERS = ["Timestamp", "Error Message", "Stack Trace"]


def quote_sheet_name(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


def as_text_cell(value: str) -> str:
    # A leading apostrophe keeps USER_ENTERED from turning text into a
    # formula, number, boolean or date
    return "'" + value


def column_letter(index: int) -> str:
    """Zero-based column index to A1 letters."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters


def parse_row_number(updated_range: str) -> Optional[int]:
    """Extract the first row number of an A1 range such as "'Tracker'!A5:F5"."""
    match = re.search(r"![A-Z]+(\d+)", updated_range or "")
    return int(match.group(1)) if match else None


class SheetsTracker:
    """Tracking sheet and error log backed by the Google Sheets API."""

    def __init__(self, settings: Settings, service: Any = None):
        self.settings = settings
        self.sheet_name = settings.tracking_sheet_name
        self.spreadsheet_id: Optional[str] = settings.tracking_sheet_id or None
        self._sheet_ids: Dict[str, int] = {}
        if service is None:
            service = build('sheets', 'v4', credentials=get_google_credentials(settings, SHEETS_SCOPES),
                            cache_discovery=False)
        self.service = service

    @property
    def spreadsheet_url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}/edit"

    def _load_persisted_id(self) -> Optional[str]:
        if os.path.exists(self.settings.sheet_id_file):
            with open(self.settings.sheet_id_file, 'r') as f:
                return f.read().strip() or None
        return None

    def _persist_id(self, spreadsheet_id: str) -> None:
        with open(self.settings.sheet_id_file, 'w') as f:
            f.write(spreadsheet_id)

    def _refresh_sheet_ids(self) -> None:
        metadata = self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields='sheets.properties'
        ).execute()
        self._sheet_ids = {
            sheet['properties']['title']: sheet['properties']['sheetId']
            for sheet in metadata.get('sheets', [])
        }

    def ensure_initialized(self) -> str:
        """
        Open the tracking spreadsheet, creating it and its header row if needed.

        The spreadsheet ID comes from configuration, then from the persisted
        sheet ID file. A newly created spreadsheet's ID is written to that file.

        Returns:
            Spreadsheet ID

        Raises:
            TrackingError: if a configured spreadsheet cannot be opened or created
        """
        configured = bool(self.spreadsheet_id)
        if not self.spreadsheet_id:
            self.spreadsheet_id = self._load_persisted_id()

        try:
            if self.spreadsheet_id:
                try:
                    self._refresh_sheet_ids()
                    logger.info(f"Using existing tracking sheet: {self.spreadsheet_id}")
                except HttpError as e:
                    if configured:
                        raise TrackingError(f"Cannot open tracking sheet {self.spreadsheet_id}: {e}") from e
                    logger.warning(f"Stored tracking sheet not found: {e}")
                    self._create_spreadsheet()
            else:
                self._create_spreadsheet()

            if self.sheet_name not in self._sheet_ids:
                self._add_sheet(self.sheet_name)
                self._write_headers(self.sheet_name, HEADERS)
            else:
                self._ensure_host_email_column()

            self._format_tracking_sheet()
        except HttpError as e:
            raise TrackingError(f"Error initializing tracking sheet: {e}") from e

        return self.spreadsheet_id

    def _create_spreadsheet(self) -> None:
        logger.info("Creating new tracking spreadsheet")
        spreadsheet = self.service.spreadsheets().create(
            body={
                'properties': {'title': self.sheet_name},
                'sheets': [{'properties': {'title': self.sheet_name}}]
            },
            fields='spreadsheetId'
        ).execute()
        self.spreadsheet_id = spreadsheet['spreadsheetId']
        self._persist_id(self.spreadsheet_id)
        self._refresh_sheet_ids()
        self._write_headers(self.sheet_name, HEADERS)

        logger.info(f"Created new tracking spreadsheet with ID: {self.spreadsheet_id}")
        logger.info(f"IMPORTANT: set TRACKING_SHEET_ID={self.spreadsheet_id} to keep using this sheet")

    def _add_sheet(self, title: str) -> None:
        response = self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': [{'addSheet': {'properties': {'title': title}}}]}
        ).execute()
        properties = response['replies'][0]['addSheet']['properties']
        self._sheet_ids[title] = properties['sheetId']

    def _write_headers(self, title: str, headers: List[str]) -> None:
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{quote_sheet_name(title)}!A1",
            valueInputOption='RAW',
            body={'values': [headers]}
        ).execute()

        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': [
                {
                    'repeatCell': {
                        'range': {
                            'sheetId': self._sheet_ids[title],
                            'startRowIndex': 0,
                            'endRowIndex': 1,
                            'startColumnIndex': 0,
                            'endColumnIndex': len(headers)
                        },
                        'cell': {'userEnteredFormat': {'textFormat': {'bold': True}}},
                        'fields': 'userEnteredFormat.textFormat.bold'
                    }
                },
                {
                    'updateSheetProperties': {
                        'properties': {
                            'sheetId': self._sheet_ids[title],
                            'gridProperties': {'frozenRowCount': 1}
                        },
                        'fields': 'gridProperties.frozenRowCount'
                    }
                }
            ]}
        ).execute()

    def _ensure_host_email_column(self) -> None:
        result = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{quote_sheet_name(self.sheet_name)}!1:1"
        ).execute()
        headers = (result.get('values') or [[]])[0]
        if "Host Email" not in headers:
            logger.info("Adding Host Email column to tracking sheet")
            self.service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_sheet_name(self.sheet_name)}!{column_letter(len(headers))}1",
                valueInputOption='RAW',
                body={'values': [["Host Email"]]}
            ).execute()

    def _format_tracking_sheet(self) -> None:
        sheet_id = self._sheet_ids[self.sheet_name]
        requests = [
            {
                'repeatCell': {
                    'range': {
                        'sheetId': sheet_id,
                        'startRowIndex': 1,
                        'startColumnIndex': column,
                        'endColumnIndex': column + 1
                    },
                    'cell': {'userEnteredFormat': {'numberFormat': {'type': 'DATE', 'pattern': DATE_FORMAT_PATTERN}}},
                    'fields': 'userEnteredFormat.numberFormat'
                }
            }
            for column in DATE_COLUMN_INDEXES
        ]
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': requests}
        ).execute()

    def read_all_rows(self) -> List[List[Any]]:
        """
        Read every row of the tracking sheet, header included.

        Dates come back as strings in the sheet's date format.
        """
        if not self.spreadsheet_id:
            raise TrackingError("Tracking sheet is not initialized")
        try:
            result = self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id,
                range=quote_sheet_name(self.sheet_name),
                valueRenderOption='UNFORMATTED_VALUE',
                dateTimeRenderOption='FORMATTED_STRING'
            ).execute()
        except HttpError as e:
            raise TrackingError(f"Error reading tracking sheet: {e}") from e
        return result.get('values', [])

    def append_row(self, record: TrackingRecord) -> None:
        """
        Append a transfer row and turn its Drive location cell into a link.

        Raises:
            TrackingError: if the row could not be appended
        """
        if not self.spreadsheet_id:
            raise TrackingError("Tracking sheet is not initialized")

        row = [
            as_text_cell(record.topic),
            record.date,
            record.file_types,
            as_text_cell(record.folder_name),
            record.transferred_at.strftime("%Y-%m-%d %H:%M:%S"),
            record.host_email
        ]
        try:
            response = self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_sheet_name(self.sheet_name)}!A1",
                valueInputOption='USER_ENTERED',
                insertDataOption='INSERT_ROWS',
                body={'values': [row]}
            ).execute()
        except HttpError as e:
            raise TrackingError(f"Error appending row for {record.topic}: {e}") from e

        row_number = parse_row_number(response.get('updates', {}).get('updatedRange', ''))
        if row_number is None:
            logger.warning(f"Could not determine appended row for {record.topic}, leaving location unlinked")
            return

        try:
            self._set_link(row_number, record.folder_name, record.folder_url)
        except HttpError as e:
            logger.warning(f"Row appended but linking the Drive location failed: {e}")

    def _set_link(self, row_number: int, text: str, url: str) -> None:
        if self.sheet_name not in self._sheet_ids:
            self._refresh_sheet_ids()
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'requests': [{
                'updateCells': {
                    'range': {
                        'sheetId': self._sheet_ids[self.sheet_name],
                        'startRowIndex': row_number - 1,
                        'endRowIndex': row_number,
                        'startColumnIndex': LOCATION_COLUMN_INDEX,
                        'endColumnIndex': LOCATION_COLUMN_INDEX + 1
                    },
                    'rows': [{'values': [{
                        'userEnteredValue': {'stringValue': text},
                        'textFormatRuns': [{'startIndex': 0, 'format': {'link': {'uri': url}}}]
                    }]}],
                    'fields': 'userEnteredValue,textFormatRuns'
                }
            }]}
        ).execute()

    def log_error(self, message: str, trace: str = "") -> None:
        """
        Record an error in the "Errors" sheet. Never raises: a failure to
        write the error is itself only logged.
        """
        try:
            if not self.spreadsheet_id:
                logger.error(f"Tracking sheet unavailable, error not recorded: {message}")
                return
            if ERROR_SHEET_NAME not in self._sheet_ids:
                self._refresh_sheet_ids()
            if ERROR_SHEET_NAME not in self._sheet_ids:
                self._add_sheet(ERROR_SHEET_NAME)
                self._write_headers(ERROR_SHEET_NAME, ERROR_HEADERS)

            self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_sheet_name(ERROR_SHEET_NAME)}!A1",
                valueInputOption='RAW',
                insertDataOption='INSERT_ROWS',
                body={'values': [[
                    datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
                    message,
                    trace or "No stack trace available"
                ]]}
            ).execute()
        except Exception as e:
            logger.error(f"Failed to log error: {e}")
