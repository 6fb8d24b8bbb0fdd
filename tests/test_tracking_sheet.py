from datetime import datetime
from types import SimpleNamespace

import pytest
from googleapiclient.errors import HttpError

from config import Settings
from zoom_connector.errors import TrackingError
from zoom_connector.models.schemas import TrackingRecord
from zoom_connector.services.tracking_sheet import (
    ERROR_HEADERS,
    HEADERS,
    SheetsTracker,
    as_text_cell,
    column_letter,
    parse_row_number,
)


def _http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b'{"error": {"message": "error"}}')


class _Call:
    def __init__(self, run) -> None:
        self._run = run

    def execute(self):
        return self._run()


class _FakeValues:
    def __init__(self, service: "_FakeSheetsService") -> None:
        self.service = service

    def get(self, spreadsheetId, range, **kwargs):
        self.service.calls.append(("values.get", range, kwargs))
        rows = self.service.rows
        return _Call(lambda: {"values": rows[:1] if range.endswith("!1:1") else rows})

    def update(self, spreadsheetId, range, valueInputOption, body):
        self.service.calls.append(("values.update", range, body))
        return _Call(lambda: {})

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        self.service.calls.append(("values.append", range, valueInputOption, body))

        def run():
            if self.service.fail_append:
                raise _http_error(500)
            self.service.rows.extend(body["values"])
            row_number = len(self.service.rows)
            return {"updates": {"updatedRange": f"{range.split('!')[0]}!A{row_number}:F{row_number}"}}

        return _Call(run)


class _FakeSheetsService:
    def __init__(self, sheets=None, rows=None, fail_get: bool = False) -> None:
        self.sheets = dict(sheets or {})
        self.rows = rows if rows is not None else [list(HEADERS)]
        self.fail_get = fail_get
        self.fail_append = False
        self.calls: list = []

    def spreadsheets(self) -> "_FakeSheetsService":
        return self

    def values(self) -> _FakeValues:
        return _FakeValues(self)

    def get(self, spreadsheetId, fields):
        self.calls.append(("get", spreadsheetId))

        def run():
            if self.fail_get:
                raise _http_error(404)
            return {"sheets": [{"properties": {"title": title, "sheetId": sheet_id}}
                               for title, sheet_id in self.sheets.items()]}

        return _Call(run)

    def create(self, body, fields):
        self.calls.append(("create", body))

        def run():
            self.fail_get = False
            self.sheets[body["sheets"][0]["properties"]["title"]] = 0
            return {"spreadsheetId": "new-sheet"}

        return _Call(run)

    def batchUpdate(self, spreadsheetId, body):
        self.calls.append(("batchUpdate", body))

        def run():
            replies = []
            for request in body["requests"]:
                if "addSheet" in request:
                    sheet_id = len(self.sheets) + 100
                    self.sheets[request["addSheet"]["properties"]["title"]] = sheet_id
                    replies.append({"addSheet": {"properties": {"sheetId": sheet_id}}})
            return {"replies": replies}

        return _Call(run)

    def named(self, name: str) -> list:
        return [call for call in self.calls if call[0] == name]


def _settings(tmp_path, sheet_id: str = "") -> Settings:
    return Settings(tracking_sheet_id=sheet_id, sheet_id_file=str(tmp_path / "sheet_id.txt"))


def test_helpers() -> None:
    assert as_text_cell("=SUM(A1)") == "'=SUM(A1)"
    assert as_text_cell("-1 Planning") == "'-1 Planning"
    assert as_text_cell("Planning") == "'Planning"
    assert column_letter(0) == "A"
    assert column_letter(5) == "F"
    assert column_letter(26) == "AA"
    assert parse_row_number("'Transfer Tracker'!A12:F12") == 12
    assert parse_row_number("") is None


def test_existing_configured_sheet_is_reused(tmp_path) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7})
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)

    assert tracker.ensure_initialized() == "sheet-1"
    assert service.named("create") == []
    assert service.named("values.update") == []
    assert not (tmp_path / "sheet_id.txt").exists()


def test_missing_host_email_column_is_added(tmp_path) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7}, rows=[list(HEADERS[:5])])
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)

    tracker.ensure_initialized()

    (_, range_, body), = service.named("values.update")
    assert range_ == "'Transfer Tracker'!F1"
    assert body == {"values": [["Host Email"]]}


def test_new_sheet_is_created_and_its_id_persisted(tmp_path) -> None:
    service = _FakeSheetsService()
    tracker = SheetsTracker(_settings(tmp_path), service=service)

    assert tracker.ensure_initialized() == "new-sheet"
    assert (tmp_path / "sheet_id.txt").read_text() == "new-sheet"
    (_, range_, body), = service.named("values.update")
    assert body == {"values": [HEADERS]}


def test_persisted_id_is_used_when_not_configured(tmp_path) -> None:
    (tmp_path / "sheet_id.txt").write_text("persisted-1\n")
    service = _FakeSheetsService(sheets={"Transfer Tracker": 3})
    tracker = SheetsTracker(_settings(tmp_path), service=service)

    assert tracker.ensure_initialized() == "persisted-1"
    assert service.named("create") == []


def test_stale_persisted_id_is_replaced(tmp_path) -> None:
    (tmp_path / "sheet_id.txt").write_text("gone-1")
    service = _FakeSheetsService(fail_get=True)
    tracker = SheetsTracker(_settings(tmp_path), service=service)

    assert tracker.ensure_initialized() == "new-sheet"
    assert (tmp_path / "sheet_id.txt").read_text() == "new-sheet"


def test_unreachable_configured_sheet_raises(tmp_path) -> None:
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=_FakeSheetsService(fail_get=True))

    with pytest.raises(TrackingError):
        tracker.ensure_initialized()


def test_read_before_initialization_raises(tmp_path) -> None:
    tracker = SheetsTracker(_settings(tmp_path), service=_FakeSheetsService())

    with pytest.raises(TrackingError):
        tracker.read_all_rows()


def test_append_row_writes_values_and_links_location(tmp_path) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7})
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)
    tracker.ensure_initialized()

    tracker.append_row(TrackingRecord(
        topic="=Planning",
        date="2024-03-01",
        file_types="Video, Transcript",
        folder_name="2024-03-01_=Planning",
        folder_url="https://drive.google.com/drive/folders/f1",
        transferred_at=datetime(2024, 3, 2, 8, 0, 0),
        host_email="host@example.com",
    ))

    (_, range_, input_option, body), = service.named("values.append")
    assert input_option == "USER_ENTERED"
    assert body["values"] == [[
        "'=Planning", "2024-03-01", "Video, Transcript", "'2024-03-01_=Planning",
        "2024-03-02 08:00:00", "host@example.com",
    ]]

    link_request = service.named("batchUpdate")[-1][1]["requests"][0]["updateCells"]
    assert link_request["range"]["sheetId"] == 7
    assert link_request["range"]["startRowIndex"] == 1
    assert link_request["range"]["startColumnIndex"] == 3
    cell = link_request["rows"][0]["values"][0]
    assert cell["userEnteredValue"] == {"stringValue": "2024-03-01_=Planning"}
    assert cell["textFormatRuns"][0]["format"]["link"]["uri"] == "https://drive.google.com/drive/folders/f1"

    assert tracker.read_all_rows()[-1][0] == "'=Planning"


def test_log_error_creates_error_sheet_once(tmp_path) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7})
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)
    tracker.ensure_initialized()

    tracker.log_error("first failure", "Traceback ...")
    tracker.log_error("second failure")

    assert "Errors" in service.sheets
    header_writes = [call for call in service.named("values.update") if call[1] == "'Errors'!A1"]
    assert header_writes == [("values.update", "'Errors'!A1", {"values": [ERROR_HEADERS]})]
    appended = [call[3]["values"][0] for call in service.named("values.append")]
    assert [row[1:] for row in appended] == [
        ["first failure", "Traceback ..."],
        ["second failure", "No stack trace available"],
    ]


def test_log_error_never_raises(tmp_path) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7, "Errors": 8})
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)
    tracker.ensure_initialized()
    service.fail_append = True

    tracker.log_error("boom")


@pytest.mark.parametrize("topic", ["1.50", "TRUE", "March 5", "2024-03-01"])
def test_topics_are_always_written_as_text(tmp_path, topic: str) -> None:
    service = _FakeSheetsService(sheets={"Transfer Tracker": 7})
    tracker = SheetsTracker(_settings(tmp_path, "sheet-1"), service=service)
    tracker.ensure_initialized()

    tracker.append_row(TrackingRecord(
        topic=topic,
        date="2024-03-01",
        file_types="Video",
        folder_name=f"2024-03-01_{topic}",
        folder_url="https://drive.google.com/drive/folders/f1",
        transferred_at=datetime(2024, 3, 2, 8, 0, 0),
        host_email="host@example.com",
    ))

    (_, _, _, body), = service.named("values.append")
    assert body["values"][0][0] == "'" + topic
    assert body["values"][0][3] == f"'2024-03-01_{topic}"
