import logging
import numbers
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Protocol, Set, Tuple

import pandas as pd

from zoom_connector.models.schemas import TransferKind

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "AI Summary"

# Day zero of Google Sheets date serial numbers
SHEETS_EPOCH = datetime(1899, 12, 30)
DATE_FORMATS = ("%Y-%m-%d", "%m-%d-%Y", "%m/%d/%Y")

LedgerKey = Tuple[str, str, str]


class RowSource(Protocol):
    def read_all_rows(self) -> List[List[Any]]:
        ...


def normalize_date(value: Any) -> str:
    """
    Normalize a stored date to yyyy-MM-dd.

    Accepts date/datetime objects, Sheets serial numbers and the string
    layouts the tracking sheet can hold. Unparseable text (e.g. "Unknown Date")
    is returned unchanged.
    """
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if pd.isna(value):
            return ""
        return (SHEETS_EPOCH + timedelta(days=float(value))).strftime("%Y-%m-%d")

    text = str(value).strip()
    if not text:
        return ""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    try:
        return pd.Timestamp(text).strftime("%Y-%m-%d")
    except (ValueError, TypeError):
        return text


def rows_to_frame(rows: List[List[Any]]) -> pd.DataFrame:
    """Turn raw sheet rows (header first) into a topic/date/kind frame."""
    data = [(list(row) + ["", "", ""])[:3] for row in rows[1:]]
    frame = pd.DataFrame(data, columns=["topic", "date", "file_types"])
    if frame.empty:
        return frame.assign(kind=pd.Series(dtype=str))

    frame["topic"] = frame["topic"].map(lambda value: "" if value is None else str(value))
    frame["date"] = frame["date"].map(normalize_date)
    frame["kind"] = frame["file_types"].map(
        lambda value: "summary" if str(value).strip() == SUMMARY_MARKER else "recording"
    )
    return frame


class DedupLedger:
    """
    Answers "was this (topic, date, kind) already transferred?" from the
    tracking sheet.

    A recording counts as processed when any row has its topic and date. A
    summary additionally needs the row to be marked "AI Summary", so an earlier
    recording of the same meeting does not hide its summary. The sheet is read
    once and indexed; record() keeps the index current within a run.
    """

    def __init__(self, source: RowSource):
        self.source = source
        self._index: Optional[Set[LedgerKey]] = None
        self._meetings: Set[Tuple[str, str]] = set()

    def refresh(self) -> None:
        frame = rows_to_frame(self.source.read_all_rows())
        self._index = set(frame[["topic", "date", "kind"]].itertuples(index=False, name=None))
        self._meetings = set(frame[["topic", "date"]].itertuples(index=False, name=None))
        logger.info(f"Loaded {len(frame)} tracking rows into the ledger")

    def is_processed(self, topic: str, meeting_date: Any, kind: TransferKind) -> bool:
        if self._index is None:
            self.refresh()
        normalized = normalize_date(meeting_date)
        if kind == "recording":
            return (topic, normalized) in self._meetings
        return (topic, normalized, kind) in self._index

    def record(self, topic: str, meeting_date: Any, kind: TransferKind) -> None:
        if self._index is None:
            self.refresh()
        normalized = normalize_date(meeting_date)
        self._index.add((topic, normalized, kind))
        self._meetings.add((topic, normalized))
