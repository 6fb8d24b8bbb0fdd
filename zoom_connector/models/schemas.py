from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional, Union
from datetime import datetime, timezone


UNKNOWN_DATE = "Unknown Date"
UNKNOWN_HOST = "Unknown Host"
UNNAMED_MEETING = "Unnamed Meeting"

TransferKind = Literal["recording", "summary"]
OutcomeStatus = Literal["skipped", "planned", "logged", "failed", "no_content"]


def date_part(timestamp: Optional[str]) -> str:
    """Return the yyyy-MM-dd part of a Zoom timestamp, or UNKNOWN_DATE."""
    if not timestamp:
        return UNKNOWN_DATE
    return timestamp.split("T")[0]


class Credential(BaseModel):
    """Bearer token obtained from the Zoom OAuth endpoint."""
    token: str
    obtained_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ZoomUser(BaseModel):
    """Member of the Zoom account."""
    id: str
    email: str = ""


class UsersPage(BaseModel):
    users: List[ZoomUser] = Field(default_factory=list)
    page_count: int = 0


class RecordingFile(BaseModel):
    """Single file attached to a cloud recording."""
    id: Optional[str] = None
    file_type: str = ""
    file_extension: str = ""
    recording_type: Optional[str] = None
    download_url: Optional[str] = None


class ZoomRecording(BaseModel):
    """Cloud recording of one meeting instance, as listed per user."""
    uuid: str
    id: Optional[int] = None
    topic: Optional[str] = None
    start_time: Optional[str] = None
    host_email: Optional[str] = None
    recording_files: List[RecordingFile] = Field(default_factory=list)

    @property
    def meeting_date(self) -> str:
        return date_part(self.start_time)


class RecordingsPage(BaseModel):
    meetings: List[ZoomRecording] = Field(default_factory=list)
    page_count: int = 0


class MeetingSummaryRef(BaseModel):
    """Entry of the account-wide meeting summary list. Content is fetched separately."""
    meeting_uuid: str
    meeting_id: Optional[Union[int, str]] = None
    meeting_topic: Optional[str] = None
    meeting_host_email: Optional[str] = None
    summary_created_time: Optional[str] = None

    @property
    def summary_date(self) -> str:
        return date_part(self.summary_created_time)


class SummariesPage(BaseModel):
    summaries: List[MeetingSummaryRef] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class SummarySection(BaseModel):
    label: str = ""
    summary: str = ""


class SummaryDetail(BaseModel):
    """Full AI summary of a meeting."""
    meeting_id: Optional[Union[int, str]] = None
    meeting_topic: Optional[str] = None
    summary_overview: Optional[str] = None
    summary_details: List[SummarySection] = Field(default_factory=list)
    summary_created_time: Optional[str] = None


class TranscriptSegment(BaseModel):
    """Model for a segment of a transcript."""
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    speaker: str
    text: str


class TrackingRecord(BaseModel):
    """One row of the tracking sheet."""
    topic: str
    date: str
    file_types: str
    folder_name: str
    folder_url: str
    transferred_at: datetime
    host_email: str


class FetchResult(BaseModel):
    """
    Best-effort result of a paginated fetch.

    Items are always safe to process; complete is False when some page or
    window failed and its remaining items were not retrieved.
    """
    items: List[Any] = Field(default_factory=list)
    complete: bool = True
    errors: List[str] = Field(default_factory=list)

    def extend(self, other: "FetchResult") -> None:
        self.items.extend(other.items)
        self.errors.extend(other.errors)
        self.complete = self.complete and other.complete

    def fail(self, message: str) -> None:
        self.complete = False
        self.errors.append(message)


class FileTransferResult(BaseModel):
    """Outcome of moving one file into Drive."""
    file_name: str
    ok: bool
    file_id: Optional[str] = None
    error: Optional[str] = None


class ItemOutcome(BaseModel):
    """Outcome of processing one recording or summary."""
    kind: TransferKind
    session_key: str
    topic: str
    date: str
    status: OutcomeStatus
    files: List[str] = Field(default_factory=list)
    file_types: str = ""
    deleted_at_source: bool = False
    error: Optional[str] = None


class RunReport(BaseModel):
    """Summary of a full connector run."""
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    dry_run: bool = False
    members: int = 0
    outcomes: List[ItemOutcome] = Field(default_factory=list)
    fetch_errors: List[str] = Field(default_factory=list)
    aborted: bool = False
    error: Optional[str] = None

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)
