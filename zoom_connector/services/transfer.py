"""
Transfer pipeline: Zoom cloud recordings and AI summaries into Google Drive.

For every item the orchestrator checks the ledger, routes the item to a Drive
folder, transfers its files, optionally deletes it from Zoom and appends a
tracking row. Failures are contained at the file or item level and recorded in
the tracking sheet's error log; only an authentication failure or an
unreadable tracking sheet aborts the run.
"""

import os
import shutil
import logging
import tempfile
import traceback
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Protocol, Union

from config import Settings
from zoom_connector.errors import AuthError, FetchError, ParseError, TrackingError
from zoom_connector.models.schemas import (
    UNKNOWN_HOST,
    UNNAMED_MEETING,
    FileTransferResult,
    ItemOutcome,
    MeetingSummaryRef,
    RecordingFile,
    RunReport,
    TrackingRecord,
    TransferKind,
    ZoomRecording,
)
from zoom_connector.services.drive_manager import DriveStorage, get_mime_type
from zoom_connector.services.fetcher import WindowedFetcher
from zoom_connector.services.folder_router import FolderRouter, strip_topic_prefix
from zoom_connector.services.ledger import SUMMARY_MARKER, DedupLedger
from zoom_connector.services.summary_formatter import to_document
from zoom_connector.services.tracking_sheet import SheetsTracker
from zoom_connector.services.vtt_parser import to_plain_text, transcript_file_name
from zoom_connector.services.zoom_client import TokenProvider, ZoomClient

logger = logging.getLogger(__name__)


class Storage(Protocol):
    def create_folder_if_absent(self, name: str, parent_id: str) -> str: ...

    def create_file(self, name: str, content: Union[str, bytes], parent_id: str,
                    mime_type: Optional[str] = ...) -> str: ...

    def upload_file(self, file_path: str, name: str, parent_id: str,
                    mime_type: Optional[str] = ...) -> str: ...

    def folder_url(self, folder_id: str) -> str: ...


class Tracker(Protocol):
    def ensure_initialized(self) -> str: ...

    def read_all_rows(self) -> List[List[Any]]: ...

    def append_row(self, record: TrackingRecord) -> None: ...

    def log_error(self, message: str, trace: str = "") -> None: ...


def build_file_name(meeting_date: str, topic: str, file_type: str, extension: str) -> str:
    """Name a recording file {date}_{topic}_{role}.{ext}."""
    if extension == "mp4":
        role = "video"
    elif extension == "m4a":
        role = "audio"
    elif file_type == "transcript":
        role = "transcript"
    else:
        role = file_type
    return f"{meeting_date}_{topic}_{role}.{extension}"


def target_file_name(recording_file: RecordingFile, meeting_date: str, topic: str) -> str:
    """Drive name of a recording file; caption tracks are stored as .txt."""
    extension = (recording_file.file_extension or "").lower()
    file_name = build_file_name(meeting_date, topic, (recording_file.file_type or "").lower(), extension)
    if extension == "vtt":
        return transcript_file_name(file_name)
    return file_name


def summarize_file_types(file_names: List[str]) -> str:
    """Describe transferred files for the tracking sheet, e.g. "Video, Audio, Transcript"."""
    joined = ", ".join(file_names)
    file_types = []
    if ".mp4" in joined:
        file_types.append("Video")
    if ".m4a" in joined:
        file_types.append("Audio")
    if "chat.txt" in joined.lower():
        file_types.append("Chat")
    if "transcript.txt" in joined:
        file_types.append("Transcript")
    return ", ".join(file_types)


def should_transfer(recording_file: RecordingFile) -> bool:
    # Timeline files are JSON metadata about the recording, not content
    if (recording_file.file_extension or "").lower() == "json":
        return False
    return bool(recording_file.download_url)


class TransferOrchestrator:
    """Runs one pass of the Zoom to Drive transfer."""

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider,
        zoom_client: ZoomClient,
        fetcher: WindowedFetcher,
        storage: Storage,
        tracker: Tracker,
        ledger: Optional[DedupLedger] = None,
        router: Optional[FolderRouter] = None,
        dry_run: bool = False,
    ):
        self.settings = settings
        self.token_provider = token_provider
        self.zoom = zoom_client
        self.fetcher = fetcher
        self.storage = storage
        self.tracker = tracker
        self.ledger = ledger or DedupLedger(tracker)
        self.router = router or FolderRouter(settings.folder_mapping, settings.default_folder_id)
        self.dry_run = dry_run
        self.temp_dir: Optional[str] = None

    def run(self, days: Optional[int] = None, today: Optional[date] = None) -> RunReport:
        """
        Transfer everything recorded in the last `days` days.

        Args:
            days: Lookback window (defaults to settings.days_to_fetch)
            today: Last day of the range (defaults to the current UTC date)

        Returns:
            RunReport with one outcome per recording and summary seen
        """
        report = RunReport(dry_run=self.dry_run)
        to_date = today or datetime.now(timezone.utc).date()
        from_date = to_date - timedelta(days=days or self.settings.days_to_fetch)

        logger.info(f"Starting Zoom to Google Drive connector for {from_date} to {to_date}"
                    f"{' (dry run)' if self.dry_run else ''}")

        try:
            # Each run starts from a new token; Zoom tokens expire after an hour
            self.token_provider.reset()
            self.token_provider.acquire()
            self.tracker.ensure_initialized()
            self.ledger.refresh()
        except (AuthError, TrackingError) as e:
            logger.error(f"Aborting run: {e}")
            self._track_error(e)
            report.aborted = True
            report.error = str(e)
            report.finished_at = datetime.now(timezone.utc)
            return report

        self.temp_dir = tempfile.mkdtemp(prefix="zoom_connector_")
        try:
            members = self.fetcher.list_members()
            report.members = len(members.items)
            report.fetch_errors.extend(members.errors)
            logger.info(f"Found {len(members.items)} users in Zoom account")

            for member in members.items:
                logger.info(f"Processing recordings for user: {member.email}")
                recordings = self.fetcher.fetch_recordings(member, from_date, to_date)
                report.fetch_errors.extend(recordings.errors)
                for recording in recordings.items:
                    report.outcomes.append(self.process_recording(recording))

            summaries = self.fetcher.fetch_summaries(from_date, to_date)
            report.fetch_errors.extend(summaries.errors)
            seen = set()
            for summary in summaries.items:
                if summary.meeting_uuid in seen:
                    continue
                seen.add(summary.meeting_uuid)
                report.outcomes.append(self.process_summary(summary))
        except AuthError as e:
            logger.error(f"Aborting run: {e}")
            self._track_error(e)
            report.aborted = True
            report.error = str(e)
        finally:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Finished processing: {report.count('logged')} transferred, {report.count('skipped')} skipped, "
            f"{report.count('failed')} failed, {report.count('no_content')} without content"
        )
        return report

    def process_recording(self, recording: ZoomRecording) -> ItemOutcome:
        """Transfer all files of one cloud recording and log it."""
        topic = strip_topic_prefix(recording.topic or UNNAMED_MEETING, self.settings.topic_prefix_to_remove)
        meeting_date = recording.meeting_date
        host_email = recording.host_email or UNKNOWN_HOST
        outcome = ItemOutcome(kind="recording", session_key=recording.uuid, topic=topic,
                              date=meeting_date, status="failed")

        try:
            if self.ledger.is_processed(topic, meeting_date, "recording"):
                logger.info(f"Recording {topic} ({recording.uuid}) - Host: {host_email} already processed. Skipping.")
                outcome.status = "skipped"
                return outcome

            logger.info(f"Processing recording: {topic} ({recording.uuid}) - Host: {host_email}")
            folder_name = f"{meeting_date}_{topic}"
            parent_id = self.router.resolve(topic)
            files = [f for f in recording.recording_files if should_transfer(f)]

            if self.dry_run:
                outcome.files = [target_file_name(f, meeting_date, topic) for f in files]
                outcome.status = "planned"
                return outcome

            folder_id = self.storage.create_folder_if_absent(folder_name, parent_id)

            results = [self.transfer_file(f, topic, meeting_date, folder_id) for f in files]
            transferred = [result for result in results if result.ok]
            outcome.files = [result.file_name for result in transferred]
            outcome.file_types = summarize_file_types(outcome.files)

            # Only delete at the source once something made it to Drive
            if self.settings.delete_after_transfer and transferred:
                outcome.deleted_at_source = self.zoom.delete_recording(recording.uuid)
                if outcome.deleted_at_source:
                    logger.info(f"Deleted recording {topic} from Zoom")

            self._log_transfer("recording", topic, meeting_date, outcome.file_types,
                               folder_name, folder_id, host_email)
            outcome.status = "logged"
            logger.info(f"Completed processing recording {topic}")
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error processing recording {topic}: {e}")
            self._track_error(e)
            outcome.error = str(e)

        return outcome

    def transfer_file(self, recording_file: RecordingFile, topic: str, meeting_date: str,
                      folder_id: str) -> FileTransferResult:
        """
        Move one recording file into the meeting folder.

        Caption tracks are converted to plain text and uploaded as .txt; other
        files are streamed through a temporary file.
        """
        extension = (recording_file.file_extension or "").lower()
        file_name = target_file_name(recording_file, meeting_date, topic)

        try:
            if extension == "vtt":
                content = self.zoom.download_file(recording_file.download_url)
                text = to_plain_text(content.decode("utf-8", errors="replace"))
                file_id = self.storage.create_file(file_name, text, folder_id, "text/plain")
            else:
                file_id = self._transfer_via_disk(recording_file, file_name, extension, folder_id)
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error processing file {file_name}: {e}")
            self._track_error(e)
            return FileTransferResult(file_name=file_name, ok=False, error=str(e))

        return FileTransferResult(file_name=file_name, ok=True, file_id=file_id)

    def _transfer_via_disk(self, recording_file: RecordingFile, file_name: str, extension: str,
                           folder_id: str) -> str:
        fd, local_path = tempfile.mkstemp(dir=self.temp_dir, suffix=f".{extension}" if extension else "")
        os.close(fd)
        try:
            self.zoom.download_to_path(recording_file.download_url, local_path)
            return self.storage.upload_file(local_path, file_name, folder_id, get_mime_type(extension))
        finally:
            if os.path.exists(local_path):
                os.remove(local_path)

    def process_summary(self, summary: MeetingSummaryRef) -> ItemOutcome:
        """Write one AI meeting summary to Drive and log it."""
        topic = strip_topic_prefix(summary.meeting_topic or UNNAMED_MEETING, self.settings.topic_prefix_to_remove)
        meeting_date = summary.summary_date
        host_email = summary.meeting_host_email or UNKNOWN_HOST
        outcome = ItemOutcome(kind="summary", session_key=summary.meeting_uuid, topic=topic,
                              date=meeting_date, status="failed")

        try:
            if self.ledger.is_processed(topic, meeting_date, "summary"):
                logger.info(f"Meeting summary for {topic} ({summary.meeting_uuid}) already processed. Skipping.")
                outcome.status = "skipped"
                return outcome

            logger.info(f"Processing meeting summary: {topic} ({summary.meeting_uuid}) - Host: {host_email}")
            try:
                detail = self.zoom.get_summary_detail(summary.meeting_uuid)
            except (FetchError, ParseError) as e:
                logger.warning(f"Failed to fetch summary detail for {topic}: {e}")
                outcome.status = "no_content"
                outcome.error = str(e)
                return outcome

            if not detail.summary_details:
                logger.info(f"No summary data available for meeting {topic}")
                outcome.status = "no_content"
                return outcome

            folder_name = f"{meeting_date}_{topic}"
            parent_id = self.router.resolve(topic)
            file_name = f"{meeting_date}_{topic}_aiSummary.txt"
            outcome.files = [file_name]

            if self.dry_run:
                outcome.status = "planned"
                return outcome

            folder_id = self.storage.create_folder_if_absent(folder_name, parent_id)
            self.storage.create_file(file_name, to_document(topic, meeting_date, detail), folder_id, "text/plain")

            outcome.file_types = SUMMARY_MARKER
            self._log_transfer("summary", topic, meeting_date, SUMMARY_MARKER, folder_name, folder_id, host_email)
            outcome.status = "logged"
            logger.info(f"Successfully saved AI summary for meeting {topic}")
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error processing meeting summary {topic}: {e}")
            self._track_error(e)
            outcome.error = str(e)

        return outcome

    def _log_transfer(self, kind: TransferKind, topic: str, meeting_date: str, file_types: str,
                      folder_name: str, folder_id: str, host_email: str) -> None:
        self.tracker.append_row(TrackingRecord(
            topic=topic,
            date=meeting_date,
            file_types=file_types,
            folder_name=folder_name,
            folder_url=self.storage.folder_url(folder_id),
            transferred_at=datetime.now(),
            host_email=host_email,
        ))
        self.ledger.record(topic, meeting_date, kind)

    def _track_error(self, error: Exception) -> None:
        if self.dry_run:
            return
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self.tracker.log_error(str(error), trace)


def build_orchestrator(settings: Settings, token_provider: Optional[TokenProvider] = None,
                       dry_run: bool = False) -> TransferOrchestrator:
    """Wire the production Zoom, Drive and Sheets adapters together."""
    token_provider = token_provider or TokenProvider(settings)
    zoom_client = ZoomClient(settings, token_provider)
    fetcher = WindowedFetcher(zoom_client, page_delay_seconds=settings.page_delay_seconds)
    return TransferOrchestrator(
        settings=settings,
        token_provider=token_provider,
        zoom_client=zoom_client,
        fetcher=fetcher,
        storage=DriveStorage(settings),
        tracker=SheetsTracker(settings),
        dry_run=dry_run,
    )
