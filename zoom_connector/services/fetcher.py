"""
Windowed, paginated retrieval from the Zoom API.

The recordings and summaries endpoints reject date ranges wider than a month,
so a range is split into windows of at most MAX_WINDOW_DAYS and each window is
paginated separately. Fetching is best-effort: a failing page ends its window
and the items collected so far are still returned.
"""

import time
import logging
from datetime import date, timedelta
from typing import Callable, List, Optional, Tuple

from zoom_connector.errors import FetchError, ParseError
from zoom_connector.models.schemas import FetchResult, ZoomUser
from zoom_connector.services.zoom_client import ZoomClient

logger = logging.getLogger(__name__)

MAX_WINDOW_DAYS = 30


def split_windows(from_date: date, to_date: date, max_days: int = MAX_WINDOW_DAYS) -> List[Tuple[date, date]]:
    """
    Split [from_date, to_date] into windows spanning at most max_days.

    Windows are produced newest first, walking backward from to_date, and the
    earliest window's start is clamped to from_date.

    Args:
        from_date: First day of the range
        to_date: Last day of the range
        max_days: Maximum span (to - from) of one window

    Returns:
        List of (start, end) tuples
    """
    if from_date > to_date:
        raise ValueError(f"from_date {from_date} is after to_date {to_date}")
    if max_days < 1:
        raise ValueError("max_days must be at least 1")

    windows = []
    window_end = to_date
    while True:
        window_start = max(window_end - timedelta(days=max_days), from_date)
        windows.append((window_start, window_end))
        if window_start == from_date:
            return windows
        window_end = window_start - timedelta(days=1)


class WindowedFetcher:
    """Collects members, recordings and summaries across date windows."""

    def __init__(self, client: ZoomClient, page_delay_seconds: float = 0.5,
                 max_window_days: int = MAX_WINDOW_DAYS,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.page_delay_seconds = page_delay_seconds
        self.max_window_days = max_window_days
        self._sleep = sleep

    def _throttle(self) -> None:
        if self.page_delay_seconds > 0:
            self._sleep(self.page_delay_seconds)

    def _paginate_by_number(self, fetch_page: Callable[[int], Tuple[list, int]], label: str) -> FetchResult:
        result = FetchResult()
        page_number = 1

        while True:
            logger.info(f"Fetching page {page_number} of {label}")
            try:
                items, page_count = fetch_page(page_number)
            except (FetchError, ParseError) as e:
                logger.warning(f"Stopping {label} at page {page_number}: {e}")
                result.fail(str(e))
                break

            if not items:
                break
            result.items.extend(items)

            if page_count <= page_number:
                break
            page_number += 1
            self._throttle()

        return result

    def list_members(self) -> FetchResult:
        """List all active users of the account, in enumeration order."""
        def fetch_page(page_number):
            page = self.client.list_users_page(page_number)
            return page.users, page.page_count

        result = self._paginate_by_number(fetch_page, "account users")
        for user in result.items:
            logger.info(f"Found user: {user.email} ({user.id})")
        return result

    def fetch_recordings(self, user: ZoomUser, from_date: date, to_date: date) -> FetchResult:
        """
        Fetch cloud recordings of one user over an arbitrary date range.

        Recordings missing a host email inherit the email of the user they
        were listed for.
        """
        windows = split_windows(from_date, to_date, self.max_window_days)
        result = FetchResult()

        for index, (start, end) in enumerate(windows):
            logger.info(f"Fetching chunk {index + 1}/{len(windows)} for user {user.id}: {start} to {end}")

            def fetch_page(page_number, start=start, end=end):
                page = self.client.list_recordings_page(user.id, start.isoformat(), end.isoformat(), page_number)
                return page.meetings, page.page_count

            result.extend(self._paginate_by_number(fetch_page, f"recordings for {user.id} {start} to {end}"))
            if index < len(windows) - 1:
                self._throttle()

        for recording in result.items:
            if not recording.host_email:
                recording.host_email = user.email or None

        logger.info(f"Total recordings found for user {user.id}: {len(result.items)}")
        return result

    def _paginate_by_token(self, from_time: str, to_time: str) -> FetchResult:
        result = FetchResult()
        next_page_token: Optional[str] = None

        while True:
            logger.info(f"Fetching meeting summaries for date range {from_time} to {to_time}")
            try:
                page = self.client.list_summaries_page(from_time, to_time, next_page_token)
            except (FetchError, ParseError) as e:
                logger.warning(f"Stopping summaries for {from_time} to {to_time}: {e}")
                result.fail(str(e))
                break

            if not page.summaries:
                break
            result.items.extend(page.summaries)

            if not page.next_page_token:
                break
            next_page_token = page.next_page_token
            self._throttle()

        return result

    def fetch_summaries(self, from_date: date, to_date: date) -> FetchResult:
        """Fetch the account-wide meeting summary list over an arbitrary date range."""
        windows = split_windows(from_date, to_date, self.max_window_days)
        result = FetchResult()

        for index, (start, end) in enumerate(windows):
            from_time = f"{start.isoformat()}T00:00:00Z"
            to_time = f"{end.isoformat()}T23:59:59Z"
            logger.info(f"Fetching summary chunk {index + 1}/{len(windows)}: {from_time} to {to_time}")

            result.extend(self._paginate_by_token(from_time, to_time))
            if index < len(windows) - 1:
                self._throttle()

        logger.info(f"Total summaries found: {len(result.items)}")
        return result
