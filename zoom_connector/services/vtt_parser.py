import re
import logging
from typing import List, Optional

from zoom_connector.models.schemas import TranscriptSegment

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r'^WEBVTT')
TIMESTAMP_PATTERN = re.compile(r'^\d{2}:\d{2}:\d{2}')
CUE_TIMING_PATTERN = re.compile(r'^(\S+)\s+-->\s+(\S+)')
SEQUENCE_PATTERN = re.compile(r'^\d+$')


def parse_caption_lines(content: str) -> List[TranscriptSegment]:
    """
    Parse a caption track into speaker-labeled segments.

    Header, timestamp, cue index and blank lines are skipped. Every other line
    is split on its first colon into speaker and text; lines without a colon,
    or with an empty speaker or text, are dropped.

    Args:
        content: WebVTT document as text

    Returns:
        List of TranscriptSegment objects, one per kept line
    """
    segments = []
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or HEADER_PATTERN.match(line) or SEQUENCE_PATTERN.match(line):
            continue
        if TIMESTAMP_PATTERN.match(line):
            timing = CUE_TIMING_PATTERN.match(line)
            if timing:
                start_time, end_time = timing.group(1), timing.group(2)
            continue

        speaker, sep, text = line.partition(':')
        speaker = speaker.strip()
        text = text.strip()
        if not sep or not speaker or not text:
            continue

        segments.append(TranscriptSegment(
            start_time=start_time,
            end_time=end_time,
            speaker=speaker,
            text=text
        ))

    return segments


def merge_consecutive_segments(segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """
    Merge consecutive segments from the same speaker.

    Args:
        segments: List of transcript segments

    Returns:
        List of merged transcript segments
    """
    if not segments:
        return []

    merged_segments = []
    current_segment = segments[0].model_copy()

    for segment in segments[1:]:
        # If same speaker, merge
        if segment.speaker == current_segment.speaker:
            current_segment.end_time = segment.end_time
            current_segment.text += " " + segment.text
        else:
            merged_segments.append(current_segment)
            current_segment = segment.model_copy()

    merged_segments.append(current_segment)

    return merged_segments


def to_plain_text(content: str) -> str:
    """
    Convert a caption track into readable transcript text.

    Each speaker turn becomes "Speaker: statement", with turns separated by a
    blank line. Running it on its own output returns the same text.
    """
    segments = merge_consecutive_segments(parse_caption_lines(content))
    logger.debug(f"Parsed caption track into {len(segments)} speaker turns")
    return "\n\n".join(f"{segment.speaker}: {segment.text}" for segment in segments)


def transcript_file_name(file_name: str) -> str:
    """Swap a .vtt extension (any case) for .txt."""
    return re.sub(r'\.vtt$', '.txt', file_name, flags=re.IGNORECASE)
