"""WebVTT caption-track parser.

Teams delivers meeting transcripts as WebVTT documents where each cue carries
the speaker as a voice span::

    WEBVTT

    0f1a2b3c-1
    00:00:03.120 --> 00:00:05.880
    <v Alice Smith>Let's get started.</v>

This module decodes such documents into ordered cues and derives the plain
transcript, duration and speaker list from them. Decoding is strict: a
structurally invalid document raises CaptionParseError and nothing partial is
returned.
"""
import logging
import re
from typing import List, Optional, Tuple, Union

from models.transcript_models import Cue, ParsedTranscript
from utils.errors import CaptionParseError
from utils.text_utils import (
    clean_cue_text,
    extract_speaker_label,
    normalize_whitespace,
    unique_in_order,
)

logger = logging.getLogger(__name__)

SIGNATURE = "WEBVTT"

_TIMESTAMP = re.compile(r"^(?:(\d{2,}):)?([0-5]\d):([0-5]\d)\.(\d{3})$")
_TIMING_LINE = re.compile(r"^(\S+)[ \t]+-->[ \t]+(\S+)(?:[ \t]+.*)?$")
_SKIPPED_BLOCKS = ("NOTE", "STYLE", "REGION")


def looks_like_vtt(text: str) -> bool:
    """Cheap check used to decide whether downloaded content is a caption track."""
    return text.lstrip("\ufeff \t\r\n").startswith(SIGNATURE)


def parse(document: str) -> ParsedTranscript:
    """
    Decode a WebVTT document.

    Cue text is cleaned as it is decoded: voice spans become "Name: " prefixes,
    other markup tags are removed and whitespace is collapsed.

    Args:
        document: The caption-track document text

    Returns:
        ParsedTranscript with cues, full transcript, duration and speakers

    Raises:
        CaptionParseError: If the document is not valid WebVTT
    """
    if not document or not document.strip():
        raise CaptionParseError("Caption document is empty")

    lines = document.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").split("\n")
    _check_signature(lines[0])

    blocks = _split_blocks(lines[1:])
    if blocks and blocks[0][0] == 1:
        # Lines directly under the signature form the header
        header = blocks.pop(0)[1]
        if any("-->" in line for line in header):
            raise CaptionParseError(
                "Cue timing found in the header; a blank line must follow the WEBVTT line"
            )

    cues: List[Cue] = []
    for number, (_, block) in enumerate(blocks, start=1):
        if block[0].split(" ", 1)[0].split("\t", 1)[0] in _SKIPPED_BLOCKS:
            continue
        cues.append(_parse_cue(block, number))

    full_transcript = normalize_whitespace(" ".join(cue.text for cue in cues))
    duration = cues[-1].end if cues else 0.0
    speakers = unique_in_order(
        label for label in (extract_speaker_label(cue.text) for cue in cues) if label
    )

    logger.debug(f"Parsed caption track: cues={len(cues)}, duration={duration}s, speakers={len(speakers)}")

    return ParsedTranscript(
        cues=cues,
        full_transcript=full_transcript,
        duration=duration,
        speakers=speakers,
    )


def format_with_timestamps(document: Union[str, ParsedTranscript]) -> str:
    """Render one "[HH:MM:SS] text" line per cue, using each cue's start offset."""
    parsed = _as_parsed(document)
    return "\n".join(f"[{format_timestamp(cue.start)}] {cue.text}" for cue in parsed.cues)


def filter_by_speaker(document: Union[str, ParsedTranscript], speaker: str) -> str:
    """Join the text of every cue spoken by `speaker`, with the label removed."""
    prefix = f"{speaker}:"
    parsed = _as_parsed(document)
    return " ".join(
        cue.text[len(prefix):].strip()
        for cue in parsed.cues
        if cue.text.startswith(prefix)
    )


def to_transcript_text(raw: str, include_timestamps: bool = True) -> str:
    """
    Turn downloaded transcript content into model-ready text.

    Caption tracks become one "Speaker: text" line per cue (prefixed with
    "[HH:MM:SS]" when include_timestamps is set); anything else is returned
    unchanged.
    """
    if not looks_like_vtt(raw):
        return raw
    document = raw.lstrip(" \t\r\n")
    if include_timestamps:
        return format_with_timestamps(document)
    return "\n".join(cue.text for cue in parse(document).cues)


def format_timestamp(seconds: float) -> str:
    """Format an offset as zero-padded HH:MM:SS (fractions are floored)."""
    total = int(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_timestamp(value: str) -> Optional[float]:
    """Parse "[HH:]MM:SS.mmm" into seconds, or None when malformed."""
    match = _TIMESTAMP.match(value)
    if not match:
        return None
    hours, minutes, secs, millis = match.groups()
    return int(hours or 0) * 3600 + int(minutes) * 60 + int(secs) + int(millis) / 1000


def _as_parsed(document: Union[str, ParsedTranscript]) -> ParsedTranscript:
    return document if isinstance(document, ParsedTranscript) else parse(document)


def _check_signature(first_line: str) -> None:
    if first_line == SIGNATURE or first_line.startswith((SIGNATURE + " ", SIGNATURE + "\t")):
        return
    raise CaptionParseError(
        "Caption document must start with 'WEBVTT'",
        details={"first_line": first_line[:80]},
    )


def _split_blocks(lines: List[str]) -> List[Tuple[int, List[str]]]:
    """Group consecutive non-blank lines; each block keeps its 1-based line offset."""
    blocks: List[Tuple[int, List[str]]] = []
    current: List[str] = []
    start = 0
    for offset, line in enumerate(lines, start=1):
        if line.strip():
            if not current:
                start = offset
            current.append(line)
        elif current:
            blocks.append((start, current))
            current = []
    if current:
        blocks.append((start, current))
    return blocks


def _parse_cue(block: List[str], number: int) -> Cue:
    if "-->" in block[0]:
        identifier, timing, text_lines = None, block[0], block[1:]
    elif len(block) > 1 and "-->" in block[1]:
        identifier, timing, text_lines = block[0].strip(), block[1], block[2:]
    else:
        raise CaptionParseError(
            f"Cue {number} has no timing line",
            details={"cue": number, "line": block[0][:80]},
        )

    match = _TIMING_LINE.match(timing.strip())
    if not match:
        raise CaptionParseError(
            f"Cue {number} has a malformed timing line",
            details={"cue": number, "line": timing[:80]},
        )

    start = parse_timestamp(match.group(1))
    end = parse_timestamp(match.group(2))
    if start is None or end is None:
        raise CaptionParseError(
            f"Cue {number} has a malformed timestamp",
            details={"cue": number, "line": timing[:80]},
        )
    if end < start:
        raise CaptionParseError(
            f"Cue {number} ends before it starts",
            details={"cue": number, "start": start, "end": end},
        )

    if any("-->" in line for line in text_lines):
        raise CaptionParseError(
            f"Cue {number} text contains '-->'; cues must be separated by a blank line",
            details={"cue": number},
        )

    return Cue(
        start=start,
        end=end,
        text=clean_cue_text("\n".join(text_lines)),
        identifier=identifier,
    )
