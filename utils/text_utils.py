"""Text helpers shared by the caption parser and the minutes pipeline.

Speaker and participant detection here is a best-effort heuristic. It relies
on the "Name: text" line convention and will both miss speakers that do not
follow it and pick up labels that are not people (e.g. "Note: ..."). Callers
must not treat its output as accurate speaker attribution.
"""
import re
from typing import Iterable, List, Optional

_VOICE_SPAN = re.compile(r"<v(?:\.[^\s>]*)?\s+([^>]+)>(.*?)(?:</v>|$)", re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_SPEAKER_LABEL = re.compile(r"^([^:]+):")
_PARTICIPANT_LINE = re.compile(r"^(?:\[[\d:.]+\])?\s*([^:\[\]][^:]*):")

_ENTITIES = {
    "&lt;": "<",
    "&gt;": ">",
    "&nbsp;": " ",
    "&lrm;": "",
    "&rlm;": "",
    "&amp;": "&",
}


def voice_spans_to_labels(text: str) -> str:
    """Rewrite WebVTT voice spans (``<v Alice>hi</v>``) as ``Alice: hi``."""
    return _VOICE_SPAN.sub(lambda m: f"{m.group(1).strip()}: {m.group(2)}", text)


def strip_markup(text: str) -> str:
    """Remove markup tags and decode the handful of entities WebVTT allows."""
    text = _TAG.sub("", text)
    for entity, replacement in _ENTITIES.items():
        text = text.replace(entity, replacement)
    return text


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim the ends."""
    return _WHITESPACE.sub(" ", text).strip()


def clean_cue_text(text: str) -> str:
    return normalize_whitespace(strip_markup(voice_spans_to_labels(text)))


def extract_speaker_label(text: str) -> Optional[str]:
    """Return the leading "Label:" of a cue text, or None."""
    match = _SPEAKER_LABEL.match(text)
    if not match:
        return None
    label = match.group(1).strip()
    return label or None


def unique_in_order(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def extract_participants(transcript: str) -> List[str]:
    """
    Guess participant names from a transcript.

    For each line, match a leading "Name:" (optionally preceded by a bracketed
    timestamp such as "[00:01:02]") and keep names longer than two characters
    that are not purely numeric.

    Args:
        transcript: Raw or timestamped transcript text

    Returns:
        Distinct names in first-seen order
    """
    names = []
    for line in transcript.split("\n"):
        match = _PARTICIPANT_LINE.match(line)
        if not match:
            continue
        name = match.group(1).strip()
        if len(name) > 2 and not name.isdigit():
            names.append(name)
    return unique_in_order(names)
