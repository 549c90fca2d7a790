"""
Property-Based Tests for the WebVTT caption parser

Generated caption tracks (voice-tagged cues with arbitrary timings) are
written out as WebVTT text and decoded again, checking that cue timing,
ordering, speakers and the derived transcript survive the trip.
"""

import string

from hypothesis import given, strategies as st, settings
import pytest

from services import vtt_parser
from utils.errors import CaptionParseError


SPEAKERS = ["Alice Smith", "Bob", "Carol Jones", "Dmitri Ivanov"]

# Offsets up to 99 hours, in milliseconds
MAX_OFFSET_MS = 99 * 3600 * 1000


def vtt_timestamp(ms: int) -> str:
    hours, rest = divmod(ms, 3600 * 1000)
    minutes, rest = divmod(rest, 60 * 1000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def seconds(ms: int) -> float:
    return ms // 1000 + (ms % 1000) / 1000


words = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=10)
utterances = st.lists(words, min_size=1, max_size=8).map(" ".join)


@st.composite
def caption_track(draw):
    """Generate (cues, document) where cues are (start_ms, end_ms, speaker, text)."""
    count = draw(st.integers(min_value=1, max_value=12))
    cues = []
    start = draw(st.integers(min_value=0, max_value=3600 * 1000))
    for _ in range(count):
        length = draw(st.integers(min_value=0, max_value=60 * 1000))
        speaker = draw(st.sampled_from(SPEAKERS))
        text = draw(utterances)
        cues.append((start, start + length, speaker, text))
        start += length + draw(st.integers(min_value=0, max_value=5000))

    with_ids = draw(st.booleans())
    blocks = []
    for index, (cue_start, cue_end, speaker, text) in enumerate(cues):
        lines = []
        if with_ids:
            lines.append(f"cue-{index}")
        lines.append(f"{vtt_timestamp(cue_start)} --> {vtt_timestamp(cue_end)}")
        lines.append(f"<v {speaker}>{text}</v>")
        blocks.append("\n".join(lines))

    return cues, "WEBVTT\n\n" + "\n\n".join(blocks) + "\n"


# =============================================================================
# Decoding
# =============================================================================

@given(caption_track())
@settings(max_examples=100, deadline=None)
def test_cues_are_decoded_in_order(track):
    """Every generated cue comes back, in document order, with its timing."""
    cues, document = track

    parsed = vtt_parser.parse(document)

    assert len(parsed.cues) == len(cues)
    for decoded, (start, end, speaker, text) in zip(parsed.cues, cues):
        assert decoded.start == pytest.approx(seconds(start))
        assert decoded.end == pytest.approx(seconds(end))
        assert decoded.text == f"{speaker}: {text}"


@given(caption_track())
@settings(max_examples=100, deadline=None)
def test_derived_values(track):
    """Duration, speakers and full transcript are derived from the cues."""
    cues, document = track

    parsed = vtt_parser.parse(document)

    assert parsed.duration == pytest.approx(seconds(cues[-1][1]))
    assert parsed.speakers == list(dict.fromkeys(speaker for _, _, speaker, _ in cues))
    assert parsed.full_transcript == " ".join(f"{speaker}: {text}" for _, _, speaker, text in cues)


@given(caption_track())
@settings(max_examples=100, deadline=None)
def test_timestamped_lines(track):
    """One "[HH:MM:SS] Speaker: text" line per cue, floored to the second."""
    cues, document = track

    lines = vtt_parser.format_with_timestamps(document).split("\n")

    assert len(lines) == len(cues)
    for line, (start, _, speaker, text) in zip(lines, cues):
        assert line == f"[{vtt_timestamp(start)[:8]}] {speaker}: {text}"


@given(caption_track(), st.sampled_from(SPEAKERS))
@settings(max_examples=100, deadline=None)
def test_speaker_filter(track, speaker):
    """Filtering keeps exactly that speaker's utterances, labels removed."""
    cues, document = track

    expected = " ".join(text for _, _, name, text in cues if name == speaker)

    assert vtt_parser.filter_by_speaker(document, speaker) == expected


@given(caption_track(), st.sampled_from(["\r\n", "\r"]))
@settings(max_examples=50, deadline=None)
def test_line_endings_do_not_matter(track, newline):
    _, document = track

    converted = document.replace("\n", newline)

    assert vtt_parser.parse(converted) == vtt_parser.parse(document)


# =============================================================================
# Timestamps
# =============================================================================

@given(st.integers(min_value=0, max_value=MAX_OFFSET_MS))
@settings(max_examples=100, deadline=None)
def test_timestamp_parsing(ms):
    assert vtt_parser.parse_timestamp(vtt_timestamp(ms)) == pytest.approx(seconds(ms))


@given(st.integers(min_value=0, max_value=59 * 60 * 1000 + 59999))
@settings(max_examples=100, deadline=None)
def test_short_timestamp_form(ms):
    """Timestamps without an hours field are read as MM:SS.mmm."""
    assert vtt_parser.parse_timestamp(vtt_timestamp(ms)[3:]) == pytest.approx(seconds(ms))


@given(st.floats(min_value=0, max_value=MAX_OFFSET_MS / 1000, allow_nan=False))
@settings(max_examples=100, deadline=None)
def test_format_timestamp_floors(value):
    hours, minutes, secs = (int(part) for part in vtt_parser.format_timestamp(value).split(":"))

    assert hours * 3600 + minutes * 60 + secs == int(value)
    assert 0 <= minutes < 60 and 0 <= secs < 60


# =============================================================================
# Rejection
# =============================================================================

@given(st.text(max_size=200).filter(lambda t: not t.lstrip("\ufeff").startswith("WEBVTT")))
@settings(max_examples=100, deadline=None)
def test_documents_without_signature_are_rejected(document):
    with pytest.raises(CaptionParseError):
        vtt_parser.parse(document)


@given(caption_track(), st.integers(min_value=1, max_value=60 * 1000))
@settings(max_examples=50, deadline=None)
def test_reversed_cue_is_rejected(track, gap):
    """A cue whose end precedes its start fails the whole document."""
    _, document = track
    start = 2 * 3600 * 1000
    bad_cue = f"{vtt_timestamp(start)} --> {vtt_timestamp(start - gap)}\n<v Bob>late</v>\n"

    with pytest.raises(CaptionParseError):
        vtt_parser.parse(document + "\n" + bad_cue)
