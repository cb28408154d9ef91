import re
from dataclasses import dataclass
from typing import Iterable, List

VTT_MARKER = "WEBVTT"
# WEBVTT, Kind:, Language: and the blank line that follows them
VTT_HEADER_LINES = 4
LABEL_SEPARATOR = "=" * 20

_TIMESTAMP_TAG = re.compile(r"<\d{2}:\d{2}:\d{2}\.\d{3}>|</c>")
_STYLE_OPEN_TAG = re.compile(r"<c>")


@dataclass(frozen=True)
class TranscriptPayload:
    """One raw caption file returned by a transcript source."""

    label: str
    raw_text: str


def normalize_vtt(raw: str) -> str:
    """Convert WebVTT caption markup into plain, deduplicated transcript text.

    Input that does not look like a WebVTT document yields an empty string
    rather than an error.
    """
    if not raw or not raw.strip():
        return ""

    lines = raw.split("\n")
    if len(lines) < VTT_HEADER_LINES or VTT_MARKER not in lines[0]:
        return ""

    text_lines = []
    for line in lines[VTT_HEADER_LINES:]:
        if "-->" in line:
            continue
        if "align:" in line or "position:" in line:
            continue
        if not line.strip():
            continue

        cleaned = _STYLE_OPEN_TAG.sub("", _TIMESTAMP_TAG.sub("", line)).strip()
        if cleaned:
            text_lines.append(cleaned)

    # Auto-generated captions roll each line through two consecutive cues
    unique_lines = []
    for line in text_lines:
        if not unique_lines or unique_lines[-1] != line:
            unique_lines.append(line)

    return "\n".join(unique_lines)


def chunk_text(text: str, size: int) -> List[str]:
    """Split text into contiguous chunks of `size` characters."""
    return [text[i : i + size] for i in range(0, len(text), size)]


def assemble_transcript(payloads: Iterable[TranscriptPayload]) -> str:
    """Normalize each payload and join them under their labels."""
    sections = [
        f"{payload.label}\n{LABEL_SEPARATOR}\n{normalize_vtt(payload.raw_text)}"
        for payload in payloads
    ]
    return "\n\n".join(sections)
