import pytest
from unittest.mock import Mock

from ytb_caption.cache import TranscriptCache
from ytb_caption.tools import SubtitleService
from ytb_caption.transcripts import TranscriptPayload

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def vtt_document(*cue_texts: str) -> str:
    """Build a yt-dlp style WebVTT document with one cue per text."""
    parts = ["WEBVTT\nKind: captions\nLanguage: en\n"]
    for i, text in enumerate(cue_texts):
        parts.append(f"00:00:{i:02d}.000 --> 00:00:{i + 1:02d}.000 align:start position:0%\n{text}\n")
    return "\n".join(parts)


@pytest.fixture
def make_payload():
    def _make(*cue_texts: str, label: str = "video.en.vtt") -> TranscriptPayload:
        return TranscriptPayload(label=label, raw_text=vtt_document(*cue_texts))
    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source(make_payload):
    source = Mock()
    source.fetch_raw_transcript_payloads.return_value = [make_payload("Hello", "Hello", "World")]
    return source


@pytest.fixture
def cache(source, clock):
    return TranscriptCache(source, ttl_seconds=1800, clock=clock)


@pytest.fixture
def service(cache):
    return SubtitleService(cache, default_chunk_size=15000)
