import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Sequence
from urllib.parse import parse_qs, urlparse

import yt_dlp
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
)
from youtube_transcript_api.formatters import WebVTTFormatter
from youtube_transcript_api.proxies import WebshareProxyConfig

from ytb_caption.config import SUBTITLE_LANGUAGES, TRANSCRIPT_SOURCE, YTDLP_SOCKET_TIMEOUT
from ytb_caption.transcripts import TranscriptPayload

logger = logging.getLogger(__name__)


class TranscriptSourceError(Exception):
    """Raised when subtitles for a URL cannot be retrieved."""


class TranscriptSource(Protocol):
    def fetch_raw_transcript_payloads(self, url: str) -> List[TranscriptPayload]:
        ...


def extract_video_id(url: str) -> Optional[str]:
    """Extract video ID from YouTube URL."""
    if not url:
        return None

    try:
        parsed = urlparse(url)
        if parsed.hostname in ('youtu.be',):
            return parsed.path.lstrip('/') or None
        if parsed.hostname in ('www.youtube.com', 'youtube.com', 'm.youtube.com'):
            for prefix in ('/shorts/', '/embed/', '/live/'):
                if parsed.path.startswith(prefix):
                    return parsed.path[len(prefix):].split('/')[0] or None
            params = parse_qs(parsed.query)
            return params.get('v', [None])[0]
        return None
    except ValueError:
        return None


def to_ytdlp_vtt(fetched_transcript, language_code: str) -> str:
    """Render a fetched transcript as WebVTT with the header block yt-dlp writes."""
    formatted = WebVTTFormatter().format_transcript(fetched_transcript)
    # The formatter emits "WEBVTT\n\n" followed by the cues
    cues = formatted.partition("\n\n")[2]
    return f"WEBVTT\nKind: captions\nLanguage: {language_code}\n\n{cues}"


class YouTubeTranscriptApiSource:
    """Fetches captions through youtube-transcript-api."""

    def __init__(
        self,
        languages: Sequence[str] = tuple(SUBTITLE_LANGUAGES),
        proxy_config: Optional[WebshareProxyConfig] = None,
    ) -> None:
        self._languages = list(languages)
        self._proxy_config = proxy_config

    @classmethod
    def from_env(cls) -> "YouTubeTranscriptApiSource":
        proxy_config = None
        use_proxy = os.getenv("USE_PROXY", "0") == "1"

        if use_proxy:
            proxy_username = os.getenv("WEBSHARE_PROXY_USERNAME")
            proxy_password = os.getenv("WEBSHARE_PROXY_PASSWORD")

            if not proxy_username or not proxy_password:
                logger.warning("Proxy enabled but credentials missing. Proceeding without proxy.")
            else:
                proxy_config = WebshareProxyConfig(
                    proxy_username=proxy_username,
                    proxy_password=proxy_password
                )
                logger.info("Using Webshare proxy for YouTube API requests")

        return cls(proxy_config=proxy_config)

    def _select_transcript(self, transcript_list, video_id: str):
        # Priority: requested languages (manual before generated) > translation
        # into the first requested language > any manual > any generated
        try:
            return transcript_list.find_transcript(self._languages)
        except NoTranscriptFound:
            pass

        available = list(transcript_list)
        target = self._languages[0]
        for t in available:
            if t.is_translatable and target in [lang.language_code for lang in t.translation_languages]:
                return t.translate(target)

        for t in available:
            if not t.is_generated:
                return t
        if available:
            return available[0]

        raise NoTranscriptFound(video_id, self._languages, transcript_list)

    def fetch_raw_transcript_payloads(self, url: str) -> List[TranscriptPayload]:
        video_id = extract_video_id(url)
        if not video_id:
            raise TranscriptSourceError("Invalid YouTube URL.")

        ytt_api = YouTubeTranscriptApi(proxy_config=self._proxy_config)
        try:
            transcript_list = ytt_api.list(video_id)
            transcript = self._select_transcript(transcript_list, video_id)
            fetched_transcript = transcript.fetch()
        except VideoUnavailable as e:
            logger.warning(f"Video unavailable {video_id}: {str(e)}")
            raise TranscriptSourceError("Video is unavailable or private.") from e
        except TranscriptsDisabled as e:
            logger.warning(f"Transcripts disabled for video {video_id}: {str(e)}")
            raise TranscriptSourceError("Transcripts are disabled for this video.") from e
        except NoTranscriptFound as e:
            logger.warning(f"No transcript found for video {video_id}: {str(e)}")
            raise TranscriptSourceError(
                "No transcript available for this video in the requested language(s)."
            ) from e
        except CouldNotRetrieveTranscript as e:
            logger.warning(f"Could not retrieve transcript for video {video_id}: {str(e)}")
            raise TranscriptSourceError(f"Could not retrieve transcript: {e}") from e

        language_code = fetched_transcript.language_code
        logger.info(
            f"Fetched {language_code} transcript for video {video_id} "
            f"(generated={fetched_transcript.is_generated})"
        )
        return [
            TranscriptPayload(
                label=f"{video_id}.{language_code}.vtt",
                raw_text=to_ytdlp_vtt(fetched_transcript, language_code),
            )
        ]


class YtDlpSource:
    """Downloads VTT subtitle files with yt-dlp into a throwaway directory."""

    def __init__(
        self,
        languages: Sequence[str] = tuple(SUBTITLE_LANGUAGES),
        socket_timeout: int = YTDLP_SOCKET_TIMEOUT,
    ) -> None:
        self._languages = list(languages)
        self._socket_timeout = socket_timeout

    def _build_ydl_options(self, out_dir: str) -> dict:
        return {
            # Manual subtitles when present, auto-generated otherwise
            "writesubtitles": True,
            "writeautomaticsub": True,
            "subtitleslangs": self._languages,
            "skip_download": True,
            "subtitlesformat": "vtt",
            "outtmpl": f"{out_dir}/%(title)s [%(id)s].%(ext)s",
            "quiet": True,
            "no_warnings": True,
            "logger": logger,
            "socket_timeout": self._socket_timeout,
        }

    def fetch_raw_transcript_payloads(self, url: str) -> List[TranscriptPayload]:
        with tempfile.TemporaryDirectory(prefix="youtube-") as temp_dir:
            try:
                with yt_dlp.YoutubeDL(self._build_ydl_options(temp_dir)) as ydl:
                    ydl.download([url])
            except yt_dlp.utils.DownloadError as e:
                logger.warning(f"yt-dlp failed for {url}: {e}")
                raise TranscriptSourceError(str(e)) from e

            payloads = [
                TranscriptPayload(label=path.name, raw_text=path.read_text(encoding="utf-8"))
                for path in sorted(Path(temp_dir).iterdir())
                if path.is_file()
            ]

        logger.info(f"yt-dlp wrote {len(payloads)} subtitle file(s) for {url}")
        return payloads


def build_source_from_env() -> TranscriptSource:
    if TRANSCRIPT_SOURCE == "yt_dlp":
        return YtDlpSource()
    if TRANSCRIPT_SOURCE != "youtube_transcript_api":
        raise ValueError(f"Unknown TRANSCRIPT_SOURCE: {TRANSCRIPT_SOURCE}")
    return YouTubeTranscriptApiSource.from_env()
