import os


def _positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return value


# Default maximum characters per chunk (override via environment variable)
DEFAULT_CHUNK_SIZE = _positive_int("CHUNK_SIZE", "15000")
# Cached transcripts expire after this many seconds
CACHE_TTL_SECONDS = _positive_int("CACHE_TTL_SECONDS", str(30 * 60))

# Preferred subtitle languages, most preferred first
SUBTITLE_LANGUAGES = [
    lang.strip() for lang in os.getenv("SUBTITLE_LANGUAGES", "en").split(",") if lang.strip()
] or ["en"]

# Either "youtube_transcript_api" or "yt_dlp"
TRANSCRIPT_SOURCE = os.getenv("TRANSCRIPT_SOURCE", "youtube_transcript_api").strip().lower()

YTDLP_SOCKET_TIMEOUT = _positive_int("YTDLP_SOCKET_TIMEOUT", "30")

API_KEY = os.getenv("API_KEY")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
