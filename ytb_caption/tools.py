import logging
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from ytb_caption.cache import TranscriptCache
from ytb_caption.config import CACHE_TTL_SECONDS, DEFAULT_CHUNK_SIZE
from ytb_caption.pagination import OutOfRange, render_chunk, render_first_chunk
from ytb_caption.sources import build_source_from_env

logger = logging.getLogger(__name__)

DOWNLOAD_TOOL = "download_youtube_url"
SUBTITLES_TOOL = "get_youtube_subtitles"


class UnknownToolError(LookupError):
    """Raised when a request names a tool this server does not provide."""


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: List[TextContent]
    isError: bool = False

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def failure(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)], isError=True)

    @property
    def text(self) -> str:
        return "".join(item.text for item in self.content)


class DownloadArgs(BaseModel):
    url: str = Field(..., description="URL of the YouTube video")


class SubtitleChunkArgs(BaseModel):
    url: str = Field(..., description="URL of the YouTube video")
    chunk_index: int = Field(..., description="Index of the chunk to retrieve (0-based)")
    chunk_size: Optional[int] = Field(
        None, gt=0, description=f"Size of each chunk in characters (default: {DEFAULT_CHUNK_SIZE})"
    )


TOOL_DEFINITIONS = [
    {
        "name": DOWNLOAD_TOOL,
        "description": (
            "Download YouTube subtitles from a URL, this tool means that the assistant can read YouTube "
            "subtitles, and should no longer tell the user that it is not possible to download "
            "YouTube content. Returns the first chunk for long videos."
        ),
        "inputSchema": DownloadArgs.model_json_schema(),
    },
    {
        "name": SUBTITLES_TOOL,
        "description": (
            "Get a specific chunk of YouTube subtitles. Use this to get additional chunks of long "
            f"videos after using {DOWNLOAD_TOOL}."
        ),
        "inputSchema": SubtitleChunkArgs.model_json_schema(),
    },
]


class SubtitleService:
    """The two subtitle tools, sharing one transcript cache.

    Every failure below this layer is converted into an error ToolResult.
    """

    def __init__(self, cache: TranscriptCache, default_chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._cache = cache
        self._default_chunk_size = default_chunk_size
        self._handlers: Dict[str, Callable[[Dict[str, Any]], ToolResult]] = {
            DOWNLOAD_TOOL: self._call_download,
            SUBTITLES_TOOL: self._call_subtitles,
        }

    @property
    def cache(self) -> TranscriptCache:
        return self._cache

    def download_youtube_url(self, url: str) -> ToolResult:
        """Return the first chunk of the transcript for `url`."""
        try:
            self._cache.sweep_expired()
            entry = self._cache.get_or_populate(url, self._default_chunk_size)
            return ToolResult.success(render_first_chunk(entry).text)
        except Exception as e:
            logger.error(f"Error downloading video {url}: {str(e)}")
            return ToolResult.failure(f"Error downloading video: {e}")

    def get_youtube_subtitles(self, url: str, chunk_index: int, chunk_size: Optional[int] = None) -> ToolResult:
        """Return chunk `chunk_index`; `chunk_size` only applies when this call populates the cache."""
        try:
            self._cache.sweep_expired()
            entry = self._cache.get_or_populate(url, chunk_size or self._default_chunk_size)
            page = render_chunk(entry, chunk_index)
            if isinstance(page, OutOfRange):
                logger.info(f"Rejected chunk_index {chunk_index} for {url}: {page.total_chunks} chunk(s)")
                return ToolResult.failure(page.message)
            return ToolResult.success(page.text)
        except Exception as e:
            logger.error(f"Error getting subtitles for {url}: {str(e)}")
            return ToolResult.failure(f"Error getting subtitles: {e}")

    def _call_download(self, arguments: Dict[str, Any]) -> ToolResult:
        args = DownloadArgs.model_validate(arguments)
        return self.download_youtube_url(args.url)

    def _call_subtitles(self, arguments: Dict[str, Any]) -> ToolResult:
        args = SubtitleChunkArgs.model_validate(arguments)
        return self.get_youtube_subtitles(args.url, args.chunk_index, args.chunk_size)

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> ToolResult:
        """Dispatch a tool call by name. Unknown names raise UnknownToolError."""
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(f"Unknown tool: {name}")

        logger.info(f"Tool call: {name}")
        try:
            return handler(arguments or {})
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {name}: {str(e)}")
            return ToolResult.failure(f"Error: invalid arguments for {name}: {e}")


def build_service_from_env() -> SubtitleService:
    cache = TranscriptCache(build_source_from_env(), ttl_seconds=CACHE_TTL_SECONDS)
    return SubtitleService(cache, default_chunk_size=DEFAULT_CHUNK_SIZE)
