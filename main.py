import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ytb_caption import __version__
from ytb_caption.config import API_KEY, LOG_LEVEL, PORT
from ytb_caption.tools import (
    DOWNLOAD_TOOL,
    SUBTITLES_TOOL,
    TOOL_DEFINITIONS,
    DownloadArgs,
    SubtitleChunkArgs,
    SubtitleService,
    ToolResult,
    UnknownToolError,
    build_service_from_env,
)

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

if not API_KEY:
    logger.warning("API_KEY environment variable not set. API will run without authentication.")

app = FastAPI(
    title="YouTube Subtitles Tool API",
    description="Tool-calling API for reading YouTube subtitles in paginated chunks",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security scheme for API key authentication
security = HTTPBearer(auto_error=False)

_service: Optional[SubtitleService] = None


def get_service() -> SubtitleService:
    """Shared subtitle service; one transcript cache per process."""
    global _service
    if _service is None:
        _service = build_service_from_env()
    return _service


def verify_api_key(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """Verify the API key from the Authorization header."""
    if not API_KEY:
        # If no API key is configured, skip authentication
        return True

    if credentials is None or credentials.credentials != API_KEY:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key"
        )
    return True


class ToolCallRequest(BaseModel):
    name: str
    arguments: Optional[Dict[str, Any]] = None


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/tools")
def list_tools(_: bool = Depends(verify_api_key)):
    """List the available tools and their input schemas."""
    return {"tools": TOOL_DEFINITIONS}


@app.post("/tools/call", response_model=ToolResult)
def call_tool(
    request: ToolCallRequest,
    _: bool = Depends(verify_api_key),
    service: SubtitleService = Depends(get_service),
):
    """Dispatch a tool call by name."""
    try:
        return service.call_tool(request.name, request.arguments)
    except UnknownToolError as e:
        logger.warning(str(e))
        raise HTTPException(status_code=404, detail=str(e))


@app.post(f"/{DOWNLOAD_TOOL}", response_model=ToolResult)
def download_youtube_url(
    request: DownloadArgs,
    _: bool = Depends(verify_api_key),
    service: SubtitleService = Depends(get_service),
):
    """Return the first chunk of a video's subtitles."""
    return service.download_youtube_url(request.url)


@app.post(f"/{SUBTITLES_TOOL}", response_model=ToolResult)
def get_youtube_subtitles(
    request: SubtitleChunkArgs,
    _: bool = Depends(verify_api_key),
    service: SubtitleService = Depends(get_service),
):
    """Return a specific chunk of a video's subtitles."""
    return service.get_youtube_subtitles(request.url, request.chunk_index, request.chunk_size)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
