"""
MCP stdio server exposing the YouTube subtitle tools.

Run as: ytb-caption-mcp
"""

import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from ytb_caption.config import LOG_LEVEL
from ytb_caption.tools import (
    DOWNLOAD_TOOL,
    SUBTITLES_TOOL,
    TOOL_DEFINITIONS,
    SubtitleService,
    build_service_from_env,
)

logger = logging.getLogger(__name__)

mcp = FastMCP("mcp-youtube")

_DESCRIPTIONS = {tool["name"]: tool["description"] for tool in TOOL_DEFINITIONS}
_service: Optional[SubtitleService] = None


def get_service() -> SubtitleService:
    global _service
    if _service is None:
        _service = build_service_from_env()
    return _service


def set_service(service: Optional[SubtitleService]) -> None:
    global _service
    _service = service


async def _call(name: str, arguments: Dict[str, Any]) -> str:
    # Transcript sources block on network I/O
    result = await asyncio.to_thread(get_service().call_tool, name, arguments)
    if result.isError:
        raise ToolError(result.text)
    return result.text


@mcp.tool(name=DOWNLOAD_TOOL, description=_DESCRIPTIONS[DOWNLOAD_TOOL])
async def download_youtube_url(url: str) -> str:
    return await _call(DOWNLOAD_TOOL, {"url": url})


@mcp.tool(name=SUBTITLES_TOOL, description=_DESCRIPTIONS[SUBTITLES_TOOL])
async def get_youtube_subtitles(url: str, chunk_index: int, chunk_size: Optional[int] = None) -> str:
    return await _call(SUBTITLES_TOOL, {"url": url, "chunk_index": chunk_index, "chunk_size": chunk_size})


def main() -> None:
    # stdout carries JSON-RPC, so logs go to stderr
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.info("Starting YouTube subtitle MCP server on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
