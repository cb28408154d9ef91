from dataclasses import dataclass
from typing import Union

from ytb_caption.cache import CacheEntry

NEXT_CHUNK_TOOL = "get_youtube_subtitles"


@dataclass(frozen=True)
class RenderedPage:
    text: str
    chunk_index: int
    total_chunks: int
    chunk_length: int
    total_length: int

    @property
    def has_next(self) -> bool:
        return self.chunk_index < self.total_chunks - 1


@dataclass(frozen=True)
class OutOfRange:
    chunk_index: int
    total_chunks: int

    @property
    def message(self) -> str:
        return (
            f"Error: chunk_index {self.chunk_index} is out of range. "
            f"Available chunks: 0-{self.total_chunks - 1}"
        )


def _pagination_footer(chunk_index: int, total_chunks: int, chunk_length: int, total_length: int) -> str:
    footer = "\n\n=== PAGINATION INFO ===\n"
    footer += f"This is chunk {chunk_index + 1} of {total_chunks} ({chunk_length} characters)\n"
    footer += f"Total content length: {total_length} characters\n"
    if chunk_index < total_chunks - 1:
        footer += f"To get the next chunk, use: {NEXT_CHUNK_TOOL} with chunk_index={chunk_index + 1}"
    else:
        footer += "This is the last chunk."
    return footer


def render_chunk(
    entry: CacheEntry, chunk_index: int, include_footer: bool = True
) -> Union[RenderedPage, OutOfRange]:
    """Render one chunk of a cached transcript with its navigation footer.

    An invalid index is returned as OutOfRange, never raised.
    """
    total_chunks = len(entry.chunks)
    if chunk_index < 0 or chunk_index >= total_chunks:
        return OutOfRange(chunk_index=chunk_index, total_chunks=total_chunks)

    chunk = entry.chunks[chunk_index]
    text = chunk
    if include_footer:
        text += _pagination_footer(chunk_index, total_chunks, len(chunk), len(entry.full_text))

    return RenderedPage(
        text=text,
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        chunk_length=len(chunk),
        total_length=len(entry.full_text),
    )


def render_first_chunk(entry: CacheEntry) -> RenderedPage:
    """Render chunk 0; single-chunk transcripts are returned without a footer."""
    return render_chunk(entry, 0, include_footer=len(entry.chunks) > 1)
