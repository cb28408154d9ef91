import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from ytb_caption.config import CACHE_TTL_SECONDS
from ytb_caption.sources import TranscriptSource
from ytb_caption.transcripts import assemble_transcript, chunk_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    identity: str
    source_url: str
    full_text: str
    chunks: Tuple[str, ...]
    created_at: float


def cache_identity(url: str) -> str:
    """Cache key for a URL. URLs are hashed as given, without canonicalization."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


class TranscriptCache:
    """In-memory transcript cache with time-based expiry.

    Entries are write-once: the chunk layout is fixed by the request that
    populated the entry and later requests with another chunk size get the
    cached layout. Requests for the same URL are serialized on a per-identity
    lock so only the first one calls the transcript source; other URLs are
    fetched in parallel.
    """

    def __init__(
        self,
        source: TranscriptSource,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._fetch_locks: Dict[str, threading.Lock] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return self.get(url) is not None

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at >= self._ttl

    def get(self, url: str) -> Optional[CacheEntry]:
        """Return the unexpired entry for `url`, or None."""
        identity = cache_identity(url)
        with self._lock:
            entry = self._entries.get(identity)
        if entry is None or self._is_expired(entry, self._clock()):
            return None
        return entry

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Remove every expired entry. Returns how many were removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
                self._fetch_locks.pop(key, None)
        if expired:
            logger.info(f"Swept {len(expired)} expired transcript(s) from cache")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._fetch_locks.clear()

    def get_or_populate(self, url: str, chunk_size: int) -> CacheEntry:
        """Return the cached transcript for `url`, fetching it on a miss."""
        identity = cache_identity(url)
        with self._lock:
            fetch_lock = self._fetch_locks.setdefault(identity, threading.Lock())

        with fetch_lock:
            entry = self.get(url)
            if entry is not None:
                logger.debug(f"Cache hit for {url} ({identity})")
                return entry

            logger.info(f"Cache miss for {url} ({identity}), fetching transcript")
            try:
                payloads = self._source.fetch_raw_transcript_payloads(url)
            except Exception:
                # Failed URLs never get an entry, so the sweep would not free their lock
                with self._lock:
                    if identity not in self._entries and self._fetch_locks.get(identity) is fetch_lock:
                        del self._fetch_locks[identity]
                raise
            full_text = assemble_transcript(payloads)
            # An empty transcript still pages as "chunk 1 of 1"
            chunks = tuple(chunk_text(full_text, chunk_size)) or ("",)

            entry = CacheEntry(
                identity=identity,
                source_url=url,
                full_text=full_text,
                chunks=chunks,
                created_at=self._clock(),
            )
            with self._lock:
                self._entries[identity] = entry
            logger.info(
                f"Cached transcript for {url}: {len(full_text)} characters "
                f"in {len(chunks)} chunk(s) of {chunk_size}"
            )
            return entry
