import threading
import time

import pytest

from conftest import VIDEO_URL
from ytb_caption.cache import TranscriptCache, cache_identity
from ytb_caption.sources import TranscriptSourceError

TRANSCRIPT = "video.en.vtt\n====================\nHello\nWorld"


class TestCacheIdentity:
    """Test the cache key derivation."""

    def test_identity_is_md5_hex(self):
        """Test the identity is the MD5 hex digest of the URL."""
        assert cache_identity("abc") == "900150983cd24fb0d6963f7d28e17f72"

    def test_identity_is_deterministic(self):
        """Test the same URL always maps to the same identity."""
        assert cache_identity(VIDEO_URL) == cache_identity(VIDEO_URL)

    def test_identity_does_not_canonicalize(self):
        """Test trivially different URLs map to different identities."""
        assert cache_identity(VIDEO_URL) != cache_identity(VIDEO_URL + "&t=0")
        assert cache_identity(VIDEO_URL) != cache_identity(VIDEO_URL.replace("www.", ""))


class TestGetOrPopulate:
    """Test cache population and reuse."""

    def test_populate_on_miss(self, cache, source, clock):
        """Test a miss fetches, normalizes and chunks the transcript."""
        entry = cache.get_or_populate(VIDEO_URL, 15000)

        source.fetch_raw_transcript_payloads.assert_called_once_with(VIDEO_URL)
        assert entry.identity == cache_identity(VIDEO_URL)
        assert entry.source_url == VIDEO_URL
        assert entry.full_text == TRANSCRIPT
        assert entry.chunks == (TRANSCRIPT,)
        assert entry.created_at == clock.now
        assert len(cache) == 1

    def test_hit_within_ttl(self, cache, source, clock):
        """Test a second call within the TTL returns the cached entry without refetching."""
        first = cache.get_or_populate(VIDEO_URL, 15000)
        clock.advance(1799)
        second = cache.get_or_populate(VIDEO_URL, 15000)

        assert second is first
        assert second.identity == first.identity
        assert second.chunks == first.chunks
        source.fetch_raw_transcript_payloads.assert_called_once()

    def test_first_chunk_size_wins(self, cache, source):
        """Test a later request with another chunk size keeps the cached layout."""
        first = cache.get_or_populate(VIDEO_URL, 10)
        second = cache.get_or_populate(VIDEO_URL, 15000)

        assert len(first.chunks) == 5
        assert second.chunks == first.chunks
        source.fetch_raw_transcript_payloads.assert_called_once()

    def test_refetch_after_ttl(self, cache, source, clock):
        """Test a call once the TTL has elapsed fetches a fresh transcript."""
        first = cache.get_or_populate(VIDEO_URL, 15000)
        clock.advance(1800)
        second = cache.get_or_populate(VIDEO_URL, 15000)

        assert second is not first
        assert second.created_at > first.created_at
        assert source.fetch_raw_transcript_payloads.call_count == 2

    def test_distinct_urls_fetch_separately(self, cache, source):
        """Test different URL strings are cached under different identities."""
        cache.get_or_populate(VIDEO_URL, 15000)
        cache.get_or_populate("https://youtu.be/dQw4w9WgXcQ", 15000)

        assert source.fetch_raw_transcript_payloads.call_count == 2
        assert len(cache) == 2

    def test_chunks_reassemble_full_text(self, cache, source, make_payload):
        """Test the stored chunks concatenate to the full transcript."""
        source.fetch_raw_transcript_payloads.return_value = [make_payload("a" * 95, "b" * 40)]
        entry = cache.get_or_populate(VIDEO_URL, 32)

        assert "".join(entry.chunks) == entry.full_text
        assert all(len(c) == 32 for c in entry.chunks[:-1])
        assert 1 <= len(entry.chunks[-1]) <= 32

    def test_empty_transcript_has_one_empty_chunk(self, cache, source):
        """Test a source returning nothing yields exactly one empty chunk."""
        source.fetch_raw_transcript_payloads.return_value = []
        entry = cache.get_or_populate(VIDEO_URL, 15000)

        assert entry.full_text == ""
        assert entry.chunks == ("",)

    def test_source_error_propagates(self, cache, source):
        """Test a failed fetch raises and stores nothing."""
        source.fetch_raw_transcript_payloads.side_effect = TranscriptSourceError("Video is unavailable or private.")

        with pytest.raises(TranscriptSourceError, match="unavailable"):
            cache.get_or_populate(VIDEO_URL, 15000)
        assert len(cache) == 0

    def test_failed_fetches_release_their_locks(self, cache, source):
        """Test URLs whose fetch failed leave no per-URL lock behind."""
        source.fetch_raw_transcript_payloads.side_effect = TranscriptSourceError("No transcript available")

        for i in range(100):
            with pytest.raises(TranscriptSourceError):
                cache.get_or_populate(f"https://youtu.be/missing{i}", 15000)
        cache.sweep_expired(now=10**12)

        assert len(cache._fetch_locks) == 0
        assert len(cache) == 0

    def test_retry_after_failed_fetch(self, cache, source, make_payload):
        """Test a URL can be fetched again after its first fetch failed."""
        source.fetch_raw_transcript_payloads.side_effect = [
            TranscriptSourceError("network down"),
            [make_payload("Hello")],
        ]

        with pytest.raises(TranscriptSourceError):
            cache.get_or_populate(VIDEO_URL, 15000)
        entry = cache.get_or_populate(VIDEO_URL, 15000)

        assert entry.full_text.endswith("Hello")
        assert source.fetch_raw_transcript_payloads.call_count == 2

    def test_concurrent_requests_fetch_once(self, source, clock, make_payload):
        """Test concurrent requests for one URL share a single fetch."""
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(url):
            started.set()
            release.wait(5)
            return [make_payload("Hello")]

        source.fetch_raw_transcript_payloads.side_effect = slow_fetch
        cache = TranscriptCache(source, ttl_seconds=1800, clock=clock)
        results = []

        def worker():
            results.append(cache.get_or_populate(VIDEO_URL, 15000))

        threads = [threading.Thread(target=worker) for _ in range(3)]
        threads[0].start()
        assert started.wait(5)
        for t in threads[1:]:
            t.start()
        time.sleep(0.05)
        release.set()
        for t in threads:
            t.join(5)

        assert len(results) == 3
        assert all(entry is results[0] for entry in results)
        source.fetch_raw_transcript_payloads.assert_called_once()


class TestSweepExpired:
    """Test lazy expiry sweeping."""

    def test_sweep_removes_expired_entries(self, cache, clock):
        """Test entries at or past the TTL are removed."""
        cache.get_or_populate(VIDEO_URL, 15000)
        clock.advance(900)
        cache.get_or_populate("https://youtu.be/other", 15000)
        clock.advance(900)

        assert cache.sweep_expired() == 1
        assert VIDEO_URL not in cache
        assert "https://youtu.be/other" in cache
        assert len(cache) == 1

    def test_sweep_keeps_fresh_entries(self, cache, clock):
        """Test entries younger than the TTL survive a sweep."""
        cache.get_or_populate(VIDEO_URL, 15000)
        clock.advance(1799)

        assert cache.sweep_expired() == 0
        assert VIDEO_URL in cache

    def test_sweep_with_explicit_time(self, cache, clock):
        """Test sweeping against a caller supplied time."""
        cache.get_or_populate(VIDEO_URL, 15000)

        assert cache.sweep_expired(now=clock.now + 3600) == 1
        assert len(cache) == 0

    def test_get_ignores_expired_entry(self, cache, clock):
        """Test an expired entry is not returned even before a sweep."""
        cache.get_or_populate(VIDEO_URL, 15000)
        clock.advance(1800)

        assert cache.get(VIDEO_URL) is None
        assert len(cache) == 1

    def test_clear(self, cache):
        """Test clearing drops every entry."""
        cache.get_or_populate(VIDEO_URL, 15000)
        cache.clear()
        assert len(cache) == 0
