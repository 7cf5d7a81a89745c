"""MTA GTFS-Realtime feed fetcher and decoder."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, Optional, Tuple

import requests
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from .config import FeedSettings
from .exceptions import EmptyFeed, FeedError, FeedFormatError, FeedUnavailable
from .models import FeedSnapshot, FeedStatus
from .tracing import Tracer

logger = logging.getLogger(__name__)

# Leading bytes of bodies that are markup, not protobuf
MARKUP_PREFIXES = (b"<html", b"<?xml", b"<!doctype", b"<error")


class FeedClient:
    """Fetches and decodes MTA GTFS-Realtime feeds."""

    def __init__(
        self,
        settings: Optional[FeedSettings] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        tracer: Optional[Tracer] = None,
    ):
        """
        Initialize the feed client.

        Args:
            settings: HTTP settings; read from the environment when omitted.
            session: requests session to reuse across fetches.
            clock: Returns the current Unix time (offset-corrected).
            sleep: Used for the fixed delay before the single retry.
            tracer: Receives feed status events.
        """
        self.settings = settings or FeedSettings()
        self.session = session or requests.Session()
        self.clock = clock
        self.sleep = sleep
        self.tracer = tracer or Tracer()
        self._cache: Dict[str, FeedSnapshot] = {}  # feed_url -> snapshot
        self._max_cache_size = 10  # Limit cache entries
        self._cache_lock = threading.Lock()

    def fetch(self, feed_url: str, feed_group: str = "", retries: Optional[int] = None) -> FeedSnapshot:
        """
        Fetch and decode one feed.

        Args:
            feed_url: Full URL to the feed.
            feed_group: Tag recorded on the snapshot (e.g. "bdfm").
            retries: Extra attempts after a failure; defaults to settings.max_retries.

        Returns:
            A complete decoded FeedSnapshot.

        Raises:
            FeedUnavailable: Non-200 status or transport error, after the retry.
            FeedFormatError: Markup body or decode failure, after the retry.
            EmptyFeed: Zero-length body.
        """
        cached = self._cached(feed_url)
        if cached is not None:
            logger.debug(f"Using cached data for {feed_url}")
            return cached

        if retries is None:
            retries = self.settings.max_retries
        attempts = 1 + max(0, retries)

        for attempt in range(1, attempts + 1):
            try:
                message = self._fetch_message(feed_url)
            except EmptyFeed:
                raise
            except (FeedUnavailable, FeedFormatError) as e:
                if attempt >= attempts:
                    raise
                logger.warning(f"Feed {feed_url} failed ({e}); retrying in {self.settings.retry_delay_s}s")
                self.tracer.event("feed.retry", url=feed_url, attempt=attempt, error=str(e))
                self.sleep(self.settings.retry_delay_s)
                continue

            snapshot = FeedSnapshot(
                url=feed_url,
                feed_group=feed_group,
                message=message,
                fetched_at=self.clock(),
            )
            self._store(snapshot)
            return snapshot

        raise FeedUnavailable(f"Feed {feed_url} was not attempted", url=feed_url)

    def fetch_all(
        self, feeds: Dict[str, str], deadline_s: Optional[float] = None
    ) -> Tuple[Dict[str, FeedSnapshot], Dict[str, FeedStatus]]:
        """
        Fetch several feeds concurrently.

        Args:
            feeds: {feed_group: url}.
            deadline_s: Overall time limit; feeds still in flight when it
                expires are recorded as failed and not waited for.

        Returns:
            (snapshots by feed group for the feeds that worked,
             status by feed group for every feed).
        """
        if deadline_s is None:
            deadline_s = self.settings.request_deadline_s

        snapshots: Dict[str, FeedSnapshot] = {}
        statuses: Dict[str, FeedStatus] = {}
        if not feeds:
            return snapshots, statuses

        started = time.monotonic()
        executor = ThreadPoolExecutor(max_workers=min(8, len(feeds)))
        try:
            futures = {
                executor.submit(self._timed_fetch, url, group): group
                for group, url in feeds.items()
            }
            done, pending = wait(futures, timeout=deadline_s)

            for future in done:
                group = futures[future]
                try:
                    snapshot, status = future.result()
                except Exception as e:
                    logger.error(f"Unexpected error fetching feed {group}: {e}")
                    snapshot = None
                    status = FeedStatus(
                        feed_group=group,
                        url=feeds[group],
                        ok=False,
                        error=f"{type(e).__name__}: {e}",
                        elapsed=time.monotonic() - started,
                    )
                statuses[group] = status
                if snapshot is not None:
                    snapshots[group] = snapshot

            for future in pending:
                group = futures[future]
                future.cancel()
                logger.warning(f"Feed {group} missed the {deadline_s}s deadline")
                statuses[group] = FeedStatus(
                    feed_group=group,
                    url=feeds[group],
                    ok=False,
                    error="deadline exceeded",
                    elapsed=time.monotonic() - started,
                )
        finally:
            executor.shutdown(wait=False)

        self.tracer.event(
            "feed.poll",
            working=sorted(snapshots),
            failed=sorted(g for g, s in statuses.items() if not s.ok),
            elapsed=round(time.monotonic() - started, 3),
        )
        return snapshots, statuses

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        with self._cache_lock:
            self._cache.clear()

    def _timed_fetch(self, feed_url: str, feed_group: str) -> Tuple[Optional[FeedSnapshot], FeedStatus]:
        """Fetch one feed, turning feed errors into a failed status."""
        started = time.monotonic()
        try:
            snapshot = self.fetch(feed_url, feed_group)
        except FeedError as e:
            logger.warning(f"Failed to fetch feed {feed_group} ({feed_url}): {e}")
            return None, FeedStatus(
                feed_group=feed_group,
                url=feed_url,
                ok=False,
                error=f"{type(e).__name__}: {e}",
                elapsed=time.monotonic() - started,
            )
        return snapshot, FeedStatus(
            feed_group=feed_group,
            url=feed_url,
            ok=True,
            elapsed=time.monotonic() - started,
        )

    def _fetch_message(self, feed_url: str):
        """Perform one HTTP request and decode the body."""
        logger.debug(f"Fetching {feed_url}")
        try:
            response = self.session.get(
                feed_url,
                headers=self.settings.headers(),
                timeout=self.settings.timeout_s,
            )
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {feed_url}: {e}")
            raise FeedUnavailable(f"Request failed: {e}", url=feed_url) from e

        if response.status_code != 200:
            raise FeedUnavailable(
                self._describe_status(response.status_code, response.reason),
                url=feed_url,
                status_code=response.status_code,
            )

        body = response.content or b""
        if not body:
            raise EmptyFeed("Feed returned an empty body", url=feed_url)

        content_type = response.headers.get("Content-Type", "").lower()
        self._check_not_markup(feed_url, content_type, body)

        message = gtfs_realtime_pb2.FeedMessage()
        try:
            message.ParseFromString(body)
        except DecodeError as e:
            raise FeedFormatError(f"Failed to decode feed: {e}", url=feed_url) from e

        logger.debug(f"Decoded {len(message.entity)} entities ({len(body)} bytes) from {feed_url}")
        return message

    @staticmethod
    def _check_not_markup(feed_url: str, content_type: str, body: bytes) -> None:
        """Reject HTML/XML bodies before attempting a protobuf decode."""
        if "html" in content_type or "xml" in content_type:
            raise FeedFormatError(f"Unexpected content type '{content_type}'", url=feed_url)
        head = body[:64].lstrip().lower()
        if head.startswith(MARKUP_PREFIXES):
            raise FeedFormatError("Feed body is markup, not a protobuf message", url=feed_url)

    @staticmethod
    def _describe_status(status_code: int, reason: Optional[str]) -> str:
        if status_code == 404:
            return "Feed not found (404). The MTA feed may be temporarily unavailable."
        if status_code == 403:
            return "Feed access denied (403). API authentication may be required."
        if status_code >= 500:
            return f"Feed server error ({status_code}). MTA servers may be down."
        return f"Feed error: {status_code} {reason or ''}".strip()

    def _cached(self, feed_url: str) -> Optional[FeedSnapshot]:
        with self._cache_lock:
            self._evict_expired_cache(self.clock())
            return self._cache.get(feed_url)

    def _store(self, snapshot: FeedSnapshot) -> None:
        with self._cache_lock:
            # Enforce max cache size
            if len(self._cache) >= self._max_cache_size:
                oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k].fetched_at)
                del self._cache[oldest_key]
            self._cache[snapshot.url] = snapshot

    def _evict_expired_cache(self, current_time: float) -> None:
        """Remove expired cache entries."""
        expired_keys = [
            url for url, snapshot in self._cache.items()
            if current_time - snapshot.fetched_at >= self.settings.cache_ttl_s
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Evicted {len(expired_keys)} expired cache entries")
