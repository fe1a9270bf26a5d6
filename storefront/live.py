"""
Live subscriptions — keeps the site in sync with the store without a refresh.

Each subscription is a background thread with its own SQLite connection.
It asks SQLite whether anything was committed since it last looked
(PRAGMA data_version changes whenever another connection commits), re-reads
its collection when it has, and hands the result to a callback only when the
snapshot actually differs from the previous one.

The two subscriptions (listings, profile) run independently; nothing orders
one stream relative to the other.
"""

import queue
import sqlite3
import threading
import time
from typing import Callable, Optional

from storefront.config import STORE_DB_PATH, SUBSCRIPTION_POLL_SECONDS, SESSION_IDLE_SECONDS
from storefront.database import _get_connection, read_listings, read_profile
from storefront.state import ListingsChanged, ProfileChanged, SubscriptionFailed

_NOTHING_YET = object()


class Subscription(threading.Thread):
    """
    Polls one query and pushes snapshots to on_change.

    on_change(snapshot) fires on the first successful read and after every
    change. on_error(exc) fires when a read fails; polling continues, and the
    next successful read is delivered even if it equals the last snapshot.
    """

    def __init__(self, name: str, read: Callable[[sqlite3.Connection], object],
                 on_change: Callable, on_error: Optional[Callable] = None,
                 db_path: str = STORE_DB_PATH,
                 poll_interval: float = SUBSCRIPTION_POLL_SECONDS):
        super().__init__(name=f"subscription-{name}", daemon=True)
        self.source = name
        self._read = read
        self._on_change = on_change
        self._on_error = on_error
        self._db_path = db_path
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._last_snapshot = _NOTHING_YET
        self._last_version = None

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        conn = None
        while not self._stop_event.is_set():
            try:
                if conn is None:
                    conn = _get_connection(self._db_path)
                self._poll(conn)
            except Exception as e:
                # Any read failure is reported; the thread keeps polling
                print(f"Warning: {self.source} subscription failed: {e}")
                self._last_snapshot = _NOTHING_YET
                self._last_version = None
                if conn is not None:
                    conn.close()
                    conn = None
                if self._on_error is not None:
                    self._on_error(e)
            self._stop_event.wait(self._poll_interval)

        if conn is not None:
            conn.close()

    def _poll(self, conn: sqlite3.Connection) -> None:
        version = conn.execute("PRAGMA data_version").fetchone()[0]
        if version == self._last_version and self._last_snapshot is not _NOTHING_YET:
            return

        snapshot = self._read(conn)
        # End the implicit read so the next data_version reflects new commits
        conn.rollback()
        self._last_version = version

        if snapshot != self._last_snapshot:
            self._last_snapshot = snapshot
            self._on_change(snapshot)


def subscribe_listings(on_change: Callable, on_error: Optional[Callable] = None,
                       db_path: str = STORE_DB_PATH,
                       poll_interval: float = SUBSCRIPTION_POLL_SECONDS) -> Subscription:
    """
    Start a live subscription to all listings, newest release first.
    on_change receives the full list (with display categories resolved).
    """
    sub = Subscription("listings", read_listings, on_change, on_error, db_path, poll_interval)
    sub.start()
    return sub


def subscribe_profile(on_change: Callable, on_error: Optional[Callable] = None,
                      db_path: str = STORE_DB_PATH,
                      poll_interval: float = SUBSCRIPTION_POLL_SECONDS) -> Subscription:
    """
    Start a live subscription to the developer profile.
    on_change receives a DeveloperProfile, or None when no profile exists;
    that is a valid "loaded but absent" state, not an error.
    """
    sub = Subscription("profile", read_profile, on_change, on_error, db_path, poll_interval)
    sub.start()
    return sub


# ============================================================
# ONE FEED PER PROCESS, MANY SESSIONS
# ============================================================

class SubscriptionHub:
    """
    Runs the two subscriptions once for the whole server and copies every
    snapshot into a channel per browser session.

    A session attaches with its own id and drains its channel on each rerun.
    Attaching replays the latest snapshot of each source, so a new tab is
    ready as soon as the store has been read once. Sessions that stop
    checking in (the tab was closed) are dropped after idle_seconds.
    """

    def __init__(self, db_path: str = STORE_DB_PATH,
                 poll_interval: float = SUBSCRIPTION_POLL_SECONDS,
                 idle_seconds: float = SESSION_IDLE_SECONDS):
        self._db_path = db_path
        self._poll_interval = poll_interval
        self._idle_seconds = idle_seconds
        self._lock = threading.Lock()
        self._channels: dict[str, queue.Queue] = {}
        self._last_seen: dict[str, float] = {}
        self._latest: dict[str, object] = {}
        self.subscriptions: list[Subscription] = []

    def start(self) -> "SubscriptionHub":
        self.subscriptions = [
            subscribe_listings(
                lambda listings: self.publish("listings", ListingsChanged(listings)),
                lambda error: self.publish("listings", SubscriptionFailed("listings", str(error))),
                self._db_path, self._poll_interval,
            ),
            subscribe_profile(
                lambda profile: self.publish("profile", ProfileChanged(profile)),
                lambda error: self.publish("profile", SubscriptionFailed("profile", str(error))),
                self._db_path, self._poll_interval,
            ),
        ]
        return self

    def stop(self) -> None:
        for sub in self.subscriptions:
            sub.stop()

    def publish(self, source: str, event) -> None:
        """Remember the newest event for a source and hand it to every session."""
        with self._lock:
            self._latest[source] = event
            for channel in self._channels.values():
                channel.put(event)
        self.prune()

    def attach(self, session_id: str) -> None:
        with self._lock:
            if session_id not in self._channels:
                channel = queue.Queue()
                for event in self._latest.values():
                    channel.put(event)
                self._channels[session_id] = channel
            self._last_seen[session_id] = time.monotonic()

    def drain(self, session_id: str) -> list:
        """Everything published since the session last looked."""
        self.attach(session_id)
        channel = self._channels.get(session_id)
        events = []
        while channel is not None:
            try:
                events.append(channel.get_nowait())
            except queue.Empty:
                break
        return events

    def has_pending(self, session_id: str) -> bool:
        """Checked by every open tab on a timer, so it also counts as a sign of life."""
        self.attach(session_id)
        channel = self._channels.get(session_id)
        return channel is not None and not channel.empty()

    def prune(self, now: Optional[float] = None) -> list[str]:
        """Drop sessions that have not checked in for idle_seconds. Returns their ids."""
        now = now if now is not None else time.monotonic()
        with self._lock:
            gone = [sid for sid, seen in self._last_seen.items() if now - seen > self._idle_seconds]
            for sid in gone:
                self._channels.pop(sid, None)
                self._last_seen.pop(sid, None)
        if gone:
            print(f"Dropped {len(gone)} idle session(s), {len(self._channels)} still attached")
        return gone

    @property
    def session_count(self) -> int:
        return len(self._channels)
