"""
Database layer — the storage backbone of the storefront.

Uses SQLite: a file-based database built into Python.
One file holds everything the site shows:
    - listings:          one row per published app
    - changelog:         "What's new" entries, many per listing
    - developer_profile: a single row describing the site owner

Key concept: transactions
    Ratings and download counters are read-modify-write updates. Two visitors
    rating the same app at the same moment must not overwrite each other.
    BEGIN IMMEDIATE takes the write lock *before* reading, so the value we
    read is still the value when we write. If another writer holds the lock,
    we wait and retry (see run_transaction).
"""

import json
import sqlite3
import os
import time
from datetime import datetime
from typing import Callable, Optional

from dateutil.parser import isoparse

from storefront.config import STORE_DB_PATH, TRANSACTION_ATTEMPTS
from storefront.formatting import category_details
from storefront.models import Listing, ChangelogEntry, DeveloperProfile


class StoreError(Exception):
    """Something went wrong talking to the document store."""


class ListingNotFound(StoreError):
    """The listing a write was aimed at no longer exists."""

    def __init__(self, listing_id: str):
        super().__init__(f"Listing does not exist: {listing_id}")
        self.listing_id = listing_id


LISTING_COLUMNS = [
    "id", "name", "tagline", "description", "version", "category", "icon",
    "screenshots", "apk_url", "play_store_url", "release_date",
    "downloads", "rating", "rating_count", "rating_sum",
]


# ============================================================
# CONNECTIONS
# ============================================================

def _get_connection(db_path: str = STORE_DB_PATH) -> sqlite3.Connection:
    """
    Open a connection to the store.
    Rows come back as sqlite3.Row so columns can be read by name.
    """
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=5)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_database(db_path: str = STORE_DB_PATH) -> None:
    """
    Creates all tables. Safe to call multiple times;
    'IF NOT EXISTS' means it won't crash if the tables already exist.
    """
    conn = _get_connection(db_path)
    cursor = conn.cursor()

    # ---- Table 1: listings ----
    # screenshots is a JSON array of URLs; release_date is an ISO string
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS listings (
            id              TEXT PRIMARY KEY,
            name            TEXT NOT NULL,
            tagline         TEXT DEFAULT '',
            description     TEXT DEFAULT '',
            version         TEXT DEFAULT '',
            category        TEXT,
            icon            TEXT DEFAULT '',
            screenshots     TEXT DEFAULT '[]',
            apk_url         TEXT,
            play_store_url  TEXT,
            release_date    TEXT,
            downloads       INTEGER DEFAULT 0,
            rating          REAL DEFAULT 0.0,
            rating_count    INTEGER DEFAULT 0,
            rating_sum      INTEGER DEFAULT 0
        )
    """)

    # ---- Table 2: changelog ----
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS changelog (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            listing_id  TEXT NOT NULL,
            version     TEXT NOT NULL,
            date        TEXT,
            notes       TEXT DEFAULT ''
        )
    """)
    # One entry per (listing, version). Stores created before the index
    # existed may hold duplicates; keep the newest of each.
    cursor.execute("""
        DELETE FROM changelog WHERE id NOT IN (
            SELECT MAX(id) FROM changelog GROUP BY listing_id, version
        )
    """)
    cursor.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_changelog_listing_version
        ON changelog (listing_id, version)
    """)

    # ---- Table 3: developer_profile ----
    # Always a single row with id = 'profile'
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS developer_profile (
            id                  TEXT PRIMARY KEY,
            name                TEXT NOT NULL,
            city                TEXT DEFAULT '',
            bio                 TEXT DEFAULT '',
            skills              TEXT DEFAULT '[]',
            profile_image_url   TEXT DEFAULT '',
            links               TEXT DEFAULT '[]',
            featured_app_id     TEXT
        )
    """)

    conn.commit()
    conn.close()

    print(f"Store initialized: {db_path}")


# ============================================================
# ROW <-> MODEL CONVERSION
# ============================================================

def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return isoparse(value)
    except ValueError:
        print(f"Warning: unreadable timestamp in store: {value!r}")
        return None


def _json_list(value, column: str) -> list:
    """Decode a JSON array column. Anything unreadable becomes []."""
    try:
        decoded = json.loads(value or "[]")
    except json.JSONDecodeError:
        print(f"Warning: unreadable {column} in store: {value!r}")
        return []
    return decoded if isinstance(decoded, list) else []


def _row_to_listing(row: sqlite3.Row) -> Listing:
    """Turn a listings row into a Listing, resolving the display category."""
    category_id = row["category"] or "N/A"
    category_name = category_details(row["category"])[0] if row["category"] else "N/A"
    screenshots = _json_list(row["screenshots"], "screenshots")

    return Listing(
        id=row["id"],
        name=row["name"],
        tagline=row["tagline"] or "",
        description=row["description"] or "",
        version=row["version"] or "",
        category_id=category_id,
        category_name=category_name,
        icon=row["icon"] or "",
        screenshots=screenshots,
        apk_url=row["apk_url"],
        play_store_url=row["play_store_url"],
        release_date=_parse_timestamp(row["release_date"]),
        downloads=row["downloads"] or 0,
        rating=row["rating"] or 0.0,
        rating_count=row["rating_count"] or 0,
        rating_sum=row["rating_sum"] or 0,
    )


def _row_to_profile(row: sqlite3.Row) -> DeveloperProfile:
    return DeveloperProfile(
        name=row["name"],
        city=row["city"] or "",
        bio=row["bio"] or "",
        skills=_json_list(row["skills"], "skills"),
        profile_image_url=row["profile_image_url"] or "",
        links=_json_list(row["links"], "links"),
        featured_app_id=row["featured_app_id"] or None,
    )


# ============================================================
# READS
# ============================================================

def read_listings(conn: sqlite3.Connection) -> list[Listing]:
    """
    All listings, newest release first.
    Raises sqlite3.Error if the store can't be read; callers decide
    whether that is fatal.
    """
    cursor = conn.execute("SELECT * FROM listings ORDER BY release_date DESC, id ASC")
    return [_row_to_listing(row) for row in cursor.fetchall()]


def read_profile(conn: sqlite3.Connection) -> Optional[DeveloperProfile]:
    """The developer profile, or None if the site owner hasn't added one yet."""
    cursor = conn.execute("SELECT * FROM developer_profile WHERE id = 'profile'")
    row = cursor.fetchone()
    return _row_to_profile(row) if row else None


def get_listings(db_path: str = STORE_DB_PATH) -> list[Listing]:
    conn = _get_connection(db_path)
    try:
        return read_listings(conn)
    finally:
        conn.close()


def get_listing(listing_id: str, db_path: str = STORE_DB_PATH) -> Optional[Listing]:
    conn = _get_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return _row_to_listing(row) if row else None
    finally:
        conn.close()


def get_profile(db_path: str = STORE_DB_PATH) -> Optional[DeveloperProfile]:
    conn = _get_connection(db_path)
    try:
        return read_profile(conn)
    finally:
        conn.close()


def fetch_changelog(listing_id: str, db_path: str = STORE_DB_PATH) -> list[ChangelogEntry]:
    """
    One-shot read of a listing's changelog, newest entry first.

    A missing changelog never breaks the detail page, so any store error
    is printed and an empty list comes back instead.
    """
    try:
        conn = _get_connection(db_path)
        try:
            cursor = conn.execute(
                "SELECT version, date, notes FROM changelog WHERE listing_id = ? "
                "ORDER BY date DESC, id DESC",
                (listing_id,)
            )
            rows = cursor.fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        print(f"  Error fetching changelog for {listing_id}: {e}")
        return []

    return [
        ChangelogEntry(version=row["version"], date=_parse_timestamp(row["date"]), notes=row["notes"] or "")
        for row in rows
    ]


# ============================================================
# ATOMIC UPDATES
# ============================================================

def run_transaction(work: Callable[[sqlite3.Connection], object],
                    db_path: str = STORE_DB_PATH,
                    attempts: int = TRANSACTION_ATTEMPTS):
    """
    Run work(conn) inside a write transaction and commit it.

    The write lock is taken up front (BEGIN IMMEDIATE), so everything work()
    reads stays valid until commit. If the database is locked by another
    writer, the whole transaction is retried from scratch.

    Returns whatever work() returns. Exceptions raised by work() roll the
    transaction back and propagate unchanged.
    """
    last_error = None
    for attempt in range(1, attempts + 1):
        conn = _get_connection(db_path)
        conn.isolation_level = None  # we issue BEGIN/COMMIT ourselves
        try:
            conn.execute("BEGIN IMMEDIATE")
            result = work(conn)
            conn.execute("COMMIT")
            return result
        except sqlite3.OperationalError as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            message = str(e).lower()
            if "locked" not in message and "busy" not in message:
                raise
            last_error = e
            print(f"  Transaction attempt {attempt}/{attempts} hit a lock, retrying...")
            time.sleep(0.05 * attempt)
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    raise StoreError(f"Transaction gave up after {attempts} attempts") from last_error


def increment_rating_and_recompute(listing_id: str, stars: int,
                                   db_path: str = STORE_DB_PATH) -> Listing:
    """
    Add one star rating to a listing and recompute its average.

    rating_count += 1, rating_sum += stars, rating = rating_sum / rating_count,
    all in one transaction, so the stored average always matches the stored
    sum and count.

    Returns the listing as it was committed.
    Raises ListingNotFound if the listing is gone.
    """
    if stars not in (1, 2, 3, 4, 5):
        raise ValueError(f"Rating must be 1 to 5 stars, got {stars!r}")

    def work(conn: sqlite3.Connection) -> Listing:
        row = conn.execute(
            "SELECT rating_count, rating_sum FROM listings WHERE id = ?", (listing_id,)
        ).fetchone()
        if row is None:
            raise ListingNotFound(listing_id)

        new_count = (row["rating_count"] or 0) + 1
        new_sum = (row["rating_sum"] or 0) + stars
        new_rating = new_sum / new_count

        conn.execute(
            "UPDATE listings SET rating_count = ?, rating_sum = ?, rating = ? WHERE id = ?",
            (new_count, new_sum, new_rating, listing_id)
        )
        updated = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return _row_to_listing(updated)

    return run_transaction(work, db_path)


def increment_download_count(listing_id: str, db_path: str = STORE_DB_PATH) -> int:
    """
    Add one to a listing's download counter. Returns the new count.
    Raises ListingNotFound if the listing is gone.
    """
    def work(conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT downloads FROM listings WHERE id = ?", (listing_id,)).fetchone()
        if row is None:
            raise ListingNotFound(listing_id)
        new_downloads = (row["downloads"] or 0) + 1
        conn.execute("UPDATE listings SET downloads = ? WHERE id = ?", (new_downloads, listing_id))
        return new_downloads

    return run_transaction(work, db_path)


# ============================================================
# ADMIN WRITES: used by the site owner's tooling, never by visitors
# ============================================================

def upsert_listing(listing: dict, db_path: str = STORE_DB_PATH) -> None:
    """
    Insert or replace a listing from a plain dict (seed file format).
    Keys match the listings columns; screenshots may be a list.
    Counters that aren't given keep their stored values.
    """
    if not listing.get("id") or not listing.get("name"):
        raise ValueError("A listing needs at least an id and a name")

    values = dict(listing)
    if isinstance(values.get("screenshots"), list):
        values["screenshots"] = json.dumps(values["screenshots"])
    if isinstance(values.get("release_date"), datetime):
        values["release_date"] = values["release_date"].isoformat()

    count = values.get("rating_count")
    total = values.get("rating_sum")
    if count and total is not None:
        values["rating"] = total / count

    columns = [c for c in LISTING_COLUMNS if c in values]
    placeholders = ", ".join("?" for _ in columns)
    updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")

    conn = _get_connection(db_path)
    conn.execute(
        f"INSERT INTO listings ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}",
        [values[c] for c in columns]
    )
    conn.commit()
    conn.close()


def add_changelog_entry(listing_id: str, version: str, notes: str,
                        date: Optional[str] = None, db_path: str = STORE_DB_PATH) -> None:
    """
    Add a changelog entry, or replace the notes and date of an existing
    entry for the same version. date defaults to now (ISO string).
    """
    conn = _get_connection(db_path)
    conn.execute("""
        INSERT INTO changelog (listing_id, version, date, notes) VALUES (?, ?, ?, ?)
        ON CONFLICT (listing_id, version) DO UPDATE SET
            date = excluded.date,
            notes = excluded.notes
    """, (listing_id, version, date or datetime.now().isoformat(timespec="seconds"), notes))
    conn.commit()
    conn.close()


def save_profile(profile: dict, db_path: str = STORE_DB_PATH) -> None:
    """Replace the developer profile."""
    if not profile.get("name"):
        raise ValueError("The developer profile needs a name")

    conn = _get_connection(db_path)
    conn.execute("""
        INSERT OR REPLACE INTO developer_profile
        (id, name, city, bio, skills, profile_image_url, links, featured_app_id)
        VALUES ('profile', ?, ?, ?, ?, ?, ?, ?)
    """, (
        profile["name"],
        profile.get("city", ""),
        profile.get("bio", ""),
        json.dumps(profile.get("skills", [])),
        profile.get("profile_image_url", ""),
        json.dumps(profile.get("links", [])),
        profile.get("featured_app_id"),
    ))
    conn.commit()
    conn.close()


def load_seed_file(path: str, db_path: str = STORE_DB_PATH) -> tuple[int, int]:
    """
    Load listings, their changelogs and the profile from a JSON file:
        {"profile": {...}, "listings": [{..., "changelog": [{...}]}]}
    Returns (listings loaded, changelog entries loaded).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    initialize_database(db_path)

    if data.get("profile"):
        save_profile(data["profile"], db_path)

    listing_count = 0
    entry_count = 0
    for item in data.get("listings", []):
        item = dict(item)
        changelog = item.pop("changelog", [])
        upsert_listing(item, db_path)
        listing_count += 1
        for entry in changelog:
            add_changelog_entry(item["id"], entry["version"], entry.get("notes", ""),
                                entry.get("date"), db_path)
            entry_count += 1

    print(f"Loaded {listing_count} listings ({entry_count} changelog entries) from {path}")
    return listing_count, entry_count
