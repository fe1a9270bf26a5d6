import sqlite3

import pytest

from storefront import database
from storefront.database import (
    ListingNotFound, StoreError, add_changelog_entry, fetch_changelog, get_listing,
    get_listings, get_profile, increment_download_count, increment_rating_and_recompute,
    initialize_database, load_seed_file, run_transaction, save_profile, upsert_listing,
)

from conftest import SAMPLE_STORE


def test_initialize_is_idempotent(tmp_path):
    path = str(tmp_path / "nested" / "store.db")
    initialize_database(path)
    initialize_database(path)
    assert get_listings(path) == []
    assert get_profile(path) is None


def test_listings_come_back_newest_first_with_display_category(db_path):
    apps = get_listings(db_path)
    assert [app.id for app in apps] == ["b", "a"]
    alpha = apps[1]
    assert alpha.category_id == "tools"
    assert alpha.category_name == "Tools"
    assert alpha.screenshots == ["one.png"]
    assert alpha.rating == pytest.approx(4.5)
    assert alpha.release_date.year == 2024


def test_listing_without_category_is_na(tmp_path):
    path = str(tmp_path / "s.db")
    initialize_database(path)
    upsert_listing({"id": "x", "name": "X"}, path)
    app = get_listing("x", path)
    assert (app.category_id, app.category_name) == ("N/A", "N/A")


def test_profile_round_trip(db_path):
    profile = get_profile(db_path)
    assert profile.name == "Kavin Kumar"
    assert profile.skills == ["Python"]
    assert profile.featured_app_id == "a"

    save_profile({"name": "Someone Else"}, db_path)
    assert get_profile(db_path).featured_app_id is None


def test_fetch_changelog_newest_first(db_path):
    entries = fetch_changelog("a", db_path)
    assert [e.version for e in entries] == ["1.0.0", "0.9.0"]
    assert fetch_changelog("b", db_path) == []


def test_fetch_changelog_never_raises(tmp_path, capsys):
    empty = str(tmp_path / "empty.db")
    assert fetch_changelog("a", empty) == []
    assert "Error fetching changelog" in capsys.readouterr().out


def test_rating_update_keeps_average_consistent(db_path):
    updated = increment_rating_and_recompute("a", 3, db_path)
    assert updated.rating_count == 3
    assert updated.rating_sum == 12
    assert updated.rating == pytest.approx(updated.rating_sum / updated.rating_count)

    for stars in (5, 1, 4):
        increment_rating_and_recompute("b", stars, db_path)
    for app in get_listings(db_path):
        if app.rating_count:
            assert app.rating == pytest.approx(app.rating_sum / app.rating_count)


def test_rating_rejects_missing_listing_and_bad_stars(db_path):
    with pytest.raises(ListingNotFound):
        increment_rating_and_recompute("nope", 4, db_path)
    with pytest.raises(ValueError):
        increment_rating_and_recompute("a", 6, db_path)
    assert get_listing("a", db_path).rating_count == 2


def test_download_count_increments(db_path):
    assert increment_download_count("a", db_path) == 501
    assert increment_download_count("a", db_path) == 502
    assert get_listing("a", db_path).downloads == 502
    with pytest.raises(ListingNotFound):
        increment_download_count("nope", db_path)


def test_failed_transaction_rolls_back(db_path):
    def work(conn):
        conn.execute("UPDATE listings SET downloads = 0 WHERE id = 'a'")
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run_transaction(work, db_path)
    assert get_listing("a", db_path).downloads == 500


def test_locked_transaction_gives_up_after_retries(db_path, monkeypatch):
    original_connect = database._get_connection

    def impatient(path):
        conn = original_connect(path)
        conn.execute("PRAGMA busy_timeout = 10")
        return conn

    monkeypatch.setattr(database, "_get_connection", impatient)
    blocker = sqlite3.connect(db_path, isolation_level=None)
    blocker.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(StoreError):
            run_transaction(lambda conn: None, db_path, attempts=2)
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()


def test_load_seed_file(tmp_path):
    path = str(tmp_path / "seeded.db")
    listings, entries = load_seed_file(SAMPLE_STORE, path)
    assert listings == 3
    assert entries == 3
    assert get_profile(path).featured_app_id == "focusflow"
    focus = get_listing("focusflow", path)
    assert focus.rating == pytest.approx(182 / 40)


def test_malformed_profile_lists_read_as_empty(db_path, capsys):
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE developer_profile SET skills = 'not json', links = '{\"a\": 1}'")
    conn.commit()
    conn.close()

    profile = get_profile(db_path)
    assert profile.name == "Kavin Kumar"
    assert profile.skills == []
    assert profile.links == []
    assert "unreadable skills" in capsys.readouterr().out


def test_seeding_twice_keeps_one_entry_per_version(tmp_path):
    path = str(tmp_path / "seeded.db")
    load_seed_file(SAMPLE_STORE, path)
    load_seed_file(SAMPLE_STORE, path)
    assert [e.version for e in fetch_changelog("focusflow", path)] == ["2.1.0", "2.0.0"]
    assert len(fetch_changelog("fungame", path)) == 1
    assert len(get_listings(path)) == 3


def test_changelog_entry_for_existing_version_is_replaced(db_path):
    add_changelog_entry("a", "1.0.0", "Launch, take two", "2024-06-02", db_path)
    entries = fetch_changelog("a", db_path)
    assert [e.version for e in entries] == ["1.0.0", "0.9.0"]
    assert entries[0].notes == "Launch, take two"


def test_initialize_collapses_duplicate_versions_from_older_stores(tmp_path):
    path = str(tmp_path / "old.db")
    conn = sqlite3.connect(path)
    conn.execute("""
        CREATE TABLE changelog (
            id INTEGER PRIMARY KEY AUTOINCREMENT, listing_id TEXT NOT NULL,
            version TEXT NOT NULL, date TEXT, notes TEXT DEFAULT ''
        )
    """)
    conn.executemany(
        "INSERT INTO changelog (listing_id, version, date, notes) VALUES (?, ?, ?, ?)",
        [("a", "1.0.0", "2024-06-01", "first"), ("a", "1.0.0", "2024-06-01", "second")],
    )
    conn.commit()
    conn.close()

    initialize_database(path)
    assert [e.notes for e in fetch_changelog("a", path)] == ["second"]
