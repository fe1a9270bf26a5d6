import queue
import sqlite3
import time

import pytest

from storefront.database import increment_download_count, initialize_database, save_profile
from storefront.live import Subscription, SubscriptionHub, subscribe_listings, subscribe_profile
from storefront.state import ListingsChanged, ProfileChanged

POLL = 0.02
WAIT = 5


@pytest.fixture
def subscriptions():
    started = []
    yield started
    for sub in started:
        sub.stop()
        sub.join(timeout=WAIT)


def test_listings_subscription_delivers_initial_and_changed_snapshots(db_path, subscriptions):
    snapshots = queue.Queue()
    subscriptions.append(subscribe_listings(snapshots.put, db_path=db_path, poll_interval=POLL))

    first = snapshots.get(timeout=WAIT)
    assert [app.id for app in first] == ["b", "a"]
    assert first[1].category_name == "Tools"

    increment_download_count("a", db_path)
    second = snapshots.get(timeout=WAIT)
    assert [app.downloads for app in second if app.id == "a"] == [501]


def test_unrelated_commit_does_not_emit_duplicate_snapshot(db_path, subscriptions):
    snapshots = queue.Queue()
    subscriptions.append(subscribe_listings(snapshots.put, db_path=db_path, poll_interval=POLL))
    snapshots.get(timeout=WAIT)

    # The profile table changes, listings do not
    save_profile({"name": "Renamed"}, db_path)
    with pytest.raises(queue.Empty):
        snapshots.get(timeout=POLL * 10)


def test_missing_profile_is_delivered_as_none(tmp_path, subscriptions):
    path = str(tmp_path / "store.db")
    initialize_database(path)
    snapshots = queue.Queue()
    subscriptions.append(subscribe_profile(snapshots.put, db_path=path, poll_interval=POLL))
    assert snapshots.get(timeout=WAIT) is None

    save_profile({"name": "Kavin"}, path)
    assert snapshots.get(timeout=WAIT).name == "Kavin"


def test_read_failure_goes_to_on_error_not_on_change(tmp_path, subscriptions):
    path = str(tmp_path / "no_tables.db")
    snapshots, errors = queue.Queue(), queue.Queue()
    subscriptions.append(subscribe_listings(snapshots.put, errors.put, db_path=path, poll_interval=POLL))

    assert "no such table" in str(errors.get(timeout=WAIT))
    assert snapshots.empty()

    # Once the store is readable again the snapshot arrives
    initialize_database(path)
    assert snapshots.get(timeout=WAIT) == []


def test_stop_ends_the_thread(db_path):
    sub = subscribe_profile(lambda profile: None, db_path=db_path, poll_interval=POLL)
    sub.stop()
    sub.join(timeout=WAIT)
    assert sub.stopped
    assert not sub.is_alive()


def test_malformed_profile_row_still_delivers(db_path, subscriptions):
    conn = sqlite3.connect(db_path)
    conn.execute("UPDATE developer_profile SET skills = 'not json'")
    conn.commit()
    conn.close()

    snapshots, errors = queue.Queue(), queue.Queue()
    sub = subscribe_profile(snapshots.put, errors.put, db_path=db_path, poll_interval=POLL)
    subscriptions.append(sub)

    assert snapshots.get(timeout=WAIT).skills == []
    assert errors.empty()
    assert sub.is_alive()


def test_any_read_failure_reaches_on_error_and_polling_continues(db_path, subscriptions):
    calls = []

    def flaky_read(conn):
        calls.append(1)
        if len(calls) == 1:
            raise ValueError("bad row")
        return "fine"

    snapshots, errors = queue.Queue(), queue.Queue()
    sub = Subscription("flaky", flaky_read, snapshots.put, errors.put, db_path, POLL)
    sub.start()
    subscriptions.append(sub)

    assert isinstance(errors.get(timeout=WAIT), ValueError)
    assert snapshots.get(timeout=WAIT) == "fine"
    assert sub.is_alive()


# ============================================================
# HUB
# ============================================================

def test_hub_fans_out_and_replays_latest_to_new_sessions(tmp_path):
    hub = SubscriptionHub(db_path=str(tmp_path / "unused.db"))
    hub.attach("first")
    hub.publish("listings", ListingsChanged([]))
    hub.publish("profile", ProfileChanged(None))
    hub.publish("listings", ListingsChanged(["newer"]))

    assert hub.drain("first") == [
        ListingsChanged([]), ProfileChanged(None), ListingsChanged(["newer"]),
    ]
    assert hub.drain("first") == []

    # A late tab only gets the newest snapshot of each source
    assert hub.drain("second") == [ListingsChanged(["newer"]), ProfileChanged(None)]


def test_hub_drops_sessions_that_stop_checking_in(tmp_path):
    hub = SubscriptionHub(db_path=str(tmp_path / "unused.db"), idle_seconds=0.05)
    hub.attach("open")
    hub.attach("closed")
    assert hub.session_count == 2

    time.sleep(0.1)
    assert not hub.has_pending("open")
    assert hub.prune() == ["closed"]
    assert hub.session_count == 1

    hub.publish("profile", ProfileChanged(None))
    assert hub.drain("open") == [ProfileChanged(None)]

    # Far enough in the future, every session is gone
    assert hub.prune(now=time.monotonic() + 60) == ["open"]
    assert hub.session_count == 0


def test_hub_runs_one_pair_of_threads_for_all_sessions(db_path):
    hub = SubscriptionHub(db_path=db_path, poll_interval=POLL).start()
    try:
        for session in ("a", "b", "c"):
            hub.attach(session)
        events = []
        deadline = time.monotonic() + WAIT
        while time.monotonic() < deadline:
            events += hub.drain("b")
            if {type(e) for e in events} >= {ListingsChanged, ProfileChanged}:
                break
            time.sleep(POLL)

        assert {type(e) for e in events} >= {ListingsChanged, ProfileChanged}
        assert hub.drain("a")
        assert len(hub.subscriptions) == 2
    finally:
        hub.stop()
        for sub in hub.subscriptions:
            sub.join(timeout=WAIT)
    assert not any(sub.is_alive() for sub in hub.subscriptions)
