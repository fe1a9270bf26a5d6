import pytest

from storefront.models import ChangelogEntry, PAGE_ABOUT, PAGE_APPS, PAGE_DETAIL, PAGE_HOME
from storefront.router import normalize_route
from storefront.state import (
    AppState, ChangelogLoaded, FetchChangelog, FiltersChanged, ListingsChanged,
    ProfileChanged, Render, RouteChanged, SubscriptionFailed,
    apply, dismiss_notice, post_notice, prune_notices, show_app_detail,
)

ENTRY = ChangelogEntry(version="1.0.0", date=None, notes="Launch")


@pytest.fixture
def ready(listings, profile):
    state = AppState()
    apply(state, ListingsChanged(listings))
    apply(state, ProfileChanged(profile))
    return state


def test_not_ready_until_both_streams_deliver(listings, profile):
    state = AppState()
    apply(state, ListingsChanged(listings))
    assert not state.is_data_ready
    apply(state, ListingsChanged(listings))
    assert not state.is_data_ready
    apply(state, ProfileChanged(profile))
    assert state.is_data_ready


def test_missing_profile_still_counts_as_loaded(listings):
    state = AppState()
    apply(state, ProfileChanged(None))
    apply(state, ListingsChanged(listings))
    assert state.is_data_ready
    assert state.profile is None


def test_route_requested_before_ready_is_dispatched_on_ready(listings, profile):
    state = AppState()
    apply(state, RouteChanged("#about"))
    assert state.nav.page == PAGE_ABOUT
    assert not state.is_data_ready

    apply(state, ProfileChanged(profile))
    effects = apply(state, ListingsChanged(listings))
    assert state.nav.page == PAGE_ABOUT
    assert effects == [Render(scroll_to_top=True)]


def test_detail_route_before_ready_fetches_changelog_on_ready(listings, profile):
    state = AppState()
    apply(state, RouteChanged("app/a"))
    apply(state, ListingsChanged(listings))
    effects = apply(state, ProfileChanged(profile))
    assert state.nav.selected_app_id == "a"
    assert FetchChangelog("a", state.fetch_token) in effects


def test_snapshot_after_ready_rerenders_current_page(ready, listings):
    apply(ready, RouteChanged("apps/filter/tools"))
    effects = apply(ready, ListingsChanged(listings[:1]))
    assert ready.nav.page == PAGE_APPS
    assert ready.nav.filter == "tools"
    assert effects == [Render(scroll_to_top=False)]


def test_subscription_failure_drops_back_to_loading(ready, listings):
    effects = apply(ready, SubscriptionFailed("listings", "disk I/O error"))
    assert not ready.is_data_ready
    assert not ready.listings_loaded
    assert ready.profile_loaded
    assert effects == [Render(scroll_to_top=False)]

    apply(ready, ListingsChanged(listings))
    assert ready.is_data_ready


def test_filters_changed_keeps_scroll(ready):
    effects = apply(ready, FiltersChanged("Games", "Most Downloaded", "fun"))
    assert (ready.nav.filter, ready.nav.sort, ready.nav.search) == ("games", "Most Downloaded", "fun")
    assert effects == [Render(scroll_to_top=False)]


def test_changelog_result_applies_when_current(ready):
    effects = apply(ready, RouteChanged("app/a"))
    fetch = effects[-1]
    assert ready.detail_loading

    apply(ready, ChangelogLoaded("a", fetch.token, [ENTRY]))
    assert ready.changelog == [ENTRY]
    assert ready.changelog_for == "a"
    assert not ready.detail_loading


def test_stale_changelog_result_is_discarded(ready):
    first = apply(ready, RouteChanged("app/a"))[-1]
    second = apply(ready, RouteChanged("app/b"))[-1]

    assert apply(ready, ChangelogLoaded("a", first.token, [ENTRY])) == []
    assert ready.changelog == []
    assert ready.detail_loading

    apply(ready, ChangelogLoaded("b", second.token, []))
    assert ready.changelog_for == "b"


def test_changelog_for_page_left_behind_is_discarded(ready):
    fetch = apply(ready, RouteChanged("app/a"))[-1]
    apply(ready, RouteChanged("about"))
    assert apply(ready, ChangelogLoaded("a", fetch.token, [ENTRY])) == []


def test_unknown_detail_id_falls_back_to_catalog(ready):
    effects = show_app_detail(ready, "missing")
    assert ready.nav.page == PAGE_APPS
    assert ready.nav.selected_app_id is None
    assert not any(isinstance(e, FetchChangelog) for e in effects)


def test_background_refresh_reuses_loaded_changelog(ready, listings):
    fetch = apply(ready, RouteChanged("app/c"))[-1]
    apply(ready, ChangelogLoaded("c", fetch.token, [ENTRY]))
    ready.nav.screenshot_index = 2

    effects = apply(ready, ListingsChanged(listings))
    assert effects == [Render(scroll_to_top=False)]
    assert ready.changelog == [ENTRY]
    assert ready.nav.screenshot_index == 2


def test_detail_listing_removed_by_snapshot_goes_to_catalog(ready, listings):
    apply(ready, RouteChanged("app/c"))
    apply(ready, ListingsChanged([app for app in listings if app.id != "c"]))
    assert ready.nav.page == PAGE_APPS


def test_changing_page_clears_share_and_download_links(ready):
    apply(ready, RouteChanged("app/a"))
    ready.share_url = "http://x/?route=app/a"
    ready.download_url = "http://x/a.apk"
    apply(ready, RouteChanged("home"))
    assert ready.nav.page == PAGE_HOME
    assert ready.share_url is None and ready.download_url is None


def test_unknown_event_is_rejected(ready):
    with pytest.raises(TypeError):
        apply(ready, object())


def test_notices_newest_first_and_expire():
    state = AppState()
    post_notice(state, "old", now=100.0)
    post_notice(state, "new", "success", now=103.0)
    assert [n.message for n in state.notices] == ["new", "old"]

    assert not prune_notices(state, now=104.0, lifetime=5)
    assert prune_notices(state, now=106.0, lifetime=5)
    assert [n.message for n in state.notices] == ["new"]

    dismiss_notice(state, 5)
    dismiss_notice(state, 0)
    assert state.notices == []


def test_detail_page_constant_used_for_detail_route(ready):
    apply(ready, RouteChanged("#app/b"))
    assert ready.nav.page == PAGE_DETAIL


def test_same_route_with_or_without_hash_does_not_redispatch(ready):
    apply(ready, RouteChanged("#apps/filter/tools"))
    assert ready.nav.route == "apps/filter/tools"

    # Query values with or without the hash compare equal to the stored route
    assert normalize_route("#apps/filter/tools") == ready.nav.route
    apply(ready, RouteChanged(""))
    assert ready.nav.route == "home"
