"""
View state — everything the site knows right now, and the only place it changes.

Key concepts:
    - Event:  something that happened (a snapshot arrived, the route changed,
              a changelog finished loading).
    - Effect: something the render driver must do next (render, fetch).
    - apply(state, event) is the single entry point. It mutates the state
      and returns the effects. Nothing here touches Streamlit or the store,
      so every transition can be tested with plain objects.

Readiness gate:
    Pages that need data only render once BOTH the listings and the profile
    subscriptions have delivered at least once. The first time that happens
    the remembered route is dispatched. After that, every new snapshot simply
    re-renders whatever page is open.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from storefront.catalog import find_listing
from storefront.config import NOTICE_SECONDS
from storefront.models import (
    Listing, ChangelogEntry, DeveloperProfile, NavigationState, Notice,
    PAGE_APPS, PAGE_DETAIL,
)


# ============================================================
# EVENTS
# ============================================================

@dataclass
class ListingsChanged:
    listings: list[Listing]


@dataclass
class ProfileChanged:
    profile: Optional[DeveloperProfile]


@dataclass
class SubscriptionFailed:
    source: str             # "listings" or "profile"
    error: str


@dataclass
class RouteChanged:
    fragment: str


@dataclass
class FiltersChanged:
    filter: str
    sort: str
    search: str


@dataclass
class ChangelogLoaded:
    listing_id: str
    token: int
    entries: list[ChangelogEntry]


# ============================================================
# EFFECTS
# ============================================================

@dataclass
class Render:
    scroll_to_top: bool = True


@dataclass
class FetchChangelog:
    listing_id: str
    token: int


# ============================================================
# STATE
# ============================================================

@dataclass
class AppState:
    listings: list[Listing] = field(default_factory=list)
    profile: Optional[DeveloperProfile] = None
    listings_loaded: bool = False
    profile_loaded: bool = False
    is_data_ready: bool = False
    nav: NavigationState = field(default_factory=NavigationState)

    # Detail page: the changelog on screen and which listing it belongs to
    changelog: list[ChangelogEntry] = field(default_factory=list)
    changelog_for: Optional[str] = None
    detail_loading: bool = False
    fetch_token: int = 0

    notices: list[Notice] = field(default_factory=list)
    share_url: Optional[str] = None
    download_url: Optional[str] = None


# ============================================================
# PAGE ENTRY POINTS
# ============================================================

def show_page(state: AppState, page: str, filter: Optional[str] = None,
              sort: Optional[str] = None, scroll: bool = True) -> list:
    """
    Switch to a page, optionally changing the catalog filter/sort.
    Before the data is ready the page is remembered but the loading page
    stays on screen.
    """
    nav = state.nav
    if filter is not None:
        nav.filter = filter.lower()
    if sort is not None:
        nav.sort = sort
    if page != nav.page:
        nav.screenshot_index = 0
        state.share_url = None
        state.download_url = None
    nav.page = page
    return [Render(scroll_to_top=scroll)]


def show_app_detail(state: AppState, listing_id: str, background: bool = False,
                    scroll: Optional[bool] = None) -> list:
    """
    Open the detail page for one listing.

    background=True means "the data under this page changed" (a snapshot
    arrived): if the changelog for this listing is already loaded it is
    reused, and no fetch is issued.
    Otherwise a fresh changelog fetch is requested. Each fetch carries a
    token; only the result for the newest token is kept.
    """
    if scroll is None:
        scroll = not background
    nav = state.nav
    app = find_listing(state.listings, listing_id)
    if app is None:
        # Unknown or removed app, fall back to the catalog
        nav.selected_app_id = None
        return show_page(state, PAGE_APPS)

    if nav.page != PAGE_DETAIL or nav.selected_app_id != listing_id:
        nav.screenshot_index = 0
        state.share_url = None
        state.download_url = None
    nav.page = PAGE_DETAIL
    nav.selected_app_id = listing_id

    if background and state.changelog_for == listing_id:
        return [Render(scroll_to_top=False)]

    state.fetch_token += 1
    state.detail_loading = state.changelog_for != listing_id
    if state.detail_loading:
        state.changelog = []
    return [Render(scroll_to_top=scroll), FetchChangelog(listing_id, state.fetch_token)]


def filter_apps(state: AppState, filter: str, sort: str, search: str) -> list:
    """Apply new catalog controls without jumping back to the top."""
    state.nav.search = search
    return show_page(state, PAGE_APPS, filter=filter, sort=sort, scroll=False)


def rerender_current_page(state: AppState) -> list:
    """A snapshot arrived after the site was ready: redraw what's open."""
    nav = state.nav
    if nav.page == PAGE_DETAIL and nav.selected_app_id:
        return show_app_detail(state, nav.selected_app_id, background=True)
    return show_page(state, nav.page, scroll=False)


# ============================================================
# READINESS GATE
# ============================================================

def _check_ready(state: AppState) -> list:
    if state.listings_loaded and state.profile_loaded and not state.is_data_ready:
        state.is_data_ready = True
        print(f"Store ready: {len(state.listings)} apps, "
              f"profile {'loaded' if state.profile else 'missing'}")
        from storefront.router import handle_routing
        return handle_routing(state, state.nav.route)
    if state.is_data_ready:
        return rerender_current_page(state)
    return [Render(scroll_to_top=False)]


# ============================================================
# SINGLE ENTRY POINT
# ============================================================

def apply(state: AppState, event) -> list:
    """Apply one event to the state and return the effects it causes."""
    if isinstance(event, ListingsChanged):
        state.listings = list(event.listings)
        state.listings_loaded = True
        return _check_ready(state)

    if isinstance(event, ProfileChanged):
        state.profile = event.profile
        state.profile_loaded = True
        if event.profile is None:
            print("Warning: developer profile does not exist. Add one with the admin tool.")
        return _check_ready(state)

    if isinstance(event, SubscriptionFailed):
        print(f"Warning: {event.source} subscription failed, back to loading: {event.error}")
        if event.source == "listings":
            state.listings_loaded = False
        else:
            state.profile_loaded = False
        state.is_data_ready = False
        return [Render(scroll_to_top=False)]

    if isinstance(event, RouteChanged):
        from storefront.router import handle_routing, normalize_route
        state.nav.route = normalize_route(event.fragment)
        return handle_routing(state, state.nav.route)

    if isinstance(event, FiltersChanged):
        return filter_apps(state, event.filter, event.sort, event.search)

    if isinstance(event, ChangelogLoaded):
        nav = state.nav
        if (event.token != state.fetch_token or nav.page != PAGE_DETAIL
                or nav.selected_app_id != event.listing_id):
            print(f"  Discarding stale changelog for {event.listing_id}")
            return []
        state.changelog = list(event.entries)
        state.changelog_for = event.listing_id
        state.detail_loading = False
        return [Render(scroll_to_top=False)]

    raise TypeError(f"Unknown event: {event!r}")


# ============================================================
# NOTICES
# ============================================================

def post_notice(state: AppState, message: str, kind: str = "info", now: Optional[float] = None) -> Notice:
    notice = Notice(message=message, kind=kind, created_at=now if now is not None else time.time())
    state.notices.insert(0, notice)
    return notice


def dismiss_notice(state: AppState, index: int) -> None:
    if 0 <= index < len(state.notices):
        state.notices.pop(index)


def prune_notices(state: AppState, now: Optional[float] = None,
                  lifetime: float = NOTICE_SECONDS) -> bool:
    """Drop notices older than their lifetime. Returns True if any were dropped."""
    now = now if now is not None else time.time()
    kept = [n for n in state.notices if now - n.created_at < lifetime]
    dropped = len(kept) != len(state.notices)
    state.notices = kept
    return dropped
