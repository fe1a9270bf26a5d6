"""
Interaction handlers — what happens when a visitor clicks something.

Pages never embed code in their markup. They describe buttons as
(action name, args) pairs; the render driver looks the name up in ACTIONS
and calls the handler with the current state. Every handler returns the
effects (render, fetch) that state.apply would.
"""

import sqlite3
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Optional
from urllib.parse import quote

from storefront.catalog import find_listing
from storefront.config import STORE_DB_PATH, SITE_URL
from storefront.database import (
    StoreError, increment_rating_and_recompute, increment_download_count,
)
from storefront.ratings import RatingMemory, new_device_id
from storefront.router import route_for_app
from storefront.state import (
    AppState, Render, RouteChanged, FiltersChanged,
    apply, show_app_detail, post_notice, dismiss_notice,
)


@dataclass
class Services:
    """What the handlers need from the outside world."""
    db_path: str = STORE_DB_PATH
    memory: RatingMemory = field(default_factory=lambda: RatingMemory(new_device_id()))
    # Runs a job without waiting for it (e.g. executor.submit). None = run inline.
    run_in_background: Optional[Callable] = None
    site_url: str = SITE_URL


# ============================================================
# NAVIGATION
# ============================================================

def navigate(state: AppState, services: Services, fragment: str) -> list:
    """Programmatic route change, routed through the router like any other."""
    return apply(state, RouteChanged(fragment))


def open_app(state: AppState, services: Services, listing_id: str) -> list:
    return navigate(state, services, route_for_app(listing_id))


def change_filters(state: AppState, services: Services, filter: str, sort: str, search: str) -> list:
    return apply(state, FiltersChanged(filter, sort, search))


def step_screenshot(state: AppState, services: Services, delta: int) -> list:
    """Move the screenshot carousel forward (+1) or back (-1), wrapping around."""
    app = find_listing(state.listings, state.nav.selected_app_id)
    if app is None or not app.screenshots:
        return []
    state.nav.screenshot_index = (state.nav.screenshot_index + delta) % len(app.screenshots)
    return [Render(scroll_to_top=False)]


# ============================================================
# RATINGS & DOWNLOADS
# ============================================================

def submit_rating(state: AppState, services: Services, listing_id: str, stars: int) -> list:
    """
    Rate an app 1-5 stars, once per device.

    Already rated here → rejected with a notice, nothing is written.
    Store failure → error notice, and the app is NOT remembered as rated,
    so the visitor can try again.
    """
    if services.memory.has_rated(listing_id):
        post_notice(state, "You have already rated this app.", "error")
        return [Render(scroll_to_top=False)]

    try:
        updated = increment_rating_and_recompute(listing_id, stars, services.db_path)
    except (StoreError, sqlite3.Error, ValueError) as e:
        print(f"  Error: rating transaction failed for {listing_id}: {e}")
        post_notice(state, "Could not submit rating. Please try again.", "error")
        return [Render(scroll_to_top=False)]

    services.memory.remember(listing_id)
    state.listings = [updated if app.id == listing_id else app for app in state.listings]
    post_notice(state, f"Thank you for rating {stars} stars!", "success")
    return show_app_detail(state, listing_id, scroll=False)


def _count_download(listing_id: str, db_path: str) -> None:
    try:
        total = increment_download_count(listing_id, db_path)
    except Exception as e:
        # Runs off the page thread; every failure ends here
        print(f"  Error: failed to increment download count for {listing_id}: {e}")
        return
    print(f"Download count for {listing_id} is now {total}")


def handle_download_click(state: AppState, services: Services, listing_id: str) -> list:
    """
    The visitor asked for the package. The notice goes up straight away and
    the file link is shown; the counter update runs in the background and a
    failure there is only printed, never shown.
    """
    post_notice(state, "Download started! Check your notifications or downloads folder to install.", "info")
    app = find_listing(state.listings, listing_id)
    state.download_url = app.apk_url if app else None

    job = partial(_count_download, listing_id, services.db_path)
    if services.run_in_background is not None:
        services.run_in_background(job)
    else:
        job()
    return [Render(scroll_to_top=False)]


def share_app(state: AppState, services: Services, listing_id: str) -> list:
    """Build a shareable link straight to the app's detail page."""
    app = find_listing(state.listings, listing_id)
    if app is None:
        return []
    state.share_url = f"{services.site_url.rstrip('/')}/?route={quote(route_for_app(listing_id))}"
    post_notice(state, f"Share link for {app.name} is ready. Copy it below.", "info")
    return [Render(scroll_to_top=False)]


def close_notice(state: AppState, services: Services, index: int) -> list:
    dismiss_notice(state, index)
    return [Render(scroll_to_top=False)]


# ============================================================
# DISPATCH TABLE
# ============================================================

ACTIONS = {
    "navigate": navigate,
    "open_app": open_app,
    "filter": change_filters,
    "screenshot": step_screenshot,
    "rate": submit_rating,
    "download": handle_download_click,
    "share": share_app,
    "dismiss_notice": close_notice,
}


def dispatch_action(state: AppState, services: Services, name: str, *args) -> list:
    """Look up a UI action by name and run it."""
    handler = ACTIONS.get(name)
    if handler is None:
        raise KeyError(f"Unknown action: {name}")
    return handler(state, services, *args)
