"""
Catalog logic — filtering, searching and sorting the listing list.

Pure functions over lists of Listing. No store access, no UI. The catalog
page runs them in a fixed order:
    1. category filter
    2. search
    3. sort
"""

from datetime import datetime, timezone
from typing import Optional

import pandas as pd

from storefront.models import (
    Listing, DeveloperProfile, FILTER_ALL, SORT_MOST_DOWNLOADED, SORT_NEWEST,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def filter_by_category(listings: list[Listing], category_id: Optional[str]) -> list[Listing]:
    """Keep listings in one category. 'all' (or empty) keeps everything."""
    if not category_id or category_id == FILTER_ALL:
        return list(listings)
    return [app for app in listings if app.category_id == category_id]


def search_listings(listings: list[Listing], term: Optional[str]) -> list[Listing]:
    """Case-insensitive substring match on name, tagline or description."""
    if not term:
        return list(listings)
    needle = term.lower()
    return [
        app for app in listings
        if needle in app.name.lower()
        or needle in app.tagline.lower()
        or needle in app.description.lower()
    ]


def _release_key(app: Listing) -> datetime:
    # Naive timestamps are treated as UTC so mixed data still compares
    if app.release_date is None:
        return _EPOCH
    if app.release_date.tzinfo is None:
        return app.release_date.replace(tzinfo=timezone.utc)
    return app.release_date


def sort_listings(listings: list[Listing], sort: str) -> list[Listing]:
    """
    'Most Downloaded' → downloads, highest first.
    'Newest'          → release date, latest first (undated apps last).
    Python's sort is stable, so ties keep their incoming order.
    """
    if sort == SORT_MOST_DOWNLOADED:
        return sorted(listings, key=lambda app: app.downloads, reverse=True)
    if sort == SORT_NEWEST:
        return sorted(listings, key=_release_key, reverse=True)
    return list(listings)


def build_catalog(listings: list[Listing], category_id: str = FILTER_ALL,
                  sort: str = SORT_NEWEST, search: str = "") -> list[Listing]:
    """The full catalog pipeline: filter, then search, then sort."""
    result = filter_by_category(listings, category_id)
    result = search_listings(result, search)
    return sort_listings(result, sort)


def featured_listing(listings: list[Listing], profile: Optional[DeveloperProfile]) -> Optional[Listing]:
    """
    The app highlighted on the home page: the profile's featured app if it
    still exists, otherwise the newest listing.
    """
    if profile and profile.featured_app_id:
        for app in listings:
            if app.id == profile.featured_app_id:
                return app
    return listings[0] if listings else None


def find_listing(listings: list[Listing], listing_id: Optional[str]) -> Optional[Listing]:
    for app in listings:
        if app.id == listing_id:
            return app
    return None


def category_options(listings: list[Listing]) -> list[tuple[str, str]]:
    """Unique (category id, display name) pairs, in the order listings mention them."""
    seen = {}
    for app in listings:
        if app.category_id and app.category_name and app.category_id != "N/A":
            seen.setdefault(app.category_id, app.category_name)
    return list(seen.items())


def latest_updates(listings: list[Listing], limit: int = 4) -> list[Listing]:
    """The most recently released apps, for the home page ticker."""
    return sort_listings(listings, SORT_NEWEST)[:limit]


def downloads_frame(listings: list[Listing]) -> pd.DataFrame:
    """One row per app with its download count, biggest first. Feeds the about-page chart."""
    df = pd.DataFrame(
        [{"app": app.name, "downloads": app.downloads, "category": app.category_name} for app in listings],
        columns=["app", "downloads", "category"],
    )
    return df.sort_values("downloads", ascending=False, kind="stable").reset_index(drop=True)
