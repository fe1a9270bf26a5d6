"""
Data models — the structure of our data.
Every row read from the store, and every piece of navigation state, gets
converted into these shapes before the rest of the site touches it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Pages the site can show
PAGE_HOME = "home"
PAGE_APPS = "apps"
PAGE_DETAIL = "app-detail"
PAGE_ABOUT = "about"
PAGE_UPDATES = "updates"
PAGE_NOT_FOUND = "not-found"
PAGE_LOADING = "loading"

# Catalog sort keys (also the labels shown in the sort dropdown)
SORT_NEWEST = "Newest"
SORT_MOST_DOWNLOADED = "Most Downloaded"
SORT_OPTIONS = [SORT_NEWEST, SORT_MOST_DOWNLOADED]

FILTER_ALL = "all"

# Raw category ids the site owner may assign to a listing
CATEGORY_IDS = ["productivity", "games", "tools", "experiments", "misc", "other"]


@dataclass
class Listing:
    """One published application."""
    id: str
    name: str
    tagline: str = ""
    description: str = ""
    version: str = ""
    category_id: str = "N/A"
    category_name: str = "N/A"      # derived from category_id, never stored
    icon: str = ""
    screenshots: list[str] = field(default_factory=list)
    apk_url: Optional[str] = None
    play_store_url: Optional[str] = None
    release_date: Optional[datetime] = None
    downloads: int = 0
    rating: float = 0.0             # rating_sum / rating_count when rating_count > 0
    rating_count: int = 0
    rating_sum: int = 0


@dataclass
class ChangelogEntry:
    """A single 'What's new' entry for one listing."""
    version: str
    date: Optional[datetime]
    notes: str


@dataclass
class DeveloperProfile:
    """The site owner. There is only ever one of these."""
    name: str
    city: str = ""
    bio: str = ""
    skills: list[str] = field(default_factory=list)
    profile_image_url: str = ""
    links: list[str] = field(default_factory=list)
    featured_app_id: Optional[str] = None


@dataclass
class NavigationState:
    """Where the visitor currently is and how the catalog is narrowed."""
    page: str = PAGE_HOME
    route: str = "home"
    filter: str = FILTER_ALL        # "all" or a category id
    sort: str = SORT_NEWEST
    search: str = ""
    selected_app_id: Optional[str] = None   # only meaningful on the detail page
    screenshot_index: int = 0


@dataclass
class Notice:
    """A transient on-screen message."""
    message: str
    kind: str                       # "info", "success" or "error"
    created_at: float
