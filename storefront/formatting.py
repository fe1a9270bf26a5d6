"""
Display helpers — pure functions that turn raw numbers, timestamps and ids
into the strings the pages show. Nothing here touches state or the store.
"""

import math
from datetime import date, datetime
from typing import Optional

from dateutil.parser import isoparse

CATEGORY_DETAILS = {
    "productivity": ("Productivity", "calendar-check"),
    "games": ("Fun", "gamepad-2"),
    "tools": ("Tools", "wrench"),
    "experiments": ("Experiments", "flask-conical"),
    "misc": ("Misc", "layout-grid"),
}

# Icon names used in the data → inline glyphs
ICON_GLYPHS = {
    "package": "📦",
    "calendar-check": "📅",
    "gamepad-2": "🎮",
    "wrench": "🔧",
    "flask-conical": "🧪",
    "layout-grid": "▦",
    "download": "⬇",
    "download-cloud": "⬇",
    "star": "★",
    "rocket": "🚀",
    "github": "🐙",
    "linkedin": "💼",
    "twitter": "🐦",
    "mail": "✉",
    "link": "🔗",
    "share-2": "🔗",
    "play": "▶",
    "database": "🗄",
    "user-x": "👤",
    "alert-triangle": "⚠",
    "chevron-left": "‹",
    "chevron-right": "›",
    "map-pin": "📍",
    "clock": "🕒",
}


def human_readable_downloads(num: Optional[int]) -> str:
    """1200 -> '1.2K', 2500000 -> '2.5M', 999 -> '999'."""
    num = num or 0
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1000:
        return f"{num / 1000:.1f}K"
    return str(num)


def format_date(value) -> str:
    """
    Format a release or changelog timestamp as 'Jan 5, 2025'.
    Accepts datetime/date objects or ISO-8601 strings; anything else is 'N/A'.
    """
    if isinstance(value, str):
        try:
            value = isoparse(value)
        except ValueError:
            return "N/A"
    if isinstance(value, (datetime, date)):
        return f"{value.strftime('%b')} {value.day}, {value.year}"
    return "N/A"


def category_details(category_id: Optional[str]) -> tuple[str, str]:
    """Return (display name, icon name) for a raw category id."""
    if category_id in CATEGORY_DETAILS:
        return CATEGORY_DETAILS[category_id]
    return (category_id or "N/A", "layout-grid")


def link_details(url: str) -> tuple[str, str, str]:
    """Infer (url, icon, label) for a social link on the about page."""
    if "github.com" in url:
        return url, "github", "GitHub"
    if "linkedin.com" in url:
        return url, "linkedin", "LinkedIn"
    if "twitter.com" in url:
        return url, "twitter", "Twitter"
    if "mailto:" in url:
        return url, "mail", "Email"
    return url, "link", url


def star_breakdown(rating: Optional[float]) -> tuple[int, int, int]:
    """
    Split an average rating into (full, half, empty) stars out of five.
    4.5 -> (4, 1, 0), 3.2 -> (3, 0, 2).
    """
    rating = max(0.0, min(5.0, rating or 0.0))
    full = math.floor(rating)
    half = 1 if rating % 1 >= 0.5 else 0
    empty = 5 - full - half
    return full, half, empty


def icon_glyph(name: Optional[str]) -> str:
    if not name:
        return ICON_GLYPHS["package"]
    return ICON_GLYPHS.get(name, ICON_GLYPHS["package"])
