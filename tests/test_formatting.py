from datetime import date, datetime, timezone

from storefront.formatting import (
    category_details, format_date, human_readable_downloads, icon_glyph,
    link_details, star_breakdown, ICON_GLYPHS,
)


def test_human_readable_downloads():
    assert human_readable_downloads(999) == "999"
    assert human_readable_downloads(1200) == "1.2K"
    assert human_readable_downloads(2_500_000) == "2.5M"
    assert human_readable_downloads(None) == "0"


def test_format_date_accepts_datetimes_dates_and_iso_strings():
    assert format_date(datetime(2025, 1, 5, 10, 30, tzinfo=timezone.utc)) == "Jan 5, 2025"
    assert format_date(date(2024, 12, 25)) == "Dec 25, 2024"
    assert format_date("2024-06-01T00:00:00+00:00") == "Jun 1, 2024"


def test_format_date_falls_back_to_na():
    assert format_date(None) == "N/A"
    assert format_date("not a date") == "N/A"
    assert format_date(12345) == "N/A"


def test_category_details():
    assert category_details("games") == ("Fun", "gamepad-2")
    assert category_details("misc") == ("Misc", "layout-grid")
    assert category_details("other") == ("other", "layout-grid")
    assert category_details(None) == ("N/A", "layout-grid")


def test_link_details():
    assert link_details("https://github.com/me")[1:] == ("github", "GitHub")
    assert link_details("https://www.linkedin.com/in/me")[2] == "LinkedIn"
    assert link_details("mailto:me@example.com")[2] == "Email"
    assert link_details("https://me.dev") == ("https://me.dev", "link", "https://me.dev")


def test_star_breakdown():
    assert star_breakdown(4.5) == (4, 1, 0)
    assert star_breakdown(3.2) == (3, 0, 2)
    assert star_breakdown(0) == (0, 0, 5)
    assert star_breakdown(5) == (5, 0, 0)
    assert sum(star_breakdown(2.7)) == 5


def test_icon_glyph_falls_back_to_package():
    assert icon_glyph("wrench") == ICON_GLYPHS["wrench"]
    assert icon_glyph("no-such-icon") == ICON_GLYPHS["package"]
    assert icon_glyph("") == ICON_GLYPHS["package"]
