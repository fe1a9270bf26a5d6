import os
from datetime import datetime, timezone

import pytest

from storefront.database import initialize_database, upsert_listing, save_profile, add_changelog_entry
from storefront.models import Listing, DeveloperProfile

SAMPLE_STORE = os.path.join(os.path.dirname(__file__), "..", "data", "sample_store.json")


def make_listing(id, name=None, downloads=0, released=None, category="tools", **kwargs) -> Listing:
    from storefront.formatting import category_details
    return Listing(
        id=id,
        name=name or id.title(),
        tagline=kwargs.pop("tagline", f"{id} tagline"),
        description=kwargs.pop("description", f"All about {id}."),
        version=kwargs.pop("version", "1.0.0"),
        category_id=category,
        category_name=category_details(category)[0],
        downloads=downloads,
        release_date=released,
        **kwargs,
    )


def utc(year, month, day) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def listings():
    return [
        make_listing("b", "Beta Board", downloads=1200, released=utc(2025, 3, 1), category="productivity"),
        make_listing("a", "Alpha Tool", downloads=500, released=utc(2024, 6, 1), category="tools"),
        make_listing("c", "Fungame", downloads=90, released=utc(2024, 1, 15), category="games",
                     tagline="an untitled app", screenshots=["s1.png", "s2.png", "s3.png"]),
    ]


@pytest.fixture
def profile():
    return DeveloperProfile(
        name="Kavin Kumar", city="Chennai", bio="Builds things.",
        skills=["Python", "Kotlin"], links=["https://github.com/kavin", "mailto:k@example.com"],
        featured_app_id="a",
    )


@pytest.fixture
def db_path(tmp_path):
    """A fresh store with two listings, a profile and some changelog entries."""
    path = str(tmp_path / "store.db")
    initialize_database(path)
    upsert_listing({
        "id": "a", "name": "Alpha Tool", "tagline": "Does alpha things", "description": "Long alpha text",
        "version": "1.0.0", "category": "tools", "icon": "wrench", "screenshots": ["one.png"],
        "apk_url": "https://example.com/a.apk", "release_date": "2024-06-01T00:00:00+00:00",
        "downloads": 500, "rating_count": 2, "rating_sum": 9,
    }, path)
    upsert_listing({
        "id": "b", "name": "Beta Board", "tagline": "Boards", "description": "Beta text",
        "version": "2.0.0", "category": "productivity", "release_date": "2025-03-01T00:00:00+00:00",
        "downloads": 1200,
    }, path)
    save_profile({"name": "Kavin Kumar", "city": "Chennai", "skills": ["Python"], "featured_app_id": "a"}, path)
    add_changelog_entry("a", "0.9.0", "First beta", "2024-05-01", path)
    add_changelog_entry("a", "1.0.0", "Launch", "2024-06-01", path)
    return path
