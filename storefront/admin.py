"""
Admin tool — how the site owner puts apps into the store.

Visitors never write listings; only ratings and download counters change
while the site runs. Everything else goes through here.

Usage:
    python -m storefront.admin init
    python -m storefront.admin seed data/sample_store.json
    python -m storefront.admin changelog <app id> <version> "<notes>" [--date 2025-01-31]
    python -m storefront.admin list
"""

import argparse
import sys

from storefront.config import STORE_DB_PATH
from storefront.database import (
    initialize_database, load_seed_file, add_changelog_entry, get_listing,
    get_listings, get_profile,
)
from storefront.formatting import format_date, human_readable_downloads


def cmd_init(args) -> int:
    initialize_database(args.db)
    return 0


def cmd_seed(args) -> int:
    load_seed_file(args.path, args.db)
    return 0


def cmd_changelog(args) -> int:
    if get_listing(args.app_id, args.db) is None:
        print(f"Error: no listing with id '{args.app_id}'")
        return 1
    add_changelog_entry(args.app_id, args.version, args.notes, args.date, args.db)
    print(f"Added changelog {args.version} to {args.app_id}")
    return 0


def cmd_list(args) -> int:
    profile = get_profile(args.db)
    print(f"Developer: {profile.name if profile else '(no profile)'}")
    print("=" * 60)
    for app in get_listings(args.db):
        print(f"{app.id:<20} {app.name:<24} v{app.version:<8} "
              f"{human_readable_downloads(app.downloads):>6} dl  "
              f"{app.rating:.1f}★ ({app.rating_count})  {format_date(app.release_date)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the storefront's listings and profile")
    parser.add_argument("--db", default=STORE_DB_PATH, help="Path to the store database")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the store tables").set_defaults(func=cmd_init)

    seed = sub.add_parser("seed", help="Load listings and profile from a JSON file")
    seed.add_argument("path")
    seed.set_defaults(func=cmd_seed)

    changelog = sub.add_parser("changelog", help="Add a changelog entry to a listing")
    changelog.add_argument("app_id")
    changelog.add_argument("version")
    changelog.add_argument("notes")
    changelog.add_argument("--date", default=None, help="ISO date (defaults to now)")
    changelog.set_defaults(func=cmd_changelog)

    sub.add_parser("list", help="Show what's in the store").set_defaults(func=cmd_list)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
