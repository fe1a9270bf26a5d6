"""
Router — turns a route fragment into a page.

Routes look like the hash part of a URL:
    home
    apps
    apps/filter/<categoryId>
    app/<id>
    about
    updates
Anything else (or nothing) goes to home.

The router never renders. It decodes the fragment and calls the matching
page entry point in state.py, which updates the navigation state and asks
for a render.
"""

from urllib.parse import quote, unquote

from storefront.models import PAGE_HOME, PAGE_APPS, PAGE_ABOUT, PAGE_UPDATES, PAGE_DETAIL, FILTER_ALL
from storefront.state import AppState, Render, show_page, show_app_detail

KNOWN_SECTIONS = {"home", "apps", "app", "about", "updates"}


def normalize_route(fragment: str) -> str:
    """
    The canonical form of a route: no leading '#', no surrounding space,
    and 'home' when empty. Two fragments that route the same compare equal.
    """
    return (fragment or "").lstrip("#").strip() or "home"


def parse_route(fragment: str) -> tuple[str, list[str]]:
    """
    Split a fragment into (section, params).

    >>> parse_route("#apps/filter/tools")
    ('apps', ['filter', 'tools'])
    >>> parse_route("")
    ('home', [])
    """
    fragment = normalize_route(fragment)
    section, *params = fragment.split("/")
    params = [unquote(p) for p in params]
    if section not in KNOWN_SECTIONS:
        return "home", []
    return section, params


def handle_routing(state: AppState, fragment: str) -> list:
    """Dispatch a fragment to its page entry point and return the effects."""
    section, params = parse_route(fragment)

    if not state.is_data_ready:
        # Remember where the visitor wants to go; the readiness gate
        # re-dispatches this route once both subscriptions have delivered.
        state.nav.page = _page_for(section)
        return [Render(scroll_to_top=False)]

    if section == "apps":
        category = params[1] if len(params) > 1 and params[0] == "filter" and params[1] else FILTER_ALL
        return show_page(state, PAGE_APPS, filter=category)
    if section == "app":
        if params and params[0]:
            return show_app_detail(state, params[0])
        return show_page(state, PAGE_APPS)
    if section == "about":
        return show_page(state, PAGE_ABOUT)
    if section == "updates":
        return show_page(state, PAGE_UPDATES)
    return show_page(state, PAGE_HOME)


def _page_for(section: str) -> str:
    return {
        "apps": PAGE_APPS,
        "app": PAGE_DETAIL,
        "about": PAGE_ABOUT,
        "updates": PAGE_UPDATES,
    }.get(section, PAGE_HOME)


def route_for_app(listing_id: str) -> str:
    return f"app/{quote(listing_id, safe='')}"


def route_for_category(category_id: str) -> str:
    if not category_id or category_id == FILTER_ALL:
        return "apps"
    return f"apps/filter/{quote(category_id, safe='')}"
