"""
Page renderers — AppState in, PageView out.

A PageView is a list of blocks the render driver knows how to draw:
    Html        a fragment of markup (all data is escaped)
    Action      a button bound to an entry in actions.ACTIONS
    LinkButton  a button that opens a URL
    Grid        blocks laid out in equal columns (app cards)
    Columns     blocks laid out in weighted columns (detail page)
    FilterBar   the catalog's category / sort / search controls
    RatingInput the five-star rating control
    Chart       a plotly figure
    CopyBox     text the visitor can copy (share links)

Renderers don't touch Streamlit, so they can be tested with plain asserts.
"""

from dataclasses import dataclass, field
from html import escape
from typing import Optional

import plotly.graph_objects as go

from storefront.catalog import (
    build_catalog, category_options, downloads_frame, featured_listing,
    find_listing, latest_updates,
)
from storefront.config import (
    SITE_NAME, PLACEHOLDER_SCREENSHOT, PLACEHOLDER_MOCKUP, PLACEHOLDER_AVATAR,
)
from storefront.formatting import (
    category_details, format_date, human_readable_downloads, icon_glyph,
    link_details, star_breakdown,
)
from storefront.models import (
    Listing, PAGE_HOME, PAGE_APPS, PAGE_DETAIL, PAGE_ABOUT, PAGE_UPDATES,
    PAGE_NOT_FOUND, PAGE_LOADING,
)
from storefront.router import route_for_category
from storefront.state import AppState

QUICK_CATEGORIES = ["productivity", "games", "tools", "experiments"]

NAV_ITEMS = [
    (PAGE_HOME, "Home", "home"),
    (PAGE_APPS, "App Store", "apps"),
    (PAGE_UPDATES, "Updates", "updates"),
    (PAGE_ABOUT, "About", "about"),
]


# ============================================================
# VIEW MODEL
# ============================================================

@dataclass
class Html:
    markup: str


@dataclass
class Action:
    label: str
    name: str
    args: tuple = ()
    primary: bool = False


@dataclass
class LinkButton:
    label: str
    url: str


@dataclass
class Grid:
    cells: list
    columns: int = 3


@dataclass
class Columns:
    columns: list
    widths: list


@dataclass
class FilterBar:
    categories: list
    filter: str
    sort: str
    search: str


@dataclass
class RatingInput:
    listing_id: str
    has_rated: bool


@dataclass
class Chart:
    figure: object


@dataclass
class CopyBox:
    text: str


@dataclass
class PageView:
    page: str
    blocks: list = field(default_factory=list)

    def markup(self) -> str:
        """All Html in the view, flattened. Handy for tests and debugging."""
        return "\n".join(_collect_markup(self.blocks))


def _collect_markup(blocks) -> list[str]:
    out = []
    for block in blocks:
        if isinstance(block, Html):
            out.append(block.markup)
        elif isinstance(block, Grid):
            for cell in block.cells:
                out.extend(_collect_markup(cell))
        elif isinstance(block, Columns):
            for column in block.columns:
                out.extend(_collect_markup(column))
    return out


# ============================================================
# SMALL PIECES
# ============================================================

def star_rating(rating: float) -> str:
    full, half, empty = star_breakdown(rating)
    stars = ('<span class="star full">★</span>' * full
             + ('<span class="star half">⯪</span>' if half else "")
             + '<span class="star empty">☆</span>' * empty)
    return f'<div class="stars" title="{rating:.1f} out of 5">{stars}</div>'


def app_card(app: Listing) -> list:
    return [
        Html(f"""
        <div class="card app-card">
            <div class="card-head">
                <div class="app-icon">{icon_glyph(app.icon)}</div>
                <div>
                    <h3>{escape(app.name)}</h3>
                    <p class="mono muted">{escape(app.version)} | {escape(app.category_name or 'N/A')}</p>
                </div>
            </div>
            <p class="muted">{escape(app.tagline)}</p>
            {star_rating(app.rating)}
        </div>"""),
        Action("Explore", "open_app", (app.id,)),
    ]


def _empty_state(icon: str, title: str, text: str) -> Html:
    return Html(f"""
    <div class="empty-state">
        <div class="empty-icon">{icon_glyph(icon)}</div>
        <h1>{escape(title)}</h1>
        <p class="muted">{escape(text)}</p>
    </div>""")


def active_nav(page: str) -> str:
    """The nav entry to highlight. The detail page belongs to the store."""
    return PAGE_APPS if page == PAGE_DETAIL else page


# ============================================================
# PAGES
# ============================================================

def render_loading_page() -> PageView:
    return PageView(PAGE_LOADING, [Html(f"""
    <div class="loading">
        <div class="loader"></div>
        <h2>Initializing App Store...</h2>
        <p class="muted">Connecting to the store and fetching {escape(SITE_NAME)} creations.</p>
    </div>""")])


def render_home_page(state: AppState) -> PageView:
    if not state.listings and state.profile is None:
        return PageView(PAGE_HOME, [_empty_state(
            "database", "No Data Found",
            "The store appears to be empty. Add listings and a developer profile with the admin tool."
        )])

    profile = state.profile
    featured = featured_listing(state.listings, profile)
    blocks = [
        Html(f"""
        <section class="hero">
            <h1>Welcome to <span class="accent">{escape(SITE_NAME)}</span></h1>
            <p>Discover fun, productivity, and experimental apps built by
               {escape(profile.name) if profile else 'a developer'}</p>
        </section>"""),
        Action(f"{icon_glyph('rocket')} Browse Apps", "navigate", ("apps",), primary=True),
    ]

    if featured:
        screenshot = featured.screenshots[0] if featured.screenshots else PLACEHOLDER_MOCKUP
        blurb = featured.description[:150] + ("..." if len(featured.description) > 150 else "")
        blocks += [
            Html('<h2 class="section-title">Featured App</h2>'),
            Columns([
                [
                    Html(f"""
                    <div class="featured">
                        <h3>{escape(featured.name)}</h3>
                        <p class="accent">{escape(featured.tagline)}</p>
                        <p class="muted">{escape(blurb)}</p>
                        <span class="badge mono">{icon_glyph('download-cloud')} {human_readable_downloads(featured.downloads)}</span>
                    </div>"""),
                    Action("View Details", "open_app", (featured.id,), primary=True),
                ],
                [Html(f'<img class="mockup" src="{escape(screenshot)}" alt="App Mockup">')],
            ], [1, 1]),
        ]

    quick = []
    for category_id in QUICK_CATEGORIES:
        name, icon = category_details(category_id)
        quick.append([
            Html(f'<div class="card category-card"><div class="category-icon">{icon_glyph(icon)}</div>'
                 f'<h3>{escape(name)}</h3></div>'),
            Action(f"Browse {name}", "navigate", (route_for_category(category_id),)),
        ])
    blocks += [Html('<h2 class="section-title">Quick Categories</h2>'), Grid(quick, columns=4)]

    updates = latest_updates(state.listings)
    if updates:
        rows = "".join(f"""
            <li class="update-row">
                <span class="mono accent">{escape(app.version)}</span>
                <strong>{escape(app.name)}</strong>
                <span class="muted">{format_date(app.release_date)}</span>
            </li>""" for app in updates)
        blocks.append(Html(f'<h2 class="section-title">Latest Updates</h2><ul class="updates">{rows}</ul>'))

    return PageView(PAGE_HOME, blocks)


def render_apps_page(state: AppState) -> PageView:
    nav = state.nav
    apps = build_catalog(state.listings, nav.filter, nav.sort, nav.search)

    blocks = [
        Html('<h1 class="page-title">App Store</h1>'),
        FilterBar(category_options(state.listings), nav.filter, nav.sort, nav.search),
    ]
    if apps:
        blocks.append(Grid([app_card(app) for app in apps], columns=3))
    else:
        blocks.append(Html('<p class="empty muted">No apps match your filter or search.</p>'))
    return PageView(PAGE_APPS, blocks)


def render_app_detail_page(state: AppState, has_rated: bool = False) -> PageView:
    app = find_listing(state.listings, state.nav.selected_app_id)
    if app is None:
        return render_not_found_page()

    if state.detail_loading:
        return PageView(PAGE_DETAIL, [Html(
            '<div class="loading"><div class="loader small"></div><p>Loading app details...</p></div>'
        )])

    index = state.nav.screenshot_index
    screenshot = app.screenshots[index % len(app.screenshots)] if app.screenshots else PLACEHOLDER_SCREENSHOT

    main = [
        Html(f"""
        <div class="detail-head">
            <div class="app-icon large">{icon_glyph(app.icon)}</div>
            <div>
                <h1>{escape(app.name)}</h1>
                <p class="accent">{escape(app.tagline)}</p>
                <p class="mono muted">v{escape(app.version)} · {escape(app.category_name)}</p>
            </div>
        </div>
        <div class="screenshot-frame">
            <img id="app-screenshot" src="{escape(screenshot)}" alt="App Screenshot">
        </div>"""),
    ]
    if len(app.screenshots) > 1:
        main.append(Columns([
            [Action(f"{icon_glyph('chevron-left')} Previous", "screenshot", (-1,))],
            [Html(f'<p class="muted center">{index % len(app.screenshots) + 1} / {len(app.screenshots)}</p>')],
            [Action(f"Next {icon_glyph('chevron-right')}", "screenshot", (1,))],
        ], [1, 1, 1]))
    if app.screenshots:
        main.append(LinkButton("View full size", screenshot))

    paragraphs = "".join(f"<p>{escape(p)}</p>" for p in app.description.split("\n") if p.strip())
    main.append(Html(f'<h2 class="section-title">About this app</h2><div class="description">{paragraphs}</div>'))

    if state.changelog:
        entries = "".join(f"""
            <div class="changelog-entry">
                <div class="changelog-head">
                    <span class="mono accent">v{escape(entry.version)}</span>
                    <span class="muted">{format_date(entry.date)}</span>
                </div>
                <p>{escape(entry.notes)}</p>
            </div>""" for entry in state.changelog)
    else:
        entries = '<p class="muted">No changelog entries found yet.</p>'
    main.append(Html(f'<h2 class="section-title">What\'s New</h2>{entries}'))

    side = [Html('<h3>Get the app</h3>')]
    if app.apk_url:
        side.append(Action(f"{icon_glyph('download')} Download APK", "download", (app.id,), primary=True))
        if state.download_url:
            side.append(LinkButton("Save the APK file", state.download_url))
    if app.play_store_url:
        side.append(LinkButton(f"{icon_glyph('play')} Get on Play Store", app.play_store_url))
    side.append(Action(f"{icon_glyph('share-2')} Share App", "share", (app.id,)))
    if state.share_url:
        side.append(CopyBox(state.share_url))

    side.append(Html(f"""
    <div class="card stats">
        <div class="stat"><span class="muted">Downloads</span><strong>{human_readable_downloads(app.downloads)}</strong></div>
        <div class="stat"><span class="muted">Rating</span><strong>{app.rating:.1f}</strong>{star_rating(app.rating)}</div>
        <div class="stat"><span class="muted">Ratings</span><strong>{app.rating_count}</strong></div>
        <div class="stat"><span class="muted">Released</span><strong>{format_date(app.release_date)}</strong></div>
        <div class="stat"><span class="muted">Version</span><strong class="mono">{escape(app.version)}</strong></div>
    </div>"""))
    side.append(RatingInput(app.id, has_rated))

    return PageView(PAGE_DETAIL, [
        Action(f"{icon_glyph('chevron-left')} Back to App Store", "navigate", ("apps",)),
        Columns([main, side], [2, 1]),
    ])


def downloads_chart(listings: list[Listing]) -> Optional[go.Figure]:
    """Bar chart of downloads per app, biggest first."""
    df = downloads_frame(listings)
    if df.empty:
        return None
    fig = go.Figure(go.Bar(
        x=df["app"], y=df["downloads"], marker_color="#4AC0FF",
        text=[human_readable_downloads(int(v)) for v in df["downloads"]], textposition="outside",
        textfont=dict(color="#9c9588", size=11),
    ))
    fig.update_layout(
        title=f"Downloads by app ({human_readable_downloads(int(df['downloads'].sum()))} total)",
        height=360, yaxis_title="Downloads", xaxis_title="",
        font=dict(family="Inter, sans-serif", color="#9c9588"),
        paper_bgcolor="rgba(0,0,0,0)", plot_bgcolor="rgba(0,0,0,0)",
        margin=dict(l=40, r=20, t=45, b=35),
    )
    return fig


def render_about_page(state: AppState) -> PageView:
    profile = state.profile
    if profile is None:
        return PageView(PAGE_ABOUT, [_empty_state(
            "user-x", "Profile Not Found",
            "The developer profile hasn't been added to the store yet."
        )])

    first_name = profile.name.split(" ")[0] if profile.name else "Dev"
    image = profile.profile_image_url or PLACEHOLDER_AVATAR.format(name=first_name)
    links = "".join(
        f'<a class="social" href="{escape(url)}" target="_blank" rel="noopener noreferrer" '
        f'aria-label="{escape(label)}">{icon_glyph(icon)} {escape(label)}</a>'
        for url, icon, label in (link_details(link or "") for link in profile.links)
    )
    skills = "".join(f'<span class="chip">{escape(skill)}</span>' for skill in profile.skills)

    blocks = [
        Html('<h1 class="page-title">About the Developer</h1>'),
        Columns([
            [Html(f"""
            <div class="card profile-card">
                <img class="avatar" src="{escape(image)}" alt="{escape(profile.name)} Profile Photo">
                <h2>{escape(profile.name)}</h2>
                <p class="muted">{icon_glyph('map-pin')} {escape(profile.city)}</p>
                <div class="links">{links}</div>
            </div>""")],
            [Html(f"""
            <div class="card">
                <h2>Bio</h2>
                <p>{escape(profile.bio)}</p>
                <h2>Skills</h2>
                <div class="chips">{skills}</div>
            </div>""")],
        ], [1, 2]),
    ]

    chart = downloads_chart(state.listings)
    if chart is not None:
        blocks.append(Chart(chart))
    return PageView(PAGE_ABOUT, blocks)


def render_updates_page(state: AppState) -> PageView:
    blocks = [Html('<h1 class="page-title">Release Updates</h1>')]
    if not state.listings:
        blocks.append(Html('<p class="empty muted">No recent updates found.</p>'))
        return PageView(PAGE_UPDATES, blocks)

    for app in latest_updates(state.listings, limit=len(state.listings)):
        blocks += [
            Html(f"""
            <div class="card update-card">
                <div class="app-icon">{icon_glyph(app.icon)}</div>
                <div>
                    <h3>{escape(app.name)} <span class="mono accent">v{escape(app.version)}</span></h3>
                    <p class="muted">{icon_glyph('clock')} Released {format_date(app.release_date)}</p>
                    <p>{escape(app.tagline)}</p>
                </div>
            </div>"""),
            Action("View App", "open_app", (app.id,)),
        ]
    return PageView(PAGE_UPDATES, blocks)


def render_not_found_page() -> PageView:
    return PageView(PAGE_NOT_FOUND, [
        _empty_state("alert-triangle", "404 - Page Not Found",
                     "The page you are looking for doesn't exist."),
        Action("Go to Home", "navigate", ("home",), primary=True),
    ])


def render_page(state: AppState, rated_ids: Optional[set] = None) -> PageView:
    """Pick the renderer for the current page. Nothing data-backed renders before the store is ready."""
    if not state.is_data_ready:
        return render_loading_page()

    page = state.nav.page
    if page == PAGE_HOME:
        return render_home_page(state)
    if page == PAGE_APPS:
        return render_apps_page(state)
    if page == PAGE_DETAIL:
        has_rated = bool(rated_ids) and state.nav.selected_app_id in rated_ids
        return render_app_detail_page(state, has_rated)
    if page == PAGE_ABOUT:
        return render_about_page(state)
    if page == PAGE_UPDATES:
        return render_updates_page(state)
    return render_not_found_page()
