"""
Storefront — the developer's personal app store.
Run with: streamlit run storefront/dashboard.py

This is the render driver. Every Streamlit rerun it:
    1. drains the session's event channel (snapshots, finished fetches)
    2. syncs the ?route= query parameter through the router
    3. runs the resulting effects (background fetches, scroll to top)
    4. draws the nav bar, notices and the current PageView
A small fragment re-runs every poll interval to pick up live changes.
"""

import os
import queue
import sys
import uuid
from html import escape
from concurrent.futures import ThreadPoolExecutor

import streamlit as st
import streamlit.components.v1 as components

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from storefront.actions import Services, dispatch_action
from storefront.config import (
    SITE_NAME, FADE_MS, SUBSCRIPTION_POLL_SECONDS, DEVICE_COOKIE, DEVICE_COOKIE_DAYS,
)
from storefront.database import fetch_changelog
from storefront.live import SubscriptionHub
from storefront.models import SORT_OPTIONS, FILTER_ALL
from storefront.ratings import RatingMemory, new_device_id
from storefront.router import normalize_route
from storefront.pages import (
    Html, Action, LinkButton, Grid, Columns, FilterBar, RatingInput, Chart, CopyBox,
    NAV_ITEMS, active_nav, render_page,
)
from storefront.state import (
    AppState, RouteChanged,
    ChangelogLoaded, Render, FetchChangelog, apply, prune_notices,
)

# ============================================================
# PAGE CONFIG
# ============================================================
st.set_page_config(
    page_title=SITE_NAME,
    page_icon="◆",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# ============================================================
# STYLING: applied ONCE at the top of every render
# ============================================================
CUSTOM_CSS = """
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700;800&family=JetBrains+Mono&display=swap');
html, body, [class*="css"] { font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif; }

footer {visibility: hidden;}
#MainMenu {visibility: hidden;}

:root {
    --bg-card: #1E1E2F;
    --border: rgba(74,192,255,0.15);
    --text-primary: #E8EAF6;
    --text-secondary: #9AA0B8;
    --accent-primary: #4AC0FF;
    --accent-secondary: #FF6B6B;
    --accent-cta: #FFD166;
}

.mono { font-family: 'JetBrains Mono', monospace; }
.muted { color: var(--text-secondary); }
.accent { color: var(--accent-primary); }
.center { text-align: center; }

.card {
    background: var(--bg-card); border: 1px solid var(--border); border-radius: 16px;
    padding: 20px 22px; margin-bottom: 10px; box-shadow: 0 4px 20px rgba(0,0,0,0.25);
}
.card-head, .detail-head, .update-card { display: flex; align-items: center; gap: 14px; }
.card h3 { margin: 0; font-weight: 700; }
.app-icon {
    font-size: 1.8rem; padding: 10px 14px; border-radius: 12px;
    background: rgba(74,192,255,0.15);
}
.app-icon.large { font-size: 2.6rem; }

.hero {
    text-align: center; padding: 3rem 1rem; border-radius: 24px; margin-bottom: 1rem;
    background: radial-gradient(circle at top, rgba(74,192,255,0.18), transparent 70%);
}
.hero h1 { font-size: 3rem; font-weight: 800; }
.section-title { margin-top: 2rem; font-weight: 700; }
.page-title { font-weight: 800; color: var(--accent-primary); }
.mockup, .screenshot-frame img { width: 100%; border-radius: 16px; }
.badge { padding: 6px 12px; border-radius: 10px; color: var(--accent-cta); background: rgba(255,209,102,0.08); }
.category-card { text-align: center; }
.category-icon { font-size: 2rem; }

.stars { display: flex; gap: 2px; color: var(--accent-cta); }
.star.empty { opacity: 0.35; }

.updates { list-style: none; padding: 0; }
.update-row { display: flex; gap: 16px; padding: 8px 0; border-bottom: 1px solid var(--border); }

.changelog-entry { border-left: 3px solid var(--accent-primary); padding-left: 12px; margin-bottom: 12px; }
.changelog-head { display: flex; gap: 12px; }

.stats .stat { display: flex; justify-content: space-between; align-items: center; padding: 4px 0; }

.profile-card { text-align: center; }
.avatar { width: 160px; height: 160px; border-radius: 50%; object-fit: cover; }
.links { display: flex; flex-direction: column; gap: 8px; margin-top: 12px; }
.social { color: var(--text-primary) !important; text-decoration: none; }
.chips { display: flex; flex-wrap: wrap; gap: 8px; }
.chip { padding: 4px 12px; border-radius: 999px; background: rgba(74,192,255,0.12); color: var(--accent-primary); }

.empty-state, .loading { text-align: center; padding: 4rem 1rem; }
.empty-icon { font-size: 3.5rem; }
.loader {
    margin: 0 auto 1rem; width: 64px; height: 64px; border-radius: 50%;
    border: 8px solid rgba(255,255,255,0.1); border-top-color: var(--accent-primary);
    animation: spin 1s linear infinite;
}
.loader.small { width: 40px; height: 40px; border-width: 6px; }
@keyframes spin { to { transform: rotate(360deg); } }

.notice { padding: 12px 16px; border-radius: 10px; font-weight: 500; }
.notice-info { background: var(--accent-primary); color: #000; }
.notice-success { background: #22c55e; color: #fff; }
.notice-error { background: var(--accent-secondary); color: #fff; }

.brand { font-size: 1.3rem; font-weight: 800; }
.brand span { color: var(--accent-primary); }

.stButton > button { border-radius: 10px; font-weight: 600; transition: all 0.15s ease; }
.stButton > button:hover { transform: translateY(-1px); }
</style>
"""

st.markdown(CUSTOM_CSS, unsafe_allow_html=True)


# ============================================================
# SESSION
# ============================================================

@st.cache_resource
def _get_executor() -> ThreadPoolExecutor:
    """Shared worker pool for changelog fetches and download counters."""
    return ThreadPoolExecutor(max_workers=4, thread_name_prefix="storefront")


@st.cache_resource
def _get_hub() -> SubscriptionHub:
    """One pair of live subscriptions for the whole server, fanned out to every session."""
    return SubscriptionHub().start()


def _device_id() -> str:
    """
    This browser's id for rating memory, read from the cookie sent with the
    page. A browser without one gets a fresh id that _remember_device stores.
    """
    if "device_id" not in st.session_state:
        known = st.context.cookies.get(DEVICE_COOKIE)
        st.session_state.device_id = known or new_device_id()
        st.session_state.device_cookie_missing = known is None
    return st.session_state.device_id


def _get_session() -> tuple[AppState, queue.Queue, Services]:
    """
    One AppState per browser session. Store snapshots come from the shared
    hub; the session's own channel only carries its changelog fetches.
    """
    if "app_state" not in st.session_state:
        st.session_state.app_state = AppState()
        st.session_state.session_id = uuid.uuid4().hex
        st.session_state.channel = queue.Queue()
        st.session_state.services = Services(
            memory=RatingMemory(_device_id()),
            run_in_background=_get_executor().submit,
        )
        st.session_state.pending_effects = []
        st.session_state.render_count = 0
        st.session_state.last_page = None
        _get_hub().attach(st.session_state.session_id)
    return st.session_state.app_state, st.session_state.channel, st.session_state.services


def _drain(state: AppState, channel: queue.Queue) -> list:
    effects = []
    for event in _get_hub().drain(st.session_state.session_id):
        effects += apply(state, event)
    while True:
        try:
            event = channel.get_nowait()
        except queue.Empty:
            break
        effects += apply(state, event)
    return effects


def _fetch_changelog_job(channel: queue.Queue, listing_id: str, token: int) -> None:
    channel.put(ChangelogLoaded(listing_id, token, fetch_changelog(listing_id)))


def _run_effects(effects: list, channel: queue.Queue) -> bool:
    """Start any fetches. Returns True if some render asked to scroll to the top."""
    scroll = False
    for effect in effects:
        if isinstance(effect, FetchChangelog):
            _get_executor().submit(_fetch_changelog_job, channel, effect.listing_id, effect.token)
        elif isinstance(effect, Render) and effect.scroll_to_top:
            scroll = True
    return scroll


# ============================================================
# ACTION CALLBACKS
# ============================================================

def _on_action(name: str, args: tuple):
    """Button callback: run the action and keep the URL in step with the route."""
    state, channel, services = _get_session()
    st.session_state.pending_effects += dispatch_action(state, services, name, *args)
    if normalize_route(st.query_params.get("route", "")) != state.nav.route:
        st.query_params["route"] = state.nav.route


def _on_filter_change():
    _on_action("filter", (
        st.session_state.category_filter,
        st.session_state.sort_filter,
        st.session_state.search_input,
    ))


# ============================================================
# BLOCK RENDERING
# ============================================================

def _render_filter_bar(bar: FilterBar):
    names = {FILTER_ALL: "All Categories"}
    names.update(dict(bar.categories))
    if bar.filter not in names:
        names[bar.filter] = bar.filter
    options = list(names.keys())

    # Seed widget values from navigation state (a route may have changed the filter)
    if st.session_state.get("category_filter") != bar.filter:
        st.session_state.category_filter = bar.filter
    if st.session_state.get("sort_filter") != bar.sort:
        st.session_state.sort_filter = bar.sort
    if st.session_state.get("search_input") != bar.search:
        st.session_state.search_input = bar.search

    c1, c2, c3 = st.columns([1, 1, 2])
    with c1:
        st.selectbox("Category", options, format_func=lambda o: names[o], key="category_filter",
                     on_change=_on_filter_change, label_visibility="collapsed")
    with c2:
        st.selectbox("Sort", SORT_OPTIONS, format_func=lambda o: f"Sort by: {o}", key="sort_filter",
                     on_change=_on_filter_change, label_visibility="collapsed")
    with c3:
        st.text_input("Search", key="search_input", placeholder="Search apps by name...",
                      on_change=_on_filter_change, label_visibility="collapsed")


def _render_rating_input(block: RatingInput, key: str):
    if block.has_rated:
        st.markdown("""
        <div class="card center">
            <h3>You have rated this app</h3>
            <p class="muted">Your rating has been recorded.</p>
        </div>""", unsafe_allow_html=True)
        return

    st.markdown('<div class="card center"><h3>Rate this app</h3></div>', unsafe_allow_html=True)
    cols = st.columns(5)
    for stars in range(1, 6):
        with cols[stars - 1]:
            st.button(f"{stars}★", key=f"{key}-star-{stars}", use_container_width=True,
                      on_click=_on_action, args=("rate", (block.listing_id, stars)))


def _render_blocks(blocks: list, prefix: str):
    for i, block in enumerate(blocks):
        key = f"{prefix}-{i}"
        if isinstance(block, Html):
            st.markdown(block.markup, unsafe_allow_html=True)
        elif isinstance(block, Action):
            st.button(block.label, key=key, use_container_width=True,
                      type="primary" if block.primary else "secondary",
                      on_click=_on_action, args=(block.name, block.args))
        elif isinstance(block, LinkButton):
            st.link_button(block.label, block.url, use_container_width=True)
        elif isinstance(block, Grid):
            for start in range(0, len(block.cells), block.columns):
                cols = st.columns(block.columns)
                for j, cell in enumerate(block.cells[start:start + block.columns]):
                    with cols[j]:
                        _render_blocks(cell, f"{key}-{start + j}")
        elif isinstance(block, Columns):
            cols = st.columns(block.widths)
            for j, column in enumerate(block.columns):
                with cols[j]:
                    _render_blocks(column, f"{key}-{j}")
        elif isinstance(block, FilterBar):
            _render_filter_bar(block)
        elif isinstance(block, RatingInput):
            _render_rating_input(block, key)
        elif isinstance(block, Chart):
            st.plotly_chart(block.figure, use_container_width=True)
        elif isinstance(block, CopyBox):
            st.code(block.text, language=None)


def render_nav(state: AppState):
    cols = st.columns([3, 1, 1, 1, 1])
    with cols[0]:
        st.markdown(f'<div class="brand">◆ <span>{SITE_NAME}</span></div>', unsafe_allow_html=True)
    current = active_nav(state.nav.page)
    for col, (page, label, route) in zip(cols[1:], NAV_ITEMS):
        with col:
            st.button(label, key=f"nav-{page}", use_container_width=True,
                      type="primary" if page == current else "secondary",
                      on_click=_on_action, args=("navigate", (route,)))


def render_notices(state: AppState):
    for i, notice in enumerate(state.notices):
        c1, c2 = st.columns([12, 1])
        with c1:
            st.markdown(f'<div class="notice notice-{notice.kind}">{escape(notice.message)}</div>',
                        unsafe_allow_html=True)
        with c2:
            st.button("✕", key=f"notice-{i}-{notice.created_at}",
                      on_click=_on_action, args=("dismiss_notice", (i,)))


def _fade_in(counter: int):
    """Replay the fade-in animation by giving it a fresh name."""
    st.markdown(f"""
    <style>
    [data-testid="stMainBlockContainer"], .main .block-container {{
        animation: page-fade-{counter} {FADE_MS}ms ease-in;
    }}
    @keyframes page-fade-{counter} {{ from {{ opacity: 0; }} to {{ opacity: 1; }} }}
    </style>""", unsafe_allow_html=True)


def _scroll_to_top(counter: int):
    components.html(f"""
    <script>
    // render {counter}
    const doc = window.parent.document;
    const main = doc.querySelector('[data-testid="stMain"], section.main');
    if (main) {{ main.scrollTo({{top: 0, behavior: 'smooth'}}); }}
    window.parent.scrollTo({{top: 0, behavior: 'smooth'}});
    </script>""", height=0)


def _remember_device():
    """Store a newly issued device id in the browser so ratings stay tied to it."""
    if not st.session_state.get("device_cookie_missing"):
        return
    max_age = DEVICE_COOKIE_DAYS * 24 * 60 * 60
    components.html(f"""
    <script>
    window.parent.document.cookie =
        "{DEVICE_COOKIE}={st.session_state.device_id}; max-age={max_age}; path=/; SameSite=Lax";
    </script>""", height=0)
    st.session_state.device_cookie_missing = False


# ============================================================
# LIVE UPDATES
# ============================================================

@st.fragment(run_every=SUBSCRIPTION_POLL_SECONDS)
def _live_updates():
    """Rerun the whole app when a snapshot or fetch result is waiting, or a notice expired."""
    state, channel, _ = _get_session()
    pending = _get_hub().has_pending(st.session_state.session_id) or not channel.empty()
    if pending or prune_notices(state):
        st.rerun()


# ============================================================
# MAIN
# ============================================================

def main():
    state, channel, services = _get_session()

    effects = st.session_state.pending_effects
    st.session_state.pending_effects = []
    effects += _drain(state, channel)

    route = normalize_route(st.query_params.get("route", ""))
    if route != state.nav.route:
        effects += apply(state, RouteChanged(route))

    scroll = _run_effects(effects, channel)
    prune_notices(state)

    page_changed = state.nav.page != st.session_state.last_page
    if page_changed or scroll:
        st.session_state.render_count += 1
        _fade_in(st.session_state.render_count)
    st.session_state.last_page = state.nav.page

    render_nav(state)
    render_notices(state)

    view = render_page(state, services.memory.rated_ids())
    _render_blocks(view.blocks, view.page)

    if scroll:
        _scroll_to_top(st.session_state.render_count)

    st.markdown("---")
    st.caption(f"© {SITE_NAME} · Built with Streamlit")

    _remember_device()
    _live_updates()


if __name__ == "__main__":
    main()
