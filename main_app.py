"""
What's Streaming Now - Streamlit UI
Trending and searched shows per streaming service, ranked by Rotten Tomatoes scores
"""

import logging
import streamlit as st
import pandas as pd
import sys
import os

# =============================================================================
# IMPORTS AND SETUP
# =============================================================================

# Add src directory to path for imports
current_dir = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.join(current_dir, 'src')

if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from errors import ShowFinderError
from show_records import sort_shows
from utils import (
    ALL_CATALOGS,
    DEFAULT_CATALOG,
    STREAMING_CATALOGS,
    catalog_label,
    get_debug_log,
    get_debug_sink,
    get_query_service,
    get_show_cache,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

SORT_OPTIONS = {
    "Critic Score": "critic",
    "Audience Score": "audience",
}

# =============================================================================
# SESSION STATE MANAGEMENT
# =============================================================================

def initialize_session_state():
    """Initialize all required session state variables."""
    if "shows" not in st.session_state:
        st.session_state.shows = []

    if "error" not in st.session_state:
        st.session_state.error = None

    if "search_query" not in st.session_state:
        st.session_state.search_query = ""

    # (catalog, query) the current shows belong to
    if "loaded_for" not in st.session_state:
        st.session_state.loaded_for = None

# =============================================================================
# DATA LOADING
# =============================================================================

def load_shows(catalog, query):
    """Fetch shows for the selection and store them (or the error) in session state."""
    st.session_state.shows = []
    st.session_state.error = None
    service = get_query_service()

    spinner_text = f"Searching {catalog}..." if query else f"Loading what's trending on {catalog}..."
    with st.spinner(spinner_text):
        try:
            st.session_state.shows = service.load(catalog, query)
        except ShowFinderError as e:
            logging.getLogger(__name__).warning("Load failed for %s / %r: %s", catalog, query, e)
            st.session_state.error = e.user_message

    st.session_state.loaded_for = (catalog, query)

# =============================================================================
# UI COMPONENTS
# =============================================================================

def render_score(label, score):
    if score is None:
        return f"{label}: --"
    icon = "🍅" if score >= 60 else "🤢"
    return f"{icon} {label}: {score:g}%"

def render_show_card(show, show_catalog):
    """Render one show as a bordered card."""
    with st.container(border=True):
        title = show["title"]
        if show["year"] != "N/A":
            title += f" ({show['year']})"
        st.markdown(f"**{title}**")

        caption = show["genre"]
        if show_catalog and show.get("source_catalog"):
            caption += f" · {catalog_label(show['source_catalog'])}"
        st.caption(caption)

        st.write(render_score("Critics", show["critic_score"]) + " | " +
                 render_score("Audience", show["audience_score"]))
        st.write(show["summary"])

        links = []
        if show["watch_link"]:
            links.append(f"[▶ Watch]({show['watch_link']})")
        if show["review_link"]:
            links.append(f"[Rotten Tomatoes]({show['review_link']})")
        if links:
            st.markdown(" · ".join(links))

def render_show_list(shows, sort_by, show_catalog):
    """Render shows as a three column grid, best score first."""
    ordered = sort_shows(shows, sort_by)
    cols = st.columns(3)
    for idx, show in enumerate(ordered):
        with cols[idx % 3]:
            render_show_card(show, show_catalog)

def render_debug_console():
    """Sidebar console with the latest debug events."""
    debug_log = get_debug_log()
    st.sidebar.markdown("### 🐞 Debug Log")

    entries = debug_log.entries()
    if not entries:
        st.sidebar.caption("Waiting for API calls...")
    else:
        df = pd.DataFrame([
            {
                "time": event.timestamp.strftime("%H:%M:%S"),
                "type": event.category,
                "message": event.message,
            }
            for event in entries
        ])
        st.sidebar.dataframe(df.iloc[::-1], hide_index=True, use_container_width=True)

    col1, col2 = st.sidebar.columns(2)
    with col1:
        if st.button("Clear log", key="clear_log"):
            debug_log.clear()
            st.rerun()
    with col2:
        if st.button("Clear cache", key="clear_cache"):
            get_show_cache().clear()
            get_debug_sink().publish("cache", "Cache cleared")
            st.rerun()

# =============================================================================
# MAIN APPLICATION
# =============================================================================

def main():
    """Main application function."""
    st.set_page_config(
        page_title="What's Streaming Now?",
        page_icon="🎬",
        layout="wide",
    )

    initialize_session_state()

    catalogs = STREAMING_CATALOGS + [ALL_CATALOGS]
    catalog = st.radio(
        "Streaming service",
        catalogs,
        index=catalogs.index(DEFAULT_CATALOG),
        format_func=catalog_label,
        horizontal=True,
        label_visibility="collapsed",
    )

    # Switching service resets the search
    if st.session_state.loaded_for and st.session_state.loaded_for[0] != catalog:
        st.session_state.search_query = ""

    query = st.session_state.search_query
    if query:
        st.title("Deep Catalog Search")
        st.caption(f"Searching specifically on {catalog_label(catalog)}")
    else:
        st.title("What's Streaming Now?")
        st.caption("Top rated shows on your favorite platforms, ranked by Rotten Tomatoes.")

    with st.form("search_form", clear_on_submit=False):
        search_col, button_col = st.columns([5, 1])
        with search_col:
            typed = st.text_input(
                f"Search {catalog_label(catalog)}",
                value=query,
                label_visibility="collapsed",
                placeholder=f"Search {catalog_label(catalog)}...",
            )
        with button_col:
            submitted = st.form_submit_button("Search")
    if submitted:
        st.session_state.search_query = typed.strip()
        query = st.session_state.search_query

    if query and st.button("✕ Clear search"):
        st.session_state.search_query = ""
        st.rerun()

    if st.session_state.loaded_for != (catalog, query):
        load_shows(catalog, query)

    shows = st.session_state.shows
    info_col, sort_col = st.columns([3, 2])
    with info_col:
        if query:
            st.markdown(f'Found {len(shows)} results for "{query}"')
        else:
            st.markdown(f"Trending Now ({len(shows)} shows)")
    with sort_col:
        sort_label = st.radio("Sort by", list(SORT_OPTIONS), horizontal=True,
                              disabled=not shows)

    if st.session_state.error:
        st.error(st.session_state.error)
        if st.button("🔄 Try again", type="primary"):
            load_shows(catalog, query)
            st.rerun()
    elif not shows:
        st.info("No results found. Try adjusting your search terms or switch to another service.")
    else:
        render_show_list(shows, SORT_OPTIONS[sort_label], show_catalog=(catalog == ALL_CATALOGS))

    render_debug_console()

if __name__ == "__main__":
    main()
