"""
Configuration constants, settings lookup and shared resource factories.
"""

import os
import streamlit as st

# Global configuration constants
CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MODEL = "gemini-2.5-flash"
RESULTS_PER_QUERY = 30
DEBUG_LOG_LIMIT = 1000
REQUEST_TIMEOUT_SECONDS = 120
DEFAULT_CACHE_DIR = ".show_cache"

ALL_CATALOGS = "All Services"

STREAMING_CATALOGS = [
    "Netflix",
    "Max",
    "Apple TV+",
    "Disney+",
    "Hulu",
    "Prime Video",
]

DEFAULT_CATALOG = "Netflix"

CATALOG_DISPLAY_NAMES = {
    "Netflix": "Netflix",
    "Max": "HBO Max",
    "Apple TV+": "Apple TV+",
    "Disney+": "Disney+",
    "Hulu": "Hulu",
    "Prime Video": "Prime",
    ALL_CATALOGS: "All Services",
}

def get_setting(name, default=None):
    """
    Look up a setting in Streamlit secrets, then in the environment.

    Args:
        name: Setting name, e.g. ``GEMINI_API_KEY``
        default: Value returned when the setting is not defined anywhere

    Returns:
        The setting value or ``default``
    """
    try:
        if name in st.secrets:
            return st.secrets[name]
    except FileNotFoundError:
        # No secrets.toml; fall through to the environment
        pass
    return os.environ.get(name, default)

def catalog_label(catalog):
    """Short display label for a catalog."""
    return CATALOG_DISPLAY_NAMES.get(catalog, catalog)

@st.cache_resource
def get_debug_sink():
    """Process-wide debug event sink."""
    from debug_sink import DebugSink
    return DebugSink()

@st.cache_resource
def get_debug_log():
    """Bounded debug log, subscribed to the shared sink once per process."""
    from debug_sink import DebugLog
    debug_log = DebugLog(limit=DEBUG_LOG_LIMIT)
    get_debug_sink().subscribe(debug_log)
    return debug_log

@st.cache_resource
def get_show_cache():
    """Show cache persisted under ``SHOW_CACHE_DIR``."""
    from show_cache import FileStorage, ShowCache
    cache_dir = get_setting("SHOW_CACHE_DIR", DEFAULT_CACHE_DIR)
    return ShowCache(FileStorage(cache_dir), ttl=CACHE_TTL_SECONDS)

@st.cache_resource
def get_query_service():
    """Query service wired to the Gemini client, shared cache and debug sink."""
    from gemini_client import GeminiClient
    from query_service import QueryService
    client = GeminiClient(
        api_key=get_setting("GEMINI_API_KEY"),
        model=get_setting("GEMINI_MODEL", DEFAULT_MODEL),
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    return QueryService(client, get_show_cache(), get_debug_sink())
