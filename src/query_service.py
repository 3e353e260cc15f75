"""
Show queries against the grounded model: prompt building, caching and the
fetch → extract → normalize pipeline.
"""

import concurrent.futures
import logging
import requests

from errors import (
    AllSourcesFailedError,
    CallFailedError,
    ConfigurationError,
    EmptyResponseError,
    MalformedPayloadError,
    QueryTimeoutError,
    ShowFinderError,
)
from response_extraction import extract_show_array
from show_records import normalize_shows, tag_catalog
from utils import ALL_CATALOGS, RESULTS_PER_QUERY, STREAMING_CATALOGS

logger = logging.getLogger(__name__)

TIMEOUT_MARKERS = ("timeout", "timed out", "deadline_exceeded", "deadline exceeded")

SHOW_FIELDS_PROMPT = """For each item, include:
    - title
    - criticScore (number 0-100)
    - audienceScore (number 0-100)
    - year
    - summary (one sentence)
    - serviceLink (URL to watch on {service})
    - rtLink (URL to Rotten Tomatoes)
    - genre"""

def build_trending_prompt(catalog, count=RESULTS_PER_QUERY):
    fields = SHOW_FIELDS_PROMPT.format(service=catalog)
    return f"""
    Find {count} currently trending or highly-rated TV shows or movies available on {catalog}.

    Step 1: Use the search tool to verify availability and get current Rotten Tomatoes scores.
    Step 2: Write a brief summary of what you found.
    Step 3: Output the data in a strict JSON array format inside a markdown code block.

    {fields}

    Example format:
    Here are the shows I found... [Summary text]...
    ```json
    [
      {{ "title": "Show Name", "criticScore": 95, ... }}
    ]
    ```
    """

def build_search_prompt(catalog, query, count=RESULTS_PER_QUERY):
    return f"""
    Search for "{query}" on {catalog}. Find up to {count} matches.
    If exact matches aren't found, list best available alternatives on {catalog}.

    Step 1: Search for the titles and their scores.
    Step 2: Briefly summarize your findings.
    Step 3: Output the data in a strict JSON array format inside a markdown code block.

    Required fields per item: title, criticScore, audienceScore, year, summary, serviceLink, rtLink, genre.

    Example format:
    Found these results...
    ```json
    [
      {{ "title": "Matrix", ... }}
    ]
    ```
    """

def build_search_all_prompt(query, catalogs, count=RESULTS_PER_QUERY):
    names = ", ".join(catalogs)
    fields = SHOW_FIELDS_PROMPT.format(service="the streaming service")
    return f"""
    Search for "{query}" across ALL major streaming services ({names}).
    Find up to {count} matches total, distributed across all services where available.
    Include which service each title is available on.

    Step 1: Use the search tool to find titles matching "{query}" on multiple streaming platforms.
    Step 2: Briefly summarize your findings.
    Step 3: Output the data in a strict JSON array format inside a markdown code block.

    {fields}
    - service (which streaming service: {names})

    Example format:
    Here are the matches I found across services...
    ```json
    [
      {{ "title": "Show Name", "service": "{catalogs[0]}", "criticScore": 95, ... }}
    ]
    ```
    """

def is_timeout_error(exc):
    """True if ``exc`` looks like an upstream timeout."""
    if isinstance(exc, requests.exceptions.Timeout) or isinstance(exc.__cause__, requests.exceptions.Timeout):
        return True
    if getattr(exc, "status_code", None) == 504:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in TIMEOUT_MARKERS)


class QueryService:
    """
    Entry points the UI calls to get show lists.

    Args:
        model_client: Object with ``generate(prompt) -> str``
        cache: ShowCache
        debug_sink: DebugSink receiving request/response/error/cache events
        catalogs: Catalogs known to the aggregate operations
        results_per_query: Number of items requested per prompt
        max_workers: Thread pool size for aggregate fetches
    """

    def __init__(self, model_client, cache, debug_sink, catalogs=None,
                 results_per_query=RESULTS_PER_QUERY, max_workers=None):
        self.model_client = model_client
        self.cache = cache
        self.debug_sink = debug_sink
        self.catalogs = list(STREAMING_CATALOGS if catalogs is None else catalogs)
        if not self.catalogs:
            raise ValueError("At least one catalog is required")
        self.results_per_query = results_per_query
        self.max_workers = max_workers or len(self.catalogs)

    def _run(self, cache_key, prompt, context, label, failure_message,
             use_item_service=False):
        """Cache check, model call, extraction, normalization and cache store."""
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.debug_sink.publish("cache", f"Cache hit for: {cache_key} ({len(cached)} items)")
            return cached

        self.debug_sink.publish("request", f"Requesting {label} ({len(prompt)} char prompt)")
        try:
            text = self.model_client.generate(prompt)
        except ConfigurationError as e:
            self.debug_sink.publish("error", f"{label}: {e}")
            raise
        except Exception as e:
            if not isinstance(e, ShowFinderError):
                logger.exception("Model call failed for %s", label)
            self.debug_sink.publish("error", f"{label}: {e}")
            if is_timeout_error(e):
                raise QueryTimeoutError(
                    str(e),
                    user_message=f"Request timed out for {label}. The service may be experiencing high load. Please try again.",
                ) from e
            raise CallFailedError(str(e), user_message=failure_message) from e

        self.debug_sink.publish("response", f"Received {len(text or '')} characters for {label}")

        try:
            raw_items = extract_show_array(text)
        except (EmptyResponseError, MalformedPayloadError) as e:
            self.debug_sink.publish("error", f"{label}: {e}")
            raise

        records = normalize_shows(raw_items, context, use_item_service=use_item_service)
        if self.cache.put(cache_key, records):
            self.debug_sink.publish("cache", f"Cached {len(records)} items for: {cache_key}")
        return records

    def fetch_trending(self, catalog):
        """Trending and highly-rated shows on one catalog."""
        return self._run(
            self.cache.key("trending", catalog),
            build_trending_prompt(catalog, self.results_per_query),
            context=catalog,
            label=catalog,
            failure_message=f"Could not fetch {catalog} data. Please try again later.",
        )

    def search(self, catalog, query):
        """Shows matching ``query`` on one catalog."""
        if not query or not query.strip():
            raise ValueError("Search query must not be blank")
        query = query.strip()
        return self._run(
            self.cache.key("search", catalog, query),
            build_search_prompt(catalog, query, self.results_per_query),
            context=catalog,
            label=f'"{query}" on {catalog}',
            failure_message=f'Could not search for "{query}" on {catalog}. Please try again.',
        )

    def search_across_catalogs(self, query):
        """Shows matching ``query`` on any known catalog, each tagged with its catalog."""
        if not query or not query.strip():
            raise ValueError("Search query must not be blank")
        query = query.strip()
        return self._run(
            self.cache.key("search-all", query),
            build_search_all_prompt(query, self.catalogs, self.results_per_query),
            context="all",
            label=f'"{query}" across services',
            failure_message=f'Could not search for "{query}" across services. Please try again.',
            use_item_service=True,
        )

    def fetch_trending_aggregate(self):
        """
        Trending shows from every catalog, fetched in parallel.

        Failed catalogs are logged and skipped. Records keep catalog order and
        carry their catalog in ``source_catalog``.

        Raises:
            AllSourcesFailedError: every catalog failed
        """
        results = {}
        failures = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_catalog = {
                executor.submit(self.fetch_trending, catalog): catalog
                for catalog in self.catalogs
            }
            for future in concurrent.futures.as_completed(future_to_catalog):
                catalog = future_to_catalog[future]
                try:
                    results[catalog] = future.result()
                except Exception as e:
                    failures[catalog] = e
                    logger.warning("Failed to fetch from %s: %s", catalog, e)

        if not results:
            if all(isinstance(e, ConfigurationError) for e in failures.values()):
                raise next(iter(failures.values()))
            raise AllSourcesFailedError(failures)

        records = []
        for catalog in self.catalogs:
            if catalog in results:
                records.extend(tag_catalog(results[catalog], catalog))
        return records

    def load(self, catalog, query=None):
        """Dispatch a UI request: search when a query is given, trending otherwise."""
        query = (query or "").strip()
        if query:
            if catalog == ALL_CATALOGS:
                return self.search_across_catalogs(query)
            return self.search(catalog, query)
        if catalog == ALL_CATALOGS:
            return self.fetch_trending_aggregate()
        return self.fetch_trending(catalog)
