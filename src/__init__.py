"""
Streaming Show Finder - Source Package

This package contains the core functionality behind the streaming UI:
- response_extraction: Pull the JSON show array out of model output
- show_records: Normalize raw objects into show records, sorting helpers
- show_cache: 24 hour cache of show lists over pluggable storage
- debug_sink: Debug event publish/subscribe and the bounded debug log
- gemini_client: Grounded Gemini generateContent calls
- query_service: Prompt building and the fetch/search pipeline
- errors: Error types with user-facing messages
- utils: Configuration constants and shared resource factories
"""
