"""
Thin client for the Gemini ``generateContent`` REST endpoint.

Every call uses the same configuration: Google Search grounding, the
streaming-assistant system instruction and relaxed safety thresholds.
"""

import logging
import requests

from errors import ConfigurationError, ModelCallError

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

SYSTEM_INSTRUCTION = (
    "You are a specialized streaming content assistant. "
    "Your goal is to find content on a specific streaming service using the provided tools. "
    "You must prioritize accurate availability on the requested service and valid Rotten Tomatoes scores."
)

SAFETY_CATEGORIES = [
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HARASSMENT",
]

def build_request_body(prompt):
    """Request payload for one grounded prompt."""
    return {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "tools": [{"google_search": {}}],
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_ONLY_HIGH"}
            for category in SAFETY_CATEGORIES
        ],
    }

def response_text(data):
    """Concatenate the text parts of the first candidate. Empty string if none."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiClient:
    """
    Args:
        api_key: Gemini API key
        model: Model identifier
        timeout: Seconds before the HTTP call gives up
        session: Optional ``requests.Session`` to reuse connections
    """

    def __init__(self, api_key, model="gemini-2.5-flash", timeout=120, session=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def endpoint(self):
        return f"{API_BASE}/{self.model}:generateContent"

    def generate(self, prompt):
        """
        Send ``prompt`` and return the model's text.

        Raises:
            ConfigurationError: no API key configured
            ModelCallError: transport failure, HTTP error or undecodable body
        """
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")

        try:
            response = self.session.post(
                self.endpoint,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=build_request_body(prompt),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ModelCallError(f"Request timeout after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ModelCallError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise ModelCallError(
                f"Gemini API error {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ModelCallError("Gemini API returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ModelCallError("Gemini API returned an unexpected body")

        text = response_text(data)
        logger.debug("Gemini returned %d characters", len(text))
        return text

def _error_detail(response):
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason
    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return response.reason
    return f"{error.get('status', '')} {error.get('message', '')}".strip() or response.reason
