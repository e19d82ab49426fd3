# errors.py
# Exception taxonomy and backend error classification.
#
# Only backend failures ever reach the user as text. Tool failures are turned
# into data (ToolResult.success = False) before they leave the registry.


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BackendUnavailableError(Exception):
    """Raised when no model credential is configured. Never retried."""


class TransportError(Exception):
    """Raised when a model call fails after the backend's own retries."""

    def __init__(self, message: str, category: str = "generic") -> None:
        super().__init__(message)
        self.category = category


class ConversationError(Exception):
    """Raised when the conversation store's streaming contract is misused."""


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

UNAVAILABLE_MESSAGE = "LLM service is not configured. Please add your API key to the .env file."

_MESSAGES = {
    "authentication": "Authentication error: Please check your API key in the .env file.",
    "rate_limit": "Rate limit exceeded. Please try again in a few moments.",
    "network": "Network error: Please check your internet connection.",
    "timeout": "Request timeout: The service took too long to respond. Please try again.",
    "generic": "Sorry, I encountered an error while processing your request. Please try again.",
}

# Checked in order; the first category with a matching marker wins.
_MARKERS = (
    ("authentication", ("401", "unauthorized")),
    ("rate_limit", ("429", "rate limit")),
    ("network", ("network", "fetch", "econnrefused", "connection")),
    ("timeout", ("timeout", "timed out")),
)


def classify_error_text(text: str) -> str:
    """Map raw error text to a category name."""
    lowered = text.lower()
    for category, markers in _MARKERS:
        if any(marker in lowered for marker in markers):
            return category
    return "generic"


def classify_backend_error(error: BaseException | str) -> tuple[str, str]:
    """
    Classify a backend failure into (category, user-facing message).

    Accepts the exception itself or the text of an error stream unit.
    """
    if isinstance(error, TransportError) and error.category != "generic":
        category = error.category
    elif isinstance(error, BaseException):
        category = classify_error_text(f"{type(error).__name__}: {error}")
    else:
        category = classify_error_text(error)
    return category, _MESSAGES[category]


def user_message(category: str) -> str:
    return _MESSAGES.get(category, _MESSAGES["generic"])
