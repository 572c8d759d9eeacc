"""Canned reply used when the generation service is unavailable."""

FALLBACK_TEMPLATE = (
    "I'm sorry, I'm currently experiencing connection issues. "
    'Your message was: "{message}". Please try again later.'
)


def build_fallback(message: str) -> str:
    """Return the placeholder reply, echoing the user's message verbatim."""
    return FALLBACK_TEMPLATE.format(message=message)
