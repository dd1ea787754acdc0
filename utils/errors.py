"""Exception hierarchy for the NY credits service.

Every failure the API turns into an ``{"ok": false, "error": ...}`` envelope
derives from :class:`CreditsError`, so ``api/app.py`` can register a single
handler for the whole family.
"""


class CreditsError(Exception):
    """Base class for request-level failures."""


class RemoteQueryError(CreditsError):
    """The Socrata host could not answer a query."""


class RemoteQueryFailed(RemoteQueryError):
    """A single upstream request failed and was not retried.

    ``status`` is the HTTP status code, or 0 when the request never got a
    response (DNS, connection reset, timeout).
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"Socrata request failed ({status or 'unknown'}): {message}")


class RemoteQueryExhausted(RemoteQueryError):
    """Both the primary and the fallback dialect were rejected."""

    def __init__(self, primary_status: int, fallback_status: int,
                 messages: list[str]) -> None:
        self.primary_status = primary_status
        self.fallback_status = fallback_status
        self.messages = messages
        detail = messages[-1] if messages else ""
        super().__init__(
            f"Socrata request failed ({primary_status}) without an app token "
            f"and fallback query failed ({fallback_status}): {detail}"
        )


class ColumnResolutionError(CreditsError):
    """No year column could be identified in the dataset."""
