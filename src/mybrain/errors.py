"""Summary: Error types raised inside the MyBrain core.

Importance: Lets adapters and services tell auth, provider, and AI failures apart.
Alternatives: Raise bare RuntimeError everywhere and match on messages.
"""

from __future__ import annotations


class NotAuthenticatedError(RuntimeError):
    """Summary: Raised when a source has no usable session.

    Importance: Adapters turn it into a structured not-authenticated result.
    Alternatives: Return None from clients and check at every call site.
    """


class ProviderRequestError(RuntimeError):
    """Raised when a provider API request fails."""


class SummarizerError(RuntimeError):
    """Raised when the AI summarizer call fails."""
