"""Summary: Email category classification helpers.

Importance: Groups mail into digest sections without an AI call.
Alternatives: Use an LLM-based classifier for higher accuracy.
"""

from __future__ import annotations

from dataclasses import dataclass


CATEGORIES = ("action_required", "newsletters", "social", "promotions", "updates", "personal")

_LABEL_CATEGORIES = (
    ("CATEGORY_PROMOTIONS", "promotions"),
    ("CATEGORY_SOCIAL", "social"),
    ("CATEGORY_UPDATES", "updates"),
)


@dataclass(frozen=True)
class EmailCategorizer:
    """Summary: Keyword-based email categorizer.

    Importance: Offers deterministic, fast categorization that runs during sync.
    Alternatives: Use a supervised ML classifier or LLM-based categorizer.
    """

    action_keywords: tuple[str, ...] = (
        "action required",
        "urgent",
        "asap",
        "deadline",
        "please respond",
        "waiting for",
        "reminder",
        "follow up",
        "approval needed",
        "review needed",
    )
    newsletter_keywords: tuple[str, ...] = (
        "newsletter",
        "digest",
        "weekly",
        "monthly",
        "unsubscribe",
        "noreply",
        "no-reply",
        "news@",
        "updates@",
        "hello@",
    )
    social_domains: tuple[str, ...] = ("linkedin", "twitter", "facebook", "instagram", "github", "slack")
    promo_keywords: tuple[str, ...] = (
        "sale",
        "discount",
        "offer",
        "deal",
        "free",
        "limited time",
        "exclusive",
        "promo",
        "coupon",
    )

    def categorize(
        self, from_header: str, subject: str, snippet: str = "", labels: tuple[str, ...] | list[str] = ()
    ) -> str:
        """Summary: Pick one category for an email.

        Importance: Provider labels win over keywords; anything unmatched is personal.
        Alternatives: Allow multiple categories per email.
        """

        for label, category in _LABEL_CATEGORIES:
            if label in labels:
                return category
        sender = (from_header or "").lower()
        subject_text = (subject or "").lower()
        snippet_text = (snippet or "").lower()
        if _matches(self.action_keywords, subject_text, snippet_text):
            return "action_required"
        if _matches(self.newsletter_keywords, sender, subject_text):
            return "newsletters"
        if _matches(self.social_domains, sender):
            return "social"
        if _matches(self.promo_keywords, subject_text):
            return "promotions"
        return "personal"


def _matches(keywords: tuple[str, ...], *texts: str) -> bool:
    return any(keyword in text for keyword in keywords for text in texts)
