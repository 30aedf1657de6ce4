"""Summary: Pure helpers that shape provider data before summarization.

Importance: Keeps keyword extraction, sender formatting, and digest text deterministic and testable.
Alternatives: Send raw records to the AI and let it do all the analysis.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime
from typing import Any, Iterable

from mybrain.models import ChatMessage, WorkspacePage
from mybrain.time_filters import DAY_SECONDS, MONTH_SECONDS, WEEK_SECONDS


RECENT_CHAT_SECONDS = 2 * DAY_SECONDS

CHAT_STOP_WORDS = frozenset(
    """
    the a an is are was were be been being have has had do does did will would could should
    may might must shall can need dare ought used to of in for on with at by from as into
    through during before after above below between under again further then once here there
    when where why how all each few more most other some such no nor not only own same so than
    too very just and but if or because until while i me my myself we our you your he him his
    she her it its they them their what which who whom this that these those am ok okay yes
    yeah hi hello hey thanks thank please sorry good great nice like know
    """.split()
)

THEME_STOP_WORDS = frozenset(
    """
    the a an is are was were be been to of in for on with at by from and or but my i me we
    you it this that what how why day week month year
    """.split()
)

_LINK_PATTERN = re.compile(r"https?://\S+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def extract_topics(
    texts: Iterable[str],
    stop_words: frozenset[str] = CHAT_STOP_WORDS,
    min_length: int = 4,
    min_count: int = 2,
    limit: int = 10,
) -> list[str]:
    """Summary: Return the most frequent non-stopword words across texts.

    Importance: Gives the summarizer and UI a cheap list of discussion topics.
    Alternatives: Run a proper keyword extraction model.
    """

    counts: Counter[str] = Counter()
    for text in texts:
        for word in text.lower().split():
            cleaned = _NON_ALNUM.sub("", word)
            if len(cleaned) >= min_length and cleaned not in stop_words:
                counts[cleaned] += 1
    return [word for word, count in counts.most_common() if count >= min_count][:limit]


def top_counts(names: Iterable[str], limit: int = 5) -> list[tuple[str, int]]:
    """Return the ``limit`` most frequent names with their counts."""

    return Counter(names).most_common(limit)


def format_sender(sender: str | None) -> str:
    """Turn a serialized chat id like ``15551234@c.us`` into ``+15551234``."""

    if not sender:
        return "Unknown"
    match = re.match(r"^(\d+)@", sender)
    return f"+{match.group(1)}" if match else sender


def extract_sender_name(from_header: str | None) -> str:
    """Summary: Return the display name from a From header.

    Importance: Top-sender lists read better with names than addresses.
    Alternatives: Use email.utils.parseaddr and fall back to the local part.
    """

    if not from_header:
        return "Unknown"
    name = from_header.split("<", 1)[0].strip().replace('"', "")
    if name:
        return name
    address = extract_email(from_header)
    return address.split("@", 1)[0]


def extract_email(from_header: str | None) -> str:
    if not from_header:
        return ""
    match = re.search(r"<([^>]+)>", from_header)
    return match.group(1) if match else from_header.strip()


def analyze_chat_messages(
    messages: list[ChatMessage], is_group: bool, now: float
) -> dict[str, Any]:
    """Summary: Compute activity statistics for one chat.

    Importance: Only the last 48 hours feed topics and active senders, so digests stay current.
    Alternatives: Analyze the whole filtered window.
    """

    if not messages:
        return {"summary": "No recent messages", "topics": [], "media_count": 0}

    recent = [message for message in messages if now - message.timestamp < RECENT_CHAT_SECONDS]
    text_messages = [message for message in recent if not message.has_media and message.body]
    media_count = sum(1 for message in recent if message.has_media)
    links_count = sum(1 for message in text_messages if _LINK_PATTERN.search(message.body))
    senders = top_counts(
        (format_sender(message.sender) for message in recent if not message.from_me), 5
    )
    active_senders = [{"name": name, "message_count": count} for name, count in senders]
    topics = extract_topics(message.body for message in text_messages)

    analysis: dict[str, Any] = {
        "summary": chat_text_summary(text_messages, topics, active_senders, is_group, now),
        "topics": topics,
        "media_count": media_count,
        "links_count": links_count,
        "recent_message_count": len(recent),
        "last_messages": [
            {
                "text": message.body[:100],
                "sender": format_sender(message.sender),
                "from_me": message.from_me,
            }
            for message in text_messages[:3]
        ],
    }
    if is_group:
        analysis["active_senders"] = active_senders
    return analysis


def chat_text_summary(
    text_messages: list[ChatMessage],
    topics: list[str],
    active_senders: list[dict[str, Any]],
    is_group: bool,
    now: float,
) -> str:
    if not text_messages:
        return "No recent text messages"
    parts: list[str] = []
    if is_group and active_senders:
        names = ", ".join(sender["name"] for sender in active_senders[:3])
        parts.append(f"Active participants: {names}")
    if topics:
        parts.append(f"Discussion topics: {', '.join(topics[:5])}")
    hours_ago = int((now - text_messages[0].timestamp) // 3600)
    if hours_ago < 1:
        parts.append("Active in the last hour")
    elif hours_ago < 24:
        parts.append(f"Last active {hours_ago} hour(s) ago")
    else:
        parts.append(f"Last active {hours_ago // 24} day(s) ago")
    return ". ".join(parts)


def overall_chat_summary(
    group_summaries: list[dict[str, Any]],
    contact_summaries: list[dict[str, Any]],
    total_unread: int,
) -> str:
    """Summary: One-paragraph overview across every chat in the view.

    Importance: Gives the combined digest a compact chat line.
    Alternatives: Let the summarizer derive it from per-chat data.
    """

    parts: list[str] = []
    if total_unread > 0:
        parts.append(f"You have {total_unread} unread message(s)")
    active_groups = [group for group in group_summaries if group.get("recent_message_count", 0) > 0]
    if active_groups:
        parts.append(f"Active groups: {_names_with_more(active_groups)}")
    active_contacts = [
        contact for contact in contact_summaries if contact.get("recent_message_count", 0) > 0
    ]
    if active_contacts:
        parts.append(f"Recent conversations with: {_names_with_more(active_contacts)}")
    busy_groups = [group for group in group_summaries if group.get("unread_count", 0) > 5]
    if busy_groups:
        parts.append(f"{len(busy_groups)} group(s) with many unread messages")
    return ". ".join(parts) or "No recent chat activity"


def email_category_summaries(categorized: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    """Summary: Build per-category descriptions for a categorized mailbox.

    Importance: Mirrors the digest sections users scan first: action, personal, newsletters.
    Alternatives: Return counts only.
    """

    summaries: dict[str, Any] = {}
    action = categorized.get("action_required", [])
    if action:
        summaries["action_required"] = {
            "title": "Action Required",
            "count": len(action),
            "description": f"You have {len(action)} email(s) that may need your attention:",
            "items": [f"{extract_sender_name(email['from'])}: \"{email['subject']}\"" for email in action[:5]],
        }
    personal = categorized.get("personal", [])
    if personal:
        senders = _unique(extract_sender_name(email["from"]) for email in personal)
        summaries["personal"] = {
            "title": "Personal Messages",
            "count": len(personal),
            "description": f"{len(personal)} personal email(s) from {_join_with_more(senders, 'others')}.",
            "top_subjects": [email["subject"] for email in personal[:3]],
        }
    newsletters = categorized.get("newsletters", [])
    if newsletters:
        sources = _unique(extract_sender_name(email["from"]) for email in newsletters)
        summaries["newsletters"] = {
            "title": "Newsletters & Digests",
            "count": len(newsletters),
            "description": (
                f"{len(newsletters)} newsletter(s) from {_join_with_more(sources, 'more sources')}."
            ),
        }
    updates = categorized.get("updates", [])
    if updates:
        summaries["updates"] = {
            "title": "Updates & Notifications",
            "count": len(updates),
            "description": f"{len(updates)} update notification(s) from various services.",
        }
    promotions = categorized.get("promotions", [])
    if promotions:
        summaries["promotions"] = {
            "title": "Promotions",
            "count": len(promotions),
            "description": f"{len(promotions)} promotional email(s). Consider reviewing or unsubscribing.",
        }
    social = categorized.get("social", [])
    if social:
        platforms = _unique(_social_platform(email["from"]) for email in social)
        summaries["social"] = {
            "title": "Social & Professional",
            "count": len(social),
            "description": f"{len(social)} notification(s) from {', '.join(platforms)}.",
        }
    summaries["overall"] = {
        "title": "Email Overview",
        "description": overall_email_summary(categorized),
    }
    return summaries


def overall_email_summary(categorized: dict[str, list[dict[str, Any]]]) -> str:
    total = sum(len(emails) for emails in categorized.values())
    parts: list[str] = []
    if categorized.get("action_required"):
        parts.append(f"{len(categorized['action_required'])} need attention")
    if categorized.get("personal"):
        parts.append(f"{len(categorized['personal'])} personal")
    bulk = len(categorized.get("newsletters", [])) + len(categorized.get("updates", []))
    if bulk:
        parts.append(f"{bulk} newsletters/updates")
    if categorized.get("promotions"):
        parts.append(f"{len(categorized['promotions'])} promotions")
    return f"Analyzed {total} emails: {', '.join(parts)}."


def extract_themes(title: str | None, properties: dict[str, Any], themes: Counter[str]) -> None:
    """Summary: Count theme words from a page title and its tag-like properties.

    Importance: Drives the journey database's top themes.
    Alternatives: Ask the summarizer to infer themes.
    """

    if title:
        for word in title.lower().split():
            cleaned = _NON_ALNUM.sub("", word)
            if len(cleaned) > 2 and cleaned not in THEME_STOP_WORDS:
                themes[cleaned] += 1
    for value in properties.values():
        if isinstance(value, list):
            for item in value:
                if isinstance(item, str):
                    themes[item.lower()] += 1
        elif isinstance(value, str) and len(value) > 2:
            themes[value.lower()] += 1


def journey_summary(entries: list[WorkspacePage], now: float) -> dict[str, Any]:
    """Summary: Summarize a journal-style database into a timeline and top themes.

    Importance: Journaling progress is the main signal the workspace digest reports.
    Alternatives: List entries without grouping.
    """

    this_week: list[WorkspacePage] = []
    this_month: list[WorkspacePage] = []
    older: list[WorkspacePage] = []
    themes: Counter[str] = Counter()
    for entry in entries:
        if entry.last_edited_time >= now - WEEK_SECONDS:
            this_week.append(entry)
        elif entry.last_edited_time >= now - MONTH_SECONDS:
            this_month.append(entry)
        else:
            older.append(entry)
        extract_themes(entry.title, entry.properties, themes)
    top_themes = [{"theme": theme, "count": count} for theme, count in themes.most_common(10)]

    parts: list[str] = []
    if this_week:
        parts.append(f"{len(this_week)} entry/entries this week")
    if this_month:
        parts.append(f"{len(this_month)} this month")
    parts.append(f"{len(entries)} total entries")
    if top_themes:
        parts.append(f"Key themes: {', '.join(item['theme'] for item in top_themes[:5])}")
    if this_week:
        parts.append(f"Recent: {', '.join(entry.title for entry in this_week[:3])}")

    return {
        "total_entries": len(entries),
        "summary": ". ".join(parts),
        "timeline": {
            "this_week": len(this_week),
            "this_month": len(this_month),
            "older": len(older),
        },
        "top_themes": top_themes,
        "recent_insights": [
            {
                "title": entry.title,
                "url": entry.url,
                "preview": _truncate(entry.content_preview, 200),
                "last_edited": entry.last_edited_time,
            }
            for entry in this_week[:5]
        ],
        "has_more": len(entries) > 5,
    }


def workspace_summary(
    pages: list[WorkspacePage], databases: list[dict[str, Any]], now: float
) -> str:
    parts = [f"{len(pages)} pages in workspace"]
    recent = [page for page in pages if page.last_edited_time >= now - WEEK_SECONDS]
    if recent:
        parts.append(f"{len(recent)} edited this week")
    if databases:
        titles = ", ".join(database["title"] for database in databases[:3])
        parts.append(f"{len(databases)} database(s): {titles}")
    return ". ".join(parts)


def format_date_range(oldest: int, newest: int) -> str:
    """Summary: Format two epoch timestamps as a readable range.

    Importance: Tells the reader which span a chat digest covers.
    Alternatives: Return ISO timestamps.
    """

    start = datetime.fromtimestamp(oldest)
    end = datetime.fromtimestamp(newest)
    if start.date() == end.date():
        return f"{_format_date(start)}, {_format_time(start)} - {_format_time(end)}"
    return f"{_format_date(start)} {_format_time(start)} - {_format_date(end)} {_format_time(end)}"


def _format_date(moment: datetime) -> str:
    return f"{moment:%b} {moment.day}, {moment.year}"


def _format_time(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


def _social_platform(from_header: str) -> str:
    lowered = from_header.lower()
    for key, label in (("linkedin", "LinkedIn"), ("twitter", "Twitter"), ("github", "GitHub"), ("slack", "Slack")):
        if key in lowered:
            return label
    return "Social"


def _names_with_more(summaries: list[dict[str, Any]]) -> str:
    names = ", ".join(summary["name"] for summary in summaries[:3])
    if len(summaries) > 3:
        names += f" and {len(summaries) - 3} more"
    return names


def _join_with_more(values: list[str], noun: str) -> str:
    text = ", ".join(values[:3])
    if len(values) > 3:
        text += f" and {len(values) - 3} {noun}"
    return text


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    return text[:limit] + ("..." if len(text) > limit else "")
