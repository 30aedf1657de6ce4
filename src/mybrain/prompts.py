"""Summary: Prompt templates for AI summaries.

Importance: Keeps wording out of the summarizer so prompts can change without touching flow.
Alternatives: Load prompts from a YAML file at runtime.
"""

from __future__ import annotations

from mybrain.models import Source, SummaryKind


SYSTEM_PROMPTS = {
    Source.MAIL: (
        "You are a helpful assistant that summarizes email data. Be concise and focus on "
        "what matters most to the user. Use clear sections with bullet points where appropriate."
    ),
    Source.CHAT: (
        "You are a helpful assistant that summarizes chat conversations. Identify key topics, "
        "important messages, and overall sentiment. Focus on topics rather than personal details."
    ),
    Source.WORKSPACE: (
        "You are a helpful assistant that summarizes workspace content. Focus on recent activity, "
        "key themes, and progress on journaling or documentation."
    ),
}

COMBINED_SYSTEM_PROMPT = (
    "You are a helpful personal assistant that provides concise, actionable daily summaries. "
    "Be direct and prioritize what matters most."
)

TOPIC_SYSTEM_PROMPT = (
    "Give facts only. No preamble and no meta-commentary about the conversation. "
    "Start directly with what happened in 2-3 sentences: names, times, decisions."
)

_KIND_PROMPTS = {
    SummaryKind.TODAY: {
        Source.MAIL: (
            "Summarize today's emails concisely.\n\n"
            "**Overview**: how many emails today, the top 2-3 senders, and how many need attention.\n\n"
            "**Needs Action**:\n- **Sender** - Subject: one line on what they need\n\n"
            "Only list emails that need a response. If none do, say \"Nothing urgent today\"."
        ),
        Source.CHAT: (
            "Write a natural 2-3 sentence summary for each active chat.\n\n"
            "Format:\n**Chat Name**\nWhat happened, with names, dates, and decisions.\n\n"
            "State what happened directly. Skip chats with only greetings."
        ),
        Source.WORKSPACE: (
            "Summarize today's workspace activity briefly.\n\n"
            "**Overview**: how many pages were edited today.\n\n"
            "**Recent Activity**:\n- Page name: what was added or changed"
        ),
    },
    SummaryKind.WEEK: {
        Source.MAIL: (
            "Summarize this week's emails.\n\n"
            "**Overview**: volume, top senders, and how many still need attention.\n\n"
            "**Important This Week**:\n- **Sender** - Subject: what was decided\n\n"
            "**Still Pending**:\n- **Sender** - Subject: what they are waiting for\n\n"
            "No tables and no category breakdowns."
        ),
        Source.CHAT: (
            "Write a natural summary for each active chat this week.\n\n"
            "Format:\n**Chat Name**\n3-5 sentences with names, dates, decisions, and outcomes.\n\n"
            "Add a **Pending questions** section only for unanswered questions directed at the user."
        ),
        Source.WORKSPACE: (
            "Summarize this week's workspace activity.\n\n"
            "## Weekly Overview\n## Pages & Edits\n## My Journey This Week\n"
            "Cover themes, notable entries, and patterns in the journal.\n"
            "## Suggestions\nIdeas for future entries."
        ),
    },
    SummaryKind.ACTIONS: {
        Source.MAIL: (
            "List action items from these emails as bullet points starting with a verb, "
            "naming who and what. If nothing needs action, say \"No action items right now\"."
        ),
        Source.CHAT: (
            "List only specific action items where someone asked the user something, naming "
            "the person and the topic. Skip vague items like \"check messages\". "
            "If none exist, say \"No action items right now\"."
        ),
        Source.WORKSPACE: (
            "List suggested next actions based on this workspace activity as bullet points. "
            "If nothing needs action, say \"No action items right now\"."
        ),
    },
}

_QUESTION_SUBJECTS = {
    Source.MAIL: "their emails",
    Source.CHAT: "their chat conversations",
    Source.WORKSPACE: "their workspace pages",
}


def system_prompt(source: Source) -> str:
    return SYSTEM_PROMPTS.get(source, "You are a helpful assistant.")


def summary_prompt(source: Source, kind: SummaryKind) -> str:
    """Summary: Return the instruction prompt for a source and summary kind.

    Importance: Raises on kinds that have no per-source prompt, such as daily-combined.
    Alternatives: Fall back to a generic prompt.
    """

    if kind not in _KIND_PROMPTS:
        raise ValueError(f"No per-source prompt for summary kind: {kind.value}")
    return _KIND_PROMPTS[kind][source]


def question_prompt(source: Source, question: str) -> str:
    return (
        f"The user is asking about {_QUESTION_SUBJECTS[source]}. Answer this question based on "
        f"the data provided: \"{question}\"\n\n"
        "Be specific and reference actual items when possible. "
        "If the information isn't in the data, say so."
    )


def combined_prompt() -> str:
    return (
        "Create a daily overview from the user's data.\n\n"
        "**ACTION ITEMS**\nList 3-5 specific things needing attention today:\n"
        "1. [Source] Specific action - brief context\n\n"
        "No filler such as \"busy day\" and no vague items. Skip sources with nothing actionable."
    )


def topic_prompt(topic: str) -> str:
    return f"Topic: \"{topic}\"\n\nWhat specifically happened? Just the facts:"
