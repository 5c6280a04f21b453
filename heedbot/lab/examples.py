"""Sample interest descriptions and threads for trying the classifier by hand."""

from __future__ import annotations

from heedbot.classifier.models import ChatMessage

INTEREST_EXAMPLES: dict[str, str] = {
    "1": "I am Bob. Only send notifications if Alice responds to me.",
    "2": "Only show me sales messages",
    "3": (
        "I only want to receive the first message in each topic. I would like to be "
        "notified only for documentation-related messages and fun work activities"
    ),
}

THREAD_EXAMPLES: dict[str, list[dict[str, str]]] = {
    "1": [
        {"timestamp": "2024-06-06T10:00:00.000Z", "sender": "Alice",
         "content": "Hey, are we still meeting for lunch today?"},
        {"timestamp": "2024-06-06T10:15:00.000Z", "sender": "Bob",
         "content": "Yes! Looking forward to it. See you at 12:30 at the cafe."},
        {"timestamp": "2024-06-06T11:45:00.000Z", "sender": "Alice",
         "content": "Running a bit late, will be there in 10 minutes!"},
    ],
    "2": [
        {"timestamp": "2024-06-06T14:30:00.000Z", "sender": "System",
         "content": "Your account password will expire in 7 days. Please update it."},
        {"timestamp": "2024-06-06T15:00:00.000Z", "sender": "Marketing",
         "content": "🎉 FLASH SALE! 50% off everything! Limited time only!"},
        {"timestamp": "2024-06-06T15:30:00.000Z", "sender": "Manager",
         "content": "Team meeting moved to 3 PM tomorrow. Please confirm attendance."},
    ],
    "3": [
        {"timestamp": "2025-06-06T08:02:00.000Z", "sender": "Rachel",
         "content": "Morning folks — any blockers on the onboarding revamp before standup?"},
        {"timestamp": "2025-06-06T08:04:00.000Z", "sender": "Ciaran",
         "content": "Just waiting on the copy from marketing, otherwise good to go on my end."},
        {"timestamp": "2025-06-06T08:06:00.000Z", "sender": "Leo",
         "content": "I'll push the revised flowchart by 9, minor updates to the edge cases."},
        {"timestamp": "2025-06-06T08:30:00.000Z", "sender": "Nina",
         "content": "Heads up — CI's failing on the main branch after the latest merge. "
                    "Looks like a broken test suite for auth."},
        {"timestamp": "2025-06-06T08:32:00.000Z", "sender": "Ciaran",
         "content": "That might be my patch from last night. I'll revert it and isolate the test cases."},
        {"timestamp": "2025-06-06T08:35:00.000Z", "sender": "Raj",
         "content": "Make sure to clean up the flaky token mocks too — they've been "
                    "intermittently failing for days."},
        {"timestamp": "2025-06-06T09:01:00.000Z", "sender": "Leo",
         "content": "BTW, anyone got a link to the new linter rules doc? My formatter's "
                    "yelling at everything this morning."},
        {"timestamp": "2025-06-06T09:10:00.000Z", "sender": "Nina",
         "content": "Pinned it in #dev-notes yesterday — search 'prettier-rules-v3'"},
        {"timestamp": "2025-06-06T10:00:00.000Z", "sender": "Rachel",
         "content": "On a less stressful note — trivia at lunch today. Prizes include "
                    "eternal bragging rights and leftover donuts."},
        {"timestamp": "2025-06-06T10:01:00.000Z", "sender": "Raj",
         "content": "If there's a round on obscure regex trivia, I'm sweeping it."},
    ],
}


def example_interest(name: str) -> str:
    try:
        return INTEREST_EXAMPLES[name]
    except KeyError:
        raise ValueError(f"Unknown interest example {name!r}; choose from {sorted(INTEREST_EXAMPLES)}") from None


def example_thread(name: str) -> list[ChatMessage]:
    try:
        raw = THREAD_EXAMPLES[name]
    except KeyError:
        raise ValueError(f"Unknown thread example {name!r}; choose from {sorted(THREAD_EXAMPLES)}") from None
    return [ChatMessage.from_dict(entry) for entry in raw]
