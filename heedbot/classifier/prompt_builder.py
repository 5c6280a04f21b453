"""Prompt builder: ClassificationRequest → Conversation.

Pure and deterministic. Identical requests produce byte-identical
conversations, which keeps prompt-level caching (see
providers/record_replay.py) effective.
"""

from __future__ import annotations

from heedbot.classifier.models import (
    ChatMessage,
    ClassificationRequest,
    Conversation,
    OutputContract,
    format_timestamp,
)
from heedbot.classifier.prompts import PromptLoader

_prompt_loader = PromptLoader()

# Module-level constants — loaded from file, no template vars needed
SYSTEM_PROMPTS: dict[OutputContract, str] = {
    OutputContract.BARE_TOKEN: _prompt_loader.load("classify_bare_token"),
    OutputContract.FENCED_JSON: _prompt_loader.load("classify_fenced_json"),
}
REPAIR_PROMPT = _prompt_loader.load("repair_bare_token")
PROMPT_VERSION = _prompt_loader.version


def format_message(message: ChatMessage) -> str:
    """Single-line form: ``- (<timestamp>) <sender>: <content>``."""
    return f"- ({format_timestamp(message.timestamp)}) {message.sender}: {message.content}"


def build_user_prompt(request: ClassificationRequest) -> str:
    previous = "\n".join(format_message(m) for m in request.context)
    return (
        f"User Description:\n{request.interest_description}\n\n"
        f"Message to Classify:\n{format_message(request.target)}\n\n"
        f"Previous Messages:\n{previous}"
    )


def build(
    request: ClassificationRequest,
    contract: OutputContract = OutputContract.FENCED_JSON,
) -> Conversation:
    """Build the conversation for one request.

    The context is sent exactly as given. Truncating it is the caller's
    decision (see lab/threads.py request_from_thread).
    """
    return Conversation(
        system=SYSTEM_PROMPTS[contract],
        user=build_user_prompt(request),
        contract=contract,
    )
