"""Token-aware conversation history trimming.

Converts the UI's message log into model-ready turns and bounds it twice:
first by message count, then by an estimated token budget derived from the
model's history limit. The most recent messages are always preferred, and
the retained messages keep their original order.

Everything here is pure and synchronous.
"""

import logging
import math
import re
from collections.abc import Sequence

from pydantic import BaseModel

from ragchat.agent.capabilities import get_capabilities
from ragchat.models.messages import UIMessage
from ragchat.models.session import ConversationTurn

logger = logging.getLogger(__name__)

HISTORY_TOKEN_RATIO = 0.6
MAX_HISTORY_MESSAGES = 50
CHARS_PER_TOKEN = 4

_WHITESPACE = re.compile(r"\s+")


class HistoryConfig(BaseModel):
    token_ratio: float
    max_messages: int


class HistoryTokenStats(BaseModel):
    total_messages: int
    processed_messages: int
    estimated_tokens: int
    token_limit: int
    within_limit: bool
    message_limit: int


def estimate_token_count(text: str) -> int:
    """Estimate tokens at four characters per token, whitespace collapsed."""
    clean_text = _WHITESPACE.sub(" ", text).strip()
    return math.ceil(len(clean_text) / CHARS_PER_TOKEN)


def history_token_budget(model_id: str | None = None, ratio: float = HISTORY_TOKEN_RATIO) -> int:
    """Tokens available for history, leaving room for instructions and the answer."""
    return math.floor(get_capabilities(model_id).history_token_limit * ratio)


def trim_history(
    history: Sequence[ConversationTurn],
    model_id: str | None = None,
    *,
    max_messages: int = MAX_HISTORY_MESSAGES,
    token_budget: int | None = None,
) -> list[ConversationTurn]:
    """Keep the most recent turns that fit both bounds.

    Args:
        history: Turns in chronological order.
        model_id: Model whose context size sets the default budget.
        max_messages: Message-count ceiling, applied first.
        token_budget: Overrides the model-derived budget.

    Returns:
        A chronological suffix of ``history``. The newest turn is kept even
        when it alone exceeds the budget.
    """
    if not history:
        return []

    budget = history_token_budget(model_id) if token_budget is None else token_budget

    working = list(history)
    if len(working) > max_messages:
        working = working[-max_messages:]
        logger.info(
            f"Applied message count limit: {len(history)} -> {len(working)} messages"
        )

    total_tokens = 0
    kept: list[ConversationTurn] = []
    for turn in reversed(working):
        turn_tokens = estimate_token_count(turn.text)
        if kept and total_tokens + turn_tokens > budget:
            break
        total_tokens += turn_tokens
        kept.append(turn)
    kept.reverse()

    if len(kept) < len(working):
        logger.info(
            f"Trimmed conversation history from {len(working)} to {len(kept)} messages "
            f"({total_tokens}/{budget} tokens)"
        )

    return kept


def to_turns(messages: Sequence[UIMessage]) -> list[ConversationTurn]:
    """Normalise UI messages into turns without trimming."""
    return [
        ConversationTurn.from_text(message.model_role, message.resolved_content().as_text())
        for message in messages
    ]


def convert_messages_to_history(
    messages: Sequence[UIMessage],
    model_id: str | None = None,
    *,
    max_messages: int = MAX_HISTORY_MESSAGES,
    token_budget: int | None = None,
) -> list[ConversationTurn]:
    """Convert the UI message log into trimmed, model-ready turns."""
    return trim_history(
        to_turns(messages),
        model_id,
        max_messages=max_messages,
        token_budget=token_budget,
    )


def get_history_token_stats(
    messages: Sequence[UIMessage],
    model_id: str | None = None,
) -> HistoryTokenStats:
    """Summarise how a message log fares against the model's budget."""
    history = convert_messages_to_history(messages, model_id)
    estimated = sum(estimate_token_count(turn.text) for turn in history)
    limit = history_token_budget(model_id)
    return HistoryTokenStats(
        total_messages=len(messages),
        processed_messages=len(history),
        estimated_tokens=estimated,
        token_limit=limit,
        within_limit=estimated <= limit,
        message_limit=MAX_HISTORY_MESSAGES,
    )


def get_history_config() -> HistoryConfig:
    return HistoryConfig(token_ratio=HISTORY_TOKEN_RATIO, max_messages=MAX_HISTORY_MESSAGES)
