"""Conversation history conversion and token-aware trimming."""

from ragchat.history.manager import (
    convert_messages_to_history,
    estimate_token_count,
    get_history_config,
    get_history_token_stats,
    history_token_budget,
    trim_history,
)

__all__ = [
    "convert_messages_to_history",
    "estimate_token_count",
    "get_history_config",
    "get_history_token_stats",
    "history_token_budget",
    "trim_history",
]
