"""Per-model capability table.

Keeps unsupported parameters (temperature on reasoning models) away from
the provider, names the output-limit parameter each family expects, and
gives the history manager a context size per model.
Entries are keyed by base model id; variants match by longest prefix.
"""

from dataclasses import dataclass

DEFAULT_HISTORY_TOKEN_LIMIT = 8000


@dataclass(frozen=True)
class ModelCapabilities:
    """What a model family accepts.

    Attributes:
        supports_temperature: Whether a temperature setting may be sent.
        max_tokens_param: Name of the model argument that caps output tokens.
        history_token_limit: Context tokens available for chat history.
    """

    supports_temperature: bool = True
    max_tokens_param: str = "max_tokens"
    history_token_limit: int = DEFAULT_HISTORY_TOKEN_LIMIT


_REASONING = dict(supports_temperature=False, max_tokens_param="max_completion_tokens")

_CAPABILITIES: dict[str, ModelCapabilities] = {
    "googleai/gemini-2.5-flash": ModelCapabilities(history_token_limit=800_000),
    "googleai/gemini-2.5-pro": ModelCapabilities(history_token_limit=800_000),
    "openai/gpt-4.1": ModelCapabilities(history_token_limit=800_000),
    "openai/gpt-4.1-mini": ModelCapabilities(history_token_limit=120_000),
    "openai/gpt-4.1-nano": ModelCapabilities(history_token_limit=120_000),
    "openai/o4-mini": ModelCapabilities(**_REASONING, history_token_limit=120_000),
    "openai/o3": ModelCapabilities(**_REASONING, history_token_limit=120_000),
    "openai/o3-mini": ModelCapabilities(**_REASONING, history_token_limit=120_000),
}

_DEFAULT = ModelCapabilities()


def get_capabilities(model_id: str | None) -> ModelCapabilities:
    """Look up capabilities for a model id.

    Falls back from an exact match to the longest matching prefix, then to
    conservative defaults.
    """
    if not model_id:
        return _DEFAULT
    if model_id in _CAPABILITIES:
        return _CAPABILITIES[model_id]
    prefixes = [prefix for prefix in _CAPABILITIES if model_id.startswith(prefix)]
    if prefixes:
        return _CAPABILITIES[max(prefixes, key=len)]
    return _DEFAULT
