"""UI message log entries and their content variants.

UI messages arrive with content in one of three shapes. The shape is
resolved once, at ingress, into a closed variant that knows how to render
itself as canonical text.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _item_text(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and "text" in item:
        return str(item["text"])
    return json.dumps(item, default=str)


class PlainText(BaseModel):
    kind: Literal["plain"] = "plain"
    value: str

    def as_text(self) -> str:
        return self.value


class Segments(BaseModel):
    kind: Literal["segments"] = "segments"
    items: list[Any]

    def as_text(self) -> str:
        return "".join(_item_text(item) for item in self.items)


class Structured(BaseModel):
    kind: Literal["structured"] = "structured"
    value: Any

    def as_text(self) -> str:
        return _item_text(self.value)


MessageContent = Annotated[PlainText | Segments | Structured, Field(discriminator="kind")]


def parse_content(raw: Any) -> PlainText | Segments | Structured:
    """Resolve raw UI content into its variant.

    Args:
        raw: A string, a list of strings/objects, or any other JSON value.

    Returns:
        The matching content variant. ``None`` becomes empty plain text.
    """
    if raw is None:
        return PlainText(value="")
    if isinstance(raw, str):
        return PlainText(value=raw)
    if isinstance(raw, list | tuple):
        return Segments(items=list(raw))
    return Structured(value=raw)


def normalize_content(raw: Any) -> str:
    """Canonical text for any supported content shape."""
    return parse_content(raw).as_text()


class UIMessage(BaseModel):
    """One entry of the chat UI's message log.

    Accepts ``role`` or ``sender`` for the speaker and ``content`` or
    ``text`` for the body. Anything other than ``user`` is treated as the
    model speaking.
    """

    model_config = ConfigDict(populate_by_name=True)

    role: str = Field(validation_alias=AliasChoices("role", "sender"))
    content: Any = Field(default=None, validation_alias=AliasChoices("content", "text"))

    @property
    def model_role(self) -> Literal["user", "model"]:
        return "user" if self.role == "user" else "model"

    def resolved_content(self) -> PlainText | Segments | Structured:
        return parse_content(self.content)
