"""Request orchestration for the chat and upload paths."""

from ragchat.orchestrator.chat import ChatOrchestrator, ChatTurn, validate_chat_request
from ragchat.orchestrator.upload import UploadService

__all__ = ["ChatOrchestrator", "ChatTurn", "UploadService", "validate_chat_request"]
