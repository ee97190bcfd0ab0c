"""Streaming ingestion of uploaded documents into fragments."""

from ragchat.ingestion.processor import (
    IngestionObserver,
    SliceOutcome,
    StreamingFileProcessor,
    create_streaming_processor,
    estimate_memory_usage,
)

__all__ = [
    "IngestionObserver",
    "SliceOutcome",
    "StreamingFileProcessor",
    "create_streaming_processor",
    "estimate_memory_usage",
]
