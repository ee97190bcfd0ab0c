"""FastAPI endpoints for the RAG chat service.

HTTP and streaming routes with async request handling. Chat answers are
streamed as Server-Sent Events.

Endpoints:
    - GET /health: Service health status
    - POST /upload: Document upload and ingestion
    - POST /chat/stream: Streaming RAG chat
    - GET/POST/PUT /sessions: Session metadata
    - GET /files/{sessionId::fileName}: Stored document retrieval
    - GET /tools, GET /services-config: Service discovery
"""

from ragchat.api.app import app, create_app

__all__ = ["app", "create_app"]
