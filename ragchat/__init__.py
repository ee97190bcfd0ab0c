"""RAG Chat - Retrieval-Augmented Generation over uploaded documents.

Combines FastAPI for HTTP streaming, Agno for agent orchestration and
knowledge retrieval, and Pydantic for data validation.

Components:
    - api: HTTP endpoints and Server-Sent Events streaming
    - orchestrator: chat and upload request lifecycles
    - ingestion: bounded-memory streaming file processing
    - parsing: text extraction and chunking
    - history: token-aware conversation history trimming
    - sessions: durable session state and stored uploads
    - streaming: typed stream events and SSE framing
    - agent: LLM orchestration, retrieval, and tools
    - models: session, fragment, and request/response schemas
"""

__version__ = "0.1.0"
