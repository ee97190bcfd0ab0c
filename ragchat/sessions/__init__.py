"""Session persistence and per-session uploaded files.

The store is the only resource mutated by concurrent requests for the same
session; every mutation goes through its atomic ``save``/``update``.
"""

from ragchat.sessions.files import UploadedFileStore, parse_document_id
from ragchat.sessions.store import JsonSessionStore, SessionStore

__all__ = ["JsonSessionStore", "SessionStore", "UploadedFileStore", "parse_document_id"]
