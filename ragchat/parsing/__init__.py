"""Parsing collaborators for document ingestion.

Responsibilities:
    - Text extraction per slice (pypdf for PDF, UTF-8 decoding for text types)
    - Page-range reading of whole PDFs for streamed ingestion
    - Media type detection from file names
    - Chunking extracted text into bounded, overlapping fragments
"""

from ragchat.parsing.chunking import split_text
from ragchat.parsing.extraction import extract_pdf_pages, extract_text, guess_media_type, open_pdf

__all__ = ["extract_pdf_pages", "extract_text", "guess_media_type", "open_pdf", "split_text"]
