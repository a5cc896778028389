"""docingest: document ingestion and retrieval for the CRM assistant.

Extracts text from uploaded files, chunks it, embeds every chunk through a
rate-limited AI provider, persists documents and chunks, and searches them
by vector similarity with a text-search fallback.
"""

__version__ = "0.1.0"
