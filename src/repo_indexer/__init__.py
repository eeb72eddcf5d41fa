"""
Repo Indexer - keeps a Qdrant vector index in sync with a git repository.

Mirrors the files tracked at HEAD into a vector collection using Ollama
embeddings, and reconstructs per-commit file changes from git history.
"""

__version__ = "0.4.2"
