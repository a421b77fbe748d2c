"""Orchestrator package - chunked upload protocol."""
from .chunk_uploader import ChunkUploader
from .core import ChunkedUploadOrchestrator
from .session import UploadSessionInitiator

__all__ = ["ChunkUploader", "ChunkedUploadOrchestrator", "UploadSessionInitiator"]
