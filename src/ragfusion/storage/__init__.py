"""
Storage — original document bytes kept next to the vector index so an
answer can quote the full source document.
"""

from ragfusion.storage.blob_store import BlobStore, LocalBlobStore, upload_source

__all__ = ["BlobStore", "LocalBlobStore", "upload_source"]
