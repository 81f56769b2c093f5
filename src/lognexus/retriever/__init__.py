"""Log retrieval package."""

from lognexus.retriever.downloader import (
    DECOMPRESSED_SUFFIX,
    LogRetriever,
    local_name_for,
    retrieve,
)

__all__ = ["LogRetriever", "retrieve", "local_name_for", "DECOMPRESSED_SUFFIX"]
