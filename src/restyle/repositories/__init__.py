"""Repository layer: metadata rows and image blobs."""

from restyle.repositories.design_row import DesignRowRepository
from restyle.repositories.image_blob import ImageBlobStore

__all__ = [
    "DesignRowRepository",
    "ImageBlobStore",
]
