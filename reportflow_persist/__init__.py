"""
Persistence facade exposing the blob store and the XLSX-backed template registry.
"""

from .schemas.template import TemplateQuery, TemplateRecord
from .stores.base_store import (
    BlobInfo,
    BlobNotFoundError,
    BlobStore,
    PersistHealth,
    StoreError,
    StoreInitializationError,
    StoreLockedError,
    StoreValidationError,
)
from .stores.blob_store import LocalBlobStore
from .stores.template_store import TemplateStore, init_template_store

__all__ = [
    "BlobInfo",
    "BlobNotFoundError",
    "BlobStore",
    "LocalBlobStore",
    "PersistHealth",
    "StoreError",
    "StoreInitializationError",
    "StoreLockedError",
    "StoreValidationError",
    "TemplateQuery",
    "TemplateRecord",
    "TemplateStore",
    "init_template_store",
]
