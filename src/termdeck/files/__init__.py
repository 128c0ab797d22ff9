"""Remote filesystem access: listing types and file providers."""

from termdeck.files.http_provider import HttpFileProvider
from termdeck.files.local_provider import LocalFileProvider
from termdeck.files.provider import FileProvider
from termdeck.files.types import (
    MutationResult,
    ResourceDescriptor,
    join_path,
    parent_path,
    same_listing,
    sort_entries,
)

__all__ = [
    "FileProvider",
    "HttpFileProvider",
    "LocalFileProvider",
    "MutationResult",
    "ResourceDescriptor",
    "join_path",
    "parent_path",
    "same_listing",
    "sort_entries",
]
