"""Release indexing package."""

from .content import artifact_digest, index_artifacts, read_chunks
from .models import AppIndex, ModuleDiff
from .release import Descriptor, discover_descriptors, index_release, parse_descriptor

__all__ = [
    "AppIndex",
    "Descriptor",
    "ModuleDiff",
    "artifact_digest",
    "discover_descriptors",
    "index_artifacts",
    "index_release",
    "parse_descriptor",
    "read_chunks",
]
