"""
Pydantic models for the manifest stored inside every batch container.

The manifest is the first member of each container and records, for every
artifact, the hash it is keyed by and the partitioned path it was stored
under, so the container can be unpacked without recomputing either.
"""

from typing import List, Optional

from pydantic import BaseModel

MANIFEST_NAME = "manifest.json"


class ManifestEntry(BaseModel):
    """Represents one artifact in a container."""

    content_hash: str
    path: str
    notes: str
    sequence_index: Optional[int] = None


class BatchManifest(BaseModel):
    """Represents the full manifest of a single batch container."""

    batch: int
    entries: List[ManifestEntry]
