"""Artifact storage for pipeline runs."""

from .interface import REQUESTS_PREFIX, ArtifactStore, run_key
from .local import LocalArtifactStore

__all__ = ["ArtifactStore", "LocalArtifactStore", "REQUESTS_PREFIX", "run_key"]
