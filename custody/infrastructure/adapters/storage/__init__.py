"""Artifact storage adapters."""

from custody.infrastructure.adapters.storage.local_artifact_store import (
    LocalArtifactStore,
)

__all__ = ["LocalArtifactStore"]
