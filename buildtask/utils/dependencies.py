# buildtask/utils/dependencies.py
from functools import lru_cache

from buildtask.config.settings import settings
from buildtask.services.artifact_store import ArtifactStore


@lru_cache()
def get_artifact_store() -> ArtifactStore:
    """Artifact store rooted at the configured reports storage path"""
    return ArtifactStore(settings.get_storage_root())
