"""
Storage module for transcript artifacts.

Local filesystem and S3-compatible bucket backends share the BaseStorage
interface; get_storage() picks one from the configuration.
"""

from podcast_qa.config import PodcastQAConfig

from .base import BaseStorage
from .cloud import CloudStorage
from .local import LocalStorage


def get_storage(config: PodcastQAConfig) -> BaseStorage:
    """Return the storage backend selected by `config.use_cloud_storage`."""
    if config.use_cloud_storage:
        return CloudStorage()
    return LocalStorage()


__all__ = [
    "BaseStorage",
    "CloudStorage",
    "LocalStorage",
    "get_storage",
]
