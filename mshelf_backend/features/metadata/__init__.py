"""Per-directory engagement metadata sidecars."""
from .store import MetadataStore
from .updates import MetadataUpdateService

__all__ = ["MetadataStore", "MetadataUpdateService"]
