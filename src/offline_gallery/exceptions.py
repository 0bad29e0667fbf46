"""Exceptions raised by the annotation and retrieval engine."""


class GalleryError(Exception):
    """Base exception for gallery operations."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigError(GalleryError):
    """Raised when a configuration value is out of range or malformed."""


class EmbeddingDimensionError(GalleryError):
    """Raised when two embeddings that must be combined differ in length."""


class ConcurrentUpdateError(GalleryError):
    """Raised when a person's average embedding changed since it was read."""


class ProviderError(GalleryError):
    """Raised when an inference provider cannot produce a result."""


class ModelNotLoadedError(ProviderError):
    """Raised when a provider is used before its model was loaded."""
