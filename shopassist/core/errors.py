"""
Failure kinds surfaced by the similarity and comparison resolvers.

Only StorageError is absorbed inside the domain layer (the cache is an
optimization); every other kind reaches the caller as-is.
"""


class ShopAssistError(Exception):
    """Base exception for the resolution pipeline."""
    pass


class NotFound(ShopAssistError):
    """A referenced product id does not resolve in the catalog."""

    def __init__(self, message: str, product_id: int | None = None):
        super().__init__(message)
        self.product_id = product_id


class InvalidArgument(ShopAssistError):
    """The request cannot be served with the given inputs."""
    pass


class UpstreamFormatError(ShopAssistError):
    """The generator answered, but not with the JSON shape we asked for."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class GenerationError(ShopAssistError):
    """The generator call itself failed (network, quota, timeout)."""
    pass


class StorageError(ShopAssistError):
    """The cache store failed on read or write."""
    pass
