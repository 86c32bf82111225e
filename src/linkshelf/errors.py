"""Error taxonomy shared by the tree operations, the store and the HTTP layer."""


class LinkshelfError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = 400


class ValidationError(LinkshelfError):
    """Malformed or missing input (empty title, bad id charset, missing url)."""

    status_code = 400


class NotFoundError(LinkshelfError):
    """An address or site title does not resolve against the current tree."""

    status_code = 404


class ConflictError(LinkshelfError):
    """Duplicate category id or duplicate url within one category."""

    status_code = 409


class StorageUnavailableError(LinkshelfError):
    """The key-value backend is not configured or not reachable."""

    status_code = 503
