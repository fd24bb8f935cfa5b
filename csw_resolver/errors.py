# Exceptions raised by the collaborators around the resolver.
# The resolution core itself never raises; it returns None instead.

from __future__ import annotations


class CswResolverError(Exception):
    """Base class for every error raised by csw_resolver."""


class CatalogConfigError(CswResolverError):
    """The configured catalog URL is malformed, unresolvable or forbidden."""


class CatalogResponseError(CswResolverError):
    """The catalog answered, but not with the expected CSW document."""


class DownloadError(CswResolverError):
    """Downloading the resolved file failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ResourceImportError(CswResolverError):
    """User-facing failure of a whole resource import, naming the resource."""

    def __init__(self, resource_id: str, message: str):
        super().__init__(f"CSW import failed for {resource_id}: {message}")
        self.resource_id = resource_id
