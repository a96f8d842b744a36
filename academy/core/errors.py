"""Domain exceptions raised by repositories and translated by the routes."""

from __future__ import annotations


class DomainError(ValueError):
    """A business rule rejected the operation (HTTP 400)."""


class NotFoundError(LookupError):
    """The referenced entity does not exist (HTTP 404)."""


class AccessDeniedError(PermissionError):
    """The caller may not perform the operation (HTTP 403)."""


class CertificateNotEligibleError(DomainError):
    pass


class CertificateRevokedError(DomainError):
    pass
