from __future__ import annotations


class DomainError(Exception):
    """Base for every error the core hands back to its callers."""

    code = "domain_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotAuthorized(DomainError):
    code = "not_authorized"


class NotFoundError(DomainError):
    code = "not_found"


class UnknownGrantee(NotFoundError):
    code = "unknown_grantee"


class GrantNotFound(NotFoundError):
    code = "grant_not_found"


class ConflictError(DomainError):
    code = "conflict"


class AlreadyShared(ConflictError):
    code = "already_shared"


class SelfShareRejected(DomainError):
    code = "self_share_rejected"


class ValidationError(DomainError):
    code = "validation_error"


class StoreUnavailable(DomainError):
    code = "store_unavailable"
