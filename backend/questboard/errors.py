from __future__ import annotations


class DomainError(Exception):
    """Base for errors surfaced verbatim to API callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 409


class DuplicatePurchaseError(ConflictError):
    pass


class DependencyError(DomainError):
    """Storage or payment gateway failure."""
    status_code = 502


class SignatureError(DomainError):
    status_code = 401
