"""
Contract System Exceptions

Custom exceptions for template configuration, document generation,
status changes and rendering errors.
"""

from typing import Iterable, Optional


class DocumentError(Exception):
    """Base exception for all contract document errors."""
    pass


class ConfigurationError(DocumentError):
    """
    Raised when template configuration is invalid.

    This includes YAML syntax errors, schema validation failures,
    and integrity issues across definitions (e.g., duplicate names).
    """
    pass


class MissingDocumentType(ConfigurationError):
    """Raised when a template must be created but no document type exists."""

    def __init__(self, message: str = "No document type found in the system"):
        super().__init__(message)


class ValidationError(DocumentError):
    """
    Raised when a single definition or request payload fails validation.

    Contains details about what specifically failed.
    """
    def __init__(self, message: str, document_slug: str = None, field: str = None):
        self.document_slug = document_slug
        self.field = field
        super().__init__(message)


class NotFound(DocumentError):
    """Raised when a template, clause or generated document is absent."""

    def __init__(self, message: str, entity: str = None, identifier=None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(message)


class AlreadyExists(DocumentError):
    """
    Raised when a document was already generated for a (template, rental) pair.

    Carries the number of the existing document so callers can show it.
    """
    def __init__(self, message: str, existing_number: str, document_id: Optional[str] = None):
        self.existing_number = existing_number
        self.document_id = document_id
        super().__init__(message)


class UnresolvedVariable(DocumentError):
    """Raised in strict mode when clause text references unknown placeholders."""

    def __init__(self, names: Iterable[str], template_name: str = None):
        self.names = sorted(set(names))
        self.template_name = template_name
        where = f" in '{template_name}'" if template_name else ""
        super().__init__(f"Unresolved placeholder(s){where}: {', '.join(self.names)}")


class InvalidTransition(DocumentError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move document from '{current}' to '{requested}'")


class TransientFailure(DocumentError):
    """
    Raised when the storage layer fails (connection lost, timeout, lock).

    Wraps the underlying database error. Retrying is up to the caller.
    """
    def __init__(self, message: str, original: Exception = None):
        self.original = original
        super().__init__(message)
