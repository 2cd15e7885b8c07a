"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Sequence


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NerdGraphException(ExternalServiceException):
    """Exception for NerdGraph transport or GraphQL failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("NerdGraph", message, details)


class StorageMutationFailed(ExternalServiceException):
    """Raised when an entity storage mutation is rejected or fails."""

    def __init__(
        self,
        entity_guid: str,
        document_id: str,
        reason: str = "mutation returned no result",
        details: Optional[dict] = None
    ):
        self.entity_guid = entity_guid
        self.document_id = document_id
        super().__init__(
            "Entity Storage",
            f"failed to delete SLO document {document_id} of entity {entity_guid}: {reason}",
            details or {"entity_guid": entity_guid, "document_id": document_id}
        )


class QueryBatchFailed(DomainException):
    """
    Raised (or recorded) when scope queries for one or more SLOs fail
    during a refresh cycle.

    ``failures`` holds one entry per failed SLO (document id + error).
    """

    def __init__(self, failures: Sequence, details: Optional[dict] = None):
        self.failures = list(failures)
        document_ids = [failure.document_id for failure in self.failures]
        super().__init__(
            f"Scope queries failed for {len(document_ids)} SLO(s): {', '.join(document_ids)}",
            details or {"document_ids": document_ids}
        )
