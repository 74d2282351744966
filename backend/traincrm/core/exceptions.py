"""
Custom Exceptions for TrainCRM
==============================

Services raise these instead of generic Exception so the API layer can map
them to HTTP responses in one place (see ``register_exception_handlers``).

Usage:
    from traincrm.core.exceptions import RosterNotFoundError, CapacityExceededError

    if not roster:
        raise RosterNotFoundError(roster_id)
"""

from typing import Optional, Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class TrainCRMError(Exception):
    """Base exception for all TrainCRM errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(TrainCRMError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(TrainCRMError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


class InsufficientRoleError(AuthorizationError):
    """User's role is below the minimum required for the action"""

    def __init__(self, message: str = "Insufficient permissions", required_role: Optional[str] = None):
        super().__init__(message)
        self.code = "INSUFFICIENT_ROLE"
        if required_role:
            self.details["required_role"] = required_role


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(TrainCRMError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class SessionNotFoundError(ResourceNotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Session", session_id)


class RosterNotFoundError(ResourceNotFoundError):
    def __init__(self, roster_id: str):
        super().__init__("Roster", roster_id)


class StudentNotFoundError(ResourceNotFoundError):
    def __init__(self, student_id: str):
        super().__init__("Student", student_id)


class LeadNotFoundError(ResourceNotFoundError):
    def __init__(self, lead_id: str):
        super().__init__("Lead", lead_id)


class OpportunityNotFoundError(ResourceNotFoundError):
    def __init__(self, opportunity_id: str):
        super().__init__("Opportunity", opportunity_id)


class CampaignNotFoundError(ResourceNotFoundError):
    def __init__(self, campaign_id: str):
        super().__init__("Campaign", campaign_id)


class WorkflowNotFoundError(ResourceNotFoundError):
    def __init__(self, workflow_id: str):
        super().__init__("Workflow", workflow_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(TrainCRMError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConfigurationError(ValidationError):
    """A configuration value failed validation"""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.code = "INVALID_CONFIGURATION"
        self.details["problems"] = problems or []


class InvalidStateTransitionError(TrainCRMError):
    """Entity is not in a state that allows the requested change"""

    status_code = 409

    def __init__(self, message: str, current_state: Optional[str] = None):
        details = {"current_state": current_state} if current_state else {}
        super().__init__(message, code="INVALID_STATE", details=details)


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(TrainCRMError):
    """Request conflicts with existing data"""

    status_code = 409

    def __init__(self, message: str, code: str = "CONFLICT", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class AlreadyEnrolledError(ConflictError):
    """Student already holds a place (or waitlist slot)"""

    def __init__(self, student_id: str, container_id: str):
        super().__init__(
            "Student is already enrolled",
            code="ALREADY_ENROLLED",
            details={"student_id": str(student_id), "container_id": str(container_id)}
        )


class DuplicateRecordError(ConflictError):
    def __init__(self, resource_type: str, field: str, value: Any):
        super().__init__(
            f"{resource_type} with {field} '{value}' already exists",
            code="DUPLICATE_RECORD",
            details={"resource_type": resource_type, "field": field}
        )


class CapacityExceededError(ConflictError):
    """Enrollment would exceed the configured capacity"""

    def __init__(self, max_capacity: int, current_enrollment: int, requested: int = 1):
        super().__init__(
            f"Capacity exceeded: {current_enrollment}/{max_capacity} places taken",
            code="CAPACITY_EXCEEDED",
            details={
                "max_capacity": max_capacity,
                "current_enrollment": current_enrollment,
                "requested": requested,
            }
        )


class SchedulingConflictError(ConflictError):
    """Requested time collides with availability, bookings or exceptions"""

    def __init__(self, conflicts: List[Dict[str, Any]], suggested_times: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            "Scheduling conflict detected",
            code="SCHEDULING_CONFLICT",
            details={"conflicts": conflicts, "suggested_times": suggested_times or []}
        )


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: TrainCRMError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "detail": error.message,
        "code": error.code,
        "details": error.details,
    }


async def traincrm_error_handler(request: Request, exc: TrainCRMError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain error handler to the application"""
    app.add_exception_handler(TrainCRMError, traincrm_error_handler)
