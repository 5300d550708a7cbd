"""
Typed errors raised by the booking services.

Every error carries a machine-readable ``code`` and a ``data`` dict so callers
can tell "already terminal" apart from "not your turn" without parsing
messages. They subclass DRF's ``APIException`` and reach the client through
``booking_exception_handler`` unchanged.
"""
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class BookingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking operation failed."
    default_code = 'booking_error'

    def __init__(self, detail=None, code=None, **data):
        super().__init__(detail, code)
        self.code = code or self.default_code
        self.data = data

    def __str__(self):
        return str(self.detail)


class InvalidTransition(BookingError):
    """A state-machine rule was violated (terminal proposal, closed project, ...)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This transition is not allowed in the current state."
    default_code = 'invalid_transition'


class Unauthorized(BookingError):
    """The actor is not entitled to perform this action."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = 'not_entitled'


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = 'not_found'


class InconsistentProjectState(BookingError):
    """A stored project violates the status invariants. Surfaced, never auto-corrected."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Project status is inconsistent."
    default_code = 'inconsistent_project_state'


class PartialFanoutFailure(BookingError):
    """Some invitations were created and some failed. Created ones stay."""
    status_code = status.HTTP_207_MULTI_STATUS
    default_detail = "Some invitations could not be created."
    default_code = 'partial_fanout_failure'

    def __init__(self, result, detail=None):
        super().__init__(detail, **result.as_dict())
        self.result = result


def booking_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is not None and isinstance(exc, BookingError):
        response.data = {
            'detail': str(exc.detail),
            'code': exc.code,
            **exc.data,
        }

    return response
