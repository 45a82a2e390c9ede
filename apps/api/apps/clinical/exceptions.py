"""
Clinical record errors.

Each error is a DRF APIException so views can let it propagate and the
default exception handler renders the right status code.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class InvalidInput(APIException):
    """Malformed identifier or missing required field."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class RecordNotFound(APIException):
    """Patient, session, clinician or document does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Record not found.'
    default_code = 'not_found'


class Forbidden(APIException):
    """
    Subject may not act on the record.

    The message is deliberately generic: it never says which ownership
    predicate failed.
    """
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to access this record.'
    default_code = 'forbidden'


class Conflict(APIException):
    """Request contradicts current state (already assigned, stale version)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The record changed or is already in the requested state.'
    default_code = 'conflict'


class StoreFailure(APIException):
    """Persistence failed during the primary operation; nothing was committed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'The operation could not be saved.'
    default_code = 'store_failure'


class FileTooLarge(APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = 'File exceeds the maximum allowed size.'
    default_code = 'file_too_large'
