# emergencies/exceptions.py
"""
Lifecycle errors, rendered by DRF as JSON {"detail": ..., "code": ...}

Validation problems use rest_framework.exceptions.ValidationError (400)
and unknown ids use rest_framework.exceptions.NotFound (404).
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class Conflict(APIException):
    """The operation lost a race or is not allowed in the current state"""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request could not be completed in its current state.'
    default_code = 'conflict'


class AlreadyMatched(Conflict):
    default_detail = 'This request has already been matched.'
    default_code = 'already_matched'


class AlreadyResponded(Conflict):
    default_detail = 'You have already responded to this request.'
    default_code = 'already_responded'


class RequestNotOpen(Conflict):
    default_detail = 'This request is no longer open.'
    default_code = 'request_not_open'


class IllegalTransition(Conflict):
    default_detail = 'This status change is not allowed.'
    default_code = 'illegal_transition'


class DuplicateMatch(Conflict):
    default_detail = 'A match for this donor already exists.'
    default_code = 'duplicate_match'


class UpstreamError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The donor database is temporarily unavailable.'
    default_code = 'upstream_error'
