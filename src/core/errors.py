"""
Error taxonomy for the registration admission workflow.

Every error carries a machine-readable ``code`` and the HTTP ``status`` the web
layer answers with, so the API client can map a response back onto the same
class.
"""


class RegistrationError(Exception):
    code = 'registration_error'
    status = 400
    default_message = 'Registration request failed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'error': self.code}


class ValidationError(RegistrationError):
    """One or more fields failed validation. ``errors`` maps field -> message."""
    code = 'validation_error'
    default_message = 'Please correct the highlighted fields.'

    def __init__(self, errors=None, message=None):
        self.errors = dict(errors or {})
        if message is None and self.errors:
            message = next(iter(self.errors.values()))
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class DuplicateTeamName(RegistrationError):
    code = 'duplicate_team_name'
    default_message = 'Team name already taken.'


class EmailNotVerified(RegistrationError):
    code = 'email_not_verified'
    default_message = 'Please verify your email first.'


class NotRequested(RegistrationError):
    code = 'otp_not_requested'
    default_message = 'No OTP was requested for this email. Please request a new one.'


class Mismatch(RegistrationError):
    code = 'otp_mismatch'
    default_message = 'Invalid OTP. Please try again.'


class Expired(RegistrationError):
    code = 'otp_expired'
    default_message = 'OTP has expired. Please request a new one.'


class NotFound(RegistrationError):
    code = 'not_found'
    status = 404
    default_message = 'Registration not found'


class DeliveryError(RegistrationError):
    code = 'delivery_error'
    status = 502
    default_message = 'Failed to send OTP email. Please try again later.'


class CapacityError(RegistrationError):
    code = 'capacity_error'
    status = 503
    default_message = 'Could not allocate a team number. Please try again later.'


class ConnectivityError(RegistrationError):
    code = 'connectivity_error'
    status = 503
    default_message = 'Could not connect to the server. Is it running?'


class WorkflowError(RegistrationError):
    code = 'workflow_error'
    status = 409
    default_message = 'That action is not available right now.'


ERRORS_BY_CODE = {cls.code: cls for cls in (
    ValidationError, DuplicateTeamName, EmailNotVerified, NotRequested, Mismatch,
    Expired, NotFound, DeliveryError, CapacityError, ConnectivityError, WorkflowError,
)}
