"""
Client-side admission workflow: form entry, OTP verification and submission.

The workflow drives a backend with the same methods as ``client.ApiClient``
and only ever shows records the server has confirmed.
"""
import logging

from .errors import (ConnectivityError, EmailNotVerified, Expired, Mismatch, NotRequested,
                     RegistrationError, ValidationError, WorkflowError)
from .models import FORM_KEYS, empty_form
from .validation import DEFAULT_EMAIL_DOMAIN, email_error, validate_registration

logger = logging.getLogger(__name__)

EDITING = 'editing'
OTP_REQUESTED = 'otp_requested'
OTP_VERIFIED = 'otp_verified'
SUBMITTING = 'submitting'
CONFIRMED = 'confirmed'


class AdmissionWorkflow:
    def __init__(self, backend, domain=DEFAULT_EMAIL_DOMAIN):
        self.backend = backend
        self.domain = domain
        self.form = empty_form()
        self.registrations = []
        self.recent = None
        self.state = EDITING
        self.requested_email = None
        self.verified_email = None
        self.errors = {}
        self.message = ''

    def _require_open(self):
        if self.state in (SUBMITTING, CONFIRMED):
            raise WorkflowError()

    def _fail(self, error, field='api', state=EDITING):
        self.errors = {field: error.message}
        self.state = state
        raise error

    def refresh(self):
        """Reload the known registrations from the server."""
        try:
            self.registrations = list(self.backend.list_registrations())
        except ConnectivityError as e:
            self.errors = {'api': e.message}
            raise
        return self.registrations

    def set_field(self, name, value):
        self._require_open()
        if name not in FORM_KEYS:
            raise KeyError(name)
        self.form[name] = value
        self.errors.pop(name, None)
        self.errors.pop('otp', None)
        self.errors.pop('api', None)
        if name == 'headEmail' and self.state != EDITING:
            email = (value or '').strip()
            if email not in (self.requested_email, self.verified_email):
                self.state = EDITING

    def update(self, **fields):
        for name, value in fields.items():
            self.set_field(name, value)

    def request_otp(self):
        """Ask the server to mail a code to the current head email."""
        self._require_open()
        email = (self.form['headEmail'] or '').strip()
        self.message = ''
        problem = email_error(email, self.domain)
        if problem:
            self._fail(ValidationError({'headEmail': problem}), field='headEmail')
        self.errors = {}
        try:
            self.message = self.backend.send_otp(email)
        except RegistrationError as e:
            self._fail(e)
        self.requested_email = email
        self.state = OTP_REQUESTED
        return self.message

    def verify_otp(self, code):
        """Submit the code the user typed. Mismatches may be retried in place."""
        self._require_open()
        email = (self.form['headEmail'] or '').strip()
        self.message = ''
        self.errors = {}
        try:
            self.message = self.backend.verify_otp(email, code)
        except Mismatch as e:
            self._fail(e, field='otp', state=OTP_REQUESTED)
        except (Expired, NotRequested) as e:
            self.requested_email = None
            self._fail(e, field='otp')
        except RegistrationError as e:
            self._fail(e, field='otp', state=self.state)
        self.verified_email = email
        self.state = OTP_VERIFIED
        return self.message

    def validate(self):
        known = [r.get('teamName', '') for r in self.registrations]
        return validate_registration(self.form, known, self.domain)

    def submit(self):
        """Validate, check the verification gate and create the registration.

        Returns the record the server created.
        """
        self._require_open()
        self.message = ''
        errors = self.validate()
        if errors:
            self.errors = errors
            self.state = EDITING
            raise ValidationError(errors)
        email = self.form['headEmail'].strip()
        if self.verified_email != email:
            self._fail(EmailNotVerified(), field='headEmail')

        self.errors = {}
        self.state = SUBMITTING
        try:
            record = self.backend.create_registration(dict(self.form))
        except RegistrationError as e:
            self._fail(e)

        self.apply_confirmed(record)
        self.recent = record
        self.message = f"Registration successful! Your Team Number: {record['teamNumber']}"
        self.form = empty_form()
        self.requested_email = None
        self.verified_email = None
        self.state = CONFIRMED
        logger.info(f"Registration confirmed for {record['teamName']!r}")
        return record

    def apply_confirmed(self, record):
        """Put a server-confirmed record at the head of the local list."""
        self.registrations = [record] + [r for r in self.registrations if r.get('id') != record.get('id')]

    def start_over(self):
        """Open a fresh session after a confirmed registration."""
        self.form = empty_form()
        self.requested_email = None
        self.verified_email = None
        self.errors = {}
        self.message = ''
        self.state = EDITING
