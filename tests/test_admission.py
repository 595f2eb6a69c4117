"""
Tests for the client-side admission workflow.

The workflow runs against an in-process backend wired to a real store and
OTP verifier, so the full request -> verify -> submit path is exercised.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core import admission
from core.admission import AdmissionWorkflow
from core.errors import (ConnectivityError, DuplicateTeamName, EmailNotVerified, Expired,
                         Mismatch, ValidationError, WorkflowError)
from core.models import Registration
from core.validation import clean_form, validate_registration


class LocalBackend:
    """Same surface as ApiClient, served straight from the store."""

    def __init__(self, store, verifier):
        self.store = store
        self.verifier = verifier
        self.online = True
        self.created = 0

    def _check_online(self):
        if not self.online:
            raise ConnectivityError()

    def list_registrations(self):
        self._check_online()
        return [r.to_public_dict() for r in self.store.list_all()]

    def send_otp(self, email):
        self._check_online()
        self.verifier.request_code(email)
        return 'OTP sent'

    def verify_otp(self, email, otp):
        self._check_online()
        self.verifier.verify_code(email, otp)
        return 'Email verified successfully!'

    def create_registration(self, form):
        self._check_online()
        form = clean_form(form)
        errors = validate_registration(form)
        if errors:
            raise ValidationError(errors)
        self.created += 1
        return self.store.create(Registration.from_dict(form)).to_public_dict()


@pytest.fixture
def backend(store, verifier):
    return LocalBackend(store, verifier)


@pytest.fixture
def workflow(backend):
    wf = AdmissionWorkflow(backend)
    wf.refresh()
    return wf


def fill(workflow, form):
    workflow.update(**form)


def verify(workflow, mailer):
    workflow.request_otp()
    email = workflow.form['headEmail'].strip()
    workflow.verify_otp(mailer.last_code(email))


class TestHappyPath:
    """Form entry through to a confirmed registration."""

    def test_full_admission(self, workflow, mailer, valid_form, store):
        assert workflow.state == admission.EDITING
        fill(workflow, valid_form)
        workflow.request_otp()
        assert workflow.state == admission.OTP_REQUESTED
        workflow.verify_otp(mailer.last_code(valid_form['headEmail']))
        assert workflow.state == admission.OTP_VERIFIED

        record = workflow.submit()

        assert workflow.state == admission.CONFIRMED
        assert record['teamNumber'].startswith('TEAM')
        assert workflow.recent == record
        assert workflow.registrations[0] == record
        assert record['teamNumber'] in workflow.message
        assert all(v == '' for v in workflow.form.values())
        assert workflow.verified_email is None
        assert [r.team_name for r in store.list_all()] == ['Code Crafters']

    def test_confirmed_is_terminal(self, workflow, mailer, valid_form):
        fill(workflow, valid_form)
        verify(workflow, mailer)
        workflow.submit()
        with pytest.raises(WorkflowError):
            workflow.set_field('teamName', 'Another')
        with pytest.raises(WorkflowError):
            workflow.submit()

    def test_start_over(self, workflow, mailer, valid_form):
        fill(workflow, valid_form)
        verify(workflow, mailer)
        workflow.submit()
        workflow.start_over()
        assert workflow.state == admission.EDITING
        assert len(workflow.registrations) == 1


class TestValidationAndGate:
    """Local validation and the verification gate."""

    def test_invalid_fields_block_submit(self, workflow, backend, valid_form):
        valid_form['password'] = 'short'
        valid_form['member2Reg'] = ''
        fill(workflow, valid_form)
        with pytest.raises(ValidationError):
            workflow.submit()
        assert set(workflow.errors) == {'password', 'member2Reg'}
        assert workflow.state == admission.EDITING
        assert workflow.form['teamName'] == 'Code Crafters'
        assert backend.created == 0

    def test_submit_without_verification(self, workflow, backend, valid_form):
        fill(workflow, valid_form)
        with pytest.raises(EmailNotVerified):
            workflow.submit()
        assert 'headEmail' in workflow.errors
        assert backend.created == 0

    def test_verified_email_must_match_current_email(self, workflow, mailer, backend, valid_form):
        """Changing the email after verification re-opens the gate."""
        fill(workflow, valid_form)
        verify(workflow, mailer)
        workflow.set_field('headEmail', 'someone.else@vitapstudent.ac.in')
        assert workflow.state == admission.EDITING
        with pytest.raises(EmailNotVerified):
            workflow.submit()
        assert backend.created == 0

    def test_known_team_name_rejected_locally(self, workflow, mailer, backend, store, valid_form):
        store.create(Registration.from_dict(dict(valid_form, teamName='code CRAFTERS')))
        workflow.refresh()
        fill(workflow, valid_form)
        verify(workflow, mailer)
        with pytest.raises(ValidationError):
            workflow.submit()
        assert workflow.errors == {'teamName': 'Team name already taken'}
        assert backend.created == 0

    def test_request_otp_requires_domain(self, workflow, mailer, valid_form):
        valid_form['headEmail'] = 'asha@gmail.com'
        fill(workflow, valid_form)
        with pytest.raises(ValidationError):
            workflow.request_otp()
        assert 'headEmail' in workflow.errors
        assert mailer.sent == []
        assert workflow.state == admission.EDITING

    def test_editing_clears_field_error(self, workflow, valid_form):
        fill(workflow, valid_form)
        with pytest.raises(EmailNotVerified):
            workflow.submit()
        workflow.set_field('headEmail', valid_form['headEmail'])
        assert 'headEmail' not in workflow.errors

    def test_unknown_field(self, workflow):
        with pytest.raises(KeyError):
            workflow.set_field('nickname', 'x')


class TestOtpStates:
    """OTP failures and the states they leave behind."""

    def test_mismatch_stays_requested(self, workflow, mailer, valid_form):
        fill(workflow, valid_form)
        workflow.request_otp()
        code = mailer.last_code(valid_form['headEmail'])
        wrong = '000000' if code != '000000' else '111111'
        with pytest.raises(Mismatch):
            workflow.verify_otp(wrong)
        assert workflow.state == admission.OTP_REQUESTED
        assert 'otp' in workflow.errors
        workflow.verify_otp(code)
        assert workflow.state == admission.OTP_VERIFIED

    def test_expired_returns_to_editing(self, workflow, mailer, clock, valid_form):
        fill(workflow, valid_form)
        workflow.request_otp()
        clock.advance(10 * 60 + 1)
        with pytest.raises(Expired):
            workflow.verify_otp(mailer.last_code(valid_form['headEmail']))
        assert workflow.state == admission.EDITING
        assert workflow.form['teamName'] == 'Code Crafters'


class TestServerAuthority:
    """The server decides; the workflow shows only confirmed state."""

    def test_race_on_team_name(self, store, verifier, mailer, valid_form):
        """Two sessions pass local checks against a stale list; the second fails."""
        first = AdmissionWorkflow(LocalBackend(store, verifier))
        second = AdmissionWorkflow(LocalBackend(store, verifier))
        first.refresh()
        second.refresh()

        fill(first, valid_form)
        fill(second, dict(valid_form, headEmail='ravi@vitapstudent.ac.in', teamName='CODE CRAFTERS'))
        verify(first, mailer)
        verify(second, mailer)

        first.submit()
        with pytest.raises(DuplicateTeamName):
            second.submit()
        assert second.state == admission.EDITING
        assert second.form['teamName'] == 'CODE CRAFTERS'
        assert second.registrations == []
        assert second.errors == {'api': 'Team name already taken.'}
        assert len(store.list_all()) == 1

    def test_connectivity_error_on_submit(self, workflow, backend, mailer, valid_form):
        fill(workflow, valid_form)
        verify(workflow, mailer)
        backend.online = False
        with pytest.raises(ConnectivityError):
            workflow.submit()
        assert workflow.state == admission.EDITING
        assert workflow.errors == {'api': ConnectivityError.default_message}
        backend.online = True
        assert workflow.submit()['teamName'] == 'Code Crafters'

    def test_refresh_offline(self, backend, store, verifier):
        backend.online = False
        wf = AdmissionWorkflow(backend)
        with pytest.raises(ConnectivityError):
            wf.refresh()
        assert 'api' in wf.errors

    def test_apply_confirmed_replaces_stale_copy(self, workflow):
        workflow.registrations = [{'id': 'a', 'round2': False}, {'id': 'b', 'round2': False}]
        workflow.apply_confirmed({'id': 'b', 'round2': True})
        assert workflow.registrations == [{'id': 'b', 'round2': True}, {'id': 'a', 'round2': False}]
