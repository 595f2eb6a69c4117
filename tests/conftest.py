"""
Shared pytest fixtures for the registration service tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import tempfile

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep the module-level store out of the repository while app.py is imported
os.environ.setdefault('REGISTRATION_DATA_DIR', tempfile.mkdtemp(prefix='registration-tests-'))
os.environ.setdefault('MAIL_SUPPRESS_SEND', 'true')

from core.otp import OtpVerifier
from core.store import RegistrationStore


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingMailer:
    """Stands in for the mail transport and remembers the last code per email."""

    def __init__(self):
        self.sent = []

    def __call__(self, email, code):
        self.sent.append((email, code))

    def last_code(self, email):
        for sent_email, code in reversed(self.sent):
            if sent_email == email:
                return code
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def verifier(mailer, clock):
    return OtpVerifier(mailer, clock=clock)


@pytest.fixture
def store(tmp_path):
    return RegistrationStore(str(tmp_path / 'data'))


@pytest.fixture
def valid_form():
    """A complete, valid registration form keyed by wire name."""
    return {
        'teamName': 'Code Crafters',
        'headName': 'Asha Rao',
        'headEmail': 'asha.rao@vitapstudent.ac.in',
        'password': 'secret123',
        'headRegNo': '22BCE1001',
        'contact': '9876543210',
        'altContact': '',
        'member1Name': 'Ravi Kumar',
        'member1Reg': '22BCE1002',
        'member2Name': 'Meera Nair',
        'member2Reg': '22BCE1003',
    }


@pytest.fixture
def app_env(store, verifier, monkeypatch):
    """Point the Flask app at the per-test store and OTP verifier."""
    import app as app_module
    monkeypatch.setattr(app_module, 'store', store)
    monkeypatch.setattr(app_module, 'otp_verifier', verifier)
    monkeypatch.setattr(app_module, 'REQUIRE_VERIFIED_EMAIL', True)
    return app_module


@pytest.fixture
def client(app_env):
    """Create a Flask test client."""
    app_env.app.config['TESTING'] = True
    with app_env.app.test_client() as client:
        yield client
