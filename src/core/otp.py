"""
One-time password issuing and verification for head emails.

Codes live in process memory only; a restart forgets every pending code.
"""
import logging
import random
import threading
import time

from .errors import DeliveryError, Expired, Mismatch, NotRequested, ValidationError
from .models import OtpEntry
from .validation import DEFAULT_EMAIL_DOMAIN, email_error

logger = logging.getLogger(__name__)

OTP_TTL_SECONDS = 10 * 60
VERIFIED_TTL_SECONDS = 60 * 60


def generate_code() -> str:
    return str(random.randint(100000, 999999))


class OtpVerifier:
    """Issues codes keyed by email and checks them.

    ``deliver`` is called as ``deliver(email, code)`` and must raise
    DeliveryError when the mail cannot be sent. ``clock`` returns seconds.
    """

    def __init__(self, deliver, domain=DEFAULT_EMAIL_DOMAIN, ttl_seconds=OTP_TTL_SECONDS,
                 verified_ttl_seconds=VERIFIED_TTL_SECONDS, clock=time.time):
        self.deliver = deliver
        self.domain = domain
        self.ttl_seconds = ttl_seconds
        self.verified_ttl_seconds = verified_ttl_seconds
        self.clock = clock
        self._entries = {}
        self._verified = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(email):
        return (email or '').strip()

    def request_code(self, email: str):
        """Issue a fresh code for ``email`` and mail it, replacing any pending one."""
        message = email_error(email, self.domain)
        if message:
            raise ValidationError({'headEmail': message})
        email = self._key(email)
        entry = OtpEntry(generate_code(), self.clock())
        with self._lock:
            self._entries[email] = entry

        try:
            self.deliver(email, entry.code)
        except DeliveryError:
            with self._lock:
                if self._entries.get(email) is entry:
                    del self._entries[email]
            logger.warning(f'OTP delivery to {email} failed; code discarded')
            raise
        logger.info(f'OTP issued for {email}')

    def verify_code(self, email: str, submitted_code: str) -> bool:
        """Check ``submitted_code`` for ``email``.

        Raises NotRequested, Expired or Mismatch. An expired entry is removed;
        a mismatch leaves the entry in place so the user can retry.
        """
        email = self._key(email)
        submitted_code = str(submitted_code or '').strip()
        now = self.clock()
        with self._lock:
            entry = self._entries.get(email)
            if entry is None:
                raise NotRequested()
            if entry.is_expired(now, self.ttl_seconds):
                del self._entries[email]
                logger.info(f'Expired OTP presented for {email}')
                raise Expired()
            if entry.code != submitted_code:
                logger.info(f'Wrong OTP presented for {email}')
                raise Mismatch()
            del self._entries[email]
            self._verified[email] = now
        logger.info(f'OTP verified for {email}')
        return True

    def is_verified(self, email: str) -> bool:
        email = self._key(email)
        with self._lock:
            verified_at = self._verified.get(email)
            if verified_at is None:
                return False
            if self.clock() - verified_at > self.verified_ttl_seconds:
                del self._verified[email]
                return False
            return True

    def consume_verification(self, email: str):
        """Forget that ``email`` was verified, once a registration used it."""
        with self._lock:
            self._verified.pop(self._key(email), None)

    def has_pending(self, email: str) -> bool:
        with self._lock:
            return self._key(email) in self._entries
