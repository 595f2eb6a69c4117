"""
YAML-backed registration store.

Every mutation runs inside one FileLock critical section, so the uniqueness
checks and the write form a single decision even with several worker
processes sharing the data directory.
"""
import logging
import os
import random
import tempfile
import uuid
from datetime import datetime

import yaml
from filelock import FileLock

from .errors import CapacityError, DuplicateTeamName, NotFound, ValidationError
from .models import FLAG_KEYS, FORM_KEYS, IMMUTABLE_KEYS, Registration
from .validation import DEFAULT_EMAIL_DOMAIN, clean_form, normalize_team_name, validate_registration

logger = logging.getLogger(__name__)

REGISTRATIONS_FILENAME = 'registrations.yaml'
TEAM_NUMBER_PREFIX = 'TEAM'
MAX_TEAM_NUMBER_ATTEMPTS = 1000


def generate_team_number() -> str:
    return f'{TEAM_NUMBER_PREFIX}{random.randint(10000, 99999)}'


class RegistrationStore:
    def __init__(self, data_dir, max_attempts=MAX_TEAM_NUMBER_ATTEMPTS, lock_timeout=10,
                 domain=DEFAULT_EMAIL_DOMAIN):
        os.makedirs(data_dir, exist_ok=True)
        self.data_dir = data_dir
        self.domain = domain
        self.path = os.path.join(data_dir, REGISTRATIONS_FILENAME)
        self.max_attempts = max_attempts
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    def _load(self, strict=False) -> list:
        """Load raw record dicts.

        A corrupt file reads as empty for listing, but a mutation (strict)
        re-raises so the file is never overwritten with an empty list.
        """
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f'Failed to parse {self.path}: {e}')
            if strict:
                raise
            return []
        if not data or not isinstance(data.get('registrations'), list):
            return []
        return data['registrations']

    def _save(self, records: list):
        """Write to a temp file beside the data file, then swap it in.

        Unlocked readers see either the old file or the new one, never a
        truncated one.
        """
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix='.registrations-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.dump({'registrations': records}, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _records(self, strict=False) -> list:
        return [Registration.from_dict(r) for r in self._load(strict)]

    def is_team_name_taken(self, name: str) -> bool:
        """Case-insensitive check against every stored team name."""
        key = normalize_team_name(name)
        return any(normalize_team_name(r.team_name) == key for r in self._records())

    def allocate_team_number(self) -> str:
        """Pick a TEAM##### value not used by any stored record."""
        with self._lock:
            used = {r.team_number for r in self._records(strict=True)}
            for _ in range(self.max_attempts):
                candidate = generate_team_number()
                if candidate not in used:
                    return candidate
        logger.error(f'No free team number after {self.max_attempts} attempts')
        raise CapacityError()

    def create(self, registration: Registration) -> Registration:
        """Persist a new registration with server-assigned fields.

        Raises DuplicateTeamName (store untouched) or CapacityError.
        """
        with self._lock:
            records = self._records(strict=True)
            key = normalize_team_name(registration.team_name)
            if any(normalize_team_name(r.team_name) == key for r in records):
                raise DuplicateTeamName()

            registration.id = uuid.uuid4().hex
            registration.team_number = self.allocate_team_number()
            registration.round2 = False
            registration.certificate_sent = False
            registration.created_at = datetime.now()

            records.append(registration)
            self._save([r.to_dict() for r in records])
        logger.info(f'Registered team {registration.team_name!r} as {registration.team_number}')
        return registration

    def get(self, reg_id: str) -> Registration:
        for r in self._records():
            if r.id == reg_id:
                return r
        raise NotFound()

    def update(self, reg_id: str, fields: dict) -> Registration:
        """Merge ``fields`` (wire names) into the record with id ``reg_id``."""
        errors = {}
        for key, value in fields.items():
            if key in IMMUTABLE_KEYS:
                errors[key] = f'{key} cannot be changed'
            elif key in FLAG_KEYS:
                if not isinstance(value, bool):
                    errors[key] = f'{key} must be true or false'
            elif key not in FORM_KEYS:
                errors[key] = f'Unknown field {key}'
            elif value is not None and not isinstance(value, str):
                errors[key] = f'{key} must be text'
        if errors:
            raise ValidationError(errors)

        with self._lock:
            records = self._records(strict=True)
            target = next((r for r in records if r.id == reg_id), None)
            if target is None:
                raise NotFound()
            if 'teamName' in fields:
                key = normalize_team_name(fields['teamName'])
                if any(r is not target and normalize_team_name(r.team_name) == key for r in records):
                    raise DuplicateTeamName()
            merged = target.to_dict()
            merged.update(fields)
            merged.update(clean_form(merged))
            errors = validate_registration(merged, domain=self.domain)
            if errors:
                raise ValidationError(errors)
            updated = Registration.from_dict(merged)
            records[records.index(target)] = updated
            self._save([r.to_dict() for r in records])
        logger.info(f'Updated registration {reg_id}: {sorted(fields)}')
        return updated

    def toggle(self, reg_id: str, field: str) -> Registration:
        """Flip a boolean flag in one read-modify-write step."""
        if field not in FLAG_KEYS:
            raise ValidationError({field: f'{field} is not a flag'})
        with self._lock:
            current = self.get(reg_id)
            value = current.round2 if field == 'round2' else current.certificate_sent
            return self.update(reg_id, {field: not value})

    def list_all(self) -> list:
        """All registrations, newest first."""
        return sorted(self._records(), key=lambda r: r.created_at, reverse=True)
