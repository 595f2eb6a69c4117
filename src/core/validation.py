"""
Field validation shared by the admission workflow and the server.

Both sides call ``validate_registration`` so the rules cannot drift apart.
"""
from .models import FORM_KEYS

DEFAULT_EMAIL_DOMAIN = '@vitapstudent.ac.in'
MIN_PASSWORD_LENGTH = 8

REQUIRED_MESSAGES = {
    'headName': 'Head name required',
    'headRegNo': 'Registration number required',
    'contact': 'Contact number required',
    'member1Name': 'Member 1 name required',
    'member1Reg': 'Member 1 reg no required',
    'member2Name': 'Member 2 name required',
    'member2Reg': 'Member 2 reg no required',
}


def normalize_team_name(name: str) -> str:
    """Key used for case-insensitive team name comparison."""
    return (name or '').strip().casefold()


def clean_form(form: dict) -> dict:
    """Return the form fields only, with surrounding whitespace stripped.

    The password is kept exactly as entered.
    """
    cleaned = {}
    for key in FORM_KEYS:
        value = form.get(key)
        if value is None:
            value = ''
        value = str(value)
        cleaned[key] = value if key == 'password' else value.strip()
    return cleaned


def email_error(email: str, domain: str = DEFAULT_EMAIL_DOMAIN):
    """Return an error message for ``email``, or None if acceptable."""
    email = (email or '').strip()
    if not email or not email.endswith(domain) or len(email) <= len(domain):
        return f'Valid {domain} email required'
    # no spaces or control characters; they would end up in mail headers
    if any(ch.isspace() or not ch.isprintable() for ch in email):
        return f'Valid {domain} email required'
    return None


def validate_registration(form: dict, known_team_names=(), domain: str = DEFAULT_EMAIL_DOMAIN) -> dict:
    """Validate a registration form.

    Args:
        form: Field values keyed by wire name (teamName, headEmail, ...).
        known_team_names: Team names already registered.
        domain: Required email suffix for the head email.

    Returns:
        Dict of field name -> message. Empty when the form is valid.
    """
    form = clean_form(form)
    errors = {}

    team_name = form['teamName']
    if not team_name:
        errors['teamName'] = 'Team name is required'
    else:
        taken = {normalize_team_name(n) for n in known_team_names}
        if normalize_team_name(team_name) in taken:
            errors['teamName'] = 'Team name already taken'

    if not form['headName']:
        errors['headName'] = REQUIRED_MESSAGES['headName']

    message = email_error(form['headEmail'], domain)
    if message:
        errors['headEmail'] = message

    if len(form['password']) < MIN_PASSWORD_LENGTH:
        errors['password'] = f'Password must be at least {MIN_PASSWORD_LENGTH} characters'

    for key in ('headRegNo', 'contact', 'member1Name', 'member1Reg', 'member2Name', 'member2Reg'):
        if not form[key]:
            errors[key] = REQUIRED_MESSAGES[key]

    return errors
