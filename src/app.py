"""
Flask web application for hackathon team registration.
"""
import os

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from flask_mail import Mail

from core.admin import export_snapshot, filter_by_round2, mark_certificate_sent, promote_to_round2
from core.errors import EmailNotVerified, RegistrationError, ValidationError
from core.mailer import DEFAULT_SIGNATURE, OtpMailer
from core.models import Registration
from core.otp import OtpVerifier
from core.store import MAX_TEAM_NUMBER_ATTEMPTS, RegistrationStore
from core.validation import DEFAULT_EMAIL_DOMAIN, clean_form, validate_registration


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('REGISTRATION_DATA_DIR', os.path.join(BASE_DIR, 'data'))

EMAIL_DOMAIN = os.environ.get('EMAIL_DOMAIN', DEFAULT_EMAIL_DOMAIN)
OTP_TTL_MINUTES = int(os.environ.get('OTP_TTL_MINUTES', 10))
VERIFIED_EMAIL_TTL_MINUTES = int(os.environ.get('VERIFIED_EMAIL_TTL_MINUTES', 60))
REQUIRE_VERIFIED_EMAIL = _env_flag('REQUIRE_VERIFIED_EMAIL', True)
TEAM_NUMBER_MAX_ATTEMPTS = int(os.environ.get('TEAM_NUMBER_MAX_ATTEMPTS', MAX_TEAM_NUMBER_ATTEMPTS))
CERTIFICATE_SIGNATURE = os.environ.get('CERTIFICATE_SIGNATURE', DEFAULT_SIGNATURE)
CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]

app = Flask(__name__)

# Flask-Mail configuration
app.config['MAIL_SERVER'] = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
app.config['MAIL_PORT'] = int(os.environ.get('MAIL_PORT', 587))
app.config['MAIL_USE_TLS'] = _env_flag('MAIL_USE_TLS', True)
app.config['MAIL_USERNAME'] = os.environ.get('MAIL_USERNAME')
app.config['MAIL_PASSWORD'] = os.environ.get('MAIL_PASSWORD')
app.config['MAIL_DEFAULT_SENDER'] = os.environ.get('MAIL_DEFAULT_SENDER') or app.config['MAIL_USERNAME']
app.config['MAIL_SUPPRESS_SEND'] = _env_flag('MAIL_SUPPRESS_SEND', False)

CORS(app, origins=CORS_ORIGINS)
mail = Mail(app)

store = RegistrationStore(DATA_DIR, max_attempts=TEAM_NUMBER_MAX_ATTEMPTS, domain=EMAIL_DOMAIN)
otp_verifier = OtpVerifier(
    OtpMailer(mail, app.config['MAIL_DEFAULT_SENDER'], OTP_TTL_MINUTES),
    domain=EMAIL_DOMAIN,
    ttl_seconds=OTP_TTL_MINUTES * 60,
    verified_ttl_seconds=VERIFIED_EMAIL_TTL_MINUTES * 60,
)


@app.errorhandler(RegistrationError)
def handle_registration_error(error):
    """Answer every domain error with a single user-visible message."""
    if error.status >= 500:
        app.logger.error(f'{request.method} {request.path} failed: {error.message}')
    return jsonify(error.to_dict()), error.status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(message='Request body must be a JSON object.')
    return data


@app.route('/api/registrations', methods=['GET'])
def api_list_registrations():
    """List registrations, newest first. ``?round2=true`` keeps Round-2 teams only."""
    records = [r.to_public_dict() for r in store.list_all()]
    only_round2 = request.args.get('round2', '').lower() in ('1', 'true', 'yes')
    return jsonify(filter_by_round2(records, only_round2))


@app.route('/api/send-otp', methods=['POST'])
def api_send_otp():
    """Mail a one-time code to the given head email."""
    email = str(_json_body().get('email') or '').strip()
    otp_verifier.request_code(email)
    return jsonify({'message': f'OTP sent to {email}. It is valid for {OTP_TTL_MINUTES} minutes.'})


@app.route('/api/verify-otp', methods=['POST'])
def api_verify_otp():
    """Check a one-time code. A successful check consumes the code."""
    data = _json_body()
    email = str(data.get('email') or '').strip()
    otp_verifier.verify_code(email, data.get('otp'))
    return jsonify({'message': 'Email verified successfully!'})


@app.route('/api/registrations', methods=['POST'])
def api_create_registration():
    """Create a registration. The server allocates the team number."""
    form = clean_form(_json_body())
    errors = validate_registration(form, domain=EMAIL_DOMAIN)
    if errors:
        raise ValidationError(errors)
    if REQUIRE_VERIFIED_EMAIL and not otp_verifier.is_verified(form['headEmail']):
        raise EmailNotVerified()

    record = store.create(Registration.from_dict(form))
    otp_verifier.consume_verification(form['headEmail'])
    app.logger.info(f'Created registration {record.id} ({record.team_number})')
    return jsonify(record.to_public_dict()), 201


@app.route('/api/registrations/<reg_id>', methods=['PATCH'])
def api_update_registration(reg_id):
    """Apply a partial update, typically round2 or certificateSent."""
    record = store.update(reg_id, _json_body())
    return jsonify(record.to_public_dict())


@app.route('/api/registrations/<reg_id>/round2', methods=['POST'])
def api_toggle_round2(reg_id):
    """Flip Round-2 selection for a team."""
    record = promote_to_round2(store, reg_id)
    return jsonify(record.to_public_dict())


@app.route('/api/registrations/<reg_id>/certificate', methods=['POST'])
def api_send_certificate(reg_id):
    """Mark the certificate as sent and return the mail link for the team head."""
    record, mailto = mark_certificate_sent(store, reg_id, CERTIFICATE_SIGNATURE)
    return jsonify({'registration': record.to_public_dict(), 'mailto': mailto})


@app.route('/api/registrations/export.csv', methods=['GET'])
def api_export_registrations_csv():
    """Export the registrations as a downloadable CSV file."""
    records = [r.to_public_dict() for r in store.list_all()]
    only_round2 = request.args.get('round2', '').lower() in ('1', 'true', 'yes')
    csv_content = export_snapshot(filter_by_round2(records, only_round2))
    return Response(
        csv_content,
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=hackathon_registrations.csv'},
    )


if __name__ == '__main__':
    app.run(debug=_env_flag('FLASK_DEBUG', False), port=int(os.environ.get('PORT', 5001)))
