"""
HTTP client for the registration REST API.

Error responses are turned back into the exceptions from ``core.errors``;
transport failures become ConnectivityError.
"""
import requests

from .errors import ERRORS_BY_CODE, ConnectivityError, RegistrationError, ValidationError

DEFAULT_TIMEOUT = 15


class ApiClient:
    def __init__(self, base_url, session=None, timeout=DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        url = f'{self.base_url}{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ConnectivityError() from e
        if response.ok:
            return response
        raise self._error_from(response)

    @staticmethod
    def _error_from(response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get('message') or f'Request failed with status {response.status_code}'
        error_cls = ERRORS_BY_CODE.get(body.get('error'))
        if error_cls is ValidationError:
            return ValidationError(body.get('errors') or {}, message=message)
        if error_cls is None:
            error = RegistrationError(message)
            error.status = response.status_code
            return error
        return error_cls(message)

    def list_registrations(self, round2_only=False):
        params = {'round2': 'true'} if round2_only else None
        return self._request('GET', '/api/registrations', params=params).json()

    def send_otp(self, email):
        return self._request('POST', '/api/send-otp', json={'email': email}).json().get('message', '')

    def verify_otp(self, email, otp):
        response = self._request('POST', '/api/verify-otp', json={'email': email, 'otp': otp})
        return response.json().get('message', '')

    def create_registration(self, form):
        return self._request('POST', '/api/registrations', json=form).json()

    def update_registration(self, reg_id, updates):
        return self._request('PATCH', f'/api/registrations/{reg_id}', json=updates).json()

    def toggle_round2(self, reg_id):
        return self._request('POST', f'/api/registrations/{reg_id}/round2').json()

    def send_certificate(self, reg_id):
        return self._request('POST', f'/api/registrations/{reg_id}/certificate').json()
