# customer_device/mdm_service.py
import logging
from datetime import timedelta
from functools import lru_cache

import requests
from django.conf import settings
from django.utils import timezone

from .exceptions import GatewayError

logger = logging.getLogger(__name__)


LOST_MODE = 'lost_mode'
CONFIGURATION = 'configuration'
LOCK_MODES = (LOST_MODE, CONFIGURATION)


class MDMService:
    """
    Device management backend integration (ManageEngine MDM, Zoho OAuth).

    Holds its own access token and renews it from the refresh token when it
    expires or when the backend answers 401. Every failure is raised as
    GatewayError so callers can handle it per device.

    Locking works in one of two ways, picked by MDM_LOCK_MODE:
    - lost_mode: enable/disable the vendor's lost mode with a lock message
    - configuration: swap between the "normal" and "blocked" configuration
      profiles
    """

    def __init__(self, base_url=None, token_url=None, client_id=None, client_secret=None,
                 refresh_token=None, timeout=None, lock_mode=None, normal_config_id=None,
                 blocked_config_id=None, contact_phone=None, session=None):
        self.base_url = (base_url or getattr(settings, 'MDM_API_BASE_URL', '')).rstrip('/')
        self.token_url = token_url or getattr(settings, 'MDM_TOKEN_URL', '')
        self.client_id = client_id or getattr(settings, 'MDM_CLIENT_ID', '')
        self.client_secret = client_secret or getattr(settings, 'MDM_CLIENT_SECRET', '')
        self.refresh_token = refresh_token or getattr(settings, 'MDM_REFRESH_TOKEN', '')
        self.timeout = timeout or getattr(settings, 'MDM_REQUEST_TIMEOUT', 20)
        self.normal_config_id = normal_config_id or getattr(settings, 'MDM_NORMAL_CONFIG_ID', None)
        self.blocked_config_id = blocked_config_id or getattr(settings, 'MDM_BLOCKED_CONFIG_ID', None)
        self.contact_phone = contact_phone or getattr(settings, 'MDM_CONTACT_PHONE', '')

        lock_mode = lock_mode or getattr(settings, 'MDM_LOCK_MODE', LOST_MODE)
        if lock_mode not in LOCK_MODES:
            logger.warning(f"[MDM] Unknown lock mode {lock_mode!r}, using {LOST_MODE}")
            lock_mode = LOST_MODE
        self.lock_mode = lock_mode

        self.session = session or requests.Session()
        self.access_token = None
        self.token_expires_at = None

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def authenticate(self):
        """Exchange the refresh token for a new access token."""
        payload = {
            'grant_type': 'refresh_token',
            'refresh_token': self.refresh_token,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }
        try:
            response = self.session.post(self.token_url, data=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.access_token = None
            logger.error(f"[MDM] Authentication failed: {str(e)}")
            raise GatewayError(f"Authentication failed: {e}") from e

        if response.status_code >= 400:
            self.access_token = None
            logger.error(f"[MDM] Authentication rejected with HTTP {response.status_code}")
            raise GatewayError(
                f"Authentication rejected with HTTP {response.status_code}",
                status_code=response.status_code
            )

        data = self._json(response, action='Authentication')
        token = data.get('access_token') if isinstance(data, dict) else None
        if not token:
            self.access_token = None
            raise GatewayError("Authentication response did not include an access token")

        expires_in = int(data.get('expires_in') or 3600)
        self.access_token = token
        self.token_expires_at = timezone.now() + timedelta(seconds=max(expires_in - 60, 0))

        logger.info("[MDM] Authentication successful")
        return token

    def get_valid_token(self):
        if self.access_token and self.token_expires_at and self.token_expires_at > timezone.now():
            return self.access_token
        return self.authenticate()

    def _headers(self):
        return {
            'Authorization': f'Zoho-oauthtoken {self.get_valid_token()}',
            'Content-Type': 'application/json'
        }

    def _request(self, method, path, device_id=None, **kwargs):
        """
        Send a request, re-authenticating and retrying once on HTTP 401.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"

        for attempt in (1, 2):
            headers = self._headers()
            try:
                response = self.session.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
            except requests.exceptions.Timeout as e:
                logger.error(f"[MDM] {method} {path} timed out after {self.timeout}s")
                raise GatewayError(
                    f"Request timed out after {self.timeout}s", device_id=device_id
                ) from e
            except requests.exceptions.RequestException as e:
                logger.error(f"[MDM] {method} {path} failed: {str(e)}")
                raise GatewayError(str(e), device_id=device_id) from e

            if response.status_code == 401 and attempt == 1:
                logger.warning("[MDM] Access token rejected, re-authenticating")
                self.access_token = None
                continue
            return response

        return response

    def _check(self, response, device_id=None, action='request'):
        if response.status_code >= 400:
            detail = getattr(response, 'text', '') or ''
            logger.error(
                f"[MDM] {action} failed for device {device_id}: HTTP {response.status_code} {detail[:200]}"
            )
            raise GatewayError(
                f"{action} failed with HTTP {response.status_code}",
                device_id=device_id,
                status_code=response.status_code
            )
        return response

    def _json(self, response, device_id=None, action='request'):
        """Decode a response body, treating anything but JSON as a vendor error."""
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"[MDM] {action} returned a non-JSON body (HTTP {response.status_code})"
            )
            raise GatewayError(
                f"{action} returned an invalid response",
                device_id=device_id,
                status_code=response.status_code
            ) from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_device(self, identifier):
        """
        Fetch a device by its backend identifier.

        Returns:
            dict with the vendor's device payload, or None when not found
        """
        response = self._request('GET', f'devices/{identifier}', device_id=identifier)
        if response.status_code == 404:
            return None
        self._check(response, identifier, action='Find device')
        return self._json(response, identifier, action='Find device')

    def list_devices(self):
        """Return every device registered in the backend."""
        response = self._check(self._request('GET', 'devices'), action='List devices')
        data = self._json(response, action='List devices')
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get('devices') or []
        raise GatewayError("List devices returned an unexpected payload", status_code=response.status_code)

    def find_device_by_imei(self, imei):
        """
        Look a device up by IMEI, ignoring devices removed from the backend.

        Returns:
            dict or None
        """
        for device in self.list_devices():
            if not isinstance(device, dict):
                continue
            if str(device.get('is_removed', 'false')).lower() == 'true':
                continue
            imeis = device.get('imei')
            if isinstance(imeis, list) and imei in imeis:
                return device
            if imeis == imei:
                return device
        return None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def lock_device(self, identifier, reason):
        """
        Lock a device.

        Args:
            identifier: backend device id
            reason: message shown on the locked screen

        Returns:
            dict: {'success': True, 'action': 'locked', 'device_id': str, ...}

        Raises:
            GatewayError
        """
        if self.lock_mode == CONFIGURATION:
            response = self._request(
                'POST',
                f'devices/{identifier}/configuration',
                device_id=identifier,
                json={'configuration_id': self.blocked_config_id, 'message': reason}
            )
        else:
            response = self._request(
                'POST',
                f'devices/{identifier}/actions/enable_lost_mode',
                device_id=identifier,
                json={'lock_message': reason, 'phone_number': self.contact_phone}
            )

        result = {'success': True, 'action': 'locked', 'device_id': identifier}
        if self.lock_mode == CONFIGURATION:
            result['configuration_id'] = self.blocked_config_id

        if response.status_code == 409:
            logger.info(f"[MDM] Device {identifier} already locked")
            result['already'] = True
            return result

        self._check(response, identifier, action='Lock device')
        logger.info(f"[MDM] Device locked successfully: {identifier}")
        return result

    def unlock_device(self, identifier):
        """
        Unlock a device.

        Returns:
            dict: {'success': True, 'action': 'unlocked', 'device_id': str, ...}

        Raises:
            GatewayError
        """
        if self.lock_mode == CONFIGURATION:
            response = self._request(
                'POST',
                f'devices/{identifier}/configuration',
                device_id=identifier,
                json={'configuration_id': self.normal_config_id}
            )
        else:
            response = self._request(
                'POST',
                f'devices/{identifier}/actions/disable_lost_mode',
                device_id=identifier,
                json={}
            )

        result = {'success': True, 'action': 'unlocked', 'device_id': identifier}
        if self.lock_mode == CONFIGURATION:
            result['configuration_id'] = self.normal_config_id

        if response.status_code == 409:
            logger.info(f"[MDM] Device {identifier} already unlocked")
            result['already'] = True
            return result

        self._check(response, identifier, action='Unlock device')
        logger.info(f"[MDM] Device unlocked successfully: {identifier}")
        return result


@lru_cache(maxsize=None)
def get_mdm_service():
    """Process-wide gateway instance, so the access token is shared."""
    return MDMService()
