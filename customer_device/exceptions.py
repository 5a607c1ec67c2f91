"""
Errors raised by the device lockout layer.
"""


class LockoutError(Exception):
    """Base class for lockout errors."""


class NotFoundError(LockoutError):
    """A sale or device referenced by id does not exist (or is not visible)."""


class ValidationError(LockoutError):
    """Malformed input or an action that does not apply to the device's state."""


class GatewayError(LockoutError):
    """
    The device management backend could not complete a call: unreachable,
    timed out, rejected our credentials or answered with a vendor error.
    """

    def __init__(self, message, device_id=None, status_code=None):
        super().__init__(message)
        self.device_id = device_id
        self.status_code = status_code
