"""Error types raised by the sync engine and provider client"""


class ProviderError(Exception):
    """Voice provider request failed"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Credentials rejected; the whole configuration is unusable until fixed"""


class ProviderUnavailableError(ProviderError):
    """Network failure, timeout or 5xx; retried by the next natural trigger"""


class PayloadError(ValueError):
    """Provider payload cannot be turned into a call update"""


class UnroutableCallError(LookupError):
    """A first observation of a call arrived without an owning organization"""
