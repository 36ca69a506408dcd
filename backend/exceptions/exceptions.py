# @role: Custom exception classes for backend services
# @used_by: kite_client.py, kite_sync.py, token_store.py, crypto.py, kite_accounts.py, portfolio_router.py, kite_auth_router.py
# @filter_type: utility
# @tags: exceptions, error, base
class InvalidTokenException(Exception):
    """Raised when a Kite access token is missing, invalid or expired. Callers should re-authenticate, not retry."""

    def __init__(self, account_id: str, message: str = None):
        super().__init__(message or "Kite authentication required.")
        self.account_id = account_id


class KiteException(Exception):
    """Raised when a Kite request fails (network, HTTP or API error)."""
    pass


class MalformedResponseException(KiteException):
    """Raised when a Kite response does not match the expected shape."""
    pass


class SnapshotSyncException(Exception):
    """Raised when syncing an account snapshot fails for a reason other than authentication."""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class DecryptionException(Exception):
    """Raised when a stored token payload cannot be decrypted."""
    pass


class ConfigurationException(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


class DataUnavailableException(Exception):
    """Raised when no market quote is available for a ticker."""
    pass


class InvalidLoginStateException(Exception):
    """Raised when the OAuth state returned by Kite is missing or does not match."""
    pass
