"""Exceptions raised by the sync pipeline."""


class SyncError(Exception):
    """Base class for errors that abort a user's sync run."""


class MissingCredentialError(SyncError):
    """The user has no stored Gmail credential or its refresh token is blank."""


class TokenRefreshError(SyncError):
    """Exchanging the refresh token for an access token failed."""


class DuplicateTransactionError(Exception):
    """A transaction with the same fingerprint is already stored for the user."""

    def __init__(self, user_id: str, fingerprint: str) -> None:
        super().__init__(f"duplicate fingerprint {fingerprint[:12]} for user {user_id}")
        self.user_id = user_id
        self.fingerprint = fingerprint
