"""
Vault Exception Classes
"""

# Shown for every password/tamper failure so the two stay indistinguishable.
DECRYPTION_FAILED_MESSAGE = "Incorrect password or corrupted file"


class VaultError(Exception):
    """Base exception for vault operations"""
    pass


class FormatError(VaultError):
    """Raised when a blob is not a recognizable vault file"""
    pass


class DecryptionError(VaultError):
    """Raised when a vault cannot be opened with the given password.

    Header tampering and a wrong password both surface as this error with
    the same message. Catch this class, not its subclasses.
    """

    def __init__(self, message: str = DECRYPTION_FAILED_MESSAGE):
        super().__init__(message)


class IntegrityError(DecryptionError):
    """Raised when the header HMAC does not verify"""
    pass


class AuthenticationError(DecryptionError):
    """Raised when the AEAD tag does not verify"""
    pass


class CorruptionError(VaultError):
    """Raised when an authenticated payload is not a valid vault document"""
    pass


class NotFoundError(VaultError):
    """Raised when a record or tag does not exist"""
    pass


class DuplicateNameError(VaultError):
    """Raised when a tag name or record id is already taken"""
    pass


class ValidationError(VaultError):
    """Raised when a record, tag or vault fails validation"""
    pass
