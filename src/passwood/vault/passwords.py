# Vault - Password Tools
#
# Master password policy, random password generator, strength score.

import secrets
import string
from typing import List, Tuple

SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

# Common weak passwords (minimal list)
WEAK_PASSWORDS = frozenset({
    "password123", "Password123", "Admin123456",
    "Welcome12345", "Passw0rd123", "123456789012",
    "Password123!", "Welcome123!",
})


def verify_master_password(password: str) -> Tuple[bool, List[str]]:
    """
    Check a new master password against the vault policy.

    Requirements:
    - At least 12 characters
    - Mix of uppercase, lowercase, numbers and symbols
    - No common weak passwords

    Returns:
        (is_valid, error_messages)
    """
    errors = []

    if len(password) < 12:
        errors.append("Master password must be at least 12 characters long")

    if not any(c.isupper() for c in password):
        errors.append("Master password must contain at least one uppercase letter")

    if not any(c.islower() for c in password):
        errors.append("Master password must contain at least one lowercase letter")

    if not any(c.isdigit() for c in password):
        errors.append("Master password must contain at least one number")

    if all(c.isalnum() for c in password):
        errors.append("Master password must contain at least one special character")

    if password in WEAK_PASSWORDS:
        errors.append("This password is too common. Please choose a stronger password.")

    return not errors, errors


def generate_password(
    length: int = 16,
    uppercase: bool = True,
    lowercase: bool = True,
    digits: bool = True,
    symbols: bool = True,
) -> str:
    """Random password from the selected character classes.

    Raises:
        ValueError: No character class selected or non-positive length.
    """
    if length < 1:
        raise ValueError("Password length must be positive")

    charset = ""
    if uppercase:
        charset += string.ascii_uppercase
    if lowercase:
        charset += string.ascii_lowercase
    if digits:
        charset += string.digits
    if symbols:
        charset += SYMBOLS
    if not charset:
        raise ValueError("At least one character type must be selected")

    return "".join(secrets.choice(charset) for _ in range(length))


def password_strength(password: str) -> int:
    """Score 0-100 from length and character variety."""
    strength = 0

    # Length
    if len(password) >= 8:
        strength += 20
    if len(password) >= 12:
        strength += 10
    if len(password) >= 16:
        strength += 10

    # Character variety
    if any(c in string.ascii_lowercase for c in password):
        strength += 15
    if any(c in string.ascii_uppercase for c in password):
        strength += 15
    if any(c in string.digits for c in password):
        strength += 15
    if any(not c.isascii() or not c.isalnum() for c in password):
        strength += 15

    return min(100, strength)
