"""
Passwood - portable, password-protected credential vault files.

Vault file format, in-memory vault model, blob storage backends and an
explicit unlocked-vault session.
"""

__version__ = "0.1.0"
