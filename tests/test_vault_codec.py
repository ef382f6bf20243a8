"""Tests for vault blob encode/decode.

Covers: round trip, wrong password, single-bit tampering anywhere in the
blob, structural format errors, corrupted payloads, legacy (version 1)
files, alternate cipher, KDF bounds and the async wrappers.
"""

import asyncio
import json

import pytest

from passwood.vault import cipher, codec, kdf
from passwood.vault import operations as ops
from passwood.vault.exceptions import (
    AuthenticationError,
    CorruptionError,
    DecryptionError,
    FormatError,
    IntegrityError,
    ValidationError,
    VaultError,
)
from passwood.vault.header import HEADER_SIZE, VaultFileHeader, sign
from passwood.vault.models import CustomField, CustomFieldType

PASSWORD = "correct-horse-battery-staple12"


def _seal(payload: bytes, password: str = PASSWORD, *, version: int = 2,
          iterations: int = None,
          algorithm_id: int = cipher.AES_256_GCM) -> bytes:
    """Build a blob around an arbitrary payload, bypassing vault validation."""
    if iterations is None:
        iterations = kdf.MIN_ITERATIONS
    salt = kdf.generate_salt()
    enc_key = kdf.derive_encryption_key(password, salt, iterations)
    mac_key = kdf.derive_integrity_key(password, salt, iterations, version)
    nonce, ciphertext = cipher.encrypt(payload, enc_key, algorithm_id)
    header = sign(
        VaultFileHeader(
            format_version=version,
            cipher_algorithm_id=algorithm_id,
            kdf_salt=salt,
            kdf_iterations=iterations,
        ),
        mac_key,
    )
    return header.serialize() + nonce + ciphertext


def _flip(blob: bytes, offset: int, bit: int = 0) -> bytes:
    buf = bytearray(blob)
    buf[offset] ^= 1 << bit
    return bytes(buf)


@pytest.fixture
def blob(github_vault):
    return codec.encode(github_vault, PASSWORD)


# ── Round Trip ──────────────────────────────────────────────────────


class TestRoundTrip:

    def test_decode_returns_equal_vault(self, github_vault, blob):
        assert codec.decode(blob, PASSWORD) == github_vault

    def test_empty_vault(self):
        vault = ops.create_vault()
        decoded = codec.decode(codec.encode(vault, PASSWORD), PASSWORD)
        assert decoded == vault
        assert len(decoded) == 0

    def test_single_record_scenario(self):
        vault = ops.add_record(ops.create_vault(), ops.create_record(
            "GitHub", "me@x.com", "p@ss", tag_names=["work"],
        ))
        blob = codec.encode(vault, PASSWORD)

        decoded = codec.decode(blob, PASSWORD)
        assert len(decoded.records) == 1
        record = decoded.records[0]
        original = vault.records[0]
        assert record.id == original.id
        assert record.title == "GitHub"
        assert record.login == "me@x.com"
        assert record.secret == "p@ss"
        assert record.tag_names == ("work",)
        assert record.created_at == original.created_at

        with pytest.raises(DecryptionError):
            codec.decode(blob, "wrong-password")

    def test_unicode_and_custom_fields(self):
        record = ops.create_record(
            "Bänk 🏦", "ünïcode@example.com", "sécret-✓",
            notes="line one\nline two",
            custom_fields=[
                CustomField("PIN", "0000", CustomFieldType.PASSWORD),
                CustomField("Portal", "https://bank.example", CustomFieldType.URL),
            ],
        )
        vault = ops.add_record(ops.create_vault(), record)
        assert codec.decode(codec.encode(vault, PASSWORD), PASSWORD) == vault

    def test_header_fields(self, blob):
        header = codec.read_header(blob)
        assert header.format_version == codec.FORMAT_VERSION == 2
        assert header.cipher_algorithm_id == cipher.AES_256_GCM
        assert header.kdf_iterations == kdf.MIN_ITERATIONS
        assert len(header.kdf_salt) == 32

    def test_fresh_salt_and_nonce_each_encode(self, github_vault):
        b1 = codec.encode(github_vault, PASSWORD)
        b2 = codec.encode(github_vault, PASSWORD)
        assert codec.read_header(b1).kdf_salt != codec.read_header(b2).kdf_salt
        assert b1[HEADER_SIZE:HEADER_SIZE + 12] != b2[HEADER_SIZE:HEADER_SIZE + 12]
        assert b1 != b2

    def test_chacha20_poly1305(self, github_vault):
        blob = codec.encode(github_vault, PASSWORD, algorithm_id=cipher.CHACHA20_POLY1305)
        assert codec.read_header(blob).cipher_algorithm_id == cipher.CHACHA20_POLY1305
        assert codec.decode(blob, PASSWORD) == github_vault

    def test_explicit_iterations_recorded(self, github_vault):
        blob = codec.encode(github_vault, PASSWORD, iterations=kdf.MIN_ITERATIONS + 7)
        assert codec.read_header(blob).kdf_iterations == kdf.MIN_ITERATIONS + 7
        assert codec.decode(blob, PASSWORD) == github_vault

    def test_async_wrappers(self, github_vault):
        async def roundtrip():
            blob = await codec.encode_async(github_vault, PASSWORD)
            return await codec.decode_async(blob, PASSWORD)

        assert asyncio.run(roundtrip()) == github_vault


# ── Wrong Password & Tampering ──────────────────────────────────────


class TestTampering:

    def test_wrong_password(self, blob):
        with pytest.raises(DecryptionError) as exc_info:
            codec.decode(blob, "wrong-password")
        assert str(exc_info.value) == "Incorrect password or corrupted file"

    def test_wrong_password_fails_on_header(self, blob):
        with pytest.raises(IntegrityError):
            codec.decode(blob, "wrong-password")

    def test_every_header_byte_is_protected(self, blob):
        for offset in range(HEADER_SIZE):
            tampered = _flip(blob, offset, bit=offset % 8)
            with pytest.raises((FormatError, DecryptionError)):
                codec.decode(tampered, PASSWORD)

    def test_salt_flip_is_integrity_error(self, blob):
        with pytest.raises(IntegrityError):
            codec.decode(_flip(blob, 20), PASSWORD)

    def test_reserved_area_flip_is_integrity_error(self, blob):
        with pytest.raises(IntegrityError):
            codec.decode(_flip(blob, HEADER_SIZE - 1, bit=7), PASSWORD)

    def test_tag_message_matches_wrong_password_message(self, blob):
        with pytest.raises(DecryptionError) as tampered:
            codec.decode(_flip(blob, 60), PASSWORD)
        with pytest.raises(DecryptionError) as wrong:
            codec.decode(blob, "wrong-password")
        assert str(tampered.value) == str(wrong.value)

    def test_nonce_flip(self, blob):
        with pytest.raises(AuthenticationError):
            codec.decode(_flip(blob, HEADER_SIZE + 3), PASSWORD)

    def test_ciphertext_flips(self, blob):
        for offset in range(HEADER_SIZE + 12, len(blob), 37):
            with pytest.raises(AuthenticationError):
                codec.decode(_flip(blob, offset, bit=offset % 8), PASSWORD)

    def test_last_byte_flip(self, blob):
        with pytest.raises(AuthenticationError):
            codec.decode(_flip(blob, len(blob) - 1), PASSWORD)

    def test_truncated_ciphertext(self, blob):
        with pytest.raises(AuthenticationError):
            codec.decode(blob[:-1], PASSWORD)

    def test_header_and_nonce_only(self, blob):
        with pytest.raises(AuthenticationError):
            codec.decode(blob[:HEADER_SIZE + 12], PASSWORD)

    def test_appended_bytes(self, blob):
        with pytest.raises(AuthenticationError):
            codec.decode(blob + b"\x00", PASSWORD)


# ── Format Errors ───────────────────────────────────────────────────


class TestFormatErrors:

    def test_empty_blob(self):
        with pytest.raises(FormatError):
            codec.decode(b"", PASSWORD)

    def test_too_small(self, blob):
        with pytest.raises(FormatError, match="too small"):
            codec.decode(blob[:HEADER_SIZE + 11], PASSWORD)

    def test_bad_magic(self, blob):
        with pytest.raises(FormatError, match="magic"):
            codec.decode(b"ZIP!" + blob[4:], PASSWORD)

    def test_format_error_is_not_decryption_error(self, blob):
        with pytest.raises(FormatError) as exc_info:
            codec.decode(b"ZIP!" + blob[4:], PASSWORD)
        assert not isinstance(exc_info.value, DecryptionError)
        assert isinstance(exc_info.value, VaultError)

    def test_unsupported_version(self, blob):
        buf = bytearray(blob)
        buf[4] = 9
        with pytest.raises(FormatError, match="version"):
            codec.read_header(bytes(buf))

    def test_unknown_cipher(self, blob):
        buf = bytearray(blob)
        buf[8] = 7
        with pytest.raises(FormatError, match="cipher"):
            codec.read_header(bytes(buf))

    def test_zero_iterations(self, blob):
        buf = bytearray(blob)
        buf[44:48] = bytes(4)
        with pytest.raises(FormatError, match="iteration"):
            codec.read_header(bytes(buf))

    def test_header_iterations_above_maximum(self):
        blob = _seal(b"{}", iterations=kdf.MAX_ITERATIONS + 1)
        with pytest.raises(FormatError, match="iteration"):
            codec.decode(blob, PASSWORD)

    def test_random_garbage(self):
        with pytest.raises(FormatError):
            codec.decode(bytes(range(256)) * 2, PASSWORD)


# ── Payload Errors ──────────────────────────────────────────────────


class TestPayload:

    def test_payload_not_json(self):
        with pytest.raises(CorruptionError):
            codec.decode(_seal(b"not json at all"), PASSWORD)

    def test_payload_not_utf8(self):
        with pytest.raises(CorruptionError):
            codec.decode(_seal(b"\xff\xfe\xfd"), PASSWORD)

    def test_payload_without_records(self):
        with pytest.raises(CorruptionError):
            codec.decode(_seal(b'{"formatVersion": "1.0.0"}'), PASSWORD)

    def test_corruption_is_not_decryption_error(self):
        with pytest.raises(CorruptionError) as exc_info:
            codec.decode(_seal(b"[]"), PASSWORD)
        assert not isinstance(exc_info.value, DecryptionError)

    def test_legacy_version_one_file(self):
        payload = json.dumps({
            "version": "1.0.0",
            "created": "2024-03-01T10:00:00.000Z",
            "modified": "2024-03-02T10:00:00.000Z",
            "passwords": [{
                "id": "rec-1",
                "title": "GitHub",
                "login": "me@x.com",
                "password": "p@ss",
                "url": "https://github.com",
                "tags": ["work"],
                "created": "2024-03-01T10:00:00.000Z",
                "modified": "2024-03-01T11:00:00.000Z",
            }],
            "tags": [],
        }).encode("utf-8")
        blob = _seal(payload, version=1)

        assert codec.read_header(blob).format_version == 1
        vault = codec.decode(blob, PASSWORD)
        assert [r.title for r in vault.records] == ["GitHub"]
        assert vault.records[0].secret == "p@ss"
        assert [t.name for t in vault.tags] == ["work"]

        with pytest.raises(IntegrityError):
            codec.decode(blob, "wrong-password")

    def test_reencoded_legacy_file_is_current_version(self):
        payload = json.dumps({
            "version": "1.0.0",
            "created": "2024-03-01T10:00:00Z",
            "entries": [{
                "id": "e1", "title": "Mail", "username": "me", "password": "pw",
                "created": "2024-03-01T10:00:00Z",
            }],
        }).encode("utf-8")
        vault = codec.decode(_seal(payload, version=1), PASSWORD)

        blob = codec.encode(vault, PASSWORD)
        assert codec.read_header(blob).format_version == 2
        assert codec.decode(blob, PASSWORD) == vault


# ── Encode Preconditions ────────────────────────────────────────────


class TestEncodeChecks:

    def test_iterations_below_minimum(self, github_vault):
        with pytest.raises(ValueError):
            codec.encode(github_vault, PASSWORD, iterations=kdf.MIN_ITERATIONS - 1)

    def test_iterations_above_maximum(self, github_vault):
        with pytest.raises(ValueError):
            codec.encode(github_vault, PASSWORD, iterations=kdf.MAX_ITERATIONS + 1)

    def test_record_without_title(self):
        vault = ops.add_record(ops.create_vault(), ops.create_record("  ", "me", "pw"))
        with pytest.raises(ValidationError, match="title"):
            codec.encode(vault, PASSWORD)

    def test_record_without_secret(self):
        vault = ops.add_record(ops.create_vault(), ops.create_record("GitHub", "me", ""))
        with pytest.raises(ValidationError, match="secret"):
            codec.encode(vault, PASSWORD)

    def test_unknown_cipher(self, github_vault):
        with pytest.raises(FormatError):
            codec.encode(github_vault, PASSWORD, algorithm_id=42)
