# Vault Module - Encrypted Password File Format
#
# .pass file = 256-byte HMAC-authenticated header + AES-256-GCM payload
# Master password with PBKDF2 key derivation
# Immutable Vault/Record/Tag model with pure CRUD, tag and search operations

from .codec import decode, decode_async, encode, encode_async, read_header
from .exceptions import (
    AuthenticationError,
    CorruptionError,
    DecryptionError,
    DuplicateNameError,
    FormatError,
    IntegrityError,
    NotFoundError,
    ValidationError,
    VaultError,
)
from .models import CustomField, CustomFieldType, Record, Tag, Vault
from .operations import (
    add_record,
    add_tag,
    create_record,
    create_vault,
    delete_record,
    delete_tag,
    filter_by_tags,
    find_tag,
    get_record,
    rename_tag,
    reorder_tags,
    search_records,
    set_tag_color,
    tag_names_in_use,
    update_record,
    validate_vault,
)
from .passwords import generate_password, password_strength, verify_master_password

__all__ = [
    # Codec
    "encode",
    "decode",
    "encode_async",
    "decode_async",
    "read_header",
    # Errors
    "VaultError",
    "FormatError",
    "DecryptionError",
    "IntegrityError",
    "AuthenticationError",
    "CorruptionError",
    "NotFoundError",
    "DuplicateNameError",
    "ValidationError",
    # Model
    "Vault",
    "Record",
    "Tag",
    "CustomField",
    "CustomFieldType",
    # Operations
    "create_vault",
    "create_record",
    "add_record",
    "get_record",
    "update_record",
    "delete_record",
    "search_records",
    "filter_by_tags",
    "add_tag",
    "find_tag",
    "rename_tag",
    "delete_tag",
    "set_tag_color",
    "reorder_tags",
    "tag_names_in_use",
    "validate_vault",
    # Password tools
    "verify_master_password",
    "generate_password",
    "password_strength",
]
