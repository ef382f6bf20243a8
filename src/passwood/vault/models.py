# Vault - Data Models
#
# Immutable value types for the decrypted vault:
#   Vault        - the whole decrypted payload
#   Record       - one stored credential
#   Tag          - colour-tagged label, referenced from records by name
#   CustomField  - extra name/value pair on a record
#
# Mutations live in operations.py and always return new instances.

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
from uuid import uuid4

VAULT_FORMAT_VERSION = "1.0.0"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class CustomFieldType(str, Enum):
    """Presentation hint for a custom field."""

    TEXT = "text"
    PASSWORD = "password"
    URL = "url"
    EMAIL = "email"


@dataclass(frozen=True)
class CustomField:
    name: str
    value: str = field(default="", repr=False)
    type: CustomFieldType = CustomFieldType.TEXT


@dataclass(frozen=True)
class Tag:
    """Label with presentation metadata.

    Names are unique ignoring case and surrounding whitespace.
    """

    name: str
    color: str
    id: str = field(default_factory=new_id)

    @property
    def key(self) -> str:
        """Case/whitespace-insensitive comparison key."""
        return normalize_tag_name(self.name)


@dataclass(frozen=True)
class Record:
    """One stored credential.

    ``tag_names`` has set semantics (no duplicates) but keeps insertion
    order so serialization is stable.
    """

    title: str
    login: str = ""
    secret: str = field(default="", repr=False)
    url: Optional[str] = None
    notes: Optional[str] = field(default=None, repr=False)
    tag_names: Tuple[str, ...] = ()
    custom_fields: Tuple[CustomField, ...] = ()
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    modified_at: Optional[datetime] = None

    def __post_init__(self):
        # Frozen: go through object.__setattr__ for normalization
        object.__setattr__(self, "tag_names", dedupe_names(self.tag_names))
        object.__setattr__(self, "custom_fields", tuple(self.custom_fields))
        if self.modified_at is None:
            object.__setattr__(self, "modified_at", self.created_at)

    def has_tag(self, name: str) -> bool:
        wanted = normalize_tag_name(name)
        return any(normalize_tag_name(t) == wanted for t in self.tag_names)


@dataclass(frozen=True)
class Vault:
    """The decrypted collection of records and tags."""

    records: Tuple[Record, ...] = ()
    tags: Tuple[Tag, ...] = ()
    format_version: str = VAULT_FORMAT_VERSION
    created_at: datetime = field(default_factory=utc_now)
    modified_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "records", tuple(self.records))
        object.__setattr__(self, "tags", tuple(self.tags))
        if self.modified_at is None:
            object.__setattr__(self, "modified_at", self.created_at)

    def __len__(self) -> int:
        return len(self.records)


def normalize_tag_name(name: str) -> str:
    return name.strip().casefold()


def dedupe_names(names) -> Tuple[str, ...]:
    """Strip names and drop blanks and case-insensitive duplicates.

    The first spelling of a name wins and order is preserved. A single
    string is one name, not a sequence of characters.
    """
    if isinstance(names, str):
        names = (names,)
    kept = []
    keys = set()
    for name in names:
        name = name.strip()
        key = name.casefold()
        if name and key not in keys:
            keys.add(key)
            kept.append(name)
    return tuple(kept)
