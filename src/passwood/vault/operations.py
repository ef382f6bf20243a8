# Vault - Record & Tag Operations
#
# Pure functions over the immutable Vault value. Every mutating function
# returns a new Vault with modified_at refreshed; the input is untouched.
#
# Tag membership is stored on records by name, so tag rename/delete
# rewrite every affected record inside the same returned Vault.

import re
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .exceptions import DuplicateNameError, NotFoundError, ValidationError
from .models import (
    CustomField,
    Record,
    Tag,
    Vault,
    normalize_tag_name,
    utc_now,
)

# Palette from the tag editor; new tags cycle through it
TAG_COLORS = [
    "#ef4444",  # red
    "#f97316",  # orange
    "#f59e0b",  # amber
    "#eab308",  # yellow
    "#84cc16",  # lime
    "#22c55e",  # green
    "#10b981",  # emerald
    "#14b8a6",  # teal
    "#06b6d4",  # cyan
    "#0ea5e9",  # sky
    "#3b82f6",  # blue
    "#6366f1",  # indigo
    "#8b5cf6",  # violet
    "#a855f7",  # purple
    "#d946ef",  # fuchsia
    "#ec4899",  # pink
]

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_NAMED_COLOR = re.compile(r"^[a-zA-Z]{3,20}$")

UPDATABLE_FIELDS = frozenset(
    {"title", "login", "secret", "url", "notes", "tag_names", "custom_fields"}
)
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


_TEXT_FIELDS = ("title", "login", "secret")
_OPTIONAL_TEXT_FIELDS = ("url", "notes")


def _check_field_values(fields: dict) -> None:
    for name in _TEXT_FIELDS:
        if name in fields and not isinstance(fields[name], str):
            raise ValidationError(f"Record field {name} must be text")
    for name in _OPTIONAL_TEXT_FIELDS:
        value = fields.get(name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Record field {name} must be text or empty")
    if "tag_names" in fields:
        names = fields["tag_names"]
        if isinstance(names, str):
            fields["tag_names"] = (names,)
        elif not all(isinstance(n, str) for n in names):
            raise ValidationError("Tag names must be text")


def _stamp(created_at: datetime) -> datetime:
    # modified_at never precedes created_at, even with clock skew
    return max(utc_now(), created_at)


def _touch(vault: Vault, **changes) -> Vault:
    return replace(vault, modified_at=_stamp(vault.created_at), **changes)


def _touch_record(record: Record, **changes) -> Record:
    return replace(record, modified_at=_stamp(record.created_at), **changes)


# ── Vault ─────────────────────────────────────────────────────────────


def create_vault() -> Vault:
    """Create a new, empty vault."""
    return Vault()


def validate_vault(vault: Vault) -> None:
    """Save-time checks.

    Raises:
        ValidationError: A record is missing its title or secret, ids
            collide, or two tags share a name.
    """
    problems = []
    seen_ids = set()
    for index, record in enumerate(vault.records):
        label = record.title.strip() or f"#{index + 1}"
        if not record.title.strip():
            problems.append(f"record {label}: title is required")
        if not record.secret:
            problems.append(f"record {label}: secret is required")
        if record.id in seen_ids:
            problems.append(f"record {label}: duplicate id {record.id}")
        seen_ids.add(record.id)

    seen_tags = set()
    for tag in vault.tags:
        if tag.key in seen_tags:
            problems.append(f"tag {tag.name!r}: duplicate name")
        seen_tags.add(tag.key)

    if problems:
        raise ValidationError("; ".join(problems))


# ── Records ───────────────────────────────────────────────────────────


def create_record(
    title: str,
    login: str = "",
    secret: str = "",
    url: Optional[str] = None,
    notes: Optional[str] = None,
    tag_names: Iterable[str] = (),
    custom_fields: Iterable[CustomField] = (),
) -> Record:
    """Build a new record with a fresh id and timestamps.

    Raises:
        ValidationError: A field value has the wrong type.
    """
    fields = dict(title=title, login=login, secret=secret, url=url, notes=notes,
                  tag_names=tag_names)
    _check_field_values(fields)
    return Record(
        title=title,
        login=login,
        secret=secret,
        url=url,
        notes=notes,
        tag_names=tuple(fields["tag_names"]),
        custom_fields=tuple(custom_fields),
    )


def get_record(vault: Vault, record_id: str) -> Record:
    for record in vault.records:
        if record.id == record_id:
            return record
    raise NotFoundError(f"Record not found: {record_id}")


def add_record(vault: Vault, record: Record) -> Vault:
    """Append a record. Ids must be unique within the vault."""
    if any(r.id == record.id for r in vault.records):
        raise DuplicateNameError(f"Record id already exists: {record.id}")
    return _touch(vault, records=vault.records + (record,))


def update_record(vault: Vault, record_id: str, **fields) -> Vault:
    """Change fields of one record.

    Args:
        vault: Current vault
        record_id: Id of the record to change
        **fields: Any of UPDATABLE_FIELDS

    Raises:
        NotFoundError: Unknown record id.
        ValidationError: Attempt to change id/created_at, an unknown field,
            or a value of the wrong type.
    """
    immutable = IMMUTABLE_FIELDS.intersection(fields)
    if immutable:
        raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(immutable))}")
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown record fields: {', '.join(sorted(unknown))}")
    _check_field_values(fields)

    current = get_record(vault, record_id)
    if "tag_names" in fields:
        fields["tag_names"] = tuple(fields["tag_names"])
    if "custom_fields" in fields:
        fields["custom_fields"] = tuple(fields["custom_fields"])
    updated = _touch_record(current, **fields)

    records = tuple(updated if r.id == record_id else r for r in vault.records)
    return _touch(vault, records=records)


def delete_record(vault: Vault, record_id: str) -> Vault:
    get_record(vault, record_id)
    return _touch(vault, records=tuple(r for r in vault.records if r.id != record_id))


def search_records(vault: Vault, query: str) -> List[Record]:
    """Case-insensitive substring search over title, login, url and tags.

    Results keep vault order; they are not ranked.
    """
    needle = query.strip().casefold()
    if not needle:
        return list(vault.records)

    def matches(record: Record) -> bool:
        haystack = [record.title, record.login, record.url or ""]
        haystack.extend(record.tag_names)
        return any(needle in value.casefold() for value in haystack)

    return [r for r in vault.records if matches(r)]


def filter_by_tags(vault: Vault, names: Iterable[str]) -> List[Record]:
    """Records carrying any of the given tag names, in vault order."""
    wanted = {normalize_tag_name(n) for n in names}
    if not wanted:
        return list(vault.records)
    return [
        r for r in vault.records
        if any(normalize_tag_name(t) in wanted for t in r.tag_names)
    ]


# ── Tags ──────────────────────────────────────────────────────────────


def validate_color(color: str) -> str:
    color = color.strip()
    if _HEX_COLOR.match(color) or _NAMED_COLOR.match(color):
        return color
    raise ValidationError(f"Invalid tag color: {color!r}")


def _clean_tag_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Tag name cannot be empty")
    return cleaned


def next_tag_color(vault: Vault) -> str:
    return TAG_COLORS[len(vault.tags) % len(TAG_COLORS)]


def find_tag(vault: Vault, name: str) -> Optional[Tag]:
    key = normalize_tag_name(name)
    for tag in vault.tags:
        if tag.key == key:
            return tag
    return None


def _require_tag(vault: Vault, name: str) -> Tag:
    tag = find_tag(vault, name)
    if tag is None:
        raise NotFoundError(f"Tag not found: {name}")
    return tag


def create_tag(name: str, color: Optional[str] = None) -> Tag:
    return Tag(name=_clean_tag_name(name), color=validate_color(color or TAG_COLORS[0]))


def add_tag(vault: Vault, name: str, color: Optional[str] = None) -> Vault:
    """Register a new tag. Names collide case-insensitively."""
    name = _clean_tag_name(name)
    if find_tag(vault, name) is not None:
        raise DuplicateNameError(f"Tag already exists: {name}")
    tag = create_tag(name, color or next_tag_color(vault))
    return _touch(vault, tags=vault.tags + (tag,))


def rename_tag(vault: Vault, old_name: str, new_name: str) -> Vault:
    """Rename a tag and rewrite every record that references it.

    Raises:
        NotFoundError: ``old_name`` is not a registered tag.
        DuplicateNameError: ``new_name`` belongs to another tag.
        ValidationError: ``new_name`` is blank.
    """
    tag = _require_tag(vault, old_name)
    new_name = _clean_tag_name(new_name)

    clash = find_tag(vault, new_name)
    if clash is not None and clash.id != tag.id:
        raise DuplicateNameError(f"Tag already exists: {clash.name}")
    if new_name == tag.name:
        return vault

    old_key = tag.key
    tags = tuple(
        replace(t, name=new_name) if t.id == tag.id else t for t in vault.tags
    )

    records = []
    for record in vault.records:
        if any(normalize_tag_name(n) == old_key for n in record.tag_names):
            renamed = tuple(
                new_name if normalize_tag_name(n) == old_key else n
                for n in record.tag_names
            )
            record = _touch_record(record, tag_names=renamed)
        records.append(record)

    return _touch(vault, tags=tags, records=tuple(records))


def delete_tag(vault: Vault, name: str) -> Vault:
    """Remove a tag and strip it from every record. Records are kept."""
    tag = _require_tag(vault, name)
    key = tag.key

    records = []
    for record in vault.records:
        if any(normalize_tag_name(n) == key for n in record.tag_names):
            kept = tuple(n for n in record.tag_names if normalize_tag_name(n) != key)
            record = _touch_record(record, tag_names=kept)
        records.append(record)

    tags = tuple(t for t in vault.tags if t.id != tag.id)
    return _touch(vault, tags=tags, records=tuple(records))


def set_tag_color(vault: Vault, name: str, color: str) -> Vault:
    tag = _require_tag(vault, name)
    color = validate_color(color)
    tags = tuple(replace(t, color=color) if t.id == tag.id else t for t in vault.tags)
    return _touch(vault, tags=tags)


def reorder_tags(vault: Vault, names: Sequence[str]) -> Vault:
    """Put tags in the given order. ``names`` must list every tag once."""
    ordered = []
    for name in names:
        tag = _require_tag(vault, name)
        if tag in ordered:
            raise ValidationError(f"Tag listed twice: {name}")
        ordered.append(tag)
    if len(ordered) != len(vault.tags):
        missing = [t.name for t in vault.tags if t not in ordered]
        raise ValidationError(f"Tag order is missing: {', '.join(missing)}")
    return _touch(vault, tags=tuple(ordered))


def tag_names_in_use(vault: Vault) -> List[str]:
    """Every tag name referenced by a record, first spelling wins."""
    names = []
    keys = set()
    for record in vault.records:
        for name in record.tag_names:
            key = normalize_tag_name(name)
            if key not in keys:
                keys.add(key)
                names.append(name)
    return names
