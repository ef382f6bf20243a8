# Vault - Canonical Encoding
#
# Vault <-> JSON document (the plaintext that gets encrypted).
#
# Three payload shapes are readable:
#   canonical   {"formatVersion", "createdAt", "modifiedAt", "records", "tags"}
#   collection  {"version", "created", "modified", "passwords": [{"login", "password"}], "tags"}
#   database    {"version", "created", "modified", "entries": [{"username", "password"}]}
# Only the canonical shape is ever written. The older two are migrated once
# at load time.

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from .exceptions import CorruptionError
from .models import (
    VAULT_FORMAT_VERSION,
    CustomField,
    CustomFieldType,
    Record,
    Tag,
    Vault,
    normalize_tag_name,
)
from .operations import TAG_COLORS

logger = logging.getLogger(__name__)


# ── Encoding ──────────────────────────────────────────────────────────


def _ts(value: datetime) -> str:
    return value.isoformat()


def record_to_dict(record: Record) -> Dict[str, Any]:
    return {
        "id": record.id,
        "title": record.title,
        "login": record.login,
        "secret": record.secret,
        "url": record.url,
        "notes": record.notes,
        "tagNames": list(record.tag_names),
        "customFields": [
            {"name": f.name, "value": f.value, "type": f.type.value}
            for f in record.custom_fields
        ],
        "createdAt": _ts(record.created_at),
        "modifiedAt": _ts(record.modified_at),
    }


def tag_to_dict(tag: Tag) -> Dict[str, Any]:
    return {"id": tag.id, "name": tag.name, "color": tag.color}


def vault_to_dict(vault: Vault) -> Dict[str, Any]:
    return {
        "formatVersion": vault.format_version,
        "createdAt": _ts(vault.created_at),
        "modifiedAt": _ts(vault.modified_at),
        "records": [record_to_dict(r) for r in vault.records],
        "tags": [tag_to_dict(t) for t in vault.tags],
    }


def dumps(vault: Vault) -> bytes:
    """Serialize a vault to UTF-8 JSON bytes."""
    return json.dumps(
        vault_to_dict(vault), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


# ── Decoding ──────────────────────────────────────────────────────────


def _parse_ts(value: Any, where: str) -> datetime:
    if not isinstance(value, str):
        raise CorruptionError(f"{where}: timestamp must be a string")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise CorruptionError(f"{where}: invalid timestamp {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _field(obj: Dict[str, Any], key: str, kind, where: str, required: bool = True, default=None):
    if key not in obj or obj[key] is None:
        if required:
            raise CorruptionError(f"{where}: missing field {key!r}")
        return default
    value = obj[key]
    if not isinstance(value, kind):
        raise CorruptionError(f"{where}: field {key!r} has wrong type")
    return value


def _names(values: Any, where: str) -> Tuple[str, ...]:
    if values is None:
        return ()
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise CorruptionError(f"{where}: tag names must be a list of strings")
    return tuple(values)


def _custom_fields(values: Any, where: str) -> Tuple[CustomField, ...]:
    if values is None:
        return ()
    if not isinstance(values, list):
        raise CorruptionError(f"{where}: customFields must be a list")
    fields = []
    for item in values:
        if not isinstance(item, dict):
            raise CorruptionError(f"{where}: custom field must be an object")
        try:
            kind = CustomFieldType(item.get("type") or "text")
        except ValueError:
            raise CorruptionError(f"{where}: unknown custom field type") from None
        fields.append(CustomField(
            name=_field(item, "name", str, where),
            value=_field(item, "value", str, where, required=False, default=""),
            type=kind,
        ))
    return tuple(fields)


def _record(item: Any, index: int, login_key: str, secret_key: str,
            tags_key: str, created_key: str, modified_key: str) -> Record:
    where = f"record {index}"
    if not isinstance(item, dict):
        raise CorruptionError(f"{where}: must be an object")
    created = _parse_ts(_field(item, created_key, str, where), where)
    return Record(
        id=_field(item, "id", str, where),
        title=_field(item, "title", str, where),
        login=_field(item, login_key, str, where, required=False, default=""),
        secret=_field(item, secret_key, str, where),
        url=_field(item, "url", str, where, required=False),
        notes=_field(item, "notes", str, where, required=False),
        tag_names=_names(item.get(tags_key), where),
        custom_fields=_custom_fields(item.get("customFields"), where),
        created_at=created,
        modified_at=_parse_ts(item.get(modified_key) or item[created_key], where),
    )


def _tags(values: Any) -> List[Tag]:
    if values is None:
        return []
    if not isinstance(values, list):
        raise CorruptionError("tags must be a list")
    tags = []
    for index, item in enumerate(values):
        where = f"tag {index}"
        if not isinstance(item, dict):
            raise CorruptionError(f"{where}: must be an object")
        tags.append(Tag(
            id=_field(item, "id", str, where),
            name=_field(item, "name", str, where),
            color=_field(item, "color", str, where),
        ))
    return tags


def _list(doc: Dict[str, Any], key: str) -> list:
    value = doc.get(key)
    if not isinstance(value, list):
        raise CorruptionError(f"{key} must be a list")
    return value


def _from_canonical(doc: Dict[str, Any]) -> Vault:
    records = [
        _record(item, i, "login", "secret", "tagNames", "createdAt", "modifiedAt")
        for i, item in enumerate(_list(doc, "records"))
    ]
    return Vault(
        format_version=_field(doc, "formatVersion", str, "vault"),
        created_at=_parse_ts(_field(doc, "createdAt", str, "vault"), "vault"),
        modified_at=_parse_ts(_field(doc, "modifiedAt", str, "vault"), "vault"),
        records=records,
        tags=_tags(doc.get("tags")),
    )


def _from_legacy(doc: Dict[str, Any], collection_key: str, login_key: str) -> Vault:
    records = [
        _record(item, i, login_key, "password", "tags", "created", "modified")
        for i, item in enumerate(_list(doc, collection_key))
    ]
    created = _parse_ts(_field(doc, "created", str, "vault"), "vault")
    logger.info(
        "Migrating legacy vault payload (%s, %d records)", collection_key, len(records)
    )
    vault = Vault(
        format_version=VAULT_FORMAT_VERSION,
        created_at=created,
        modified_at=_parse_ts(doc.get("modified") or doc["created"], "vault"),
        records=records,
        tags=_tags(doc.get("tags")),
    )
    return register_missing_tags(vault)


def merge_duplicate_tags(vault: Vault) -> Vault:
    """Collapse tags whose names collide case-insensitively.

    The first tag in registry order survives with its colour, and record
    memberships of the merged names are rewritten to its spelling.
    """
    survivors: Dict[str, Tag] = {}
    merged = set()
    for tag in vault.tags:
        if tag.key in survivors:
            merged.add(tag.key)
        else:
            survivors[tag.key] = tag
    if not merged:
        return vault

    logger.warning("Merging %d duplicate tag name(s) on load", len(merged))
    records = []
    for record in vault.records:
        names = tuple(
            survivors[normalize_tag_name(n)].name
            if normalize_tag_name(n) in merged else n
            for n in record.tag_names
        )
        if names != record.tag_names:
            record = replace(record, tag_names=names)
        records.append(record)
    return replace(vault, records=tuple(records), tags=tuple(survivors.values()))


def register_missing_tags(vault: Vault) -> Vault:
    """Give every tag name used by a record an entry in the tag registry."""
    known = {t.key for t in vault.tags}
    tags = list(vault.tags)
    for record in vault.records:
        for name in record.tag_names:
            key = normalize_tag_name(name)
            if key not in known:
                known.add(key)
                tags.append(Tag(name=name, color=TAG_COLORS[len(tags) % len(TAG_COLORS)]))
    if len(tags) == len(vault.tags):
        return vault
    return replace(vault, tags=tuple(tags))


def vault_from_dict(doc: Any) -> Vault:
    """Build a Vault from any supported payload shape.

    Raises:
        CorruptionError: Not a vault document.
    """
    if not isinstance(doc, dict):
        raise CorruptionError("Vault document must be a JSON object")

    if "records" in doc:
        vault = _from_canonical(doc)
    elif "passwords" in doc:
        vault = _from_legacy(doc, "passwords", "login")
    elif "entries" in doc:
        vault = _from_legacy(doc, "entries", "username")
    else:
        raise CorruptionError("Vault document has no records")

    return merge_duplicate_tags(vault)


def loads(data: bytes) -> Vault:
    """Parse decrypted payload bytes into a Vault."""
    try:
        doc = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptionError(f"Vault payload is not valid JSON: {exc}") from None
    return vault_from_dict(doc)
