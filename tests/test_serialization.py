"""Tests for the vault JSON document and legacy payload migration."""

import json
from datetime import datetime, timezone

import pytest

from passwood.vault import serialization
from passwood.vault.exceptions import CorruptionError
from passwood.vault.models import CustomFieldType, Tag, Vault
from passwood.vault.operations import TAG_COLORS


def _canonical(**overrides):
    doc = {
        "formatVersion": "1.0.0",
        "createdAt": "2024-01-01T00:00:00+00:00",
        "modifiedAt": "2024-01-02T00:00:00+00:00",
        "records": [{
            "id": "r1",
            "title": "GitHub",
            "login": "me@x.com",
            "secret": "p@ss",
            "url": "https://github.com",
            "notes": None,
            "tagNames": ["work"],
            "customFields": [{"name": "PIN", "value": "1234", "type": "password"}],
            "createdAt": "2024-01-01T00:00:00+00:00",
            "modifiedAt": "2024-01-01T12:00:00+00:00",
        }],
        "tags": [{"id": "t1", "name": "work", "color": "#ef4444"}],
    }
    doc.update(overrides)
    return doc


class TestEncoding:

    def test_canonical_keys(self, github_vault):
        doc = serialization.vault_to_dict(github_vault)
        assert set(doc) == {"formatVersion", "createdAt", "modifiedAt", "records", "tags"}
        record = doc["records"][0]
        assert record["title"] == "GitHub"
        assert record["secret"] == "p@ss"
        assert record["tagNames"] == ["work"]
        assert doc["tags"][1] == {
            "id": github_vault.tags[1].id, "name": "temp", "color": "#ff0000",
        }

    def test_dumps_is_compact_utf8(self):
        vault = Vault(tags=(Tag(name="Bänk", color="red"),))
        data = serialization.dumps(vault)
        assert "Bänk".encode("utf-8") in data
        assert b", " not in data

    def test_roundtrip(self, github_vault):
        assert serialization.loads(serialization.dumps(github_vault)) == github_vault


class TestCanonicalDecoding:

    def test_parse(self):
        vault = serialization.vault_from_dict(_canonical())
        record = vault.records[0]
        assert record.id == "r1"
        assert record.login == "me@x.com"
        assert record.custom_fields[0].type is CustomFieldType.PASSWORD
        assert record.modified_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert vault.tags[0].id == "t1"

    def test_zulu_and_naive_timestamps_are_utc(self):
        vault = serialization.vault_from_dict(_canonical(
            createdAt="2024-01-01T00:00:00Z", modifiedAt="2024-01-02T00:00:00",
        ))
        assert vault.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert vault.modified_at.tzinfo is not None

    def test_missing_tags_list(self):
        doc = _canonical()
        del doc["tags"]
        vault = serialization.vault_from_dict(doc)
        assert vault.tags == ()
        assert vault.records[0].tag_names == ("work",)

    @pytest.mark.parametrize("doc", [
        [],
        "vault",
        {"formatVersion": "1.0.0"},
        {"records": "nope"},
    ])
    def test_not_a_vault(self, doc):
        with pytest.raises(CorruptionError):
            serialization.vault_from_dict(doc)

    def test_missing_record_field(self):
        doc = _canonical()
        del doc["records"][0]["secret"]
        with pytest.raises(CorruptionError, match="secret"):
            serialization.vault_from_dict(doc)

    def test_wrong_field_type(self):
        doc = _canonical()
        doc["records"][0]["title"] = 42
        with pytest.raises(CorruptionError, match="title"):
            serialization.vault_from_dict(doc)

    def test_bad_timestamp(self):
        with pytest.raises(CorruptionError, match="timestamp"):
            serialization.vault_from_dict(_canonical(createdAt="yesterday"))

    def test_bad_custom_field_type(self):
        doc = _canonical()
        doc["records"][0]["customFields"][0]["type"] = "blob"
        with pytest.raises(CorruptionError):
            serialization.vault_from_dict(doc)

    def test_loads_rejects_invalid_json(self):
        with pytest.raises(CorruptionError):
            serialization.loads(b"{not json")


class TestDuplicateTagMerge:

    def test_first_tag_wins(self):
        doc = _canonical(tags=[
            {"id": "t1", "name": "Work", "color": "#111111"},
            {"id": "t2", "name": "work ", "color": "#222222"},
        ])
        doc["records"][0]["tagNames"] = ["work ", "home"]
        vault = serialization.vault_from_dict(doc)

        assert [(t.id, t.name, t.color) for t in vault.tags] == [("t1", "Work", "#111111")]
        assert vault.records[0].tag_names == ("Work", "home")

    def test_merged_vault_saves_cleanly(self):
        from passwood.vault.operations import validate_vault

        doc = _canonical(tags=[
            {"id": "t1", "name": "work", "color": "red"},
            {"id": "t2", "name": "WORK", "color": "blue"},
        ])
        validate_vault(serialization.vault_from_dict(doc))

    def test_no_duplicates_returns_same_vault(self, github_vault):
        assert serialization.merge_duplicate_tags(github_vault) is github_vault


class TestLegacyMigration:

    def test_collection_shape(self):
        doc = {
            "version": "1.0.0",
            "created": "2023-05-01T08:00:00.000Z",
            "modified": "2023-06-01T08:00:00.000Z",
            "passwords": [{
                "id": "p1",
                "title": "GitHub",
                "login": "me@x.com",
                "password": "p@ss",
                "tags": ["work", "Work", "dev"],
                "created": "2023-05-01T08:00:00.000Z",
                "modified": "2023-05-02T08:00:00.000Z",
            }],
            "tags": [{"id": "t1", "name": "work", "color": "#3b82f6"}],
        }
        vault = serialization.vault_from_dict(doc)

        record = vault.records[0]
        assert record.login == "me@x.com"
        assert record.secret == "p@ss"
        assert record.tag_names == ("work", "dev")
        assert [t.name for t in vault.tags] == ["work", "dev"]
        assert vault.tags[0].color == "#3b82f6"
        assert vault.tags[1].color == TAG_COLORS[1]
        assert vault.format_version == "1.0.0"
        assert vault.modified_at == datetime(2023, 6, 1, 8, tzinfo=timezone.utc)

    def test_database_shape(self):
        doc = {
            "version": "1.0.0",
            "created": "2023-05-01T08:00:00Z",
            "modified": "2023-05-01T08:00:00Z",
            "entries": [{
                "id": "e1",
                "title": "Mail",
                "username": "me",
                "password": "pw",
                "url": "https://mail.example",
                "notes": "old",
                "created": "2023-05-01T08:00:00Z",
            }],
        }
        vault = serialization.vault_from_dict(doc)

        record = vault.records[0]
        assert record.login == "me"
        assert record.notes == "old"
        assert record.modified_at == record.created_at
        assert vault.tags == ()

    def test_migrated_vault_writes_canonical_shape(self):
        doc = {
            "created": "2023-05-01T08:00:00Z",
            "entries": [{"id": "e1", "title": "Mail", "username": "me",
                         "password": "pw", "created": "2023-05-01T08:00:00Z"}],
        }
        written = json.loads(serialization.dumps(serialization.vault_from_dict(doc)))
        assert "records" in written
        assert "entries" not in written
        assert written["records"][0]["secret"] == "pw"
        assert written["records"][0]["login"] == "me"

    def test_legacy_record_missing_password(self):
        doc = {
            "created": "2023-05-01T08:00:00Z",
            "passwords": [{"id": "p1", "title": "x", "created": "2023-05-01T08:00:00Z"}],
        }
        with pytest.raises(CorruptionError, match="password"):
            serialization.vault_from_dict(doc)
