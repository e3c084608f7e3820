"""
Tests for the in-memory and local filesystem document stores.
"""
import json

import pytest

from config import StorageConfig
from storage import (
    BatchWriteError,
    FieldFilter,
    FirestoreRestRepository,
    InMemoryRepository,
    LocalJsonRepository,
    WriteOp,
    get_repository,
    merge_document,
)


@pytest.fixture(params=["memory", "local"])
def repository(request, tmp_path):
    if request.param == "memory":
        return InMemoryRepository()
    return LocalJsonRepository(tmp_path / "documents")


class TestFieldFilter:
    def test_operators(self):
        doc = {"status": "booked", "amount": 10}

        assert FieldFilter("status", "==", "booked").matches(doc)
        assert FieldFilter("status", "!=", "cancelled").matches(doc)
        assert FieldFilter("status", "in", ["booked", "checked-in"]).matches(doc)
        assert FieldFilter("amount", ">", 5).matches(doc)
        assert FieldFilter("amount", "<=", 10).matches(doc)
        assert not FieldFilter("amount", "<", 10).matches(doc)

    def test_missing_field_never_matches(self):
        assert not FieldFilter("noticed", "!=", True).matches({})

    def test_incomparable_types_do_not_match(self):
        assert not FieldFilter("amount", ">", 5).matches({"amount": "ten"})

    def test_rejects_unknown_operator(self):
        with pytest.raises(ValueError):
            FieldFilter("status", "like", "book%")

    def test_in_requires_a_list(self):
        with pytest.raises(ValueError):
            FieldFilter("status", "in", "booked")


class TestMergeDocument:
    def test_nested_maps_merge_and_other_values_replace(self):
        existing = {"noticed": True, "details": {"a": 1, "b": 2}, "tags": ["x"]}

        merged = merge_document(existing, {"details": {"b": 3}, "tags": ["y"], "type": "t"})

        assert merged == {"noticed": True, "details": {"a": 1, "b": 3}, "tags": ["y"], "type": "t"}
        assert existing["details"] == {"a": 1, "b": 2}


class TestRepositoryContract:
    def test_set_get_and_list(self, repository):
        repository.set_document("rooms", "101", {"roomNumber": "101", "status": "Occupied"})
        repository.set_document("rooms", "102", {"roomNumber": "102", "status": "Available"})

        assert repository.get_document("rooms", "101") == {"roomNumber": "101", "status": "Occupied", "id": "101"}
        assert repository.get_document("rooms", "999") is None
        assert sorted(doc["id"] for doc in repository.list_collection("rooms")) == ["101", "102"]
        assert repository.list_collection("missing") == []

    def test_list_with_predicate(self, repository):
        repository.set_document("nightAuditIssues", "a:1", {"noticed": True})
        repository.set_document("nightAuditIssues", "a:2", {"noticed": False})

        docs = repository.list_collection("nightAuditIssues", FieldFilter("noticed", "==", True))

        assert [doc["id"] for doc in docs] == ["a:1"]

    def test_replace_vs_merge(self, repository):
        repository.set_document("nightAuditIssues", "k", {"noticed": True, "message": "old"})

        repository.set_document("nightAuditIssues", "k", {"message": "new"}, merge=True)
        assert repository.get_document("nightAuditIssues", "k")["noticed"] is True

        repository.set_document("nightAuditIssues", "k", {"message": "newer"})
        assert "noticed" not in repository.get_document("nightAuditIssues", "k")

    def test_batch_applies_everything(self, repository):
        repository.write_batch([
            WriteOp("nightAuditLogs", "2025-03-10", {"runBy": "a"}),
            WriteOp("nightAuditIssues", "possible_noshow:r1", {"noticed": False}, merge=True),
        ])

        assert repository.get_document("nightAuditLogs", "2025-03-10")["runBy"] == "a"
        assert repository.get_document("nightAuditIssues", "possible_noshow:r1")["noticed"] is False

    def test_rejected_batch_writes_nothing(self, repository):
        with pytest.raises(BatchWriteError):
            repository.write_batch([
                WriteOp("nightAuditLogs", "2025-03-10", {"runBy": "a"}),
                WriteOp("nightAuditIssues", "", {"noticed": False}),
            ])

        assert repository.list_collection("nightAuditLogs") == []


class TestLocalJsonRepository:
    def test_keys_with_colons_are_encoded_on_disk(self, tmp_path):
        repo = LocalJsonRepository(tmp_path)
        repo.set_document("nightAuditIssues", "possible_noshow:r1", {"noticed": False})

        path = tmp_path / "nightAuditIssues" / "possible_noshow%3Ar1.json"
        assert json.loads(path.read_text(encoding="utf-8")) == {"noticed": False}
        assert repo.list_collection("nightAuditIssues")[0]["id"] == "possible_noshow:r1"

    def test_unserializable_batch_leaves_no_temp_files(self, tmp_path):
        repo = LocalJsonRepository(tmp_path)

        with pytest.raises(BatchWriteError):
            repo.write_batch([
                WriteOp("c", "ok", {"v": 1}),
                WriteOp("c", "bad", {"v": object()}),
            ])

        assert list((tmp_path / "c").iterdir()) == []


class TestGetRepository:
    def test_memory_backend(self):
        assert isinstance(get_repository(StorageConfig(backend="memory")), InMemoryRepository)

    def test_local_backend(self, tmp_path):
        repo = get_repository(StorageConfig(backend="local", base_dir=tmp_path))
        assert isinstance(repo, LocalJsonRepository)

    def test_unconfigured_firestore_falls_back_to_local(self, tmp_path):
        config = StorageConfig(backend="firestore", base_dir=tmp_path,
                               firestore_project_id=None, firestore_access_token=None)
        assert isinstance(get_repository(config), LocalJsonRepository)

    def test_configured_firestore(self):
        config = StorageConfig(backend="firestore", firestore_project_id="hotel",
                               firestore_access_token="token")
        assert isinstance(get_repository(config), FirestoreRestRepository)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_repository(StorageConfig(backend="sqlite"))
