"""
Tests for the document repository: CRUD, queries, pagination and caching.

Uses the temp_db fixture, so every test starts from an empty store.
"""
import pytest

from telehealth_svc.core.exceptions import (
    AuditLogImmutableError,
    DataAccessError,
    DocumentNotFoundError,
    InvalidQueryError,
)
from telehealth_svc.repositories import AuditLogRepository, DocumentRepository, Filter, QueryCache, QueryOptions


@pytest.fixture
def patients(repo_factory):
    return repo_factory("patients")


@pytest.fixture
def seeded(patients):
    """Five patients with distinct ages, inserted oldest first."""
    for i, (name, age, status, tags) in enumerate([
        ("Ada", 34, "active", ["vip"]),
        ("Ben", 52, "inactive", []),
        ("Cy", 19, "active", ["new", "vip"]),
        ("Di", 41, "pending", ["new"]),
        ("Ed", 67, "active", []),
    ]):
        patients.create({"firstName": name, "age": age, "status": status, "tags": tags}, doc_id=f"p{i}")
    return patients


# =============================================================================
# CRUD
# =============================================================================

class TestCrud:
    """Create, read, update and delete."""

    def test_create_stamps_id_and_timestamps(self, patients):
        doc = patients.create({"firstName": "Jane", "id": "ignored", "createdAt": "1999"})
        assert doc["id"] != "ignored"
        assert len(doc["id"]) == 20
        assert doc["createdAt"] == doc["updatedAt"]
        assert doc["createdAt"] != "1999"
        assert patients.get_by_id(doc["id"]) == doc

    def test_explicit_duplicate_id_is_conflict(self, patients):
        patients.create({"firstName": "A"}, doc_id="same")
        with pytest.raises(DataAccessError) as exc_info:
            patients.create({"firstName": "B"}, doc_id="same")
        assert exc_info.value.code == "already-exists"
        assert exc_info.value.status_code == 409

    def test_same_id_in_other_collection_is_fine(self, repo_factory):
        repo_factory("patients").create({"x": 1}, doc_id="shared")
        assert repo_factory("orders").create({"x": 2}, doc_id="shared")["id"] == "shared"

    def test_get_missing_returns_none(self, patients):
        assert patients.get_by_id("nope") is None

    def test_update_merges_fields(self, patients):
        doc = patients.create({"firstName": "Jane", "lastName": "Doe"})
        updated = patients.update(doc["id"], {"lastName": "Smith", "createdAt": "tampered"})
        assert updated["firstName"] == "Jane"
        assert updated["lastName"] == "Smith"
        assert updated["createdAt"] == doc["createdAt"]
        assert updated["updatedAt"] >= doc["updatedAt"]

    def test_update_missing_raises(self, patients):
        with pytest.raises(DocumentNotFoundError):
            patients.update("nope", {"a": 1})

    def test_delete(self, patients):
        doc = patients.create({"firstName": "Jane"})
        patients.delete(doc["id"])
        assert patients.get_by_id(doc["id"]) is None
        with pytest.raises(DocumentNotFoundError):
            patients.delete(doc["id"])

    def test_create_many_and_retain_latest(self, repo_factory):
        events = repo_factory("monitoring_events")
        events.create_many([{"n": i} for i in range(5)])
        assert events.count() == 5
        assert events.retain_latest(2) == 3
        remaining = sorted(doc["n"] for doc in events.get_all().items)
        assert remaining == [3, 4]


# =============================================================================
# QUERIES
# =============================================================================

class TestQueries:
    """Filtering, sorting and pagination."""

    def test_default_order_is_newest_first(self, seeded):
        page = seeded.get_all()
        assert [d["id"] for d in page.items] == ["p4", "p3", "p2", "p1", "p0"]
        assert page.total == 5
        assert not page.has_more

    def test_equality_filter_and_sort(self, seeded):
        page = seeded.get_all(QueryOptions(
            filters=[Filter("status", "==", "active")], order_by="age", direction="asc",
        ))
        assert [d["firstName"] for d in page.items] == ["Cy", "Ada", "Ed"]
        assert page.total == 3

    def test_range_filters(self, seeded):
        page = seeded.get_all(QueryOptions(filters=[Filter("age", ">=", 40), Filter("age", "<", 60)]))
        assert sorted(d["firstName"] for d in page.items) == ["Ben", "Di"]

    def test_in_and_not_in(self, seeded):
        page = seeded.get_all(QueryOptions(filters=[Filter("status", "in", ["pending", "inactive"])]))
        assert sorted(d["firstName"] for d in page.items) == ["Ben", "Di"]
        page = seeded.get_all(QueryOptions(filters=[Filter("status", "not-in", ["active"])]))
        assert sorted(d["firstName"] for d in page.items) == ["Ben", "Di"]

    def test_empty_in_matches_nothing(self, seeded):
        assert seeded.get_all(QueryOptions(filters=[Filter("status", "in", [])])).total == 0

    def test_array_contains(self, seeded):
        page = seeded.get_all(QueryOptions(filters=[Filter("tags", "array-contains", "vip")]))
        assert sorted(d["firstName"] for d in page.items) == ["Ada", "Cy"]
        page = seeded.get_all(QueryOptions(filters=[Filter("tags", "array-contains-any", ["new", "vip"])]))
        assert sorted(d["firstName"] for d in page.items) == ["Ada", "Cy", "Di"]

    def test_none_valued_filter_is_ignored(self, seeded):
        assert seeded.get_all(QueryOptions(filters=[Filter("status", "==", None)])).total == 5

    def test_sort_field_missing_excludes_document(self, seeded):
        seeded.create({"firstName": "NoAge"})
        page = seeded.get_all(QueryOptions(order_by="age"))
        assert "NoAge" not in [d["firstName"] for d in page.items]
        assert page.total == 5

    def test_cursor_pagination_walks_every_document_once(self, seeded):
        options = QueryOptions(order_by="age", direction="asc", page_size=2)
        seen = []
        page = seeded.get_all(options)
        seen.extend(d["age"] for d in page.items)
        while page.has_more:
            options = options.next(page)
            page = seeded.get_all(options)
            seen.extend(d["age"] for d in page.items)
        assert seen == [19, 34, 41, 52, 67]

    def test_unknown_cursor_is_rejected(self, seeded):
        with pytest.raises(InvalidQueryError):
            seeded.get_all(QueryOptions(start_after="missing"))

    def test_count_with_filters(self, seeded):
        assert seeded.count([Filter("status", "==", "active")]) == 3


class TestQueryOptions:
    """Validation of query building blocks."""

    def test_parse_filter_decodes_json(self):
        f = Filter.parse('age:>=:18')
        assert (f.field, f.op, f.value) == ("age", ">=", 18)
        assert Filter.parse('status:in:["a","b"]').value == ["a", "b"]
        assert Filter.parse("name:==:Jane").value == "Jane"

    def test_parse_keeps_colons_in_value(self):
        assert Filter.parse("time:==:10:30").value == "10:30"

    @pytest.mark.parametrize("expression", ["status", "status:==", ":==:x"])
    def test_malformed_filter(self, expression):
        with pytest.raises(InvalidQueryError):
            Filter.parse(expression)

    def test_unknown_operator(self):
        with pytest.raises(InvalidQueryError):
            Filter("status", "like", "a%")

    def test_list_operator_needs_list(self):
        with pytest.raises(InvalidQueryError):
            Filter("status", "in", "active")

    def test_field_name_injection_rejected(self):
        with pytest.raises(InvalidQueryError):
            QueryOptions(order_by="age') --")

    def test_page_size_must_be_positive(self):
        with pytest.raises(InvalidQueryError):
            QueryOptions(page_size=0)


# =============================================================================
# CACHE
# =============================================================================

class TestCache:
    """QueryCache behaviour as seen through the repository."""

    def test_read_after_write_is_fresh(self, patients, query_cache):
        patients.create({"firstName": "A"})
        assert patients.count() == 1
        patients.create({"firstName": "B"})
        assert patients.count() == 2

    def test_cached_results_are_copies(self, patients):
        doc = patients.create({"firstName": "Jane"})
        fetched = patients.get_by_id(doc["id"])
        fetched["firstName"] = "Mutated"
        assert patients.get_by_id(doc["id"])["firstName"] == "Jane"

    def test_entries_expire(self):
        now = [0.0]
        cache = QueryCache(ttl_seconds=10, clock=lambda: now[0])
        cache.set("patients", "k", 1)
        assert cache.get("patients", "k") == 1
        now[0] = 11.0
        assert cache.get("patients", "k") is None

    def test_invalidate_only_touches_one_collection(self):
        cache = QueryCache(ttl_seconds=60)
        cache.set("patients", "a", 1)
        cache.set("orders", "a", 2)
        assert cache.invalidate("patients") == 1
        assert cache.get("orders", "a") == 2

    def test_load_racing_a_write_is_not_cached(self):
        cache = QueryCache(ttl_seconds=60)

        def loader():
            # A write lands while the read is still running
            cache.invalidate("patients")
            return ["stale"]

        assert cache.get_or_load("patients", "list", loader) == ["stale"]
        assert cache.get("patients", "list") is None
        assert len(cache) == 0

    def test_clear_during_load_drops_result(self):
        cache = QueryCache(ttl_seconds=60)

        def loader():
            cache.clear()
            return 1

        cache.get_or_load("orders", "count", loader)
        assert cache.get("orders", "count") is None

    def test_load_without_interference_is_cached(self):
        cache = QueryCache(ttl_seconds=60)
        cache.get_or_load("patients", "list", lambda: [1])
        assert cache.get_or_load("patients", "list", lambda: [2]) == [1]

    def test_zero_ttl_disables_caching(self, temp_db):
        repo = DocumentRepository(db=temp_db, collection="patients", cache=QueryCache(ttl_seconds=0))
        repo.create({"firstName": "A"})
        assert repo.count() == 1


# =============================================================================
# AUDIT LOG
# =============================================================================

class TestAuditLogRepository:
    """Audit entries are append-only."""

    def test_create_and_read(self, audit_repo):
        entry = audit_repo.create({"action": "create", "actor": "admin"})
        assert audit_repo.get_by_id(entry["id"])["action"] == "create"

    def test_update_and_delete_refused(self, audit_repo):
        entry = audit_repo.create({"action": "create"})
        with pytest.raises(AuditLogImmutableError):
            audit_repo.update(entry["id"], {"action": "tampered"})
        with pytest.raises(AuditLogImmutableError):
            audit_repo.delete(entry["id"])
        assert audit_repo.get_by_id(entry["id"])["action"] == "create"

    def test_uses_audit_collection(self, temp_db):
        assert AuditLogRepository(db=temp_db).collection == "audit_logs"
