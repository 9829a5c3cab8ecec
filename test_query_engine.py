"""
Query engine and document store tests
=====================================
Filters, sorting, projection and paging against an in-memory store.
"""
import pytest

from taskapi.core.database import build_engine, init_db
from taskapi.core.errors import InvalidQuery
from taskapi.repositories.task_repository import TaskRepository
from taskapi.repositories.user_repository import UserRepository
from taskapi.services.query_engine import QueryEngine


@pytest.fixture
def engine():
    eng = build_engine("")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def tasks(engine):
    repo = TaskRepository(engine)
    repo.insert({"id": "t1", "name": "Write report", "deadline": "2025-01-01", "completed": False})
    repo.insert({"id": "t2", "name": "review PR", "deadline": "2025-03-01", "completed": True})
    repo.insert({"id": "t3", "name": "Deploy", "deadline": "2025-02-01", "completed": False,
                 "assignedUser": "u1", "assignedUserName": "Alice"})
    return repo


@pytest.fixture
def users(engine):
    repo = UserRepository(engine)
    repo.insert({"id": "u1", "name": "Alice", "email": "alice@x.com", "pendingTasks": ["t1", "t3"]})
    repo.insert({"id": "u2", "name": "Bob", "email": "bob@x.com"})
    repo.insert({"id": "u3", "name": "Carol", "email": "carol@x.com", "pendingTasks": ["t2"]})
    return repo


def ids(docs):
    return sorted(d["id"] for d in docs)


qe = QueryEngine()


# ═══════════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════════
class TestParse:
    def test_defaults(self):
        query = qe.parse()
        assert query.filter is None and query.sort is None and query.projection is None
        assert query.skip is None and query.limit is None and query.count is False

    def test_full_query(self):
        query = qe.parse(
            where='{"completed": false}', sort='{"name": 1}', select='["name"]',
            skip="2", limit="5", count="true",
        )
        assert query.filter == {"completed": False}
        assert query.sort == {"name": 1}
        assert query.projection == ["name"]
        assert (query.skip, query.limit, query.count) == (2, 5, True)

    def test_blank_values_are_absent(self):
        query = qe.parse(where="", sort="  ", skip="", limit="")
        assert query.filter is None and query.sort is None
        assert query.skip is None and query.limit is None

    @pytest.mark.parametrize("kwargs", [
        {"where": "{not json"},
        {"where": "[1, 2]"},
        {"sort": '"name"'},
        {"select": "7"},
        {"skip": "-3"},
        {"limit": "1.5"},
        {"count": "sometimes"},
    ])
    def test_rejects(self, kwargs):
        with pytest.raises(InvalidQuery):
            qe.parse(**kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# FILTERS
# ═══════════════════════════════════════════════════════════════════════════
class TestFilters:
    def test_equality(self, tasks):
        assert ids(tasks.find({"completed": False})) == ["t1", "t3"]

    def test_null_matches_unassigned(self, tasks):
        assert ids(tasks.find({"assignedUser": None})) == ["t1", "t2"]

    def test_ne_includes_nulls(self, tasks):
        assert ids(tasks.find({"assignedUser": {"$ne": "u1"}})) == ["t1", "t2"]

    def test_in_and_nin(self, tasks):
        assert ids(tasks.find({"id": {"$in": ["t1", "t2", "nope"]}})) == ["t1", "t2"]
        assert ids(tasks.find({"id": {"$nin": ["t1"]}})) == ["t2", "t3"]

    def test_date_range(self, tasks):
        found = tasks.find({"deadline": {"$gte": "2025-01-15", "$lt": "2025-03-01"}})
        assert ids(found) == ["t3"]

    def test_or(self, tasks):
        found = tasks.find({"$or": [{"completed": True}, {"assignedUserName": "Alice"}]})
        assert ids(found) == ["t2", "t3"]

    def test_nor(self, tasks):
        assert ids(tasks.find({"$nor": [{"id": "t1"}, {"id": "t2"}]})) == ["t3"]

    def test_regex_case_insensitive(self, tasks):
        assert ids(tasks.find({"name": {"$regex": "^re"}})) == ["t2"]
        assert ids(tasks.find({"name": {"$regex": "^re", "$options": "i"}})) == ["t2"]
        assert ids(tasks.find({"name": {"$regex": "^w", "$options": "i"}})) == ["t1"]

    def test_exists(self, tasks):
        assert ids(tasks.find({"assignedUser": {"$exists": True}})) == ["t3"]

    def test_email_filter_is_normalised(self, users):
        assert ids(users.find({"email": "  ALICE@x.com"})) == ["u1"]

    @pytest.mark.parametrize("spec", [
        {"owner": "u1"},
        {"$where": "1"},
        {"name": {"$foo": 1}},
        {"name": {"nested": 1}},
        {"completed": "yes"},
        {"deadline": "whenever"},
        {"name": {"$regex": "("}},
        {"name": {"$regex": "a", "$options": "m"}},
        {"completed": {"$regex": "t"}},
        {"$or": []},
        {"id": {"$in": "t1"}},
    ])
    def test_invalid_filters(self, tasks, spec):
        with pytest.raises(InvalidQuery):
            tasks.find(spec)


class TestSetFieldFilters:
    def test_contains(self, users):
        assert ids(users.find({"pendingTasks": "t3"})) == ["u1"]

    def test_in(self, users):
        assert ids(users.find({"pendingTasks": {"$in": ["t2", "t3"]}})) == ["u1", "u3"]

    def test_nin(self, users):
        assert ids(users.find({"pendingTasks": {"$nin": ["t1"]}})) == ["u2", "u3"]

    def test_all(self, users):
        assert ids(users.find({"pendingTasks": {"$all": ["t1", "t3"]}})) == ["u1"]
        assert users.find({"pendingTasks": {"$all": ["t1", "t2"]}}) == []

    def test_size(self, users):
        assert ids(users.find({"pendingTasks": {"$size": 0}})) == ["u2"]
        assert ids(users.find({"pendingTasks": {"$size": 2}})) == ["u1"]

    def test_rejects_non_string_members(self, users):
        with pytest.raises(InvalidQuery):
            users.find({"pendingTasks": {"$in": [1]}})

    def test_rejects_negative_size(self, users):
        with pytest.raises(InvalidQuery):
            users.find({"pendingTasks": {"$size": -1}})


# ═══════════════════════════════════════════════════════════════════════════
# SORT / PROJECTION / PAGING
# ═══════════════════════════════════════════════════════════════════════════
class TestShaping:
    def test_sort_desc(self, tasks):
        found = tasks.find(sort={"deadline": -1})
        assert [t["id"] for t in found] == ["t2", "t3", "t1"]

    def test_sort_by_two_keys(self, tasks):
        found = tasks.find(sort={"completed": "asc", "name": "desc"})
        assert [t["id"] for t in found] == ["t1", "t3", "t2"]

    @pytest.mark.parametrize("sort", [{"owner": 1}, {"name": 2}, {"name": True}])
    def test_bad_sort(self, tasks, sort):
        with pytest.raises(InvalidQuery):
            tasks.find(sort=sort)

    def test_skip_limit(self, tasks):
        found = tasks.find(sort={"deadline": 1}, skip=1, limit=1)
        assert [t["id"] for t in found] == ["t3"]

    def test_limit_zero_means_all(self, tasks):
        assert len(tasks.find(limit=0)) == 3

    def test_inclusion_keeps_id(self, users):
        doc = users.find({"id": "u1"}, projection=["name"])[0]
        assert doc == {"id": "u1", "name": "Alice"}

    def test_inclusion_without_id(self, users):
        doc = users.find({"id": "u1"}, projection={"pendingTasks": 1, "id": 0})[0]
        assert doc == {"pendingTasks": ["t1", "t3"]}

    def test_exclusion(self, users):
        doc = users.find({"id": "u2"}, projection={"email": 0, "createdAt": 0})[0]
        assert doc == {"id": "u2", "name": "Bob", "pendingTasks": []}

    @pytest.mark.parametrize("projection", [{"name": 1, "email": 0}, {"owner": 1}, {"name": 5}, [3]])
    def test_bad_projection(self, users, projection):
        with pytest.raises(InvalidQuery):
            users.find(projection=projection)

    def test_pending_order_is_insertion_order(self, users):
        assert users.find_by_id("u1")["pendingTasks"] == ["t1", "t3"]

    def test_timestamps_serialised_as_utc_iso(self, tasks):
        assert tasks.find_by_id("t1")["deadline"] == "2025-01-01T00:00:00+00:00"


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════
class TestRun:
    def test_count_ignores_paging(self, tasks):
        query = qe.parse(where='{"completed": false}', limit="1", count="true")
        assert qe.run(tasks, query) == 2

    def test_find(self, tasks):
        query = qe.parse(where='{"completed": false}', sort='{"name": 1}', select='{"name": 1}')
        assert qe.run(tasks, query) == [
            {"id": "t3", "name": "Deploy"},
            {"id": "t1", "name": "Write report"},
        ]

    def test_empty_result(self, users):
        assert qe.run(users, qe.parse(where='{"name": "Nobody"}')) == []
