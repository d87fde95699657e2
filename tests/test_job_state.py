from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from auth0_ingestion.errors import DuplicateKeyError
from auth0_ingestion.job_state import JobState


def _entity(key, _type="auth0_user"):
    return {"_key": key, "_type": _type, "_class": "User"}


def _rel(key):
    return {
        "_key": key,
        "_type": "auth0_account_has_user",
        "_class": "HAS",
        "_fromEntityKey": "a",
        "_toEntityKey": "b",
    }


class TestCollection:
    def test_add_entity_returns_it(self):
        state = JobState("instance-1")
        e = _entity("u1")

        assert state.add_entity(e) is e
        assert state.collected_entities == [e]
        assert state.has_key("u1")
        assert state.encountered_types == {"auth0_user"}

    def test_duplicate_entity_key(self):
        state = JobState("instance-1")
        state.add_entity(_entity("u1"))

        with pytest.raises(DuplicateKeyError):
            state.add_entity(_entity("u1"))

    def test_duplicate_across_entities_and_relationships(self):
        state = JobState("instance-1")
        state.add_entity(_entity("k"))

        with pytest.raises(DuplicateKeyError):
            state.add_relationship(_rel("k"))

    def test_bulk_adds(self):
        state = JobState("instance-1")
        state.add_entities([_entity("u1"), _entity("u2")])
        state.add_relationships([_rel("r1")])

        assert len(state.collected_entities) == 2
        assert len(state.collected_relationships) == 1

    def test_data(self):
        state = JobState("instance-1")
        assert state.get_data("missing") is None
        state.set_data("DATA_ACCOUNT_ENTITY", {"_key": "a"})
        assert state.get_data("DATA_ACCOUNT_ENTITY") == {"_key": "a"}


class TestFlush:
    def test_dry_run(self):
        state = JobState("instance-1")
        state.add_entity(_entity("u1"))

        assert state.flush() == {"graph_entities": 0, "graph_relationships": 0}

    def test_batches_and_only_new_rows(self):
        db = MagicMock()
        db.upsert_entities.side_effect = lambda instance_id, batch: len(batch)
        db.upsert_relationships.side_effect = lambda instance_id, batch: len(batch)
        state = JobState("instance-1", db=db, batch_size=2)
        state.add_entities([_entity(f"u{i}") for i in range(5)])
        state.add_relationship(_rel("r1"))

        assert state.flush() == {"graph_entities": 5, "graph_relationships": 1}
        assert [len(c.args[1]) for c in db.upsert_entities.call_args_list] == [2, 2, 1]
        assert all(c.args[0] == "instance-1" for c in db.upsert_entities.call_args_list)

        state.add_entity(_entity("u5"))
        assert state.flush() == {"graph_entities": 1, "graph_relationships": 0}
        assert db.upsert_entities.call_args.args[1] == [_entity("u5")]
