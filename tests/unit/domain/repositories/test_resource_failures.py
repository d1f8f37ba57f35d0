"""Resource failure paths: store errors and pre-store rejections."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.domain.models.documents import DriveItem
from src.domain.models.enums import ResultCode
from src.domain.repositories.resource import Resource
from src.domain.repositories.store import DocumentStore, StoreError
from src.domain.validators import Validator


class _RejectAll(Validator):
    def validate(self, payload, partial=False):
        return None, "payload rejected"


def _store(**side_effects):
    store = AsyncMock(spec=DocumentStore)
    for name, effect in side_effects.items():
        getattr(store, name).side_effect = effect
    return store


def _resource(store, validator=None):
    return Resource(store, DriveItem, app_id="A1", validator=validator)


# --- store failures become 400 envelopes carrying the store message ---

@pytest.mark.parametrize(
    "method, args, store_method",
    [
        ("create", ({"name": "a"},), "insert_one"),
        ("update", ({"name": "a"}, str(uuid4())), "find_one_and_update"),
        ("set_field", ({"name": "a"}, str(uuid4())), "find_one_and_update"),
        ("get_all", (), "find_many"),
        ("get_by_filter", ({},), "find_one"),
        ("get_all_by_filter", ({}, 10, 0), "find_many"),
        ("get_count", ({},), "count"),
        ("get_sum_of_field", ({}, "size"), "aggregate"),
        ("exists", ([{"name": "a"}],), "aggregate"),
        ("activate", (str(uuid4()),), "update_one"),
        ("report", ("enc",), "update_one"),
        ("generate_dummy_data", ((), None, 2), "insert_many"),
    ],
)
async def test_store_error_is_converted_to_bad_request(method, args, store_method):
    store = _store(**{store_method: StoreError("connection lost")})
    result = await getattr(_resource(store), method)(*args)
    assert result.code == ResultCode.BAD_REQUEST
    assert result.message == "connection lost"


async def test_hard_delete_store_error_is_converted():
    store = _store(find_one_and_delete=StoreError("locked"))
    result = await _resource(store).delete(uuid4(), hard=True)
    assert result.message == "locked"


async def test_soft_delete_stops_when_marking_fails():
    store = _store(update_one=StoreError("down"))
    result = await _resource(store).delete(uuid4())
    assert result.message == "down"
    assert store.update_one.await_count == 1


# --- rejected before any store call ---

async def test_validation_failure_never_reaches_store():
    store = _store()
    result = await _resource(store, validator=_RejectAll()).create({"name": "a"})
    assert result.message == "payload rejected"
    store.insert_one.assert_not_awaited()


async def test_update_validation_failure_never_reaches_store():
    store = _store()
    result = await _resource(store, validator=_RejectAll()).update({"name": "a"}, uuid4())
    assert result.message == "payload rejected"
    store.find_one_and_update.assert_not_awaited()


@pytest.mark.parametrize("method", ["activate", "deactivate", "delete"])
async def test_malformed_id_never_reaches_store(method):
    store = _store()
    result = await getattr(_resource(store), method)("xyz")
    assert result.message == "invalid id"
    store.update_one.assert_not_awaited()
    store.find_one_and_delete.assert_not_awaited()


async def test_set_field_malformed_id_never_reaches_store():
    store = _store()
    result = await _resource(store).set_field({"name": "a"}, 42)
    assert result.message == "invalid id"
    store.find_one_and_update.assert_not_awaited()


# --- update never upserts ---

async def test_update_uses_scoped_match_and_reports_missing_document():
    store = _store()
    store.find_one_and_update.return_value = None
    doc_id = str(uuid4())
    result = await _resource(store).update({"name": "a"}, doc_id)
    assert result.message == "id does not exist"
    filter, update = store.find_one_and_update.await_args.args
    assert filter == {"id": doc_id, "app_id": "A1"}
    assert update == {"$set": {"name": "a"}}


async def test_update_strips_lifecycle_keys_from_payload():
    store = _store()
    store.find_one_and_update.return_value = None
    await _resource(store).update({"name": "a", "status": 2, "app_id": "B2"}, uuid4())
    _, update = store.find_one_and_update.await_args.args
    assert update == {"$set": {"name": "a"}}
