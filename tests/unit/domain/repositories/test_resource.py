"""Behavioural tests for Resource against the in-memory document store."""

from uuid import UUID, uuid4

from faker import Faker

from src.domain.models.documents import DriveItem
from src.domain.models.enrichment import VideoMetrics
from src.domain.models.enums import EnrichmentFailure, EntityStatus, ResultCode
from src.domain.repositories.resource import Resource
from src.domain.services.analytics import AnalyticsClient, VideoAnalyticsEnricher
from src.domain.services.dummy_data import DummyDataFactory
from src.domain.validators import ModelValidator
from src.infrastructure.persistence.stores.memory import InMemoryDocumentStore

APP = "A1"


def _resource(store=None, app_id=APP, **kwargs):
    return Resource(
        store if store is not None else InMemoryDocumentStore(),
        DriveItem,
        app_id=app_id,
        validator=ModelValidator(DriveItem),
        **kwargs,
    )


async def _create(resource, **payload):
    payload.setdefault("name", "x")
    result = await resource.create(payload)
    assert result.code == ResultCode.CREATED
    return result.data


async def _list(resource, **kwargs):
    result = await resource.get_all_by_filter({}, 10, 0, {}, **kwargs)
    assert result.is_success
    return result.data


# --- create ---

async def test_create_attaches_scope_and_lifecycle_defaults():
    item = await _create(_resource(), name="report.pdf")
    assert isinstance(item.id, UUID)
    assert item.app_id == APP
    assert item.status == EntityStatus.ACTIVE
    assert item.deleted_root is False
    assert item.reported is False


async def test_create_ignores_caller_supplied_scope_and_status():
    item = await _create(_resource(), name="x", app_id="B2", status=2, deleted_root=True)
    assert item.app_id == APP
    assert item.status == EntityStatus.ACTIVE
    assert item.deleted_root is False


async def test_create_stores_model_defaults():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    item = await _create(resource, name="x")
    stored = await store.find_by_id(str(item.id))
    assert stored["type"] == "file"
    assert stored["size"] == 0
    assert (await resource.get_count({"type": "file"})).data == 1
    assert [entry.name for entry in await _list(resource)] == ["x"]
    assert [entry.name for entry in (await resource.get_all_by_filter({"size": 0}, 10, 0)).data] == ["x"]


async def test_create_validation_failure_writes_nothing():
    store = InMemoryDocumentStore()
    result = await _resource(store).create({"size": 3})
    assert result.code == ResultCode.BAD_REQUEST
    assert "name" in result.message
    assert result.data is None
    assert len(store) == 0


# --- lifecycle scenario ---

async def test_scoped_lifecycle_scenario():
    resource = _resource()
    item = await _create(resource, name="x")

    assert [i.id for i in await _list(resource)] == [item.id]

    deactivated = await resource.deactivate(item.id)
    assert deactivated.code == ResultCode.CREATED
    assert deactivated.message == "deactivated"
    assert (await resource.get_by_id(item.id)).data.status == EntityStatus.INACTIVE
    assert [i.id for i in await _list(resource)] == [item.id]

    deleted = await resource.delete(item.id, hard=False)
    assert deleted.code == ResultCode.CREATED
    assert deleted.message == "deleted"
    assert await _list(resource) == []


async def test_soft_deleted_entity_only_visible_with_explicit_status():
    resource = _resource()
    item = await _create(resource)
    await resource.delete(item.id)

    assert (await resource.get_by_id(item.id)).data is None
    result = await resource.get_by_filter({"id": str(item.id)}, statuses=[EntityStatus.DELETED])
    assert result.data.status == EntityStatus.DELETED
    assert result.data.deleted_root is True


async def test_deleted_is_terminal():
    resource = _resource()
    item = await _create(resource)
    await resource.delete(item.id)

    assert (await resource.activate(item.id)).code == ResultCode.BAD_REQUEST
    assert (await resource.delete(item.id)).code == ResultCode.BAD_REQUEST
    result = await resource.get_by_filter({"id": str(item.id)}, statuses=[EntityStatus.DELETED])
    assert result.data.status == EntityStatus.DELETED


async def test_activate_and_deactivate_are_reversible():
    resource = _resource()
    item = await _create(resource)
    await resource.deactivate(item.id)
    activated = await resource.activate(item.id)
    assert activated.message == "activated"
    assert activated.data["status"] == EntityStatus.ACTIVE
    assert (await resource.get_by_id(item.id)).data.status == EntityStatus.ACTIVE


async def test_status_change_is_matched_by_id_only():
    store = InMemoryDocumentStore()
    item = await _create(_resource(store, app_id=APP))
    result = await _resource(store, app_id="B2").deactivate(item.id)
    assert result.is_success


async def test_status_change_rejects_malformed_id():
    result = await _resource().activate("not-an-id")
    assert result.code == ResultCode.BAD_REQUEST
    assert result.message == "invalid id"


# --- hard delete ---

async def test_hard_delete_removes_entity_regardless_of_scope():
    store = InMemoryDocumentStore()
    item = await _create(_resource(store, app_id=APP))
    result = await _resource(store, app_id="B2").delete(item.id, hard=True)
    assert result.code == ResultCode.OK
    assert result.data.id == item.id
    assert await store.find_by_id(str(item.id)) is None


async def test_hard_delete_of_soft_deleted_entity_removes_it():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    item = await _create(resource)
    await resource.delete(item.id)
    assert (await resource.delete(item.id, hard=True)).is_success
    assert len(store) == 0


async def test_hard_delete_missing_id_fails():
    result = await _resource().delete(uuid4(), hard=True)
    assert result.code == ResultCode.BAD_REQUEST
    assert result.message == "id does not exist"


# --- reads ---

async def test_get_by_id_returns_none_when_absent():
    result = await _resource().get_by_id(uuid4())
    assert result.code == ResultCode.OK
    assert result.data is None


async def test_get_by_id_rejects_malformed_id():
    result = await _resource().get_by_id("123")
    assert result.message == "invalid id"


async def test_get_by_id_is_scoped_unless_overridden():
    store = InMemoryDocumentStore()
    item = await _create(_resource(store, app_id=APP))
    other = _resource(store, app_id="B2")
    assert (await other.get_by_id(item.id)).data is None
    assert (await other.get_by_id(item.id, scoped=False)).data.id == item.id


async def test_caller_filter_cannot_widen_status_or_scope():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    item = await _create(resource)
    await _create(_resource(store, app_id="B2"), name="other")
    await resource.delete(item.id)

    assert (await resource.get_all_by_filter({"status": 2}, 10, 0)).data == []
    assert (await resource.get_all_by_filter({"app_id": "B2"}, 10, 0)).data == []


async def test_get_all_by_filter_paginates_zero_indexed_after_sorting():
    resource = _resource()
    for size in range(1, 6):
        await _create(resource, name=f"f{size}", size=size)
    result = await resource.get_all_by_filter({}, 2, 1, {"size": -1})
    assert [item.size for item in result.data] == [3, 2]


async def test_get_all_by_filter_accepts_named_sort_direction():
    resource = _resource()
    for size in (2, 3, 1):
        await _create(resource, name=f"f{size}", size=size)
    result = await resource.get_all_by_filter({}, 10, 0, {"size": "desc"})
    assert [item.size for item in result.data] == [3, 2, 1]


async def test_get_all_by_filter_invalid_sort_direction_is_bad_request():
    resource = _resource()
    await _create(resource, name="a")
    result = await resource.get_all_by_filter({}, 10, 0, {"size": "sideways"})
    assert result.code == ResultCode.BAD_REQUEST
    assert "sort direction" in result.message


async def test_get_all_by_filter_applies_caller_filter():
    resource = _resource()
    await _create(resource, name="a", type="video")
    await _create(resource, name="b", type="file")
    result = await resource.get_all_by_filter({"type": "video"}, 10, 0)
    assert [item.name for item in result.data] == ["a"]


async def test_get_all_returns_visible_entities():
    resource = _resource()
    await _create(resource, name="a")
    deleted = await _create(resource, name="b")
    await resource.delete(deleted.id)
    assert [item.name for item in (await resource.get_all()).data] == ["a"]


async def test_get_by_ids_projects_requested_fields():
    resource = _resource()
    item = await _create(resource, name="a", size=7)
    result = await resource.get_by_ids([item.id], ["name"])
    assert result.data == [{"id": str(item.id), "name": "a"}]


async def test_get_by_ids_rejects_malformed_ids():
    result = await _resource().get_by_ids([str(uuid4()), "bad"])
    assert result.message == "invalid id"


async def test_get_by_encode_ids_excludes_id_unless_requested():
    resource = _resource()
    item = await _create(resource, name="a", encode_id="enc-1")
    assert (await resource.get_by_encode_ids(["enc-1"], ["name"])).data == [{"name": "a"}]
    with_id = await resource.get_by_encode_ids(["enc-1"], ["id", "name"])
    assert with_id.data == [{"id": str(item.id), "name": "a"}]


async def test_get_fields_covers_exactly_requested_keys():
    resource = _resource()
    item = await _create(resource, name="a", size=4)
    result = await resource.get_fields(["name", "size", "missing"], item.id)
    assert result.data == {"name": "a", "size": 4, "missing": None}


async def test_get_field_returns_single_value():
    resource = _resource()
    item = await _create(resource, name="a", size=4)
    assert (await resource.get_field(item.id, "size")).data == 4


async def test_get_fields_missing_entity_fails():
    result = await _resource().get_fields(["name"], uuid4())
    assert result.message == "id does not exist"


# --- update ---

async def test_update_changes_entity():
    resource = _resource()
    item = await _create(resource, name="a")
    result = await resource.update({"name": "b"}, item.id)
    assert result.code == ResultCode.CREATED
    assert result.message == "updated"
    assert result.data.name == "b"
    assert result.data.id == item.id


async def test_update_keeps_fields_the_payload_omits():
    resource = _resource()
    item = await _create(resource, name="a", type="video", size=7)
    result = await resource.update({"name": "b"}, item.id)
    assert result.data.type == "video"
    assert result.data.size == 7


async def test_update_missing_id_is_not_found_and_writes_nothing():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    await _create(resource, name="a")
    result = await resource.update({"name": "b"}, uuid4())
    assert result.message == "id does not exist"
    assert len(store) == 1
    assert [item.name for item in await _list(resource)] == ["a"]


async def test_update_outside_scope_is_not_found():
    store = InMemoryDocumentStore()
    item = await _create(_resource(store, app_id=APP))
    result = await _resource(store, app_id="B2").update({"name": "b"}, item.id)
    assert result.message == "id does not exist"


async def test_update_rejects_malformed_id_before_validation():
    result = await _resource().update({}, "nope")
    assert result.message == "invalid id"


async def test_update_validation_failure_writes_nothing():
    resource = _resource()
    item = await _create(resource, name="a", size=1)
    result = await resource.update({"name": "a", "size": -5}, item.id)
    assert result.code == ResultCode.BAD_REQUEST
    assert (await resource.get_by_id(item.id)).data.size == 1


async def test_update_many_sets_fields_on_visible_matches():
    resource = _resource()
    await _create(resource, name="a", type="file")
    await _create(resource, name="b", type="file")
    result = await resource.update_many({"type": "file"}, {"name": "renamed", "type": "folder"})
    assert result.data == 2
    assert {item.type for item in await _list(resource)} == {"folder"}


# --- set_field ---

async def test_set_field_applies_only_whitelisted_keys():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    item = await _create(resource, name="a", size=1)
    result = await resource.set_field(
        {"foo": 1, "size": 2, "status": 2, "deleted_root": True}, item.id
    )
    assert result.code == ResultCode.CREATED
    stored = await store.find_by_id(str(item.id))
    assert stored["size"] == 2
    assert "foo" not in stored
    assert stored["status"] == EntityStatus.ACTIVE
    assert stored["deleted_root"] is False


async def test_set_field_missing_id_fails():
    result = await _resource().set_field({"size": 2}, uuid4())
    assert result.message == "id does not exist"


async def test_resource_fields_are_entity_declared_fields():
    assert _resource().get_resource_fields() == [
        "name", "parent_id", "size", "type", "view_time", "views",
    ]


async def test_explicit_field_whitelist_overrides_model():
    resource = _resource(fields=["name", "status"])
    assert resource.get_resource_fields() == ["name"]


# --- report ---

async def test_report_flags_by_encode_id_without_touching_status():
    resource = _resource()
    item = await _create(resource, name="clip", encode_id="enc-9")
    await resource.deactivate(item.id)
    result = await resource.report("enc-9")
    assert result.code == ResultCode.CREATED
    refreshed = (await resource.get_by_id(item.id)).data
    assert refreshed.reported is True
    assert refreshed.status == EntityStatus.INACTIVE


async def test_report_unknown_encode_id_fails():
    assert (await _resource().report("missing")).message == "id does not exist"


async def test_report_rejects_blank_encode_id():
    assert (await _resource().report("  ")).message == "invalid encode id"


# --- aggregates ---

async def test_get_count_counts_visible_scoped_matches():
    store = InMemoryDocumentStore()
    resource = _resource(store)
    await _create(resource, name="a", type="video")
    await _create(resource, name="b", type="video")
    gone = await _create(resource, name="c", type="video")
    await resource.delete(gone.id)
    await _create(_resource(store, app_id="B2"), name="d", type="video")
    assert (await resource.get_count({"type": "video"})).data == 2


async def test_get_sum_of_field_is_zero_without_matches():
    result = await _resource().get_sum_of_field({"type": "video"}, "size")
    assert result.code == ResultCode.OK
    assert result.data == 0


async def test_get_sum_of_field_sums_visible_matches():
    resource = _resource()
    await _create(resource, name="a", size=10)
    await _create(resource, name="b", size=5)
    gone = await _create(resource, name="c", size=100)
    await resource.delete(gone.id)
    assert (await resource.get_sum_of_field({}, "size")).data == 15


async def test_exists_ignores_the_excluded_entity_itself():
    resource = _resource()
    first = await _create(resource, name="v")
    assert (await resource.exists([{"name": "v"}], excluding_id=first.id)).data is False


async def test_exists_detects_a_second_entity_with_same_value():
    resource = _resource()
    first = await _create(resource, name="v")
    await _create(resource, name="v")
    assert (await resource.exists([{"name": "v"}], excluding_id=first.id)).data is True


async def test_exists_is_false_without_matches():
    resource = _resource()
    await _create(resource, name="v")
    assert (await resource.exists([{"name": "w"}])).data is False


async def test_exists_without_exclusion_is_true_for_any_match():
    resource = _resource()
    await _create(resource, name="v")
    assert (await resource.exists([{"name": "v"}])).data is True


# --- dummy data ---

async def test_generate_dummy_data_inserts_scoped_documents():
    store = InMemoryDocumentStore()
    Faker.seed(7)
    resource = _resource(store, dummy_factory=DummyDataFactory(DriveItem, Faker()))
    result = await resource.generate_dummy_data(["parent_id"], {"type": "video"}, limit=3)
    assert result.code == ResultCode.CREATED
    assert len(result.data) == 3
    assert all(item.type == "video" for item in result.data)
    assert all(item.app_id == APP for item in result.data)
    assert all(item.status == EntityStatus.ACTIVE for item in result.data)
    stored = await store.find_many({})
    assert all("parent_id" not in doc for doc in stored)


# --- enrichment ---

class _StaticClient(AnalyticsClient):
    def __init__(self, records):
        self.records = records

    async def fetch_video_metrics(self, encode_ids):
        return [r for r in self.records if r.encode_id in encode_ids]


async def test_add_video_analytics_without_enricher_reports_unconfigured():
    items = [DriveItem(name="v", type="video", encode_id="e1")]
    result = await _resource().add_video_analytics(items)
    assert result.failure == EnrichmentFailure.UNCONFIGURED
    assert result.items[0] is items[0]
    assert items[0].views is None


async def test_add_video_analytics_enriches_listed_videos():
    client = _StaticClient([VideoMetrics(encode_id="e1", views=3, view_time=9.5)])
    resource = _resource(enricher=VideoAnalyticsEnricher(client))
    await _create(resource, name="v", type="video", encode_id="e1")
    items = await _list(resource)
    result = await resource.add_video_analytics(items)
    assert result.is_success
    assert items[0].views == 3
    assert items[0].view_time == 9.5


# --- static helpers ---

def test_get_success_message():
    assert Resource.get_success_message(0) == "deactivated"
    assert Resource.get_success_message(EntityStatus.ACTIVE) == "activated"
    assert Resource.get_success_message(2) == "deleted"
    assert Resource.get_success_message(9) == ""


def test_map_order_follows_given_order():
    items = [{"id": "b"}, {"id": "c"}, {"id": "a"}]
    assert Resource.map_order(items, ["a", "b", "c"], "id") == [
        {"id": "a"}, {"id": "b"}, {"id": "c"},
    ]
