from datetime import timedelta

import pytest

from socialvault.shared.core.exceptions import AuthorizationError, UpstreamServiceError
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.utils.retention import DAY_MS, build_guest_retention, epoch_ms
from tests.conftest import OTHER_USER_ID, USER_ID


def guest_data(created_ms: int, days: int = 30) -> dict:
    return {"tweets": [], "retention": build_guest_retention(created_ms, days)}


async def test_delete_removes_objects_and_row(retention_service, make_backup, storage, store):
    backup = await make_backup(
        archive_file_path=f"{USER_ID}/archives/a.zip",
        media_paths=(f"{USER_ID}/media/b/1.jpg", f"{USER_ID}/media/b/2.jpg"),
    )
    for path in (f"{USER_ID}/archives/a.zip", f"{USER_ID}/media/b/1.jpg", f"{USER_ID}/media/b/2.jpg"):
        storage.put(path, b"x")

    result = await retention_service.delete_backup_and_storage(backup.id, expected_user_id=USER_ID)

    assert result.to_dict() == {
        "media_files_checked": 2,
        "candidate_paths_checked": 3,
        "storage_files_deleted": 3,
        "storage_files_delete_failed": 0,
        "backup_deleted": True,
    }
    assert storage.objects == {}
    assert store.backups == {}
    assert store.media == {}


async def test_delete_keeps_paths_shared_with_other_backups(retention_service, make_backup, storage):
    shared_path = f"{USER_ID}/media/shared/avatar.jpg"
    doomed = await make_backup(media_paths=(shared_path, f"{USER_ID}/media/b/own.jpg"))
    await make_backup(media_paths=(shared_path,))

    result = await retention_service.delete_backup_and_storage(doomed.id)

    assert result.storage_files_deleted == 1
    assert shared_path not in storage.deleted


async def test_ownership_mismatch_deletes_nothing(retention_service, make_backup, store, storage):
    backup = await make_backup(media_paths=(f"{USER_ID}/media/b/1.jpg",))

    with pytest.raises(AuthorizationError):
        await retention_service.delete_backup_and_storage(backup.id, expected_user_id=OTHER_USER_ID)

    assert backup.id in store.backups
    assert storage.deleted == []


async def test_missing_backup_is_noop(retention_service):
    result = await retention_service.delete_backup_and_storage("00000000-0000-4000-8000-000000000000")

    assert result.backup_deleted is False


async def test_storage_failure_still_removes_row(retention_service, make_backup, storage, store):
    backup = await make_backup(media_paths=(f"{USER_ID}/media/b/1.jpg",))
    storage.fail_deletes = True

    result = await retention_service.delete_backup_and_storage(backup.id)

    assert result.storage_files_delete_failed == 1
    assert result.backup_deleted is True
    assert backup.id not in store.backups


async def test_listing_expires_guest_backups_and_hides_in_flight(retention_service, make_backup, make_job, store):
    now_ms = epoch_ms()
    kept = await make_backup()
    expired = await make_backup(data=guest_data(now_ms - 31 * DAY_MS))
    fresh_guest = await make_backup(data=guest_data(now_ms))
    in_flight = await make_backup()
    await make_job(status=JobStatus.PROCESSING, payload={"partial_backup_id": str(in_flight.id)})

    visible = await retention_service.list_visible_backups(USER_ID, now_ms=now_ms)

    assert {b.id for b in visible} == {kept.id, fresh_guest.id}
    assert expired.id not in store.backups
    assert in_flight.id in store.backups


async def test_sweep_deletes_only_expired_guest_backups(retention_service, make_backup, store):
    now_ms = epoch_ms()
    first = await make_backup(data=guest_data(now_ms - 40 * DAY_MS))
    second = await make_backup(user_id=OTHER_USER_ID, data=guest_data(now_ms - 30 * DAY_MS))
    alive = await make_backup(data=guest_data(now_ms - 29 * DAY_MS))
    account = await make_backup(data={"retention": {"mode": "account"}})

    deleted = await retention_service.sweep_expired_guest_backups(now_ms=now_ms)

    assert deleted == 2
    assert set(store.backups) == {alive.id, account.id}
    assert first.id not in store.backups and second.id not in store.backups


async def test_sweep_respects_limit(retention_service, make_backup, store):
    now_ms = epoch_ms()
    for _ in range(3):
        await make_backup(data=guest_data(now_ms - 40 * DAY_MS))

    assert await retention_service.sweep_expired_guest_backups(limit=2, now_ms=now_ms) == 2
    assert len(store.backups) == 1


async def test_backup_becomes_visible_when_its_job_completes(retention_service, job_service, make_backup, make_job):
    backup = await make_backup()
    job = await make_job(payload={"partial_backup_id": str(backup.id)})

    assert await retention_service.list_visible_backups(USER_ID) == []

    await job_service.mark_completed(job.id, backup.id, payload_patch={"partial_backup_id": None})

    assert [b.id for b in await retention_service.list_visible_backups(USER_ID)] == [backup.id]


async def test_listing_discards_partial_of_stale_job(retention_service, make_backup, make_job, storage, store):
    partial = await make_backup(media_paths=(f"{USER_ID}/media/p/1.jpg",))
    orphan = f"{USER_ID}/media/{partial.id}/unrecorded.jpg"
    storage.put(orphan, b"x")
    job = await make_job(status=JobStatus.PROCESSING, payload={"partial_backup_id": str(partial.id)})
    job.updated_at = utc_now() - timedelta(seconds=7300)

    visible = await retention_service.list_visible_backups(USER_ID)

    assert visible == []
    assert job.status == JobStatus.FAILED.value
    assert partial.id not in store.backups
    assert orphan not in storage.objects
    assert "partial_backup_id" not in job.payload


async def test_partial_of_failed_job_is_hidden(retention_service, make_backup, make_job):
    partial = await make_backup()
    await make_job(status=JobStatus.FAILED, payload={"partial_backup_id": str(partial.id)})

    assert str(partial.id) in await retention_service.hidden_backup_ids(USER_ID)


async def test_failed_partial_discard_keeps_job_reference(retention_service, make_backup, make_job, storage, monkeypatch):
    partial = await make_backup()
    job = await make_job(status=JobStatus.FAILED, payload={"partial_backup_id": str(partial.id)})

    async def unreachable(prefix):
        raise UpstreamServiceError("object_storage")

    monkeypatch.setattr(storage, "list_object_keys", unreachable)

    assert await retention_service.discard_abandoned_partials(user_id=USER_ID) == 0
    assert job.payload["partial_backup_id"] == str(partial.id)
    assert str(partial.id) in await retention_service.hidden_backup_ids(USER_ID)


async def test_discard_partial_sweeps_unrecorded_objects(retention_service, make_backup, storage, store):
    partial = await make_backup(media_paths=(f"{USER_ID}/media/recorded/1.jpg",))
    neighbour = await make_backup(media_paths=(f"{USER_ID}/media/n/keep.jpg",))
    unrecorded = (
        f"{USER_ID}/media/{partial.id}/00001-a.jpg",
        f"{USER_ID}/media/{partial.id}/00002-b.jpg",
        f"{USER_ID}/archives/{partial.id}.zip",
    )
    for path in unrecorded + (f"{USER_ID}/media/recorded/1.jpg", f"{USER_ID}/media/n/keep.jpg"):
        storage.put(path, b"x")

    result = await retention_service.discard_partial_backup(partial.id, USER_ID)

    assert result.backup_deleted is True
    assert result.storage_files_deleted == 4
    assert set(storage.objects) == {f"{USER_ID}/media/n/keep.jpg"}
    assert neighbour.id in store.backups

    # Row already gone: a rerun still clears late arrivals
    storage.put(unrecorded[0], b"x")
    again = await retention_service.discard_partial_backup(partial.id, USER_ID)
    assert again.backup_deleted is False
    assert unrecorded[0] not in storage.objects


async def test_sweep_skips_malformed_expiry_values(retention_service, make_backup, store):
    now_ms = epoch_ms()
    garbled = await make_backup(data={"retention": {"mode": "guest_30d", "expires_at": "next tuesday"}})
    nested = await make_backup(data={"retention": {"mode": "guest_30d", "expires_at_ms": {"v": 1}}})
    fractional = await make_backup(data={"retention": {"mode": "guest_30d", "expires_at_ms": now_ms - 1000.5}})
    legacy = await make_backup(data={"retention": {"mode": "guest_30d", "expires_at": "2020-01-01T00:00:00Z"}})

    deleted = await retention_service.sweep_expired_guest_backups(now_ms=now_ms)

    assert deleted == 2
    assert set(store.backups) == {garbled.id, nested.id}
    assert fractional.id not in store.backups and legacy.id not in store.backups


async def test_sweep_pages_past_unexpired_rows(retention_service, make_backup, store, monkeypatch):
    monkeypatch.setattr("socialvault.shared.services.retention_service.GUEST_SCAN_PAGE_SIZE", 2)
    now_ms = epoch_ms()
    alive = [await make_backup(data=guest_data(now_ms)) for _ in range(3)]
    expired = await make_backup(data=guest_data(now_ms - 40 * DAY_MS))

    assert await retention_service.sweep_expired_guest_backups(limit=1, now_ms=now_ms) == 1
    assert expired.id not in store.backups
    assert all(backup.id in store.backups for backup in alive)
