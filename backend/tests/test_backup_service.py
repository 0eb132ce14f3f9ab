from datetime import datetime, timedelta, timezone

import pytest

from socialvault.shared.core.exceptions import (
    ActiveJobConflictError,
    AuthorizationError,
    BackupNotFoundError,
    NotFoundError,
)
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.utils.retention import DAY_MS, build_guest_retention, epoch_ms
from socialvault.shared.utils.security import SecurityUtils
from tests.conftest import OTHER_USER_ID, USER_ID


async def test_share_link_round_trip(backup_service, make_backup):
    backup = await make_backup(data={"tweets": [{"id": "1"}]})

    link = await backup_service.create_share_link(backup.id, USER_ID)
    token = link.share_url.rsplit("/", 1)[-1]
    shared = await backup_service.get_shared_backup(token)

    assert link.share_url.startswith("https://socialvault.test/shared/")
    assert link.expires_at > datetime.now(timezone.utc)
    assert shared.id == backup.id


async def test_share_link_requires_owner(backup_service, make_backup):
    backup = await make_backup(user_id=OTHER_USER_ID)

    with pytest.raises(AuthorizationError):
        await backup_service.create_share_link(backup.id, USER_ID)


async def test_invalid_and_expired_share_tokens(backup_service, make_backup):
    backup = await make_backup()
    old = await backup_service.create_share_link(
        backup.id, USER_ID, now=datetime.now(timezone.utc) - timedelta(days=60)
    )

    with pytest.raises(AuthorizationError):
        await backup_service.get_shared_backup("garbage")
    with pytest.raises(AuthorizationError):
        await backup_service.get_shared_backup(old.share_url.rsplit("/", 1)[-1])


async def test_shared_link_to_expired_guest_backup(backup_service, make_backup, store, test_settings, session):
    now_ms = epoch_ms()
    backup = await make_backup(data={"retention": build_guest_retention(now_ms - 31 * DAY_MS, 30)})
    token, _ = SecurityUtils.create_share_token(str(backup.id), test_settings.SHARE_LINK_SECRET)

    with pytest.raises(NotFoundError):
        await backup_service.get_shared_backup(token, now_ms=now_ms)
    assert backup.id not in store.backups
    # Committed before the 404 so the request rollback cannot restore the row
    assert session.commits == 1


async def test_get_expired_guest_backup(backup_service, make_backup, store, session):
    now_ms = epoch_ms()
    backup = await make_backup(data={"retention": build_guest_retention(now_ms - 31 * DAY_MS, 30)})

    with pytest.raises(NotFoundError):
        await backup_service.get_backup(backup.id, USER_ID, now_ms=now_ms)
    assert backup.id not in store.backups
    assert session.commits == 1


async def test_get_backup_missing_and_foreign(backup_service, make_backup):
    foreign = await make_backup(user_id=OTHER_USER_ID)

    with pytest.raises(BackupNotFoundError):
        await backup_service.get_backup("00000000-0000-4000-8000-000000000000", USER_ID)
    with pytest.raises(AuthorizationError):
        await backup_service.get_backup(foreign.id, USER_ID)


async def test_delete_backup_twice(backup_service, make_backup):
    backup = await make_backup()

    result = await backup_service.delete_backup(backup.id, USER_ID)

    assert result.backup_deleted is True
    with pytest.raises(BackupNotFoundError):
        await backup_service.delete_backup(backup.id, USER_ID)


def guest_token(settings, guest_id=OTHER_USER_ID, is_guest=True) -> str:
    return SecurityUtils.create_access_token({"user_id": guest_id, "is_guest": is_guest}, settings.SECRET_KEY)


async def test_claim_moves_guest_backups_to_account(backup_service, make_backup, make_job, store, test_settings):
    now_ms = epoch_ms()
    kept = await make_backup(
        user_id=OTHER_USER_ID,
        data={"tweets": [{"id": "1"}], "retention": build_guest_retention(now_ms, 30)},
        media_paths=(f"{OTHER_USER_ID}/media/g/1.jpg",),
    )
    expired = await make_backup(
        user_id=OTHER_USER_ID, data={"retention": build_guest_retention(now_ms - 31 * DAY_MS, 30)}
    )
    finished = await make_job(user_id=OTHER_USER_ID, status=JobStatus.COMPLETED)

    result = await backup_service.claim_guest_backups(USER_ID, guest_token(test_settings))

    assert result.moved is True
    assert result.moved_backups == 1
    assert str(kept.user_id) == USER_ID
    assert kept.data == {"tweets": [{"id": "1"}]}
    assert expired.id not in store.backups
    assert {str(m.user_id) for m in store.media.values()} == {USER_ID}
    assert str(finished.user_id) == USER_ID
    assert [b.id for b in await backup_service.list_backups(USER_ID)] == [kept.id]


async def test_claim_own_session_is_noop(backup_service, make_backup, test_settings):
    backup = await make_backup()

    result = await backup_service.claim_guest_backups(USER_ID, guest_token(test_settings, guest_id=USER_ID))

    assert result.moved is False
    assert str(backup.user_id) == USER_ID


async def test_claim_rejects_guests_and_non_guest_tokens(backup_service, make_backup, test_settings):
    backup = await make_backup(user_id=OTHER_USER_ID)

    with pytest.raises(AuthorizationError):
        await backup_service.claim_guest_backups(USER_ID, guest_token(test_settings), caller_is_guest=True)
    with pytest.raises(AuthorizationError):
        await backup_service.claim_guest_backups(USER_ID, guest_token(test_settings, is_guest=False))
    with pytest.raises(AuthorizationError):
        await backup_service.claim_guest_backups(USER_ID, "garbage")
    assert str(backup.user_id) == OTHER_USER_ID


async def test_claim_waits_for_guest_job_in_flight(backup_service, make_backup, make_job, test_settings):
    backup = await make_backup(user_id=OTHER_USER_ID)
    await make_job(user_id=OTHER_USER_ID, status=JobStatus.PROCESSING)

    with pytest.raises(ActiveJobConflictError):
        await backup_service.claim_guest_backups(USER_ID, guest_token(test_settings))
    assert str(backup.user_id) == OTHER_USER_ID
