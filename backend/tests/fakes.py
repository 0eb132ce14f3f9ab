"""
In-memory stand-ins for the database session, repositories and adapters.

The repositories subclass the real ones and only replace the methods that
issue SELECTs, so status transitions, payload merges and creates run the
production code against an in-memory store.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from socialvault.shared.adapters.sqs_adapter import QueueMessage
from socialvault.shared.adapters.storage_adapter import DeleteOutcome, ObjectMetadata
from socialvault.shared.core.exceptions import UpstreamServiceError
from socialvault.shared.models.backup import Backup
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import (
    ACTIVE_JOB_STATUSES,
    BackupType,
    JobStatus,
    ReminderDeliveryStatus,
    RetentionMode,
)
from socialvault.shared.models.media_file import MediaFile
from socialvault.shared.repositories.backup_job_repository import BackupJobRepository
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.base import RecordId, as_uuid
from socialvault.shared.repositories.media_file_repository import MediaFileRepository
from socialvault.shared.utils.job_payload import merge_job_payload, payload_int, payload_str
from socialvault.shared.utils.storage_paths import normalize_storage_path
from socialvault.worker.scrapers.base_scraper import BaseScraper, SocialGraphBatch, TimelineBatch
from socialvault.worker.scrapers.media_fetcher import FetchedMedia


# ═══════════════════════════════════════════════════════════════════════════════
# DATABASE
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStore:
    """Rows shared by every session of a test."""

    def __init__(self) -> None:
        self.jobs: Dict[uuid.UUID, BackupJob] = {}
        self.backups: Dict[uuid.UUID, Backup] = {}
        self.media: Dict[uuid.UUID, MediaFile] = {}
        self._tick = 0

    def now(self) -> datetime:
        # Strictly increasing so created_at ordering is deterministic
        self._tick += 1
        return utc_now() + timedelta(microseconds=self._tick)

    def table_for(self, instance: Any) -> Dict[uuid.UUID, Any]:
        if isinstance(instance, BackupJob):
            return self.jobs
        if isinstance(instance, Backup):
            return self.backups
        if isinstance(instance, MediaFile):
            return self.media
        raise TypeError(f"Unsupported model {type(instance).__name__}")


class InMemorySession:
    """Just enough of AsyncSession for the repositories and processors."""

    def __init__(self, store: Optional[MemoryStore] = None) -> None:
        self.store = store or MemoryStore()
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def add(self, instance: Any) -> None:
        if getattr(instance, "id", None) is None:
            instance.id = uuid.uuid4()
        now = self.store.now()
        if getattr(instance, "created_at", None) is None:
            instance.created_at = now
        if getattr(instance, "updated_at", None) is None:
            instance.updated_at = now
        self.store.table_for(instance)[instance.id] = instance

    async def delete(self, instance: Any) -> None:
        self.store.table_for(instance).pop(instance.id, None)
        if isinstance(instance, Backup):
            # ON DELETE CASCADE / SET NULL
            for media_id in [m.id for m in self.store.media.values() if m.backup_id == instance.id]:
                del self.store.media[media_id]
            for job in self.store.jobs.values():
                if job.result_backup_id == instance.id:
                    job.result_backup_id = None

    async def flush(self) -> None:
        pass

    async def refresh(self, instance: Any) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "InMemorySession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class InMemoryLookupMixin:
    store_table = ""

    @property
    def table(self) -> Dict[uuid.UUID, Any]:
        return getattr(self.session.store, self.store_table)

    async def get(self, record_id: RecordId):
        parsed = as_uuid(record_id)
        return self.table.get(parsed) if parsed else None

    async def get_by_ids(self, ids: list[RecordId]) -> list:
        return [row for row in (await self.get(value) for value in ids) if row is not None]


class InMemoryBackupJobRepository(InMemoryLookupMixin, BackupJobRepository):
    store_table = "jobs"

    async def get_for_user(self, job_id: RecordId, user_id: RecordId) -> Optional[BackupJob]:
        job = await self.get(job_id)
        if job is None or job.user_id != as_uuid(user_id):
            return None
        return job

    def _for_user(self, user_id: RecordId) -> List[BackupJob]:
        user_uuid = as_uuid(user_id)
        return [job for job in self.table.values() if job.user_id == user_uuid]

    async def list_for_user(self, user_id: RecordId, limit: int = 20) -> List[BackupJob]:
        jobs = sorted(self._for_user(user_id), key=lambda job: job.created_at, reverse=True)
        return jobs[:max(1, limit)]

    async def list_active_for_user(self, user_id: RecordId) -> List[BackupJob]:
        jobs = [job for job in self._for_user(user_id) if job.status in ACTIVE_JOB_STATUSES]
        return sorted(jobs, key=lambda job: job.created_at)

    async def list_pending_reminders(self, limit: int, max_attempts: int) -> List[BackupJob]:
        def pending(job: BackupJob) -> bool:
            if job.status != JobStatus.COMPLETED.value or job.result_backup_id is None:
                return False
            status = payload_str(job.payload, "reminder_delivery_status")
            if status == ReminderDeliveryStatus.REQUESTED.value:
                return True
            return (
                status == ReminderDeliveryStatus.FAILED.value
                and payload_int(job.payload, "reminder_attempts") < max_attempts
            )

        jobs = sorted((job for job in self.table.values() if pending(job)), key=lambda job: job.completed_at)
        return jobs[:max(1, limit)]

    async def list_failed_with_partial_backup(
        self,
        user_id: Optional[RecordId] = None,
        limit: int = 100,
    ) -> List[BackupJob]:
        jobs = self._for_user(user_id) if user_id is not None else list(self.table.values())
        failed = [
            job for job in jobs
            if job.status == JobStatus.FAILED.value and payload_str(job.payload, "partial_backup_id")
        ]
        return sorted(failed, key=lambda job: job.updated_at)[:max(1, limit)]

    async def list_created_since(self, user_id: RecordId, since: datetime) -> List[BackupJob]:
        return [job for job in self._for_user(user_id) if job.created_at >= since]

    async def reassign_owner(self, from_user_id: RecordId, to_user_id: RecordId) -> int:
        jobs = self._for_user(from_user_id)
        for job in jobs:
            job.user_id = as_uuid(to_user_id)
            job.updated_at = utc_now()
        return len(jobs)

    async def merge_payload(self, job_id: RecordId, patch) -> Optional[BackupJob]:
        job = await self.get(job_id)
        if not job:
            return None
        job.payload = merge_job_payload(job.payload, patch)
        job.updated_at = utc_now()
        return job


class InMemoryBackupRepository(InMemoryLookupMixin, BackupRepository):
    store_table = "backups"

    async def list_for_user(self, user_id: RecordId, limit: int = 100) -> List[Backup]:
        user_uuid = as_uuid(user_id)
        backups = [b for b in self.table.values() if b.user_id == user_uuid]
        return sorted(backups, key=lambda b: b.created_at, reverse=True)[:max(1, limit)]

    async def list_guest_backups(self, limit: int, after=None) -> List[Backup]:
        guests = sorted(
            (b for b in self.table.values()
             if isinstance(b.data, dict) and isinstance(b.data.get("retention"), dict)
             and b.data["retention"].get("mode") == RetentionMode.GUEST_30D.value),
            key=lambda b: (b.created_at, b.id),
        )
        if after is not None:
            guests = [b for b in guests if (b.created_at, b.id) > tuple(after)]
        return guests[:max(1, limit)]

    async def list_snapshot_backups_since(self, user_id: RecordId, since: datetime) -> List[Backup]:
        user_uuid = as_uuid(user_id)
        return [
            b for b in self.table.values()
            if b.user_id == user_uuid and b.backup_type == BackupType.SNAPSHOT.value and b.created_at >= since
        ]

    async def find_referenced_paths(self, paths: Iterable[str], exclude_backup_id: RecordId) -> Set[str]:
        candidates = {path for path in paths if path}
        exclude = as_uuid(exclude_backup_id)
        referenced = {
            m.file_path for m in self.session.store.media.values()
            if m.file_path in candidates and m.backup_id != exclude
        }
        referenced |= {
            b.archive_file_path for b in self.table.values()
            if b.archive_file_path in candidates and b.id != exclude
        }
        return referenced


class InMemoryMediaFileRepository(InMemoryLookupMixin, MediaFileRepository):
    store_table = "media"

    async def list_for_backup(self, backup_id: RecordId) -> List[MediaFile]:
        backup_uuid = as_uuid(backup_id)
        rows = [m for m in self.table.values() if m.backup_id == backup_uuid]
        return sorted(rows, key=lambda m: m.created_at)

    async def total_bytes_for_user(self, user_id: RecordId) -> int:
        user_uuid = as_uuid(user_id)
        per_path: Dict[str, int] = {}
        for media in self.table.values():
            if media.user_id == user_uuid:
                per_path[media.file_path] = max(per_path.get(media.file_path, 0), media.file_size)
        return sum(per_path.values())

    async def reassign_owner(self, from_user_id: RecordId, to_user_id: RecordId) -> int:
        rows = [m for m in self.table.values() if m.user_id == as_uuid(from_user_id)]
        for media in rows:
            media.user_id = as_uuid(to_user_id)
        return len(rows)


# ═══════════════════════════════════════════════════════════════════════════════
# ADAPTERS
# ═══════════════════════════════════════════════════════════════════════════════


class InMemoryStorage:
    """Object storage keyed by normalized path."""

    def __init__(self) -> None:
        self.objects: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self.deleted: List[str] = []
        self.fail_deletes = False
        self.fail_uploads = False

    def put(self, path: str, body: bytes, content_type: Optional[str] = None) -> None:
        self.objects[normalize_storage_path(path)] = (body, content_type)

    async def create_signed_put_url(self, path: str, expires_in_seconds: int, content_type: Optional[str] = None) -> str:
        return f"https://storage.test/put/{normalize_storage_path(path)}?expires={expires_in_seconds}"

    async def create_signed_get_url(
        self,
        path: str,
        expires_in_seconds: int,
        download_file_name: Optional[str] = None,
    ) -> str:
        return f"https://storage.test/get/{normalize_storage_path(path)}?expires={expires_in_seconds}"

    async def get_object_metadata(self, path: str) -> Optional[ObjectMetadata]:
        stored = self.objects.get(normalize_storage_path(path))
        if stored is None:
            return None
        return ObjectMetadata(content_length=len(stored[0]), content_type=stored[1])

    async def object_exists(self, path: str) -> bool:
        return normalize_storage_path(path) in self.objects

    async def download_object(self, path: str) -> Optional[bytes]:
        stored = self.objects.get(normalize_storage_path(path))
        return stored[0] if stored else None

    async def list_object_keys(self, prefix: str) -> List[str]:
        prefix = normalize_storage_path(prefix)
        return sorted(key for key in self.objects if key.startswith(prefix))

    async def upload_object(self, path: str, body: bytes, content_type: Optional[str] = None) -> None:
        if self.fail_uploads:
            raise UpstreamServiceError("object_storage")
        self.put(path, body, content_type)

    async def delete_objects(self, paths: Iterable[str]) -> DeleteOutcome:
        if self.fail_deletes:
            raise UpstreamServiceError("object_storage")
        keys = sorted({normalize_storage_path(p) for p in paths if p})
        for key in keys:
            self.objects.pop(key, None)
            self.deleted.append(key)
        return DeleteOutcome(deleted=len(keys), failed=0)


class InMemoryQueue:
    """Records published events and queue acknowledgements."""

    queue_url = "https://sqs.test/jobs"

    def __init__(self) -> None:
        self.published: List[Tuple[str, Dict[str, Any]]] = []
        self.pending: List[QueueMessage] = []
        self.deleted: List[str] = []
        self.visibility: List[Tuple[str, int]] = []
        self.fail_publish = False

    async def publish_event(self, name: str, data: Dict[str, Any]) -> str:
        if self.fail_publish:
            raise UpstreamServiceError("queue", "Failed to send message to queue")
        self.published.append((name, data))
        return f"msg-{len(self.published)}"

    def events(self, name: str) -> List[Dict[str, Any]]:
        return [data for event, data in self.published if event == name]

    def receive_messages(self, max_messages: int = 10, wait_time_seconds: int = 20, visibility_timeout: int = 900) -> List[QueueMessage]:
        batch, self.pending = self.pending[:max_messages], self.pending[max_messages:]
        return batch

    def delete_message(self, receipt_handle: str) -> None:
        self.deleted.append(receipt_handle)

    def change_message_visibility(self, receipt_handle: str, visibility_timeout: int) -> None:
        self.visibility.append((receipt_handle, visibility_timeout))


def queue_message(name: str, data: Dict[str, Any], receive_count: int = 1, message_id: str = "m-1") -> QueueMessage:
    return QueueMessage(
        message_id=message_id,
        receipt_handle=f"rh-{message_id}-{receive_count}",
        body={"name": name, "data": data},
        attributes={"ApproximateReceiveCount": str(receive_count)},
    )


class RecordingEmail:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.fail = False

    async def send(self, to, subject: str, text: str, html: Optional[str] = None) -> str:
        if self.fail:
            raise UpstreamServiceError("email", "Failed to send email")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return f"ses-{len(self.sent)}"

    def sent_to(self, address: str) -> List[Dict[str, Any]]:
        return [message for message in self.sent if message["to"] == address]


@dataclass
class StubScraper(BaseScraper):
    """Returns canned provider data and records the calls it received."""

    tweets: List[Dict[str, Any]] = field(default_factory=list)
    replies: List[Dict[str, Any]] = field(default_factory=list)
    profile: Dict[str, Any] = field(default_factory=dict)
    followers: List[Dict[str, Any]] = field(default_factory=list)
    following: List[Dict[str, Any]] = field(default_factory=list)
    configured: bool = True
    timeline_error: Optional[Exception] = None
    calls: List[Tuple[str, int]] = field(default_factory=list)

    provider_name = "stub"

    def is_configured(self) -> bool:
        return self.configured

    async def fetch_timeline(self, username, max_items, include_tweets=True, include_replies=True) -> TimelineBatch:
        self.calls.append(("timeline", max_items))
        if self.timeline_error is not None:
            raise self.timeline_error
        return TimelineBatch(
            tweets=self.tweets[:max_items] if include_tweets else [],
            replies=self.replies if include_replies else [],
            profile=dict(self.profile),
        )

    async def fetch_social_graph(self, username, relation, max_items) -> SocialGraphBatch:
        self.calls.append((relation, max_items))
        users = getattr(self, relation)[:max_items]
        return SocialGraphBatch(relation=relation, users=users, limit_hit=len(getattr(self, relation)) > max_items)


class StubMediaFetcher:
    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self.files = files or {}

    async def fetch(self, url: str) -> Optional[FetchedMedia]:
        content = self.files.get(url)
        if content is None:
            return None
        return FetchedMedia(url=url, file_name=url.rsplit("/", 1)[-1], content=content, content_type="image/jpeg")

    async def aclose(self) -> None:
        pass
