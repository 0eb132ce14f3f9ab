"""
Archive upload processor.

Handles ``archive-upload.requested``: turns a staged archive into a backup.

Progress:
     5  Downloading uploaded archive
    15  Extracting archive files
    45  Saving backup record          (partial_backup_id recorded)
 55-85  Uploading media files
    88  Finalizing backup data
   100  Completed

The staged upload is deleted after success, or after the final failed
attempt; earlier failures keep it so the retry can read it again.
"""

import asyncio
import mimetypes
from typing import Any, Dict, List, Optional

from socialvault.shared.core.exceptions import InvalidPathError, NotFoundError
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import BackupType, JobEventName, LifecycleState, MediaType
from socialvault.shared.models.media_file import MediaFile
from socialvault.shared.services.intake_service import ensure_user_scoped_staged_path
from socialvault.shared.utils.job_payload import payload_str
from socialvault.shared.utils.media_matcher import ProfileMediaMatcher, cdn_file_name
from socialvault.shared.utils.storage_paths import build_archive_path, build_media_path
from socialvault.worker.parsers.archive_parser import ArchiveMediaEntry, ArchiveReader, ParsedArchive
from socialvault.worker.processors.base_processor import JobAttempt, JobProcessor, retention_for_event

logger = get_logger(__name__)

MEDIA_PROGRESS_START = 55
MEDIA_PROGRESS_END = 85
MEDIA_PROGRESS_EVERY = 5

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
}


def guess_mime_type(file_name: str) -> str:
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_TYPES.get(extension) or mimetypes.guess_type(file_name)[0] or "application/octet-stream"


def link_tweet_media(tweets: List[Dict[str, Any]], stored: List[MediaFile]) -> None:
    """
    Point tweet media at their stored copies.

    Archive media files are named ``{tweet_id}-{cdn_file_name}``; both the
    full name and the CDN part are accepted as keys.
    """
    paths: Dict[str, str] = {}
    for media in stored:
        paths.setdefault(media.file_name, media.file_path)
        if "-" in media.file_name:
            paths.setdefault(media.file_name.split("-", 1)[1], media.file_path)

    for tweet in tweets:
        for media in tweet.get("media") or []:
            if not isinstance(media, dict):
                continue
            name = cdn_file_name(media.get("media_url_https") or media.get("media_url"))
            if name and name in paths:
                media["storage_path"] = paths[name]


class ArchiveUploadProcessor(JobProcessor):
    """Parses a staged archive and stores it as a backup."""

    event_name = JobEventName.ARCHIVE_UPLOAD_REQUESTED.value

    def staged_path(self, job: BackupJob, data: Dict[str, Any]) -> str:
        path = data.get("input_storage_path") or payload_str(job.payload, "staged_input_path")
        if not path:
            raise InvalidPathError("Archive job has no staged input.")
        return ensure_user_scoped_staged_path(path, str(job.user_id))

    async def run(self, job: BackupJob, data: Dict[str, Any], attempt: JobAttempt) -> str:
        job_id = str(job.id)
        user_id = str(job.user_id)
        staged_path = self.staged_path(job, data)
        username = data.get("username") or payload_str(job.payload, "username") or "twitter-user"
        preserve_archive = job.payload.get("preserve_archive_file") is not False

        await self.jobs.mark_processing(job_id, "Downloading uploaded archive...", progress=5)
        await self.checkpoint()

        content = await self.context.storage.download_object(staged_path)
        if content is None:
            raise NotFoundError("Uploaded file")

        await self.jobs.mark_progress(job_id, 15, "Extracting archive files...")
        await self.checkpoint()

        reader = ArchiveReader(content, self.settings)
        try:
            parsed = await asyncio.to_thread(reader.parse, username)
            await self.jobs.mark_progress(job_id, 30, "Reading archive data...")
            await self.jobs.mark_progress(job_id, 45, "Saving backup record...")

            resolved_username = parsed.account.username or username
            data_block: Dict[str, Any] = {
                "tweets": parsed.tweets,
                "followers": parsed.followers,
                "following": parsed.following,
                "likes": parsed.likes,
            }
            retention = retention_for_event(data, self.settings)
            if retention:
                data_block["retention"] = retention

            backup = await self.context.backup_repo.create_backup(
                user_id=user_id,
                backup_type=BackupType.ARCHIVE.value,
                data=data_block,
            )
            backup_id = str(backup.id)
            await self.jobs.merge_payload(job_id, {"partial_backup_id": backup_id})
            await self.checkpoint()

            await self.jobs.mark_progress(job_id, MEDIA_PROGRESS_START, "Uploading archive media files...")
            await self.checkpoint()
            stored = await self.store_media(job_id, user_id, backup_id, reader, parsed.media)
        finally:
            reader.close()

        await self.jobs.mark_progress(job_id, 88, "Finalizing backup data...")

        tweet_media = [m for m in stored if m.media_type == MediaType.TWEET_MEDIA.value]
        link_tweet_media(parsed.tweets, tweet_media)
        profile = self.build_profile(parsed, resolved_username, stored)

        archive_path: Optional[str] = None
        if preserve_archive:
            archive_path = build_archive_path(user_id, backup_id)
            await self.context.storage.upload_object(archive_path, content, content_type="application/zip")
            await self.context.media_repo.create_media_file(
                backup_id=backup_id,
                user_id=user_id,
                file_path=archive_path,
                file_name=f"{backup_id}.zip",
                file_size=len(content),
                media_type=MediaType.ARCHIVE_FILE.value,
                mime_type="application/zip",
            )

        final_data = dict(data_block)
        final_data.update({
            "tweets": parsed.tweets,
            "profile": profile,
            "stats": {**parsed.stats, "media_files": len(stored)},
            "uploaded_file_size": len(content),
        })
        if archive_path:
            final_data["archive_file_path"] = archive_path
        await self.context.backup_repo.update_data(backup_id, final_data, archive_file_path=archive_path)

        await self.jobs.merge_payload(job_id, {
            "lifecycle_state": LifecycleState.COMPLETED.value,
            "partial_backup_id": None,
            "created_backup_id": backup_id,
        })
        await self.jobs.mark_completed(job_id, backup_id, message="Archive backup completed successfully.")
        logger.info("Archive backup completed", backup_id=backup_id, **parsed.stats)
        return backup_id

    async def store_media(
        self,
        job_id: str,
        user_id: str,
        backup_id: str,
        reader: ArchiveReader,
        entries: List[ArchiveMediaEntry],
    ) -> List[MediaFile]:
        """
        Copy archive media to storage, one row per stored file.

        A file that cannot be read or uploaded is logged and skipped.
        """
        stored: List[MediaFile] = []
        total = len(entries)
        span = MEDIA_PROGRESS_END - MEDIA_PROGRESS_START

        for index, entry in enumerate(entries, start=1):
            try:
                body = await asyncio.to_thread(reader.read_entry, entry)
                path = build_media_path(user_id, backup_id, entry.file_name)
                mime_type = guess_mime_type(entry.file_name)
                await self.context.storage.upload_object(path, body, content_type=mime_type)
                media_type = MediaType.PROFILE_MEDIA if entry.is_profile_media else MediaType.TWEET_MEDIA
                stored.append(await self.context.media_repo.create_media_file(
                    backup_id=backup_id,
                    user_id=user_id,
                    file_path=path,
                    file_name=entry.file_name,
                    file_size=len(body),
                    media_type=media_type.value,
                    mime_type=mime_type,
                ))
            except Exception as e:
                logger.warning("Archive media file skipped", file_name=entry.file_name, error=str(e))

            if index == total or index % MEDIA_PROGRESS_EVERY == 0:
                progress = MEDIA_PROGRESS_START + round(index / total * span)
                await self.jobs.mark_progress(
                    job_id,
                    min(progress, MEDIA_PROGRESS_END),
                    f"Uploading media files ({index}/{total})...",
                )
                await self.checkpoint()

        return stored

    @staticmethod
    def build_profile(parsed: ParsedArchive, username: str, stored: List[MediaFile]) -> Dict[str, Any]:
        matcher = ProfileMediaMatcher([m for m in stored if m.media_type == MediaType.PROFILE_MEDIA.value])
        avatar = matcher.match_avatar(parsed.account.avatar_media_url)
        header = matcher.match_header(parsed.account.header_media_url, avatar)
        return {
            "username": username,
            "displayName": parsed.account.display_name or username,
            "accountId": parsed.account.account_id,
            "profileImageUrl": parsed.account.avatar_media_url,
            "coverImageUrl": parsed.account.header_media_url,
            "profileImagePath": avatar.file_path if avatar else None,
            "coverImagePath": header.file_path if header else None,
        }

    async def release_inputs(self, job_id: str, data: Dict[str, Any]) -> None:
        path = data.get("input_storage_path")
        if not path:
            job = await self.jobs.get_job(job_id)
            path = payload_str(job.payload, "staged_input_path")
        if not path:
            return
        try:
            path = ensure_user_scoped_staged_path(path, str(data.get("user_id") or ""))
            await self.context.storage.delete_objects([path])
        except Exception as e:
            logger.warning("Failed to delete staged input", job_id=job_id, error=str(e))
