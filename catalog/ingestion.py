"""Content ingestion: episode transcoding, Jikan imports and manhwa pages.

Episode flow:

    start_episode_ingestion    Episode row (video_urls=None) -> CloudConvert job
    check_transcode_job        one status poll, driven by tasks.poll_transcode_job
    apply_job_status           terminal handling shared by poller and webhook
    materialize_renditions     copy exports into S3_PROCESSED_BUCKET, write video_urls once
"""

import logging
import tempfile
import time
from io import BytesIO
from pathlib import Path
from typing import Any

import requests
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.db import IntegrityError, transaction
import fitz
from PIL import Image, UnidentifiedImageError

from . import s3
from .cloudconvert import CloudConvertClient, build_job_payload, finished_exports
from .exceptions import UpstreamError, ValidationError
from .jikan import JikanClient, genre_names, series_fields
from .models import (
    RENDITIONS,
    AnimeCharacter,
    AnimeSeries,
    Character,
    Episode,
    Genre,
    ManhwaChapter,
    TranscodeJob,
)

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


# -----------------------------------------------------
# Keys
# -----------------------------------------------------
def raw_upload_key(series_id, filename: str, now: float | None = None) -> str:
    """{seriesId}/{timestamp-ms}-{filename} in S3_RAW_BUCKET."""
    ts = int((now if now is not None else time.time()) * 1000)
    return f"{series_id}/{ts}-{s3.safe_filename(filename)}"


def processed_key(episode_id, label: str) -> str:
    return f"{episode_id}/{label}.mp4"


# -----------------------------------------------------
# Ingestion trigger + submission
# -----------------------------------------------------
def start_episode_ingestion(
    series: AnimeSeries,
    episode_number: int | None,
    raw_key: str | None,
    title: str | None = None,
    client: CloudConvertClient | None = None,
) -> tuple[Episode, TranscodeJob]:
    """Register an episode and hand its raw file to CloudConvert.

    The Episode row is written before the remote call. If submission fails the
    row stays behind marked ``failed`` together with an ``error`` job, and
    UpstreamError propagates to the caller.
    """
    if not episode_number:
        raise ValidationError("Episode number is required.")
    if not raw_key:
        raise ValidationError("A raw video file is required.")

    try:
        with transaction.atomic():
            episode = Episode.objects.create(
                series=series,
                episode_number=episode_number,
                title=title or None,
                video_urls=None,
                raw_file_path=raw_key,
            )
    except IntegrityError as e:
        raise ValidationError(
            f"Episode {episode_number} already exists for this series.",
            details={"series_id": str(series.pk), "episode_number": episode_number},
        ) from e

    logger.info("Created episode %s (series=%s, number=%s)", episode.pk, series.pk, episode_number)

    client = client or CloudConvertClient()
    try:
        external_id = _submit(client, raw_key)
    except UpstreamError as e:
        TranscodeJob.objects.create(episode=episode, status=TranscodeJob.Status.ERROR, error=e.message)
        _set_episode_status(episode, Episode.ProcessingStatus.FAILED)
        logger.error("Job submission failed for episode %s: %s", episode.pk, e.message)
        raise

    job = TranscodeJob.objects.create(episode=episode, external_id=external_id)
    _set_episode_status(episode, Episode.ProcessingStatus.PROCESSING)
    schedule_poll(job)
    return episode, job


def _submit(client: CloudConvertClient, raw_key: str) -> str:
    try:
        input_url = s3.create_presigned_get(settings.S3_RAW_BUCKET, raw_key)
    except (BotoCoreError, ClientError) as e:
        raise UpstreamError(
            "Failed to sign the raw file URL", original_error=e, details={"key": raw_key}
        ) from e
    return client.create_job(build_job_payload(input_url))


def schedule_poll(job: TranscodeJob):
    """Queue the first server-side status check for a submitted job."""
    # tasks imports this module
    from .tasks import poll_transcode_job

    poll_transcode_job.apply_async(args=[str(job.pk)], countdown=settings.TRANSCODE_POLL_INTERVAL)


def _set_episode_status(episode: Episode, status: str):
    episode.processing_status = status
    episode.save(update_fields=["processing_status", "updated_at"])


def fail_job(job: TranscodeJob, message: str):
    job.status = TranscodeJob.Status.ERROR
    job.error = message[:4000]
    job.save(update_fields=["status", "error", "updated_at"])
    _set_episode_status(job.episode, Episode.ProcessingStatus.FAILED)


# -----------------------------------------------------
# Status polling
# -----------------------------------------------------
def check_transcode_job(job: TranscodeJob, client: CloudConvertClient | None = None) -> bool:
    """Poll CloudConvert once. Returns True once the job reached a terminal state."""
    if job.is_terminal:
        return True

    client = client or CloudConvertClient()
    job.poll_count += 1
    job.save(update_fields=["poll_count", "updated_at"])
    try:
        job_data = client.get_job(job.external_id)
    except UpstreamError as e:
        logger.warning("Status check %d for job %s failed: %s", job.poll_count, job.external_id, e.message)
        return False

    terminal = apply_job_status(job, job_data)
    job.refresh_from_db()
    return terminal


def apply_job_status(job: TranscodeJob, job_data: dict[str, Any]) -> bool:
    """Move the job along according to a CloudConvert job object.

    The job row stays locked while this runs, so the poller and the webhook
    never materialize the same job twice. Callers holding ``job`` should
    refresh it afterwards.
    """
    with transaction.atomic():
        locked = TranscodeJob.objects.select_for_update(of=("self",)).select_related("episode").get(pk=job.pk)
        return _apply_locked(locked, job_data)


def _apply_locked(job: TranscodeJob, job_data: dict[str, Any]) -> bool:
    if job.is_terminal:
        return True

    status = job_data.get("status")
    if status == "finished":
        try:
            materialize_renditions(job, job_data)
        except UpstreamError as e:
            fail_job(job, e.message)
            return True
        return True

    if status == "error":
        message = job_data.get("message") or _first_task_error(job_data) or "CloudConvert reported an error"
        logger.error("Job %s failed: %s", job.external_id, message)
        fail_job(job, message)
        return True

    # submitted / processing / anything we do not know yet
    if job.status != TranscodeJob.Status.PROCESSING:
        job.status = TranscodeJob.Status.PROCESSING
        job.save(update_fields=["status", "updated_at"])
    logger.info("Job %s still %s (poll %d)", job.external_id, status or "unknown", job.poll_count)
    return False


def _first_task_error(job_data: dict[str, Any]) -> str | None:
    for task in job_data.get("tasks") or []:
        if task.get("status") == "error":
            return f"{task.get('name')}: {task.get('message') or task.get('code') or 'error'}"
    return None


# -----------------------------------------------------
# Materialization
# -----------------------------------------------------
def _download(url: str, dest: Path):
    with requests.get(url, stream=True, timeout=settings.HTTP_TIMEOUT_SECONDS) as resp:
        resp.raise_for_status()
        with open(dest, "wb") as f:
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                f.write(chunk)


def staging_prefix(episode_id, job_id) -> str:
    return f"{episode_id}/.staging-{job_id}/"


def materialize_renditions(job: TranscodeJob, job_data: dict[str, Any]) -> dict[str, str]:
    """Copy every finished export into durable storage and record the URLs.

    Exports are first uploaded under a per-job staging prefix. Only once every
    upload of this attempt succeeded are they copied over the live
    ``{episode_id}/{label}.mp4`` keys and the Episode mapping written. When an
    upload fails the staging objects are removed before UpstreamError is
    raised; live objects and the mapping stay untouched.
    """
    episode = job.episode
    exports = finished_exports(job_data)
    bucket = settings.S3_PROCESSED_BUCKET
    staging = staging_prefix(episode.pk, job.pk)

    staged: list[str] = []
    try:
        with tempfile.TemporaryDirectory(prefix="renditions-") as tmp:
            for label, url in exports:
                local = Path(tmp) / f"{label}.mp4"
                _download(url, local)
                s3.upload_file(str(local), bucket, f"{staging}{label}.mp4", content_type="video/mp4")
                staged.append(label)
                local.unlink(missing_ok=True)
    except (requests.RequestException, BotoCoreError, ClientError, OSError) as e:
        logger.error("Materialization of job %s failed after %d uploads: %s", job.external_id, len(staged), e)
        s3.delete_keys(bucket, [f"{staging}{label}.mp4" for label in staged])
        raise UpstreamError(
            f"Failed to copy renditions for episode {episode.pk}",
            original_error=e,
            details={"uploaded_before_failure": staged},
        ) from e

    outputs = []
    try:
        for label in staged:
            key = processed_key(episode.pk, label)
            s3.copy_object(bucket, f"{staging}{label}.mp4", key)
            outputs.append({"label": label, "key": key, "url": s3.object_url(bucket, key)})
    except (BotoCoreError, ClientError) as e:
        raise UpstreamError(
            f"Failed to publish renditions for episode {episode.pk}",
            original_error=e,
            details={"published_before_failure": [o["label"] for o in outputs]},
        ) from e
    finally:
        s3.delete_keys(bucket, [f"{staging}{label}.mp4" for label in staged])

    video_urls = {o["label"]: o["url"] for o in outputs}
    if not video_urls:
        status = Episode.ProcessingStatus.FAILED
    elif set(video_urls) >= set(RENDITIONS):
        status = Episode.ProcessingStatus.READY
    else:
        status = Episode.ProcessingStatus.PARTIAL
        missing = [r for r in RENDITIONS if r not in video_urls]
        logger.warning("Episode %s is missing renditions %s", episode.pk, missing)

    with transaction.atomic():
        if video_urls:
            episode.video_urls = video_urls
        episode.processing_status = status
        episode.save(update_fields=["video_urls", "processing_status", "updated_at"])

        job.outputs = outputs
        job.status = TranscodeJob.Status.FINISHED
        if not video_urls:
            job.error = "No export task finished successfully."
        job.save(update_fields=["outputs", "status", "error", "updated_at"])

    logger.info("Episode %s now has renditions %s", episode.pk, sorted(video_urls))
    return video_urls


# -----------------------------------------------------
# Deletion
# -----------------------------------------------------
def delete_episode(episode: Episode):
    """Remove an episode's processed and raw objects, then the row."""
    removed = s3.delete_prefix(settings.S3_PROCESSED_BUCKET, f"{episode.pk}/")
    if episode.raw_file_path:
        removed += s3.delete_keys(settings.S3_RAW_BUCKET, [episode.raw_file_path])
    logger.info("Deleting episode %s (%d objects removed)", episode.pk, removed)
    episode.delete()


def delete_series(series: AnimeSeries):
    """Remove all episode media, the series' raw folder, then the rows."""
    for episode_id in series.episodes.values_list("pk", flat=True):
        s3.delete_prefix(settings.S3_PROCESSED_BUCKET, f"{episode_id}/")
    s3.delete_prefix(settings.S3_RAW_BUCKET, f"{series.pk}/")
    logger.info("Deleting series %s", series.pk)
    series.delete()


# -----------------------------------------------------
# Jikan import
# -----------------------------------------------------
def import_series_from_jikan(mal_id: int, client: JikanClient | None = None) -> AnimeSeries:
    if AnimeSeries.objects.filter(mal_id=mal_id).exists():
        raise ValidationError(f"Anime {mal_id} has already been imported.", details={"mal_id": mal_id})

    client = client or JikanClient()
    anime = client.get_anime(mal_id)
    if not anime:
        raise UpstreamError(f"Jikan returned no data for anime {mal_id}", details={"mal_id": mal_id})

    with transaction.atomic():
        series = AnimeSeries.objects.create(**series_fields(anime))
        genres = [Genre.objects.get_or_create(name=name)[0] for name in genre_names(anime)]
        series.genres.set(genres)

    logger.info("Imported anime %s as series %s with %d genres", mal_id, series.pk, len(genres))
    return series


def import_character(
    series: AnimeSeries,
    mal_id: int | None,
    name: str | None,
    image_url: str | None = None,
    role: str | None = None,
) -> AnimeCharacter:
    """Attach a MyAnimeList character to a series.

    Characters are shared across series and keyed by ``mal_id``; an existing
    record is reused as-is. Re-importing the same character for a series only
    updates the role on the existing link.
    """
    if not mal_id or not name or not role:
        raise ValidationError("Missing required fields: character_mal_id, name, role")

    with transaction.atomic():
        character, created = Character.objects.get_or_create(
            mal_id=mal_id,
            defaults={"name": name, "image_url": image_url or ""},
        )
        link, _ = AnimeCharacter.objects.update_or_create(
            series=series,
            character=character,
            defaults={"role": role},
        )

    logger.info("Linked character %s to series %s as %s (created=%s)", mal_id, series.pk, role, created)
    return link


# -----------------------------------------------------
# Manhwa pages
# -----------------------------------------------------
def _normalise_page(fileobj, width: int) -> BytesIO:
    """Scale a page to the reader width and re-encode it as PNG."""
    img = Image.open(fileobj)
    img = img.convert("RGBA" if img.mode in ("RGBA", "LA", "P") else "RGB")
    if img.width != width:
        height = max(1, round(img.height * width / img.width))
        img = img.resize((width, height), Image.LANCZOS)
    out = BytesIO()
    img.save(out, format="PNG")
    out.seek(0)
    return out


def ingest_chapter_pages(chapter: ManhwaChapter, pages) -> list[str]:
    """Upload ordered page images for a chapter and store their URLs."""
    if not pages:
        raise ValidationError("At least one page image is required.")

    bucket = settings.S3_IMAGES_BUCKET
    urls = []
    for n, page in enumerate(pages, start=1):
        try:
            data = _normalise_page(page, settings.CHAPTER_PAGE_WIDTH)
        except (UnidentifiedImageError, OSError) as e:
            raise ValidationError(f"Page {n} is not a readable image.", details={"page": n}) from e
        key = f"chapters/{chapter.pk}/page-{n}.png"
        try:
            s3.upload_fileobj(data, bucket, key, content_type="image/png")
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError(f"Failed to upload page {n}", original_error=e) from e
        urls.append(s3.object_url(bucket, key))

    chapter.image_urls = urls
    chapter.save(update_fields=["image_urls"])
    logger.info("Stored %d pages for chapter %s", len(urls), chapter.pk)
    return urls


def render_pdf_pages(data: bytes, width: int) -> list[BytesIO]:
    """Render every page of a chapter PDF to a PNG roughly ``width`` pixels wide."""
    try:
        document = fitz.open(stream=data, filetype="pdf")
    except RuntimeError as e:
        raise ValidationError("The chapter file is not a readable PDF.") from e

    pages = []
    try:
        for page in document:
            scale = width / page.rect.width
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            pages.append(BytesIO(pixmap.tobytes("png")))
    finally:
        document.close()

    if not pages:
        raise ValidationError("The chapter PDF has no pages.")
    return pages


def ingest_chapter_pdf(chapter: ManhwaChapter, pdf_file) -> list[str]:
    """Split a single-file chapter into page images and store them like uploaded pages."""
    pages = render_pdf_pages(pdf_file.read(), settings.CHAPTER_PAGE_WIDTH)
    logger.info("Rendered %d pages from PDF for chapter %s", len(pages), chapter.pk)
    return ingest_chapter_pages(chapter, pages)
