import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .ingestion import check_transcode_job, fail_job
from .models import Profile, TranscodeJob

logger = logging.getLogger(__name__)


@shared_task
def poll_transcode_job(job_id: str):
    """One status check; re-schedules itself until the job is terminal.

    Only one poll per job is ever queued: the next one is enqueued at the end
    of the current one.
    """
    try:
        job = TranscodeJob.objects.select_related("episode").get(pk=job_id)
    except TranscodeJob.DoesNotExist:
        logger.warning("Transcode job %s vanished; stopping poll", job_id)
        return None

    if check_transcode_job(job):
        return job.status

    if job.poll_count >= settings.TRANSCODE_POLL_MAX_ATTEMPTS:
        fail_job(job, f"Gave up after {job.poll_count} status checks.")
        logger.error("Transcode job %s timed out", job.external_id)
        return job.status

    poll_transcode_job.apply_async(args=[job_id], countdown=settings.TRANSCODE_POLL_INTERVAL)
    return job.status


@shared_task
def expire_subscriptions() -> int:
    """Flip active profiles whose expiry has passed to 'expired'."""
    updated = Profile.objects.filter(
        subscription_status=Profile.SubscriptionStatus.ACTIVE,
        subscription_expires_at__lte=timezone.now(),
    ).update(subscription_status=Profile.SubscriptionStatus.EXPIRED, updated_at=timezone.now())
    if updated:
        logger.info("Expired %d subscriptions", updated)
    return updated
