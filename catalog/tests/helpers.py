"""Shared fixtures for catalog tests."""

from datetime import timedelta
from unittest.mock import MagicMock

import boto3
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone
from moto import mock_aws

from catalog.models import AnimeSeries, Profile

BUCKETS = ("S3_RAW_BUCKET", "S3_PROCESSED_BUCKET", "S3_IMAGES_BUCKET", "S3_RECEIPTS_BUCKET")


def make_user(username="viewer", admin=False, subscribed=False):
    user = get_user_model().objects.create_user(username=username, email=f"{username}@example.com", password="pw")
    profile = user.profile
    if admin:
        profile.roles = [Profile.ADMIN_ROLE]
    if subscribed:
        profile.subscription_status = Profile.SubscriptionStatus.ACTIVE
        profile.subscription_expires_at = timezone.now() + timedelta(days=30)
    profile.save()
    return user


def make_series(**kwargs):
    defaults = {"title_english": "Frieren: Beyond Journey's End", "title_romaji": "Sousou no Frieren"}
    defaults.update(kwargs)
    return AnimeSeries.objects.create(**defaults)


def export_task(label, status="finished", url=None):
    task = {"name": f"export-{label}", "operation": "export/url", "status": status}
    if status == "finished":
        task["result"] = {"files": [{"filename": f"{label}.mp4", "url": url or f"https://storage.cloudconvert.test/{label}.mp4"}]}
    return task


def job_data(status, labels=(), job_id="abc123"):
    tasks = [{"name": "import-video", "operation": "import/url", "status": "finished"}]
    tasks += [export_task(label) for label in labels]
    return {"id": job_id, "status": status, "tasks": tasks}


def fake_download(payloads=None):
    """Stand-in for requests.get(url, stream=True) used as a context manager."""
    def _get(url, **kwargs):
        resp = MagicMock()
        resp.__enter__.return_value = resp
        resp.iter_content.return_value = [(payloads or {}).get(url, b"video-bytes")]
        return resp
    return MagicMock(side_effect=_get)


class S3TestMixin:
    """Starts moto and creates every configured bucket."""

    def setUp(self):
        super().setUp()
        self.aws = mock_aws()
        self.aws.start()
        self.s3 = boto3.client("s3", region_name=settings.S3_REGION)
        for name in BUCKETS:
            self.s3.create_bucket(Bucket=getattr(settings, name))

    def tearDown(self):
        self.aws.stop()
        super().tearDown()

    def keys(self, bucket):
        resp = self.s3.list_objects_v2(Bucket=bucket)
        return sorted(obj["Key"] for obj in resp.get("Contents", []))
