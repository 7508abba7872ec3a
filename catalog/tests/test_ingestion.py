"""
Tests for the episode ingestion pipeline in catalog/ingestion.py
"""

from unittest.mock import MagicMock, patch

import requests
from botocore.exceptions import NoCredentialsError
from django.conf import settings
from django.test import TestCase

from catalog import ingestion
from catalog.cloudconvert import finished_exports
from catalog.exceptions import UpstreamError, ValidationError
from catalog.models import Episode, TranscodeJob
from catalog.tests.helpers import S3TestMixin, fake_download, job_data, make_series


class RawUploadKeyTest(TestCase):
    def test_key_layout(self):
        key = ingestion.raw_upload_key("series-1", "my episode 12.mp4", now=1700000000.123)
        self.assertEqual(key, "series-1/1700000000123-my_episode_12.mp4")

    def test_strips_directories(self):
        self.assertTrue(ingestion.raw_upload_key("s", "../../etc/passwd").endswith("-passwd"))


class StartEpisodeIngestionTest(S3TestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.series = make_series()
        self.client = MagicMock()
        self.client.create_job.return_value = "abc123"
        self.poll_patcher = patch("catalog.tasks.poll_transcode_job")
        self.mock_poll = self.poll_patcher.start()

    def tearDown(self):
        self.poll_patcher.stop()
        super().tearDown()

    def test_episode_exists_before_remote_call(self):
        """The episode row with a null mapping is written before submission resolves"""
        seen = {}

        def create_job(payload):
            episodes = list(Episode.objects.filter(series=self.series))
            seen["count"] = len(episodes)
            seen["video_urls"] = episodes[0].video_urls
            seen["payload"] = payload
            return "abc123"

        self.client.create_job.side_effect = create_job
        episode, job = ingestion.start_episode_ingestion(
            self.series, 12, f"{self.series.pk}/1-episode12.mp4", client=self.client
        )

        self.assertEqual(seen["count"], 1)
        self.assertIsNone(seen["video_urls"])
        self.assertIn("episode12.mp4", seen["payload"]["tasks"]["import-video"]["url"])
        self.assertEqual(job.external_id, "abc123")
        self.assertEqual(job.status, TranscodeJob.Status.SUBMITTED)
        episode.refresh_from_db()
        self.assertEqual(episode.processing_status, Episode.ProcessingStatus.PROCESSING)
        self.assertEqual(episode.raw_file_path, f"{self.series.pk}/1-episode12.mp4")
        self.mock_poll.apply_async.assert_called_once_with(args=[str(job.pk)], countdown=5)

    def test_missing_episode_number(self):
        with self.assertRaises(ValidationError):
            ingestion.start_episode_ingestion(self.series, None, "k.mp4", client=self.client)
        self.assertFalse(Episode.objects.exists())
        self.client.create_job.assert_not_called()

    def test_missing_file(self):
        with self.assertRaises(ValidationError):
            ingestion.start_episode_ingestion(self.series, 3, "", client=self.client)
        self.assertFalse(Episode.objects.exists())

    def test_duplicate_episode_number(self):
        ingestion.start_episode_ingestion(self.series, 1, "a.mp4", client=self.client)
        with self.assertRaises(ValidationError):
            ingestion.start_episode_ingestion(self.series, 1, "b.mp4", client=self.client)
        self.assertEqual(Episode.objects.count(), 1)

    def test_submission_failure_keeps_failed_episode(self):
        self.client.create_job.side_effect = UpstreamError("CloudConvert returned HTTP 401")

        with self.assertRaises(UpstreamError):
            ingestion.start_episode_ingestion(self.series, 5, "a.mp4", client=self.client)

        episode = Episode.objects.get()
        self.assertIsNone(episode.video_urls)
        self.assertEqual(episode.processing_status, Episode.ProcessingStatus.FAILED)
        job = episode.jobs.get()
        self.assertEqual(job.status, TranscodeJob.Status.ERROR)
        self.assertIn("401", job.error)
        self.mock_poll.apply_async.assert_not_called()

    def test_unsignable_raw_file_keeps_failed_episode(self):
        with patch("catalog.ingestion.s3.create_presigned_get", side_effect=NoCredentialsError()):
            with self.assertRaises(UpstreamError) as ctx:
                ingestion.start_episode_ingestion(self.series, 12, "k.mp4", client=self.client)

        self.assertEqual(ctx.exception.details["original_error_type"], "NoCredentialsError")
        self.client.create_job.assert_not_called()
        self.mock_poll.apply_async.assert_not_called()
        episode = Episode.objects.get()
        self.assertEqual(episode.processing_status, Episode.ProcessingStatus.FAILED)
        self.assertIsNone(episode.video_urls)
        self.assertEqual(episode.jobs.get().status, TranscodeJob.Status.ERROR)


class CheckTranscodeJobTest(S3TestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.series = make_series()
        self.episode = Episode.objects.create(
            series=self.series, episode_number=12, processing_status=Episode.ProcessingStatus.PROCESSING
        )
        self.job = TranscodeJob.objects.create(episode=self.episode, external_id="abc123")
        self.client = MagicMock()

    def test_processing_is_not_terminal(self):
        self.client.get_job.return_value = job_data("processing")

        self.assertFalse(ingestion.check_transcode_job(self.job, client=self.client))
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, TranscodeJob.Status.PROCESSING)
        self.assertEqual(self.job.poll_count, 1)

    def test_unknown_status_keeps_polling(self):
        self.client.get_job.return_value = {"id": "abc123", "status": "waiting", "tasks": []}
        self.assertFalse(ingestion.check_transcode_job(self.job, client=self.client))

    def test_upstream_failure_while_polling_is_not_terminal(self):
        self.client.get_job.side_effect = UpstreamError("timeout")
        self.assertFalse(ingestion.check_transcode_job(self.job, client=self.client))
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, TranscodeJob.Status.SUBMITTED)

    def test_error_leaves_mapping_null(self):
        self.client.get_job.return_value = {"id": "abc123", "status": "error", "message": "Input file is corrupt", "tasks": []}

        self.assertTrue(ingestion.check_transcode_job(self.job, client=self.client))

        self.episode.refresh_from_db()
        self.job.refresh_from_db()
        self.assertIsNone(self.episode.video_urls)
        self.assertEqual(self.episode.processing_status, Episode.ProcessingStatus.FAILED)
        self.assertEqual(self.job.status, TranscodeJob.Status.ERROR)
        self.assertEqual(self.job.error, "Input file is corrupt")

    def test_terminal_job_makes_no_request(self):
        self.job.status = TranscodeJob.Status.ERROR
        self.job.save()

        self.assertTrue(ingestion.check_transcode_job(self.job, client=self.client))
        self.client.get_job.assert_not_called()

    @patch("catalog.ingestion.requests.get", new_callable=fake_download)
    def test_example_flow_with_missing_480p(self, mock_get):
        """processing, processing, then finished with 1080p and 720p only"""
        self.client.get_job.side_effect = [
            job_data("processing"),
            job_data("processing"),
            job_data("finished", labels=("1080p", "720p")),
        ]

        results = [ingestion.check_transcode_job(self.job, client=self.client) for _ in range(3)]

        self.assertEqual(results, [False, False, True])
        self.episode.refresh_from_db()
        self.assertEqual(set(self.episode.video_urls), {"1080p", "720p"})
        self.assertNotIn("480p", self.episode.video_urls)
        self.assertEqual(self.episode.processing_status, Episode.ProcessingStatus.PARTIAL)
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, TranscodeJob.Status.FINISHED)
        self.assertEqual(self.job.poll_count, 3)


class MaterializeRenditionsTest(S3TestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.series = make_series()
        self.episode = Episode.objects.create(series=self.series, episode_number=1)
        self.job = TranscodeJob.objects.create(episode=self.episode, external_id="abc123")
        self.bucket = settings.S3_PROCESSED_BUCKET

    @patch("catalog.ingestion.requests.get", new_callable=fake_download)
    def test_all_renditions(self, mock_get):
        urls = ingestion.materialize_renditions(self.job, job_data("finished", labels=("1080p", "720p", "480p")))

        self.assertEqual(set(urls), {"1080p", "720p", "480p"})
        self.assertEqual(
            self.keys(self.bucket),
            sorted(f"{self.episode.pk}/{label}.mp4" for label in ("1080p", "720p", "480p")),
        )
        self.episode.refresh_from_db()
        self.assertEqual(self.episode.video_urls, urls)
        self.assertIn(self.bucket, urls["720p"])
        self.assertTrue(urls["720p"].endswith(f"/{self.episode.pk}/720p.mp4"))
        self.assertEqual(self.episode.processing_status, Episode.ProcessingStatus.READY)
        self.assertEqual(len(self.job.outputs), 3)

    @patch("catalog.ingestion.requests.get", new_callable=fake_download)
    def test_mapping_size_matches_successful_exports(self, mock_get):
        data = job_data("finished", labels=("720p",))
        data["tasks"].append({"name": "export-480p", "status": "error"})

        urls = ingestion.materialize_renditions(self.job, data)

        self.assertEqual(list(urls), ["720p"])

    @patch("catalog.ingestion.requests.get", new_callable=fake_download)
    def test_rematerialising_overwrites(self, mock_get):
        data = job_data("finished", labels=("1080p", "720p", "480p"))
        ingestion.materialize_renditions(self.job, data)
        self.job.status = TranscodeJob.Status.PROCESSING
        self.job.save()
        ingestion.materialize_renditions(self.job, data)

        self.assertEqual(len(self.keys(self.bucket)), 3)
        body = self.s3.get_object(Bucket=self.bucket, Key=f"{self.episode.pk}/1080p.mp4")["Body"].read()
        self.assertEqual(body, b"video-bytes")

    def test_no_successful_exports(self):
        urls = ingestion.materialize_renditions(self.job, job_data("finished"))

        self.assertEqual(urls, {})
        self.episode.refresh_from_db()
        self.assertIsNone(self.episode.video_urls)
        self.assertEqual(self.episode.processing_status, Episode.ProcessingStatus.FAILED)

    def test_failure_removes_staged_uploads(self):
        good = fake_download()
        calls = {"n": 0}

        def flaky_get(url, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise requests.ConnectionError("export link expired")
            return good(url, **kwargs)

        with patch("catalog.ingestion.requests.get", side_effect=flaky_get):
            with self.assertRaises(UpstreamError) as ctx:
                ingestion.materialize_renditions(self.job, job_data("finished", labels=("1080p", "720p", "480p")))

        self.assertEqual(ctx.exception.details["uploaded_before_failure"], ["1080p"])
        self.assertEqual(self.keys(self.bucket), [])
        self.episode.refresh_from_db()
        self.assertIsNone(self.episode.video_urls)

    def test_apply_job_status_marks_failed_on_materialization_error(self):
        with patch("catalog.ingestion.requests.get", side_effect=requests.ConnectionError("gone")):
            self.assertTrue(ingestion.apply_job_status(self.job, job_data("finished", labels=("1080p",))))

        self.job.refresh_from_db()
        self.episode.refresh_from_db()
        self.assertEqual(self.job.status, TranscodeJob.Status.ERROR)
        self.assertEqual(self.episode.processing_status, Episode.ProcessingStatus.FAILED)

    def test_failed_rematerialisation_keeps_published_renditions(self):
        data = job_data("finished", labels=("1080p", "720p", "480p"))
        with patch("catalog.ingestion.requests.get", new_callable=fake_download):
            published = ingestion.materialize_renditions(self.job, data)

        good = fake_download({url: b"new-bytes" for _, url in finished_exports(data)})
        calls = {"n": 0}

        def flaky_get(url, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise requests.ConnectionError("export link expired")
            return good(url, **kwargs)

        with patch("catalog.ingestion.requests.get", side_effect=flaky_get):
            with self.assertRaises(UpstreamError):
                ingestion.materialize_renditions(self.job, data)

        self.episode.refresh_from_db()
        self.assertEqual(self.episode.video_urls, published)
        self.assertEqual(
            self.keys(self.bucket),
            sorted(f"{self.episode.pk}/{label}.mp4" for label in ("1080p", "720p", "480p")),
        )
        body = self.s3.get_object(Bucket=self.bucket, Key=f"{self.episode.pk}/1080p.mp4")["Body"].read()
        self.assertEqual(body, b"video-bytes")

    @patch("catalog.ingestion.requests.get", new_callable=fake_download)
    def test_apply_job_status_rereads_job_before_acting(self, mock_get):
        stale = TranscodeJob.objects.get(pk=self.job.pk)
        TranscodeJob.objects.filter(pk=self.job.pk).update(status=TranscodeJob.Status.FINISHED)

        self.assertTrue(ingestion.apply_job_status(stale, job_data("finished", labels=("1080p",))))

        mock_get.assert_not_called()
        self.assertEqual(self.keys(self.bucket), [])


class DeleteMediaTest(S3TestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.series = make_series()
        self.episode = Episode.objects.create(
            series=self.series, episode_number=1, raw_file_path=f"{self.series.pk}/1-ep1.mp4"
        )
        self.s3.put_object(Bucket=settings.S3_RAW_BUCKET, Key=self.episode.raw_file_path, Body=b"raw")
        self.s3.put_object(Bucket=settings.S3_RAW_BUCKET, Key=f"{self.series.pk}/2-ep2.mp4", Body=b"raw")
        self.s3.put_object(Bucket=settings.S3_RAW_BUCKET, Key="other-series/1-x.mp4", Body=b"raw")
        for label in ("1080p", "720p"):
            self.s3.put_object(Bucket=settings.S3_PROCESSED_BUCKET, Key=f"{self.episode.pk}/{label}.mp4", Body=b"x")

    def test_delete_episode(self):
        ingestion.delete_episode(self.episode)

        self.assertFalse(Episode.objects.exists())
        self.assertEqual(self.keys(settings.S3_PROCESSED_BUCKET), [])
        self.assertEqual(
            self.keys(settings.S3_RAW_BUCKET),
            sorted([f"{self.series.pk}/2-ep2.mp4", "other-series/1-x.mp4"]),
        )

    def test_delete_series(self):
        ingestion.delete_series(self.series)

        self.assertFalse(Episode.objects.exists())
        self.assertEqual(self.keys(settings.S3_PROCESSED_BUCKET), [])
        self.assertEqual(self.keys(settings.S3_RAW_BUCKET), ["other-series/1-x.mp4"])
