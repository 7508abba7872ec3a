"""CloudConvert v2 client and job description builder.

The job graph fans a single imported source out to one convert + export pair
per rendition:

    import-video ─┬─ transcode-1080p ── export-1080p
                  ├─ transcode-720p  ── export-720p
                  └─ transcode-480p  ── export-480p

Exports use ``export/url``, so finished jobs hand back temporary download URLs
that the materializer copies into our own processed-media bucket.
"""

import logging
from typing import Any

import requests
from django.conf import settings

from .exceptions import UpstreamError
from .models import RENDITIONS

logger = logging.getLogger(__name__)

IMPORT_TASK = "import-video"
TRANSCODE_PREFIX = "transcode-"
EXPORT_PREFIX = "export-"

# label -> (width, crf, audio bitrate kbps)
RENDITION_PRESETS: dict[str, tuple[int, int, int]] = {
    "1080p": (1920, 23, 128),
    "720p": (1280, 25, 128),
    "480p": (854, 28, 96),
}


def convert_task(label: str) -> dict[str, Any]:
    width, crf, audio_bitrate = RENDITION_PRESETS[label]
    return {
        "operation": "convert",
        "input": IMPORT_TASK,
        "output_format": "mp4",
        "engine": "ffmpeg",
        "video_codec": "x264",
        "crf": crf,
        "preset": "medium",
        "profile": "high",
        "fit": "scale",
        "width": width,
        "audio_codec": "aac",
        "audio_bitrate": audio_bitrate,
        "filename": f"{label}.mp4",
    }


def build_job_payload(input_url: str, tag: str | None = None, renditions=RENDITIONS) -> dict[str, Any]:
    """Build the CloudConvert job description for one raw episode file.

    Args:
        input_url: Temporary signed GET URL of the raw upload
        tag: Free-form job tag (defaults to CLOUDCONVERT_TAG)
        renditions: Rendition labels to produce, best first

    Returns:
        Payload for ``POST /jobs``
    """
    tasks: dict[str, Any] = {
        IMPORT_TASK: {
            "operation": "import/url",
            "url": input_url,
        },
    }
    for label in renditions:
        tasks[f"{TRANSCODE_PREFIX}{label}"] = convert_task(label)
        tasks[f"{EXPORT_PREFIX}{label}"] = {
            "operation": "export/url",
            "input": f"{TRANSCODE_PREFIX}{label}",
        }
    return {"tasks": tasks, "tag": tag or settings.CLOUDCONVERT_TAG}


def rendition_label(task_name: str) -> str | None:
    """'export-1080p' -> '1080p'; None for anything that is not an export task."""
    if not task_name or not task_name.startswith(EXPORT_PREFIX):
        return None
    return task_name[len(EXPORT_PREFIX):] or None


def finished_exports(job_data: dict[str, Any]) -> list[tuple[str, str]]:
    """Return (label, temporary url) for every successful export task of a job."""
    exports = []
    for task in job_data.get("tasks") or []:
        label = rendition_label(task.get("name", ""))
        if not label or task.get("status") != "finished":
            continue
        files = (task.get("result") or {}).get("files") or []
        if files and files[0].get("url"):
            exports.append((label, files[0]["url"]))
    return exports


class CloudConvertClient:
    def __init__(self, api_key: str | None = None, base_url: str | None = None, timeout: float | None = None):
        self.api_key = api_key if api_key is not None else settings.CLOUDCONVERT_API_KEY
        self.base_url = (base_url or settings.CLOUDCONVERT_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError(f"CloudConvert request failed: {method} {path}", original_error=e) from e
        if not resp.ok:
            raise UpstreamError(
                f"CloudConvert returned HTTP {resp.status_code} for {method} {path}",
                details={"status_code": resp.status_code, "body": resp.text[:2000]},
            )
        return resp.json().get("data") or {}

    def create_job(self, payload: dict[str, Any]) -> str:
        """Submit a job and return its id."""
        data = self._request("POST", "/jobs", json=payload)
        job_id = data.get("id")
        if not job_id:
            raise UpstreamError("CloudConvert accepted the job but returned no id", details={"response": data})
        logger.info("Submitted CloudConvert job %s (tag=%s)", job_id, payload.get("tag"))
        return job_id

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Fetch a job with its task list."""
        return self._request("GET", f"/jobs/{job_id}")
