"""
Storage for finished call recordings.

``HttpObjectStorage`` uploads to a Supabase-style storage REST API and
returns the object's public URL. ``LocalRecordingStore`` is the fallback: it
writes the recording to a directory that lives as long as the process and
returns a ``file://`` reference.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Optional

import requests

from callsim.audio.recorder import Recording
from callsim.config.constants import LOGGER_NAME
from callsim.errors import RecordingUploadError

logger = logging.getLogger(LOGGER_NAME)

UPLOAD_TIMEOUT = 30  # seconds


def recording_filename(name: str, recording: Recording) -> str:
    extension = recording.mime_type.split("/")[-1]
    return f"{name}.{extension}"


class HttpObjectStorage:
    def __init__(self, base_url: str, api_key: str, bucket: str = "recordings",
                 timeout: float = UPLOAD_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout

    async def upload(self, recording: Recording, name: str) -> str:
        """
        Upload a recording and return its public URL.

        Raises:
            RecordingUploadError: the request failed or was rejected
        """
        path = recording_filename(name, recording)
        endpoint = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        try:
            response = await asyncio.to_thread(
                requests.post,
                endpoint,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "apikey": self.api_key,
                    "Content-Type": recording.mime_type,
                    "x-upsert": "true",
                },
                data=recording.data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RecordingUploadError(f"Recording upload failed: {e}") from e

        if response.status_code not in (200, 201):
            raise RecordingUploadError(
                f"Recording upload rejected ({response.status_code}): {response.text[:200]}"
            )
        url = f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"
        logger.info(f"Uploaded recording to {url}")
        return url


class LocalRecordingStore:
    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else Path(tempfile.mkdtemp(prefix="callsim-"))

    async def save(self, recording: Recording, name: str) -> str:
        path = self.directory / recording_filename(name, recording)
        await asyncio.to_thread(path.write_bytes, recording.data)
        logger.info(f"Saved recording locally at {path}")
        return path.as_uri()
