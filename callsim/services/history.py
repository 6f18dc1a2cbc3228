"""
Call history: the in-memory list of completed calls and its optional
persistence sink.
"""

import asyncio
import logging
from typing import List, Optional

import requests

from callsim.config.constants import LOGGER_NAME
from callsim.errors import CallHistoryError
from callsim.models.call import CallRecord

logger = logging.getLogger(LOGGER_NAME)

REQUEST_TIMEOUT = 15  # seconds


def format_duration(ms: int) -> str:
    """Render a duration in milliseconds as ``mm:ss``."""
    total_seconds = ms // 1000
    return f"{total_seconds // 60:02d}:{total_seconds % 60:02d}"


class HttpCallRecordSink:
    """Appends call records to a REST table endpoint."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = REQUEST_TIMEOUT):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    async def append_call_record(self, record: CallRecord) -> None:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        try:
            response = await asyncio.to_thread(
                requests.post,
                self.url,
                headers=headers,
                data=record.model_dump_json(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CallHistoryError(f"Could not save call {record.id}: {e}") from e
        if response.status_code not in (200, 201, 204):
            raise CallHistoryError(
                f"Could not save call {record.id} ({response.status_code}): {response.text[:200]}"
            )


class CallHistory:
    def __init__(self, sink: Optional[HttpCallRecordSink] = None):
        self.sink = sink
        self._records: List[CallRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    async def append(self, record: CallRecord) -> None:
        """
        Add a completed call.

        The record is kept in memory before the sink is called, so it stays
        visible for this session even when persistence fails.

        Raises:
            CallHistoryError: the sink rejected the record
        """
        self._records.append(record)
        logger.info(f"Call {record.id} added to history ({len(self._records)} total)")
        if self.sink is not None:
            await self.sink.append_call_record(record)

    def records(self, search: str = "") -> List[CallRecord]:
        """Newest first, filtered case-insensitively by agent name."""
        needle = search.lower()
        return [
            record
            for record in sorted(self._records, key=lambda r: r.startTime, reverse=True)
            if needle in record.agentName.lower()
        ]

    def get(self, record_id: str) -> Optional[CallRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None
