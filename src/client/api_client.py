"""Async HTTP client for the call-coach API."""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx

from src.client.config import WatcherConfig
from src.client.errors import ClientError
from src.status.events import StatusEvent
from src.transcription.whisper import content_type_for


class CoachingClient:
    """Thin wrapper over the REST endpoints.

    A fresh ``httpx.AsyncClient`` is opened per call, so one instance can
    be shared freely between tasks.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        config: WatcherConfig | None = None,
    ) -> None:
        config = config or WatcherConfig()
        self._base_url = (base_url or config.base_url).rstrip("/")
        if api_key is None and config.api_key is not None:
            api_key = config.api_key.get_secret_value()
        self._headers = {"X-API-KEY": api_key} if api_key else {}
        self._timeout = timeout or config.request_timeout

    async def upload(
        self,
        path: str | Path,
        scenario_type: str | None = None,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        path = Path(path)
        files = {"file": (path.name, path.read_bytes(), content_type or content_type_for(path.name))}
        data = {"scenario_type": scenario_type} if scenario_type else None
        return await self._request("POST", "/jobs", files=files, data=data)

    async def get_status(self, job_id: str) -> StatusEvent:
        payload = await self._request("GET", f"/jobs/{job_id}/status")
        return StatusEvent.model_validate(payload)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/jobs/{job_id}")

    async def list_jobs(
        self,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if status:
            params["status"] = status
        return await self._request("GET", "/jobs", params=params)

    async def delete_job(self, job_id: str) -> None:
        await self._request("DELETE", f"/jobs/{job_id}")

    async def resubmit(self, job_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/jobs/{job_id}/resubmit")

    async def analyze(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/scoring/analyze", json=payload)

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/health")

    async def stream_events(self, job_id: str) -> AsyncIterator[str]:
        """Yield raw lines of the job's server-sent event stream."""
        timeout = httpx.Timeout(self._timeout, read=None)
        async with httpx.AsyncClient(timeout=timeout) as client:
            async with client.stream(
                "GET",
                f"{self._base_url}/jobs/{job_id}/events",
                headers={**self._headers, "Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ClientError(response.status_code, _detail(response))
                async for line in response.aiter_lines():
                    yield line

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.request(
                method, f"{self._base_url}{path}", headers=self._headers, **kwargs,
            )
        if response.status_code >= 400:
            raise ClientError(response.status_code, _detail(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)
