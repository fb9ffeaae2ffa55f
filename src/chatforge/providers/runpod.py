"""HTTP client for RunPod serverless jobs."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class JobStatus:
    """One status response for a submitted job.

    Attributes:
        http_status: HTTP status code of the status request.
        status: Provider job status (IN_QUEUE, IN_PROGRESS, COMPLETED, ...).
        output: The job output, present once COMPLETED.
        error: Provider error text, if any.
    """

    http_status: int
    status: str | None = None
    output: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.http_status < 300


class RunPodClient:
    """Submits workflows to a RunPod endpoint and reads job status.

    Use as an async context manager; the underlying ``httpx.AsyncClient``
    lives for one job.
    """

    def __init__(
        self,
        api_key: str,
        endpoint_id: str,
        *,
        base_url: str = "https://api.runpod.ai/v2",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key or not endpoint_id:
            raise ValueError("RunPod api_key and endpoint_id must be set")
        self.endpoint_url = f"{base_url.rstrip('/')}/{endpoint_id}"
        # Sent to the RunPod API only, never to artifact hosts
        self._auth = {"Authorization": f"Bearer {api_key}"}
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "RunPodClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def submit(self, workflow: dict[str, Any]) -> str:
        """Submit a workflow for asynchronous execution.

        Returns:
            The provider job id.

        Raises:
            ProviderError: If the request is rejected or returns no id.
        """
        response = await self._http.post(
            f"{self.endpoint_url}/run",
            json={"input": {"workflow": workflow}},
            headers=self._auth,
        )
        if not response.is_success:
            raise ProviderError(
                f"RunPod submit failed ({response.status_code}): {response.text[:500]}"
            )

        data = _json_or_none(response)
        job_id = data.get("id") if isinstance(data, dict) else None
        if not job_id:
            raise ProviderError(f"RunPod submit returned no job id: {response.text[:500]}")

        logger.info("Submitted RunPod job %s", job_id)
        return str(job_id)

    async def status(self, job_id: str) -> JobStatus:
        """Fetch the current status of a job."""
        response = await self._http.get(
            f"{self.endpoint_url}/status/{job_id}", headers=self._auth
        )
        if not response.is_success:
            return JobStatus(
                http_status=response.status_code,
                error=response.text[:500],
            )

        data = _json_or_none(response)
        if not isinstance(data, dict):
            return JobStatus(
                http_status=response.status_code,
                error="status response is not a JSON object",
            )

        error = data.get("error")
        return JobStatus(
            http_status=response.status_code,
            status=data.get("status"),
            output=data.get("output"),
            error=str(error) if error else None,
        )

    async def download(self, url: str) -> bytes:
        """Fetch an artifact referenced by URL.

        Raises:
            ProviderError: If the download fails.
        """
        try:
            response = await self._http.get(url, follow_redirects=True)
        except httpx.RequestError as e:
            raise ProviderError(f"Failed to fetch image from {url}: {e}") from e
        if not response.is_success:
            raise ProviderError(
                f"Failed to fetch image from {url}: HTTP {response.status_code}"
            )
        return response.content


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
