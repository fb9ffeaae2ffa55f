"""Submit an image job, poll it to completion and fetch the artifact."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..errors import ArtifactNotFound, JobFailed, JobTimedOut, ProviderError
from ..logging import JSONLLogger
from ..polling import PollOutcome, PollPolicy, PollState, poll_until
from ..providers.runpod import JobStatus, RunPodClient
from .artifacts import extract_artifact

logger = logging.getLogger(__name__)

_STATE_BY_STATUS = {
    "COMPLETED": PollState.COMPLETED,
    "FAILED": PollState.FAILED,
    "CANCELLED": PollState.CANCELLED,
    "TIMED_OUT": PollState.FAILED,
}


def classify(status: JobStatus) -> PollState:
    """Map a provider status response to a poll state.

    A non-2xx response is a terminal failure, as is a 2xx body the client
    could not read (no status, error set). Statuses other than the terminal
    ones (IN_QUEUE, IN_PROGRESS, ...) mean keep polling.
    """
    if not status.ok:
        return PollState.FAILED
    if status.status is None and status.error:
        return PollState.FAILED
    return _STATE_BY_STATUS.get((status.status or "").upper(), PollState.POLLING)


class JobPoller:
    """Runs one image workflow on the compute provider.

    A fresh ``RunPodClient`` is created for every job.
    """

    def __init__(
        self,
        client_factory: Callable[[], RunPodClient],
        policy: PollPolicy,
        event_log: JSONLLogger | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self.client_factory = client_factory
        self.policy = policy
        self.event_log = event_log
        self._poll_kwargs: dict[str, Any] = {}
        if clock is not None:
            self._poll_kwargs["clock"] = clock
        if sleep is not None:
            self._poll_kwargs["sleep"] = sleep

    async def run(self, workflow: dict[str, Any], user_id: str | None = None) -> bytes:
        """Submit ``workflow`` and return the generated image bytes.

        Raises:
            JobFailed: The job ended FAILED or CANCELLED, or a status request failed.
            JobTimedOut: The job did not finish within the policy's timeout.
            ArtifactNotFound: The completed output held no image.
            ProviderError: Submission or download failed.
        """
        async with self.client_factory() as client:
            job_id = await client.submit(workflow)

            async def check() -> tuple[PollState, JobStatus]:
                status = await client.status(job_id)
                logger.debug("Job %s status: %s (%s)", job_id, status.status, status.http_status)
                return classify(status), status

            outcome = await poll_until(check, self.policy, **self._poll_kwargs)
            self._log_outcome(job_id, outcome, user_id)

            if outcome.state is PollState.TIMED_OUT:
                raise JobTimedOut(
                    f"Job {job_id} did not finish within {self.policy.timeout}s"
                )
            if outcome.state is not PollState.COMPLETED:
                status: JobStatus = outcome.payload
                raise JobFailed(
                    f"Job {job_id} ended {status.status or f'HTTP {status.http_status}'}: "
                    f"{status.error or 'no error detail'}"
                )

            artifact = extract_artifact(outcome.payload.output)
            if artifact.data is not None:
                return artifact.data
            if not artifact.url:
                raise ArtifactNotFound(f"Job {job_id} produced neither image data nor a URL")
            data = await client.download(artifact.url)
            if not data:
                raise ProviderError(f"Image at {artifact.url} is empty")
            return data

    def _log_outcome(self, job_id: str, outcome: PollOutcome, user_id: str | None) -> None:
        logger.info(
            "Job %s finished %s after %d polls (%.1fs)",
            job_id,
            outcome.state.value,
            outcome.attempts,
            outcome.elapsed,
        )
        if self.event_log:
            error = None
            if outcome.state is not PollState.COMPLETED and outcome.payload is not None:
                error = outcome.payload.error
            self.event_log.log_job_status(
                job_id,
                outcome.state.value,
                user_id=user_id,
                duration_ms=outcome.elapsed * 1000,
                attempts=outcome.attempts,
                error=error,
            )
