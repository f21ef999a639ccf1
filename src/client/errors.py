"""Client-side errors. None of these change server job state."""


class ClientError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class ClientTimeoutError(Exception):
    """Push and polling both gave up before the job reached a terminal status.

    The job may still be processing on the server; only the client stopped
    waiting.
    """

    def __init__(self, job_id: str, attempts: int, last_status: str | None = None) -> None:
        self.job_id = job_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Gave up waiting for job {job_id} after {attempts} polls "
            f"(last status: {last_status or 'unknown'})"
        )
