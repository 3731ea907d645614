class JobMatchError(Exception):
    """Base class for errors raised by the matching pipeline."""


class SponsorProviderError(JobMatchError):
    """Remote sponsor lookup failed: HTTP error, timeout or unusable payload."""


class SponsorProviderNotConfigured(SponsorProviderError):
    pass


class EmbeddingError(JobMatchError):
    """Embedding provider unreachable, misconfigured or returned a bad vector."""


class JobNotFound(JobMatchError):
    def __init__(self, job_id):
        super().__init__(f"job {job_id!r} not found")
        self.job_id = job_id
