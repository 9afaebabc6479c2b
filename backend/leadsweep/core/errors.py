"""
Error taxonomy for the pipeline.

- ConfigurationError: a provider credential or URL is missing; raised before
  any work is attempted.
- UpstreamError: a provider answered non-2xx or with a body we cannot read.
- CallerError: the request itself is unusable (missing jobId, bad spendCap).
- JobNotFoundError: the referenced job does not exist.

The API layer maps each of these to a JSON body {"detail", "code"}.
"""
from typing import Optional


class LeadSweepError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(LeadSweepError):
    code = "configuration_error"
    status_code = 503


class UpstreamError(LeadSweepError):
    code = "upstream_error"
    status_code = 502

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class CallerError(LeadSweepError):
    code = "caller_error"
    status_code = 400


class JobNotFoundError(LeadSweepError):
    code = "job_not_found"
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id
