"""
Error Logger Service

Records upstream failures that abort a batch, for the operator error view:
- job and stage
- provider, error type and message
- timestamp (UTC)
- per-day counts by job / stage / type

Entries live in Redis for 7 days. With REDIS_URL unset the logger is
disabled: writes are dropped and reads return nothing.
"""
import json
import logging
from datetime import datetime
from typing import Dict, List, Optional

import redis

from leadsweep.core.config import settings

logger = logging.getLogger(__name__)

# Max errors to keep per day
MAX_ERRORS_PER_DAY = 10000

RETENTION_SECONDS = 7 * 24 * 60 * 60


def get_redis_client() -> Optional[redis.Redis]:
    if not settings.REDIS_URL:
        return None
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_today_date() -> str:
    return datetime.utcnow().strftime("%Y-%m-%d")


class ErrorLogger:
    """Log and retrieve batch errors."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis = client if client is not None else get_redis_client()
        if self.redis is None:
            logger.warning("REDIS_URL is not set; upstream error log disabled")

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def _get_errors_key(self, date: Optional[str] = None) -> str:
        return f"leadsweep:errors:{date or get_today_date()}"

    def _get_error_counts_key(self, date: Optional[str] = None) -> str:
        return f"leadsweep:error_counts:{date or get_today_date()}"

    def log_error(
        self,
        job_id: str,
        stage: str,
        error_type: str,
        error_message: str,
        provider: Optional[str] = None,
        extra_data: Optional[Dict] = None,
    ):
        if not self.enabled:
            return

        error_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "job_id": str(job_id),
            "stage": stage,
            "provider": provider,
            "error_type": error_type,
            "error_message": error_message,
            "extra_data": extra_data or {},
        }

        errors_key = self._get_errors_key()
        counts_key = self._get_error_counts_key()

        try:
            # Newest first
            self.redis.lpush(errors_key, json.dumps(error_entry))
            self.redis.ltrim(errors_key, 0, MAX_ERRORS_PER_DAY - 1)
            self.redis.expire(errors_key, RETENTION_SECONDS)

            self.redis.hincrby(counts_key, f"{job_id}:{stage}:{error_type}", 1)
            self.redis.expire(counts_key, RETENTION_SECONDS)
        except redis.RedisError as e:
            # The batch error is what the caller sees; losing the log entry is secondary
            logger.warning(f"Could not record error for job {job_id}: {e}")

    def get_errors(self, date: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Dict]:
        """Error entries for a date, newest first."""
        if not self.enabled:
            return []
        raw_errors = self.redis.lrange(self._get_errors_key(date), offset, offset + limit - 1)
        return [json.loads(e) for e in raw_errors]

    def get_error_summary(self, date: Optional[str] = None) -> Dict:
        by_job: Dict[str, int] = {}
        by_stage: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        total = 0

        all_counts = self.redis.hgetall(self._get_error_counts_key(date)) if self.enabled else {}
        for key, count in all_counts.items():
            count = int(count)
            total += count

            parts = key.split(":", 2)
            if len(parts) == 3:
                job_id, stage, error_type = parts
                by_job[job_id] = by_job.get(job_id, 0) + count
                by_stage[stage] = by_stage.get(stage, 0) + count
                by_type[error_type] = by_type.get(error_type, 0) + count

        return {
            "date": date or get_today_date(),
            "enabled": self.enabled,
            "total_errors": total,
            "by_job": by_job,
            "by_stage": by_stage,
            "by_type": by_type,
        }

    def get_errors_for_job(self, job_id: str, date: Optional[str] = None) -> List[Dict]:
        errors = self.get_errors(date, limit=MAX_ERRORS_PER_DAY)
        return [e for e in errors if e.get("job_id") == str(job_id)]


# Singleton instance
_logger: Optional[ErrorLogger] = None


def get_error_logger() -> ErrorLogger:
    """Get singleton error logger instance."""
    global _logger
    if _logger is None:
        _logger = ErrorLogger()
    return _logger
