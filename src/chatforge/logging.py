"""JSONL event log for charges, jobs and background work."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    user_id: str | None = None
    chat_id: str | None = None
    message_id: int | None = None
    job_id: str | None = None
    amount: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {}}


class JSONLLogger:
    """Logger that writes structured events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".chatforge" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        user_id: str | None = None,
        chat_id: str | None = None,
        message_id: int | None = None,
        job_id: str | None = None,
        amount: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            user_id=user_id,
            chat_id=chat_id,
            message_id=message_id,
            job_id=job_id,
            amount=amount,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_charge(
        self, user_id: str, amount: int, operation: str, charge_id: int, balance_before: int
    ) -> None:
        """Log a ledger debit."""
        self.log(
            "charge",
            user_id=user_id,
            amount=amount,
            operation=operation,
            charge_id=charge_id,
            balance_before=balance_before,
        )

    def log_refund(
        self, user_id: str, amount: int, operation: str, charge_id: int | None = None
    ) -> None:
        """Log a ledger refund."""
        self.log(
            "refund",
            user_id=user_id,
            amount=amount,
            operation=operation,
            charge_id=charge_id,
        )

    def log_job_status(
        self,
        job_id: str,
        status: str,
        *,
        user_id: str | None = None,
        duration_ms: float | None = None,
        attempts: int | None = None,
        error: str | None = None,
    ) -> None:
        """Log the terminal state of a compute job."""
        self.log(
            "image_job",
            job_id=job_id,
            user_id=user_id,
            duration_ms=duration_ms,
            error=error,
            status=status,
            attempts=attempts,
        )

    def log_reply(
        self,
        user_id: str,
        chat_id: str,
        message_id: int,
        *,
        model: str,
        success: bool,
        duration_ms: float | None = None,
        error: str | None = None,
    ) -> None:
        """Log the outcome of a text reply."""
        self.log(
            "reply",
            user_id=user_id,
            chat_id=chat_id,
            message_id=message_id,
            duration_ms=duration_ms,
            error=error if not success else None,
            model=model,
            success=success,
        )

    def log_task_failure(self, task_name: str, error: str) -> None:
        """Log a background task that raised."""
        self.log("task_failed", error=error, task=task_name)


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
