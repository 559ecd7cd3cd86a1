"""Healthcheck state shared by the API clients."""

from datetime import datetime, timezone

from attrs import define, field

STATUS_OK = "OK"
STATUS_WARNING = "WARNING"
STATUS_CRITICAL = "CRITICAL"

STATUS_MESSAGES = {
    STATUS_OK: " is ok",
    STATUS_WARNING: " is degraded, but at least partially functioning",
    STATUS_CRITICAL: " functionality is unavailable or non-functioning",
}

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@define(slots=True)
class CheckState:
    """Mutable result of the most recent healthcheck against one service."""

    name: str = ""
    status: str = ""
    message: str = ""
    status_code: int = 0
    last_checked: datetime | None = None
    last_success: datetime = field(factory=lambda: _EPOCH)
    last_failure: datetime = field(factory=lambda: _EPOCH)

    def update(self, status: str, message: str, status_code: int) -> None:
        """Record a new check outcome, stamping the success or failure time."""
        if status not in STATUS_MESSAGES:
            raise ValueError(f"Unknown health status {status!r}.")
        now = _utcnow()
        self.status = status
        self.message = message
        self.status_code = status_code
        self.last_checked = now
        if status == STATUS_OK:
            self.last_success = now
        else:
            self.last_failure = now

    @property
    def healthy(self) -> bool:
        """Return True when the last check succeeded."""
        return self.status == STATUS_OK


def status_message(service: str, status: str) -> str:
    """Compose the standard ``<service> is ok`` style message."""
    return service + STATUS_MESSAGES[status]


__all__ = [
    "CheckState",
    "STATUS_CRITICAL",
    "STATUS_MESSAGES",
    "STATUS_OK",
    "STATUS_WARNING",
    "status_message",
]
