"""Per-recipient delivery outcomes and their running totals."""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DeliveryOutcome:
    recipient_id: str
    ok: bool
    error: str | None = None


@dataclass
class DeliveryReport:
    success: bool
    sent_count: int
    error_count: int
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.sent_count + self.error_count

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "sent_count": self.sent_count,
            "error_count": self.error_count,
            "cancelled": self.cancelled,
        }


@dataclass
class DeliveryResultAggregator:
    """
    Folds outcomes, in processing order, into sent/error counts.

    ``sent_count + error_count`` always equals the number of outcomes
    recorded, whatever mix of successes and failures they contain.
    """

    sent_count: int = 0
    error_count: int = 0
    cancelled: bool = False
    failed_recipients: list[str] = field(default_factory=list)

    def record(self, outcome: DeliveryOutcome) -> None:
        if outcome.ok:
            self.sent_count += 1
        else:
            self.error_count += 1
            self.failed_recipients.append(outcome.recipient_id)

    @property
    def processed(self) -> int:
        return self.sent_count + self.error_count

    def report(self) -> DeliveryReport:
        # A run that finishes is a success even when every send failed;
        # individual failures only show up in error_count.
        return DeliveryReport(
            success=True,
            sent_count=self.sent_count,
            error_count=self.error_count,
            cancelled=self.cancelled,
        )
