"""Tests for delivery outcome aggregation."""
from src.services.delivery import DeliveryOutcome, DeliveryResultAggregator


class TestDeliveryResultAggregator:
    """Test sent/error bookkeeping."""

    def test_counts_sum_to_processed(self):
        """sent + error always equals the number of outcomes recorded."""
        aggregator = DeliveryResultAggregator()
        outcomes = [
            DeliveryOutcome("r1", ok=True),
            DeliveryOutcome("r2", ok=False, error="bounced"),
            DeliveryOutcome("r3", ok=True),
        ]

        for outcome in outcomes:
            aggregator.record(outcome)

        report = aggregator.report()
        assert report.sent_count == 2
        assert report.error_count == 1
        assert report.processed == 3
        assert aggregator.failed_recipients == ["r2"]

    def test_empty_report(self):
        """No outcomes is a successful empty run."""
        report = DeliveryResultAggregator().report()

        assert report.as_dict() == {
            "success": True,
            "sent_count": 0,
            "error_count": 0,
            "cancelled": False,
        }

    def test_cancelled_flag_carried(self):
        """A cancelled run says so in the report."""
        aggregator = DeliveryResultAggregator()
        aggregator.record(DeliveryOutcome("r1", ok=True))
        aggregator.cancelled = True

        report = aggregator.report()

        assert report.cancelled
        assert report.success
