from unittest.mock import MagicMock

from nl2msg.common.contracts import BatchContext, ExecutionRequest
from nl2msg.pipeline.nodes.simulation.node import TransactionSimulator


def request(handler, parameters, **fields):
    return ExecutionRequest(target_id="proc-1", handler=handler, parameters=parameters, **fields)


class TestTransactionSimulator:

    def setup_method(self):
        self.simulator = TransactionSimulator()

    def test_valid_transfer(self, token_document):
        """A valid transfer simulates cleanly with a write cost and expected outcome."""
        transfer = token_document.get_handler("Transfer")

        result = self.simulator.simulate(request("Transfer", {"Target": "alice-456", "Quantity": "100"}), transfer)

        assert result.valid is True
        assert result.resource_requirements.estimated_cost == 320
        assert result.resource_requirements.permissions == ["Valid wallet signature", "Write access to process"]
        assert result.resource_requirements.token_requirement == "100"
        assert result.estimated_outcome["category"] == "transfer"
        assert result.estimated_outcome["expected_response"]["type"] == "transfer_confirmation"
        assert result.estimated_outcome["target_account"] == "alice-456"
        assert result.risk_assessment.level == "medium"

    def test_warnings_do_not_invalidate(self, token_document):
        transfer = token_document.get_handler("Transfer")

        result = self.simulator.simulate(request("Transfer", {"Target": "bob", "Quantity": "1"}), transfer)

        assert result.valid is True
        assert result.warnings[0].field == "Target"

    def test_zero_amount_write_is_rejected(self, token_document):
        transfer = token_document.get_handler("Transfer")

        result = self.simulator.simulate(request("Transfer", {"Target": "alice-456", "Quantity": "0"}), transfer)

        assert result.valid is False
        assert result.potential_errors[0].message == "Quantity must be greater than zero"

    def test_transfer_without_recipient(self, handler_factory):
        send = handler_factory("Send", {"name": "Quantity", "type": "string", "required": True})

        result = self.simulator.simulate(request("Send", {"Quantity": "5"}), send)

        assert result.valid is False
        assert [e.field for e in result.potential_errors] == ["recipient"]

    def test_read_cost_and_permissions(self, token_document):
        balance = token_document.get_handler("Balance")

        result = self.simulator.simulate(request("Balance", {"Target": "alice-456"}), balance)

        assert result.valid is True
        assert result.resource_requirements.estimated_cost == 110
        assert result.resource_requirements.permissions == ["Valid wallet signature"]
        assert result.resource_requirements.token_requirement == "0"
        assert result.risk_assessment.level == "low"

    def test_batch_adds_cost(self, token_document):
        balance = token_document.get_handler("Balance")
        batch = BatchContext(batch_id="b-1", total_operations=2)

        result = self.simulator.simulate(request("Balance", {}, batch_context=batch), balance)

        assert result.resource_requirements.estimated_cost == 150

    def test_crash_reports_high_risk(self, token_document):
        """A simulation that cannot finish is invalid and high risk, never an exception."""
        risk_engine = MagicMock()
        risk_engine.assess.side_effect = RuntimeError("boom")
        simulator = TransactionSimulator(risk_engine=risk_engine)

        result = simulator.simulate(request("Burn", {"Quantity": "5"}), token_document.get_handler("Burn"))

        assert result.valid is False
        assert result.potential_errors[0].field == "simulation"
        assert "boom" in result.potential_errors[0].message
        assert result.risk_assessment.level == "high"
        assert result.risk_assessment.confirmation_required is True

    def test_without_handler_uses_mode(self):
        result = self.simulator.simulate(
            ExecutionRequest(target_id="proc-1", mode="write", parameters={"amount": -1})
        )

        assert result.valid is False
        assert result.potential_errors[0].field == "amount"


class TestDryRun:

    def setup_method(self):
        self.simulator = TransactionSimulator()

    def test_high_risk_recommendation(self, token_document):
        burn = token_document.get_handler("Burn")

        report = self.simulator.dry_run(request("Burn", {"Quantity": "50"}), burn)

        assert report.can_proceed is True
        assert report.estimated_cost == 310
        assert "Consider using simulation mode first to validate the transaction" in report.recommendations
        assert "Burn cannot be undone" in report.warnings

    def test_errors_become_recommendations(self, token_document):
        transfer = token_document.get_handler("Transfer")

        report = self.simulator.dry_run(request("Transfer", {"Quantity": "5"}), transfer)

        assert report.can_proceed is False
        assert any("Target" in line for line in report.recommendations)

    def test_large_batch_recommendation(self, token_document):
        balance = token_document.get_handler("Balance")
        batch = BatchContext(batch_id="b-1", total_operations=8)

        report = self.simulator.dry_run(request("Balance", {}, batch_context=batch), balance)

        assert "Large batch operations may benefit from chunking into smaller batches" in report.recommendations
