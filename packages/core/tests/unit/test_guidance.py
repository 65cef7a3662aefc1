import json

from nl2msg.pipeline.nodes.extraction.guidance import (
    direct_example,
    generate_guidance,
    json_example,
    natural_phrasings,
)
from nl2msg.pipeline.nodes.extraction.node import ParameterExtractionEngine


class TestGuidance:

    def setup_method(self):
        self.engine = ParameterExtractionEngine()

    def test_names_missing_parameters(self, token_document):
        """The primary suggestion lists what is missing and a working rephrasing."""
        transfer = token_document.get_handler("Transfer")
        extraction = self.engine.extract_with_retry("transfer some tokens", transfer)

        guidance = generate_guidance("transfer some tokens", transfer, extraction)

        assert guidance.primary_suggestion == (
            "Transfer needs Target, Quantity. Try: Transfer Target=alice-456 Quantity=100"
        )
        assert "transfer 100 tokens to alice-456" in guidance.alternatives
        assert guidance.examples == ["transfer 100 tokens to alice-456"]

    def test_troubleshooting_follows_attempt_trail(self, token_document):
        transfer = token_document.get_handler("Transfer")
        extraction = self.engine.extract_with_retry("transfer some tokens", transfer)

        guidance = generate_guidance("transfer some tokens", transfer, extraction)

        strategies = [line.split(":")[0] for line in guidance.troubleshooting[:5]]
        assert strategies == ["direct", "json", "domain", "contextual", "single"]
        assert "Target (address): Recipient account" in guidance.troubleshooting

    def test_ambiguous_phrasing_is_explained(self, calculator_document):
        subtract = calculator_document.get_handler("Subtract")
        extraction = self.engine.extract_with_retry("difference between 10 and 4", subtract)

        guidance = generate_guidance("difference between 10 and 4", subtract, extraction)

        assert any("operand order that is not fixed" in line for line in guidance.troubleshooting)
        assert "subtract 10 from 10" in guidance.alternatives

    def test_without_extraction_trail(self, calculator_document):
        add = calculator_document.get_handler("Add")

        guidance = generate_guidance("add things", add)

        assert guidance.primary_suggestion.startswith("Add needs A, B.")
        assert guidance.examples == ["Add A=10 B=10"]

    def test_examples(self, token_document):
        transfer = token_document.get_handler("Transfer")

        assert direct_example(transfer) == "Target=alice-456 Quantity=100"
        assert json.loads(json_example(transfer)) == {"Target": "alice-456", "Quantity": "100"}
        assert natural_phrasings(transfer) == ["transfer 100 tokens to alice-456", "send 100 to alice-456"]
        assert natural_phrasings(token_document.get_handler("Info")) == []
