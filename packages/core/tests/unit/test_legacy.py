from nl2msg.pipeline.legacy import LegacyCompiler, legacy_score
from nl2msg.protocol.templates import TOKEN_TEMPLATE

GREETER_MARKDOWN = """
# Greeter

## Greet
Say hello
- Name: who to greet
"""


def template_handler(action):
    return next(h for h in TOKEN_TEMPLATE.handlers if h.action == action)


class TestLegacyScore:

    def test_action_and_synonym(self):
        """The action name and one of its synonyms both count."""
        assert legacy_score("check my balance", template_handler("Balance")) == 1.0

    def test_description_words(self):
        score = legacy_score("transfer 100 tokens to alice-456", template_handler("Transfer"))
        assert round(score, 2) == 0.7

    def test_unrelated_request(self):
        assert legacy_score("do something weird", template_handler("Transfer")) == 0.0


class TestLegacyCompiler:

    def setup_method(self):
        self.legacy = LegacyCompiler()

    def test_resolves_from_template(self):
        resolution = self.legacy.resolve("check my balance")

        assert resolution.resolved is True
        assert resolution.source == "template"
        assert resolution.process_type == "token"
        assert resolution.handler.action == "Balance"

    def test_unresolved_request_keeps_suggestions(self):
        """Below the threshold no handler is picked, but the operations are listed."""
        resolution = self.legacy.resolve("do something weird")

        assert resolution.resolved is False
        assert resolution.suggested_operations == TOKEN_TEMPLATE.suggested_operations

    def test_score_below_threshold_is_unresolved(self):
        legacy = LegacyCompiler(min_confidence=0.75)

        resolution = legacy.resolve("transfer 100 tokens to alice-456")

        assert resolution.resolved is False

    def test_markdown_takes_precedence(self):
        resolution = self.legacy.resolve("greet Name=bob", process_markdown=GREETER_MARKDOWN)

        assert resolution.source == "markdown"
        assert resolution.process_name == "Greeter"
        assert resolution.handler.action == "Greet"
        assert resolution.suggested_operations == ["Greet: Say hello"]

    def test_explicit_handler(self):
        resolution = self.legacy.resolve("anything", handler_name="info")

        assert resolution.handler.action == "Info"
        assert resolution.confidence == 1.0
