import pytest

from nl2msg.pipeline.nodes.validator.coercion import CoercionError, coerce_value
from nl2msg.pipeline.nodes.validator.node import ParameterValidator, example_value
from nl2msg.protocol.models import ParameterSpec


class TestParameterValidator:

    def setup_method(self):
        self.validator = ParameterValidator()

    def test_missing_required_parameter(self, token_document):
        """Every missing required parameter is reported with a named suggestion."""
        transfer = token_document.get_handler("Transfer")

        result = self.validator.validate(transfer, {"Target": "alice-456"})

        assert result.valid is False
        assert result.errors[0].field == "Quantity"
        assert "Quantity" in result.errors[0].suggestion
        assert result.suggested_fixes == [result.errors[0].suggestion]

    def test_values_are_coerced(self, handler_factory):
        configure = handler_factory(
            "Configure",
            {"name": "Count", "type": "number", "required": True},
            {"name": "Enabled", "type": "boolean"},
            {"name": "Options", "type": "json"},
        )

        result = self.validator.validate(
            configure, {"count": "1,000", "Enabled": "yes", "Options": '{"a": [1]}'}
        )

        assert result.valid is True
        assert result.parameters == {"Count": 1000, "Enabled": True, "Options": {"a": [1]}}

    def test_uncoercible_value(self, handler_factory):
        add = handler_factory("Add", {"name": "A", "type": "number", "required": True})

        result = self.validator.validate(add, {"A": "abc"})

        assert result.valid is False
        assert result.errors[0].message.startswith("Cannot convert A to number")

    def test_division_by_zero(self, calculator_document):
        """Divide handlers reject a zero divisor and name it in the fix."""
        divide = calculator_document.get_handler("Divide")

        result = self.validator.validate(divide, {"A": 10, "B": "0"})

        assert result.valid is False
        assert result.errors[0].message == "Division by zero is not allowed"
        assert result.errors[0].suggestion == "Ensure the divisor (B parameter) is not zero"

    def test_address_length_boundary(self, handler_factory):
        lookup = handler_factory("Lookup", {"name": "Account", "type": "address", "required": True})

        assert self.validator.validate(lookup, {"Account": "a" * 43}).valid is True
        too_long = self.validator.validate(lookup, {"Account": "a" * 44})
        assert too_long.valid is False
        assert "got 44" in too_long.errors[0].message

    def test_address_charset(self, handler_factory):
        lookup = handler_factory("Lookup", {"name": "Account", "type": "address", "required": True})

        result = self.validator.validate(lookup, {"Account": "alice@example"})

        assert result.valid is False
        assert "not allowed" in result.errors[0].message

    def test_short_address_is_a_warning(self, token_document):
        transfer = token_document.get_handler("Transfer")

        result = self.validator.validate(transfer, {"Target": "bob", "Quantity": "5"})

        assert result.valid is True
        assert result.warnings[0].field == "Target"
        assert "unusually short" in result.warnings[0].message

    @pytest.mark.parametrize(
        "value, fragment",
        [(float("nan"), "finite"), (float("inf"), "finite"), (1e16, "safe magnitude")],
    )
    def test_unsafe_numbers_are_errors(self, handler_factory, value, fragment):
        square = handler_factory("Square", {"name": "N", "type": "number", "required": True})

        result = self.validator.validate(square, {"N": value})

        assert result.valid is False
        assert fragment in result.errors[0].message

    def test_large_number_is_only_a_warning(self, handler_factory):
        square = handler_factory("Square", {"name": "N", "type": "number", "required": True})

        result = self.validator.validate(square, {"N": 2e11})

        assert result.valid is True
        assert "precision" in result.warnings[0].message

    def test_declared_rules(self, handler_factory):
        vote = handler_factory(
            "Vote",
            {"name": "Choice", "type": "string", "required": True, "validation": {"enum": ["yes", "no"]}},
            {"name": "Weight", "type": "number", "validation": {"min": 1, "max": 10}},
            {"name": "Code", "type": "string", "validation": {"pattern": "^[A-Z]{3}$"}},
        )

        result = self.validator.validate(vote, {"Choice": "maybe", "Weight": 11, "Code": "abc"})

        messages = [e.message for e in result.errors]
        assert "Choice must be one of: yes, no" in messages
        assert "Weight must be at most 10" in messages
        assert any("does not match pattern" in m for m in messages)

    def test_unexpected_parameter_warns_and_passes_through(self, token_document):
        burn = token_document.get_handler("Burn")

        result = self.validator.validate(burn, {"Quantity": "5", "Memo": "x"})

        assert result.valid is True
        assert result.parameters["Memo"] == "x"
        assert result.warnings[0].field == "Memo"

    def test_never_raises(self):
        """A crash inside validation becomes a finding."""
        result = self.validator.validate(None, {})

        assert result.valid is False
        assert result.errors[0].field == "*"


class TestCoercion:

    @pytest.mark.parametrize(
        "value, param_type, expected",
        [
            ("42", "number", 42),
            ("4.5", "number", 4.5),
            ("off", "boolean", False),
            (3.0, "string", "3"),
            (True, "string", "true"),
            ("'alice'", "address", "alice"),
            ("[1, 2]", "json", [1, 2]),
        ],
    )
    def test_coerce_value(self, value, param_type, expected):
        assert coerce_value(value, param_type) == expected

    @pytest.mark.parametrize(
        "value, param_type",
        [(True, "number"), ("maybe", "boolean"), ("  ", "address"), ("{bad", "json")],
    )
    def test_coercion_errors(self, value, param_type):
        with pytest.raises(CoercionError):
            coerce_value(value, param_type)

    def test_example_values(self):
        assert example_value(ParameterSpec(name="N", type="number")) == "10"
        assert example_value(ParameterSpec(name="T", type="string", examples=["abc"])) == "abc"
