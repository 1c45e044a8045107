"""Tests for administrative definition validation."""

import pytest

from slashwire.commands import CommandRegistry, ensure_valid, validate_definition
from slashwire.config import Config
from slashwire.exceptions import DefinitionValidationError
from slashwire.models import CommandDefinition


def _draft(**overrides):
    draft = {
        "trigger": "deploy",
        "name": "Deploy",
        "description": "Deploy the current branch",
        "action_type": "message",
        "action": {"type": "message", "message": "Deploying {{branch}}"},
        "arguments": [
            {"name": "branch", "description": "Branch to deploy", "position": 0, "required": True},
        ],
    }
    draft.update(overrides)
    return draft


def _arg(name="value", **fields):
    fields.setdefault("description", "An argument")
    return {"name": name, **fields}


def test_valid_draft():
    report = validate_definition(_draft())
    assert report.is_valid
    assert report.errors == []
    assert report.warnings == []


def test_missing_trigger_stops_validation():
    report = validate_definition(_draft(trigger=""))
    assert report.error_codes == ["TRIGGER_REQUIRED"]


def test_schema_errors_reported():
    report = validate_definition(_draft(action_type="teleport"))
    assert "SCHEMA_INVALID" in report.error_codes


class TestIdentity:

    @pytest.mark.parametrize("trigger", ["Deploy", "1deploy", "de ploy", "de.ploy"])
    def test_trigger_format(self, trigger):
        assert "INVALID_TRIGGER_FORMAT" in validate_definition(_draft(trigger=trigger)).error_codes

    @pytest.mark.parametrize("trigger", ["d", "d" * 33])
    def test_trigger_length(self, trigger):
        assert "INVALID_TRIGGER_LENGTH" in validate_definition(_draft(trigger=trigger)).error_codes

    @pytest.mark.parametrize("trigger", ["help", "commands", "admin", "debug", "system"])
    def test_reserved_triggers(self, trigger):
        assert "RESERVED_TRIGGER" in validate_definition(_draft(trigger=trigger)).error_codes

    def test_reserved_list_comes_from_config(self, tmp_path):
        config = Config(config_dir=tmp_path, settings={"reserved_triggers": ["deploy"]})
        assert "RESERVED_TRIGGER" in validate_definition(_draft(), config=config).error_codes
        assert validate_definition(_draft(trigger="help"), config=config).is_valid

    def test_builtins_may_use_reserved_triggers(self):
        assert validate_definition(_draft(trigger="help", is_built_in=True)).is_valid

    def test_alias_rules(self):
        report = validate_definition(_draft(aliases=["Bad Alias", "deploy"]))
        assert "INVALID_ALIAS_FORMAT" in report.error_codes
        assert "ALIAS_SAME_AS_TRIGGER" in report.warning_codes

    def test_name_and_description_lengths(self):
        report = validate_definition(_draft(name="D", description="short"))
        assert "INVALID_NAME_LENGTH" in report.error_codes
        assert "INVALID_DESCRIPTION_LENGTH" in report.error_codes


class TestRegistryConflicts:

    def test_builtin_trigger_warns(self, registry):
        report = validate_definition(_draft(trigger="mute"), registry=registry)
        assert report.is_valid
        assert report.warning_codes == ["TRIGGER_OVERRIDES_BUILTIN"]

    def test_builtin_alias_warns(self, registry):
        report = validate_definition(_draft(aliases=["afk"]), registry=registry)
        assert "ALIAS_OVERRIDES_BUILTIN" in report.warning_codes

    def test_custom_conflicts_error(self, registry):
        registry.register(CommandDefinition.model_validate(_draft(aliases=["ship"])))
        report = validate_definition(_draft(id="other"), registry=registry)
        assert "TRIGGER_CONFLICT" in report.error_codes
        report = validate_definition(
            _draft(id="other", trigger="release", aliases=["ship"]), registry=registry
        )
        assert report.error_codes == ["ALIAS_CONFLICT"]

    def test_editing_own_definition_is_not_a_conflict(self):
        registry = CommandRegistry()
        registry.register(CommandDefinition.model_validate(_draft()))
        assert validate_definition(_draft(), registry=registry).is_valid


class TestArguments:

    def _codes(self, *arguments, errors=True):
        report = validate_definition(_draft(arguments=list(arguments)))
        return report.error_codes if errors else report.warning_codes

    def test_name_and_description(self):
        codes = self._codes(_arg("bad-name", position=0, description="x"))
        assert "INVALID_ARGUMENT_NAME" in codes
        assert "ARGUMENT_DESCRIPTION_TOO_SHORT" in codes

    def test_choices(self):
        assert "MISSING_CHOICES" in self._codes(_arg(type="choice", position=0))
        many = [{"value": f"c{i}"} for i in range(26)]
        assert "TOO_MANY_CHOICES" in self._codes(_arg(type="choice", position=0, choices=many))

    def test_ranges_and_pattern(self):
        codes = self._codes(
            _arg("a", type="number", position=0, validation={"min": 5, "max": 1}),
            _arg("b", position=1, validation={"min_length": 5, "max_length": 1}),
            _arg("c", position=2, validation={"pattern": "(unclosed"}),
        )
        assert "INVALID_RANGE" in codes
        assert "INVALID_LENGTH_RANGE" in codes
        assert "INVALID_PATTERN" in codes

    def test_invalid_default(self):
        codes = self._codes(_arg("d", type="duration", position=0, default_value="someday"))
        assert codes == ["INVALID_DEFAULT_VALUE"]

    def test_valid_sentinel_default(self):
        assert self._codes(_arg("d", type="duration", position=0, default_value="forever")) == []

    def test_duplicates(self):
        codes = self._codes(
            _arg("a", position=0),
            _arg("a", position=0),
            _arg("f", flag="from", short_flag="f"),
            _arg("g", flag="from", short_flag="f"),
        )
        assert "DUPLICATE_ARGUMENT_NAME" in codes
        assert "DUPLICATE_POSITION" in codes
        assert "DUPLICATE_FLAG" in codes
        assert "DUPLICATE_SHORT_FLAG" in codes

    def test_binding(self):
        assert "MISSING_BINDING" in self._codes(_arg("a"))
        assert "AMBIGUOUS_BINDING" in self._codes(_arg("a", position=0, flag="a"))

    def test_flag_formats(self):
        codes = self._codes(_arg("a", flag="-bad", short_flag="ab"))
        assert "INVALID_FLAG_NAME" in codes
        assert "INVALID_SHORT_FLAG" in codes

    def test_negative_position(self):
        assert "INVALID_POSITION" in self._codes(_arg("a", position=-1))

    def test_position_gap_warns(self):
        codes = self._codes(_arg("a", position=0), _arg("b", position=2), errors=False)
        assert "POSITION_GAP" in codes

    def test_rest_rules(self):
        assert "MULTIPLE_REST" in self._codes(
            _arg("a", type="rest", position=0), _arg("b", type="rest", position=1)
        )
        assert "REST_NOT_POSITIONAL" in self._codes(_arg("a", type="rest", flag="all"))
        assert "REST_NOT_LAST" in self._codes(
            _arg("a", type="rest", position=0), _arg("b", position=1)
        )

    def test_required_after_optional_warns(self):
        codes = self._codes(
            _arg("a", position=0), _arg("b", position=1, required=True), errors=False
        )
        assert codes == ["REQUIRED_AFTER_OPTIONAL"]


class TestActions:

    def _codes(self, action_type, action=None, errors=True, **overrides):
        report = validate_definition(
            _draft(action_type=action_type, action=action, **overrides)
        )
        return report.error_codes if errors else report.warning_codes

    def test_type_mismatch(self):
        assert self._codes("navigate", {"type": "message", "message": "x"}) == ["ACTION_TYPE_MISMATCH"]

    def test_message_template_from_response_config(self):
        assert self._codes("message", None, response_config={"template": "hi"}) == []
        assert self._codes("message", None) == ["MISSING_MESSAGE_TEMPLATE"]

    @pytest.mark.parametrize("action_type,code", [
        ("status", "MISSING_STATUS_CONFIG"),
        ("navigate", "MISSING_NAVIGATE_URL"),
        ("modal", "MISSING_MODAL_COMPONENT"),
        ("api", "MISSING_API_ENDPOINT"),
        ("webhook", "MISSING_WEBHOOK_CONFIG"),
        ("workflow", "MISSING_WORKFLOW_CONFIG"),
    ])
    def test_required_payload(self, action_type, code):
        assert self._codes(action_type, None) == [code]

    def test_api_method(self):
        action = {"type": "api", "endpoint": "/x", "method": "FETCH"}
        assert self._codes("api", action) == ["INVALID_HTTP_METHOD"]

    def test_webhook_checks(self):
        bad = {"type": "webhook", "url": "ftp://x", "timeout_ms": 50, "retry_count": 9}
        codes = self._codes("webhook", bad)
        assert "INVALID_WEBHOOK_URL" in codes
        assert "INVALID_WEBHOOK_TIMEOUT" in codes
        assert "INVALID_WEBHOOK_RETRY" in codes

    def test_http_webhook_warns(self):
        action = {"type": "webhook", "url": "http://hooks.example.com/x"}
        assert self._codes("webhook", action) == []
        assert self._codes("webhook", action, errors=False) == ["INSECURE_WEBHOOK_URL"]

    def test_custom_action_always_warns(self):
        assert self._codes("custom", {"type": "custom", "script": "x"}, errors=False) == [
            "CUSTOM_ACTION_UNSAFE"
        ]


def test_ensure_valid_returns_definition():
    definition = ensure_valid(_draft())
    assert isinstance(definition, CommandDefinition)
    assert definition.trigger == "deploy"


def test_ensure_valid_raises_with_report():
    with pytest.raises(DefinitionValidationError) as exc_info:
        ensure_valid(_draft(trigger="help"))
    assert exc_info.value.report.error_codes == ["RESERVED_TRIGGER"]
