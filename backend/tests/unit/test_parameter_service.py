"""
Unit tests for ParameterService

Tests the convert -> clean -> merge -> validate pipeline, advanced
rules, suggestions, presets and reporting helpers
"""
import pytest

from aigateway.services.parameters.presets import ParameterPresetsManager
from aigateway.services.parameters.rules import (
    AdvancedParameterValidator,
    CustomValidationRule,
    ParameterDependency,
    ParameterMutualExclusion,
    RuleOutcome,
)
from aigateway.services.parameters.service import (
    ParameterService,
    ValidationOptions,
    compare_parameters,
    schema_id,
)
from aigateway.services.gateway.types import ParameterDefinition


# ============================================================
# Pipeline
# ============================================================

@pytest.mark.unit
def test_process_converts_before_validating(parameter_service):
    """Test a numeric string is converted and then accepted"""
    processed = parameter_service.process_parameters("openai:chat", {"temperature": "0.5"})

    assert processed.is_valid is True
    assert processed.parameters["temperature"] == 0.5


@pytest.mark.unit
def test_process_drops_unknown_keys_but_reports_them(parameter_service):
    """Test junk keys are removed from the output and surfaced as warnings"""
    processed = parameter_service.process_parameters("openai:chat", {"temperature": 0.5, "junk": 1})

    assert "junk" not in processed.parameters
    assert [w.field for w in processed.validation.warnings] == ["junk"]
    assert processed.is_valid is True


@pytest.mark.unit
def test_process_strict_mode_rejects_unknown_keys(parameter_service):
    processed = parameter_service.process_parameters(
        "openai:chat", {"junk": 1}, ValidationOptions(strict=True)
    )

    assert processed.is_valid is False
    assert processed.validation.errors[0].code == "UNKNOWN_PARAMETER"


@pytest.mark.unit
def test_process_rejects_out_of_range_temperature(parameter_service):
    """Test temperature 3 against max 2 fails with OUT_OF_RANGE"""
    processed = parameter_service.process_parameters("openai:chat", {"temperature": 3})

    assert processed.is_valid is False
    assert ("temperature", "OUT_OF_RANGE") in [(e.field, e.code) for e in processed.validation.errors]


@pytest.mark.unit
def test_process_fills_all_defaults(parameter_service):
    processed = parameter_service.process_parameters("gemini:chat", {})

    assert processed.parameters == {
        "model": "gemini-pro",
        "temperature": 0.9,
        "maxOutputTokens": 2048,
        "topP": 1,
        "topK": 1,
    }
    assert processed.is_valid is True


@pytest.mark.unit
def test_provider_defaults_sit_between_definitions_and_caller(parameter_service):
    """Test caller values beat provider defaults, which beat definition defaults"""
    parameter_service.set_provider_defaults("openai:chat", {"temperature": 0.3, "maxTokens": 500})

    merged = parameter_service.merge_with_defaults("openai:chat", {"maxTokens": 200})

    assert merged["temperature"] == 0.3
    assert merged["maxTokens"] == 200
    assert merged["model"] == "gpt-3.5-turbo"


# ============================================================
# Advanced Rules
# ============================================================

@pytest.mark.unit
def test_builtin_rule_flags_extreme_openai_temperature(parameter_service):
    """Test the temperature sanity rule runs on caller-supplied values"""
    processed = parameter_service.process_parameters("openai:chat", {"temperature": 1.8})

    assert processed.is_valid is False
    assert processed.validation.custom_rule_errors
    assert any(e.code == "ADVANCED_VALIDATION" for e in processed.validation.errors)


@pytest.mark.unit
def test_builtin_rules_ignore_defaults_caller_did_not_set(parameter_service):
    """Test choosing dall-e-2 alone does not trip rules on defaulted style"""
    processed = parameter_service.process_parameters("openai:image", {"model": "dall-e-2"})

    assert processed.is_valid is True


@pytest.mark.unit
def test_dalle_dependency_reads_merged_model(parameter_service):
    """Test hd quality passes because the default model is dall-e-3"""
    processed = parameter_service.process_parameters("openai:image", {"quality": "hd"})

    assert processed.is_valid is True


@pytest.mark.unit
def test_dalle_dependency_rejects_hd_with_dalle2(parameter_service):
    processed = parameter_service.process_parameters("openai:image", {"model": "dall-e-2", "quality": "hd"})

    assert processed.is_valid is False
    assert processed.validation.dependency_errors == ["HD quality is only supported by dall-e-3"]


@pytest.mark.unit
def test_custom_rule_reports_failure():
    """Test a custom rule reports on a registered schema"""
    advanced = AdvancedParameterValidator()
    advanced.add_custom_rules("x:chat", [
        CustomValidationRule(
            "no_legacy",
            "Rejects legacy",
            lambda value, definition, params: RuleOutcome(value != "legacy", "legacy is deprecated"),
        ),
    ])
    definitions = [ParameterDefinition(key="model", type="string", default_value="new")]

    errors = advanced.validate_custom_rules("x:chat", {"model": "legacy"}, definitions)

    assert errors == ["legacy is deprecated"]


@pytest.mark.unit
def test_dependency_only_checked_when_parameter_set():
    advanced = AdvancedParameterValidator()
    advanced.add_dependencies("x:chat", [
        ParameterDependency("b", "a", lambda b, a: a is not None, "b requires a"),
    ])

    assert advanced.validate_dependencies("x:chat", {}) == []
    assert advanced.validate_dependencies("x:chat", {"b": 1}) == ["b requires a"]
    assert advanced.validate_dependencies("x:chat", {"a": 1, "b": 1}) == []


@pytest.mark.unit
def test_mutual_exclusion():
    advanced = AdvancedParameterValidator()
    advanced.add_mutual_exclusions("x:chat", [ParameterMutualExclusion(["a", "b"], "a and b conflict")])

    assert advanced.validate_mutual_exclusions("x:chat", {"a": 1}) == []
    assert advanced.validate_mutual_exclusions("x:chat", {"a": 1, "b": 2}) == ["a and b conflict"]


@pytest.mark.unit
@pytest.mark.parametrize("schema, values, field", [
    ("openai:chat", {"temperature": "hot"}, "temperature"),
    ("openai:chat", {"maxTokens": "lots"}, "maxTokens"),
    ("gemini:chat", {"topK": "x"}, "topK"),
    ("gemini:chat", {"topK": 30, "topP": "low"}, "topP"),
    ("gemini:chat", {"temperature": "warm"}, "temperature"),
])
def test_mistyped_numbers_fail_type_check_only(parameter_service, schema, values, field):
    """Test string values on number fields fail as INVALID_TYPE and skip the custom rules"""
    processed = parameter_service.process_parameters(schema, values)

    assert processed.is_valid is False
    assert [(e.field, e.code) for e in processed.validation.errors] == [(field, "INVALID_TYPE")]
    assert processed.validation.custom_rule_errors == []


@pytest.mark.unit
def test_mistyped_value_without_pipeline(parameter_service):
    result = parameter_service.validate_parameters("openai:chat", {"temperature": "hot", "maxTokens": 9000})

    assert result.is_valid is False
    assert ("temperature", "INVALID_TYPE") in [(e.field, e.code) for e in result.errors]


@pytest.mark.unit
def test_advanced_rules_can_be_disabled(parameter_service):
    options = ValidationOptions(validate_dependencies=False, validate_custom_rules=False)

    result = parameter_service.validate_parameters("openai:chat", {"temperature": 1.8}, options)

    assert result.is_valid is True
    assert result.dependency_errors is None
    assert result.custom_rule_errors is None


# ============================================================
# Suggestions
# ============================================================

@pytest.mark.unit
def test_suggestions_are_advisory(parameter_service):
    """Test suggestions never flip validity"""
    result = parameter_service.validate_parameters(
        "openai:chat", {"temperature": 0.2, "maxTokens": 3000}
    )

    assert result.is_valid is True
    assert any("Low temperature" in s for s in result.suggestions)
    assert any("maxTokens above 2000" in s for s in result.suggestions)


@pytest.mark.unit
def test_suggestions_omitted_without_warnings(parameter_service):
    result = parameter_service.validate_parameters(
        "openai:chat", {"temperature": 0.2}, ValidationOptions(include_warnings=False)
    )

    assert result.suggestions == []


@pytest.mark.unit
def test_parameter_value_suggestions(parameter_service):
    assert parameter_service.get_parameter_suggestions("openai:image", "quality") == ["standard", "hd"]
    assert parameter_service.get_parameter_suggestions("openai:chat", "temperature") == [0.7, 0, 2]
    assert parameter_service.get_parameter_suggestions("openai:chat", "missing") == []


# ============================================================
# Presets
# ============================================================

@pytest.mark.unit
def test_apply_preset_merges_overrides(parameter_service):
    processed = parameter_service.apply_preset("openai:chat", "creative", {"maxTokens": 200})

    assert processed.is_valid is True
    assert processed.parameters["temperature"] == 1.2
    assert processed.parameters["maxTokens"] == 200


@pytest.mark.unit
def test_apply_unknown_preset_returns_none(parameter_service):
    assert parameter_service.apply_preset("openai:chat", "nope") is None


@pytest.mark.unit
def test_builtin_presets_are_valid(parameter_service):
    """Test every builtin preset passes its own schema"""
    for schema in ("openai:chat", "gemini:chat", "openai:image"):
        for preset in parameter_service.get_presets(schema):
            processed = parameter_service.apply_preset(schema, preset.id)
            assert processed.is_valid, (schema, preset.id, processed.validation.errors)


@pytest.mark.unit
def test_custom_preset_lifecycle():
    manager = ParameterPresetsManager(presets=[])

    preset = manager.create_custom_preset("openai:chat", "Mine", {"temperature": 0.4})
    updated = manager.update_preset("openai:chat", preset.id, name="Renamed")
    removed = manager.remove_preset("openai:chat", preset.id)

    assert preset.id.startswith("custom_")
    assert updated.name == "Renamed"
    assert preset.created_at.tzinfo is not None
    assert updated.updated_at.tzinfo is not None
    assert removed is True
    assert manager.get_provider_presets("openai:chat") == []


@pytest.mark.unit
def test_default_preset_and_tags():
    manager = ParameterPresetsManager()

    assert manager.get_default_preset("gemini:chat").id == "balanced"
    assert [p.id for p in manager.get_presets_by_tag("openai:image", "batch")] == ["multiple_v2"]


# ============================================================
# Reporting
# ============================================================

@pytest.mark.unit
def test_compare_parameters():
    diff = compare_parameters({"a": 1, "b": 2, "c": 3}, {"b": 2, "c": 4, "d": 5})

    assert diff == {
        "added": ["d"],
        "removed": ["a"],
        "changed": {"c": {"from": 3, "to": 4}},
        "unchanged": ["b"],
    }


@pytest.mark.unit
def test_schema_ids_separate_capabilities():
    assert schema_id("OpenAI", "chat") == "openai:chat"
    assert schema_id("openai", "image") != schema_id("openai", "chat")


@pytest.mark.unit
def test_parameter_stats(parameter_service):
    stats = parameter_service.get_parameter_stats()

    assert stats["schemas"] == 6
    assert stats["bySchema"]["openai:chat"]["total"] == 6
    assert stats["presets"]["total"] == 11


@pytest.mark.unit
def test_unregistered_schema_has_no_definitions():
    service = ParameterService()

    assert service.get_provider_definitions("nobody:chat") == []
    assert service.supports_parameter("nobody:chat", "temperature") is False
