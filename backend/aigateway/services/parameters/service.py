"""
Parameter service.

Facade over definitions, basic validation, advanced rules and presets,
keyed by schema id ("<provider>:<capability>") so chat and image
definitions of the same vendor never collide.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from aigateway.core.logging import get_logger
from aigateway.services.gateway.types import ParameterDefinition
from aigateway.services.parameters.presets import ParameterPreset, ParameterPresetsManager
from aigateway.services.parameters.rules import AdvancedParameterValidator, load_builtin_rules
from aigateway.services.parameters.validator import (
    CompleteValidationResult,
    ParameterValidator,
    ValidationIssue,
)

logger = get_logger(__name__)


@dataclass
class ValidationOptions:
    strict: bool = False  # unknown keys become errors
    include_warnings: bool = True  # also produce advisory suggestions
    validate_dependencies: bool = True  # dependency and mutual exclusion rules
    validate_custom_rules: bool = True


@dataclass
class ProcessedParameters:
    parameters: Dict[str, Any]
    validation: CompleteValidationResult

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


def schema_id(provider: str, capability: str) -> str:
    capability = getattr(capability, "value", capability)
    return f"{provider.lower()}:{capability}"


def generate_parameter_suggestions(values: Dict[str, Any], definitions: List[ParameterDefinition]) -> List[str]:
    """Advisory hints; never affect validity."""
    suggestions = []

    temperature = values.get("temperature")
    if isinstance(temperature, (int, float)) and not isinstance(temperature, bool):
        if temperature < 0.3:
            suggestions.append("Low temperature may produce repetitive output")
        elif temperature > 1.2:
            suggestions.append("High temperature may produce less coherent output")

    for key in ("maxTokens", "maxOutputTokens"):
        limit = values.get(key)
        if isinstance(limit, (int, float)) and not isinstance(limit, bool) and limit > 2000:
            suggestions.append(f"{key} above 2000 increases cost and latency")

    for definition in definitions:
        if values.get(definition.key) is None and definition.default_value is not None:
            suggestions.append(f"Consider setting {definition.key} to its default ({definition.default_value})")

    return suggestions


def compare_parameters(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "added": sorted(k for k in after if k not in before),
        "removed": sorted(k for k in before if k not in after),
        "changed": {
            k: {"from": before[k], "to": after[k]}
            for k in before
            if k in after and before[k] != after[k]
        },
        "unchanged": sorted(k for k in before if k in after and before[k] == after[k]),
    }


class ParameterService:
    """Registered definitions and the convert, clean, merge and validate pipeline."""

    def __init__(
        self,
        advanced: Optional[AdvancedParameterValidator] = None,
        presets: Optional[ParameterPresetsManager] = None,
    ):
        if advanced is None:
            advanced = AdvancedParameterValidator()
            load_builtin_rules(advanced)
        self.advanced = advanced
        self.presets = presets or ParameterPresetsManager()
        self._definitions: Dict[str, List[ParameterDefinition]] = {}
        self._provider_defaults: Dict[str, Dict[str, Any]] = {}

    # ---- definitions ----

    def register_provider(self, schema: str, definitions: List[ParameterDefinition]) -> None:
        self._definitions[schema] = list(definitions)
        logger.debug("Parameter definitions registered", schema=schema, count=len(definitions))

    def get_provider_definitions(self, schema: str) -> List[ParameterDefinition]:
        return list(self._definitions.get(schema, []))

    def get_all_providers(self) -> List[str]:
        return list(self._definitions)

    def has_schema(self, schema: str) -> bool:
        return schema in self._definitions

    def set_provider_defaults(self, schema: str, defaults: Dict[str, Any]) -> None:
        self._provider_defaults[schema] = dict(defaults)

    def get_provider_defaults(self, schema: str) -> Dict[str, Any]:
        return dict(self._provider_defaults.get(schema, {}))

    def get_parameter_details(self, schema: str, key: str) -> Optional[ParameterDefinition]:
        return next((d for d in self._definitions.get(schema, []) if d.key == key), None)

    def supports_parameter(self, schema: str, key: str) -> bool:
        return self.get_parameter_details(schema, key) is not None

    def get_parameter_suggestions(self, schema: str, key: str) -> List[Any]:
        """Candidate values for one parameter."""
        definition = self.get_parameter_details(schema, key)
        if definition is None:
            return []
        if definition.type == "select":
            return list(definition.options or [])
        if definition.type == "boolean":
            return [True, False]
        if definition.type == "number":
            candidates = [definition.default_value, definition.min, definition.max]
            return [c for c in dict.fromkeys(candidates) if c is not None]
        return [definition.default_value] if definition.default_value is not None else []

    # ---- pipeline steps ----

    def convert_parameters(self, schema: str, values: Dict[str, Any]) -> Dict[str, Any]:
        return ParameterValidator.convert_parameters(values, self.get_provider_definitions(schema))

    def clean_parameters(self, schema: str, values: Dict[str, Any]) -> Dict[str, Any]:
        return ParameterValidator.clean_parameters(values, self.get_provider_definitions(schema))

    def merge_with_defaults(self, schema: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Caller values over provider defaults over definition defaults."""
        definitions = self.get_provider_definitions(schema)
        merged = ParameterValidator.merge_with_defaults(self._provider_defaults.get(schema, {}), definitions)
        merged.update(ParameterValidator.clean_parameters(
            {k: v for k, v in values.items() if v is not None}, definitions,
        ))
        return merged

    def validate_parameters(
        self,
        schema: str,
        values: Dict[str, Any],
        options: Optional[ValidationOptions] = None,
        only: Optional[Set[str]] = None,
    ) -> CompleteValidationResult:
        options = options or ValidationOptions()
        definitions = self.get_provider_definitions(schema)

        basic = ParameterValidator.validate_parameters(values, definitions, strict=options.strict)
        errors = list(basic.errors)
        result = CompleteValidationResult(is_valid=True, warnings=basic.warnings)

        if options.validate_dependencies or options.validate_custom_rules:
            # keys that already failed the basic pass are not fed to the rules
            failed = {issue.field for issue in basic.errors}
            checked = set(values) if only is None else set(only)
            advanced = self.advanced.validate_advanced(
                schema,
                {k: v for k, v in values.items() if k not in failed},
                definitions,
                dependencies=options.validate_dependencies,
                custom_rules=options.validate_custom_rules,
                only=checked - failed,
            )
            if options.validate_dependencies:
                result.dependency_errors = advanced.dependency_errors
                result.exclusion_errors = advanced.exclusion_errors
            if options.validate_custom_rules:
                result.custom_rule_errors = advanced.custom_rule_errors
            for message in advanced.dependency_errors + advanced.exclusion_errors + advanced.custom_rule_errors:
                errors.append(ValidationIssue(field="advanced", code="ADVANCED_VALIDATION", message=message))

        if options.include_warnings:
            result.suggestions = generate_parameter_suggestions(values, definitions)

        result.errors = errors
        result.is_valid = not errors
        return result

    def process_parameters(
        self,
        schema: str,
        values: Dict[str, Any],
        options: Optional[ValidationOptions] = None,
    ) -> ProcessedParameters:
        """
        Convert, clean, merge defaults, then validate.

        Unknown keys are removed before merging but still reported. Advanced
        rules are only evaluated for keys the caller supplied; defaults serve
        as their context.
        """
        converted = self.convert_parameters(schema, values or {})
        cleaned = self.clean_parameters(schema, converted)
        merged = self.merge_with_defaults(schema, cleaned)
        dropped = {k: v for k, v in converted.items() if k not in cleaned}

        validation = self.validate_parameters(schema, {**merged, **dropped}, options, only=set(cleaned))
        if not validation.is_valid:
            logger.info(
                "Parameter validation failed",
                schema=schema,
                errors=[e.message for e in validation.errors],
            )
        return ProcessedParameters(parameters=merged, validation=validation)

    # ---- presets ----

    def apply_preset(
        self,
        schema: str,
        preset_id: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Optional[ProcessedParameters]:
        preset = self.presets.get_preset_by_id(schema, preset_id)
        if preset is None:
            return None
        return self.process_parameters(schema, {**preset.parameters, **(overrides or {})})

    def get_presets(self, schema: str) -> List[ParameterPreset]:
        return self.presets.get_provider_presets(schema)

    # ---- reporting ----

    def get_parameter_summary(self, schema: str) -> Dict[str, Any]:
        return ParameterValidator.get_parameter_summary(self.get_provider_definitions(schema))

    def get_parameter_stats(self) -> Dict[str, Any]:
        by_schema = {schema: self.get_parameter_summary(schema) for schema in self._definitions}
        return {
            "schemas": len(by_schema),
            "totalParameters": sum(s["total"] for s in by_schema.values()),
            "bySchema": by_schema,
            "presets": self.presets.get_presets_stats(),
        }
