"""
Basic parameter validation against per-provider definitions.

Checks types, numeric ranges, string lengths and select options, and
provides the convert / clean / merge helpers used by the parameter pipeline.
"""
import math
from typing import Any, Iterable, List, Optional

from pydantic import Field

from aigateway.services.gateway.types import GatewayModel, ParameterDefinition


class ValidationIssue(GatewayModel):
    """One field-level problem found during validation."""

    field: str
    code: str
    message: str
    value: Any = None


class ValidationResult(GatewayModel):
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)


class CompleteValidationResult(ValidationResult):
    """Basic validation result extended with the advanced-rule pass."""

    dependency_errors: Optional[List[str]] = None
    exclusion_errors: Optional[List[str]] = None
    custom_rule_errors: Optional[List[str]] = None
    suggestions: List[str] = Field(default_factory=list)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _find(definitions: Iterable[ParameterDefinition], key: str) -> Optional[ParameterDefinition]:
    return next((d for d in definitions if d.key == key), None)


class ParameterValidator:
    """Stateless validation helpers over a list of definitions."""

    @staticmethod
    def validate_parameter(key: str, value: Any, definition: ParameterDefinition) -> List[ValidationIssue]:
        errors: List[ValidationIssue] = []

        if value is None:
            if definition.required:
                errors.append(ValidationIssue(
                    field=key, code="REQUIRED", message=f"Parameter {key} is required",
                ))
            return errors

        if definition.type == "number":
            if not _is_number(value):
                errors.append(ValidationIssue(
                    field=key, code="INVALID_TYPE", message=f"Parameter {key} must be a number", value=value,
                ))
                return errors
            if definition.min is not None and value < definition.min:
                errors.append(ValidationIssue(
                    field=key, code="OUT_OF_RANGE",
                    message=f"Parameter {key} must be >= {definition.min:g}", value=value,
                ))
            if definition.max is not None and value > definition.max:
                errors.append(ValidationIssue(
                    field=key, code="OUT_OF_RANGE",
                    message=f"Parameter {key} must be <= {definition.max:g}", value=value,
                ))

        elif definition.type == "string":
            if not isinstance(value, str):
                errors.append(ValidationIssue(
                    field=key, code="INVALID_TYPE", message=f"Parameter {key} must be a string", value=value,
                ))
                return errors
            if definition.min is not None and len(value) < definition.min:
                errors.append(ValidationIssue(
                    field=key, code="TOO_SHORT",
                    message=f"Parameter {key} must be at least {definition.min:g} characters", value=value,
                ))
            if definition.max is not None and len(value) > definition.max:
                errors.append(ValidationIssue(
                    field=key, code="TOO_LONG",
                    message=f"Parameter {key} must be at most {definition.max:g} characters", value=value,
                ))

        elif definition.type == "boolean":
            if not isinstance(value, bool):
                errors.append(ValidationIssue(
                    field=key, code="INVALID_TYPE", message=f"Parameter {key} must be a boolean", value=value,
                ))

        elif definition.type == "select":
            if definition.options is not None and value not in definition.options:
                options = ", ".join(str(o) for o in definition.options)
                errors.append(ValidationIssue(
                    field=key, code="INVALID_OPTION",
                    message=f"Parameter {key} must be one of: {options}", value=value,
                ))

        return errors

    @classmethod
    def validate_parameters(
        cls,
        parameters: dict[str, Any],
        definitions: List[ParameterDefinition],
        strict: bool = False,
    ) -> ValidationResult:
        """
        Validate a set of values.

        Unknown keys are reported as warnings (errors in strict mode);
        warnings never affect is_valid.
        """
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        for definition in definitions:
            errors.extend(cls.validate_parameter(definition.key, parameters.get(definition.key), definition))

        for key, value in parameters.items():
            if _find(definitions, key) is None:
                issue = ValidationIssue(
                    field=key, code="UNKNOWN_PARAMETER", message=f"Unknown parameter: {key}", value=value,
                )
                (errors if strict else warnings).append(issue)

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    @staticmethod
    def merge_with_defaults(parameters: dict[str, Any], definitions: List[ParameterDefinition]) -> dict[str, Any]:
        """Definition defaults overlaid with caller values for known keys."""
        merged = {d.key: d.default_value for d in definitions if d.default_value is not None}
        for key, value in parameters.items():
            if value is not None and _find(definitions, key) is not None:
                merged[key] = value
        return merged

    @staticmethod
    def clean_parameters(parameters: dict[str, Any], definitions: List[ParameterDefinition]) -> dict[str, Any]:
        """Drop keys that have no definition."""
        known = {d.key for d in definitions}
        return {k: v for k, v in parameters.items() if k in known}

    @staticmethod
    def convert_from_string(value: str, definition: ParameterDefinition) -> Any:
        if definition.type == "number":
            for cast in (int, float):
                try:
                    return cast(value)
                except ValueError:
                    continue
            return value
        if definition.type == "boolean":
            lowered = value.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        return value

    @classmethod
    def convert_parameters(cls, parameters: dict[str, Any], definitions: List[ParameterDefinition]) -> dict[str, Any]:
        """Coerce string-typed values into their declared types where possible."""
        converted = {}
        for key, value in parameters.items():
            definition = _find(definitions, key)
            if definition is not None and isinstance(value, str):
                converted[key] = cls.convert_from_string(value, definition)
            else:
                converted[key] = value
        return converted

    @staticmethod
    def get_parameter_summary(definitions: List[ParameterDefinition]) -> dict[str, Any]:
        by_type: dict[str, int] = {}
        for definition in definitions:
            by_type[definition.type] = by_type.get(definition.type, 0) + 1
        required = sum(1 for d in definitions if d.required)
        return {
            "total": len(definitions),
            "byType": by_type,
            "required": required,
            "optional": len(definitions) - required,
        }
