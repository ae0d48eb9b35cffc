"""
Parameter pipeline - per-provider definitions, validation, rules and presets.
"""
from aigateway.services.parameters.definitions import BUILTIN_DEFINITIONS
from aigateway.services.parameters.presets import ParameterPreset, ParameterPresetsManager
from aigateway.services.parameters.rules import (
    AdvancedParameterValidator,
    CustomValidationRule,
    ParameterDependency,
    ParameterMutualExclusion,
    RuleOutcome,
)
from aigateway.services.parameters.service import (
    ParameterService,
    ProcessedParameters,
    ValidationOptions,
    compare_parameters,
    schema_id,
)
from aigateway.services.parameters.validator import (
    CompleteValidationResult,
    ParameterValidator,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "BUILTIN_DEFINITIONS",
    "ParameterPreset",
    "ParameterPresetsManager",
    "AdvancedParameterValidator",
    "CustomValidationRule",
    "ParameterDependency",
    "ParameterMutualExclusion",
    "RuleOutcome",
    "ParameterService",
    "ProcessedParameters",
    "ValidationOptions",
    "compare_parameters",
    "schema_id",
    "CompleteValidationResult",
    "ParameterValidator",
    "ValidationIssue",
    "ValidationResult",
]
