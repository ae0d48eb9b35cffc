"""
Advanced parameter rules: dependencies, mutual exclusions and custom predicates.

Rules are registered per schema id ("<provider>:<capability>") and run on
top of the basic type and range checks.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from aigateway.services.gateway.types import ParameterDefinition


@dataclass
class RuleOutcome:
    valid: bool
    message: Optional[str] = None


@dataclass
class CustomValidationRule:
    name: str
    description: str
    validate: Callable[[Any, ParameterDefinition, Dict[str, Any]], RuleOutcome]


@dataclass
class ParameterDependency:
    """parameter is only valid when condition(value, depends_on_value) holds."""
    parameter: str
    depends_on: str
    condition: Callable[[Any, Any], bool]
    message: str


@dataclass
class ParameterMutualExclusion:
    parameters: List[str]
    message: str


@dataclass
class AdvancedValidationResult:
    dependency_errors: List[str] = field(default_factory=list)
    exclusion_errors: List[str] = field(default_factory=list)
    custom_rule_errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not (self.dependency_errors or self.exclusion_errors or self.custom_rule_errors)


class AdvancedParameterValidator:
    def __init__(self):
        self._custom_rules: Dict[str, List[CustomValidationRule]] = {}
        self._dependencies: Dict[str, List[ParameterDependency]] = {}
        self._exclusions: Dict[str, List[ParameterMutualExclusion]] = {}

    def add_custom_rules(self, schema: str, rules: List[CustomValidationRule]) -> None:
        self._custom_rules.setdefault(schema, []).extend(rules)

    def add_dependencies(self, schema: str, dependencies: List[ParameterDependency]) -> None:
        self._dependencies.setdefault(schema, []).extend(dependencies)

    def add_mutual_exclusions(self, schema: str, exclusions: List[ParameterMutualExclusion]) -> None:
        self._exclusions.setdefault(schema, []).extend(exclusions)

    def validate_dependencies(self, schema: str, values: Dict[str, Any], only: Optional[Set[str]] = None) -> List[str]:
        errors = []
        for dep in self._dependencies.get(schema, []):
            if only is not None and dep.parameter not in only:
                continue
            value = values.get(dep.parameter)
            if value is None:
                continue
            if not dep.condition(value, values.get(dep.depends_on)):
                errors.append(dep.message)
        return errors

    def validate_mutual_exclusions(self, schema: str, values: Dict[str, Any], only: Optional[Set[str]] = None) -> List[str]:
        errors = []
        for exclusion in self._exclusions.get(schema, []):
            present = [
                p for p in exclusion.parameters
                if values.get(p) is not None and (only is None or p in only)
            ]
            if len(present) > 1:
                errors.append(exclusion.message)
        return errors

    def validate_custom_rules(
        self,
        schema: str,
        values: Dict[str, Any],
        definitions: List[ParameterDefinition],
        only: Optional[Set[str]] = None,
    ) -> List[str]:
        errors = []
        for definition in definitions:
            if only is not None and definition.key not in only:
                continue
            value = values.get(definition.key)
            if value is None:
                continue
            for rule in self._custom_rules.get(schema, []):
                outcome = rule.validate(value, definition, values)
                if not outcome.valid:
                    errors.append(outcome.message or f"{rule.name} failed for {definition.key}")
        return errors

    def validate_advanced(
        self,
        schema: str,
        values: Dict[str, Any],
        definitions: List[ParameterDefinition],
        dependencies: bool = True,
        custom_rules: bool = True,
        only: Optional[Set[str]] = None,
    ) -> AdvancedValidationResult:
        """
        Run the advanced rules over values.

        When only is given, rules are evaluated for those keys alone while
        still reading the other values (e.g. merged defaults) as context.
        """
        result = AdvancedValidationResult()
        if dependencies:
            result.dependency_errors = self.validate_dependencies(schema, values, only)
            result.exclusion_errors = self.validate_mutual_exclusions(schema, values, only)
        if custom_rules:
            result.custom_rule_errors = self.validate_custom_rules(schema, values, definitions, only)
        return result


# ========================================
# Builtin rules
# ========================================

_DEPRECATED_MODELS = ("text-davinci-003", "text-curie-001")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _temperature_sanity(value, definition, params):
    if definition.key != "temperature" or not _is_number(value):
        return RuleOutcome(True)
    if value < 0.1:
        return RuleOutcome(False, "Temperature below 0.1 makes output nearly deterministic")
    if value > 1.5:
        return RuleOutcome(False, "Temperature above 1.5 tends to produce incoherent output")
    return RuleOutcome(True)


def _gemini_temperature(value, definition, params):
    if definition.key == "temperature" and _is_number(value) and value > 1:
        return RuleOutcome(False, "Gemini temperature should not exceed 1")
    return RuleOutcome(True)


def _top_k_top_p_balance(value, definition, params):
    top_p = params.get("topP")
    if not _is_number(top_p):
        top_p = 1
    if definition.key == "topK" and _is_number(value) and value > 20 and top_p < 0.5:
        return RuleOutcome(False, "High topK with low topP gives unbalanced sampling")
    return RuleOutcome(True)


def _token_cost_limit(value, definition, params):
    if definition.key in ("maxTokens", "maxOutputTokens") and _is_number(value) and value > 4000:
        return RuleOutcome(False, f"{definition.key} above 4000 may incur high cost")
    return RuleOutcome(True)


def _deprecated_model(value, definition, params):
    if definition.key == "model" and value in _DEPRECATED_MODELS:
        return RuleOutcome(False, f"Model {value} is deprecated")
    return RuleOutcome(True)


def _dalle_compatibility(value, definition, params):
    model = params.get("model")
    if model == "dall-e-3" and definition.key == "n" and value != 1:
        return RuleOutcome(False, "DALL-E 3 only supports generating one image at a time")
    if model == "dall-e-2":
        if definition.key == "quality" and value != "standard":
            return RuleOutcome(False, "DALL-E 2 only supports standard quality")
        if definition.key == "style":
            return RuleOutcome(False, "DALL-E 2 does not support style")
    return RuleOutcome(True)


OPENAI_CHAT_RULES = [
    CustomValidationRule("temperature_sanity", "Temperature within a useful range", _temperature_sanity),
    CustomValidationRule("token_cost_limit", "Token limit within a reasonable cost", _token_cost_limit),
    CustomValidationRule("deprecated_model", "Model is not deprecated", _deprecated_model),
]

GEMINI_CHAT_RULES = [
    CustomValidationRule("gemini_temperature", "Gemini temperature at most 1", _gemini_temperature),
    CustomValidationRule("top_k_top_p_balance", "topK and topP are balanced", _top_k_top_p_balance),
    CustomValidationRule("token_cost_limit", "Token limit within a reasonable cost", _token_cost_limit),
]

OPENAI_IMAGE_RULES = [
    CustomValidationRule("dalle_compatibility", "Options supported by the selected DALL-E model", _dalle_compatibility),
]

OPENAI_IMAGE_DEPENDENCIES = [
    ParameterDependency(
        parameter="quality",
        depends_on="model",
        condition=lambda quality, model: model == "dall-e-3" or quality == "standard",
        message="HD quality is only supported by dall-e-3",
    ),
    ParameterDependency(
        parameter="style",
        depends_on="model",
        condition=lambda style, model: model == "dall-e-3",
        message="Style is only supported by dall-e-3",
    ),
]

TOKEN_LIMIT_EXCLUSION = ParameterMutualExclusion(
    parameters=["maxTokens", "maxOutputTokens"],
    message="maxTokens and maxOutputTokens cannot both be set",
)


def load_builtin_rules(validator: AdvancedParameterValidator) -> None:
    """Register the builtin rule sets for the builtin schemas."""
    for schema in ("openai:chat", "deepseek:chat"):
        validator.add_custom_rules(schema, OPENAI_CHAT_RULES)
    validator.add_custom_rules("gemini:chat", GEMINI_CHAT_RULES)
    for schema in ("openai:chat", "deepseek:chat", "claude:chat", "gemini:chat"):
        validator.add_mutual_exclusions(schema, [TOKEN_LIMIT_EXCLUSION])
    for schema in ("openai:image", "dall-e:image"):
        validator.add_custom_rules(schema, OPENAI_IMAGE_RULES)
        validator.add_dependencies(schema, OPENAI_IMAGE_DEPENDENCIES)
