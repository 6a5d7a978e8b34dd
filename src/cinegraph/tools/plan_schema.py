# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Query plan vocabulary, whitelists, and validation.
# The language model never writes Cypher: it emits a JSON plan whose
# every label, relationship, property, operator, and function must be
# on a whitelist before anything is compiled.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Query plan vocabulary, whitelists, and validation."""

from __future__ import annotations

import re
from typing import Annotated, Any, Iterable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

ALLOWED_LABELS = frozenset({"Movie", "Director", "Actor", "Genre", "Theme", "Award"})

# Relationship type -> (source label, target label)
RELATIONSHIP_ENDPOINTS: dict[str, tuple[str, str]] = {
    "DIRECTED": ("Director", "Movie"),
    "ACTED_IN": ("Actor", "Movie"),
    "BELONGS_TO": ("Movie", "Genre"),
    "EXPLORES": ("Movie", "Theme"),
    "WON": ("Movie", "Award"),
}
ALLOWED_RELATIONSHIPS = frozenset(RELATIONSHIP_ENDPOINTS)

ALLOWED_PROPERTIES: dict[str, tuple[str, ...]] = {
    "Movie": ("title", "year"),
    "Director": ("name",),
    "Actor": ("name",),
    "Genre": ("name",),
    "Theme": ("name",),
    "Award": ("name", "category"),
}

# Property holding the stored name of each label
NAME_PROPERTY: dict[str, str] = {
    label: ("title" if label == "Movie" else "name") for label in ALLOWED_LABELS
}

ALLOWED_OPERATORS = frozenset({"=", "<>", ">", "<", ">=", "<=", "CONTAINS", "STARTS WITH"})
ALLOWED_AGGREGATIONS = frozenset({"count", "collect", "sum", "avg", "min", "max"})
ALLOWED_DIRECTIONS = frozenset({"ASC", "DESC"})
LIMIT_RANGE = (1, 100)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class InvalidPlanError(ValueError):
    """A plan step references something outside the whitelists."""


class PlanningError(RuntimeError):
    """The model produced a plan that could not be parsed."""


class _Step(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TraversalStep(_Step):
    type: Literal["traversal"] = "traversal"
    from_label: str = Field(alias="from")
    rel: str
    to_label: str = Field(alias="to")

    @property
    def is_reversed(self) -> bool:
        """True when the pattern runs against the stored edge direction."""
        return RELATIONSHIP_ENDPOINTS.get(self.rel) == (self.to_label, self.from_label)


class FilterStep(_Step):
    type: Literal["filter"] = "filter"
    field: str
    op: str
    value: Any


class ProjectionStep(_Step):
    type: Literal["projection"] = "projection"
    fields: list[str]
    distinct: bool = False


class AggregationStep(_Step):
    type: Literal["aggregation"] = "aggregation"
    function: str
    field: str | None = None
    alias: str | None = None
    group_by: str | None = Field(default=None, alias="groupBy")

    @property
    def output_alias(self) -> str:
        return self.alias or f"{self.function}_result"


class SortStep(_Step):
    type: Literal["sort"] = "sort"
    field: str
    direction: str = "ASC"


class LimitStep(_Step):
    type: Literal["limit"] = "limit"
    value: Any


class DescribeStep(_Step):
    type: Literal["describe"] = "describe"
    label: str
    name: str


class PathStep(_Step):
    type: Literal["path"] = "path"
    from_label: str = Field(alias="fromLabel")
    from_name: str = Field(alias="fromName")
    to_label: str = Field(alias="toLabel")
    to_name: str = Field(alias="toName")


Step = Annotated[
    Union[
        TraversalStep,
        FilterStep,
        ProjectionStep,
        AggregationStep,
        SortStep,
        LimitStep,
        DescribeStep,
        PathStep,
    ],
    Field(discriminator="type"),
]

STEP_TYPES: dict[str, type[_Step]] = {
    "traversal": TraversalStep,
    "filter": FilterStep,
    "projection": ProjectionStep,
    "aggregation": AggregationStep,
    "sort": SortStep,
    "limit": LimitStep,
    "describe": DescribeStep,
    "path": PathStep,
}

# Step kinds that run a dedicated template instead of the compiler
STANDALONE_STEP_TYPES = frozenset({"describe", "path"})


class Plan(BaseModel):
    """An ordered list of plan steps."""

    model_config = ConfigDict(frozen=True)

    steps: list[Step]


def parse_step(data: Any) -> _Step:
    """Build a typed step from one decoded JSON object.

    Raises:
        InvalidPlanError: If the step type is not a known kind.
        PlanningError: If the step is malformed for its kind.
    """
    step_type = data.get("type") if isinstance(data, dict) else None
    model = STEP_TYPES.get(step_type) if isinstance(step_type, str) else None
    if model is None:
        raise InvalidPlanError(f"Unknown step type: {step_type}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise PlanningError(f"Malformed {step_type} step: {e.errors()[0]['msg']}") from e


def parse_plan(data: Any) -> Plan:
    """Build a typed plan from the model's decoded JSON.

    Args:
        data: Decoded JSON, expected to be ``{"steps": [...]}``.

    Returns:
        Plan: The typed plan. Whitelists are not checked here.

    Raises:
        PlanningError: If the payload is not a non-empty list of steps.
        InvalidPlanError: If a step has an unknown type.
    """
    if not isinstance(data, dict) or not isinstance(data.get("steps"), list):
        raise PlanningError("Plan must be an object with a list of steps")
    if not data["steps"]:
        raise PlanningError("Plan has no steps")
    return Plan(steps=[parse_step(raw) for raw in data["steps"]])


def split_field(field: str) -> tuple[str, str]:
    """Split and check a ``Label.property`` reference.

    Raises:
        InvalidPlanError: On an unknown label or property.
    """
    label, _, prop = field.partition(".")
    if label not in ALLOWED_LABELS:
        raise InvalidPlanError(f"Invalid label: {label}")
    if prop not in ALLOWED_PROPERTIES[label]:
        raise InvalidPlanError(f"Invalid property: {field}")
    return label, prop


def _check_label(label: str) -> None:
    if label not in ALLOWED_LABELS:
        raise InvalidPlanError(f"Invalid label: {label}")


def validate_step(step: Any, aliases: Iterable[str] = ()) -> None:
    """Check one plan step against the whitelists.

    Args:
        step: A typed plan step.
        aliases: Aggregation aliases declared earlier in the plan; a sort
            step may order by one of them.

    Raises:
        InvalidPlanError: Naming the first value outside its whitelist.
    """
    if isinstance(step, TraversalStep):
        _check_label(step.from_label)
        _check_label(step.to_label)
        if step.rel not in ALLOWED_RELATIONSHIPS:
            raise InvalidPlanError(f"Invalid relationship: {step.rel}")
        endpoints = RELATIONSHIP_ENDPOINTS[step.rel]
        if (step.from_label, step.to_label) not in (endpoints, endpoints[::-1]):
            raise InvalidPlanError(
                f"Invalid relationship: {step.from_label}-[:{step.rel}]->{step.to_label}"
            )

    elif isinstance(step, FilterStep):
        split_field(step.field)
        if step.op not in ALLOWED_OPERATORS:
            raise InvalidPlanError(f"Invalid operator: {step.op}")

    elif isinstance(step, ProjectionStep):
        if not step.fields:
            raise InvalidPlanError("Invalid property: projection has no fields")
        for field in step.fields:
            split_field(field)

    elif isinstance(step, AggregationStep):
        if step.function not in ALLOWED_AGGREGATIONS:
            raise InvalidPlanError(f"Invalid aggregation: {step.function}")
        if step.field:
            split_field(step.field)
        elif step.function != "count":
            raise InvalidPlanError(f"Invalid aggregation: {step.function}(*)")
        if step.group_by:
            split_field(step.group_by)
        if not _IDENTIFIER.match(step.output_alias):
            raise InvalidPlanError(f"Invalid alias: {step.output_alias}")

    elif isinstance(step, SortStep):
        label, _, prop = step.field.partition(".")
        _check_label(label)
        if prop not in ALLOWED_PROPERTIES[label] and prop not in set(aliases):
            raise InvalidPlanError(f"Invalid property: {step.field}")
        if step.direction.upper() not in ALLOWED_DIRECTIONS:
            raise InvalidPlanError(f"Invalid direction: {step.direction}")

    elif isinstance(step, LimitStep):
        value = step.value
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not value.is_integer())
            or not LIMIT_RANGE[0] <= value <= LIMIT_RANGE[1]
        ):
            raise InvalidPlanError(f"Invalid limit: {value}")

    elif isinstance(step, DescribeStep):
        _check_label(step.label)

    elif isinstance(step, PathStep):
        _check_label(step.from_label)
        _check_label(step.to_label)

    else:
        raise InvalidPlanError(f"Unknown step type: {getattr(step, 'type', step)}")


def validate_plan(plan: Plan) -> None:
    """Validate every step in order, stopping at the first violation.

    A plan may carry at most one sort and one limit step.

    Raises:
        InvalidPlanError: On the first invalid step.
    """
    aliases: list[str] = []
    seen: set[str] = set()
    for step in plan.steps:
        validate_step(step, aliases)
        if step.type in ("sort", "limit"):
            if step.type in seen:
                raise InvalidPlanError(f"Duplicate {step.type} step")
            seen.add(step.type)
        if isinstance(step, AggregationStep):
            aliases.append(step.output_alias)
