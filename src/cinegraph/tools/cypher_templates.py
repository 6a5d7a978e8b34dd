# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Safe Cypher construction from validated query plans.
# Query text is assembled only from whitelisted literals and fixed
# variable names; every user-facing value travels as a parameter.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Safe Cypher construction from validated query plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cinegraph.tools.plan_schema import (
    ALLOWED_PROPERTIES,
    NAME_PROPERTY,
    STANDALONE_STEP_TYPES,
    AggregationStep,
    FilterStep,
    InvalidPlanError,
    LimitStep,
    Plan,
    ProjectionStep,
    SortStep,
    TraversalStep,
    split_field,
    validate_plan,
)

LABEL_VARIABLES: dict[str, str] = {
    "Movie": "m",
    "Director": "d",
    "Actor": "a",
    "Genre": "g",
    "Theme": "t",
    "Award": "aw",
}

PATH_MAX_HOPS = 6


@dataclass(frozen=True)
class CompiledQuery:
    """Cypher text plus the parameters it binds."""

    text: str
    params: dict[str, Any] = field(default_factory=dict)


def _ref(field_name: str) -> str:
    label, prop = split_field(field_name)
    return f"{LABEL_VARIABLES[label]}.{prop}"


def _referenced_labels(step: Any) -> list[str]:
    """Labels a non-traversal step refers to, in order."""
    if isinstance(step, FilterStep):
        return [step.field.partition(".")[0]]
    if isinstance(step, SortStep):
        label, _, prop = step.field.partition(".")
        # An alias sort names no node.
        return [label] if prop in ALLOWED_PROPERTIES[label] else []
    if isinstance(step, ProjectionStep):
        return [f.partition(".")[0] for f in step.fields]
    if isinstance(step, AggregationStep):
        return [f.partition(".")[0] for f in (step.group_by, step.field) if f]
    return []


def _aggregation_clause(step: AggregationStep) -> str:
    if step.field:
        label, prop = split_field(step.field)
        var = LABEL_VARIABLES[label]
        if step.function == "count":
            target = f"DISTINCT {var}"
        elif step.function == "collect":
            target = f"DISTINCT {var}.{prop}"
        else:
            target = f"{var}.{prop}"
    else:
        target = "*"
    expression = f"{step.function}({target}) AS {step.output_alias}"
    if step.group_by:
        return f"RETURN {_ref(step.group_by)}, {expression}"
    return f"RETURN {expression}"


def compile_plan(plan: Plan) -> CompiledQuery:
    """Build read-only Cypher from a plan.

    The plan is validated first; nothing is compiled if any step fails.

    Args:
        plan: Plan made of traversal, filter, projection, aggregation,
            sort and limit steps.

    Returns:
        CompiledQuery: Deterministic query text and its parameters.

    Raises:
        InvalidPlanError: If the plan is invalid, contains a describe/path
            step, has no projection or aggregation, or sorts a DISTINCT or
            aggregated result by a property it does not return.
    """
    validate_plan(plan)

    match_clauses: list[str] = []
    bound_labels: list[str] = []
    referenced_labels: list[str] = []
    where_clauses: list[str] = []
    return_clause = ""
    returned_refs: set[str] = set()
    collapsed = False
    aggregation: AggregationStep | None = None
    sort: SortStep | None = None
    limit_clause = ""
    params: dict[str, Any] = {}

    for step in plan.steps:
        if step.type in STANDALONE_STEP_TYPES:
            raise InvalidPlanError(f"A {step.type} step cannot be combined with other steps")

        for label in _referenced_labels(step):
            if label not in referenced_labels:
                referenced_labels.append(label)

        if isinstance(step, TraversalStep):
            from_var = LABEL_VARIABLES[step.from_label]
            to_var = LABEL_VARIABLES[step.to_label]
            left, right = ("<-", "-") if step.is_reversed else ("-", "->")
            match_clauses.append(
                f"MATCH ({from_var}:{step.from_label}){left}[:{step.rel}]{right}"
                f"({to_var}:{step.to_label})"
            )
            bound_labels.extend([step.from_label, step.to_label])

        elif isinstance(step, FilterStep):
            param_name = f"p{len(params)}"
            params[param_name] = step.value
            where_clauses.append(f"{_ref(step.field)} {step.op} ${param_name}")

        elif isinstance(step, ProjectionStep):
            distinct = "DISTINCT " if step.distinct else ""
            return_clause = f"RETURN {distinct}{', '.join(_ref(f) for f in step.fields)}"
            returned_refs = {_ref(f) for f in step.fields}
            collapsed = step.distinct
            aggregation = None

        elif isinstance(step, AggregationStep):
            return_clause = _aggregation_clause(step)
            returned_refs = {_ref(step.group_by)} if step.group_by else set()
            collapsed = True
            aggregation = step

        elif isinstance(step, SortStep):
            sort = step

        elif isinstance(step, LimitStep):
            limit_clause = f"LIMIT {int(step.value)}"

    if not return_clause:
        raise InvalidPlanError("Plan needs a projection or aggregation step")

    order_clause = ""
    if sort is not None:
        label, _, prop = sort.field.partition(".")
        direction = sort.direction.upper()
        if aggregation is not None and prop == aggregation.output_alias:
            order_clause = f"ORDER BY {prop} {direction}"
        elif prop not in ALLOWED_PROPERTIES[label]:
            # Alias of an aggregation a later projection replaced.
            raise InvalidPlanError(f"Invalid property: {sort.field}")
        else:
            ref = _ref(sort.field)
            # After DISTINCT or aggregation only returned values stay in scope.
            if collapsed and ref not in returned_refs:
                raise InvalidPlanError(f"Invalid property: {sort.field} is not returned")
            order_clause = f"ORDER BY {ref} {direction}"

    # Labels used without a traversal still need a pattern to bind them.
    for label in referenced_labels:
        if label not in bound_labels:
            match_clauses.append(f"MATCH ({LABEL_VARIABLES[label]}:{label})")

    segments = [
        *match_clauses,
        f"WHERE {' AND '.join(where_clauses)}" if where_clauses else "",
        return_clause,
        order_clause,
        limit_clause,
    ]
    return CompiledQuery(text="\n".join(s for s in segments if s), params=params)


# Non-null award maps only; OPTIONAL MATCH misses yield {name: null, ...}.
_AWARDS = (
    "[x IN collect(DISTINCT {name: aw.name, category: aw.category}) "
    "WHERE x.name IS NOT NULL] AS awards"
)

DESCRIBE_QUERIES: dict[str, str] = {
    "Movie": (
        "MATCH (m:Movie {title: $name})\n"
        "OPTIONAL MATCH (d:Director)-[:DIRECTED]->(m)\n"
        "OPTIONAL MATCH (a:Actor)-[:ACTED_IN]->(m)\n"
        "OPTIONAL MATCH (m)-[:BELONGS_TO]->(g:Genre)\n"
        "OPTIONAL MATCH (m)-[:EXPLORES]->(t:Theme)\n"
        "OPTIONAL MATCH (m)-[:WON]->(aw:Award)\n"
        "RETURN m.title AS title, m.year AS year, "
        "collect(DISTINCT d.name) AS directors, "
        "collect(DISTINCT a.name) AS actors, "
        "collect(DISTINCT g.name) AS genres, "
        "collect(DISTINCT t.name) AS themes, "
        f"{_AWARDS}"
    ),
    "Director": (
        "MATCH (d:Director {name: $name})-[:DIRECTED]->(m:Movie)\n"
        "OPTIONAL MATCH (m)-[:BELONGS_TO]->(g:Genre)\n"
        "OPTIONAL MATCH (m)-[:EXPLORES]->(t:Theme)\n"
        "OPTIONAL MATCH (m)-[:WON]->(aw:Award)\n"
        "OPTIONAL MATCH (a:Actor)-[:ACTED_IN]->(m)\n"
        "RETURN d.name AS name, "
        "collect(DISTINCT {title: m.title, year: m.year}) AS movies, "
        "collect(DISTINCT g.name) AS genres, "
        "collect(DISTINCT t.name) AS themes, "
        "collect(DISTINCT a.name) AS collaborators, "
        f"{_AWARDS}"
    ),
    "Actor": (
        "MATCH (a:Actor {name: $name})-[:ACTED_IN]->(m:Movie)\n"
        "OPTIONAL MATCH (d:Director)-[:DIRECTED]->(m)\n"
        "OPTIONAL MATCH (m)-[:BELONGS_TO]->(g:Genre)\n"
        "OPTIONAL MATCH (m)-[:EXPLORES]->(t:Theme)\n"
        "OPTIONAL MATCH (m)-[:WON]->(aw:Award)\n"
        "RETURN a.name AS name, "
        "collect(DISTINCT {title: m.title, year: m.year}) AS movies, "
        "collect(DISTINCT d.name) AS directors, "
        "collect(DISTINCT g.name) AS genres, "
        "collect(DISTINCT t.name) AS themes, "
        f"{_AWARDS}"
    ),
    "Genre": (
        "MATCH (m:Movie)-[:BELONGS_TO]->(g:Genre {name: $name})\n"
        "OPTIONAL MATCH (d:Director)-[:DIRECTED]->(m)\n"
        "RETURN g.name AS name, "
        "collect(DISTINCT {title: m.title, year: m.year}) AS movies, "
        "collect(DISTINCT d.name) AS directors"
    ),
    "Theme": (
        "MATCH (m:Movie)-[:EXPLORES]->(t:Theme {name: $name})\n"
        "OPTIONAL MATCH (d:Director)-[:DIRECTED]->(m)\n"
        "RETURN t.name AS name, "
        "collect(DISTINCT {title: m.title, year: m.year}) AS movies, "
        "collect(DISTINCT d.name) AS directors"
    ),
    "Award": (
        "MATCH (m:Movie)-[:WON]->(aw:Award {name: $name})\n"
        "OPTIONAL MATCH (d:Director)-[:DIRECTED]->(m)\n"
        "RETURN aw.name AS name, "
        "collect(DISTINCT {title: m.title, year: m.year, category: aw.category}) AS movies, "
        "collect(DISTINCT d.name) AS directors"
    ),
}


def describe_query(label: str, name: str) -> CompiledQuery:
    """Query gathering every node directly connected to a named entity.

    Raises:
        InvalidPlanError: If the label has no describe template.
    """
    if label not in DESCRIBE_QUERIES:
        raise InvalidPlanError(f"Invalid label: {label}")
    return CompiledQuery(text=DESCRIBE_QUERIES[label], params={"name": name})


def path_query(from_label: str, from_name: str, to_label: str, to_name: str) -> CompiledQuery:
    """Shortest path between two named entities over any relationship.

    Returns ``path_nodes`` (labels, name, year per node) and ``path_rels``
    (relationship types in path order).

    Raises:
        InvalidPlanError: If either label is not whitelisted.
    """
    for label in (from_label, to_label):
        if label not in NAME_PROPERTY:
            raise InvalidPlanError(f"Invalid label: {label}")
    text = (
        f"MATCH (a:{from_label} {{{NAME_PROPERTY[from_label]}: $from_name}}),\n"
        f"      (b:{to_label} {{{NAME_PROPERTY[to_label]}: $to_name}}),\n"
        f"      path = shortestPath((a)-[*..{PATH_MAX_HOPS}]-(b))\n"
        "RETURN [node IN nodes(path) | {labels: labels(node), "
        "name: coalesce(node.name, node.title), year: node.year}] AS path_nodes,\n"
        "       [rel IN relationships(path) | type(rel)] AS path_rels"
    )
    return CompiledQuery(text=text, params={"from_name": from_name, "to_name": to_name})
