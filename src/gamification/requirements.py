"""
Quest requirement evaluation

Matches every requirement variant explicitly:
- numeric: metric compared to a target with gte/gt/eq/lte/lt
- boolean: metric equals the expected flag
- compound: and/or over nested requirements
"""

from typing import Dict, NamedTuple, Union
import logging

from src.models.quest import (
    BooleanFlag,
    CompoundRequirement,
    NumericThreshold,
    Requirement,
)

logger = logging.getLogger(__name__)

MetricData = Dict[str, Union[int, float, bool]]

CEILING_OPERATORS = ("lte", "lt")


class RequirementResult(NamedTuple):
    met: bool
    progress: float  # 0-100
    target: float


def _evaluate_numeric(req: NumericThreshold, data: MetricData) -> RequirementResult:
    raw = data.get(req.metric, 0)
    value = float(raw) if not isinstance(raw, bool) else float(int(raw))
    target = req.value

    if req.operator == "gte":
        met = value >= target
    elif req.operator == "gt":
        met = value > target
    elif req.operator == "eq":
        met = value == target
    elif req.operator == "lte":
        met = value <= target
    else:
        met = value < target

    if req.operator in CEILING_OPERATORS:
        # Ceiling metrics have no partial credit
        progress = 100.0 if met else 0.0
    else:
        progress = min(max(value, 0.0) / target * 100, 100.0)

    return RequirementResult(met, progress, target)


def _evaluate_boolean(req: BooleanFlag, data: MetricData) -> RequirementResult:
    met = data.get(req.metric) is req.expected
    return RequirementResult(met, 100.0 if met else 0.0, 1.0)


def _evaluate_compound(req: CompoundRequirement, data: MetricData) -> RequirementResult:
    results = [evaluate_requirement(r, data) for r in req.requirements]

    if req.operator == "and":
        met = all(r.met for r in results)
        progress = sum(r.progress for r in results) / len(results)
    else:
        met = any(r.met for r in results)
        progress = max(r.progress for r in results)

    return RequirementResult(met, progress, 100.0)


def evaluate_requirement(requirement: Requirement, data: MetricData) -> RequirementResult:
    """
    Evaluate a requirement against reported metric data

    Args:
        requirement: Requirement variant from the quest template
        data: Metric name -> reported value (missing metrics count as 0/unset)

    Returns:
        RequirementResult(met, progress percent, target value)
    """
    if isinstance(requirement, NumericThreshold):
        return _evaluate_numeric(requirement, data)
    if isinstance(requirement, BooleanFlag):
        return _evaluate_boolean(requirement, data)
    if isinstance(requirement, CompoundRequirement):
        return _evaluate_compound(requirement, data)
    raise TypeError(f"Unknown requirement variant: {type(requirement).__name__}")


def is_ceiling(requirement: Requirement) -> bool:
    """True for numeric requirements met by staying at or under the value"""
    return isinstance(requirement, NumericThreshold) and requirement.operator in CEILING_OPERATORS
