"""Scenario DSL: test files to typed, dependency-linked steps."""

from .keys import FRIENDLY_KEYS, METRIC_PREFIXES, MetricSelector, resolve_key
from .parser import link_steps, load_scenario, parse_scenario
from .steps import (
    Comparator,
    Comparison,
    Concurrency,
    IsUp,
    Predicate,
    Reports,
    Scenario,
    ScriptCall,
    ScriptReturn,
    Step,
    StepKind,
    Value,
    as_number,
)

__all__ = [
    # Parsing
    "link_steps",
    "load_scenario",
    "parse_scenario",
    # Reporting keys
    "FRIENDLY_KEYS",
    "METRIC_PREFIXES",
    "MetricSelector",
    "resolve_key",
    # Steps
    "Scenario",
    "ScriptCall",
    "Step",
    "StepKind",
    "Concurrency",
    # Predicates
    "Comparator",
    "Comparison",
    "IsUp",
    "Predicate",
    "Reports",
    "ScriptReturn",
    "Value",
    "as_number",
]
