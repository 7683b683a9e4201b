"""
Recursive-descent parser for scenario files.

A scenario file is a header block followed by one step per line:

    Description: four paras sharing one core
    Network: ./network.yaml
    Creds: config

    validator: reports node_roles is 4
    validator-0: js-script ./register-paras.js with "2000,2001" return is 0 within 600 seconds
    collator-2000: reports block height is at least 6 within 200 seconds
    alice: is up within 30 seconds

Grammar (tokens split shell-style, so quoted arguments stay whole)::

    step        := target ":" assertion
    assertion   := "reports" metric comparison [within]
                 | ("js-script" | "run") path ["with" ARGS] ["return" comparison] [within]
                 | "is" "up" [within]
    comparison  := "is" [relation] value | "equals" value
    relation    := "equal" "to" | "at" "least" | "at" "most" | "greater" "than"
                 | "above" | "lower" "than" | "less" "than" | "below"
    within      := "within" NUMBER ("seconds" | "second" | "secs" | "sec" | "s")
"""

from __future__ import annotations

import logging
import math
import re
import shlex
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Final

from netharness.config import DEFAULT_STEP_TIMEOUT
from netharness.types import ConfigError

from .keys import resolve_key
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
    Value,
    as_number,
)

logger = logging.getLogger(__name__)

SCRIPT_KEYWORDS: Final = frozenset({"js-script", "run"})
"""Step keywords that invoke an external script."""

HEADERS: Final = frozenset({"description", "network", "creds", "concurrency"})
"""Header keys accepted before the first step."""

_RELATIONS: Final[dict[tuple[str, ...], Comparator]] = {
    ("equal", "to"): Comparator.EQUALS,
    ("at", "least"): Comparator.AT_LEAST,
    ("at", "most"): Comparator.AT_MOST,
    ("greater", "than"): Comparator.GREATER_THAN,
    ("above",): Comparator.GREATER_THAN,
    ("lower", "than"): Comparator.LESS_THAN,
    ("less", "than"): Comparator.LESS_THAN,
    ("below",): Comparator.LESS_THAN,
}
"""Relation words following `is`, longest forms first per leading word."""

_SECONDS: Final = frozenset({"seconds", "second", "secs", "sec", "s"})

_DURATION = re.compile(r"^\d+(?:\.\d*)?$")


class _Tokens:
    """Cursor over the tokens of one step line."""

    def __init__(self, tokens: Sequence[str], line: int, path: Path | None) -> None:
        self._tokens = list(tokens)
        self._pos = 0
        self.line = line
        self.path = path

    def peek(self, offset: int = 0) -> str | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def next(self, what: str) -> str:
        token = self.peek()
        if token is None:
            raise self.error(f"expected {what}, got end of line")
        self._pos += 1
        return token

    def accept(self, *words: str) -> bool:
        """Consume the given words if they come next, case-insensitively."""
        for offset, word in enumerate(words):
            token = self.peek(offset)
            if token is None or token.lower() != word:
                return False
        self._pos += len(words)
        return True

    def expect(self, word: str) -> None:
        if not self.accept(word):
            found = self.peek()
            raise self.error(f"expected '{word}', got {found!r}" if found else f"expected '{word}'")

    def at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def error(self, detail: str) -> ConfigError:
        return ConfigError(detail, path=self.path, line=self.line)


def parse_scenario(text: str, *, path: Path | None = None) -> Scenario:
    """
    Parse scenario text into a Scenario with dependency edges.

    Relative network and script paths are resolved against the
    directory of `path` (or the working directory when parsing a string).

    Raises:
        ConfigError: On any malformed header or step, with the line number.
    """
    base = path.parent if path is not None else Path.cwd()
    headers: dict[str, str] = {}
    steps: list[Step] = []

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        target, sep, rest = line.partition(":")
        if not sep:
            raise ConfigError("expected '<target>: <assertion>'", path=path, line=number)
        target = target.strip()
        rest = rest.strip()

        # Headers are only recognised before the first step.
        if not steps and target.lower() in HEADERS:
            key = target.lower()
            if key in headers:
                raise ConfigError(f"duplicate header '{target}'", path=path, line=number)
            headers[key] = rest
            continue

        if not target or " " in target:
            raise ConfigError(f"invalid step target {target!r}", path=path, line=number)

        try:
            tokens = shlex.split(rest)
        except ValueError as exc:
            raise ConfigError(f"cannot tokenize step: {exc}", path=path, line=number) from exc

        stream = _Tokens(tokens, number, path)
        steps.append(_parse_step(stream, f"step-{len(steps) + 1}", target, base, line))

    if "network" not in headers or not headers["network"]:
        raise ConfigError("missing 'Network:' header", path=path)
    if not steps:
        raise ConfigError("scenario declares no steps", path=path)

    concurrency_raw = headers.get("concurrency", Concurrency.GROUPED.value).lower()
    try:
        concurrency = Concurrency(concurrency_raw)
    except ValueError:
        raise ConfigError(
            f"unknown concurrency {concurrency_raw!r} (use 'grouped' or 'sequential')", path=path
        ) from None

    linked = link_steps(steps, concurrency)
    logger.debug("Parsed %d steps (%s)", len(linked), concurrency)

    return Scenario(
        network=(base / headers["network"]).resolve(),
        steps=tuple(linked),
        description=headers.get("description", ""),
        creds=headers.get("creds"),
        concurrency=concurrency,
        path=path,
    )


def load_scenario(path: Path | str) -> Scenario:
    """
    Read and parse a scenario file.

    Raises:
        ConfigError: If the file cannot be read or is malformed.
    """
    path = Path(path).resolve()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read scenario file: {exc.strerror}", path=path) from exc
    return parse_scenario(text, path=path)


def link_steps(steps: Sequence[Step], concurrency: Concurrency) -> list[Step]:
    """
    Attach dependency edges to steps.

    Grouped mode: a script step is a barrier that depends on every earlier
    step, while an assertion depends only on the latest barrier before it.
    Consecutive assertions are therefore independent of each other.

    Sequential mode: each step depends on its predecessor.
    """
    linked: list[Step] = []
    barrier: str | None = None
    since_barrier: list[str] = []

    for step in steps:
        if concurrency is Concurrency.SEQUENTIAL:
            deps: tuple[str, ...] = (linked[-1].id,) if linked else ()
        elif step.is_barrier:
            deps = ((barrier,) if barrier else ()) + tuple(since_barrier)
            barrier = step.id
            since_barrier = []
        else:
            deps = (barrier,) if barrier else ()
            since_barrier.append(step.id)
        linked.append(replace(step, depends_on=deps))

    return linked


def _parse_step(stream: _Tokens, step_id: str, target: str, base: Path, text: str) -> Step:
    keyword = stream.next("an assertion").lower()
    script: ScriptCall | None = None
    predicate: Predicate

    if keyword == "reports":
        metric = _parse_metric(stream)
        predicate = Reports(key=metric, comparison=_parse_comparison(stream))
    elif keyword in SCRIPT_KEYWORDS:
        script = _parse_script_call(stream, keyword, base)
        comparison = Comparison(Comparator.EQUALS, 0)
        if stream.accept("return"):
            comparison = _parse_comparison(stream)
        predicate = ScriptReturn(comparison)
    elif keyword == "is" and stream.accept("up"):
        predicate = IsUp()
    else:
        raise stream.error(f"unknown assertion starting with {keyword!r}")

    timeout = DEFAULT_STEP_TIMEOUT
    if stream.accept("within"):
        timeout = _parse_duration(stream)

    if not stream.at_end():
        raise stream.error(f"unexpected trailing input starting at {stream.peek()!r}")

    return Step(
        id=step_id,
        line=stream.line,
        target=target,
        predicate=predicate,
        timeout=timeout,
        script=script,
        text=text,
    )


def _parse_metric(stream: _Tokens) -> str:
    words = []
    while (token := stream.peek()) is not None and token.lower() not in ("is", "equals"):
        words.append(stream.next("a metric name"))
    if not words:
        raise stream.error("expected a metric name after 'reports'")
    key = " ".join(words)
    try:
        resolve_key(key)
    except ValueError as exc:
        raise stream.error(str(exc)) from None
    return key


def _parse_comparison(stream: _Tokens) -> Comparison:
    if stream.accept("equals"):
        return Comparison(Comparator.EQUALS, _parse_value(stream))

    stream.expect("is")
    comparator = Comparator.EQUALS
    for words, candidate in _RELATIONS.items():
        if stream.accept(*words):
            comparator = candidate
            break
    operand = _parse_value(stream)
    number = as_number(operand)
    if comparator is not Comparator.EQUALS and (number is None or not math.isfinite(number)):
        raise stream.error(f"ordering comparison needs a numeric operand, got {operand!r}")
    return Comparison(comparator, operand)


def _parse_value(stream: _Tokens) -> Value:
    token = stream.next("a value")
    if token.lower() == "within":
        raise stream.error("expected a value before 'within'")
    number = as_number(token)
    return number if number is not None else token


def _parse_script_call(stream: _Tokens, keyword: str, base: Path) -> ScriptCall:
    raw_path = stream.next("a script path")
    raw_args = ""
    if stream.accept("with"):
        raw_args = stream.next("a quoted argument string")
    args = tuple(raw_args.split(",")) if raw_args else ()
    return ScriptCall(
        invoker=keyword,
        path=(base / raw_path).resolve(),
        args=args,
        raw_args=raw_args,
    )


def _parse_duration(stream: _Tokens) -> float:
    token = stream.next("a duration")
    seconds = float(token) if _DURATION.match(token) else math.nan
    if not math.isfinite(seconds) or seconds <= 0:
        raise stream.error(f"invalid duration {token!r}")
    unit = stream.peek()
    if unit is not None and unit.lower() in _SECONDS:
        stream.next("a time unit")
    return seconds
