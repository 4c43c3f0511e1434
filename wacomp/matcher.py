"""Composable checks over parsed component trees.

A matcher is any callable that takes a node and raises when the node does
not match. Validators handed to the matcher builders follow the same rule:
they take the typed node and raise to signal a failure.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from .nodes import Component, CoreModule, NestedComponent

Matcher = Callable[[Any], None]


class MatchError(AssertionError):
    """Raised when a node does not satisfy a matcher."""


def _check_type(node: Any, expected: type) -> None:
    if not isinstance(node, expected):
        raise MatchError(f"expected {expected.__name__}, got {type(node).__name__}")


def _run_validators(node: Any, validators: List[Callable[[Any], Any]], label: str) -> None:
    for index, validator in enumerate(validators):
        try:
            validator(node)
        except Exception as exc:
            raise MatchError(f"{label} validator {index} failed: {exc}") from exc


class ComponentMatcher:
    """Checks a Component with validators and, optionally, per-definition matchers."""

    def __init__(self, *args: Callable[[Component], Any]) -> None:
        self._validators: List[Callable[[Component], Any]] = list(args)
        self._definition_matchers: List[Matcher] = []
        self._validate_definitions = False

    def with_definitions(self, *args: Matcher) -> "ComponentMatcher":
        """Require exactly these definitions, each checked by its matcher."""
        self._definition_matchers = list(args)
        self._validate_definitions = True
        return self

    def match(self, node: Any) -> None:
        """Raise MatchError unless ``node`` is a matching Component."""
        _check_type(node, Component)
        _run_validators(node, self._validators, "component")
        if not self._validate_definitions:
            return
        definitions = node.definitions
        if len(definitions) != len(self._definition_matchers):
            raise MatchError(
                "definition count mismatch: expected "
                f"{len(self._definition_matchers)}, got {len(definitions)}"
            )
        for index, (matcher, definition) in enumerate(
            zip(self._definition_matchers, definitions)
        ):
            try:
                matcher(definition)
            except Exception as exc:
                raise MatchError(f"definition {index}: {exc}") from exc

    def __call__(self, node: Any) -> None:
        self.match(node)


class CoreModuleMatcher:
    """Checks a CoreModule with a list of validators."""

    def __init__(self, *args: Callable[[CoreModule], Any]) -> None:
        self._validators: List[Callable[[CoreModule], Any]] = list(args)

    def with_raw_size(self, min_size: int) -> "CoreModuleMatcher":
        """Require the raw module to hold at least ``min_size`` bytes."""

        def check(module: CoreModule) -> None:
            if len(module.raw) < min_size:
                raise MatchError(
                    "core module raw size too small: expected at least "
                    f"{min_size}, got {len(module.raw)}"
                )

        self._validators.append(check)
        return self

    def with_validator(self, validator: Callable[[CoreModule], Any]) -> "CoreModuleMatcher":
        """Add a validator to run against the module."""
        self._validators.append(validator)
        return self

    def match(self, node: Any) -> None:
        """Raise MatchError unless ``node`` is a matching CoreModule."""
        _check_type(node, CoreModule)
        _run_validators(node, self._validators, "core module")

    def __call__(self, node: Any) -> None:
        self.match(node)


class NestedComponentMatcher:
    """Checks a NestedComponent and, optionally, the component inside it."""

    def __init__(self, *args: Callable[[NestedComponent], Any]) -> None:
        self._validators: List[Callable[[NestedComponent], Any]] = list(args)
        self._component_matcher: Optional[Matcher] = None

    def with_component(self, matcher: Matcher) -> "NestedComponentMatcher":
        """Check the inner component with ``matcher``."""
        self._component_matcher = matcher
        return self

    def match(self, node: Any) -> None:
        """Raise MatchError unless ``node`` is a matching NestedComponent."""
        _check_type(node, NestedComponent)
        _run_validators(node, self._validators, "nested component")
        if self._component_matcher is not None:
            try:
                self._component_matcher(node.component)
            except Exception as exc:
                raise MatchError(f"nested component: {exc}") from exc

    def __call__(self, node: Any) -> None:
        self.match(node)


def match_component(*args: Callable[[Component], Any]) -> ComponentMatcher:
    """Start a component matcher with optional validators."""
    return ComponentMatcher(*args)


def match_core_module(*args: Callable[[CoreModule], Any]) -> CoreModuleMatcher:
    """Start a core module matcher with optional validators."""
    return CoreModuleMatcher(*args)


def match_nested_component(*args: Callable[[NestedComponent], Any]) -> NestedComponentMatcher:
    """Start a nested component matcher with optional validators."""
    return NestedComponentMatcher(*args)


def any_component() -> Matcher:
    """Match any Component."""
    return match_component().match


def any_core_module() -> Matcher:
    """Match any CoreModule."""
    return match_core_module().match


def _accept(node: Any) -> None:
    return None


def any_definition() -> Matcher:
    """Match any node at all."""
    return _accept


def any_export() -> Matcher:
    """Match any node at all."""
    return _accept


def count_definitions(expected_count: int) -> Matcher:
    """Match a Component with exactly ``expected_count`` definitions."""

    def check(node: Any) -> None:
        matchers = [any_definition() for _ in range(expected_count)]
        match_component().with_definitions(*matchers).match(node)

    return check


def empty_component() -> Matcher:
    """Match a Component with no definitions."""
    return match_component().with_definitions().match


def component_with_definition_count(count: int) -> Matcher:
    """Match a Component with exactly ``count`` definitions."""
    return count_definitions(count)


def not_(matcher: Matcher) -> Matcher:
    """Match exactly the nodes that ``matcher`` rejects."""

    def check(node: Any) -> None:
        try:
            matcher(node)
        except Exception:
            return
        raise MatchError("expected matcher to fail, but it passed")

    return check


def all_of(*args: Matcher) -> Matcher:
    """Match when every given matcher matches."""

    def check(node: Any) -> None:
        for index, matcher in enumerate(args):
            try:
                matcher(node)
            except Exception as exc:
                raise MatchError(f"matcher {index} failed: {exc}") from exc

    return check


def any_of(*args: Matcher) -> Matcher:
    """Match when at least one given matcher matches."""

    def check(node: Any) -> None:
        last_error: Optional[Exception] = None
        for matcher in args:
            try:
                matcher(node)
            except Exception as exc:
                last_error = exc
            else:
                return
        raise MatchError(f"all matchers failed, last error: {last_error}")

    return check