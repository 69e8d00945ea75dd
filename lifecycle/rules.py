"""
Rules — composable boolean guards for transitions.

A Rule answers one question, ``applies()``, and keeps a short diagnostic
trail, ``results()``, explaining the verdict of its last evaluation. Rules
combine into expression trees:

    rule = TrueRule() | (is_paid & ~is_blocked)
    rule = TrueRule().or_rule(FalseRule())

    rule.applies()   # evaluate
    rule.results()   # diagnostic trail
    str(rule)        # "(lifecycle.rules.TrueRule or ...)"

Composites short-circuit where the boolean operator allows it, but always
merge the results of *every* operand, latest operand first. An operand that
was skipped contributes whatever its previous evaluation left behind (or
nothing if it never ran). Diagnostic consumers rely on that order.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List


class Rule(ABC):
    """
    Base class for all rules.

    Subclasses implement ``_applies()`` and may call ``add_result()`` from
    it to explain the verdict.
    """

    def __init__(self):
        self._results: List[str] = []

    @abstractmethod
    def _applies(self) -> bool:
        """Evaluate the predicate. Must not have required side effects."""

    def applies(self) -> bool:
        """
        Evaluate the rule.

        Clears the previous diagnostic trail before evaluating. Exceptions
        raised by ``_applies()`` propagate unchanged.
        """
        self._results = []
        return bool(self._applies())

    def add_result(self, result: str) -> None:
        """Append a fact to the diagnostic trail of the current evaluation."""
        self._results.append(result)

    def results(self) -> List[str]:
        """Facts collected during the most recent ``applies()``."""
        return list(self._results)

    def to_string(self) -> str:
        """Fully qualified name of the rule."""
        return f"{self.__class__.__module__}.{self.__class__.__name__}"

    # ------------------------------------------------------------------
    # Chaining
    # ------------------------------------------------------------------

    def or_rule(self, other: "Rule") -> "OrRule":
        return OrRule(self, other)

    def and_rule(self, other: "Rule") -> "AndRule":
        return AndRule(self, other)

    def xor_rule(self, other: "Rule") -> "XorRule":
        return XorRule(self, other)

    def not_rule(self) -> "NotRule":
        return NotRule(self)

    def __or__(self, other: "Rule") -> "OrRule":
        return self.or_rule(other)

    def __and__(self, other: "Rule") -> "AndRule":
        return self.and_rule(other)

    def __xor__(self, other: "Rule") -> "XorRule":
        return self.xor_rule(other)

    def __invert__(self) -> "NotRule":
        return self.not_rule()

    def __str__(self) -> str:
        return self.to_string()


# ----------------------------------------------------------------------
# Composites
# ----------------------------------------------------------------------


class OrRule(Rule):
    """
    Only one of the two rules needs to apply.

    ``other`` is not evaluated when ``original`` applies.
    """

    def __init__(self, original: Rule, other: Rule):
        super().__init__()
        self._original = original
        self._other = other

    def _applies(self) -> bool:
        return self._original.applies() or self._other.applies()

    def results(self) -> List[str]:
        return self._other.results() + self._original.results()

    def to_string(self) -> str:
        return f"({self._original.to_string()} or {self._other.to_string()})"


class AndRule(Rule):
    """
    Both rules need to apply.

    ``other`` is not evaluated when ``original`` does not apply.
    """

    def __init__(self, original: Rule, other: Rule):
        super().__init__()
        self._original = original
        self._other = other

    def _applies(self) -> bool:
        return self._original.applies() and self._other.applies()

    def results(self) -> List[str]:
        return self._other.results() + self._original.results()

    def to_string(self) -> str:
        return f"({self._original.to_string()} and {self._other.to_string()})"


class XorRule(Rule):
    """Exactly one of the two rules needs to apply. Both are always evaluated."""

    def __init__(self, original: Rule, other: Rule):
        super().__init__()
        self._original = original
        self._other = other

    def _applies(self) -> bool:
        return self._original.applies() != self._other.applies()

    def results(self) -> List[str]:
        return self._other.results() + self._original.results()

    def to_string(self) -> str:
        return f"({self._original.to_string()} xor {self._other.to_string()})"


class NotRule(Rule):
    """Inverts the verdict of the wrapped rule."""

    def __init__(self, rule: Rule):
        super().__init__()
        self._rule = rule

    def _applies(self) -> bool:
        return not self._rule.applies()

    def results(self) -> List[str]:
        return self._rule.results()

    def to_string(self) -> str:
        return f"(not {self._rule.to_string()})"


# ----------------------------------------------------------------------
# Leaves
# ----------------------------------------------------------------------


class TrueRule(Rule):
    """Always applies."""

    def _applies(self) -> bool:
        self.add_result("true")
        return True


class FalseRule(Rule):
    """Never applies."""

    def _applies(self) -> bool:
        self.add_result("false")
        return False


class PredicateRule(Rule):
    """
    Wraps a plain callable as a rule.

    Positional and keyword arguments are captured at construction and
    passed on every evaluation.

    Example:
        def older_than(customer, days):
            return customer.age_days > days

        rule = PredicateRule(older_than, customer, 30)
    """

    def __init__(self, predicate: Callable[..., Any], *args, **kwargs):
        super().__init__()
        self._predicate = predicate
        self._args = args
        self._kwargs = kwargs

    @property
    def predicate_name(self) -> str:
        return getattr(self._predicate, "__name__", repr(self._predicate))

    def _applies(self) -> bool:
        verdict = bool(self._predicate(*self._args, **self._kwargs))
        self.add_result(f"{self.predicate_name} -> {verdict}")
        return verdict

    def to_string(self) -> str:
        return f"{super().to_string()}({self.predicate_name})"
