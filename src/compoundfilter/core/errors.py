"""
Structured failures raised by normalization and wire conversion.

Editor operations never raise; only the apply pipeline (normalize, rewrite,
validate) reports these so the caller can highlight the offending node.
"""

from typing import Iterable, Optional


class FilterError(ValueError):
    """Base class for all filter pipeline failures."""


class UnsupportedNegationError(FilterError):
    """A negated group contains operators that have no API complement."""

    def __init__(self, operators: Iterable[str]):
        self.operators = frozenset(str(op) for op in operators)
        listed = ", ".join(sorted(self.operators))
        super().__init__(f"Unsupported conditions for NOT: {listed}")


class IncompleteRuleError(FilterError):
    """A rule without a property or property type reached conversion."""

    def __init__(self, path: tuple[int, ...] = ()):
        self.path = tuple(path)
        super().__init__(f"Cannot convert incomplete filter condition at path {list(self.path)}")


class InvalidStructureError(FilterError):
    """The tree or the emitted wire object violates a structural invariant."""

    def __init__(self, reason: str, path: Optional[tuple[int, ...]] = None):
        self.reason = reason
        self.path = tuple(path) if path is not None else None
        if self.path is None:
            super().__init__(reason)
        else:
            super().__init__(f"{reason} (at path {list(self.path)})")


class ExpansionLimitError(FilterError):
    """Distributive expansion would produce more leaves than allowed."""

    def __init__(self, limit: int, required: int):
        self.limit = limit
        self.required = required
        super().__init__(
            f"Filter expansion needs at least {required} conditions, "
            f"more than the limit of {limit}"
        )
