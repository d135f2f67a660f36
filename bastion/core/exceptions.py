"""
Error taxonomy.

- ConfigurationError: fatal, raised while settings or the registry load.
- EvaluationError: recoverable, the resolver drops the offending ability.
- Invariant errors: raised when an invalid record is constructed.

Storage and cache failures are not wrapped here; SQLAlchemy and redis
exceptions reach the caller untouched.
"""

from typing import Any


class BastionError(Exception):
    """Base class for all engine errors."""


# ============================================================
# CONFIGURATION
# ============================================================

class ConfigurationError(BastionError):
    """Invalid or conflicting configuration."""


class MorphKeyViolationError(ConfigurationError):
    """An entity type was referenced without an enforced key mapping."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(
            f"No key mapping configured for '{type_name}' while key maps are enforced"
        )


# ============================================================
# EVALUATION
# ============================================================

class EvaluationError(BastionError):
    """A constraint or proposition could not be evaluated."""


class InvalidOperatorError(EvaluationError):
    def __init__(self, operator: Any):
        self.operator = operator
        super().__init__(f"Invalid comparison operator: {operator!r}")


class InvalidLogicalOperatorError(EvaluationError):
    def __init__(self, operator: Any):
        self.operator = operator
        super().__init__(
            f"Logical operator must be 'and' or 'or', got {operator!r}"
        )


class MissingContextPathError(EvaluationError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path '{path}' does not resolve in the evaluation context")


class InvalidPatternError(EvaluationError):
    def __init__(self, pattern: Any, reason: str):
        self.pattern = pattern
        super().__init__(f"Invalid regular expression {pattern!r}: {reason}")


class UndecodablePropositionError(EvaluationError):
    """Stored proposition is neither a recognized recipe nor a known opaque format."""


class InvalidPropositionArgumentError(EvaluationError, ValueError):
    """A proposition helper was called with unusable arguments."""


# ============================================================
# INVARIANTS / STORAGE
# ============================================================

class InvalidAbilityError(BastionError, ValueError):
    """Ability subject fields violate the subject invariant."""


class ModelNotPersistedError(BastionError):
    def __init__(self, type_tag: str):
        self.type_tag = type_tag
        super().__init__(
            f"The '{type_tag}' instance has no identity yet. "
            "Grant on the class to cover all of its instances."
        )


class RecordNotFoundError(BastionError, LookupError):
    """A role or ability that must exist was not found."""


class DuplicateRecordError(BastionError):
    """A concurrent writer inserted the same natural key first."""


class UnknownEntityTypeError(BastionError, LookupError):
    def __init__(self, type_tag: str, available: list[str]):
        self.type_tag = type_tag
        super().__init__(
            f"Unknown entity type: '{type_tag}'. Available: {available}"
        )
