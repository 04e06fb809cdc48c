"""Quality checks for visitor problem descriptions.

Two independent validators gate a problem before it is handed to the AI
orchestration queue:

- ``validate_problem_text`` judges text quality (length, word count and a
  repetition heuristic) for the intake form.
- ``validate_problem_input`` is the stricter domain-aware check used when the
  visitor has also picked a problem domain.

They apply different policies and are never layered on each other. Both are
total: any string yields a ValidationResult, never an exception.

The ``errors`` strings are shown verbatim by the intake form, so the wording
in ``TEXT_MESSAGES`` is part of the API contract. English is the default:

- "Description too short. Describe your problem in more detail."
- "Your text needs at least {min_words} words."
- "Text appears repetitive or invalid. Describe your actual problem."

``pt-BR`` carries the product's Portuguese copy of the same three messages.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple

import structlog

logger = structlog.get_logger()


class ProblemDomain(str, Enum):
    """Problem domains a visitor can select."""

    TECHNICAL = "technical"
    BUSINESS = "business"
    STRATEGIC = "strategic"


class ValidationResult(NamedTuple):
    """Outcome of validating a problem description."""

    valid: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=tuple(errors))

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass(frozen=True)
class ProblemTextPolicy:
    """Thresholds for ``validate_problem_text``."""

    min_length: int = 20
    min_words: int = 5
    min_repetition_ratio: float = 0.3

    @classmethod
    def from_env(cls) -> "ProblemTextPolicy":
        """Build a policy from environment overrides.

        A malformed override is logged and the default threshold is used.
        """
        return cls(
            min_length=_env_override("PROBLEM_MIN_LENGTH", cls.min_length, int),
            min_words=_env_override("PROBLEM_MIN_WORDS", cls.min_words, int),
            min_repetition_ratio=_env_override(
                "PROBLEM_MIN_REPETITION_RATIO", cls.min_repetition_ratio, float
            ),
        )


def _env_override(name: str, default, cast: Callable):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid policy override", variable=name, value=raw[:20])
        return default


DEFAULT_LANGUAGE = "en"

TEXT_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "too_short": "Description too short. Describe your problem in more detail.",
        "too_few_words": "Your text needs at least {min_words} words.",
        "repetitive": "Text appears repetitive or invalid. Describe your actual problem.",
    },
    "pt-BR": {
        "too_short": "Descrição muito curta. Descreva seu problema com mais detalhes.",
        "too_few_words": "Seu texto precisa de pelo menos {min_words} palavras.",
        "repetitive": "Texto parece repetitivo ou inválido. Descreva seu problema real.",
    },
}

# Limits for validate_problem_input
INPUT_MIN_LENGTH = 10
INPUT_MAX_LENGTH = 5000
INPUT_TOO_LONG = f"Problem description must not exceed {INPUT_MAX_LENGTH} characters"

VALID_DOMAINS = frozenset(d.value for d in ProblemDomain)


def repetition_ratio(words: list[str]) -> float:
    """Unique (case-insensitive) words over total words; 1.0 for no words."""
    if not words:
        return 1.0
    return len({w.lower() for w in words}) / len(words)


def validate_problem_text(
    text: str,
    policy: ProblemTextPolicy | None = None,
    language: str = DEFAULT_LANGUAGE,
) -> ValidationResult:
    """Validate a free-text problem description.

    Every check runs, so the result lists all deficiencies at once.

    Args:
        text: Raw description as typed by the visitor.
        policy: Thresholds to apply (environment defaults when omitted).
        language: Message language, ``en`` or ``pt-BR``.

    Returns:
        ValidationResult with messages in evaluation order.
    """
    policy = policy or ProblemTextPolicy.from_env()
    messages = TEXT_MESSAGES.get(language, TEXT_MESSAGES[DEFAULT_LANGUAGE])

    errors: list[str] = []
    trimmed = (text or "").strip()
    words = trimmed.split()

    if len(trimmed) < policy.min_length:
        errors.append(messages["too_short"])

    if len(words) < policy.min_words:
        errors.append(messages["too_few_words"].format(min_words=policy.min_words))

    if repetition_ratio(words) < policy.min_repetition_ratio:
        errors.append(messages["repetitive"])

    return ValidationResult.from_errors(errors)


def validate_problem_input(text: str, domain: str) -> ValidationResult:
    """Validate a problem description together with its selected domain."""
    errors: list[str] = []
    trimmed = (text or "").strip()

    if not trimmed:
        errors.append("Problem description is required")

    if len(trimmed) < INPUT_MIN_LENGTH:
        errors.append(f"Problem description must be at least {INPUT_MIN_LENGTH} characters")

    if len(trimmed) > INPUT_MAX_LENGTH:
        errors.append(INPUT_TOO_LONG)

    if not isinstance(domain, str) or domain not in VALID_DOMAINS:
        errors.append("Invalid domain selected")

    return ValidationResult.from_errors(errors)
