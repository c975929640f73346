"""
Answer key configuration.

The answer key file is a YAML document loaded once at process start and
treated as immutable afterwards:

    intelligence:
      categories:          # aptitude categories, in tie-break order
        - linguistic
        - logical
        - interpersonal
    initial:               # pre-assessment key: question id -> correct answer
      q1: "b"
    final:                 # post-assessment key
      q1: "c"
    units:                 # one key per unit id
      unit-1:
        q1: "a"

Correct answers are compared as strings, so every value is normalized with
str() at load time. Quote answers such as ``yes``/``no`` in YAML to keep
them from being parsed as booleans.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from quizprogress.models.models import QuizType

logger = logging.getLogger(__name__)


class AnswerKeyConfigError(Exception):
    """Raised when the answer key file is missing or malformed."""

    pass


@dataclass(frozen=True)
class AnswerKeyConfig:
    """Immutable answer keys plus the declared aptitude category order."""

    aptitude_categories: tuple[str, ...]
    quiz_keys: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    unit_keys: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def key_for(
        self, quiz_type: QuizType, unit_id: Optional[str] = None
    ) -> Optional[Mapping[str, str]]:
        """Return the answer key for a knowledge quiz, or None if not configured.

        Unit quizzes are keyed by unit id; pre/post-assessments by quiz type.
        The aptitude quiz has no answer key.
        """
        if quiz_type == QuizType.UNIT:
            if unit_id is None:
                return None
            return self.unit_keys.get(unit_id)
        if quiz_type == QuizType.INTELLIGENCE:
            return None
        return self.quiz_keys.get(quiz_type.value)

    @property
    def unit_ids(self) -> tuple[str, ...]:
        """Configured unit ids, in declaration order."""
        return tuple(self.unit_keys)


def _freeze_key(name: str, raw: Any) -> Mapping[str, str]:
    if not isinstance(raw, dict) or not raw:
        raise AnswerKeyConfigError(
            f"Answer key '{name}' must be a non-empty mapping of question id to answer"
        )
    return MappingProxyType({str(qid): str(answer) for qid, answer in raw.items()})


def parse_answer_keys(data: Mapping[str, Any]) -> AnswerKeyConfig:
    """
    Build an AnswerKeyConfig from parsed YAML data.

    Args:
        data: Mapping produced by yaml.safe_load

    Returns:
        AnswerKeyConfig with read-only mappings

    Raises:
        AnswerKeyConfigError: If the aptitude categories are missing or
            duplicated, or an answer key is not a non-empty mapping
    """
    aptitude = data.get(QuizType.INTELLIGENCE.value) or {}
    categories = aptitude.get("categories") if isinstance(aptitude, dict) else None
    if not categories or not isinstance(categories, list):
        raise AnswerKeyConfigError(
            "intelligence.categories must list the aptitude categories in tie-break order"
        )
    category_names = tuple(str(c) for c in categories)
    if len(set(category_names)) != len(category_names):
        raise AnswerKeyConfigError(
            f"intelligence.categories contains duplicates: {list(category_names)}"
        )

    quiz_keys = {}
    for quiz_type in (QuizType.INITIAL, QuizType.FINAL):
        raw = data.get(quiz_type.value)
        if raw is not None:
            quiz_keys[quiz_type.value] = _freeze_key(quiz_type.value, raw)

    raw_units = data.get("units") or {}
    if not isinstance(raw_units, dict):
        raise AnswerKeyConfigError("units must map unit ids to answer keys")
    unit_keys = {
        str(unit_id): _freeze_key(f"units.{unit_id}", raw)
        for unit_id, raw in raw_units.items()
    }

    return AnswerKeyConfig(
        aptitude_categories=category_names,
        quiz_keys=MappingProxyType(quiz_keys),
        unit_keys=MappingProxyType(unit_keys),
    )


def load_answer_keys(path: Path | str) -> AnswerKeyConfig:
    """
    Load the answer key file.

    Args:
        path: Path to the YAML answer key file

    Returns:
        Parsed, immutable AnswerKeyConfig

    Raises:
        AnswerKeyConfigError: If the file is missing, unreadable or malformed
    """
    config_path = Path(path)
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise AnswerKeyConfigError(f"Answer key file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise AnswerKeyConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise AnswerKeyConfigError(f"Answer key file must contain a mapping: {config_path}")

    config = parse_answer_keys(data)
    logger.info(
        f"Loaded answer keys from {config_path}: "
        f"{len(config.aptitude_categories)} aptitude categories, "
        f"{len(config.quiz_keys)} assessments, {len(config.unit_keys)} units"
    )
    return config
