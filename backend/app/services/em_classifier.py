"""E/M Level Classifier.

Determines the office-visit Evaluation and Management (E/M) code for an
established patient (99212-99215) from three complexity axes:

- History: problem-focused, expanded-problem-focused, detailed, comprehensive
- Exam: problem-focused, expanded-problem-focused, detailed, comprehensive
- Medical Decision Making (MDM): straightforward, low, moderate, high

Each axis maps to a rank 1-4. The visit is coded at the level reached by at
least two of the three axes (the "2 of 3" rule), i.e. the second-highest rank.

Note: CPT codes are owned by the American Medical Association (AMA).
Code suggestions should be verified by qualified medical coders.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
import threading

logger = logging.getLogger(__name__)


class HistoryLevel(str, Enum):
    """History complexity."""

    PROBLEM_FOCUSED = "problem-focused"
    EXPANDED_PROBLEM_FOCUSED = "expanded-problem-focused"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self) + 1


class ExamLevel(str, Enum):
    """Physical exam complexity."""

    PROBLEM_FOCUSED = "problem-focused"
    EXPANDED_PROBLEM_FOCUSED = "expanded-problem-focused"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self) + 1


class MDMLevel(str, Enum):
    """Medical decision making complexity."""

    STRAIGHTFORWARD = "straightforward"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self) + 1


class EMLevel(str, Enum):
    """Established patient office visit codes."""

    LEVEL_1 = "99211"
    LEVEL_2 = "99212"
    LEVEL_3 = "99213"
    LEVEL_4 = "99214"
    LEVEL_5 = "99215"


class Axis(str, Enum):
    """The three complexity axes."""

    HISTORY = "history"
    EXAM = "exam"
    MDM = "mdm"


# Shared vocabulary: any axis accepts any term at its rank
COMPLEXITY_RANKS: dict[str, int] = {
    "problem-focused": 1,
    "expanded-problem-focused": 2,
    "detailed": 3,
    "comprehensive": 4,
    "straightforward": 1,
    "low": 2,
    "moderate": 3,
    "high": 4,
}

MIN_RANK = 1
MAX_RANK = 4


@dataclass(frozen=True)
class EMLevelInfo:
    """Reference metadata for an E/M code."""

    code: EMLevel
    name: str
    description: str
    work_rvu: float


# 2021/2023 CMS office visit guidelines
EM_LEVELS: dict[EMLevel, EMLevelInfo] = {
    EMLevel.LEVEL_1: EMLevelInfo(
        code=EMLevel.LEVEL_1,
        name="Level 1",
        description="Minimal complexity, minimal documentation",
        work_rvu=0.18,
    ),
    EMLevel.LEVEL_2: EMLevelInfo(
        code=EMLevel.LEVEL_2,
        name="Level 2",
        description="Straightforward, minimal complexity",
        work_rvu=0.70,
    ),
    EMLevel.LEVEL_3: EMLevelInfo(
        code=EMLevel.LEVEL_3,
        name="Level 3",
        description="Low complexity, requires 2 of 3: problem-focused history, exam, straightforward MDM",
        work_rvu=1.30,
    ),
    EMLevel.LEVEL_4: EMLevelInfo(
        code=EMLevel.LEVEL_4,
        name="Level 4",
        description="Moderate complexity, requires 2 of 3: detailed history, exam, moderate MDM",
        work_rvu=1.92,
    ),
    EMLevel.LEVEL_5: EMLevelInfo(
        code=EMLevel.LEVEL_5,
        name="Level 5",
        description="High complexity, requires 2 of 3: comprehensive history, exam, high MDM",
        work_rvu=2.80,
    ),
}


class UnrecognizedComplexityError(ValueError):
    """Raised in strict mode when an axis value is not a known complexity level."""

    def __init__(self, axis: Axis, value: str) -> None:
        self.axis = axis
        self.value = value
        super().__init__(f"Unrecognized {axis.value} complexity: {value!r}")


@dataclass
class EMClassification:
    """Result of E/M level classification."""

    code: EMLevel
    history_rank: int
    exam_rank: int
    mdm_rank: int
    determining_rank: int  # Second-highest rank, which selects the code
    unrecognized: list[str] = field(default_factory=list)  # Axes whose input did not parse

    @property
    def info(self) -> EMLevelInfo:
        return EM_LEVELS[self.code]

    @property
    def ranks(self) -> dict[str, int]:
        return {
            Axis.HISTORY.value: self.history_rank,
            Axis.EXAM.value: self.exam_rank,
            Axis.MDM.value: self.mdm_rank,
        }

    def to_dict(self) -> dict:
        """Serialize to the response contract."""
        return {
            "code": self.code.value,
            "name": self.info.name,
            "description": self.info.description,
            "ranks": self.ranks,
            "determining_rank": self.determining_rank,
            "unrecognized": list(self.unrecognized),
        }


# ============================================================================
# Parsing
# ============================================================================

_SEPARATORS = re.compile(r"[\s_]+")


def normalize_complexity(value: str | None) -> str:
    """Lowercase and hyphenate a complexity string ("Expanded Problem_Focused" -> "expanded-problem-focused")."""
    if not value:
        return ""
    return _SEPARATORS.sub("-", value.strip().lower())


def complexity_rank(value: str | None) -> int:
    """Rank 1-4 for a complexity string. Unknown or empty input is rank 1."""
    return COMPLEXITY_RANKS.get(normalize_complexity(value), MIN_RANK)


def _parse(level_type: type, value: str | None):
    rank = COMPLEXITY_RANKS.get(normalize_complexity(value))
    if rank is None:
        return None
    return list(level_type)[rank - 1]


def parse_history_level(value: str | None) -> HistoryLevel | None:
    """Parse a history complexity, or None if unrecognized."""
    return _parse(HistoryLevel, value)


def parse_exam_level(value: str | None) -> ExamLevel | None:
    """Parse an exam complexity, or None if unrecognized."""
    return _parse(ExamLevel, value)


def parse_mdm_level(value: str | None) -> MDMLevel | None:
    """Parse an MDM complexity, or None if unrecognized."""
    return _parse(MDMLevel, value)


_PARSERS = {
    Axis.HISTORY: parse_history_level,
    Axis.EXAM: parse_exam_level,
    Axis.MDM: parse_mdm_level,
}


def resolve_axis_rank(axis: Axis, value: str | None, strict: bool = False) -> tuple[int, bool]:
    """Resolve one axis to its rank.

    Args:
        axis: Which axis the value belongs to
        value: Raw input string (may be None or empty)
        strict: Raise instead of degrading when a non-empty value does not parse

    Returns:
        Tuple of (rank, recognized). Empty input counts as recognized.

    Raises:
        UnrecognizedComplexityError: strict mode and a non-empty value did not parse
    """
    if not normalize_complexity(value):
        return MIN_RANK, True

    level = _PARSERS[axis](value)
    if level is not None:
        return level.rank, True

    if strict:
        raise UnrecognizedComplexityError(axis, value)
    return MIN_RANK, False


# ============================================================================
# Classification
# ============================================================================


def em_code_for_rank(rank: int) -> EMLevel:
    """Map a determining rank to its E/M code."""
    if rank >= 4:
        return EMLevel.LEVEL_5
    if rank >= 3:
        return EMLevel.LEVEL_4
    if rank >= 2:
        return EMLevel.LEVEL_3
    return EMLevel.LEVEL_2


def classify_em_level(
    history: str | None = None,
    exam: str | None = None,
    mdm: str | None = None,
    strict: bool = False,
) -> EMClassification:
    """Classify an encounter by the 2-of-3 rule.

    Args:
        history: History complexity
        exam: Exam complexity
        mdm: Medical decision making complexity
        strict: Reject unrecognized non-empty values instead of treating them as rank 1

    Returns:
        EMClassification with the code and the ranks used.

    Raises:
        UnrecognizedComplexityError: Only when strict is True.
    """
    ranks: dict[Axis, int] = {}
    unrecognized: list[str] = []

    for axis, value in ((Axis.HISTORY, history), (Axis.EXAM, exam), (Axis.MDM, mdm)):
        rank, recognized = resolve_axis_rank(axis, value, strict=strict)
        ranks[axis] = rank
        if not recognized:
            unrecognized.append(axis.value)

    determining = sorted(ranks.values(), reverse=True)[1]

    return EMClassification(
        code=em_code_for_rank(determining),
        history_rank=ranks[Axis.HISTORY],
        exam_rank=ranks[Axis.EXAM],
        mdm_rank=ranks[Axis.MDM],
        determining_rank=determining,
        unrecognized=unrecognized,
    )


def get_em_level_info(code: str | EMLevel) -> EMLevelInfo | None:
    """Look up reference metadata for a code."""
    try:
        return EM_LEVELS[EMLevel(code)]
    except ValueError:
        return None


def list_em_levels() -> list[EMLevelInfo]:
    """All reference levels, lowest first."""
    return [EM_LEVELS[level] for level in EMLevel]


def complexity_options() -> dict[str, list[str]]:
    """Accepted values for each axis, lowest first."""
    return {
        Axis.HISTORY.value: [level.value for level in HistoryLevel],
        Axis.EXAM.value: [level.value for level in ExamLevel],
        Axis.MDM.value: [level.value for level in MDMLevel],
    }


# ============================================================================
# EM Classifier Service
# ============================================================================

_em_service: "EMClassifierService | None" = None
_em_lock = threading.Lock()


def get_em_classifier_service() -> "EMClassifierService":
    """Get the singleton E/M classifier service instance."""
    global _em_service
    if _em_service is None:
        with _em_lock:
            if _em_service is None:
                _em_service = EMClassifierService()
    return _em_service


def reset_em_classifier_service() -> None:
    """Reset the singleton instance (for testing)."""
    global _em_service
    with _em_lock:
        _em_service = None


class EMClassifierService:
    """Service wrapper around the 2-of-3 classifier."""

    def __init__(self, strict: bool = False) -> None:
        """Initialize the classifier service.

        Args:
            strict: Default strictness when a call does not specify one
        """
        self.strict = strict
        self._levels = EM_LEVELS
        logger.info(f"E/M classifier initialized with {len(self._levels)} reference levels")

    def classify(
        self,
        history: str | None = None,
        exam: str | None = None,
        mdm: str | None = None,
        strict: bool | None = None,
    ) -> EMClassification:
        """Classify and log degraded inputs."""
        result = classify_em_level(
            history,
            exam,
            mdm,
            strict=self.strict if strict is None else strict,
        )

        if result.unrecognized:
            logger.warning(
                f"Unrecognized complexity for {', '.join(result.unrecognized)}; "
                f"treated as rank {MIN_RANK} (code {result.code.value})"
            )
        logger.debug(f"E/M classified {result.ranks} -> {result.code.value}")

        return result

    def get_level(self, code: str) -> EMLevelInfo | None:
        """Get reference metadata for a code."""
        return get_em_level_info(code)

    def get_levels(self) -> list[EMLevelInfo]:
        """Get all reference levels."""
        return list_em_levels()

    def get_stats(self) -> dict:
        """Get statistics about the reference table."""
        return {
            "total_levels": len(self._levels),
            "assignable_levels": sum(1 for level in self._levels if level != EMLevel.LEVEL_1),
            "axes": [axis.value for axis in Axis],
        }
