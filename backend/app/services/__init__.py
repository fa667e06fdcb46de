"""Services for the E/M Level Service.

Services implement business logic:
- EMClassifierService: 2-of-3 E/M level determination
- EMInferenceService: LLM-inferred complexity feeding the classifier
"""

from app.services.em_classifier import (
    EMClassification,
    EMClassifierService,
    EMLevel,
    EMLevelInfo,
    ExamLevel,
    HistoryLevel,
    MDMLevel,
    UnrecognizedComplexityError,
    classify_em_level,
    get_em_classifier_service,
)
from app.services.em_inference import (
    EMInferenceError,
    EMInferenceResult,
    EMInferenceService,
    EMInferenceUnavailableError,
    EncounterContext,
    get_em_inference_service,
)

__all__ = [
    # Classifier
    "EMClassification",
    "EMClassifierService",
    "EMLevel",
    "EMLevelInfo",
    "ExamLevel",
    "HistoryLevel",
    "MDMLevel",
    "UnrecognizedComplexityError",
    "classify_em_level",
    "get_em_classifier_service",
    # Inference
    "EMInferenceError",
    "EMInferenceResult",
    "EMInferenceService",
    "EMInferenceUnavailableError",
    "EncounterContext",
    "get_em_inference_service",
]
