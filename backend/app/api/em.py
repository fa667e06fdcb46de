"""E/M Level API Endpoints.

Provides Evaluation and Management (E/M) level determination:
- Calculate: 2-of-3 rule over history, exam and MDM complexity
- AI-assisted calculation: complexities inferred from encounter documentation
- Reference: E/M level metadata and accepted complexity values
"""

from fastapi import APIRouter, HTTPException, Request

from app.core.audit import log_em_calculation
from app.core.config import settings
from app.core.security import RequireAuth
from app.schemas.em import (
    CalculationSource,
    ComplexityOptionsResponse,
    EMCalculateRequest,
    EMCalculateResponse,
    EMLevelResponse,
    EMRanks,
)
from app.services.em_classifier import (
    EMClassification,
    EMLevel,
    EMLevelInfo,
    UnrecognizedComplexityError,
    complexity_options,
    get_em_classifier_service,
)
from app.services.em_inference import (
    EMInferenceError,
    EMInferenceUnavailableError,
    EncounterContext,
    get_em_inference_service,
)

router = APIRouter(prefix="/em", tags=["E/M Coding"])


def _client_ip(http_request: Request) -> str | None:
    return http_request.client.host if http_request.client else None


def _to_response(
    classification: EMClassification,
    reasoning: str,
    source: CalculationSource,
    details: dict,
    model_suggested_code: str | None = None,
) -> EMCalculateResponse:
    info = classification.info
    return EMCalculateResponse(
        code=classification.code.value,
        name=info.name,
        description=info.description,
        ranks=EMRanks(**classification.ranks),
        determining_rank=classification.determining_rank,
        unrecognized=classification.unrecognized,
        reasoning=reasoning,
        source=source,
        details=details,
        model_suggested_code=model_suggested_code,
    )


def _level_response(info: EMLevelInfo) -> EMLevelResponse:
    return EMLevelResponse(
        code=info.code.value,
        name=info.name,
        description=info.description,
        work_rvu=info.work_rvu,
        assignable=info.code != EMLevel.LEVEL_1,
    )


# ============================================================================
# Calculation Endpoint
# ============================================================================


@router.post(
    "/calculate",
    response_model=EMCalculateResponse,
    summary="Calculate E/M level",
    description="Determine the E/M code from complexity ratings, or infer the ratings from documentation.",
)
def calculate_em_level(
    request: EMCalculateRequest,
    http_request: Request,
    _auth: RequireAuth,
) -> EMCalculateResponse:
    """Calculate the E/M level for an encounter.

    - **Manual**: when all three complexities are given, or no documentation is
      given, the 2-of-3 rule runs directly. Missing complexities count as the
      lowest rank.
    - **AI**: otherwise the language model rates all three complexities from
      the documentation and the same rule runs on its ratings. Complexities the
      caller did supply are not used; they are echoed back under
      `details["ignored_complexities"]`.
    """
    ip_address = _client_ip(http_request)
    context = EncounterContext(
        transcript=request.transcript,
        soap_note=request.soap_note,
        encounter_type=request.encounter_type,
        chief_complaint=request.chief_complaint,
        vitals=request.vitals,
        patient_age=request.patient_age,
    )

    if request.has_all_complexities() or not context.has_content():
        strict = settings.em_strict_parsing if request.strict is None else request.strict
        try:
            classification = get_em_classifier_service().classify(
                request.history, request.exam, request.mdm, strict=strict
            )
        except UnrecognizedComplexityError as e:
            log_em_calculation(
                code=None,
                source=CalculationSource.MANUAL.value,
                encounter_id=request.encounter_id,
                ip_address=ip_address,
                error=str(e),
            )
            raise HTTPException(
                status_code=422,
                detail={"message": str(e), "axis": e.axis.value, "value": e.value},
            )

        log_em_calculation(
            code=classification.code.value,
            source=CalculationSource.MANUAL.value,
            encounter_id=request.encounter_id,
            ip_address=ip_address,
            ranks=classification.ranks,
            unrecognized=classification.unrecognized,
        )

        return _to_response(
            classification,
            reasoning=(
                f"Based on provided complexities: History={request.history}, "
                f"Exam={request.exam}, MDM={request.mdm}"
            ),
            source=CalculationSource.MANUAL,
            details={
                "history_complexity": request.history,
                "exam_complexity": request.exam,
                "mdm_complexity": request.mdm,
            },
        )

    try:
        result = get_em_inference_service().infer(context)
    except EMInferenceUnavailableError as e:
        log_em_calculation(
            code=None,
            source=CalculationSource.AI.value,
            encounter_id=request.encounter_id,
            ip_address=ip_address,
            error=str(e),
        )
        raise HTTPException(status_code=503, detail=f"AI-assisted E/M calculation unavailable: {e}")
    except EMInferenceError as e:
        log_em_calculation(
            code=None,
            source=CalculationSource.AI.value,
            encounter_id=request.encounter_id,
            ip_address=ip_address,
            error=str(e),
        )
        raise HTTPException(status_code=502, detail=f"Failed to calculate E/M level: {e}")

    log_em_calculation(
        code=result.classification.code.value,
        source=CalculationSource.AI.value,
        encounter_id=request.encounter_id,
        ip_address=ip_address,
        ranks=result.classification.ranks,
        unrecognized=result.classification.unrecognized,
    )

    details = dict(result.details)
    ignored = request.supplied_complexities()
    if ignored:
        details["ignored_complexities"] = ignored

    return _to_response(
        result.classification,
        reasoning=result.reasoning,
        source=CalculationSource.AI,
        details=details,
        model_suggested_code=result.model_suggested_code,
    )


# ============================================================================
# Reference Endpoints
# ============================================================================


@router.get(
    "/levels",
    response_model=list[EMLevelResponse],
    summary="List E/M levels",
)
async def list_levels(_auth: RequireAuth) -> list[EMLevelResponse]:
    """List office visit E/M levels 99211-99215 with documentation requirements."""
    return [_level_response(info) for info in get_em_classifier_service().get_levels()]


@router.get(
    "/levels/{code}",
    response_model=EMLevelResponse,
    summary="Get E/M level",
)
async def get_level(code: str, _auth: RequireAuth) -> EMLevelResponse:
    """Get metadata for a single E/M code."""
    info = get_em_classifier_service().get_level(code)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Unknown E/M code: {code}")
    return _level_response(info)


@router.get(
    "/complexity-levels",
    response_model=ComplexityOptionsResponse,
    summary="List accepted complexity values",
)
async def list_complexity_levels(_auth: RequireAuth) -> ComplexityOptionsResponse:
    """Accepted values for each complexity axis, lowest first."""
    return ComplexityOptionsResponse(**complexity_options())
