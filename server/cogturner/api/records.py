from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from cogturner.api.deps import get_pipeline
from cogturner.core.rate_limit import limiter, records_rate_limit
from cogturner.schemas.records import ErrorResponse, Record, RecordsPage
from cogturner.services.pipeline import PipelineService, RecordsResult

router = APIRouter()

PHASES = ("basic", "complete")

# Styles offered by the style picker
STYLES = [
    "House",
    "Techno",
    "Experimental",
    "Ambient",
    "Synth-pop",
    "Electro",
    "Trance",
    "Downtempo",
    "Disco",
    "Deep House",
    "Tech House",
]

SOURCE_HEADER = "X-Records-Source"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _dump(records: list[Record]) -> list[dict]:
    return [record.model_dump(mode="json", by_alias=True) for record in records]


@router.get(
    "",
    response_model=list[Record] | RecordsPage,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
@limiter.limit(records_rate_limit)
async def get_records(
    request: Request,
    style: str | None = Query(None),
    phase: str | None = Query(None),
    handle: str | None = Query(None),
    pipeline: PipelineService = Depends(get_pipeline),
) -> JSONResponse:
    """Records for a style.

    Without ``phase`` the body is a bare list of enriched records. With
    ``phase=basic`` or ``phase=complete`` it is ``{records, isComplete}``,
    plus a ``handle`` on basic responses that ``phase=complete`` accepts.
    Surrounding whitespace in ``style`` is ignored.
    """
    if style is None or not style.strip():
        return _error(400, "Style parameter is required")
    if phase is not None and phase not in PHASES:
        return _error(400, f"Unknown phase '{phase}', expected one of: {', '.join(PHASES)}")
    style = style.strip()

    result: RecordsResult
    if phase is None:
        result = await pipeline.get_records(style)
        content: list[dict] | dict = _dump(result.records)
    else:
        if phase == "basic":
            result = await pipeline.get_basic(style)
        else:
            result = await pipeline.complete(style, handle)
        content = {"records": _dump(result.records), "isComplete": result.is_complete}
        if result.handle is not None:
            content["handle"] = result.handle

    return JSONResponse(content=content, headers={SOURCE_HEADER: result.source.value})


@router.get("/styles", response_model=list[str])
def list_styles() -> list[str]:
    return STYLES
