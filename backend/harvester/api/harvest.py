import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from harvester.api.deps import get_pipeline
from harvester.core.config import get_settings
from harvester.core.errors import HarvestError
from harvester.services.pipeline import HarvestPipeline
from harvester.workers.jobs import persist_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["harvest"])


@router.get("/harvest")
async def harvest_listings(
    keyword: str | None = None,
    max_pages: int = Query(default=1, ge=1),
    pipeline: HarvestPipeline = Depends(get_pipeline),
) -> List[Dict[str, Any]]:
    """Harvest ``max_pages`` listing pages for ``keyword``, e.g. ``/v1/harvest?keyword=nike&max_pages=3``."""
    if not keyword or not keyword.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing keyword query")

    try:
        result = await pipeline.run(keyword, max_pages)
        persist_result(result, get_settings().output_path, get_settings().raw_output_path)
    except HarvestError as exc:
        logger.exception("Harvest failed for %r", keyword)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return [record.to_artifact() for record in result.records]
