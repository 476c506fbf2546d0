from fastapi import HTTPException, status

from harvester.core.config import get_settings
from harvester.services.pipeline import HarvestPipeline
from harvester.workers.jobs import CONNECTORS, DEFAULT_SOURCE, build_pipeline


def get_pipeline(source: str = DEFAULT_SOURCE) -> HarvestPipeline:
    if source not in CONNECTORS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown source {source!r}; expected one of {', '.join(sorted(CONNECTORS))}",
        )
    return build_pipeline(source, get_settings())
