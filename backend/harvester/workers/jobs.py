import argparse
import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from harvester.connectors.base import BaseConnector
from harvester.connectors.ebay import BASE_URL as EBAY_BASE_URL
from harvester.connectors.ebay import EbayConnector
from harvester.connectors.example_marketplace import BASE_URL as EXAMPLE_BASE_URL
from harvester.connectors.example_marketplace import ExampleMarketplaceConnector
from harvester.core.config import Settings, get_settings
from harvester.core.errors import FatalFailure
from harvester.core.logging_config import setup_logging
from harvester.schemas import HarvestResult, NormalizedRecord
from harvester.services.ai_provider import get_ai_provider
from harvester.services.normalization import Normalizer
from harvester.services.pipeline import HarvestPipeline

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "ebay"


@dataclass(frozen=True)
class ConnectorConfig:
    factory: Callable[[Settings], BaseConnector]
    base_url: str


CONNECTORS: Dict[str, ConnectorConfig] = {
    "ebay": ConnectorConfig(
        factory=lambda settings: EbayConnector(
            headless=settings.browser_headless,
            selector_timeout=settings.selector_timeout_seconds,
            description_timeout=settings.description_timeout_seconds,
        ),
        base_url=EBAY_BASE_URL,
    ),
    "example_marketplace": ConnectorConfig(
        factory=lambda settings: ExampleMarketplaceConnector(),
        base_url=EXAMPLE_BASE_URL,
    ),
}


def get_connector_config(source: str) -> ConnectorConfig:
    config = CONNECTORS.get(source)
    if config is None:
        logger.warning("Unknown source %r, using example marketplace", source)
        return CONNECTORS["example_marketplace"]
    return config


def build_pipeline(source: str = DEFAULT_SOURCE, settings: Settings | None = None) -> HarvestPipeline:
    settings = settings or get_settings()
    connector = get_connector_config(source).factory(settings)
    normalizer = Normalizer(get_ai_provider(settings), timeout=settings.ai_timeout_seconds)
    return HarvestPipeline.from_settings(connector, normalizer, settings)


def write_artifact(path: str | Path, payload: List[Dict[str, Any]]) -> Path:
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        raise FatalFailure(f"Unable to write harvest artifact {target}: {exc}") from exc
    return target


def persist_result(result: HarvestResult, output_path: str | Path, raw_output_path: str | Path | None = None) -> Path:
    target = write_artifact(output_path, [record.to_artifact() for record in result.records])
    logger.info("Harvest saved %s records to %s", len(result.records), target)
    if raw_output_path:
        raw_target = write_artifact(raw_output_path, [raw.model_dump() for raw in result.raw_records])
        logger.info("Raw records saved to %s", raw_target)
    return target


async def harvest(
    key: str,
    max_pages: int = 1,
    source: str = DEFAULT_SOURCE,
    output_path: str | Path | None = None,
    pipeline: HarvestPipeline | None = None,
) -> List[NormalizedRecord]:
    settings = get_settings()
    pipeline = pipeline or build_pipeline(source, settings)
    result = await pipeline.run(key, max_pages)
    persist_result(result, output_path or settings.output_path, settings.raw_output_path)
    return result.records


def run_harvest(key: str, max_pages: int = 1, source: str = DEFAULT_SOURCE, output_path: str | None = None) -> List[NormalizedRecord]:
    return asyncio.run(harvest(key, max_pages, source=source, output_path=output_path))


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Harvest marketplace listings into normalized records.")
    parser.add_argument("keyword", help="search keyword, e.g. 'nike'")
    parser.add_argument("max_pages", nargs="?", type=int, default=None, help="listing pages to walk")
    parser.add_argument("--source", default=DEFAULT_SOURCE, choices=sorted(CONNECTORS))
    parser.add_argument("--output", default=None, help="where to write the JSON artifact")
    args = parser.parse_args(argv)

    setup_logging()
    max_pages = args.max_pages if args.max_pages is not None else get_settings().default_max_pages
    if max_pages < 1:
        parser.error("max_pages must be at least 1")
    try:
        records = run_harvest(args.keyword, max_pages, source=args.source, output_path=args.output)
    except FatalFailure as exc:
        logger.error("Harvest failed: %s", exc)
        return 1
    logger.info("Harvested %s records", len(records))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
