import asyncio
import json
import logging
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from harvester.core.errors import NormalizationFailure
from harvester.schemas import NormalizedRecord, RawRecord
from .ai_provider import AIProvider
from .raw_queue import RawRecordQueue

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a precise data extraction specialist. Extract data accurately from HTML and return only "
    "valid JSON without any markdown formatting or explanations. Never wrap your response in code blocks."
)

EXTRACTION_PROMPT = """
You are a data extraction model, who transforms messy e-commerce HTML into organized, developer-friendly JSON.

Extract these top-level fields:
- title
- primaryPrice
- approxPrice
- description

Description guidelines (be adaptive and context-aware):
- Combine all meaningful data from every <section> related to "description" (for example: specifications, attributes, payment, shipping, notes, etc.).
- When structured data (like "Color: White" or "Year Manufactured: 2017") exists, organize it as key-value pairs inside the "description" object.
- When there is narrative text (like paragraphs under "Payment" or "Shipping"), include them as readable string values under appropriately inferred keys.
- Preserve hierarchy only when it adds clarity, otherwise flatten intelligently.
- If any top-level field is missing or empty, return "-" as its value.
- The final result must be clean, syntactically valid JSON with no comments or explanations.

Expected output format:
{{
    "title": "",
    "primaryPrice": "",
    "approxPrice": "",
    "description": {{}}
}}

HTML content:
\"\"\"
{html}
\"\"\"
""".strip()

SECTION_FIELDS = (
    ("title", "title"),
    ("primaryPrice", "primary_price"),
    ("approxPrice", "approx_price"),
    ("description", "about_item"),
    ("description2", "full_description"),
)

# Keys the oracle must not be trusted with.
AUTHORITATIVE_KEYS = ("id", "url", "sourceUrl", "source_url", "error")

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S | re.I)


def build_html_document(raw: RawRecord) -> str:
    sections = [
        f'<section id="{section_id}">\n{raw.field(field_name)}\n</section>'
        for section_id, field_name in SECTION_FIELDS
    ]
    return "\n\n".join(sections)


def build_messages(raw: RawRecord) -> list[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": EXTRACTION_PROMPT.format(html=build_html_document(raw))},
    ]


def parse_oracle_output(content: str) -> Dict[str, Any]:
    text = (content or "").strip()
    fenced = CODE_FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise NormalizationFailure(f"normalizer returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise NormalizationFailure(f"normalizer returned {type(payload).__name__}, expected an object")
    return payload


class Normalizer:
    """Turns one raw record into a canonical record through the extraction oracle."""

    def __init__(self, provider: AIProvider, timeout: float = 120) -> None:
        self.provider = provider
        self.timeout = timeout

    async def normalize(self, raw: RawRecord) -> NormalizedRecord:
        messages = build_messages(raw)
        try:
            # Cancelling the call on timeout keeps at most one request in flight.
            content = await asyncio.wait_for(self.provider.chat(messages), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise NormalizationFailure(f"normalizer timed out after {self.timeout}s") from exc
        except Exception as exc:
            raise NormalizationFailure(f"normalizer call failed: {exc}") from exc

        payload = parse_oracle_output(content)
        for key in AUTHORITATIVE_KEYS:
            payload.pop(key, None)
        payload.update({"id": raw.id, "sourceUrl": raw.source_url})
        try:
            return NormalizedRecord.model_validate(payload)
        except ValidationError as exc:
            raise NormalizationFailure(f"normalizer output does not fit the record schema: {exc}") from exc


class NormalizationStage:
    """Drains the sealed raw queue one record at a time, one output per input."""

    def __init__(self, normalizer: Normalizer) -> None:
        self.normalizer = normalizer
        self.fallbacks = 0

    async def run(self, queue: RawRecordQueue) -> List[NormalizedRecord]:
        results: List[NormalizedRecord] = []
        total = len(queue)
        for index, raw in enumerate(queue, start=1):
            logger.info("[%s/%s] Normalizing item %s", index, total, raw.id, extra={"item_id": raw.id})
            try:
                record = await self.normalizer.normalize(raw)
            except NormalizationFailure as exc:
                logger.error("Failed to normalize item %s: %s", raw.id, exc, extra={"item_id": raw.id})
                record = NormalizedRecord.fallback(raw, str(exc))
                self.fallbacks += 1
            results.append(record)
        return results
