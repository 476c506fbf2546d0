import json
from pathlib import Path
from typing import Dict, List, Mapping, Union

import pytest

from harvester.core.config import get_settings
from harvester.services.ai_provider import AIProvider

FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def item_fields(item_id: str, price: str = "US $10.00") -> Dict[str, str]:
    return {
        "title": f"<span>Item {item_id}</span>",
        "primary_price": f"<span>{price}</span>",
        "approx_price": "",
        "about_item": f"<div>Marker: item-{item_id}</div>",
        "full_description": "",
    }


class ScriptedProvider(AIProvider):
    """Answers by item marker; a scripted ``Exception`` is raised instead of returned."""

    def __init__(self, responses: Mapping[str, Union[str, Exception]] | None = None) -> None:
        self.responses = dict(responses or {})
        self.prompts: List[str] = []

    async def chat(self, messages: list[Dict[str, str]]) -> str:
        content = messages[-1]["content"]
        self.prompts.append(content)
        for marker, response in self.responses.items():
            if f"item-{marker}<" in content:
                if isinstance(response, Exception):
                    raise response
                return response
        return json.dumps(
            {
                "title": "Scripted title",
                "primaryPrice": "US $10.00",
                "approxPrice": "-",
                "description": {"Condition": "New"},
            }
        )


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("OUTPUT_PATH", str(tmp_path / "harvest_results.json"))
    monkeypatch.setenv("AI_PROVIDER", "mock")
    monkeypatch.delenv("RAW_OUTPUT_PATH", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
