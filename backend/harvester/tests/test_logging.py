import json
import logging

from harvester.core.logging_config import ConsoleLogFormatter, JsonLogFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord(
        {"name": "harvester.services.detail_pool", "levelname": "WARNING", "levelno": logging.WARNING, "msg": "Failed to fetch item %s", "args": ("X",)}
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    payload = json.loads(JsonLogFormatter().format(_record(item_id="X", page_number=2)))

    assert payload["level"] == "warning"
    assert payload["event"] == "Failed to fetch item X"
    assert payload["item_id"] == "X"
    assert payload["page_number"] == 2


def test_console_formatter_shortens_known_keys():
    line = ConsoleLogFormatter().format(_record(item_id="X"))

    assert " | WRN | harvester.services.detail_pool | Failed to fetch item X" in line
    assert line.endswith("item=X")
