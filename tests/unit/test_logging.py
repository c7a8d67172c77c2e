from __future__ import annotations

import json
import logging
import sys

from domain_indexer.utils.logging import JsonFormatter, _json_formatter

EXPECTED_WINDOW_START = 1_000
EXPECTED_BLOCK = 19_000_000


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.window_start = EXPECTED_WINDOW_START
    record.category = "Transfer"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["window_start"] == EXPECTED_WINDOW_START
    assert payload["category"] == "Transfer"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"block_number": EXPECTED_BLOCK}

    payload = json.loads(_json_formatter(record))

    assert payload["block_number"] == EXPECTED_BLOCK


def test_json_formatter_stringifies_non_json_values() -> None:
    record = _record()
    record.node = b"\x01\x02"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["node"] == str(b"\x01\x02")


def test_json_formatter_includes_exception_text() -> None:
    try:
        raise RuntimeError("store unreachable")
    except RuntimeError:
        record = logging.LogRecord(
            name="test.logger",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg="[STORE FAILED] write dropped",
            args=(),
            exc_info=sys.exc_info(),
        )

    payload = json.loads(_json_formatter(record))

    assert "RuntimeError: store unreachable" in payload["exc_info"]


def test_json_formatter_stamps_service_and_environment() -> None:
    formatter = JsonFormatter(app_env="production")

    payload = json.loads(formatter.format(_record("[LIVE] Subscriptions stopped")))

    assert payload["service"] == "domain-indexer"
    assert payload["app_env"] == "production"
    assert payload["message"] == "[LIVE] Subscriptions stopped"


def test_json_formatter_without_environment_omits_it() -> None:
    payload = json.loads(JsonFormatter().format(_record()))

    assert "app_env" not in payload
