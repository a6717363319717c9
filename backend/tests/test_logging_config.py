import json
import logging

from app.core.logging_config import JsonFormatter, RequestIdFilter, request_id_ctx_var
from app.services.urls import Scheme


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "app.routing", "levelname": "INFO", "msg": "legacy_redirect", **extra})
    RequestIdFilter().filter(record)
    return record


def test_json_formatter_includes_request_id_and_extras() -> None:
    token = request_id_ctx_var.set("req-1234567")
    try:
        record = _record(scheme=Scheme.legacy_doc_id, location="/la/91306/n/winnetka/roof-repair")
    finally:
        request_id_ctx_var.reset(token)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "legacy_redirect"
    assert payload["request_id"] == "req-1234567"
    assert payload["scheme"] == "legacy_doc_id"
    assert payload["location"] == "/la/91306/n/winnetka/roof-repair"
    assert "levelno" not in payload


def test_request_id_defaults_to_dash() -> None:
    payload = json.loads(JsonFormatter().format(_record()))
    assert payload["request_id"] == "-"
