import io
import json

from shardgate import logging as slog


def _capture(json_format):
    stream = io.StringIO()
    handler = slog.configure(json=json_format, level="DEBUG", stream=stream)
    return stream, handler


def _detach(handler):
    slog.get_logger().removeHandler(handler)


def test_json_lines_carry_context_and_extras():
    stream, handler = _capture(True)
    try:
        with slog.trace_scope("t-1", group_id="g1"):
            slog.get_logger("shardgate.test").info("pushed", extra={"shards": 3, "ref": b"\x01\x02"})
    finally:
        _detach(handler)

    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "pushed"
    assert line["trace_id"] == "t-1"
    assert line["group_id"] == "g1"
    assert line["shards"] == 3
    assert line["ref"] == "0102"


def test_text_format_and_scope_restore():
    stream, handler = _capture(False)
    try:
        with slog.trace_scope(op="pull"):
            slog.get_logger("shardgate.test").warning("careful")
        slog.get_logger("shardgate.test").info("outside")
    finally:
        _detach(handler)

    first, second = stream.getvalue().strip().splitlines()[-2:]
    assert "WARNING" in first and "op=pull" in first and first.endswith("| careful")
    assert "op=pull" not in second
    assert slog.context() == {}


def test_bind_unbind():
    slog.bind(address="a1")
    try:
        assert slog.context()["address"] == "a1"
    finally:
        slog.unbind("address")
    assert "address" not in slog.context()
