import json
from datetime import datetime, timezone

import orjson
import pytest

from core_utils import jsonx
from core_utils.sse import chunk_frame, sse_data, terminal_frame


def test_pretty_matches_two_space_indent_and_keeps_order():
    doc = {"b": 1, "a": {"z": [1, 2], "y": None}, "emoji": "🎉 ✓"}
    out = jsonx.dumps_pretty(doc)
    assert out == json.dumps(doc, indent=2, ensure_ascii=False)
    assert out.index('"b"') < out.index('"a"')


def test_pretty_is_strict():
    with pytest.raises(orjson.JSONEncodeError):
        jsonx.dumps_pretty({"when": object()})


def test_dumps_ordered_keeps_order_and_sanitizes():
    ts = datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert jsonx.dumps_ordered({"b": 1, "a": ts}) == '{"b":1,"a":"2024-01-02T00:00:00+00:00"}'
    assert jsonx.dumps_ordered({"s": {3}}) == '{"s":[3]}'


def test_frames():
    assert chunk_frame('{\n  "a"') == 'data: {"chunk":"{\\n  \\"a\\"","done":false}\n\n'
    assert terminal_frame({"z": 1, "a": 2}) == 'data: {"chunk":"","done":true,"complete":{"z":1,"a":2}}\n\n'
    assert sse_data([1]) == "data: [1]\n\n"

