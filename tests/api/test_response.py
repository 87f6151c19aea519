from __future__ import annotations

import pytest

from s1singularity.api.response import Pagination, decode_envelope
from s1singularity.errors import DecodeError


def test_decode_full_envelope():
    body = (
        b'{"pagination": {"totalItems": 3, "nextCursor": "c2"},'
        b' "data": [{"id": "1"}], "errors": [{"code": 7, "title": "t", "detail": "d"}]}'
    )
    res = decode_envelope(body)

    assert res.pagination == Pagination(total_items=3, next_cursor="c2")
    assert res.data == [{"id": "1"}]
    assert len(res.errors) == 1
    assert (res.errors[0].code, res.errors[0].title, res.errors[0].detail) == (7, "t", "d")


def test_missing_or_null_cursor_means_last_page():
    assert decode_envelope('{"data": []}').pagination.next_cursor == ""
    assert decode_envelope('{"pagination": {"nextCursor": null}}').pagination.next_cursor == ""


def test_data_is_left_raw():
    res = decode_envelope('{"data": {"allSites": {}, "sites": []}}')
    assert res.data == {"allSites": {}, "sites": []}


@pytest.mark.parametrize("body", [b"", b"not json", b"[1, 2]", b'"text"'])
def test_malformed_body_raises(body):
    with pytest.raises(DecodeError):
        decode_envelope(body)
