"""Unit tests for chunking helpers"""

import pytest
from vedi_payments.utils.batching import BatchReport, ChunkReport, chunked


def test_chunked_respects_size():
    chunks = list(chunked([str(i) for i in range(23)], 10))

    assert [len(c) for c in chunks] == [10, 10, 3]
    assert chunks[2] == ["20", "21", "22"]


def test_chunked_empty():
    assert list(chunked([], 10)) == []


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        list(chunked(["a"], 0))


def test_batch_report_tracks_failed_chunks():
    report = BatchReport(
        chunks=[
            ChunkReport(index=0, ids=["a", "b"], succeeded=True, affected=2),
            ChunkReport(index=1, ids=["c"], succeeded=False, error="timeout"),
        ]
    )

    assert report.total == 3
    assert [c.index for c in report.failed_chunks] == [1]
    assert report.complete is False
    assert BatchReport().complete is True
