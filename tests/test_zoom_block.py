import argparse
import io
import os
import struct
import sys
import zlib

import pandas as pd
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))
from data_structures import ByteOrder, ByteRangeDescriptor, ChromInterval
from zoom_block import (DEFAULT_ZOOM_LEVEL, RECORD_COLUMNS, main,
                        parse_chrom_pairs, parse_region, read_zoom_block,
                        records_to_dataframe)

ROWS = [
    (0, 0, 100, 100, 0.0, 4.0, 200.0, 600.0),
    (0, 100, 200, 100, 1.0, 5.0, 300.0, 1000.0),
    (0, 200, 300, 50, 2.0, 6.0, 200.0, 850.0),
]


def write_track(path, byte_order=ByteOrder.BIG, compress=True, offset=48):
    block = b"".join(struct.pack(byte_order.prefix + "iiiiffff", *row) for row in ROWS)
    stored = zlib.compress(block) if compress else block
    path.write_bytes(b"\x00" * offset + stored + b"\x00" * 8)
    return offset, len(stored), len(block)


def test_read_zoom_block_defaults_to_whole_block():
    block = b"".join(struct.pack("<iiiiffff", *row) for row in ROWS)
    descriptor = ByteRangeDescriptor(0, len(block), ChromInterval(0, 0, 0, 300))

    records = read_zoom_block(io.BytesIO(block), descriptor, chrom_map={0: "chrM"})

    assert [r.record_number for r in records] == [1, 2, 3]
    assert {r.chrom_name for r in records} == {"chrM"}
    assert records[0].zoom_level == DEFAULT_ZOOM_LEVEL == 1


def test_read_zoom_block_with_query_and_compression():
    block = b"".join(struct.pack(">iiiiffff", *row) for row in ROWS)
    stored = zlib.compress(block)
    descriptor = ByteRangeDescriptor(0, len(stored), ChromInterval(0, 0, 0, 300))

    records = read_zoom_block(
        io.BytesIO(stored),
        descriptor,
        zoom_level=4,
        byte_order=ByteOrder.BIG,
        query_interval=ChromInterval(0, 150, 0, 300),
        contained_only=True,
        uncompress_buf_size=1024,
        verbose=True,
    )

    assert [(r.start, r.record_number, r.zoom_level) for r in records] == [(200, 3, 4)]


def test_records_to_dataframe_columns():
    block = b"".join(struct.pack("<iiiiffff", *row) for row in ROWS)
    descriptor = ByteRangeDescriptor(0, len(block), ChromInterval(0, 0, 0, 300))
    records = read_zoom_block(io.BytesIO(block), descriptor)

    table = records_to_dataframe(records)

    assert list(table.columns) == RECORD_COLUMNS
    assert table["mean"].tolist() == pytest.approx([2.0, 3.0, 4.0])
    assert table["chrom_name"].isna().all()
    assert list(records_to_dataframe([]).columns) == RECORD_COLUMNS


def test_parse_region():
    assert parse_region("1:100-2:50") == ChromInterval(1, 100, 2, 50)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_region("chr1:100-200")


def test_parse_chrom_pairs():
    assert parse_chrom_pairs(["0=chrM", "1=chr1"]) == {0: "chrM", 1: "chr1"}
    assert parse_chrom_pairs([]) == {}
    with pytest.raises(ValueError):
        parse_chrom_pairs(["chr1"])


def test_main_writes_tsv(tmp_path):
    track = tmp_path / "track.bw"
    output = tmp_path / "zoom.tsv"
    offset, size, raw_size = write_track(track)

    status = main([
        str(track),
        "--offset", str(offset),
        "--size", str(size),
        "--bounds", "0:0-0:300",
        "--uncompress_buf_size", str(raw_size),
        "--byte_order", "big",
        "--zoom_level", "2",
        "--query", "0:50-0:250",
        "--chrom", "0=chrM",
        "--output", str(output),
    ])

    assert status == 0
    table = pd.read_csv(output, sep="\t")
    assert table["record_number"].tolist() == [1, 2, 3]
    assert table["start"].tolist() == [0, 100, 200]
    assert set(table["chrom_name"]) == {"chrM"}


def test_main_contained_only(tmp_path):
    track = tmp_path / "track.bw"
    output = tmp_path / "zoom.tsv"
    offset, size, _ = write_track(track, byte_order=ByteOrder.LITTLE, compress=False)

    status = main([
        str(track),
        "--offset", str(offset),
        "--size", str(size),
        "--bounds", "0:0-0:300",
        "--query", "0:50-0:250",
        "--contained", "1",
        "--output", str(output),
    ])

    assert status == 0
    table = pd.read_csv(output, sep="\t")
    assert table["record_number"].tolist() == [2]


def test_main_reports_unreadable_block(tmp_path):
    track = tmp_path / "track.bw"
    offset, size, _ = write_track(track)

    status = main([
        str(track),
        "--offset", str(offset),
        "--size", str(size),
        "--bounds", "0:0-0:300",
        "--uncompress_buf_size", "8",
    ])

    assert status == 1


def test_main_reports_negative_offset(tmp_path):
    track = tmp_path / "track.bw"
    _, size, _ = write_track(track)

    status = main([
        str(track),
        "--offset", "-5",
        "--size", str(size),
        "--bounds", "0:0-0:300",
    ])

    assert status == 1


def test_main_with_profile_and_verbose(tmp_path, capsys):
    track = tmp_path / "track.bw"
    output = tmp_path / "zoom.tsv"
    offset, size, raw_size = write_track(track)

    status = main([
        str(track),
        "--offset", str(offset),
        "--size", str(size),
        "--bounds", "0:0-0:300",
        "--uncompress_buf_size", str(raw_size),
        "--byte_order", "big",
        "--output", str(output),
        "--verbose", "1",
        "--profile", "1",
    ])

    assert status == 0
    assert "Profiling Results:" in capsys.readouterr().err
    assert len(pd.read_csv(output, sep="\t")) == 3
