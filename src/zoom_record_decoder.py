import logging
from typing import List, Mapping, Optional

import numpy as np

from data_structures import (ByteOrder, ChromInterval, IntervalRelation,
                             SummaryRecord, ZoomBlockError)
from region_compare import acceptance_mask, classify_records

logger = logging.getLogger(__name__)

ZOOM_RECORD_SIZE = 32

ZOOM_RECORD_FIELDS = (
    ("chrom_id", "i4"),
    ("start", "i4"),
    ("end", "i4"),
    ("valid_count", "i4"),
    ("min_val", "f4"),
    ("max_val", "f4"),
    ("sum_data", "f4"),
    ("sum_squares", "f4"),
)


class ZoomDecodeError(ZoomBlockError):
    def __init__(self, message: str, zoom_level: Optional[int] = None,
                 record_index: Optional[int] = None):
        super().__init__(message, zoom_level)
        self.record_index = record_index


def zoom_record_dtype(byte_order: ByteOrder) -> np.dtype:
    """
    Structured dtype matching the packed 32 byte zoom record layout.
    Returns: np.dtype with itemsize ZOOM_RECORD_SIZE
    """
    return np.dtype([(name, byte_order.prefix + code) for name, code in ZOOM_RECORD_FIELDS])


def decode_zoom_block(buffer: bytes, zoom_level: int, byte_order: ByteOrder,
                      chrom_map: Optional[Mapping[int, str]],
                      bounding_interval: ChromInterval, query_interval: ChromInterval,
                      contained_only: bool) -> List[SummaryRecord]:
    """
    Decode the zoom records packed in a block buffer and keep those hitting the query region.

    If the block's bounding region lies inside the query region every record is kept.
    Otherwise each record region is compared against the query: contained records are kept,
    overlapping records only when contained_only is False.

    Record numbers are 1-based positions in the buffer, counted over discarded records too.
    Trailing bytes shorter than a full record end the block, unless no full record is present.

    Returns: list of SummaryRecord in buffer order (possibly empty)
    """
    if chrom_map is None:
        chrom_map = {}

    buffer_size = len(buffer)
    record_count = buffer_size // ZOOM_RECORD_SIZE
    leftover = buffer_size - record_count * ZOOM_RECORD_SIZE

    if record_count == 0:
        if buffer_size == 0:
            return []
        logger.error(
            f"Read error for zoom level {zoom_level}: "
            f"record 1 truncated at {buffer_size} of {ZOOM_RECORD_SIZE} bytes"
        )
        raise ZoomDecodeError(
            f"Read error for zoom level {zoom_level} at record 1: block holds only "
            f"{buffer_size} bytes, less than one {ZOOM_RECORD_SIZE} byte record",
            zoom_level, record_index=1,
        )

    if leftover:
        logger.debug(
            f"Zoom level {zoom_level}: record {record_count + 1} truncated, "
            f"ignoring {leftover} trailing bytes"
        )

    table = np.frombuffer(
        buffer, dtype=zoom_record_dtype(byte_order), count=record_count
    )

    # Native int64 copies, numba rejects the non-native byte order views
    chrom_ids = table["chrom_id"].astype(np.int64)
    starts = table["start"].astype(np.int64)
    ends = table["end"].astype(np.int64)

    if bounding_interval.compare(query_interval) is IntervalRelation.CONTAINED:
        keep = np.ones(record_count, dtype=np.bool_)
    else:
        codes = classify_records(
            chrom_ids, starts, ends,
            query_interval.start_chrom_id, query_interval.start_base,
            query_interval.end_chrom_id, query_interval.end_base,
        )
        keep = acceptance_mask(codes, contained_only)

    valid_counts = table["valid_count"].astype(np.int64)
    min_vals = table["min_val"].astype(np.float32)
    max_vals = table["max_val"].astype(np.float32)
    sums = table["sum_data"].astype(np.float32)
    sum_squares = table["sum_squares"].astype(np.float32)

    records = []
    for index in np.flatnonzero(keep):
        chrom_id = int(chrom_ids[index])
        records.append(
            SummaryRecord(
                zoom_level=zoom_level,
                record_number=int(index) + 1,
                chrom_name=chrom_map.get(chrom_id),
                chrom_id=chrom_id,
                start=int(starts[index]),
                end=int(ends[index]),
                valid_count=int(valid_counts[index]),
                min_val=float(min_vals[index]),
                max_val=float(max_vals[index]),
                sum_data=float(sums[index]),
                sum_squares=float(sum_squares[index]),
            )
        )

    logger.debug(
        f"Zoom level {zoom_level}: kept {len(records)} of {record_count} records"
    )
    return records


def print_zoom_records(records: List[SummaryRecord], zoom_level: int):
    logger.debug(f"Zoom level {zoom_level} data for {len(records)} records:")
    for record in records:
        logger.debug(record.format_line())
