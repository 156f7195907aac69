import argparse
import cProfile
import logging
import pstats
import re
import sys
import time
from io import StringIO
from typing import BinaryIO, Dict, List

import pandas as pd

from block_fetcher import fetch_block
from data_structures import (ByteOrder, ByteRangeDescriptor, ChromInterval,
                             SummaryRecord, ZoomBlockError)
from zoom_record_decoder import decode_zoom_block, print_zoom_records

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_ZOOM_LEVEL = 1

REGION_PATTERN = re.compile(r"^(-?\d+):(-?\d+)-(-?\d+):(-?\d+)$")

RECORD_COLUMNS = [
    "record_number",
    "chrom_name",
    "chrom_id",
    "start",
    "end",
    "valid_count",
    "min_val",
    "max_val",
    "sum_data",
    "sum_squares",
    "mean",
    "std_dev",
]


def read_zoom_block(source: BinaryIO, descriptor: ByteRangeDescriptor, **kwargs) -> List[SummaryRecord]:
    """
    Fetch one zoom level data block and decode the records hitting the query region.
    Returns: list of SummaryRecord in block order
    """
    zoom_level = kwargs.get("zoom_level", DEFAULT_ZOOM_LEVEL)
    byte_order = kwargs.get("byte_order", ByteOrder.LITTLE)
    chrom_map = kwargs.get("chrom_map", None)
    query_interval = kwargs.get("query_interval", None)
    contained_only = kwargs.get("contained_only", False)
    uncompress_buf_size = kwargs.get("uncompress_buf_size", 0)
    verbose = kwargs.get("verbose", False)

    if query_interval is None:
        query_interval = descriptor.bounding_interval

    buffer = fetch_block(source, descriptor, uncompress_buf_size, zoom_level=zoom_level)
    records = decode_zoom_block(
        buffer,
        zoom_level,
        byte_order,
        chrom_map,
        descriptor.bounding_interval,
        query_interval,
        contained_only,
    )

    if verbose:
        print_zoom_records(records, zoom_level)

    return records


def records_to_dataframe(records: List[SummaryRecord]) -> pd.DataFrame:
    rows = [
        {
            "record_number": r.record_number,
            "chrom_name": r.chrom_name,
            "chrom_id": r.chrom_id,
            "start": r.start,
            "end": r.end,
            "valid_count": r.valid_count,
            "min_val": r.min_val,
            "max_val": r.max_val,
            "sum_data": r.sum_data,
            "sum_squares": r.sum_squares,
            "mean": r.mean,
            "std_dev": r.std_dev,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def parse_region(text: str) -> ChromInterval:
    """Parse START_CHROM_ID:START-END_CHROM_ID:END into a ChromInterval"""
    match = REGION_PATTERN.match(text.strip())
    if not match:
        raise argparse.ArgumentTypeError(
            f"invalid region '{text}', expected CHROMID:START-CHROMID:END"
        )
    start_chrom, start, end_chrom, end = (int(g) for g in match.groups())
    return ChromInterval(start_chrom, start, end_chrom, end)


def parse_chrom_pairs(pairs: List[str]) -> Dict[int, str]:
    chrom_map = {}
    for pair in pairs or []:
        chrom_id, sep, name = pair.partition("=")
        if not sep or not chrom_id.strip().lstrip("-").isdigit() or not name:
            raise ValueError(f"invalid chromosome mapping '{pair}', expected ID=NAME")
        chrom_map[int(chrom_id)] = name
    return chrom_map


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Decode one zoom level data block of a BigWig/BigBed file.",
        formatter_class=argparse.RawTextHelpFormatter,
    )

    parser.add_argument("input_path", metavar="FILE", help="Path to BigWig/BigBed file")

    # Block Group
    block_group = parser.add_argument_group("DATA BLOCK")
    block_group.add_argument(
        "--offset",
        type=int,
        metavar="INT",
        required=True,
        help="File offset of the data block",
    )
    block_group.add_argument(
        "--size",
        type=int,
        metavar="INT",
        required=True,
        help="Stored byte size of the data block",
    )
    block_group.add_argument(
        "--bounds",
        type=parse_region,
        metavar="REGION",
        required=True,
        help="Bounding region of the block as CHROMID:START-CHROMID:END",
    )
    block_group.add_argument(
        "--uncompress_buf_size",
        type=int,
        metavar="INT",
        default=0,
        help="Decompression buffer size, 0 for uncompressed data [0]",
    )
    block_group.add_argument(
        "--zoom_level",
        type=int,
        metavar="INT",
        default=DEFAULT_ZOOM_LEVEL,
        help="Zoom level of the block [1]",
    )
    block_group.add_argument(
        "--byte_order",
        type=str,
        default="little",
        choices=["little", "big"],
        help="Byte order of the file [little]",
    )
    block_group.add_argument(
        "--chrom",
        type=str,
        metavar="ID=NAME",
        action="append",
        default=[],
        help="Chromosome id to name mapping, may be repeated [none]",
    )

    # Selection Group
    select_group = parser.add_argument_group("SELECTION")
    select_group.add_argument(
        "--query",
        type=parse_region,
        metavar="REGION",
        default=None,
        help="Query region as CHROMID:START-CHROMID:END [block bounds]",
    )
    select_group.add_argument(
        "--contained",
        type=int,
        metavar="INT",
        default=0,
        choices=[0, 1],
        help="Keep only records contained in the query region (0/1) [0]",
    )

    # Output Group
    output_group = parser.add_argument_group("OUTPUT & DIAGNOSTICS")
    output_group.add_argument(
        "--output",
        type=str,
        metavar="FILE",
        default=None,
        help="Output TSV path [stdout]",
    )
    output_group.add_argument(
        "--verbose",
        type=int,
        metavar="INT",
        default=0,
        choices=[0, 1],
        help="Enable verbose logging (0/1) [0]",
    )
    output_group.add_argument(
        "--profile",
        type=int,
        metavar="INT",
        default=0,
        choices=[0, 1],
        help="Enable cProfile profiling (0/1) [0]",
    )

    args = parser.parse_args(argv)

    if args.verbose == 1:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.INFO)

    try:
        chrom_map = parse_chrom_pairs(args.chrom)
    except ValueError as e:
        parser.error(str(e))

    start_time = time.perf_counter()

    profiler = None
    if args.profile == 1:
        profiler = cProfile.Profile()
        profiler.enable()
        logger.info("Profiling enabled...")

    descriptor = ByteRangeDescriptor(args.offset, args.size, args.bounds)

    try:
        with open(args.input_path, "rb") as source:
            records = read_zoom_block(
                source,
                descriptor,
                zoom_level=args.zoom_level,
                byte_order=ByteOrder.LITTLE if args.byte_order == "little" else ByteOrder.BIG,
                chrom_map=chrom_map,
                query_interval=args.query,
                contained_only=(args.contained == 1),
                uncompress_buf_size=args.uncompress_buf_size,
                verbose=(args.verbose == 1),
            )
    except (ZoomBlockError, OSError) as e:
        logger.error(f"Failed to read zoom block: {e}")
        return 1

    table = records_to_dataframe(records)
    if args.output:
        table.to_csv(args.output, sep="\t", index=False)
        logger.info(f"Output saved to: {args.output}")
    else:
        table.to_csv(sys.stdout, sep="\t", index=False)

    if profiler is not None:
        profiler.disable()
        s = StringIO()
        ps = pstats.Stats(profiler, stream=s).sort_stats("cumulative")
        ps.print_stats(20)
        print("\n" + "=" * 80, file=sys.stderr)
        print("Profiling Results:", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print(s.getvalue(), file=sys.stderr)

    end_time = time.perf_counter()
    logger.info(f"Decoded {len(records):,} records in {end_time - start_time:.4f} seconds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
