import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ByteOrder(Enum):
    LITTLE = "<"
    BIG = ">"

    @property
    def prefix(self) -> str:
        """struct / numpy byte order character"""
        return self.value

    @classmethod
    def from_flag(cls, is_low_to_high: bool) -> "ByteOrder":
        return cls.LITTLE if is_low_to_high else cls.BIG


class IntervalRelation(Enum):
    CONTAINED = "contained"
    OVERLAPPING = "overlapping"
    DISJOINT = "disjoint"

    def accepts(self, contained_only: bool) -> bool:
        """
        Decide whether a record with this relation to the query is kept.
        Contained records are always kept, overlapping ones only when contained_only is off.
        """
        if self is IntervalRelation.CONTAINED:
            return True
        if self is IntervalRelation.OVERLAPPING:
            return not contained_only
        return False


@dataclass(frozen=True)
class ChromInterval:
    """Half-open genomic interval, may span chromosome boundaries."""

    start_chrom_id: int
    start_base: int
    end_chrom_id: int
    end_base: int

    def compare(self, other: "ChromInterval") -> IntervalRelation:
        """
        Classify this interval against other (usually the query region).
        Returns: IntervalRelation.CONTAINED if this lies inside other
        """
        # Local import, region_compare depends on this module
        from region_compare import compare_regions, relation_from_code

        return relation_from_code(compare_regions(self, other))

    def __str__(self):
        return (
            f"{self.start_chrom_id}:{self.start_base}-"
            f"{self.end_chrom_id}:{self.end_base}"
        )


@dataclass(frozen=True)
class ByteRangeDescriptor:
    file_offset: int
    stored_size: int
    bounding_interval: ChromInterval


@dataclass(frozen=True)
class SummaryRecord:
    zoom_level: int
    record_number: int
    chrom_name: Optional[str]
    chrom_id: int
    start: int
    end: int
    valid_count: int
    min_val: float
    max_val: float
    sum_data: float
    sum_squares: float

    @property
    def mean(self) -> float:
        if self.valid_count == 0:
            return math.nan
        return self.sum_data / self.valid_count

    @property
    def std_dev(self) -> float:
        """Population standard deviation over the valid bases of the window."""
        if self.valid_count == 0:
            return math.nan
        mean = self.sum_data / self.valid_count
        variance = self.sum_squares / self.valid_count - mean * mean
        # float32 sums can push a flat window slightly negative
        return math.sqrt(max(variance, 0.0))

    def format_line(self) -> str:
        return (
            f"Zoom level {self.zoom_level} record {self.record_number}: "
            f"{self.chrom_name} (id {self.chrom_id}) {self.start}-{self.end} "
            f"valid={self.valid_count} min={self.min_val} max={self.max_val} "
            f"sum={self.sum_data} sumSquares={self.sum_squares}"
        )


class ZoomBlockError(RuntimeError):
    """Unrecoverable failure reading or decoding a zoom level data block."""

    def __init__(self, message: str, zoom_level: Optional[int] = None):
        super().__init__(message)
        self.zoom_level = zoom_level
