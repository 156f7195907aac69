import numpy as np
from numba import njit

from data_structures import ChromInterval, IntervalRelation

# Comparator codes, kept internal; callers see IntervalRelation
CODE_CONTAINED = 0
CODE_OVERLAP_BELOW = -1
CODE_OVERLAP_ABOVE = 1
CODE_DISJOINT_BELOW = -2
CODE_DISJOINT_ABOVE = 2
OVERLAP_THRESHOLD = 2


@njit
def _position_lt(chrom_a, base_a, chrom_b, base_b):
    return chrom_a < chrom_b or (chrom_a == chrom_b and base_a < base_b)


@njit
def _region_code(a_start_chrom, a_start, a_end_chrom, a_end,
                 b_start_chrom, b_start, b_end_chrom, b_end):
    """
    Compare half-open region a against region b, positions ordered by (chrom_id, base).
    Returns: 0 if a lies inside b, -2/2 if a is entirely below/above b,
             -1/1 if a overlaps b starting below/at-or-above b's start
    """
    starts_inside = not _position_lt(a_start_chrom, a_start, b_start_chrom, b_start)
    ends_inside = not _position_lt(b_end_chrom, b_end, a_end_chrom, a_end)
    if starts_inside and ends_inside:
        return 0
    if not _position_lt(b_start_chrom, b_start, a_end_chrom, a_end):
        return -2
    if not _position_lt(a_start_chrom, a_start, b_end_chrom, b_end):
        return 2
    if not starts_inside:
        return -1
    return 1


@njit
def classify_records(chrom_ids, starts, ends, q_start_chrom, q_start, q_end_chrom, q_end):
    """
    Compare every record region (chrom_id, start, chrom_id, end) against the query region.

    WARNING: This function is JIT-compiled with @njit. Only plain numpy arrays
    and scalars may be passed in.

    Returns: np.ndarray of int8 comparator codes, one per record
    """
    codes = np.empty(chrom_ids.shape[0], dtype=np.int8)
    for i in range(chrom_ids.shape[0]):
        codes[i] = _region_code(chrom_ids[i], starts[i], chrom_ids[i], ends[i],
                                q_start_chrom, q_start, q_end_chrom, q_end)
    return codes


def compare_regions(region: ChromInterval, test_region: ChromInterval) -> int:
    return int(
        _region_code(
            region.start_chrom_id, region.start_base, region.end_chrom_id, region.end_base,
            test_region.start_chrom_id, test_region.start_base,
            test_region.end_chrom_id, test_region.end_base,
        )
    )


def relation_from_code(code: int) -> IntervalRelation:
    if code == CODE_CONTAINED:
        return IntervalRelation.CONTAINED
    if abs(code) < OVERLAP_THRESHOLD:
        return IntervalRelation.OVERLAPPING
    return IntervalRelation.DISJOINT


def acceptance_mask(codes: np.ndarray, contained_only: bool) -> np.ndarray:
    """
    Apply IntervalRelation.accepts to an array of comparator codes.
    Returns: boolean np.ndarray
    """
    mask = np.zeros(codes.shape[0], dtype=np.bool_)
    for code in np.unique(codes):
        if relation_from_code(int(code)).accepts(contained_only):
            mask |= codes == code
    return mask
