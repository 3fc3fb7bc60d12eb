"""
Deterministic down-sampling plans.

Observations are decimated by a stride applied to the stable row id
(`location._id % stride == 0`), so the same file always yields the same
subset.
"""

import math
import logging

from wigle_explorer.models import SamplePlan

logger = logging.getLogger(__name__)


def plan_sample(total_rows: int, ceiling: int) -> SamplePlan:
    """
    Compute the decimation plan for a stream of `total_rows` rows.

    Args:
        total_rows: Number of rows the source would return unsampled
        ceiling: Maximum number of rows to keep

    Returns:
        SamplePlan with stride 1 when no sampling is needed
    """
    if ceiling <= 0:
        raise ValueError(f"Sample ceiling must be positive, got {ceiling}")
    total_rows = max(0, int(total_rows))

    if total_rows <= ceiling:
        return SamplePlan(stride=1, limit=total_rows)

    stride = math.ceil(total_rows / ceiling)
    logger.info(f"Sampling {total_rows} rows with stride {stride} (limit {ceiling})")
    return SamplePlan(stride=stride, limit=ceiling)


def decimation_step(count: int, budget: float) -> int:
    """Step that keeps at most roughly `budget` of `count` items"""
    if budget <= 0:
        return max(1, count)
    return max(1, math.ceil(count / budget))
