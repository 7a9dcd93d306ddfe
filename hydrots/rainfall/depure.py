"""Removal of repeated tips recorded faster than a gauge can physically tip."""

import numpy as np
import pandas as pd

from ..utils.helpers import to_seconds, validate_series
from ..utils.logger import setup_logger

logger = setup_logger("depure")


def depure_tips(tips: pd.Series, min_interval_seconds: float = 1.1) -> pd.Series:
    """Zero the tips recorded within ``min_interval_seconds`` of the previous record.

    Timestamps are kept, so the record keeps its void structure.

    Args:
        tips: Tip volumes (mm) indexed by tip time
        min_interval_seconds: Shortest admissible spacing between records

    Returns:
        New series with the repeated tips set to zero
    """
    tips = validate_series(tips, "tips")
    repeated = np.zeros(len(tips), dtype=bool)
    if len(tips) > 1:
        repeated[1:] = np.diff(to_seconds(tips.index)) <= min_interval_seconds

    depured = tips.copy()
    depured[repeated] = 0.0
    logger.info(
        f"Removing tips occurring faster than {min_interval_seconds:.2f} s: "
        f"{int(repeated.sum())} tips identified, volume {np.nansum(tips):.2f} -> "
        f"{np.nansum(depured):.2f} mm"
    )
    return depured
