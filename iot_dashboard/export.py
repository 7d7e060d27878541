from collections.abc import Sequence
from typing import Final

import pandas as pd

from .models import CHANNELS, Reading

CSV_COLUMNS: Final[tuple[str, ...]] = ("ts", *CHANNELS)
CSV_FILENAME: Final[str] = "iot_analytics.csv"


def _cell(value: object) -> object:
    # Whole numbers print without a trailing ".0"
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def to_csv(window: Sequence[Reading]) -> str:
    """Render the window as CSV, null channels as empty cells.

    Returns an empty string for an empty window.
    """
    if not window:
        return ""
    rows = [{k: _cell(v) for k, v in r.model_dump(include=set(CSV_COLUMNS)).items()} for r in window]
    df = pd.DataFrame(rows, columns=list(CSV_COLUMNS), dtype=object)
    return df.to_csv(index=False, lineterminator="\n", na_rep="")
