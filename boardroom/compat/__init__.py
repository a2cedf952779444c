# CUI // SP-CTI
"""Boardroom compatibility helpers (timezone-aware timestamps)."""
from boardroom.compat.datetime_utils import (  # noqa: F401
    file_stamp,
    parse_iso,
    utc_now,
    utc_now_iso,
)
