"""Timing module - Z3805A telegram decoding, status classification, rollover correction."""

from .z3805a_decoder import (
    Z3805ADecoder,
    parse_telegram,
    classify_status,
    correct_week_rollover,
    GPS_ROLLOVER_DAYS,
    ROLLOVER_THRESHOLD_YEAR,
)

__all__ = [
    'Z3805ADecoder',
    'parse_telegram',
    'classify_status',
    'correct_week_rollover',
    'GPS_ROLLOVER_DAYS',
    'ROLLOVER_THRESHOLD_YEAR',
]
