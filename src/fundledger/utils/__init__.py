"""Utility functions for fundledger."""

from fundledger.utils.date_parser import parse_date, parse_datetime
from fundledger.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_datetime", "parse_amount"]
