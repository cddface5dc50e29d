"""Shared types for the ratestore package."""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

Row = dict[str, Any]
Params = tuple | list | dict
ParamsList = list[tuple] | list[list]

RateValue = Decimal | float | int | str
Snapshot = Mapping[str, RateValue]
TimeSeries = dict[str, dict[datetime, float]]
