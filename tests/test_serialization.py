# tests/test_serialization.py
from dataclasses import dataclass
from datetime import date, datetime

import numpy as np
import pandas as pd

from utils.serialization import convert_to_python_types


@dataclass
class _Point:
    name: str
    value: float


def test_numpy_scalars_become_builtins():
    converted = convert_to_python_types({"a": np.int64(3), "b": np.float32(1.5), "c": np.bool_(True)})
    assert converted == {"a": 3, "b": 1.5, "c": True}
    assert type(converted["a"]) is int
    assert type(converted["c"]) is bool


def test_non_finite_floats_become_none():
    assert convert_to_python_types([float("nan"), np.inf, -np.inf, 1.0]) == [None, None, None, 1.0]


def test_dates_and_timestamps_are_isoformat():
    payload = (pd.Timestamp("2024-05-02 10:00"), datetime(2024, 5, 2, 10), date(2024, 5, 2))
    assert convert_to_python_types(payload) == [
        "2024-05-02T10:00:00",
        "2024-05-02T10:00:00",
        "2024-05-02",
    ]


def test_dataclasses_are_expanded():
    assert convert_to_python_types([_Point("x", np.float64("nan"))]) == [{"name": "x", "value": None}]
