import dataclasses
import math
from datetime import date, datetime

import numpy as np
import pandas as pd


def convert_to_python_types(obj):
    """
    Recursively convert NumPy/Pandas objects and dataclasses to JSON-safe
    Python types. NaN and infinities become None.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return convert_to_python_types(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        return {k: convert_to_python_types(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_to_python_types(item) for item in obj]
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    elif isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    else:
        return obj
