import json
import math
from typing import Any

import numpy as np
from fastapi.responses import JSONResponse


# Largest integer a JSON consumer parsing into doubles can hold exactly.
MAX_SAFE_INT = 2 ** 53 - 1


class SafeJSONResponse(JSONResponse):
    """JSONResponse that writes non-finite floats as null and refuses silent precision loss."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            sanitize_floats(content),
            ensure_ascii=False,
            allow_nan=False,
            default=self._default,
        ).encode("utf-8")

    @staticmethod
    def _default(obj):
        if isinstance(obj, np.generic):
            return sanitize_floats(obj.item())
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def sanitize_floats(obj):
    """Recursively replace NaN/Infinity with None and oversized ints with decimal strings."""
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    if isinstance(obj, int):
        return str(obj) if abs(obj) > MAX_SAFE_INT else obj
    if isinstance(obj, dict):
        return {k: sanitize_floats(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_floats(v) for v in obj]
    return obj
