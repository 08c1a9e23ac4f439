from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict
import numpy as np

@dataclass(slots=True)
class Hit:
    """
    Calibrated sensor pulse (physics layer).

    r: position of the owning sensor [m]
    t_ns: leading-edge time [ns]
    amplitude: calibrated charge (ADC-like, photo-electrons)
    slc: recorded without a coincidence from a neighbouring sensor
    extras: arbitrary per-hit fields preserved from input (flat hit index, raw columns...)
    """
    sensor_id: int
    r: np.ndarray  # shape (3,), dtype float
    t_ns: float
    amplitude: float = 0.0
    slc: bool = False

    # Preserve raw/source-specific fields without polluting the core schema
    extras: Dict[str, Any] = field(default_factory=dict)
