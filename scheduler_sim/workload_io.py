from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import List

from .config import DEFAULT_PRIORITY
from .errors import InvalidProcessError
from .models import ProcessSpec
from .registry import validate_spec


def load_workload(path: str | Path) -> List[ProcessSpec]:
    """
    Load a workload from a JSON or CSV file into a list of ProcessSpec objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        return _load_json(path)
    if suffix == ".csv":
        return _load_csv(path)

    raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")


def _load_json(path: Path) -> List[ProcessSpec]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")

    return [_spec_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[ProcessSpec]:
    specs: List[ProcessSpec] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            specs.append(_spec_from_mapping(row))
    return specs


def _spec_from_mapping(mapping) -> ProcessSpec:
    try:
        name = mapping.get("name") or mapping.get("pid") or ""
        arrival_time = float(mapping["arrival_time"])
        burst_time = float(mapping["burst_time"])
        priority_val = mapping.get("priority")
        priority = int(priority_val) if priority_val not in (None, "") else DEFAULT_PRIORITY
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise InvalidProcessError(f"Invalid process entry: {mapping!r}") from exc

    spec = ProcessSpec(
        name=str(name),
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
    )
    validate_spec(spec)
    return spec
