from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .runtime import PixelDataOptions


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_mapping(payload: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a JSON object if provided")
    return value


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string if provided")
    return value


def parse_preprocess_profile(payload: Dict[str, Any]) -> PixelDataOptions:
    allowed = {
        "schema_version",
        "color_format",
        "data_layout",
        "normalization",
        "resize",
        "roi",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown preprocess profile keys: {unknown}")

    schema_version = _require_int(payload, "schema_version")
    if schema_version != 1:
        raise ValueError("preprocess profile schema_version must be 1")
    _optional_str(payload, "notes")

    options: Dict[str, Any] = {}
    color_format = _optional_str(payload, "color_format")
    if color_format is not None:
        options["colorFormat"] = color_format
    data_layout = _optional_str(payload, "data_layout")
    if data_layout is not None:
        options["dataLayout"] = data_layout
    for key in ("normalization", "resize", "roi"):
        section = _optional_mapping(payload, key)
        if section is not None:
            options[key] = section
    return PixelDataOptions.from_dict(options)


def load_preprocess_profile(path: Path) -> PixelDataOptions:
    """
    Load a preprocessing profile, e.g.

        {
          "schema_version": 1,
          "color_format": "rgb",
          "data_layout": "nchw",
          "normalization": {"preset": "scale"},
          "resize": {"width": 640, "height": 640, "strategy": "letterbox", "stride": 32}
        }

    Section mappings use the same camelCase keys as `PixelDataOptions.from_dict`.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Preprocess profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid preprocess profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Preprocess profile must be a JSON object")
    return parse_preprocess_profile(payload)
