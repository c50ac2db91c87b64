"""
Vital-sign registry - single source of truth for vital reference ranges.

This module provides:
- YAML-based configuration loading and validation
- VitalDefinition dataclass for a vital sign's acceptable range
- Lookup by canonical name or alias

YAML access is encapsulated here - no other module should read vitals.yaml directly.

Usage:
    from telehealth_svc.core.vital_registry import get_vital, find_vital

    vital = get_vital("heart_rate")       # raises KeyError when unknown
    vital = find_vital("pulse")           # None when unknown
    vital.is_out_of_range(220)            # True
"""
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VitalDefinition:
    """
    Immutable definition for a vital sign.

    Attributes:
        canonical_name: Primary identifier (the value of customAttributes.vitalType)
        display_name: Human-readable name
        range: Acceptable (low, high) range, inclusive
        unit: Measurement unit shown in messages
        aliases: Alternative names that resolve to this vital
    """
    canonical_name: str
    display_name: str
    range: Tuple[float, float]
    unit: str
    aliases: Tuple[str, ...]

    @property
    def low(self) -> float:
        return self.range[0]

    @property
    def high(self) -> float:
        return self.range[1]

    def is_out_of_range(self, value: float) -> bool:
        low, high = self.range
        return not (low <= value <= high)

    def range_message(self) -> str:
        """Advisory text shown when a value falls outside the range."""
        return f"Value should be between {_format_bound(self.low)} and {_format_bound(self.high)} {self.unit}"


def _format_bound(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


# =============================================================================
# YAML CONFIGURATION LOADING & VALIDATION
# =============================================================================

def _get_config_path() -> Path:
    return Path(__file__).parent / 'vitals.yaml'


def _load_yaml_config() -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Raises:
        FileNotFoundError: If vitals.yaml is not found
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = _get_config_path()
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("Vitals config file not found", extra={'path': str(config_path)})
        raise
    except yaml.YAMLError as e:
        logger.error("Failed to parse vitals config", extra={'path': str(config_path), 'error': str(e)})
        raise


def _validate_vital_entry(raw: Dict[str, Any], index: int) -> None:
    """
    Validate a single vital entry from YAML.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    for field in ('canonical_name', 'range', 'unit'):
        if field not in raw:
            raise ValueError(f"Vital at index {index} is missing required field: '{field}'")

    range_val = raw['range']
    if not isinstance(range_val, (list, tuple)) or len(range_val) != 2:
        raise ValueError(f"Vital '{raw['canonical_name']}' has invalid range: must be [low, high]")
    try:
        low, high = float(range_val[0]), float(range_val[1])
    except (TypeError, ValueError):
        raise ValueError(f"Vital '{raw['canonical_name']}' has non-numeric range values")
    if low > high:
        raise ValueError(f"Vital '{raw['canonical_name']}' has low bound above high bound")


def _parse_vital_entry(raw: Dict[str, Any]) -> VitalDefinition:
    canonical_name = raw['canonical_name']
    return VitalDefinition(
        canonical_name=canonical_name,
        display_name=raw.get('display_name', canonical_name.replace('_', ' ').title()),
        range=(float(raw['range'][0]), float(raw['range'][1])),
        unit=str(raw['unit']),
        aliases=tuple(raw.get('aliases') or []),
    )


def _normalize_vital_name(name: str) -> str:
    """Lowercase, trim and collapse separators so 'Heart Rate' == 'heart_rate'."""
    if not name:
        return ''
    normalized = name.lower().strip()
    normalized = re.sub(r'[\s\-]+', '_', normalized)
    return re.sub(r'[^a-z0-9_]', '', normalized)


@lru_cache(maxsize=1)
def _load_registry() -> Dict[str, VitalDefinition]:
    """
    Load and cache the normalized name -> definition lookup.

    Cached so vitals.yaml is read exactly once per process.
    """
    config = _load_yaml_config()

    lookup: Dict[str, VitalDefinition] = {}
    for i, raw in enumerate(config.get('vitals', [])):
        _validate_vital_entry(raw, i)
        vital = _parse_vital_entry(raw)
        for name in (vital.canonical_name,) + vital.aliases:
            key = _normalize_vital_name(name)
            if key in lookup and lookup[key] != vital:
                logger.warning(
                    "Vital name collision detected",
                    extra={'name': key, 'existing': lookup[key].canonical_name}
                )
                continue
            lookup[key] = vital
    return lookup


# =============================================================================
# PUBLIC API
# =============================================================================

def get_vital(name: str) -> VitalDefinition:
    """
    Get a vital definition by canonical name or alias.

    Raises:
        KeyError: If the vital is not in the registry
    """
    normalized = _normalize_vital_name(name)
    lookup = _load_registry()
    if normalized not in lookup:
        raise KeyError(f"Unknown vital: '{name}' (normalized: '{normalized}')")
    return lookup[normalized]


def find_vital(name: Optional[str]) -> Optional[VitalDefinition]:
    """Get a vital definition, or None for unknown or empty names."""
    if not name or not isinstance(name, str):
        return None
    return _load_registry().get(_normalize_vital_name(name))


def list_vitals() -> Dict[str, VitalDefinition]:
    """All vital definitions keyed by canonical name."""
    return {v.canonical_name: v for v in _load_registry().values()}
