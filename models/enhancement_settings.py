from __future__ import annotations
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Mapping
import math

from models.errors import InvalidSettingsError


@dataclass(frozen=True)
class SettingRange:
    """Valid interval, slider step and default of one enhancement setting."""
    minimum: float
    maximum: float
    step: float
    default: float

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


# Display order matches the slider panel.
SETTING_RANGES: Dict[str, SettingRange] = {
    "brightness": SettingRange(-100.0, 100.0, 1.0, 0.0),
    "contrast":   SettingRange(-100.0, 100.0, 1.0, 0.0),
    "sharpness":  SettingRange(0.0, 100.0, 1.0, 0.0),
    "saturation": SettingRange(-100.0, 100.0, 1.0, 0.0),
    "gamma":      SettingRange(0.1, 2.5, 0.1, 1.0),
    "blur":       SettingRange(0.0, 20.0, 0.5, 0.0),
    "exposure":   SettingRange(-100.0, 100.0, 1.0, 0.0),
}


@dataclass(frozen=True)
class EnhancementSettings:
    """
    Value-object holding the seven slider values of one render.
    Percent-style fields are offsets in [-100, +100]; gamma is an exponent,
    blur a radius in pixels.
    """
    brightness: float = 0.0      # [-100, +100]
    contrast:   float = 0.0      # [-100, +100]
    sharpness:  float = 0.0      # [0, 100]
    saturation: float = 0.0      # [-100, +100]
    gamma:      float = 1.0      # [0.1, 2.5]
    blur:       float = 0.0      # [0, 20] px
    exposure:   float = 0.0      # [-100, +100]

    # ── Construction ─────────────────────────────────────────────────
    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        base: EnhancementSettings | None = None,
    ) -> EnhancementSettings:
        """
        Build settings from a dict (JSON body, CLI namespace ...).
        Missing keys are taken from *base* (defaults when omitted).
        """
        unknown = set(values) - set(SETTING_RANGES)
        if unknown:
            raise InvalidSettingsError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

        merged = (base or cls()).as_dict()
        for key, raw in values.items():
            merged[key] = _as_number(key, raw)

        settings = cls(**merged)
        settings.validate()
        return settings

    def with_updates(self, **changes: Any) -> EnhancementSettings:
        return EnhancementSettings.from_mapping(changes, base=self)

    # ── Checks ───────────────────────────────────────────────────────
    def validate(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            rng = SETTING_RANGES[field.name]
            if not rng.contains(value):
                raise InvalidSettingsError(
                    f"{field.name}={value} outside [{rng.minimum:g}, {rng.maximum:g}]"
                )

    def is_identity(self) -> bool:
        return all(
            getattr(self, name) == rng.default for name, rng in SETTING_RANGES.items()
        )

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _as_number(key: str, raw: Any) -> float:
    # bool is an int subclass; a checkbox value is never a slider value
    if isinstance(raw, bool):
        raise InvalidSettingsError(f"{key} must be a number, got {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidSettingsError(f"{key} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise InvalidSettingsError(f"{key} must be finite, got {raw!r}")
    return value
