"""
Interpolation configuration model.

One InterpolationConfig exists per (bundle, field). It is produced by the
host's configuration subsystem (or the YAML loader) and is read-only to
the pipeline; mutators always receive a copy.
"""

import copy
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Dict, Iterator, Optional, Tuple

from ai_interpolator.core.exceptions import ConfigurationError
from .enums import InterpolationMode, WorkerType


HOST_KEY_PREFIX = "interpolator_"
OVERRIDE_SUFFIX = "_override"


@dataclass
class InterpolationConfig:
    """Configuration bag for one interpolated field."""
    field_name: str = ""
    rule: str = ""
    base_field: str = ""
    enabled: bool = True
    mode: str = InterpolationMode.BASE.value
    weight: int = 100
    worker_type: str = WorkerType.DIRECT.value
    edit_mode: bool = False
    prompt: str = ""
    token: str = ""
    # Rule-specific keys (model parameters, clean_up, custom_value_*, ...)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def interpolation_mode(self) -> InterpolationMode:
        try:
            return InterpolationMode(self.mode)
        except ValueError:
            return InterpolationMode.BASE

    @property
    def worker(self) -> WorkerType:
        return WorkerType.parse(self.worker_type)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a key from the bag, core keys included."""
        if key in _CORE_KEYS:
            return getattr(self, key)
        return self.extra.get(key, default)

    def has(self, key: str) -> bool:
        return key in _CORE_KEYS or key in self.extra

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.to_dict().items())

    def validate(self) -> None:
        """Raise ConfigurationError when a required key is missing."""
        missing = [key for key in ("rule", "base_field") if not getattr(self, key)]
        if missing:
            raise ConfigurationError(
                f"Interpolation config for '{self.field_name}' is missing: {', '.join(missing)}",
                details={"field_name": self.field_name, "missing": missing},
            )

    def copy(self) -> "InterpolationConfig":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a single key/value bag."""
        data = {key: getattr(self, key) for key in _CORE_KEYS}
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        field_name: Optional[str] = None,
    ) -> "InterpolationConfig":
        """
        Create from a key/value bag.

        Keys may be given in the host form (``interpolator_rule``); the
        prefix is stripped. ``interpolator_enabled`` maps to ``enabled``.
        """
        bag: Dict[str, Any] = {}
        for key, value in data.items():
            if key.startswith(HOST_KEY_PREFIX):
                key = key[len(HOST_KEY_PREFIX):]
            bag[key] = value

        core = {key: bag.pop(key) for key in list(bag) if key in _CORE_KEYS}
        if field_name is not None:
            core["field_name"] = field_name
        if "weight" in core:
            try:
                core["weight"] = int(core["weight"])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid weight for '{core.get('field_name', '')}': {core['weight']!r}"
                )
        for flag in ("enabled", "edit_mode"):
            if flag in core:
                core[flag] = as_bool(core[flag])
        for text_key in ("prompt", "token"):
            if text_key in core and core[text_key] is None:
                core[text_key] = ""
        return cls(extra=bag, **core)


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


_CORE_KEYS = tuple(f.name for f in dataclass_fields(InterpolationConfig) if f.name != "extra")
