"""Policy constants and configuration for the scan pipeline."""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Binary output values
MAX_VALUE = 255
BORDER_FILL = 255  # white page background exposed by rotation

# Morphological opening removes speckles left by thresholding
MORPH_KERNEL_SIZE = 2

# Rectangle angles are only defined modulo 90 degrees
DESKEW_ANGLE_LIMIT = 45.0

ENGINE_READY_TIMEOUT = 30.0  # seconds
DOWNLOAD_FILENAME = "scanned-document.png"

SUPPORTED_FORMATS = ("image/jpeg", "image/png", "image/webp")


@dataclass(frozen=True)
class ThresholdPreset:
    """Adaptive threshold parameters, optionally preceded by a Gaussian blur."""

    block_size: int
    c: int
    blur_kernel: Optional[tuple[int, int]] = None

    def __post_init__(self):
        if self.block_size <= 1 or self.block_size % 2 == 0:
            raise ValueError(f"block_size must be odd and > 1, got {self.block_size}")
        if self.blur_kernel is not None:
            kw, kh = self.blur_kernel
            if kw <= 0 or kh <= 0 or kw % 2 == 0 or kh % 2 == 0:
                raise ValueError(f"blur_kernel must be positive and odd, got {self.blur_kernel}")


PRESETS = {
    # Strong scanner contrast, no blur
    "scanner": ThresholdPreset(block_size=15, c=15),
    # Softer result, blur first to suppress sensor noise
    "blurred": ThresholdPreset(block_size=11, c=2, blur_kernel=(5, 5)),
}
DEFAULT_PRESET = "scanner"


def get_preset(name: str) -> ThresholdPreset:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown preset {name!r}; choose one of: {', '.join(sorted(PRESETS))}"
        ) from None


@dataclass
class ScanConfig:
    """Tunable settings for a scan session."""

    preset: str = DEFAULT_PRESET
    morph_kernel_size: int = MORPH_KERNEL_SIZE
    engine_timeout: float = ENGINE_READY_TIMEOUT
    download_filename: str = DOWNLOAD_FILENAME
    threshold: ThresholdPreset = field(init=False)

    def __post_init__(self):
        self.threshold = get_preset(self.preset)
        if self.morph_kernel_size < 1:
            raise ValueError(
                f"morph_kernel_size must be >= 1, got {self.morph_kernel_size}"
            )
        if self.engine_timeout <= 0:
            raise ValueError(f"engine_timeout must be positive, got {self.engine_timeout}")

    @classmethod
    def from_dict(cls, data: dict) -> "ScanConfig":
        """
        Build a config from parsed JSON.

        Raises:
            ValueError: If the data is not an object or a value has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"config must be a JSON object, got {type(data).__name__}")
        return cls(
            preset=_coerce(data, "preset", DEFAULT_PRESET, str),
            morph_kernel_size=_coerce(data, "morph_kernel_size", MORPH_KERNEL_SIZE, int),
            engine_timeout=_coerce(data, "engine_timeout", ENGINE_READY_TIMEOUT, float),
            download_filename=_coerce(data, "download_filename", DOWNLOAD_FILENAME, str),
        )

    @classmethod
    def load(cls, path: str | Path) -> "ScanConfig":
        """Load configuration from a JSON file, or return defaults if not found."""
        path = Path(path)
        if not path.exists():
            logger.info("Config %s not found, using defaults", path)
            return cls()

        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("threshold")
        return data


def _coerce(data: dict, key: str, default, kind: type):
    value = data.get(key, default)
    # JSON booleans are ints in Python, and null/lists/objects never fit a setting
    if isinstance(value, (bool, list, dict)) or value is None:
        raise ValueError(f"{key} must be {kind.__name__}, got {value!r}")
    if kind is str and not isinstance(value, str):
        raise ValueError(f"{key} must be str, got {value!r}")
    if kind is int and isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be int, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be {kind.__name__}, got {value!r}") from None
