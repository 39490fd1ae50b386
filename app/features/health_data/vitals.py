# Health Data Feature - Measurement ranges and field mapping

from typing import Callable, Dict, List, Optional, Tuple
from app.features.health_data.models import ReadingType


Range = Tuple[float, float]

VITAL_FIELDS = (
    "heart_rate",
    "blood_pressure_systolic",
    "blood_pressure_diastolic",
    "temperature",
    "respiratory_rate",
    "oxygen_saturation",
    "glucose_level",
)

# Snapshot field filled from each reading type when the snapshot lacks it
READING_TYPE_FIELDS: Dict[ReadingType, str] = {
    ReadingType.HEART_RATE: "heart_rate",
    ReadingType.BLOOD_PRESSURE_SYSTOLIC: "blood_pressure_systolic",
    ReadingType.BLOOD_PRESSURE_DIASTOLIC: "blood_pressure_diastolic",
    ReadingType.BLOOD_OXYGEN: "oxygen_saturation",
    ReadingType.TEMPERATURE: "temperature",
}

DEFAULT_UNITS: Dict[ReadingType, str] = {
    ReadingType.HEART_RATE: "BPM",
    ReadingType.BLOOD_PRESSURE_SYSTOLIC: "mmHg",
    ReadingType.BLOOD_PRESSURE_DIASTOLIC: "mmHg",
    ReadingType.BLOOD_OXYGEN: "%",
    ReadingType.TEMPERATURE: "°C",
}

# Accepted spellings of each canonical unit, as returned by normalize_unit
UNIT_ALIASES: Dict[ReadingType, Tuple[str, ...]] = {
    ReadingType.HEART_RATE: ("bpm", "beats/min"),
    ReadingType.BLOOD_PRESSURE_SYSTOLIC: ("mmhg",),
    ReadingType.BLOOD_PRESSURE_DIASTOLIC: ("mmhg",),
    ReadingType.BLOOD_OXYGEN: ("%", "percent"),
    ReadingType.TEMPERATURE: ("c", "celsius"),
}

UNIT_CONVERSIONS: Dict[ReadingType, Dict[str, Callable[[float], float]]] = {
    ReadingType.TEMPERATURE: {
        "f": lambda value: (value - 32) * 5 / 9,
        "fahrenheit": lambda value: (value - 32) * 5 / 9,
    },
}

# Values outside these are rejected as measurement errors
PHYSIOLOGICAL_BOUNDS: Dict[str, Range] = {
    "heart_rate": (40, 220),
    "blood_pressure_systolic": (60, 250),
    "blood_pressure_diastolic": (40, 140),
    "temperature": (35, 42),
    "respiratory_rate": (8, 40),
    "oxygen_saturation": (70, 100),
    "glucose_level": (40, 400),
}

# Values outside these are stored but trigger an alert
NORMAL_RANGES: Dict[str, Range] = {
    "heart_rate": (60, 100),
    "blood_pressure_systolic": (90, 140),
    "blood_pressure_diastolic": (60, 90),
    "temperature": (36.1, 38),
    "oxygen_saturation": (95, 100),
}

METRIC_LABELS: Dict[str, str] = {
    "heart_rate": "heart rate",
    "blood_pressure_systolic": "systolic blood pressure",
    "blood_pressure_diastolic": "diastolic blood pressure",
    "temperature": "temperature",
    "respiratory_rate": "respiratory rate",
    "oxygen_saturation": "oxygen saturation",
    "glucose_level": "glucose level",
}

SAMPLE_VALUES: Dict[ReadingType, float] = {
    ReadingType.HEART_RATE: 75,
    ReadingType.BLOOD_OXYGEN: 98,
    ReadingType.BLOOD_PRESSURE_SYSTOLIC: 120,
    ReadingType.BLOOD_PRESSURE_DIASTOLIC: 80,
    ReadingType.TEMPERATURE: 37.2,
}


def out_of_bounds(field: str, value: float) -> Optional[str]:
    """Error message when a value is physiologically implausible, else None."""
    low, high = PHYSIOLOGICAL_BOUNDS[field]
    if value < low or value > high:
        return f"{METRIC_LABELS[field].capitalize()} must be between {low:g} and {high:g} (got {value:g})"
    return None


def is_abnormal(field: str, value: Optional[float]) -> bool:
    if value is None or field not in NORMAL_RANGES:
        return False
    low, high = NORMAL_RANGES[field]
    return value < low or value > high


def abnormal_fields(values: Dict[str, Optional[float]]) -> List[str]:
    """Fields of a snapshot-shaped dict whose values are outside the normal range."""
    return [field for field, value in values.items() if is_abnormal(field, value)]


def normalize_unit(unit: str) -> str:
    return unit.strip().lower().replace("°", "").replace(" ", "")


def canonical_value(reading_type: ReadingType, value: float, unit: str) -> Optional[float]:
    """
    The reading's value in the canonical unit of its type (DEFAULT_UNITS).

    Returns None when the unit is not recognised; such readings are stored
    as given but never bound-checked, alerted on or merged into latest vitals.
    """
    key = normalize_unit(unit)
    if key in UNIT_ALIASES[reading_type]:
        return value
    convert = UNIT_CONVERSIONS.get(reading_type, {}).get(key)
    return round(convert(value), 2) if convert else None
