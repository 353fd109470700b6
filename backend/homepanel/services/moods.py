"""
Mood presets.

Each mood maps a device type to the attribute values it forces. Device
types missing from a mood are left alone when the mood is applied.
Brightness is a percentage.
"""

from typing import Any, Dict

from homepanel.core.errors import InvalidInputError
from homepanel.models.device import DeviceType

MoodPreset = Dict[str, Dict[str, Any]]

MOODS: Dict[str, MoodPreset] = {
    # Lights off, gentle airflow, sleeping temperature
    "goodNight": {
        DeviceType.LIGHTS.value: {"status": "off"},
        DeviceType.FAN.value: {"status": "on", "speed": 2},
        DeviceType.AC_HEATER.value: {"status": "on", "temperature": 22},
    },
    # Dim warm light
    "calm": {
        DeviceType.LIGHTS.value: {"status": "on", "brightness": 40, "color": "#ffcc80"},
        DeviceType.FAN.value: {"status": "on", "speed": 1},
        DeviceType.AC_HEATER.value: {"status": "on", "temperature": 24},
    },
    # Brighter cool light, more airflow
    "chill": {
        DeviceType.LIGHTS.value: {"status": "on", "brightness": 60, "color": "#e0f7fa"},
        DeviceType.FAN.value: {"status": "on", "speed": 3},
        DeviceType.AC_HEATER.value: {"status": "on", "temperature": 21},
    },
    "relax": {
        DeviceType.LIGHTS.value: {"status": "on", "brightness": 20, "color": "#ffb74d"},
        DeviceType.FAN.value: {"status": "on", "speed": 1},
        DeviceType.AC_HEATER.value: {"status": "on", "temperature": 24},
    },
}


def get_mood(mood_key: str) -> MoodPreset:
    """Resolve a mood key or fail with InvalidInput."""
    preset = MOODS.get(mood_key)
    if preset is None:
        raise InvalidInputError(
            "Invalid mood",
            details={"allowed": sorted(MOODS)},
        )
    return preset
