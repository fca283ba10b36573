# Models package
from .unit_availability import UnitAvailability, AvailabilityStatus, DEFAULT_STATUS
from .property_unit import PropertyUnit

__all__ = [
    "UnitAvailability", "AvailabilityStatus", "DEFAULT_STATUS",
    "PropertyUnit",
]
