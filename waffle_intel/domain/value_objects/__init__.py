"""Domain value objects."""

from waffle_intel.domain.value_objects.content_key import ContentKey
from waffle_intel.domain.value_objects.date_range import DateRange

__all__ = ["ContentKey", "DateRange"]
