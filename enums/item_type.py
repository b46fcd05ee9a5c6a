from enum import Enum


class ItemType(str, Enum):
    COURSE = "course"
    EVENT = "event"
    DIGITAL_PRODUCT = "digital_product"
