"""Transformation catalogue shared by models, services and helpers."""

TRANSFORMATION_TYPES = ("restore", "removeBackground", "fill", "remove", "recolor")

# Config each transformation type starts from before the caller's options are merged in.
TRANSFORMATION_DEFAULTS: dict[str, dict] = {
    "restore": {"restore": True},
    "removeBackground": {"removeBackground": True},
    "fill": {"fillBackground": True},
    "remove": {"remove": {"prompt": "", "removeShadow": True, "multiple": True}},
    "recolor": {"recolor": {"prompt": "", "to": "", "multiple": True}},
}

ASPECT_RATIO_OPTIONS: dict[str, dict[str, int]] = {
    "1:1": {"width": 1000, "height": 1000},
    "3:4": {"width": 1000, "height": 1334},
    "9:16": {"width": 1000, "height": 1778},
}

DEFAULT_IMAGE_SIZE = 1000

ROOT_PAGE_PATH = "/"
