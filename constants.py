MOVEMENT_CATEGORIES: tuple[dict[str, str], ...] = (
    {"value": "upper_push", "label": "Upper Push", "color": "blue"},
    {"value": "upper_pull", "label": "Upper Pull", "color": "indigo"},
    {"value": "lower_push", "label": "Lower Push", "color": "emerald"},
    {"value": "lower_hinge", "label": "Lower Hinge", "color": "amber"},
    {"value": "core", "label": "Core", "color": "rose"},
)

CATEGORY_VALUES: tuple[str, ...] = tuple(c["value"] for c in MOVEMENT_CATEGORIES)

DEFAULT_CATEGORY_COLOR = "gray"

DAY_LOOKBACK = 30
WEEK_LOOKBACK = 52

DASHBOARD_RECENT_WORKOUTS = 5
DASHBOARD_SUMMARY_EXERCISES = 3
LIST_SUMMARY_EXERCISES = 4


def get_category_label(category: str) -> str:
    """Return the display label for ``category`` or the raw value if unknown."""
    for c in MOVEMENT_CATEGORIES:
        if c["value"] == category:
            return c["label"]
    return category


def get_category_color(category: str) -> str:
    for c in MOVEMENT_CATEGORIES:
        if c["value"] == category:
            return c["color"]
    return DEFAULT_CATEGORY_COLOR


def is_valid_category(category: str) -> bool:
    return category in CATEGORY_VALUES
