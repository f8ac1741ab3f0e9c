"""
The icon registry used to check icon references. A missing icon is only a
warning, since the rendering layer falls back to a default icon.
"""

from typing import Dict, FrozenSet, Iterable, List, Protocol

from openstrand.config.settings import global_settings

DEFAULT_LOOM_ICON = "folder"
DEFAULT_WEAVE_ICON = "sparkles"


PRESET_ICONS: Dict[str, List[str]] = {
    "default": ["folder", "folder-open", "folder-tree", "file", "file-text", "files"],
    "knowledge": [
        "book",
        "book-open",
        "book-marked",
        "library",
        "graduation-cap",
        "school",
        "lightbulb",
        "brain",
        "atom",
        "microscope",
        "flask",
        "test-tube",
        "dna",
    ],
    "creative": [
        "pen",
        "pen-tool",
        "pencil",
        "feather",
        "scroll",
        "notebook",
        "file-edit",
        "quote",
        "type",
    ],
    "storytelling": [
        "drama",
        "clapperboard",
        "film",
        "camera",
        "video",
        "tv",
        "radio",
        "mic",
        "music",
        "music2",
        "music4",
    ],
    "worldbuilding": [
        "castle",
        "crown",
        "swords",
        "shield",
        "wand",
        "sparkles",
        "star",
        "moon",
        "sun",
        "mountain",
        "trees",
        "palmtree",
        "flower",
        "leaf",
    ],
    "technology": [
        "code",
        "code2",
        "terminal",
        "cpu",
        "server",
        "database",
        "hard-drive",
        "cloud",
        "globe",
        "wifi",
        "laptop",
        "monitor",
        "smartphone",
        "tablet",
    ],
    "data": [
        "bar-chart",
        "bar-chart-2",
        "bar-chart-3",
        "pie-chart",
        "line-chart",
        "trending-up",
        "activity",
        "gauge",
        "target",
    ],
    "organization": [
        "calendar",
        "calendar-days",
        "clock",
        "timer",
        "hourglass",
        "list-todo",
        "check-square",
        "clipboard-list",
        "kanban",
        "layout",
        "layout-grid",
        "grid",
    ],
    "communication": [
        "message-square",
        "message-circle",
        "mail",
        "send",
        "bell",
        "megaphone",
    ],
    "business": [
        "briefcase",
        "building",
        "building-2",
        "landmark",
        "wallet",
        "credit-card",
        "dollar-sign",
        "piggy-bank",
        "receipt",
    ],
    "people": [
        "user",
        "users",
        "user-circle",
        "user-plus",
        "users-round",
        "heart",
        "heart-handshake",
        "handshake",
    ],
    "nature": [
        "bug",
        "bird",
        "cat",
        "dog",
        "fish",
        "rabbit",
        "squirrel",
        "tree-deciduous",
        "tree-pine",
        "sprout",
    ],
    "travel": [
        "map",
        "map-pin",
        "compass",
        "navigation",
        "plane",
        "car",
        "ship",
        "train",
        "rocket",
    ],
    "health": [
        "heart-pulse",
        "stethoscope",
        "pill",
        "apple",
        "salad",
        "dumbbell",
        "person-standing",
    ],
    "art": [
        "palette",
        "brush",
        "paintbrush",
        "scissors",
        "shapes",
        "circle",
        "square",
        "triangle",
        "hexagon",
    ],
    "games": ["gamepad", "dice", "puzzle", "trophy", "medal", "award", "gift", "party-popper"],
    "security": ["lock", "unlock", "key", "shield-check", "fingerprint", "eye", "eye-off"],
    "misc": [
        "box",
        "package",
        "archive",
        "bookmark",
        "tag",
        "tags",
        "hash",
        "link",
        "anchor",
        "infinity",
        "zap",
        "flame",
        "snowflake",
        "umbrella",
        "coffee",
        "wine",
        "utensils",
        "home",
        "store",
        "factory",
        "warehouse",
    ],
}


class IconRegistry(Protocol):
    def has_icon(self, icon_id: str) -> bool: ...


class PresetIconRegistry:
    """
    The preset icons, plus any extra icon ids (for example from settings).
    """

    def __init__(self, extra_icons: Iterable[str] = ()):
        preset = (icon for icons in PRESET_ICONS.values() for icon in icons)
        self.icons: FrozenSet[str] = frozenset(preset) | frozenset(extra_icons)

    def has_icon(self, icon_id: str) -> bool:
        return icon_id in self.icons

    def __len__(self) -> int:
        return len(self.icons)


def default_icon_registry() -> IconRegistry:
    """
    The registry used when a caller doesn't supply one: presets plus the
    `extra_icons` configured in settings.
    """
    return PresetIconRegistry(global_settings().extra_icons)


## Tests


def test_preset_icons():
    registry = PresetIconRegistry()
    assert registry.has_icon(DEFAULT_LOOM_ICON)
    assert registry.has_icon(DEFAULT_WEAVE_ICON)
    assert registry.has_icon("graduation-cap")
    assert not registry.has_icon("unicorn")

    assert PresetIconRegistry(["unicorn"]).has_icon("unicorn")
    assert default_icon_registry().has_icon("book")
