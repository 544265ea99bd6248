from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from types import MappingProxyType

PRIMARY = "primary-project-group"
SECONDARY = "secondary-project-group"
TOOLING = "tooling-group"
PERSONAL = "personal-group"
OTHER = "other"

CATEGORIES = (PRIMARY, SECONDARY, TOOLING, PERSONAL, OTHER)

DEFAULT_LABELS = {
    PRIMARY: "Primary",
    SECONDARY: "Secondary",
    TOOLING: "Tooling",
    PERSONAL: "Personal",
    OTHER: "Other",
}

# Tailwind-ish palette: (solid, text, tinted background)
CATEGORY_COLORS = {
    PRIMARY: ("#F97316", "#EA580C", "rgba(249,115,22,0.1)"),
    SECONDARY: ("#22C55E", "#16A34A", "rgba(34,197,94,0.1)"),
    TOOLING: ("#A855F7", "#9333EA", "rgba(168,85,247,0.1)"),
    PERSONAL: ("#3B82F6", "#2563EB", "rgba(59,130,246,0.1)"),
    OTHER: ("#6B7280", "#4B5563", "rgba(107,114,128,0.1)"),
}


def _check_category(value: str, where: str) -> str:
    if value not in CATEGORIES:
        raise ValueError(f"Unknown category {value!r} for {where} (expected one of: {', '.join(CATEGORIES)})")
    return value


@dataclasses.dataclass(frozen=True)
class CategoryTable:
    exact: Mapping[str, str] = dataclasses.field(default_factory=dict)
    prefix: str = "mcp-"
    prefix_category: str = TOOLING
    labels: Mapping[str, str] = dataclasses.field(default_factory=lambda: dict(DEFAULT_LABELS))

    def __post_init__(self) -> None:
        for repo, cat in self.exact.items():
            _check_category(cat, f"repo {repo!r}")
        _check_category(self.prefix_category, "prefix rule")
        labels = dict(DEFAULT_LABELS)
        for cat, label in self.labels.items():
            labels[_check_category(cat, "labels")] = str(label)
        object.__setattr__(self, "exact", MappingProxyType(dict(self.exact)))
        object.__setattr__(self, "labels", MappingProxyType(labels))

    def label(self, category: str) -> str:
        return self.labels.get(category, category)


DEFAULT_TABLE = CategoryTable()


def category_for(repo: str, table: CategoryTable = DEFAULT_TABLE) -> str:
    if repo in table.exact:
        return table.exact[repo]
    if table.prefix and repo.startswith(table.prefix):
        return table.prefix_category
    return OTHER


def category_table_from_config(config: dict) -> CategoryTable:
    raw = config.get("categories")
    if not raw:
        return DEFAULT_TABLE
    if not isinstance(raw, dict):
        raise ValueError("config `categories` must be an object")
    exact = raw.get("exact") or {}
    labels = raw.get("labels") or {}
    if not isinstance(exact, dict) or not isinstance(labels, dict):
        raise ValueError("config `categories.exact` and `categories.labels` must be objects")
    return CategoryTable(
        exact={str(k): str(v) for k, v in exact.items()},
        prefix=str(raw.get("prefix", "mcp-") or ""),
        prefix_category=str(raw.get("prefix_category", TOOLING) or TOOLING),
        labels={str(k): str(v) for k, v in labels.items()},
    )
