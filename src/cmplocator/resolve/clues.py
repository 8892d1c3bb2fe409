"""Search clues derived from a clicked element's observable attributes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

MAX_ATTRIBUTE_VALUE = 50
MIN_TEXT = 4
MAX_TEXT = 100

_FRAMEWORK_CLASS_PREFIXES = ("ng-", "_ng")
_BINDING_PREFIXES = ("(", "[", "*")


@dataclass(frozen=True)
class ElementSnapshot:
    """What the browser reports about the element that was clicked."""

    tag: str
    id: str = ""
    classes: tuple[str, ...] = ()
    attributes: tuple[tuple[str, str], ...] = ()
    text: str = ""
    parent_tag: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ElementSnapshot:
        """Build a snapshot from request JSON; raises ``ValueError`` on bad shape."""
        tag = data.get("tag")
        if not isinstance(tag, str) or not tag:
            msg = "element.tag must be a non-empty string"
            raise ValueError(msg)
        raw_attrs = data.get("attributes") or {}
        if isinstance(raw_attrs, dict):
            attrs = tuple((str(k), str(v)) for k, v in raw_attrs.items())
        elif isinstance(raw_attrs, list):
            attrs = tuple((str(k), str(v)) for k, v in raw_attrs)
        else:
            msg = "element.attributes must be an object or a list of pairs"
            raise ValueError(msg)
        parent = data.get("parentTag")
        return cls(
            tag=tag,
            id=str(data.get("id") or ""),
            classes=tuple(str(c) for c in data.get("classes") or ()),
            attributes=attrs,
            text=str(data.get("text") or ""),
            parent_tag=str(parent) if parent else None,
        )


def significant_classes(classes: tuple[str, ...]) -> list[str]:
    """Drop framework-generated classes and very short utility names."""
    return [
        cls
        for cls in classes
        if not cls.startswith(_FRAMEWORK_CLASS_PREFIXES) and len(cls) > 2
    ]


def build_search_clues(element: ElementSnapshot) -> list[str]:
    """Ordered clues for :func:`cmplocator.resolve.search.find_best_line`.

    Order matters: the most specific evidence (id, class attribute) comes first
    and therefore weighs most.
    """
    clues: list[str] = []
    tag = element.tag.lower()

    if element.id:
        clues.append(f'id="{element.id}"')
        clues.append(f"#{element.id}")

    classes = significant_classes(element.classes)
    if classes:
        clues.append(f'class="{" ".join(classes)}"')
        for cls in classes:
            clues.append(cls)

    clues.append(f"<{tag}")

    for name, value in element.attributes:
        if name.startswith(_BINDING_PREFIXES):
            clues.append(name)
        if name.startswith("data-") or "ng-" in name:
            continue
        if value and len(value) < MAX_ATTRIBUTE_VALUE:
            clues.append(f'{name}="{value}"')

    text = element.text.strip()
    if MIN_TEXT <= len(text) < MAX_TEXT and "\n" not in text:
        clues.append(text)

    if element.parent_tag:
        parent = element.parent_tag.lower()
        clues.append(f"{parent} {tag}")
        clues.append(f"<{parent}.*<{tag}")

    return clues
