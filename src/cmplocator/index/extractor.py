"""Component extractor: tree-sitter parsing of Angular ``@Component`` classes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Node as TSNode

# Decorator whose class is recorded.
COMPONENT_DECORATOR = "Component"

# Decorator property that points at the external template.
TEMPLATE_PROPERTY = "templateUrl"

_CLASS_TYPES = frozenset({"class_declaration", "class"})
_QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class ExtractedComponent:
    """A component class as seen in a single file, before path resolution."""

    identifier_name: str
    template_reference: str | None = None
    line: int = 1


# ---- Language loaders ----


def _load_typescript() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_typescript())


def _load_tsx() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_tsx())


_EXTENSION_LOADERS: dict[str, Callable[[], Language]] = {
    ".ts": _load_typescript,
    ".mts": _load_typescript,
    ".tsx": _load_tsx,
}

_LANG_CACHE: dict[str, Language] = {}


def get_language(extension: str) -> Language | None:
    """Get the grammar for a file extension, or ``None`` if unsupported."""
    if extension in _LANG_CACHE:
        return _LANG_CACHE[extension]
    loader = _EXTENSION_LOADERS.get(extension)
    if loader is None:
        return None
    language = loader()
    _LANG_CACHE[extension] = language
    return language


def supported_extensions() -> frozenset[str]:
    return frozenset(_EXTENSION_LOADERS)


def clear_cache() -> None:
    """Clear the grammar cache (useful for testing)."""
    _LANG_CACHE.clear()


def _node_text(node: TSNode | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8")


def _unquote(text: str) -> str | None:
    text = text.strip()
    if len(text) >= 2 and text[0] in _QUOTES and text[-1] == text[0]:
        return text[1:-1]
    return None


def _decorator_call(decorator: TSNode) -> tuple[str, TSNode | None] | None:
    """Return ``(name, first argument)`` for a call-style decorator."""
    for child in decorator.named_children:
        if child.type != "call_expression":
            continue
        function = child.child_by_field_name("function")
        name = _node_text(function).rsplit(".", 1)[-1]
        arguments = child.child_by_field_name("arguments")
        first = arguments.named_children[0] if arguments and arguments.named_children else None
        return name, first
    return None


def _template_reference(config: TSNode | None) -> str | None:
    """Pull ``templateUrl`` out of the decorator's object literal."""
    if config is None or config.type != "object":
        return None
    for pair in config.named_children:
        if pair.type != "pair":
            continue
        key = _node_text(pair.child_by_field_name("key"))
        if (_unquote(key) or key) != TEMPLATE_PROPERTY:
            continue
        value = pair.child_by_field_name("value")
        if value is None or value.type not in ("string", "template_string"):
            return None
        return _unquote(_node_text(value)) or None
    return None


def _component_of(class_node: TSNode, decorators: list[TSNode]) -> ExtractedComponent | None:
    name_node = class_node.child_by_field_name("name")
    name = _node_text(name_node)
    if not name:
        return None
    for decorator in decorators:
        call = _decorator_call(decorator)
        if call is None or call[0] != COMPONENT_DECORATOR:
            continue
        # tree-sitter rows are 0-based; point at the class name, not the decorator.
        return ExtractedComponent(
            identifier_name=name,
            template_reference=_template_reference(call[1]),
            line=name_node.start_point.row + 1,
        )
    return None


def _unwrap(node: TSNode) -> tuple[TSNode, list[TSNode]] | None:
    """Find the class behind *node* plus every decorator attached to it.

    Decorators sit either on the class itself or, for ``@X() export class``,
    on the enclosing ``export_statement``.
    """
    if node.type in _CLASS_TYPES:
        return node, [c for c in node.children if c.type == "decorator"]
    if node.type != "export_statement":
        return None
    outer = [c for c in node.children if c.type == "decorator"]
    for child in node.children:
        if child.type in _CLASS_TYPES:
            inner = [c for c in child.children if c.type == "decorator"]
            return child, outer + inner
    return None


def extract_components(source: str, extension: str = ".ts") -> list[ExtractedComponent]:
    """Extract ``@Component`` decorated top-level classes from *source*.

    Returns an empty list for unsupported extensions or blank files. The
    template reference is returned as written (relative to the file).
    """
    language = get_language(extension)
    if language is None or not source.strip():
        return []

    parser = Parser(language)
    tree = parser.parse(source.encode("utf-8"))

    components: list[ExtractedComponent] = []
    for child in tree.root_node.children:
        unwrapped = _unwrap(child)
        if unwrapped is None:
            continue
        component = _component_of(*unwrapped)
        if component is not None:
            components.append(component)
    return components
