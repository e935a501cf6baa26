"""Parse stored HTML content into typed nodes and render it back.

Rendering is deterministic and ``render(parse(render(nodes)))`` equals
``render(nodes)``, so content written by the editor round-trips unchanged.
Comments and doctypes are dropped.
"""

from __future__ import annotations

from html.parser import HTMLParser
from typing import Dict, Iterable, List, Optional, Tuple

from .nodes import (
    ASSIGNED_BLOCK_CLASS,
    BACKLINKS_CLASS,
    ENTITY_LINK_CLASS,
    HIGHLIGHT_CLASS,
    VOID_TAGS,
    AssignmentMarker,
    BacklinkAggregate,
    Element,
    EntityReference,
    Node,
    Text,
    text_content,
)

RAW_TEXT_TAGS = frozenset({"script", "style"})


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element("#root")
        self.stack: List[Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        element = Element(tag, dict(attrs))
        self.stack[-1].children.append(element)
        if tag not in VOID_TAGS:
            self.stack.append(element)

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self.stack[-1].children.append(Element(tag, dict(attrs)))

    def handle_endtag(self, tag: str) -> None:
        for i in range(len(self.stack) - 1, 0, -1):
            if self.stack[i].tag == tag:
                del self.stack[i:]
                return
        # stray end tag without an open element: ignored like a browser does

    def handle_data(self, data: str) -> None:
        children = self.stack[-1].children
        if children and isinstance(children[-1], Text):
            children[-1].value += data
        else:
            children.append(Text(data))


def parse(content: Optional[str]) -> List[Node]:
    """Parse HTML ``content`` into a list of typed nodes."""

    if not content:
        return []
    builder = _TreeBuilder()
    builder.feed(content)
    builder.close()
    return [_classify(node) for node in builder.root.children]


def render(nodes: Iterable[Node]) -> str:
    return "".join(_render(node) for node in nodes)


# ----------------------------------------------------------------------
# classification


def _classify(node: Node) -> Node:
    if not isinstance(node, Element):
        return node
    children = [_classify(child) for child in node.children]
    attrs = dict(node.attrs)
    classes = _split_classes(attrs.get("class"))

    if "data-backlink-entity-id" in attrs and BACKLINKS_CLASS in classes:
        entity_id = attrs.pop("data-backlink-entity-id") or ""
        attrs.pop("class", None)
        attrs.pop("contenteditable", None)
        return BacklinkAggregate(
            entity_id=entity_id,
            children=children,
            classes=[c for c in classes if c != BACKLINKS_CLASS],
            attrs=attrs,
        )

    if "data-assigned-block-id" in attrs:
        block_id = attrs.pop("data-assigned-block-id") or ""
        entity_id = attrs.pop("data-assigned-entity-id", None) or ""
        color = attrs.pop("data-assigned-entity-color", None) or None
        style = _parse_style(attrs.pop("style", None))
        attrs.pop("class", None)
        return AssignmentMarker(
            block_id=block_id,
            entity_id=entity_id,
            entity_color=color,
            highlighted=HIGHLIGHT_CLASS in classes,
            style=style,
            children=children,
            classes=[c for c in classes if c not in (ASSIGNED_BLOCK_CLASS, HIGHLIGHT_CLASS)],
            attrs=attrs,
        )

    if "data-entity-id" in attrs and ENTITY_LINK_CLASS in classes:
        entity_id = attrs.pop("data-entity-id") or ""
        attrs.pop("class", None)
        nested = any(not isinstance(child, Text) for child in children)
        return EntityReference(
            entity_id=entity_id,
            text=text_content(children),
            text_type=attrs.pop("data-entity-text-type", None) or "primary",
            alias_id=attrs.pop("data-entity-alias-id", None) or None,
            link=attrs.pop("data-entity-link", None) or "",
            is_external=(attrs.pop("data-is-external", None) or "").lower() == "true",
            original_text=attrs.pop("data-entity-original-text", None) or "",
            classes=[c for c in classes if c != ENTITY_LINK_CLASS],
            attrs=attrs,
            children=children if nested else [],
        )

    return Element(node.tag, attrs, children)


def _split_classes(value: Optional[str]) -> List[str]:
    seen: List[str] = []
    for token in (value or "").split():
        if token not in seen:
            seen.append(token)
    return seen


def _parse_style(value: Optional[str]) -> Dict[str, str]:
    style: Dict[str, str] = {}
    for declaration in (value or "").split(";"):
        if ":" not in declaration:
            continue
        name, val = declaration.split(":", 1)
        name = name.strip()
        if not name.startswith("--"):
            name = name.lower()
        if name:
            style[name] = val.strip()
    return style


# ----------------------------------------------------------------------
# rendering


def _render(node: Node) -> str:
    if isinstance(node, Text):
        return _escape_text(node.value)
    if isinstance(node, EntityReference):
        attrs: Dict[str, Optional[str]] = {
            "class": " ".join([ENTITY_LINK_CLASS, *node.classes]),
            "data-entity-id": node.entity_id,
            "data-entity-link": node.link,
            "data-is-external": "true" if node.is_external else "false",
            "data-entity-text-type": node.text_type,
            "data-entity-original-text": node.original_text,
        }
        if node.alias_id:
            attrs["data-entity-alias-id"] = node.alias_id
        inner = render(node.children) if node.children else _escape_text(node.text)
        return _element("span", {**attrs, **node.attrs}, inner)
    if isinstance(node, AssignmentMarker):
        classes = [ASSIGNED_BLOCK_CLASS]
        if node.highlighted:
            classes.append(HIGHLIGHT_CLASS)
        attrs = {
            "class": " ".join([*classes, *node.classes]),
            "data-assigned-block-id": node.block_id,
            "data-assigned-entity-id": node.entity_id,
        }
        if node.entity_color:
            attrs["data-assigned-entity-color"] = node.entity_color
        if node.style:
            attrs["style"] = "; ".join(f"{k}: {v}" for k, v in node.style.items())
        return _element("span", {**attrs, **node.attrs}, render(node.children))
    if isinstance(node, BacklinkAggregate):
        attrs = {
            "contenteditable": "false",
            "class": " ".join([BACKLINKS_CLASS, *node.classes]),
            "data-backlink-entity-id": node.entity_id,
        }
        return _element("div", {**attrs, **node.attrs}, render(node.children))
    if node.is_void:
        return f"<{node.tag}{_render_attrs(node.attrs)}>"
    if node.tag in RAW_TEXT_TAGS:
        # the parser hands their content over unescaped
        inner = "".join(c.value if isinstance(c, Text) else _render(c) for c in node.children)
        return _element(node.tag, node.attrs, inner)
    return _element(node.tag, node.attrs, render(node.children))


def _element(tag: str, attrs: Dict[str, Optional[str]], inner: str) -> str:
    return f"<{tag}{_render_attrs(attrs)}>{inner}</{tag}>"


def _render_attrs(attrs: Dict[str, Optional[str]]) -> str:
    parts = []
    for name, value in attrs.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{_escape_attr(value)}"')
    return "".join(parts)


def _escape_text(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("\u00a0", "&nbsp;")
    )


def _escape_attr(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;").replace("\u00a0", "&nbsp;")


__all__ = ["parse", "render"]
