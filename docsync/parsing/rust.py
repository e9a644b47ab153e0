"""Structural parser for Rust source files built on tree-sitter.

Only item-level structure is read: modules, structs, unions and enums with
their fields and variants, functions, constants, statics, type aliases,
traits, impl blocks, ``macro_rules!`` definitions and ``pub use`` re-exports.
Function bodies are never entered. tree-sitter recovers from syntax errors by
wrapping the unreadable region in an ``ERROR`` node (or inserting a
zero-width ``MISSING`` token); each such region becomes a
:class:`~docsync.models.ParseAmbiguity` and the items recovered around it are
still collected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterator, List, Optional, Tuple

import tree_sitter_rust
from tree_sitter import Language, Node, Parser

from ..logging import get_logger
from ..models import (
    DeclarationNode,
    DeclKind,
    ParseAmbiguity,
    ParsedFile,
    Reexport,
    SourceFile,
    SourceLocation,
)
from .base import SourceParser
from .comments import block_comment_lines, clean_doc_lines, literal_value

RUST_LANGUAGE = Language(tree_sitter_rust.language())

_COMMENTS = frozenset({"line_comment", "block_comment"})
_VISIBILITY = frozenset({"visibility_modifier"})
_SILENT = frozenset({"extern_crate_declaration", "empty_statement"})
_LEADING_NAME = re.compile(r"\s*(?:r#)?([A-Za-z_][A-Za-z0-9_]*)")

_SIMPLE_ITEMS = {
    "function_item": DeclKind.FUNCTION,
    "function_signature_item": DeclKind.FUNCTION,
    "const_item": DeclKind.CONSTANT,
    "static_item": DeclKind.STATIC,
    "type_item": DeclKind.TYPE_ALIAS,
    "associated_type": DeclKind.TYPE_ALIAS,
    "macro_definition": DeclKind.MACRO,
}

# Wrappers around the self type of an impl that still name a single type.
_TYPE_WRAPPERS = {
    "generic_type": "type",
    "scoped_type_identifier": "name",
    "reference_type": "type",
    "pointer_type": "type",
}


@dataclass
class _Leading:
    doc: Optional[List[str]] = None
    conditional: bool = False


class _Container:
    """Collects inner docs for the module (or file) whose body is being read."""

    def __init__(self, scope: Tuple[str, ...] = ()) -> None:
        self.scope = scope
        self._inner: Optional[List[str]] = None

    def add_inner(self, lines: List[str]) -> None:
        if self._inner is None:
            self._inner = []
        self._inner.extend(lines)

    def doc(self) -> Optional[str]:
        return None if self._inner is None else clean_doc_lines(self._inner)


class RustParser(SourceParser):
    """Recovers the declaration tree of ``.rs`` files."""

    extensions = (".rs",)

    def __init__(self) -> None:
        self.logger = get_logger("parsing.rust")

    def parse(self, source: SourceFile) -> ParsedFile:
        data = source.text.encode("utf-8")
        # Parser objects are not shared so units can be parsed from several threads.
        tree = Parser(RUST_LANGUAGE).parse(data)
        parsed = _TreeReader(source.relative, data).read(tree.root_node)
        for gap in parsed.gaps:
            self.logger.debug(
                "Skipped %s:%d-%d (%s)", gap.file, gap.start_line, gap.end_line, gap.reason
            )
        return parsed


class _TreeReader:
    def __init__(self, file: str, data: bytes) -> None:
        self.file = file
        self.data = data
        self.gaps: List[ParseAmbiguity] = []
        self.reexports: List[Reexport] = []

    def read(self, root: Node) -> ParsedFile:
        container = _Container()
        nodes = self._items(root, container)
        if root.has_error:
            self._record_errors(root)
        self.gaps.sort(key=lambda gap: (gap.start_line, gap.end_line))
        return ParsedFile(
            nodes=nodes,
            inner_doc=container.doc(),
            reexports=self.reexports,
            gaps=self.gaps,
        )

    # ------------------------------------------------------------------
    # Node helpers

    def _text(self, node: Node) -> str:
        return self.data[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    def _field_text(self, node: Node, name: str) -> Optional[str]:
        child = node.child_by_field_name(name)
        return None if child is None else self._text(child)

    @staticmethod
    def _last_row(node: Node) -> int:
        # Line comments own their newline, so they end at column 0 of the next row.
        end_row, end_column = node.end_point[0], node.end_point[1]
        if end_column == 0 and end_row > node.start_point[0]:
            return end_row - 1
        return end_row

    def _gap(self, node: Node, reason: str) -> None:
        self.gaps.append(
            ParseAmbiguity(
                file=self.file,
                start_line=node.start_point[0] + 1,
                end_line=self._last_row(node) + 1,
                reason=reason,
            )
        )

    def _record_errors(self, root: Node) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR":
                self._gap(node, "unparseable source")
            elif node.is_missing:
                self._gap(node, f"missing {node.type!r}")
            elif node.has_error:
                stack.extend(reversed(node.children))

    def _node(
        self,
        name: str,
        kind: DeclKind,
        node: Node,
        leading: _Leading,
        children: Optional[List[DeclarationNode]] = None,
    ) -> DeclarationNode:
        return DeclarationNode(
            name=name,
            kind=kind,
            doc_text=None if leading.doc is None else clean_doc_lines(leading.doc),
            children=children or [],
            location=SourceLocation(self.file, node.start_point[0] + 1),
            conditional=leading.conditional,
        )

    # ------------------------------------------------------------------
    # Leading docs and attributes

    def _members(
        self,
        parent: Node,
        container: _Container,
        skip: FrozenSet[str] = frozenset(),
    ) -> Iterator[Tuple[Node, _Leading]]:
        """Yield each named child of ``parent`` with the docs and attributes before it."""
        leading = _Leading()
        last_row: Optional[int] = None
        for child in parent.children:
            if not child.is_named or child.type in skip:
                continue
            if (
                leading.doc is not None
                and last_row is not None
                and child.start_point[0] > last_row + 1
            ):
                leading.doc = None
            kind = child.type
            if kind in _COMMENTS:
                style, lines = self._comment(child)
                if style == "outer":
                    leading.doc = (leading.doc or []) + lines
                elif style == "inner":
                    container.add_inner(lines)
                last_row = self._last_row(child)
            elif kind == "attribute_item":
                name, doc = self._attribute(child)
                if doc is not None:
                    leading.doc = (leading.doc or []) + doc
                if name == "cfg":
                    leading.conditional = True
                last_row = self._last_row(child)
            elif kind == "inner_attribute_item":
                _, doc = self._attribute(child)
                if doc is not None:
                    container.add_inner(doc)
                last_row = self._last_row(child)
            else:
                yield child, leading
                leading = _Leading()
                last_row = None

    def _comment(self, node: Node) -> Tuple[Optional[str], List[str]]:
        text = self._text(node).rstrip("\r\n")
        if node.type == "line_comment":
            if text.startswith("///") and not text.startswith("////"):
                return "outer", [text[3:]]
            if text.startswith("//!"):
                return "inner", [text[3:]]
            return None, []
        body = text[3:-2]
        if text.startswith("/**") and not text.startswith("/***") and text != "/**/":
            return "outer", block_comment_lines(body)
        if text.startswith("/*!"):
            return "inner", block_comment_lines(body)
        return None, []

    def _attribute(self, node: Node) -> Tuple[Optional[str], Optional[List[str]]]:
        attribute = next((child for child in node.named_children if child.type == "attribute"), None)
        if attribute is None:
            return None, None
        match = _LEADING_NAME.match(self._text(attribute))
        name = match.group(1) if match else None
        if name != "doc":
            return name, None
        value = attribute.child_by_field_name("value")
        literal = None if value is None else literal_value(self._text(value))
        return name, None if literal is None else literal.split("\n")

    # ------------------------------------------------------------------
    # Items

    def _items(
        self, parent: Node, container: _Container, *, recovering: bool = False
    ) -> List[DeclarationNode]:
        nodes: List[DeclarationNode] = []
        for child, leading in self._members(parent, container):
            nodes.extend(self._item(child, leading, container, recovering))
        return nodes

    def _item(
        self, node: Node, leading: _Leading, container: _Container, recovering: bool
    ) -> List[DeclarationNode]:
        kind = node.type
        if kind in _SIMPLE_ITEMS:
            name = self._field_text(node, "name")
            if not name or name == "_":
                return []
            return [self._node(name, _SIMPLE_ITEMS[kind], node, leading)]
        if kind == "mod_item":
            return self._module(node, leading, container)
        if kind == "struct_item":
            return self._struct(DeclKind.STRUCT, node, leading)
        if kind == "union_item":
            return self._struct(DeclKind.UNION, node, leading)
        if kind == "enum_item":
            return self._enum(node, leading)
        if kind == "trait_item":
            return self._trait(node, leading, container)
        if kind == "impl_item":
            return self._impl(node, leading, container)
        if kind == "use_declaration":
            self._use(node, container)
            return []
        if kind == "foreign_mod_item":
            body = node.child_by_field_name("body")
            return [] if body is None else self._items(body, container, recovering=recovering)
        if kind == "ERROR":
            # The region itself is recorded by _record_errors.
            return self._items(node, container, recovering=True)
        if recovering or kind in _SILENT:
            return []
        if kind == "macro_invocation" or (
            kind == "expression_statement"
            and any(child.type == "macro_invocation" for child in node.named_children)
        ):
            self._gap(node, "macro invocation")
            return []
        self._gap(node, "unrecognized item")
        return []

    def _module(self, node: Node, leading: _Leading, container: _Container) -> List[DeclarationNode]:
        name = self._field_text(node, "name")
        if not name:
            return []
        module = self._node(name, DeclKind.MODULE, node, leading)
        body = node.child_by_field_name("body")
        if body is not None:
            inner = _Container(container.scope + (name,))
            module.children = self._items(body, inner)
            module.inner_doc = inner.doc()
        return [module]

    def _struct(self, kind: DeclKind, node: Node, leading: _Leading) -> List[DeclarationNode]:
        name = self._field_text(node, "name")
        if not name:
            return []
        struct = self._node(name, kind, node, leading)
        body = node.child_by_field_name("body")
        if body is not None:
            struct.children = self._fields(body)
        return [struct]

    def _fields(self, body: Node) -> List[DeclarationNode]:
        fields: List[DeclarationNode] = []
        if body.type == "ordered_field_declaration_list":
            for child, leading in self._members(body, _Container(), skip=_VISIBILITY):
                if child.type != "ERROR":
                    fields.append(self._node(str(len(fields)), DeclKind.FIELD, child, leading))
            return fields
        for child, leading in self._members(body, _Container()):
            if child.type != "field_declaration":
                continue
            name = self._field_text(child, "name")
            if name:
                fields.append(self._node(name, DeclKind.FIELD, child, leading))
        return fields

    def _enum(self, node: Node, leading: _Leading) -> List[DeclarationNode]:
        name = self._field_text(node, "name")
        if not name:
            return []
        enum = self._node(name, DeclKind.ENUM, node, leading)
        body = node.child_by_field_name("body")
        if body is None:
            return [enum]
        for child, variant_leading in self._members(body, _Container()):
            if child.type != "enum_variant":
                continue
            variant_name = self._field_text(child, "name")
            if not variant_name:
                continue
            variant = self._node(variant_name, DeclKind.VARIANT, child, variant_leading)
            fields = child.child_by_field_name("body")
            if fields is not None:
                variant.children = self._fields(fields)
            enum.children.append(variant)
        return [enum]

    def _trait(self, node: Node, leading: _Leading, container: _Container) -> List[DeclarationNode]:
        name = self._field_text(node, "name")
        if not name:
            return []
        trait = self._node(name, DeclKind.TRAIT, node, leading)
        body = node.child_by_field_name("body")
        if body is not None:
            trait.children = self._items(body, _Container(container.scope + (name,)))
        return [trait]

    def _impl(self, node: Node, leading: _Leading, container: _Container) -> List[DeclarationNode]:
        target = self._type_name(node.child_by_field_name("type"))
        body = node.child_by_field_name("body")
        scope = container.scope + ((target,) if target else ())
        children = [] if body is None else self._items(body, _Container(scope))
        if target is None:
            self._gap(node, "impl for an unnamed type")
            return []
        if target in self._type_parameters(node):
            # Blanket impls document no particular type.
            return []
        impl =self._node(target, DeclKind.IMPL, node, leading, children)
        impl.trait_impl = node.child_by_field_name("trait") is not None
        return [impl]

    def _type_parameters(self, node: Node) -> FrozenSet[str]:
        parameters = node.child_by_field_name("type_parameters")
        if parameters is None:
            return frozenset()
        names = set()
        for child in parameters.named_children:
            text = self._text(child)
            if text.startswith("const "):
                text = text[len("const ") :]
            match = _LEADING_NAME.match(text)
            if match:
                names.add(match.group(1))
        return frozenset(names)

    def _type_name(self, node: Optional[Node]) -> Optional[str]:
        while node is not None:
            if node.type == "type_identifier":
                return self._text(node)
            field_name = _TYPE_WRAPPERS.get(node.type)
            if field_name is None:
                return None
            node = node.child_by_field_name(field_name)
        return None

    # ------------------------------------------------------------------
    # Re-exports

    def _use(self, node: Node, container: _Container) -> None:
        if not any(child.type == "visibility_modifier" for child in node.children):
            return
        argument = node.child_by_field_name("argument")
        if argument is None:
            return
        location = SourceLocation(self.file, node.start_point[0] + 1)
        self._use_clause(argument, (), container.scope, location)

    def _use_clause(
        self,
        node: Node,
        prefix: Tuple[str, ...],
        scope: Tuple[str, ...],
        location: SourceLocation,
    ) -> None:
        kind = node.type
        if kind == "use_list":
            for child in node.named_children:
                if child.type not in _COMMENTS:
                    self._use_clause(child, prefix, scope, location)
            return
        if kind == "scoped_use_list":
            listing = node.child_by_field_name("list")
            if listing is not None:
                path = self._path(node.child_by_field_name("path"))
                self._use_clause(listing, prefix + path, scope, location)
            return
        if kind == "use_wildcard":
            path = next((child for child in node.named_children if child.type not in _COMMENTS), None)
            target = prefix + self._path(path)
            if target:
                self.reexports.append(
                    Reexport(target=target, name=None, glob=True, scope=scope, location=location)
                )
            return

        alias: Optional[str] = None
        path_node: Optional[Node] = node
        if kind == "use_as_clause":
            alias = self._field_text(node, "alias")
            path_node = node.child_by_field_name("path")
        target = prefix + self._path(path_node)
        if target and target[-1] == "self":
            target = target[:-1]
        if not target:
            return
        name = alias or target[-1]
        if name == "_":
            return
        self.reexports.append(Reexport(target=target, name=name, scope=scope, location=location))

    def _path(self, node: Optional[Node]) -> Tuple[str, ...]:
        if node is None:
            return ()
        if node.type == "scoped_identifier":
            return self._path(node.child_by_field_name("path")) + self._path(
                node.child_by_field_name("name")
            )
        return tuple(part.strip() for part in self._text(node).split("::") if part.strip())


__all__ = ["RUST_LANGUAGE", "RustParser"]
