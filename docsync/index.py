"""Symbol index: merges parsed files into one declaration tree per unit."""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import DuplicateDeclarationError, PathNotFoundError
from .logging import get_logger
from .models import (
    NAMESPACE_ORDER,
    DeclarationNode,
    DeclKind,
    ParseAmbiguity,
    ParsedFile,
    Reexport,
    SourceFile,
    join_path,
)

ItemPath = Tuple[str, ...]
# Namespace -> (declaration, the path it is declared at).
Bindings = Dict[str, Tuple[DeclarationNode, ItemPath]]

_IMPL_TARGET_KINDS = {
    DeclKind.STRUCT,
    DeclKind.UNION,
    DeclKind.ENUM,
    DeclKind.TRAIT,
    DeclKind.TYPE_ALIAS,
}

# Disambiguator prefix -> (allowed kinds, allowed namespace). One of the two is set.
_DISAMBIGUATORS: Dict[str, Tuple[Optional[Set[DeclKind]], Optional[str]]] = {
    "mod": ({DeclKind.MODULE}, None),
    "module": ({DeclKind.MODULE}, None),
    "struct": ({DeclKind.STRUCT}, None),
    "union": ({DeclKind.UNION}, None),
    "enum": ({DeclKind.ENUM}, None),
    "variant": ({DeclKind.VARIANT}, None),
    "trait": ({DeclKind.TRAIT}, None),
    "tyalias": ({DeclKind.TYPE_ALIAS}, None),
    "typealias": ({DeclKind.TYPE_ALIAS}, None),
    "type": (None, "type"),
    "fn": ({DeclKind.FUNCTION}, None),
    "function": ({DeclKind.FUNCTION}, None),
    "method": ({DeclKind.FUNCTION}, None),
    "const": ({DeclKind.CONSTANT}, None),
    "constant": ({DeclKind.CONSTANT}, None),
    "static": ({DeclKind.STATIC}, None),
    "value": (None, "value"),
    "field": ({DeclKind.FIELD}, None),
    "macro": ({DeclKind.MACRO}, None),
}


@dataclass
class _Search:
    """Memo for one lookup; ``active`` holds the bindings currently being expanded."""

    done: Dict[Tuple[ItemPath, str], Bindings] = field(default_factory=dict)
    active: Set[Tuple[ItemPath, str]] = field(default_factory=set)


class SymbolIndex:
    """Read-only mapping from item paths to declarations for one unit.

    Paths are tuples of segments relative to the unit; the empty tuple is the
    unit's root module. Each declared path maps to at most one declaration per
    namespace. Re-exports are not copied into the mapping: a segment that names
    no declaration is looked up through the ``pub use`` items of the module
    being walked, so re-export cycles cost nothing until they are walked and
    stop as soon as they revisit a name.
    """

    def __init__(
        self,
        unit: str,
        root: DeclarationNode,
        entries: Dict[ItemPath, Dict[str, DeclarationNode]],
        ambiguities: Sequence[ParseAmbiguity] = (),
        reexports: Sequence[Tuple[ItemPath, Reexport]] = (),
    ) -> None:
        self.unit = unit
        self.root = root
        self._entries = entries
        self._children: Dict[ItemPath, Set[str]] = {}
        for path in entries:
            if path:
                self._children.setdefault(path[:-1], set()).add(path[-1])
        self._named: Dict[Tuple[ItemPath, str], List[Reexport]] = {}
        self._globs: Dict[ItemPath, List[Reexport]] = {}
        for scope, reexport in reexports:
            if reexport.glob:
                self._globs.setdefault(scope, []).append(reexport)
            else:
                name = reexport.name or reexport.target[-1]
                self._named.setdefault((scope, name), []).append(reexport)
                self._children.setdefault(scope, set()).add(name)
        self.ambiguities = list(ambiguities)

    @classmethod
    def build(
        cls, unit_name: str, parsed_files: Iterable[Tuple[SourceFile, ParsedFile]]
    ) -> "SymbolIndex":
        """Merge parsed files, in lexical order of their relative paths, into an index."""
        return _IndexBuilder(unit_name).build(parsed_files)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, tuple):
            return False
        return bool(self._walk(path, _Search()))

    def paths(self) -> List[ItemPath]:
        """Declared paths, without re-exported aliases."""
        return sorted(self._entries)

    def get(self, path: Sequence[str], namespace: str | None = None) -> Optional[DeclarationNode]:
        found = self._walk(tuple(path), _Search())
        if not found:
            return None
        if namespace is not None:
            binding = found.get(namespace)
            return binding[0] if binding is not None else None
        return _preferred(node for node, _ in found.values())

    def lookup(self, segments: Sequence[str]) -> DeclarationNode:
        """Resolve ``segments`` (optionally disambiguated) to a declaration.

        Raises:
            PathNotFoundError: naming the longest resolved prefix and the first
                segment that matched nothing.
        """
        node = self.root
        resolved: ItemPath = ()
        declared: ItemPath = ()
        full_path = join_path((self.unit, *segments))
        search = _Search()
        for raw in segments:
            name, kinds, namespace = _split_disambiguator(raw)
            found = {} if name is None else self._bindings(declared, name, search)
            candidates = list(found.values())
            if kinds is not None:
                candidates = [item for item in candidates if item[0].kind in kinds]
            if namespace is not None:
                candidates = [item for item in candidates if item[0].namespace == namespace]
            if name is None or not candidates:
                raise PathNotFoundError(
                    self.unit,
                    full_path,
                    resolved_prefix=join_path((self.unit, *resolved)),
                    segment=raw,
                    suggestions=self._suggest(declared, name or raw),
                )
            declared_at = {id(item[0]): item[1] for item in candidates}
            node = _preferred(item[0] for item in candidates)
            declared = declared_at[id(node)]
            resolved = resolved + (name,)
        return node

    def unresolved_reexports(self) -> List[Tuple[ItemPath, Reexport]]:
        """Re-exports whose target is not declared in this unit."""
        missing: List[Tuple[ItemPath, Reexport]] = []
        for (scope, _), reexports in sorted(self._named.items()):
            for reexport in reexports:
                if not self._resolve(scope, reexport.target, _Search()):
                    missing.append((scope, reexport))
        for scope, reexports in sorted(self._globs.items()):
            for reexport in reexports:
                if "type" not in self._resolve(scope, reexport.target, _Search()):
                    missing.append((scope, reexport))
        return missing

    # ------------------------------------------------------------------
    # Name resolution

    def _bindings(self, module: ItemPath, name: str, search: _Search) -> Bindings:
        """Everything ``name`` denotes inside ``module``; declarations shadow re-exports."""
        key = (module, name)
        if key in search.done:
            return search.done[key]
        if key in search.active:
            return {}
        search.active.add(key)

        path = module + (name,)
        found: Bindings = {
            namespace: (node, path) for namespace, node in self._entries.get(path, {}).items()
        }
        for reexport in self._named.get(key, ()):
            for namespace, binding in self._resolve(module, reexport.target, search).items():
                found.setdefault(namespace, binding)
        for reexport in self._globs.get(module, ()):
            source = self._resolve(module, reexport.target, search).get("type")
            if source is None:
                continue
            for namespace, binding in self._bindings(source[1], name, search).items():
                found.setdefault(namespace, binding)

        search.active.discard(key)
        search.done[key] = found
        return found

    def _resolve(self, scope: ItemPath, target: ItemPath, search: _Search) -> Bindings:
        for candidate in self._candidates(scope, target):
            found = self._walk(candidate, search)
            if found:
                return found
        return {}

    def _walk(self, path: ItemPath, search: _Search) -> Bindings:
        if not path:
            return {self.root.namespace: (self.root, ())}
        module: ItemPath = ()
        for segment in path[:-1]:
            step = self._bindings(module, segment, search).get("type")
            if step is None:
                return {}
            module = step[1]
        return self._bindings(module, path[-1], search)

    def _candidates(self, scope: ItemPath, target: ItemPath) -> List[ItemPath]:
        head = target[0]
        if head == "crate" or _normalise_unit(head) == _normalise_unit(self.unit):
            return [target[1:]]
        if head in {"self", "super"}:
            base = list(scope)
            rest = list(target)
            if rest[0] == "self":
                rest.pop(0)
            while rest and rest[0] == "super":
                if not base:
                    return []
                base.pop()
                rest.pop(0)
            return [tuple(base + rest)]
        return [scope + target, target]

    def _suggest(self, prefix: ItemPath, name: str) -> List[str]:
        siblings = sorted(self._children.get(prefix, ()))
        return difflib.get_close_matches(name, siblings, n=3, cutoff=0.6)


def _preferred(nodes: Iterable[DeclarationNode]) -> DeclarationNode:
    by_namespace: Dict[str, DeclarationNode] = {}
    for node in nodes:
        by_namespace.setdefault(node.namespace, node)
    for namespace in NAMESPACE_ORDER:
        if namespace in by_namespace:
            return by_namespace[namespace]
    raise LookupError("no declaration")


def _split_disambiguator(
    raw: str,
) -> Tuple[Optional[str], Optional[Set[DeclKind]], Optional[str]]:
    """Return ``(name, kinds, namespace)``; ``name`` is ``None`` for an unknown prefix."""
    if "@" in raw:
        prefix, name = raw.split("@", 1)
        if prefix not in _DISAMBIGUATORS or not name:
            return None, None, None
        kinds, namespace = _DISAMBIGUATORS[prefix]
        return name, kinds, namespace
    if raw.endswith("!") and len(raw) > 1:
        return raw[:-1], {DeclKind.MACRO}, None
    if raw.endswith("()") and len(raw) > 2:
        return raw[:-2], {DeclKind.FUNCTION}, None
    return raw, None, None


def _normalise_unit(name: str) -> str:
    return name.replace("-", "_")


class _IndexBuilder:
    def __init__(self, unit_name: str) -> None:
        self.unit = unit_name
        self.logger = get_logger("index")
        self.root = DeclarationNode(name=unit_name, kind=DeclKind.MODULE)
        self.entries: Dict[ItemPath, Dict[str, DeclarationNode]] = {}
        self.reexports: List[Tuple[ItemPath, Reexport]] = []
        self.ambiguities: List[ParseAmbiguity] = []
        # Items contributed by separate impl blocks may legitimately share a name.
        self._impl_items: Set[int] = set()

    def build(self, parsed_files: Iterable[Tuple[SourceFile, ParsedFile]]) -> SymbolIndex:
        ordered = sorted(parsed_files, key=lambda pair: pair[0].relative)
        for source, parsed in ordered:
            module = self._ensure_module(source.module_path)
            if parsed.inner_doc is not None:
                module.inner_doc = _concat(module.inner_doc, parsed.inner_doc)
            self._merge_children(module, parsed.nodes)
            for reexport in parsed.reexports:
                self.reexports.append((source.module_path + reexport.scope, reexport))
            self.ambiguities.extend(parsed.gaps)

        self._attach_impls(self.root)
        self._register((), self.root)
        index = SymbolIndex(self.unit, self.root, self.entries, self.ambiguities, self.reexports)
        for scope, reexport in index.unresolved_reexports():
            self.logger.debug(
                "Ignoring re-export of %s in %s: target not in unit",
                join_path(reexport.target),
                join_path((self.unit, *scope)),
            )
        self.logger.debug(
            "Indexed unit %s: %d paths and %d re-exports from %d files (%d skipped regions)",
            self.unit,
            len(self.entries),
            len(self.reexports),
            len(ordered),
            len(self.ambiguities),
        )
        return index

    # ------------------------------------------------------------------
    # Merging

    def _ensure_module(self, module_path: ItemPath) -> DeclarationNode:
        module = self.root
        for name in module_path:
            existing = _module_child(module, name)
            if existing is None:
                existing = DeclarationNode(name=name, kind=DeclKind.MODULE)
                module.children.append(existing)
            module = existing
        return module

    def _merge_children(self, module: DeclarationNode, nodes: Sequence[DeclarationNode]) -> None:
        for node in nodes:
            if node.kind is DeclKind.MODULE:
                existing = _module_child(module, node.name)
                if existing is not None:
                    self._union_modules(existing, node)
                    continue
                incoming = node.children
                node.children = []
                module.children.append(node)
                self._merge_children(node, incoming)
                continue
            module.children.append(node)

    def _union_modules(self, existing: DeclarationNode, incoming: DeclarationNode) -> None:
        if incoming.doc_text is not None:
            existing.doc_text = _concat(existing.doc_text, incoming.doc_text)
        if incoming.inner_doc is not None:
            existing.inner_doc = _concat(existing.inner_doc, incoming.inner_doc)
        if existing.location is None:
            existing.location = incoming.location
        if existing.conditional and incoming.conditional:
            # Twin cfg-gated bodies: their items inherit the gate.
            for child in existing.children + incoming.children:
                child.conditional = True
        existing.conditional = existing.conditional and incoming.conditional
        self._merge_children(existing, incoming.children)

    def _attach_impls(self, module: DeclarationNode) -> None:
        blocks = [child for child in module.children if child.kind is DeclKind.IMPL]
        impls: Dict[str, DeclarationNode] = {}
        absorbed: Set[int] = set()
        # Inherent items come before trait items so the first match is the inherent one.
        for block in sorted(blocks, key=lambda block: block.trait_impl):
            self._impl_items.update(id(item) for item in block.children)
            target = next(
                (
                    sibling
                    for sibling in module.children
                    if sibling.name == block.name and sibling.kind in _IMPL_TARGET_KINDS
                ),
                None,
            )
            if target is None:
                target = impls.get(block.name)
            if target is None:
                impls[block.name] = block
                continue
            target.children.extend(block.children)
            if target.kind is DeclKind.IMPL:
                target.doc_text = _concat(target.doc_text, block.doc_text)
                target.trait_impl = target.trait_impl and block.trait_impl
            absorbed.add(id(block))
        module.children = [child for child in module.children if id(child) not in absorbed]
        for child in module.children:
            if child.kind is DeclKind.MODULE:
                self._attach_impls(child)

    # ------------------------------------------------------------------
    # Registration

    def _register(self, path: ItemPath, node: DeclarationNode) -> None:
        self.entries.setdefault(path, {})[node.namespace] = node
        kept: List[DeclarationNode] = []
        for child in node.children:
            child_path = path + (child.name,)
            slot = self.entries.get(child_path, {})
            existing = slot.get(child.namespace)
            if existing is not None:
                if existing.conditional and child.conditional:
                    self.logger.debug(
                        "Keeping first cfg-gated declaration of %s",
                        join_path((self.unit, *child_path)),
                    )
                    continue
                if id(existing) in self._impl_items and id(child) in self._impl_items:
                    continue
                raise DuplicateDeclarationError(
                    self.unit,
                    join_path((self.unit, *child_path)),
                    first=existing.location,
                    second=child.location,
                )
            kept.append(child)
            self._register(child_path, child)
        node.children = kept


def _module_child(module: DeclarationNode, name: str) -> Optional[DeclarationNode]:
    for child in module.children:
        if child.name == name and child.kind is DeclKind.MODULE:
            return child
    return None


def _concat(first: Optional[str], second: Optional[str]) -> Optional[str]:
    if first is None or not second:
        return second if first is None else first
    if not first:
        return second
    return f"{first}\n{second}"


__all__ = ["SymbolIndex"]
