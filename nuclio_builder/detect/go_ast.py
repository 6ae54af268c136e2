"""Go source structure via tree-sitter.

Parses the ``.go`` files of a function directory (non-recursive) and turns
each top-level ``func`` declaration into a ``FunctionSignature``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import tree_sitter_go
from tree_sitter import Language, Node, Parser

from nuclio_builder.detect.signature import FunctionSignature, TypeKind, TypeRef
from nuclio_builder.errors import DiscoveryError

GO_LANGUAGE = Language(tree_sitter_go.language())

_PARAMETER_NODES = {"parameter_declaration", "variadic_parameter_declaration"}


@dataclass(frozen=True)
class ParsedFile:
    path: Path
    package: str
    functions: tuple[FunctionSignature, ...]


def _text(node: Node) -> str:
    return node.text.decode("utf-8") if node.text is not None else ""


def type_ref(node: Node) -> TypeRef:
    kind = node.type

    if kind == "type_identifier":
        name = _text(node)
        if name == "any":
            return TypeRef(TypeKind.EMPTY_INTERFACE, "interface{}")
        return TypeRef(TypeKind.NAMED, name)

    if kind == "qualified_type":
        package = node.child_by_field_name("package")
        name = node.child_by_field_name("name")
        return TypeRef(
            TypeKind.QUALIFIED_NAME,
            _text(name) if name is not None else "",
            _text(package) if package is not None else None,
        )

    if kind == "pointer_type" and node.named_children:
        inner = type_ref(node.named_children[0])
        if inner.kind in (TypeKind.NAMED, TypeKind.QUALIFIED_NAME):
            return TypeRef(TypeKind.POINTER_TO_NAMED, inner.name, inner.package)
        return TypeRef(TypeKind.OTHER, _text(node))

    if kind == "interface_type":
        elements = [c for c in node.named_children if c.type != "comment"]
        if not elements:
            return TypeRef(TypeKind.EMPTY_INTERFACE, "interface{}")
        return TypeRef(TypeKind.OTHER, _text(node))

    if kind == "parenthesized_type" and node.named_children:
        return type_ref(node.named_children[0])

    return TypeRef(TypeKind.OTHER, _text(node))


def _parameters(node: Node | None) -> tuple[TypeRef, ...]:
    if node is None:
        return ()
    if node.type != "parameter_list":
        # single unparenthesized result type
        return (type_ref(node),)

    refs: list[TypeRef] = []
    for decl in node.named_children:
        if decl.type not in _PARAMETER_NODES:
            continue
        type_node = decl.child_by_field_name("type")
        if type_node is None:
            continue
        ref = type_ref(type_node)
        if decl.type == "variadic_parameter_declaration":
            ref = TypeRef(TypeKind.OTHER, "..." + ref.name)
        # "a, b T" declares two parameters of type T
        names = decl.children_by_field_name("name")
        refs.extend([ref] * max(1, len(names)))
    return tuple(refs)


def _signature(decl: Node) -> FunctionSignature:
    name = decl.child_by_field_name("name")
    return FunctionSignature(
        name=_text(name) if name is not None else "",
        params=_parameters(decl.child_by_field_name("parameters")),
        results=_parameters(decl.child_by_field_name("result")),
    )


def parse_source(source: bytes, path: Path) -> ParsedFile:
    """Parse one Go file. Raises ``DiscoveryError`` on any syntax error."""
    tree = Parser(GO_LANGUAGE).parse(source)
    root = tree.root_node
    if root.has_error:
        raise DiscoveryError(f"Syntax error in {path}")

    package = None
    functions: list[FunctionSignature] = []
    for child in root.named_children:
        if child.type == "package_clause":
            ident = next((c for c in child.named_children if c.type == "package_identifier"), None)
            package = _text(ident) if ident is not None else None
        elif child.type == "function_declaration":
            functions.append(_signature(child))

    if not package:
        raise DiscoveryError(f"Missing package clause in {path}")
    return ParsedFile(path=path, package=package, functions=tuple(functions))


def go_files(source: Path) -> list[Path]:
    if source.is_file():
        return [source]
    return sorted(p for p in source.iterdir() if p.is_file() and p.suffix == ".go")


def parse_dir(source: Path) -> list[ParsedFile]:
    """Parse every Go file in *source* (or *source* itself when it is a file)."""
    if not source.exists():
        raise DiscoveryError(f"Can't find handlers in {source}: path does not exist")

    parsed: list[ParsedFile] = []
    for path in go_files(source):
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise DiscoveryError(f"Can't find handlers in {source}: {exc}") from exc
        try:
            parsed.append(parse_source(data, path))
        except DiscoveryError as exc:
            raise DiscoveryError(f"Can't find handlers in {source}: {exc}") from exc
    return parsed
