"""tree-sitter helpers for JavaScript/TypeScript/JSX source.

All parsing uses the TSX grammar, which accepts plain JavaScript, TypeScript
and JSX alike.
"""

from collections.abc import Iterator
from dataclasses import dataclass

import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser, Tree

TSX_LANGUAGE = Language(tsts.language_tsx())

# Identifiers a dry run can resolve without a declaration in the unit itself.
KNOWN_GLOBALS: frozenset[str] = frozenset(
    {
        "AbortController", "Array", "ArrayBuffer", "BigInt", "Boolean", "CustomEvent",
        "Date", "Error", "Event", "FormData", "Fragment", "Function", "Headers",
        "Infinity", "Intl", "JSON", "Map", "Math", "NaN", "Number", "Object",
        "Promise", "Proxy", "RangeError", "React", "ReactDOM", "Reflect", "RegExp",
        "Request", "Response", "Set", "String", "Symbol", "SyntaxError", "TypeError",
        "URL", "URLSearchParams", "WeakMap", "WeakSet", "alert", "arguments", "atob", "btoa",
        "cancelAnimationFrame", "clearInterval", "clearTimeout", "confirm", "console",
        "decodeURI", "decodeURIComponent", "document", "encodeURI", "encodeURIComponent",
        "eval", "exports", "fetch", "globalThis", "isFinite", "isNaN", "localStorage",
        "location", "module", "navigator", "parseFloat", "parseInt", "performance",
        "process", "prompt", "queueMicrotask", "require", "requestAnimationFrame",
        "sessionStorage", "setInterval", "setTimeout", "structuredClone", "undefined",
        "window",
    }
)

_NAMED_DECLARATIONS = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "class_declaration",
        "abstract_class_declaration",
        "class",
        "enum_declaration",
        "function_signature",
        "internal_module",
    }
)

_BINDING_LEAVES = frozenset({"identifier", "shorthand_property_identifier_pattern"})
_READ_LEAVES = frozenset({"identifier", "shorthand_property_identifier"})

# Identifiers under these parents name something instead of reading a binding
_NAMING_PARENTS = frozenset(
    {
        "export_specifier",
        "namespace_export",
        "jsx_opening_element",
        "jsx_closing_element",
        "jsx_self_closing_element",
        "jsx_namespace_name",
    }
)


@dataclass(frozen=True, slots=True)
class SyntaxProblem:
    """First syntax problem found in a parse tree (1-based position)."""

    line: int
    column: int
    message: str


@dataclass(frozen=True, slots=True)
class UnresolvedReference:
    """An identifier used as a callee or JSX tag that nothing declares."""

    name: str
    line: int
    column: int


def get_parser() -> Parser:
    """Return a tree-sitter Parser configured for TSX."""
    parser = Parser()
    parser.language = TSX_LANGUAGE
    return parser


def parse_source(source: str) -> Tree:
    """Parse ``source`` with the TSX grammar."""
    return get_parser().parse(source.encode("utf-8"))


def node_text(node: Node) -> str:
    """Decoded source text of ``node``."""
    return node.text.decode("utf-8") if node.text is not None else ""


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def find_syntax_problem(tree: Tree) -> SyntaxProblem | None:
    """Locate the first ERROR or MISSING node, or return None for a clean tree."""
    root = tree.root_node
    if not root.has_error:
        return None
    for node in walk(root):
        if node.is_missing:
            row, column = node.start_point
            return SyntaxProblem(row + 1, column + 1, f"Missing '{node.type}'")
        if node.type == "ERROR":
            row, column = node.start_point
            snippet = node_text(node).strip().split("\n", 1)[0][:40]
            detail = f" near '{snippet}'" if snippet else ""
            return SyntaxProblem(row + 1, column + 1, f"Unexpected token{detail}")
    # has_error without a locatable node; report the root
    return SyntaxProblem(1, 1, "Unparseable source")


def _bindings(node: Node) -> Iterator[str]:
    for child in walk(node):
        if child.type in _BINDING_LEAVES:
            yield node_text(child)


def declared_names(root: Node) -> set[str]:
    """Collect every name the source binds, ignoring scoping.

    Function, class and enum names, variable declarators (including
    destructuring patterns), parameters, import bindings, catch parameters
    and for-in/of loop variables all count.
    """
    names: set[str] = set()
    for node in walk(root):
        kind = node.type
        if kind in _NAMED_DECLARATIONS:
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(node_text(name))
        elif kind == "variable_declarator":
            target = node.child_by_field_name("name")
            if target is not None:
                names.update(_bindings(target))
        elif kind in ("formal_parameters", "import_clause"):
            names.update(_bindings(node))
        elif kind == "arrow_function":
            param = node.child_by_field_name("parameter")
            if param is not None:
                names.add(node_text(param))
        elif kind == "catch_clause":
            param = node.child_by_field_name("parameter")
            if param is not None:
                names.update(_bindings(param))
        elif kind == "for_in_statement":
            left = node.child_by_field_name("left")
            if left is not None:
                names.update(_bindings(left))
    return names


def _reference_sites(root: Node) -> Iterator[Node]:
    for node in walk(root):
        if node.type in ("jsx_opening_element", "jsx_self_closing_element"):
            tag = node.child_by_field_name("name")
            # Lowercase tags are host elements, not references
            if tag is not None and tag.type == "identifier" and node_text(tag)[:1].isupper():
                yield tag
        elif node.type in _READ_LEAVES:
            parent = node.parent
            if parent is None or parent.type not in _NAMING_PARENTS:
                yield node


def unresolved_references(
    root: Node, extra_globals: frozenset[str] = frozenset()
) -> list[UnresolvedReference]:
    """Find identifier reads, callees and component tags that are neither declared nor globals."""
    known = declared_names(root) | KNOWN_GLOBALS | extra_globals
    unresolved: list[UnresolvedReference] = []
    for site in _reference_sites(root):
        name = node_text(site)
        if name not in known:
            row, column = site.start_point
            unresolved.append(UnresolvedReference(name, row + 1, column + 1))
    return unresolved
