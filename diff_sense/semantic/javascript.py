"""Top-level symbol extraction for JavaScript and TypeScript.

Sources are parsed with tree-sitter. ``.ts``/``.mts``/``.cts`` files use the
TypeScript grammar, ``.tsx`` the TSX grammar, and everything else the
JavaScript grammar (which accepts JSX). Only declarations that are direct
children of the program node are recorded. A tree containing error or
missing nodes raises ParseError.
"""

from __future__ import annotations

import posixpath
import re
from functools import lru_cache
from typing import Any

import tree_sitter
import tree_sitter_javascript
import tree_sitter_typescript

from diff_sense.errors import ParseError
from diff_sense.semantic.symbols import Member, Symbol, SymbolTable

Node = Any

TYPESCRIPT_SUFFIXES = frozenset({".ts", ".mts", ".cts"})
FUNCTION_VALUES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)
CLASS_NODES = frozenset({"class_declaration", "abstract_class_declaration", "class"})
FUNCTION_NODES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_signature",
        "function_expression",
        "function",
        "generator_function",
    }
)
CLASS_METHODS = frozenset({"method_definition", "method_signature", "abstract_method_signature"})
CLASS_FIELDS = frozenset({"field_definition", "public_field_definition"})
HIDDEN_ACCESS = frozenset({"private", "protected"})

_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=None)
def _language(grammar: str) -> tree_sitter.Language:
    if grammar == "typescript":
        return tree_sitter.Language(tree_sitter_typescript.language_typescript())
    if grammar == "tsx":
        return tree_sitter.Language(tree_sitter_typescript.language_tsx())
    return tree_sitter.Language(tree_sitter_javascript.language())


def grammar_for(path: str) -> str:
    suffix = posixpath.splitext(path)[1].lower()
    if suffix == ".tsx":
        return "tsx"
    if suffix in TYPESCRIPT_SUFFIXES:
        return "typescript"
    return "javascript"


def extract_script_symbols(source: str, path: str) -> SymbolTable:
    # Parser instances are not shared between threads.
    encoded = source.encode("utf-8")
    root = tree_sitter.Parser(_language(grammar_for(path))).parse(encoded).root_node
    if root.has_error:
        raise ParseError(path, _error_location(root))
    return _Extractor(encoded).run(root)


def script_imports(source: str, grammar: str) -> list[str]:
    """Module specifiers of imports, re-exports, ``require()`` and ``import()`` in source order.

    Syntax errors are tolerated; whatever the parser recovered is scanned.
    """
    encoded = source.encode("utf-8")
    root = tree_sitter.Parser(_language(grammar)).parse(encoded).root_node
    specifiers: list[str] = []
    stack = [root]
    while stack:
        node = stack.pop()
        target = None
        if node.type in {"import_statement", "export_statement"}:
            target = node.child_by_field_name("source")
        elif node.type == "call_expression":
            function = node.child_by_field_name("function")
            arguments = node.child_by_field_name("arguments")
            if function is not None and arguments is not None:
                callee = encoded[function.start_byte : function.end_byte]
                first = arguments.named_children[:1]
                if (function.type == "import" or callee == b"require") and first:
                    target = first[0] if first[0].type == "string" else None
        if target is not None:
            specifier = _unquote(encoded[target.start_byte : target.end_byte].decode("utf-8"))
            if specifier and specifier not in specifiers:
                specifiers.append(specifier)
        stack.extend(reversed(node.children))
    return specifiers


def _error_location(root: Node) -> str:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_missing:
            row, column = node.start_point
            return f"missing {node.type} at line {row + 1}, column {column + 1}"
        if node.type == "ERROR":
            row, column = node.start_point
            return f"syntax error at line {row + 1}, column {column + 1}"
        stack.extend(reversed([child for child in node.children if child.has_error]))
    return "syntax error"


class _Extractor:
    """Walks the program node once and builds the symbol table."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self.table: SymbolTable = {}
        self.exported_names: set[str] = set()

    def run(self, root: Node) -> SymbolTable:
        for node in root.named_children:
            if node.type == "export_statement":
                self._export_statement(node)
            elif node.type == "expression_statement":
                self._commonjs(node)
            else:
                self._declaration(node, exported=False)

        for name in self.exported_names:
            symbol = self.table.get(name)
            if symbol is not None and not symbol.exported:
                self.table[name] = Symbol(
                    name=symbol.name,
                    kind=symbol.kind,
                    exported=True,
                    parameters=symbol.parameters,
                    returns=symbol.returns,
                    members=symbol.members,
                    definition=symbol.definition,
                )
        return self.table

    def text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def between(self, start: int, end: int) -> str:
        return _normalize(self.source[start:end].decode("utf-8", errors="replace"))

    def _add(self, symbol: Symbol) -> None:
        self.table[symbol.name] = symbol

    def _export_statement(self, node: Node) -> None:
        declaration = node.child_by_field_name("declaration")
        source = node.child_by_field_name("source")
        default = any(child.type == "default" for child in node.children)
        if declaration is not None:
            self._declaration(declaration, exported=True, default=default)
            return

        value = node.child_by_field_name("value")
        if value is not None:
            if value.type == "identifier":
                self.exported_names.add(self.text(value))
            elif value.type in FUNCTION_VALUES or value.type in CLASS_NODES:
                self._declaration(value, exported=True, default=True)
            return

        origin = _unquote(self.text(source)) if source is not None else None
        for child in node.named_children:
            if child.type == "export_clause":
                self._export_clause(child, origin)
            elif child.type == "namespace_export" and origin is not None:
                alias = child.named_children[-1] if child.named_children else None
                name = _unquote(self.text(alias)) if alias is not None else f"* from {origin}"
                self._add(Symbol(name=name, kind="reexport", exported=True, definition=origin))
        if origin is not None and any(child.type == "*" for child in node.children):
            name = f"* from {origin}"
            self._add(Symbol(name=name, kind="reexport", exported=True, definition=origin))

    def _export_clause(self, clause: Node, origin: str | None) -> None:
        for specifier in clause.named_children:
            if specifier.type != "export_specifier":
                continue
            local = _unquote(self.text(specifier.child_by_field_name("name")))
            alias = specifier.child_by_field_name("alias")
            public = _unquote(self.text(alias)) if alias is not None else local
            if origin is not None:
                self._add(Symbol(name=public, kind="reexport", exported=True, definition=origin))
            else:
                self.exported_names.add(local)

    def _declaration(self, node: Node, *, exported: bool, default: bool = False) -> None:
        kind = node.type
        if kind == "ambient_declaration":
            for child in node.named_children:
                self._declaration(child, exported=exported, default=default)
        elif kind in FUNCTION_NODES:
            self._add(self._function(node, exported=exported))
        elif kind in CLASS_NODES:
            self._add(self._class(node, exported=exported))
        elif kind in {"lexical_declaration", "variable_declaration"}:
            for declarator in node.named_children:
                if declarator.type == "variable_declarator":
                    symbol = self._variable(declarator, exported=exported)
                    if symbol is not None:
                        self._add(symbol)
        elif kind == "interface_declaration":
            self._add(self._interface(node, exported=exported))
        elif kind == "type_alias_declaration":
            self._add(self._type_alias(node, exported=exported))
        elif kind == "enum_declaration":
            self._add(self._enum(node, exported=exported))
        elif kind == "arrow_function" and default:
            params, returns = self._callable_shape(node)
            self._add(
                Symbol(
                    name="default",
                    kind="function",
                    exported=exported,
                    parameters=params,
                    returns=returns,
                )
            )

    def _name(self, node: Node) -> str:
        name = node.child_by_field_name("name")
        return self.text(name) if name is not None else "default"

    def _function(self, node: Node, *, exported: bool) -> Symbol:
        params, returns = self._callable_shape(node)
        return Symbol(
            name=self._name(node),
            kind="function",
            exported=exported,
            parameters=params,
            returns=returns,
        )

    def _class(self, node: Node, *, exported: bool) -> Symbol:
        body = node.child_by_field_name("body")
        name = node.child_by_field_name("name")
        heritage_start = name.end_byte if name is not None else node.start_byte
        heritage = ""
        if body is not None:
            heritage = self.between(heritage_start, body.start_byte)
            if name is None:
                heritage = re.sub(r"^class\b\s*", "", heritage)
        return Symbol(
            name=self._name(node),
            kind="class",
            exported=exported,
            members=self._class_members(body) if body is not None else (),
            definition=heritage or None,
        )

    def _interface(self, node: Node, *, exported: bool) -> Symbol:
        body = node.child_by_field_name("body")
        name = node.child_by_field_name("name")
        heritage = self.between(name.end_byte, body.start_byte) if body is not None else ""
        return Symbol(
            name=self.text(name),
            kind="interface",
            exported=exported,
            members=self._object_members(body) if body is not None else (),
            definition=heritage or None,
        )

    def _type_alias(self, node: Node, *, exported: bool) -> Symbol:
        value = node.child_by_field_name("value")
        if value is not None and value.type == "object_type":
            return Symbol(
                name=self._name(node),
                kind="type",
                exported=exported,
                members=self._object_members(value),
            )
        return Symbol(
            name=self._name(node),
            kind="type",
            exported=exported,
            definition=_normalize(self.text(value)),
        )

    def _enum(self, node: Node, *, exported: bool) -> Symbol:
        body = node.child_by_field_name("body")
        members: list[Member] = []
        for item in body.named_children if body is not None else ():
            if item.type == "enum_assignment":
                members.append(Member(name=_unquote(self.text(item.child_by_field_name("name")))))
            elif item.type in {"property_identifier", "string"}:
                members.append(Member(name=_unquote(self.text(item))))
        return Symbol(name=self._name(node), kind="enum", exported=exported, members=tuple(members))

    def _variable(self, declarator: Node, *, exported: bool) -> Symbol | None:
        name_node = declarator.child_by_field_name("name")
        if name_node is None or name_node.type != "identifier":
            return None
        name = self.text(name_node)
        value = declarator.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUES:
            params, returns = self._callable_shape(value)
            return Symbol(
                name=name,
                kind="function",
                exported=exported,
                parameters=params,
                returns=returns,
            )
        annotation = declarator.child_by_field_name("type")
        return Symbol(
            name=name,
            kind="variable",
            exported=exported,
            definition=_annotation(self.text(annotation)) or None,
        )

    def _callable_shape(self, node: Node) -> tuple[tuple[str, ...], str | None]:
        params_node = node.child_by_field_name("parameters")
        params: tuple[str, ...]
        if params_node is not None:
            params = tuple(
                self._parameter(param)
                for param in params_node.named_children
                if param.type != "comment"
            )
        else:
            single = node.child_by_field_name("parameter")
            params = (self.text(single),) if single is not None else ()
        returns = _annotation(self.text(node.child_by_field_name("return_type")))
        return params, returns or None

    def _parameter(self, node: Node) -> str:
        if node.type == "assignment_pattern":
            return _normalize(self.text(node.child_by_field_name("left"))) + "?"
        value = node.child_by_field_name("value")
        if value is None:
            return _normalize(self.text(node))
        head = self.between(node.start_byte, value.start_byte).rstrip("=").strip()
        return head + "?"

    def _class_members(self, body: Node) -> tuple[Member, ...]:
        members: list[Member] = []
        for item in body.named_children:
            if item.type not in CLASS_METHODS and item.type not in CLASS_FIELDS:
                continue
            name_node = item.child_by_field_name("name")
            if name_node is None:
                name_node = item.child_by_field_name("property")
            if name_node is None or name_node.type == "private_property_identifier":
                continue
            access = {
                self.text(child)
                for child in item.children
                if child.type == "accessibility_modifier"
            }
            if HIDDEN_ACCESS.intersection(access):
                continue
            tokens = {child.type for child in item.children}
            if item.type in CLASS_METHODS:
                params, returns = self._callable_shape(item)
                signature = f"({', '.join(params)})" + (f": {returns}" if returns else "")
            else:
                signature = _normalize(self.text(item.child_by_field_name("type")))
            prefix = "static " if "static" in tokens else ""
            members.append(
                Member(
                    name=prefix + self.text(name_node),
                    optional="?" in tokens,
                    signature=signature,
                )
            )
        return tuple(members)

    def _object_members(self, body: Node) -> tuple[Member, ...]:
        members: list[Member] = []
        for item in body.named_children:
            name_node = item.child_by_field_name("name")
            if name_node is None:
                continue
            name_end = name_node.end_byte
            rest = self.between(name_end, item.end_byte).lstrip("?").strip()
            members.append(
                Member(
                    name=self.text(name_node),
                    optional=any(child.type == "?" for child in item.children),
                    signature=rest.rstrip(";,").strip(),
                )
            )
        return tuple(members)

    def _commonjs(self, statement: Node) -> None:
        expression = statement.named_children[0] if statement.named_children else None
        if expression is None or expression.type != "assignment_expression":
            return
        left = expression.child_by_field_name("left")
        right = expression.child_by_field_name("right")
        target = _normalize(self.text(left))
        if target in {"module.exports", "exports"}:
            if right.type == "identifier":
                self.exported_names.add(self.text(right))
            elif right.type == "object":
                self._commonjs_object(right)
            return
        if left.type != "member_expression":
            return
        owner = _normalize(self.text(left.child_by_field_name("object")))
        if owner not in {"module.exports", "exports"}:
            return
        name = self.text(left.child_by_field_name("property"))
        if right.type in FUNCTION_VALUES:
            params, returns = self._callable_shape(right)
            self._add(
                Symbol(
                    name=name,
                    kind="function",
                    exported=True,
                    parameters=params,
                    returns=returns,
                )
            )
        else:
            self._add(Symbol(name=name, kind="variable", exported=True))

    def _commonjs_object(self, obj: Node) -> None:
        for item in obj.named_children:
            if item.type == "shorthand_property_identifier":
                key = local = self.text(item)
            elif item.type == "pair":
                key = _unquote(self.text(item.child_by_field_name("key")))
                value = item.child_by_field_name("value")
                local = self.text(value) if value.type == "identifier" else ""
            else:
                continue
            if local and local in self.table:
                self.exported_names.add(local)
            elif key:
                self.table.setdefault(key, Symbol(name=key, kind="variable", exported=True))


def _annotation(text: str) -> str:
    return _normalize(text).removeprefix(":").strip()


def _unquote(text: str) -> str:
    return text.strip().strip("'\"`")


def _normalize(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip().rstrip(";,").strip()
