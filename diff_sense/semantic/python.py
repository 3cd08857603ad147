"""Top-level symbol extraction for Python modules."""

from __future__ import annotations

import ast

from diff_sense.errors import ParseError
from diff_sense.semantic.symbols import Member, Symbol, SymbolTable


def extract_python_symbols(source: str, path: str) -> SymbolTable:
    try:
        tree = ast.parse(source, filename=path)
    except (SyntaxError, ValueError) as exc:
        line = getattr(exc, "lineno", None)
        where = f" (line {line})" if line else ""
        raise ParseError(path, f"{getattr(exc, 'msg', exc)}{where}") from exc

    public_names = _dunder_all(tree)
    table: SymbolTable = {}

    def exported(name: str) -> bool:
        if public_names is not None:
            return name in public_names
        return not name.startswith("_")

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            table[node.name] = Symbol(
                name=node.name,
                kind="function",
                exported=exported(node.name),
                parameters=_parameters(node.args),
                returns=_unparse(node.returns),
            )
        elif isinstance(node, ast.ClassDef):
            table[node.name] = Symbol(
                name=node.name,
                kind="class",
                exported=exported(node.name),
                parameters=tuple(_unparse(base) or "" for base in node.bases),
                members=_class_members(node),
            )
        elif isinstance(node, (ast.Assign, ast.AnnAssign)):
            targets = node.targets if isinstance(node, ast.Assign) else [node.target]
            annotation = _unparse(node.annotation) if isinstance(node, ast.AnnAssign) else None
            for target in targets:
                if isinstance(target, ast.Name) and target.id != "__all__":
                    table[target.id] = Symbol(
                        name=target.id,
                        kind="variable",
                        exported=exported(target.id),
                        definition=annotation,
                    )
    return table


def _dunder_all(tree: ast.Module) -> frozenset[str] | None:
    for node in tree.body:
        if not isinstance(node, (ast.Assign, ast.AnnAssign)):
            continue
        targets = node.targets if isinstance(node, ast.Assign) else [node.target]
        if not any(isinstance(target, ast.Name) and target.id == "__all__" for target in targets):
            continue
        if isinstance(node.value, (ast.List, ast.Tuple)):
            return frozenset(
                element.value
                for element in node.value.elts
                if isinstance(element, ast.Constant) and isinstance(element.value, str)
            )
    return None


def _parameters(args: ast.arguments) -> tuple[str, ...]:
    positional = [*args.posonlyargs, *args.args]
    first_default = len(positional) - len(args.defaults)
    params: list[str] = []
    for index, arg in enumerate(positional):
        params.append(_describe_arg(arg, optional=index >= first_default))
    if args.vararg is not None:
        params.append("*" + _describe_arg(args.vararg, optional=False))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(_describe_arg(arg, optional=default is not None, keyword_only=True))
    if args.kwarg is not None:
        params.append("**" + _describe_arg(args.kwarg, optional=False))
    return tuple(params)


def _describe_arg(arg: ast.arg, *, optional: bool, keyword_only: bool = False) -> str:
    text = arg.arg
    annotation = _unparse(arg.annotation)
    if annotation:
        text += f": {annotation}"
    if optional:
        text += "?"
    if keyword_only:
        text = "kw:" + text
    return text


def _class_members(node: ast.ClassDef) -> tuple[Member, ...]:
    members: list[Member] = []
    for item in node.body:
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if item.name.startswith("_") and item.name != "__init__":
                continue
            params = _parameters(item.args)
            returns = _unparse(item.returns)
            signature = f"({', '.join(params)})" + (f" -> {returns}" if returns else "")
            members.append(Member(name=item.name, signature=signature))
        elif isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
            if item.target.id.startswith("_"):
                continue
            members.append(
                Member(
                    name=item.target.id,
                    optional=item.value is not None,
                    signature=_unparse(item.annotation) or "",
                )
            )
    return tuple(members)


def _unparse(node: ast.AST | None) -> str | None:
    if node is None:
        return None
    return ast.unparse(node)
