"""Best-effort concept inference.

Concepts (closures, hoisting, recursion...) cannot be read straight off the
syntax tree the way syntax and pattern tags can. The heuristics here are
deliberately kept apart from the structural passes: they may miss or
over-report, and nothing downstream treats a concept tag as exact.
"""

import ast
from collections.abc import Iterator

from tree_sitter import Node

from code_linker.analysis.deadline import Deadline
from code_linker.analysis.tree import (
    FUNCTION_NODES,
    callee_property,
    has_function_argument,
    is_promise_chain_call,
    node_text,
    self_calling_functions,
    walk,
    walk_events,
)
from code_linker.models.tags import ConceptTag

CALLBACK_HELL_DEPTH = 3

_TIMER_CALLS = frozenset(
    {"setTimeout", "setInterval", "setImmediate", "queueMicrotask", "requestAnimationFrame"}
)
_PROTOTYPE_CALLS = frozenset({"getPrototypeOf", "setPrototypeOf", "create"})
_BINDING_METHODS = frozenset({"call", "apply", "bind"})
_MEMO_DECORATORS = frozenset({"lru_cache", "cache", "cached_property"})
_IMMUTABLE_CALLS = frozenset({"frozenset", "tuple", "MappingProxyType", "NamedTuple"})


# --- JavaScript / TypeScript ---


def infer_js_concepts(root: Node, deadline: Deadline) -> frozenset[ConceptTag]:
    """Infer abstract concepts from a JavaScript/TypeScript tree."""
    concepts: set[ConceptTag] = set()

    for node in walk(root, deadline):
        kind = node.type
        if kind in ("variable_declaration", "function_declaration"):
            concepts.add(ConceptTag.HOISTING)
        elif kind == "lexical_declaration" and _in_nested_block(node):
            concepts.add(ConceptTag.SCOPE)
        elif kind == "this":
            concepts.add(ConceptTag.THIS_BINDING)
        elif kind == "await_expression":
            concepts.update((ConceptTag.ASYNC_CONTROL_FLOW, ConceptTag.EVENT_LOOP))
        elif kind == "member_expression":
            prop = node.child_by_field_name("property")
            if node_text(prop) in ("prototype", "__proto__"):
                concepts.add(ConceptTag.PROTOTYPE_CHAIN)
        elif kind == "binary_expression":
            op = node.child_by_field_name("operator")
            if op is not None and op.type in ("==", "!="):
                concepts.add(ConceptTag.TYPE_COERCION)
        elif kind == "call_expression":
            concepts.update(_call_concepts(node))

    if _has_js_closure(root, deadline):
        concepts.add(ConceptTag.CLOSURE)
    if self_calling_functions(root, deadline):
        concepts.add(ConceptTag.RECURSION)
    if _max_callback_depth(root, deadline) >= CALLBACK_HELL_DEPTH:
        concepts.add(ConceptTag.CALLBACK_HELL)
    return frozenset(concepts)


def _call_concepts(call: Node) -> set[ConceptTag]:
    found: set[ConceptTag] = set()
    method = callee_property(call)
    fn = call.child_by_field_name("function")
    receiver = fn.child_by_field_name("object") if fn is not None else None

    if is_promise_chain_call(call):
        found.update((ConceptTag.ASYNC_CONTROL_FLOW, ConceptTag.EVENT_LOOP))
        if receiver is not None and is_promise_chain_call(receiver):
            found.add(ConceptTag.PROMISE_CHAINING)
    if method in _BINDING_METHODS:
        found.add(ConceptTag.THIS_BINDING)
    if node_text(receiver) == "Object":
        if method in _PROTOTYPE_CALLS:
            found.add(ConceptTag.PROTOTYPE_CHAIN)
        if method == "freeze":
            found.add(ConceptTag.IMMUTABILITY)
    if fn is not None and fn.type == "identifier" and node_text(fn) in _TIMER_CALLS:
        found.add(ConceptTag.EVENT_LOOP)
    return found


def _in_nested_block(node: Node) -> bool:
    """A let/const declared in a block that is not a function body."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "for_statement":
        return True
    if parent.type != "statement_block":
        return False
    owner = parent.parent
    return owner is not None and owner.type not in FUNCTION_NODES


def _max_callback_depth(root: Node, deadline: Deadline) -> int:
    depth = 0
    deepest = 0
    for node, entering in walk_events(root, deadline):
        if node.type != "call_expression" or not has_function_argument(node):
            continue
        if entering:
            depth += 1
            deepest = max(deepest, depth)
        else:
            depth -= 1
    return deepest


def _has_js_closure(root: Node, deadline: Deadline) -> bool:
    """A nested function that references a binding of an enclosing function."""
    for node in walk(root, deadline):
        if node.type not in FUNCTION_NODES:
            continue
        outer: set[str] = set()
        ancestor = node.parent
        while ancestor is not None:
            if ancestor.type in FUNCTION_NODES:
                outer |= _js_declared_names(ancestor, deadline)
            ancestor = ancestor.parent
        if not outer:
            continue
        own = _js_declared_names(node, deadline)
        body = node.child_by_field_name("body")
        if body is None:
            continue
        referenced = {
            node_text(ident) for ident in walk(body, deadline) if ident.type == "identifier"
        }
        if (referenced - own) & outer:
            return True
    return False


def _js_declared_names(fn: Node, deadline: Deadline) -> set[str]:
    """Parameters and local declarations of a function, not descending into nested functions."""
    names: set[str] = set()
    params = fn.child_by_field_name("parameters") or fn.child_by_field_name("parameter")
    if params is not None:
        names.update(
            node_text(n)
            for n in walk(params, deadline)
            if n.type in ("identifier", "shorthand_property_identifier_pattern")
        )
    body = fn.child_by_field_name("body")
    if body is None:
        return names
    for node in _walk_scope(body, deadline):
        if node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            if target is not None:
                names.update(
                    node_text(n)
                    for n in walk(target, deadline)
                    if n.type in ("identifier", "shorthand_property_identifier_pattern")
                )
        elif node.type == "function_declaration":
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(node_text(name))
    return names


def _walk_scope(root: Node, deadline: Deadline) -> Iterator[Node]:
    """Pre-order walk that yields nested functions but does not enter them."""
    stack = [root]
    while stack:
        node = stack.pop()
        deadline.check()
        yield node
        if node is not root and node.type in FUNCTION_NODES:
            continue
        stack.extend(reversed(node.children))


# --- Python ---


_PyFunction = ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda


def infer_python_concepts(tree: ast.Module, deadline: Deadline) -> frozenset[ConceptTag]:
    """Infer abstract concepts from a Python module tree."""
    concepts: set[ConceptTag] = set()

    for node in _walk_ast(tree, deadline):
        if isinstance(node, ast.Await):
            concepts.update((ConceptTag.ASYNC_CONTROL_FLOW, ConceptTag.EVENT_LOOP))
        elif isinstance(node, (ast.Global, ast.Nonlocal)):
            concepts.update((ConceptTag.SIDE_EFFECTS, ConceptTag.SCOPE))
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            for decorator in node.decorator_list:
                name = _decorator_name(decorator)
                if name in _MEMO_DECORATORS:
                    concepts.add(ConceptTag.MEMOIZATION)
                if name == "dataclass" and _is_frozen_dataclass(decorator):
                    concepts.add(ConceptTag.IMMUTABILITY)
            if isinstance(node, ast.ClassDef) and any(
                _dotted_name(base) in ("NamedTuple", "typing.NamedTuple") for base in node.bases
            ):
                concepts.add(ConceptTag.IMMUTABILITY)
        elif isinstance(node, ast.Call):
            callee = _dotted_name(node.func)
            if callee.rsplit(".", 1)[-1] in _IMMUTABLE_CALLS:
                concepts.add(ConceptTag.IMMUTABILITY)
            if callee.startswith("asyncio."):
                concepts.update((ConceptTag.ASYNC_CONTROL_FLOW, ConceptTag.EVENT_LOOP))

    if _has_python_closure(tree, deadline):
        concepts.add(ConceptTag.CLOSURE)
    if python_self_calling_functions(tree, deadline):
        concepts.add(ConceptTag.RECURSION)
    return frozenset(concepts)


def python_self_calling_functions(tree: ast.AST, deadline: Deadline) -> set[str]:
    """Names of functions whose body calls the function itself by name."""
    names: set[str] = set()
    for node in _walk_ast(tree, deadline):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        for inner in _walk_ast(node, deadline):
            if (
                isinstance(inner, ast.Call)
                and isinstance(inner.func, ast.Name)
                and inner.func.id == node.name
            ):
                names.add(node.name)
                break
    return names


def _has_python_closure(tree: ast.Module, deadline: Deadline) -> bool:
    def visit(node: ast.AST, outer: frozenset[str]) -> bool:
        for child in ast.iter_child_nodes(node):
            deadline.check()
            if isinstance(child, _PyFunction):
                own = _python_local_names(child)
                if outer and (_python_loaded_names(child) - own) & outer:
                    return True
                if visit(child, outer | own):
                    return True
            elif visit(child, outer):
                return True
        return False

    return visit(tree, frozenset())


def _python_local_names(fn: _PyFunction) -> frozenset[str]:
    """Parameters and names bound in the function's own scope, minus global/nonlocal ones."""
    args = fn.args
    names = {a.arg for a in (*args.posonlyargs, *args.args, *args.kwonlyargs)}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)
    if isinstance(fn, ast.Lambda):
        return frozenset(names)

    shared: set[str] = set()
    stack: list[ast.AST] = list(fn.body)
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(node.name)
            continue
        if isinstance(node, ast.Lambda):
            continue
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
            names.add(node.id)
        elif isinstance(node, (ast.Global, ast.Nonlocal)):
            shared.update(node.names)
        stack.extend(ast.iter_child_nodes(node))
    return frozenset(names - shared)


def _python_loaded_names(fn: _PyFunction) -> set[str]:
    return {
        node.id
        for node in ast.walk(fn)
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load)
    }


def _walk_ast(tree: ast.AST, deadline: Deadline) -> Iterator[ast.AST]:
    for node in ast.walk(tree):
        deadline.check()
        yield node


def _dotted_name(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted_name(node.value)
        return f"{base}.{node.attr}" if base else node.attr
    return ""


def _decorator_name(node: ast.expr) -> str:
    target = node.func if isinstance(node, ast.Call) else node
    return _dotted_name(target).rsplit(".", 1)[-1]


def _is_frozen_dataclass(node: ast.expr) -> bool:
    if not isinstance(node, ast.Call):
        return False
    return any(
        kw.arg == "frozen" and isinstance(kw.value, ast.Constant) and kw.value.value is True
        for kw in node.keywords
    )
