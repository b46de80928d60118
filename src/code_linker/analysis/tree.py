"""Shared helpers for walking tree-sitter syntax trees."""

from collections.abc import Iterator

from tree_sitter import Node

from code_linker.analysis.deadline import Deadline

# "function" is the pre-0.21 grammar name for function expressions
FUNCTION_NODES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "generator_function_declaration",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)

PROMISE_CHAIN_METHODS = frozenset({"then", "catch", "finally"})


def node_text(node: Node | None) -> str:
    """Decoded source text of a node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def walk(root: Node, deadline: Deadline) -> Iterator[Node]:
    """Pre-order traversal, checking the deadline at every node."""
    stack = [root]
    while stack:
        node = stack.pop()
        deadline.check()
        yield node
        stack.extend(reversed(node.children))


def walk_events(root: Node, deadline: Deadline) -> Iterator[tuple[Node, bool]]:
    """Traversal yielding (node, True) on enter and (node, False) on exit."""
    stack: list[tuple[Node, bool]] = [(root, True)]
    while stack:
        node, entering = stack.pop()
        if not entering:
            yield node, False
            continue
        deadline.check()
        yield node, True
        stack.append((node, False))
        stack.extend((child, True) for child in reversed(node.children))


def is_async(node: Node) -> bool:
    """True for a function node carrying the ``async`` keyword."""
    return any(child.type == "async" for child in node.children)


def callee_property(call: Node) -> str | None:
    """Method name of ``obj.method(...)``, else None."""
    fn = call.child_by_field_name("function")
    if fn is None or fn.type != "member_expression":
        return None
    prop = fn.child_by_field_name("property")
    return node_text(prop) if prop is not None else None


def is_promise_chain_call(call: Node) -> bool:
    """True for ``x.then(...)`` / ``x.catch(...)`` / ``x.finally(...)``."""
    return call.type == "call_expression" and callee_property(call) in PROMISE_CHAIN_METHODS


def has_function_argument(call: Node) -> bool:
    """True when any argument of a call is a function literal."""
    args = call.child_by_field_name("arguments")
    if args is None:
        return False
    return any(child.type in FUNCTION_NODES for child in args.named_children)


def returned_expressions(fn: Node) -> list[Node]:
    """Expressions returned directly from a function's top-level statements."""
    body = fn.child_by_field_name("body")
    if body is None:
        return []
    if body.type != "statement_block":
        # Arrow function with an expression body
        return [body]
    returned = []
    for stmt in body.named_children:
        if stmt.type == "return_statement" and stmt.named_children:
            returned.append(stmt.named_children[0])
    return returned


def function_name(fn: Node) -> str | None:
    """Name of a declared function, or of the variable a function literal is assigned to."""
    name = fn.child_by_field_name("name")
    if name is not None:
        return node_text(name)
    parent = fn.parent
    if parent is not None and parent.type == "variable_declarator":
        target = parent.child_by_field_name("name")
        if target is not None and target.type == "identifier":
            return node_text(target)
    return None


def self_calling_functions(root: Node, deadline: Deadline) -> set[str]:
    """Names of functions whose body calls the function itself by name."""
    names: set[str] = set()
    for node in walk(root, deadline):
        if node.type not in FUNCTION_NODES:
            continue
        name = function_name(node)
        body = node.child_by_field_name("body")
        if not name or body is None:
            continue
        for inner in walk(body, deadline):
            if inner.type == "call_expression":
                fn = inner.child_by_field_name("function")
                if fn is not None and fn.type == "identifier" and node_text(fn) == name:
                    names.add(name)
                    break
    return names


