"""JavaScript / TypeScript feature extraction over tree-sitter syntax trees."""

import logging

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from code_linker.analysis.complexity import ComplexityCounter, count_lines
from code_linker.analysis.concepts import infer_js_concepts
from code_linker.analysis.deadline import Deadline
from code_linker.analysis.tree import (
    FUNCTION_NODES,
    PROMISE_CHAIN_METHODS,
    callee_property,
    has_function_argument,
    is_async,
    is_promise_chain_call,
    node_text,
    returned_expressions,
    self_calling_functions,
    walk,
    walk_events,
)
from code_linker.errors import ParseError
from code_linker.models.features import (
    CodeContext,
    CodeFeatures,
    ComplexityMetrics,
    ExportInfo,
    ImportInfo,
    SourceLanguage,
)
from code_linker.models.tags import PatternTag, SyntaxTag

logger = logging.getLogger(__name__)

_JAVASCRIPT = Language(tree_sitter_javascript.language())
_TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
_TSX = Language(tree_sitter_typescript.language_tsx())


_LOOP_NODES = frozenset({"for_statement", "for_in_statement", "while_statement", "do_statement"})

ARRAY_METHODS = frozenset(
    {
        "map", "filter", "reduce", "forEach", "find", "some", "every", "includes", "indexOf",
        "slice", "splice", "push", "pop", "shift", "unshift", "sort", "reverse", "join",
        "concat", "flatMap", "findIndex",
    }
)  # fmt: skip
_TRANSFORM_METHODS = frozenset({"map", "filter", "reduce", "forEach", "find", "some", "every"})
_STRING_METHODS = frozenset(
    {
        "split", "trim", "toLowerCase", "toUpperCase", "substring", "substr", "slice",
        "indexOf", "lastIndexOf", "replace", "match", "search", "padStart", "padEnd",
    }
)  # fmt: skip
_OBJECT_METHODS = frozenset({"keys", "values", "entries", "assign", "create", "freeze", "seal"})
_PROMISE_STATICS = frozenset({"all", "race", "resolve", "reject", "allSettled", "any"})
_TYPE_DECLARATIONS = frozenset(
    {"interface_declaration", "type_alias_declaration", "enum_declaration"}
)


# --- parsing ---


def parse_source(code: str, *, typescript: bool = False, jsx: bool = False) -> Node:
    """Parse code, retrying once wrapped in a function for bare snippets.

    Raises ParseError when neither attempt yields an error-free tree.
    """
    language = _JAVASCRIPT
    if typescript:
        language = _TSX if jsx else _TYPESCRIPT
    parser = Parser(language)

    tree = parser.parse(code.encode("utf-8"))
    if not tree.root_node.has_error:
        return tree.root_node

    wrapped = f"(function() {{\n{code}\n}})()"
    tree = parser.parse(wrapped.encode("utf-8"))
    if not tree.root_node.has_error:
        logger.debug("Parsed snippet after wrapping in a function")
        return tree.root_node

    raise ParseError("Source has syntax errors, even when wrapped in a function")


# --- dimension passes ---


def extract_syntax(root: Node, deadline: Deadline) -> frozenset[SyntaxTag]:
    """Syntax constructs present in the tree."""
    tags: set[SyntaxTag] = set()
    for node in walk(root, deadline):
        kind = node.type
        if kind == "variable_declaration":
            tags.add(SyntaxTag.VAR)
        elif kind == "lexical_declaration" and node.children:
            keyword = node.children[0].type
            if keyword == "let":
                tags.add(SyntaxTag.LET)
            elif keyword == "const":
                tags.add(SyntaxTag.CONST)
        elif kind in FUNCTION_NODES:
            if kind == "arrow_function":
                tags.add(SyntaxTag.ARROW_FUNCTION)
            elif kind != "method_definition":
                tags.add(SyntaxTag.FUNCTION)
            if is_async(node):
                tags.add(SyntaxTag.ASYNC)
            if kind.startswith("generator_") or any(c.type == "*" for c in node.children):
                tags.add(SyntaxTag.GENERATOR)
            if kind == "method_definition" and any(c.type == "static" for c in node.children):
                tags.add(SyntaxTag.STATIC)
        elif kind == "await_expression":
            tags.add(SyntaxTag.AWAIT)
        elif kind == "template_string":
            tags.add(SyntaxTag.TEMPLATE_LITERAL)
        elif kind in ("object_pattern", "array_pattern"):
            tags.add(SyntaxTag.DESTRUCTURING)
        elif kind == "spread_element":
            tags.add(SyntaxTag.SPREAD)
        elif kind == "rest_pattern":
            tags.add(SyntaxTag.REST)
        elif kind in ("class_declaration", "class", "abstract_class_declaration"):
            tags.add(SyntaxTag.CLASS)
        elif kind == "class_heritage":
            tags.add(SyntaxTag.EXTENDS)
        elif kind == "super":
            tags.add(SyntaxTag.SUPER)
        elif kind == "field_definition" and any(c.type == "static" for c in node.children):
            tags.add(SyntaxTag.STATIC)
        elif kind == "decorator":
            tags.add(SyntaxTag.DECORATOR)
        elif kind == "if_statement":
            tags.add(SyntaxTag.IF_ELSE)
        elif kind == "switch_statement":
            tags.add(SyntaxTag.SWITCH)
        elif kind == "for_statement":
            tags.add(SyntaxTag.FOR)
        elif kind == "for_in_statement":
            tags.add(SyntaxTag.FOR_OF if _is_for_of(node) else SyntaxTag.FOR_IN)
        elif kind == "while_statement":
            tags.add(SyntaxTag.WHILE)
        elif kind == "do_statement":
            tags.add(SyntaxTag.DO_WHILE)
        elif kind in ("try_statement", "catch_clause"):
            tags.add(SyntaxTag.TRY_CATCH)
        elif kind == "finally_clause":
            tags.add(SyntaxTag.FINALLY)
        elif kind == "throw_statement":
            tags.add(SyntaxTag.THROW)
        elif kind == "import_statement":
            tags.add(SyntaxTag.IMPORT)
        elif kind == "export_statement":
            tags.add(SyntaxTag.EXPORT)
        elif kind == "ternary_expression":
            tags.add(SyntaxTag.TERNARY)
        elif kind == "optional_chain":
            tags.add(SyntaxTag.OPTIONAL_CHAINING)
        elif kind == "binary_expression" and _operator(node) == "??":
            tags.add(SyntaxTag.NULLISH_COALESCING)
        elif kind in ("type_annotation", "type_parameters"):
            tags.add(SyntaxTag.TYPE_ANNOTATION)
        elif kind == "interface_declaration":
            tags.add(SyntaxTag.INTERFACE)
        elif kind == "type_alias_declaration":
            tags.add(SyntaxTag.TYPE_ALIAS)
        elif kind == "enum_declaration":
            tags.add(SyntaxTag.ENUM)
    return frozenset(tags)


def extract_patterns(root: Node, deadline: Deadline) -> frozenset[PatternTag]:
    """Idiomatic patterns built from combinations of constructs."""
    patterns: set[PatternTag] = set()
    for node in walk(root, deadline):
        kind = node.type
        if kind in FUNCTION_NODES:
            if is_async(node):
                patterns.add(PatternTag.ASYNC_AWAIT)
            returned = returned_expressions(node)
            if any(expr.type in FUNCTION_NODES for expr in returned):
                patterns.add(PatternTag.HIGHER_ORDER_FUNCTION)
                if kind == "arrow_function":
                    patterns.add(PatternTag.CURRYING)
            if kind == "function_declaration" and any(e.type == "object" for e in returned):
                patterns.add(PatternTag.FACTORY_PATTERN)
        elif kind == "call_expression":
            if is_promise_chain_call(node):
                patterns.add(PatternTag.PROMISE_CHAIN)
            if has_function_argument(node):
                patterns.add(PatternTag.CALLBACK)
                patterns.add(PatternTag.HIGHER_ORDER_FUNCTION)
            method = callee_property(node)
            if method == "addEventListener":
                patterns.add(PatternTag.EVENT_HANDLER)
            if method in _TRANSFORM_METHODS:
                patterns.add(PatternTag.ARRAY_METHODS)
        elif kind == "try_statement":
            patterns.add(PatternTag.ERROR_HANDLING)
            patterns.add(PatternTag.TRY_CATCH)
        elif kind == "object_pattern":
            patterns.add(PatternTag.OBJECT_DESTRUCTURING)
        elif kind == "array_pattern":
            patterns.add(PatternTag.ARRAY_DESTRUCTURING)
        elif kind in ("class_declaration", "class", "abstract_class_declaration"):
            patterns.add(PatternTag.CLASS_DEFINITION)
            if any(child.type == "class_heritage" for child in node.children):
                patterns.add(PatternTag.INHERITANCE)
        elif kind in _LOOP_NODES:
            patterns.add(PatternTag.LOOP)
        elif kind in ("if_statement", "ternary_expression"):
            patterns.add(PatternTag.CONDITIONAL)
        elif kind in ("import_statement", "export_statement"):
            patterns.add(PatternTag.MODULE_PATTERN)

    if self_calling_functions(root, deadline):
        patterns.add(PatternTag.RECURSIVE)
    return frozenset(patterns)


def extract_apis(root: Node, deadline: Deadline) -> frozenset[str]:
    """Normalized call signatures (``Array.map``, ``fetch``, ``console.log``)."""
    apis: set[str] = set()
    for node in walk(root, deadline):
        if node.type == "call_expression":
            fn = node.child_by_field_name("function")
            if fn is None:
                continue
            if fn.type == "member_expression":
                signature = member_signature(fn)
                if signature:
                    apis.add(signature)
            elif fn.type == "identifier":
                apis.add(node_text(fn))
        elif node.type == "new_expression":
            ctor = node.child_by_field_name("constructor")
            if ctor is not None and ctor.type in ("identifier", "member_expression"):
                apis.add(node_text(ctor))
    return frozenset(apis)


def member_signature(member: Node) -> str | None:
    """Standardize ``receiver.method`` into a catalog-style API signature."""
    prop = member.child_by_field_name("property")
    if prop is None or prop.type not in ("property_identifier", "private_property_identifier"):
        return None
    method = node_text(prop)
    receiver = _receiver_name(member.child_by_field_name("object"))
    untyped = receiver is None or receiver[:1].islower()

    if method in PROMISE_CHAIN_METHODS:
        return f"Promise.{method}"
    if method in ARRAY_METHODS and untyped and receiver not in ("console", "document"):
        return f"Array.{method}"
    if receiver == "Object" and method in _OBJECT_METHODS:
        return f"Object.{method}"
    if receiver == "Promise" and method in _PROMISE_STATICS:
        return f"Promise.{method}"
    if method in _STRING_METHODS and untyped:
        return f"String.{method}"
    if receiver is None:
        return method
    return f"{receiver}.{method}"


def _receiver_name(node: Node | None) -> str | None:
    if node is None:
        return None
    if node.type == "identifier":
        return node_text(node)
    if node.type == "this":
        return "this"
    if node.type == "member_expression":
        obj = _receiver_name(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        return f"{obj}.{node_text(prop)}"
    return None


def compute_complexity(root: Node, deadline: Deadline, line_count: int) -> ComplexityMetrics:
    """Cyclomatic and cognitive complexity plus block nesting depth."""
    counter = ComplexityCounter()
    for node, entering in walk_events(root, deadline):
        kind = node.type
        if kind == "statement_block":
            if entering:
                counter.enter()
            else:
                counter.exit()
            continue
        if not entering:
            continue
        if kind == "if_statement":
            else_if = node.parent is not None and node.parent.type == "else_clause"
            counter.conditional(nested=not else_if)
        elif kind == "ternary_expression":
            counter.conditional()
        elif kind == "switch_case":
            counter.case()
        elif kind in _LOOP_NODES:
            counter.loop()
        elif kind == "binary_expression" and _operator(node) in ("&&", "||"):
            counter.logical()
        elif kind == "catch_clause":
            counter.catch()
    return counter.metrics(line_count)


def extract_context(root: Node, deadline: Deadline, language: SourceLanguage) -> CodeContext:
    """Imports, exports and top-level variables."""
    imports: list[ImportInfo] = []
    exports: list[ExportInfo] = []
    globals_: list[str] = []

    for node in walk(root, deadline):
        if node.type == "import_statement":
            imports.append(_import_info(node))
        elif node.type == "export_statement":
            exports.extend(_export_infos(node))

    for stmt in root.named_children:
        if stmt.type in ("lexical_declaration", "variable_declaration"):
            globals_.extend(_declared_identifiers(stmt))

    return CodeContext(
        language=language,
        imports=tuple(imports),
        exports=tuple(exports),
        global_variables=tuple(globals_),
    )


def _import_info(node: Node) -> ImportInfo:
    source = node_text(node.child_by_field_name("source")).strip("'\"`")
    specifiers: list[str] = []
    kind = "named"
    for clause in node.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                kind = "default"
                specifiers.append(node_text(part))
            elif part.type == "namespace_import":
                kind = "namespace"
                specifiers.extend(node_text(c) for c in part.named_children)
            elif part.type == "named_imports":
                for spec in part.named_children:
                    local = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    if local is not None:
                        specifiers.append(node_text(local))
    return ImportInfo(
        source=source, specifiers=tuple(specifiers), type=kind  # type: ignore[arg-type]
    )


def _export_infos(node: Node) -> list[ExportInfo]:
    if any(child.type == "default" for child in node.children):
        return [ExportInfo(name="default", type="default", kind="variable")]
    decl = node.child_by_field_name("declaration")
    if decl is None:
        return []
    name = decl.child_by_field_name("name")
    if decl.type in ("function_declaration", "generator_function_declaration") and name:
        return [ExportInfo(name=node_text(name), kind="function")]
    if decl.type in ("class_declaration", "abstract_class_declaration") and name:
        return [ExportInfo(name=node_text(name), kind="class")]
    if name and decl.type in _TYPE_DECLARATIONS:
        return [ExportInfo(name=node_text(name), kind="type")]
    if decl.type in ("lexical_declaration", "variable_declaration"):
        return [ExportInfo(name=n, kind="variable") for n in _declared_identifiers(decl)]
    return []


def _declared_identifiers(declaration: Node) -> list[str]:
    names = []
    for declarator in declaration.named_children:
        if declarator.type != "variable_declarator":
            continue
        target = declarator.child_by_field_name("name")
        if target is not None and target.type == "identifier":
            names.append(node_text(target))
    return names


def _operator(node: Node) -> str:
    op = node.child_by_field_name("operator")
    return op.type if op is not None else ""


def _is_for_of(node: Node) -> bool:
    op = node.child_by_field_name("operator")
    if op is not None:
        return op.type == "of"
    return any(child.type == "of" for child in node.children)


# --- extractor ---


class JavaScriptExtractor:
    """Builds CodeFeatures for JavaScript and TypeScript source."""

    def extract(
        self,
        code: str,
        deadline: Deadline,
        *,
        typescript: bool = False,
        jsx: bool = False,
    ) -> CodeFeatures:
        """Parse and run every dimension pass.

        Raises ParseError or ExtractionTimeout; the analyzer turns both into
        empty features.
        """
        language = SourceLanguage.TYPESCRIPT if typescript else SourceLanguage.JAVASCRIPT
        root = parse_source(code, typescript=typescript, jsx=jsx)
        deadline.check()

        features = CodeFeatures(
            syntax=extract_syntax(root, deadline),
            patterns=extract_patterns(root, deadline),
            apis=extract_apis(root, deadline),
            concepts=infer_js_concepts(root, deadline),
            complexity=compute_complexity(root, deadline, count_lines(code)),
            context=extract_context(root, deadline, language),
        )
        logger.debug(
            "JavaScript extraction: %d syntax, %d patterns, %d apis, %d concepts",
            len(features.syntax),
            len(features.patterns),
            len(features.apis),
            len(features.concepts),
        )
        return features
