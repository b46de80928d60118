"""Python feature extraction over the standard-library ``ast`` tree."""

import ast
import logging
import textwrap
from collections.abc import Iterator

from code_linker.analysis.complexity import ComplexityCounter, count_lines
from code_linker.analysis.concepts import infer_python_concepts, python_self_calling_functions
from code_linker.analysis.deadline import Deadline
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

SNIPPET_WRAPPER = "__snippet__"

DEFAULT_ALIASES = {"pd": "pandas", "np": "numpy", "plt": "matplotlib.pyplot"}

_KNOWN_MODULES = frozenset(
    {
        "os", "sys", "json", "re", "math", "time", "random", "logging", "asyncio",
        "itertools", "functools", "collections", "datetime", "pathlib", "subprocess",
        "typing", "requests", "httpx", "pandas", "numpy", "shutil", "csv", "sqlite3",
    }
)  # fmt: skip
_LIST_METHODS = frozenset({"append", "extend", "insert", "pop", "remove", "sort", "reverse"})
_DICT_METHODS = frozenset({"items", "keys", "values", "get", "setdefault", "update"})
_STR_METHODS = frozenset(
    {
        "join", "split", "strip", "lstrip", "rstrip", "lower", "upper", "replace",
        "startswith", "endswith", "format", "encode", "splitlines",
    }
)  # fmt: skip
_HOF_BUILTINS = frozenset({"map", "filter", "sorted", "reduce", "min", "max"})
_COMPREHENSIONS = (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)
_FUNCTIONS = (ast.FunctionDef, ast.AsyncFunctionDef)
_ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag"})


# --- parsing ---


def parse_source(code: str) -> ast.Module:
    """Parse code, retrying once wrapped in a function for bare snippets.

    The wrapper is removed from the returned tree so it contributes no tags.
    Raises ParseError when neither attempt parses.
    """
    source = textwrap.dedent(code)
    try:
        return ast.parse(source)
    except SyntaxError:
        pass

    wrapped = f"async def {SNIPPET_WRAPPER}():\n" + textwrap.indent(source, "    ")
    try:
        tree = ast.parse(wrapped)
    except SyntaxError as exc:
        raise ParseError(f"Source has syntax errors: {exc.msg} (line {exc.lineno})") from exc
    logger.debug("Parsed snippet after wrapping in a function")
    wrapper = tree.body[0]
    if not isinstance(wrapper, ast.AsyncFunctionDef):
        raise ParseError("Source could not be wrapped in a function")
    return ast.Module(body=wrapper.body, type_ignores=[])


def _walk(tree: ast.AST, deadline: Deadline) -> Iterator[ast.AST]:
    for node in ast.walk(tree):
        deadline.check()
        yield node


def _dotted(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted(node.value)
        return f"{base}.{node.attr}" if base else ""
    return ""


def _decorator_names(fn: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> set[str]:
    names = set()
    for decorator in fn.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        dotted = _dotted(target)
        if dotted:
            names.add(dotted.rsplit(".", 1)[-1])
    return names


# --- dimension passes ---


def extract_syntax(tree: ast.Module, deadline: Deadline) -> frozenset[SyntaxTag]:
    """Syntax constructs present in the tree."""
    tags: set[SyntaxTag] = set()
    for node in _walk(tree, deadline):
        if isinstance(node, _FUNCTIONS):
            tags.add(SyntaxTag.FUNCTION)
            if isinstance(node, ast.AsyncFunctionDef):
                tags.add(SyntaxTag.ASYNC)
            if node.decorator_list:
                tags.add(SyntaxTag.DECORATOR)
            if _decorator_names(node) & {"staticmethod", "classmethod"}:
                tags.add(SyntaxTag.STATIC)
            if node.returns is not None:
                tags.add(SyntaxTag.TYPE_ANNOTATION)
        elif isinstance(node, ast.arguments):
            params = (*node.posonlyargs, *node.args, *node.kwonlyargs)
            if any(arg.annotation is not None for arg in params):
                tags.add(SyntaxTag.TYPE_ANNOTATION)
            if node.vararg or node.kwarg:
                tags.add(SyntaxTag.REST)
        elif isinstance(node, ast.ClassDef):
            tags.add(SyntaxTag.CLASS)
            base_names = {_dotted(base).rsplit(".", 1)[-1] for base in node.bases}
            if base_names - {"object", ""}:
                tags.add(SyntaxTag.EXTENDS)
            if base_names & _ENUM_BASES:
                tags.add(SyntaxTag.ENUM)
            if "Protocol" in base_names:
                tags.add(SyntaxTag.INTERFACE)
            if node.decorator_list:
                tags.add(SyntaxTag.DECORATOR)
        elif isinstance(node, ast.Await):
            tags.add(SyntaxTag.AWAIT)
        elif isinstance(node, (ast.Yield, ast.YieldFrom)):
            tags.add(SyntaxTag.GENERATOR)
        elif isinstance(node, ast.Lambda):
            tags.add(SyntaxTag.LAMBDA)
        elif isinstance(node, ast.JoinedStr):
            tags.add(SyntaxTag.F_STRING)
        elif isinstance(node, _COMPREHENSIONS):
            tags.add(SyntaxTag.COMPREHENSION)
        elif isinstance(node, ast.Call):
            if isinstance(node.func, ast.Name) and node.func.id == "super":
                tags.add(SyntaxTag.SUPER)
        elif isinstance(node, ast.AnnAssign):
            tags.add(SyntaxTag.TYPE_ANNOTATION)
        elif isinstance(node, ast.Assign):
            if any(isinstance(t, (ast.Tuple, ast.List)) for t in node.targets):
                tags.add(SyntaxTag.DESTRUCTURING)
        elif isinstance(node, ast.Starred):
            tags.add(SyntaxTag.REST if isinstance(node.ctx, ast.Store) else SyntaxTag.SPREAD)
        elif isinstance(node, ast.Dict):
            if any(key is None for key in node.keys):
                tags.add(SyntaxTag.SPREAD)
        elif isinstance(node, ast.If):
            tags.add(SyntaxTag.IF_ELSE)
        elif isinstance(node, ast.IfExp):
            tags.add(SyntaxTag.TERNARY)
        elif isinstance(node, ast.Match):
            tags.add(SyntaxTag.MATCH)
        elif isinstance(node, (ast.For, ast.AsyncFor)):
            tags.add(SyntaxTag.FOR)
            if isinstance(node.target, (ast.Tuple, ast.List)):
                tags.add(SyntaxTag.DESTRUCTURING)
        elif isinstance(node, ast.While):
            tags.add(SyntaxTag.WHILE)
        elif isinstance(node, (ast.With, ast.AsyncWith)):
            tags.add(SyntaxTag.WITH)
        elif isinstance(node, (ast.Try, ast.TryStar)):
            if node.handlers:
                tags.add(SyntaxTag.TRY_CATCH)
            if node.finalbody:
                tags.add(SyntaxTag.FINALLY)
        elif isinstance(node, ast.Raise):
            tags.add(SyntaxTag.THROW)
        elif isinstance(node, ast.Assert):
            tags.add(SyntaxTag.ASSERT)
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            tags.add(SyntaxTag.IMPORT)
        elif isinstance(node, ast.NamedExpr):
            tags.add(SyntaxTag.WALRUS)
        elif isinstance(node, ast.TypeAlias):
            tags.add(SyntaxTag.TYPE_ALIAS)
    return frozenset(tags)


def extract_patterns(tree: ast.Module, deadline: Deadline) -> frozenset[PatternTag]:
    """Idiomatic patterns built from combinations of constructs."""
    patterns: set[PatternTag] = set()
    for node in _walk(tree, deadline):
        if isinstance(node, _FUNCTIONS):
            if isinstance(node, ast.AsyncFunctionDef):
                patterns.add(PatternTag.ASYNC_AWAIT)
            decorators = _decorator_names(node)
            if decorators:
                patterns.add(PatternTag.DECORATOR_PATTERN)
            if decorators & {"contextmanager", "asynccontextmanager"}:
                patterns.add(PatternTag.CONTEXT_MANAGER)
            if _returns_inner_function(node):
                patterns.add(PatternTag.HIGHER_ORDER_FUNCTION)
            if "classmethod" in decorators and _returns_cls_call(node):
                patterns.add(PatternTag.FACTORY_PATTERN)
            if node.name in ("__enter__", "__exit__", "__aenter__", "__aexit__"):
                patterns.add(PatternTag.CONTEXT_MANAGER)
        elif isinstance(node, ast.ClassDef):
            patterns.add(PatternTag.CLASS_DEFINITION)
            if any(_dotted(base) not in ("", "object") for base in node.bases):
                patterns.add(PatternTag.INHERITANCE)
            if node.decorator_list:
                patterns.add(PatternTag.DECORATOR_PATTERN)
        elif isinstance(node, (ast.Yield, ast.YieldFrom)):
            patterns.add(PatternTag.GENERATOR_PATTERN)
        elif isinstance(node, _COMPREHENSIONS):
            patterns.add(PatternTag.LIST_COMPREHENSION)
        elif isinstance(node, (ast.With, ast.AsyncWith)):
            patterns.add(PatternTag.CONTEXT_MANAGER)
        elif isinstance(node, (ast.Try, ast.TryStar)):
            patterns.add(PatternTag.ERROR_HANDLING)
            patterns.add(PatternTag.TRY_CATCH)
        elif isinstance(node, (ast.For, ast.AsyncFor, ast.While)):
            patterns.add(PatternTag.LOOP)
        elif isinstance(node, (ast.If, ast.IfExp, ast.Match)):
            patterns.add(PatternTag.CONDITIONAL)
            if isinstance(node, ast.If) and _is_main_guard(node.test):
                patterns.add(PatternTag.MODULE_PATTERN)
        elif isinstance(node, ast.Assign):
            if any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
                patterns.add(PatternTag.MODULE_PATTERN)
            if any(isinstance(t, (ast.Tuple, ast.List)) for t in node.targets):
                patterns.add(PatternTag.ARRAY_DESTRUCTURING)
        elif isinstance(node, ast.Call):
            args = (*node.args, *(kw.value for kw in node.keywords))
            if any(isinstance(arg, ast.Lambda) for arg in args):
                patterns.add(PatternTag.CALLBACK)
                patterns.add(PatternTag.HIGHER_ORDER_FUNCTION)
            if isinstance(node.func, ast.Name) and node.func.id in _HOF_BUILTINS:
                if node.func.id in ("map", "filter", "reduce") or node.keywords:
                    patterns.add(PatternTag.HIGHER_ORDER_FUNCTION)

    if python_self_calling_functions(tree, deadline):
        patterns.add(PatternTag.RECURSIVE)
    return frozenset(patterns)


def _returns_inner_function(fn: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    inner = {stmt.name for stmt in fn.body if isinstance(stmt, _FUNCTIONS)}
    for stmt in fn.body:
        if isinstance(stmt, ast.Return) and stmt.value is not None:
            if isinstance(stmt.value, ast.Lambda):
                return True
            if isinstance(stmt.value, ast.Name) and stmt.value.id in inner:
                return True
    return False


def _returns_cls_call(fn: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    return any(
        isinstance(node, ast.Return)
        and isinstance(node.value, ast.Call)
        and isinstance(node.value.func, ast.Name)
        and node.value.func.id == "cls"
        for node in ast.walk(fn)
    )


def _is_main_guard(test: ast.expr) -> bool:
    return (
        isinstance(test, ast.Compare)
        and isinstance(test.left, ast.Name)
        and test.left.id == "__name__"
        and any(isinstance(c, ast.Constant) and c.value == "__main__" for c in test.comparators)
    )


def import_aliases(tree: ast.Module) -> dict[str, str]:
    """Map local names to the dotted module path they were imported as."""
    aliases = dict(DEFAULT_ALIASES)
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                local = alias.asname or alias.name.split(".", 1)[0]
                aliases[local] = alias.name if alias.asname else local
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            for alias in node.names:
                if alias.name != "*":
                    aliases[alias.asname or alias.name] = f"{node.module}.{alias.name}"
    return aliases


def extract_apis(tree: ast.Module, deadline: Deadline) -> frozenset[str]:
    """Normalized call signatures (``requests.get``, ``len``, ``list.append``)."""
    aliases = import_aliases(tree)
    apis: set[str] = set()
    for node in _walk(tree, deadline):
        if not isinstance(node, ast.Call):
            continue
        signature = call_signature(node.func, aliases)
        if signature:
            apis.add(signature)
    return frozenset(apis)


def call_signature(func: ast.expr, aliases: dict[str, str]) -> str | None:
    """Standardize a callee expression into a catalog-style API signature."""
    if isinstance(func, ast.Name):
        return aliases.get(func.id, func.id)
    if not isinstance(func, ast.Attribute):
        return None

    method = func.attr
    receiver = func.value
    if isinstance(receiver, ast.Constant) and isinstance(receiver.value, str):
        return f"str.{method}"
    if isinstance(receiver, ast.JoinedStr):
        return f"str.{method}"
    if isinstance(receiver, (ast.List, ast.ListComp)):
        return f"list.{method}"
    if isinstance(receiver, (ast.Dict, ast.DictComp)):
        return f"dict.{method}"

    dotted = _dotted(receiver)
    if not dotted:
        return method
    head, _, rest = dotted.partition(".")
    if head in aliases:
        resolved = aliases[head] + (f".{rest}" if rest else "")
        return f"{resolved}.{method}"
    if head in _KNOWN_MODULES or head == "self" or head[:1].isupper():
        return f"{dotted}.{method}"
    if method in _LIST_METHODS:
        return f"list.{method}"
    if method in _DICT_METHODS:
        return f"dict.{method}"
    if method in _STR_METHODS:
        return f"str.{method}"
    return f"{dotted}.{method}"


def compute_complexity(tree: ast.Module, deadline: Deadline, line_count: int) -> ComplexityMetrics:
    """Cyclomatic and cognitive complexity plus block nesting depth.

    Every statement list (a function body, loop body, branch...) is one block
    level. An ``elif`` sits at the depth of its ``if``.
    """
    counter = ComplexityCounter()

    def visit(node: ast.AST, *, elif_branch: bool = False) -> None:
        deadline.check()
        if isinstance(node, ast.If):
            counter.conditional(nested=not elif_branch)
        elif isinstance(node, ast.IfExp):
            counter.conditional()
        elif isinstance(node, (ast.For, ast.AsyncFor, ast.While, ast.comprehension)):
            counter.loop()
        elif isinstance(node, ast.BoolOp):
            counter.logical(len(node.values) - 1)
        elif isinstance(node, ast.ExceptHandler):
            counter.catch()
        elif isinstance(node, ast.match_case):
            counter.case()

        for field, value in ast.iter_fields(node):
            if isinstance(value, list) and value and isinstance(value[0], ast.stmt):
                if field == "orelse" and isinstance(node, ast.If) and _is_elif(value):
                    visit(value[0], elif_branch=True)
                    continue
                counter.enter()
                for stmt in value:
                    visit(stmt)
                counter.exit()
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, ast.AST):
                        visit(item)
            elif isinstance(value, ast.AST):
                visit(value)

    for stmt in tree.body:
        visit(stmt)
    return counter.metrics(line_count)


def _is_elif(orelse: list[ast.stmt]) -> bool:
    return len(orelse) == 1 and isinstance(orelse[0], ast.If)


def extract_context(tree: ast.Module, deadline: Deadline) -> CodeContext:
    """Imports, public top-level names and module-level variables."""
    imports: list[ImportInfo] = []
    for node in _walk(tree, deadline):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.append(
                    ImportInfo(
                        source=alias.name,
                        specifiers=(alias.asname or alias.name,),
                        type="namespace",
                    )
                )
        elif isinstance(node, ast.ImportFrom):
            source = "." * node.level + (node.module or "")
            imports.append(
                ImportInfo(
                    source=source,
                    specifiers=tuple(a.asname or a.name for a in node.names),
                    type="named",
                )
            )

    globals_: list[str] = []
    exports: list[ExportInfo] = []
    declared_all: list[str] | None = None
    for stmt in tree.body:
        if isinstance(stmt, (*_FUNCTIONS, ast.ClassDef)):
            kind = "class" if isinstance(stmt, ast.ClassDef) else "function"
            exports.append(ExportInfo(name=stmt.name, kind=kind))
        elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
            targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
            for target in targets:
                if not isinstance(target, ast.Name):
                    continue
                if target.id == "__all__" and isinstance(stmt.value, (ast.List, ast.Tuple)):
                    declared_all = [
                        elt.value
                        for elt in stmt.value.elts
                        if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
                    ]
                    continue
                globals_.append(target.id)
                exports.append(ExportInfo(name=target.id, kind="variable"))
        elif isinstance(stmt, ast.TypeAlias):
            exports.append(ExportInfo(name=stmt.name.id, kind="type"))

    if declared_all is not None:
        exports = [e for e in exports if e.name in declared_all]
    else:
        exports = [e for e in exports if not e.name.startswith("_")]

    return CodeContext(
        language=SourceLanguage.PYTHON,
        imports=tuple(imports),
        exports=tuple(exports),
        global_variables=tuple(globals_),
    )


# --- extractor ---


class PythonExtractor:
    """Builds CodeFeatures for Python source."""

    def extract(self, code: str, deadline: Deadline) -> CodeFeatures:
        """Parse and run every dimension pass.

        Raises ParseError or ExtractionTimeout.
        """
        tree = parse_source(code)
        deadline.check()

        features = CodeFeatures(
            syntax=extract_syntax(tree, deadline),
            patterns=extract_patterns(tree, deadline),
            apis=extract_apis(tree, deadline),
            concepts=infer_python_concepts(tree, deadline),
            complexity=compute_complexity(tree, deadline, count_lines(code)),
            context=extract_context(tree, deadline),
        )
        logger.debug(
            "Python extraction: %d syntax, %d patterns, %d apis, %d concepts",
            len(features.syntax),
            len(features.patterns),
            len(features.apis),
            len(features.concepts),
        )
        return features
