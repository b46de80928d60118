"""Closed tag taxonomies for the four matching dimensions."""

import logging
from collections.abc import Iterable
from enum import StrEnum

logger = logging.getLogger(__name__)


class TagDimension(StrEnum):
    """The independent taxonomies used to describe code and knowledge entries."""

    SYNTAX = "syntax"
    PATTERNS = "patterns"
    APIS = "apis"
    CONCEPTS = "concepts"


class SyntaxTag(StrEnum):
    """Language constructs observed directly in the syntax tree."""

    # Variable declarations
    VAR = "var"
    LET = "let"
    CONST = "const"

    # Functions
    FUNCTION = "function"
    ARROW_FUNCTION = "arrow-function"
    LAMBDA = "lambda"
    ASYNC = "async"
    AWAIT = "await"
    GENERATOR = "generator"
    DECORATOR = "decorator"

    # Literals and data
    TEMPLATE_LITERAL = "template-literal"
    F_STRING = "f-string"
    DESTRUCTURING = "destructuring"
    SPREAD = "spread"
    REST = "rest"
    COMPREHENSION = "comprehension"

    # OOP
    CLASS = "class"
    EXTENDS = "extends"
    SUPER = "super"
    STATIC = "static"

    # Types
    TYPE_ANNOTATION = "type-annotation"
    INTERFACE = "interface"
    TYPE_ALIAS = "type-alias"
    ENUM = "enum"

    # Control flow
    IF_ELSE = "if-else"
    SWITCH = "switch"
    MATCH = "match"
    FOR = "for"
    WHILE = "while"
    DO_WHILE = "do-while"
    FOR_OF = "for-of"
    FOR_IN = "for-in"
    WITH = "with"

    # Error handling
    TRY_CATCH = "try-catch"
    THROW = "throw"
    FINALLY = "finally"
    ASSERT = "assert"

    # Modules
    IMPORT = "import"
    EXPORT = "export"

    # Operators
    TERNARY = "ternary"
    NULLISH_COALESCING = "nullish-coalescing"
    OPTIONAL_CHAINING = "optional-chaining"
    WALRUS = "walrus"


class PatternTag(StrEnum):
    """Idiomatic usage patterns recognised from combinations of constructs."""

    # Async
    ASYNC_AWAIT = "async-await"
    PROMISE_CHAIN = "promise-chain"
    CALLBACK = "callback"

    # Error handling
    ERROR_HANDLING = "error-handling"
    TRY_CATCH = "try-catch"

    # Data manipulation
    ARRAY_METHODS = "array-methods"
    OBJECT_DESTRUCTURING = "object-destructuring"
    ARRAY_DESTRUCTURING = "array-destructuring"

    # Control flow
    CONDITIONAL = "conditional"
    LOOP = "loop"
    RECURSIVE = "recursive"

    # OOP
    CLASS_DEFINITION = "class-definition"
    INHERITANCE = "inheritance"

    # Functional
    HIGHER_ORDER_FUNCTION = "higher-order-function"
    CLOSURE = "closure"
    CURRYING = "currying"
    COMPOSITION = "composition"

    # Events
    EVENT_HANDLER = "event-handler"
    EVENT_DELEGATION = "event-delegation"

    # Modules
    MODULE_PATTERN = "module-pattern"
    FACTORY_PATTERN = "factory-pattern"

    # Python
    DECORATOR_PATTERN = "decorator-pattern"
    GENERATOR_PATTERN = "generator-pattern"
    LIST_COMPREHENSION = "list-comprehension"
    CONTEXT_MANAGER = "context-manager"


class ConceptTag(StrEnum):
    """Abstract concepts inferred heuristically (best-effort, never exact)."""

    SCOPE = "scope"
    CLOSURE = "closure"
    HOISTING = "hoisting"
    THIS_BINDING = "this-binding"
    PROTOTYPE_CHAIN = "prototype-chain"
    EVENT_LOOP = "event-loop"
    TYPE_COERCION = "type-coercion"
    IMMUTABILITY = "immutability"
    SIDE_EFFECTS = "side-effects"
    PURE_FUNCTION = "pure-function"
    MEMOIZATION = "memoization"
    RECURSION = "recursion"
    CALLBACK_HELL = "callback-hell"
    PROMISE_CHAINING = "promise-chaining"
    ASYNC_CONTROL_FLOW = "async-control-flow"


_ENUMS: dict[TagDimension, type[StrEnum]] = {
    TagDimension.SYNTAX: SyntaxTag,
    TagDimension.PATTERNS: PatternTag,
    TagDimension.CONCEPTS: ConceptTag,
}


def normalize_tag(dimension: TagDimension, raw: str) -> str | None:
    """Case-normalize a raw tag string for a dimension.

    Enumerated dimensions return the enum member, or None for an unknown tag.
    The API dimension is open: any non-empty signature is kept as written,
    trimmed, since display keeps its casing (``Array.map``).
    """
    value = raw.strip()
    if not value:
        return None
    if dimension == TagDimension.APIS:
        return value
    enum_cls = _ENUMS[dimension]
    key = value.lower().replace("_", "-").replace(" ", "-")
    try:
        return enum_cls(key)
    except ValueError:
        return None


def normalize_tags(dimension: TagDimension, raw: Iterable[str]) -> tuple[set[str], list[str]]:
    """Normalize a collection of raw tags.

    Returns (normalized tags, unknown raw values).
    """
    known: set[str] = set()
    unknown: list[str] = []
    for item in raw:
        tag = normalize_tag(dimension, str(item))
        if tag is None:
            unknown.append(str(item))
        else:
            known.add(tag)
    return known, unknown


def api_index_key(signature: str) -> str:
    """Reduce an API signature to its index key: final dotted segment, lower-cased.

    ``Array.map`` and ``numbers.map`` both become ``map``. Favors recall over
    precision.
    """
    return signature.strip().rsplit(".", 1)[-1].lower()
