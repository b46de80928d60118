"""Tests for Python feature extraction."""

import ast

import pytest

from code_linker.analysis.deadline import Deadline
from code_linker.analysis.python import PythonExtractor, call_signature, parse_source
from code_linker.errors import ExtractionTimeout, ParseError


def _extract(code: str):
    return PythonExtractor().extract(code, Deadline(5000))


# --- parsing ---


def test_parse_source_dedents_snippets():
    tree = parse_source("    x = 1\n    print(x)\n")
    assert isinstance(tree, ast.Module)
    assert len(tree.body) == 2


def test_parse_source_accepts_function_body_statements():
    tree = parse_source("data = await fetch_data()\nreturn data\n")
    assert [type(node) for node in tree.body] == [ast.Assign, ast.Return]


def test_parse_source_rejects_garbage():
    with pytest.raises(ParseError, match="syntax errors"):
        parse_source("def (:")


def test_exhausted_deadline_raises_timeout():
    with pytest.raises(ExtractionTimeout):
        PythonExtractor().extract("x = 1", Deadline(0))


# --- syntax and patterns ---


def test_dataclass_and_async_comprehension():
    code = '''
from dataclasses import dataclass

@dataclass(frozen=True)
class Point:
    x: int
    y: int

async def fetch_all(urls: list[str]) -> list[str]:
    results = [await get(u) for u in urls]
    label = f"{len(results)} results"
    return results
'''
    features = _extract(code)
    assert {
        "import",
        "decorator",
        "class",
        "type-annotation",
        "async",
        "function",
        "await",
        "comprehension",
        "f-string",
    } <= features.syntax
    assert {
        "class-definition",
        "decorator-pattern",
        "async-await",
        "list-comprehension",
    } <= features.patterns
    assert {"immutability", "async-control-flow", "event-loop"} <= features.concepts


def test_generator_context_manager():
    code = '''
from contextlib import contextmanager

@contextmanager
def opened(path):
    handle = open(path)
    try:
        yield handle
    finally:
        handle.close()

with opened("x") as f:
    pass
'''
    features = _extract(code)
    assert {"with", "generator", "finally", "decorator"} <= features.syntax
    assert "try-catch" not in features.syntax
    assert {"context-manager", "generator-pattern", "error-handling"} <= features.patterns
    assert {"open", "handle.close", "opened"} <= features.apis


def test_inheritance_and_factory_classmethod():
    code = '''
class Dog(Animal):
    def __init__(self, name):
        super().__init__(name)

    @classmethod
    def create(cls, name):
        return cls(name)
'''
    features = _extract(code)
    assert {"class", "extends", "super", "static"} <= features.syntax
    assert {"inheritance", "factory-pattern"} <= features.patterns


def test_lambda_callbacks():
    features = _extract("ordered = sorted(people, key=lambda p: p.age)")
    assert "lambda" in features.syntax
    assert {"callback", "higher-order-function"} <= features.patterns


def test_main_guard_is_module_pattern():
    features = _extract('if __name__ == "__main__":\n    main()\n')
    assert "module-pattern" in features.patterns


# --- apis ---


def test_api_signatures_resolve_imports_and_receivers():
    code = '''
import numpy as np
import requests
from os import path

data = requests.get(url).json()
names = []
names.append("a")
",".join(names)
arr = np.array([1, 2])
path.join("a", "b")
len(names)
client.send(data)
'''
    apis = _extract(code).apis
    assert {
        "requests.get",
        "json",
        "list.append",
        "str.join",
        "numpy.array",
        "os.path.join",
        "len",
        "client.send",
    } <= apis


def test_call_signature_on_literal_receivers():
    aliases: dict[str, str] = {}
    assert call_signature(ast.parse("{}.items()").body[0].value.func, aliases) == "dict.items"
    assert call_signature(ast.parse("[1].pop()").body[0].value.func, aliases) == "list.pop"
    assert call_signature(ast.parse("self.save()").body[0].value.func, aliases) == "self.save"


def test_default_aliases():
    apis = _extract("df = pd.read_csv(path)").apis
    assert "pandas.read_csv" in apis


# --- concepts ---


def test_memoization_recursion_and_closure():
    code = '''
from functools import lru_cache

@lru_cache(maxsize=None)
def fib(n):
    return n if n < 2 else fib(n - 1) + fib(n - 2)

def make_counter():
    count = 0
    def increment():
        nonlocal count
        count += 1
        return count
    return increment
'''
    features = _extract(code)
    assert {"memoization", "recursion", "closure", "side-effects", "scope"} <= features.concepts
    assert {"recursive", "higher-order-function", "decorator-pattern"} <= features.patterns


def test_plain_function_has_no_closure():
    features = _extract("def double(x):\n    return x * 2\n")
    assert "closure" not in features.concepts
    assert "recursion" not in features.concepts


# --- complexity ---


def test_complexity_counts_decisions():
    code = '''
def classify(n):
    if n < 0:
        return "neg"
    elif n == 0:
        return "zero"
    for i in range(n):
        if i % 2 and n > 3:
            continue
    return "pos" if n else "none"
'''
    metrics = _extract(code).complexity
    # if, elif, for, nested if, and, conditional expression
    assert metrics.cyclomatic_complexity == 7
    assert metrics.max_depth == 3
    assert metrics.line_count == 9


def test_comprehension_counts_as_loop():
    metrics = _extract("squares = [x * x for x in range(10) if x % 2]").complexity
    assert metrics.cyclomatic_complexity == 2


# --- context ---


def test_context_honours_dunder_all():
    code = '''
import os
from typing import Any as A

__all__ = ["public"]
CONSTANT = 1

def public():
    pass

def _private():
    pass

class Hidden:
    pass
'''
    context = _extract(code).context
    assert [e.name for e in context.exports] == ["public"]
    assert context.global_variables == ("CONSTANT",)
    assert context.imports[0].source == "os"
    assert context.imports[0].type == "namespace"
    assert context.imports[1].source == "typing"
    assert context.imports[1].specifiers == ("A",)


def test_context_without_dunder_all_skips_private_names():
    code = "def public():\n    pass\n\ndef _private():\n    pass\n"
    context = _extract(code).context
    assert [e.name for e in context.exports] == ["public"]
    assert context.exports[0].kind == "function"
