"""
Sprout language model
Expression tree, values, program statements and rendering back to source text
"""

from typing import Any, Optional, Tuple, Union
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SourceSpan:
    """Source location information for error reporting"""
    filename: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.filename}:{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


# ============================================================================
# EXPRESSIONS
# ============================================================================

@dataclass(frozen=True)
class Var:
    name: str
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Lit:
    """Literal; kind is one of 'bool', 'num', 'str'"""
    kind: str
    value: Any
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Call:
    head: 'Exp'
    args: Tuple['Exp', ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Lam:
    params: Tuple[str, ...]
    body: 'Exp'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class If:
    test: 'Exp'
    then: 'Exp'
    orelse: 'Exp'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Nil:
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Pair:
    first: 'Exp'
    second: 'Exp'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Let:
    bindings: Tuple[Tuple[str, 'Exp'], ...]
    body: 'Exp'
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Cond:
    branches: Tuple[Tuple['Exp', 'Exp'], ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)
    synthetic: bool = field(default=False, compare=False, repr=False)


@dataclass(frozen=True)
class And:
    args: Tuple['Exp', ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)
    synthetic: bool = field(default=False, compare=False, repr=False)


@dataclass(frozen=True)
class Or:
    args: Tuple['Exp', ...]
    span: Optional[SourceSpan] = field(default=None, compare=False, repr=False)
    synthetic: bool = field(default=False, compare=False, repr=False)


Exp = Union[Var, Lit, Call, Lam, If, Nil, Pair, Let, Cond, And, Or]


def make_bool(value: bool, span: Optional[SourceSpan] = None) -> Lit:
    return Lit("bool", bool(value), span)


def make_num(value: Union[int, float], span: Optional[SourceSpan] = None) -> Lit:
    return Lit("num", value, span)


def make_str(value: str, span: Optional[SourceSpan] = None) -> Lit:
    return Lit("str", value, span)


def make_call(head: Exp, args, span: Optional[SourceSpan] = None) -> Call:
    return Call(head, tuple(args), span)


def make_lam(params, body: Exp, span: Optional[SourceSpan] = None) -> Lam:
    return Lam(tuple(params), body, span)


def make_let(bindings, body: Exp, span: Optional[SourceSpan] = None) -> Let:
    return Let(tuple((name, e) for name, e in bindings), body, span)


def make_cond(branches, span: Optional[SourceSpan] = None) -> Cond:
    return Cond(tuple((g, b) for g, b in branches), span)


def partial_cond(branches) -> Cond:
    """Cond carrying the branches left after a false guard"""
    return Cond(tuple(branches), None, True)


def partial_and(args) -> And:
    return And(tuple(args), None, True)


def partial_or(args) -> Or:
    return Or(tuple(args), None, True)


def is_bool_lit(e: Exp) -> bool:
    return isinstance(e, Lit) and e.kind == "bool"


def is_value(e: Exp) -> bool:
    """Literals, lambdas, the empty list and pairs of values are irreducible"""
    if isinstance(e, (Lit, Lam, Nil)):
        return True
    if isinstance(e, Pair):
        return is_value(e.first) and is_value(e.second)
    return False


def describe(e: Exp) -> str:
    """Short name of an expression's kind, used in error messages"""
    if isinstance(e, Lit):
        return {"bool": "boolean", "num": "number", "str": "string"}[e.kind]
    if isinstance(e, Lam):
        return "procedure"
    if isinstance(e, Nil):
        return "null"
    if isinstance(e, Pair):
        return "pair"
    return type(e).__name__.lower()


# ============================================================================
# STATEMENTS
# ============================================================================

@dataclass(frozen=True)
class ExprStmt:
    """Top-level expression still being reduced"""
    expr: Exp


@dataclass(frozen=True)
class ValueStmt:
    """Top-level expression reduced to a value"""
    value: Exp


@dataclass(frozen=True)
class DefineStmt:
    """Definition whose right-hand side is still being reduced"""
    name: str
    expr: Exp


@dataclass(frozen=True)
class BindingStmt:
    """Completed definition; its name is published to the environment"""
    name: str
    value: Exp


@dataclass(frozen=True)
class ErrorStmt:
    details: Any


Stmt = Union[ExprStmt, ValueStmt, DefineStmt, BindingStmt, ErrorStmt]
Program = Tuple[Stmt, ...]


def is_stmt_done(s: Stmt) -> bool:
    return isinstance(s, (ValueStmt, BindingStmt, ErrorStmt))


def index_of_current_stmt(prog) -> int:
    """Index of the first statement that is not yet terminal, or -1"""
    for i, s in enumerate(prog):
        if not is_stmt_done(s):
            return i
    return -1


# ============================================================================
# RENDERING
# ============================================================================

_STRING_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t', '\r': '\\r'}


def lit_to_string(e: Lit) -> str:
    if e.kind == "bool":
        return "#t" if e.value else "#f"
    if e.kind == "str":
        return '"' + "".join(_STRING_ESCAPES.get(c, c) for c in e.value) + '"'
    return repr(e.value)


def exp_to_string(e: Exp) -> str:
    """Render an expression back to Sprout source text"""
    if isinstance(e, Var):
        return e.name
    if isinstance(e, Lit):
        return lit_to_string(e)
    if isinstance(e, Call):
        return "(" + " ".join(exp_to_string(x) for x in (e.head,) + e.args) + ")"
    if isinstance(e, Lam):
        return f"(lambda ({' '.join(e.params)}) {exp_to_string(e.body)})"
    if isinstance(e, If):
        return f"(if {exp_to_string(e.test)} {exp_to_string(e.then)} {exp_to_string(e.orelse)})"
    if isinstance(e, Nil):
        return "null"
    if isinstance(e, Pair):
        return f"(cons {exp_to_string(e.first)} {exp_to_string(e.second)})"
    if isinstance(e, Let):
        bindings = " ".join(f"[{x} {exp_to_string(v)}]" for x, v in e.bindings)
        return f"(let ({bindings}) {exp_to_string(e.body)})"
    if isinstance(e, Cond):
        branches = " ".join(f"[{exp_to_string(g)} {exp_to_string(b)}]" for g, b in e.branches)
        return f"(cond {branches})" if branches else "(cond)"
    if isinstance(e, And):
        return "(" + " ".join(["and"] + [exp_to_string(x) for x in e.args]) + ")"
    if isinstance(e, Or):
        return "(" + " ".join(["or"] + [exp_to_string(x) for x in e.args]) + ")"
    raise TypeError(f"Not an expression: {e!r}")


def stmt_to_string(s: Stmt) -> str:
    if isinstance(s, ExprStmt):
        return exp_to_string(s.expr)
    if isinstance(s, ValueStmt):
        return exp_to_string(s.value)
    if isinstance(s, DefineStmt):
        return f"(define {s.name} {exp_to_string(s.expr)})"
    if isinstance(s, BindingStmt):
        return f"{s.name}: {exp_to_string(s.value)}"
    if isinstance(s, ErrorStmt):
        return f"[{s.details.phase} error] {s.details.message}"
    raise TypeError(f"Not a statement: {s!r}")


def prog_to_string(prog) -> str:
    return "\n".join(stmt_to_string(s) for s in prog)
