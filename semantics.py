"""
Sprout Semantics Analysis - Static Scope Checking
Pure functions over the expression tree; problems are reported as a list of
diagnostics instead of failing on the first one
"""

from typing import AbstractSet, Iterable, List, Mapping

from lang import (
  Exp, Var, Lit, Call, Lam, If, Nil, Pair, Let, Cond, And, Or,
  DefineStmt, BindingStmt, ExprStmt,
)
from error_handling import ErrorDetails, scope_diagnostic, msg
from stdlib import PRIMITIVES


# ============================================================================
# EXPRESSION ANALYSIS
# ============================================================================

def check_exp(e: Exp, scope: AbstractSet[str], diagnostics: List[ErrorDetails]) -> None:
  """Record a diagnostic for every variable of e not bound in scope"""
  if isinstance(e, Var):
    if e.name not in scope:
      diagnostics.append(scope_diagnostic(msg('error-var-undef-top', e.name), "undefined-top-level-name", e))
  elif isinstance(e, (Lit, Nil)):
    return
  elif isinstance(e, Call):
    check_all([e.head, *e.args], scope, diagnostics)
  elif isinstance(e, Lam):
    seen = set()
    for p in e.params:
      if p in seen:
        diagnostics.append(scope_diagnostic(msg('error-duplicate-parameter', p), "duplicate-parameter", e))
      seen.add(p)
    check_exp(e.body, scope | seen, diagnostics)
  elif isinstance(e, If):
    check_all([e.test, e.then, e.orelse], scope, diagnostics)
  elif isinstance(e, Pair):
    check_all([e.first, e.second], scope, diagnostics)
  elif isinstance(e, Let):
    # Each binding sees the ones before it
    for name, rhs in e.bindings:
      check_exp(rhs, scope, diagnostics)
      scope = scope | {name}
    check_exp(e.body, scope, diagnostics)
  elif isinstance(e, Cond):
    for guard, body in e.branches:
      check_all([guard, body], scope, diagnostics)
  elif isinstance(e, (And, Or)):
    check_all(e.args, scope, diagnostics)


def check_all(es: Iterable[Exp], scope: AbstractSet[str], diagnostics: List[ErrorDetails]) -> None:
  for e in es:
    check_exp(e, scope, diagnostics)


# ============================================================================
# PROGRAM ANALYSIS
# ============================================================================

def top_level_names(prog) -> List[str]:
  """Names introduced by define statements, in program order"""
  return [s.name for s in prog if isinstance(s, (DefineStmt, BindingStmt))]


def scope_check_program(prog, bound: Iterable[str] = ()) -> List[ErrorDetails]:
  """
  Check every statement of prog. Returns the diagnostics, empty when ok.

  Every top-level define is in scope everywhere, so recursive and mutually
  recursive functions check; bound adds names that already exist, e.g. the
  environment of a running program.
  """
  diagnostics: List[ErrorDetails] = []
  names = top_level_names(prog)

  seen = set(bound)
  for name in names:
    if name in seen:
      diagnostics.append(scope_diagnostic(msg('error-duplicate-definition', name), "duplicate-definition"))
    seen.add(name)

  scope = frozenset(PRIMITIVES) | seen
  for s in prog:
    if isinstance(s, (DefineStmt, ExprStmt)):
      check_exp(s.expr, scope, diagnostics)
  return diagnostics


def scope_check_exp(env: Mapping[str, Exp], e: Exp) -> List[ErrorDetails]:
  """Check a single expression against the names bound in env"""
  diagnostics: List[ErrorDetails] = []
  check_exp(e, frozenset(PRIMITIVES) | frozenset(env), diagnostics)
  return diagnostics
