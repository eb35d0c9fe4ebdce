"""
Sprout Interpreter - Small-Step Semantics
One reduction at a time over an immutable expression tree.
Every function here is pure: environments and expressions are never mutated,
new ones are built instead
"""

import sys
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from lang import (
  Exp, Var, Lit, Call, Lam, If, Nil, Pair, Let, Cond, And, Or,
  Stmt, ExprStmt, ValueStmt, DefineStmt, BindingStmt, ErrorStmt,
  is_value, is_bool_lit, describe, make_bool,
  partial_cond, partial_and, partial_or,
)
from error_handling import SproutRuntimeError, InternalConsistencyError, runtime_error, msg
from stdlib import PRIMITIVES


Env = Mapping[str, Exp]
Primitives = Dict[str, Callable[[str, Sequence[Exp], Exp], Exp]]


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def make_runtime_env(bindings: Optional[Mapping[str, Exp]] = None) -> Env:
  """Create an immutable runtime environment"""
  return MappingProxyType(dict(bindings or {}))


def env_bind_value(env: Env, name: str, value: Exp) -> Env:
  """Return new environment with name bound to value"""
  return MappingProxyType({**env, name: value})


def env_lookup_value(env: Env, name: str) -> Optional[Exp]:
  return env.get(name)


# ============================================================================
# SUBSTITUTION
# ============================================================================

def substitute(value: Exp, name: str, target: Exp) -> Exp:
  """
  Replace every free occurrence of name in target with value.

  A lambda whose parameters include name shadows it and is returned as is.
  No alpha-renaming is done, so a free variable of value that is spelled
  like one of a lambda's parameters gets captured by that lambda.
  """
  if isinstance(target, Var):
    return value if target.name == name else target
  elif isinstance(target, (Lit, Nil)):
    return target
  elif isinstance(target, Call):
    return Call(
      substitute(value, name, target.head),
      tuple(substitute(value, name, a) for a in target.args),
      target.span)
  elif isinstance(target, Lam):
    if name in target.params:
      return target
    return Lam(target.params, substitute(value, name, target.body), target.span)
  elif isinstance(target, If):
    return If(
      substitute(value, name, target.test),
      substitute(value, name, target.then),
      substitute(value, name, target.orelse),
      target.span)
  elif isinstance(target, Pair):
    return Pair(substitute(value, name, target.first), substitute(value, name, target.second), target.span)
  elif isinstance(target, Let):
    body = target.body if in_bindings(name, target.bindings) else substitute(value, name, target.body)
    return Let(substitute_telescope(value, name, target.bindings), body, target.span)
  elif isinstance(target, Cond):
    return Cond(
      tuple((substitute(value, name, g), substitute(value, name, b)) for g, b in target.branches),
      target.span, target.synthetic)
  elif isinstance(target, And):
    return And(tuple(substitute(value, name, a) for a in target.args), target.span, target.synthetic)
  elif isinstance(target, Or):
    return Or(tuple(substitute(value, name, a) for a in target.args), target.span, target.synthetic)
  raise InternalConsistencyError("substitute", f"unknown expression {target!r}")


def in_bindings(name: str, bindings: Sequence[Tuple[str, Exp]]) -> bool:
  return any(x == name for x, _ in bindings)


def substitute_telescope(value: Exp, name: str, bindings: Sequence[Tuple[str, Exp]]) -> Tuple[Tuple[str, Exp], ...]:
  """
  Substitute into the right-hand sides of a let's bindings, left to right.

  The right-hand side of the binding that re-binds name still sees the old
  name, but every binding after it does not: from there on name refers to
  the new binding.
  """
  result = []
  seen_name = False
  for x, e in bindings:
    if seen_name:
      result.append((x, e))
    else:
      result.append((x, substitute(value, name, e)))
      seen_name = x == name
  return tuple(result)


def substitute_all(values: Sequence[Exp], names: Sequence[str], body: Exp) -> Exp:
  """Substitute each value for its name in order"""
  for v, x in zip(values, names):
    body = substitute(v, x, body)
  return body


# ============================================================================
# EXPRESSION STEPPING
# ============================================================================

def step_exp(env: Env, e: Exp, prims: Optional[Primitives] = None) -> Exp:
  """
  Perform exactly one reduction of e.

  Raises SproutRuntimeError when the redex is stuck. Stepping a value is a
  caller bug and raises InternalConsistencyError.
  """
  if prims is None:
    prims = PRIMITIVES

  if isinstance(e, Var):
    return step_var(env, e)
  elif isinstance(e, Call):
    return step_call(env, e, prims)
  elif isinstance(e, If):
    return step_if(env, e, prims)
  elif isinstance(e, Pair) and not is_value(e):
    return step_pair(env, e, prims)
  elif isinstance(e, Let):
    return step_let(env, e, prims)
  elif isinstance(e, Cond):
    return step_cond(env, e, prims)
  elif isinstance(e, And):
    return step_and(env, e, prims)
  elif isinstance(e, Or):
    return step_or(env, e, prims)
  raise InternalConsistencyError("step_exp", f"{describe(e)} is already a value")


def step_var(env: Env, e: Var) -> Exp:
  value = env_lookup_value(env, e.name)
  if value is None:
    raise runtime_error(msg('error-var-undef', e.name), "undefined-variable", e)
  return value


def step_call(env: Env, e: Call, prims: Primitives) -> Exp:
  # Variables may stay in head position so that top-level names and
  # primitives can be called; they are resolved once the arguments are values.
  if not is_value(e.head) and not isinstance(e.head, Var):
    return Call(step_exp(env, e.head, prims), e.args, e.span)

  for i, arg in enumerate(e.args):
    if not is_value(arg):
      args = list(e.args)
      args[i] = step_exp(env, arg, prims)
      return Call(e.head, tuple(args), e.span)

  head = e.head
  if isinstance(head, Lam):
    if len(head.params) != len(e.args):
      raise runtime_error(msg('error-arity', "lambda", len(head.params), len(e.args)), "arity-mismatch", e)
    return substitute_all(e.args, head.params, head.body)
  elif isinstance(head, Var):
    bound = env_lookup_value(env, head.name)
    if bound is not None:
      return step_exp(env, Call(bound, e.args, e.span), prims)
    elif head.name in prims:
      return prims[head.name](head.name, e.args, e)
    raise runtime_error(msg('error-var-undef', head.name), "undefined-variable", e)
  raise runtime_error(msg('error-type-expected-call', describe(head)), "type-expected-in-call-position", e)


def guard_error(guard: Exp, e: Exp) -> SproutRuntimeError:
  return runtime_error(msg('error-type-expected-cond', describe(guard)), "type-expected-in-conditional-guard", e)


def step_if(env: Env, e: If, prims: Primitives) -> Exp:
  if not is_value(e.test):
    return If(step_exp(env, e.test, prims), e.then, e.orelse, e.span)
  if not is_bool_lit(e.test):
    raise guard_error(e.test, e)
  return e.then if e.test.value else e.orelse


def step_pair(env: Env, e: Pair, prims: Primitives) -> Exp:
  if not is_value(e.first):
    return Pair(step_exp(env, e.first, prims), e.second, e.span)
  return Pair(e.first, step_exp(env, e.second, prims), e.span)


def step_let(env: Env, e: Let, prims: Primitives) -> Exp:
  if not e.bindings:
    return e.body

  (x, rhs), rest = e.bindings[0], e.bindings[1:]
  if not is_value(rhs):
    return Let(((x, step_exp(env, rhs, prims)),) + rest, e.body, e.span)

  if not rest:
    return substitute(rhs, x, e.body)
  body = e.body if in_bindings(x, rest) else substitute(rhs, x, e.body)
  return Let(substitute_telescope(rhs, x, rest), body, e.span)


def step_cond(env: Env, e: Cond, prims: Primitives) -> Exp:
  if not e.branches:
    raise runtime_error(msg('error-cond-no-branch-applies'), "cond-exhausted", e)

  (guard, body), rest = e.branches[0], e.branches[1:]
  if not is_value(guard):
    return partial_cond(((step_exp(env, guard, prims), body),) + rest)
  if not is_bool_lit(guard):
    raise guard_error(guard, e)
  return body if guard.value else partial_cond(rest)


def step_and(env: Env, e: And, prims: Primitives) -> Exp:
  if not e.args:
    return make_bool(True)

  head, rest = e.args[0], e.args[1:]
  if not is_value(head):
    return partial_and((step_exp(env, head, prims),) + rest)
  if not is_bool_lit(head):
    raise runtime_error(msg('error-type-expected', "boolean", describe(head)), "type-expected-boolean-operand", e)
  return partial_and(rest) if head.value else make_bool(False)


def step_or(env: Env, e: Or, prims: Primitives) -> Exp:
  if not e.args:
    return make_bool(False)

  head, rest = e.args[0], e.args[1:]
  if not is_value(head):
    return partial_or((step_exp(env, head, prims),) + rest)
  if not is_bool_lit(head):
    raise runtime_error(msg('error-type-expected', "boolean", describe(head)), "type-expected-boolean-operand", e)
  return make_bool(True) if head.value else partial_or(rest)


def evaluate_exp(env: Env, e: Exp, max_steps: Optional[int] = None, prims: Optional[Primitives] = None) -> Exp:
  """
  Step e until it is a value.

  With max_steps=None a diverging expression makes this loop forever;
  otherwise a runtime error is raised once the budget is used up.
  """
  steps = 0
  try:
    while not is_value(e):
      if max_steps is not None and steps >= max_steps:
        raise runtime_error(msg('error-step-limit', max_steps), "step-limit-exceeded", e)
      e = step_exp(env, e, prims)
      steps += 1
  except RecursionError:
    raise too_deep_error() from None
  return e


def too_deep_error() -> SproutRuntimeError:
  # Not located: rendering the expression would recurse just as deep
  return runtime_error(msg('error-recursion-depth', sys.getrecursionlimit()), "recursion-depth-exceeded")


# ============================================================================
# STATEMENT STEPPING
# ============================================================================

def step_stmt(env: Env, s: Stmt, prims: Optional[Primitives] = None) -> Tuple[Env, Stmt]:
  """
  Advance one program statement by one step.

  Returns the (possibly extended) environment and the new statement. Only a
  define whose expression is already a value extends the environment.
  """
  if isinstance(s, (ValueStmt, BindingStmt, ErrorStmt)):
    return env, s

  if not isinstance(s, (DefineStmt, ExprStmt)):
    raise InternalConsistencyError("step_stmt", f"unknown statement {s!r}")

  try:
    return step_pending_stmt(env, s, prims)
  except SproutRuntimeError as e:
    return env, ErrorStmt(e.details)
  except RecursionError:
    return env, ErrorStmt(too_deep_error().details)


def step_pending_stmt(env: Env, s: Stmt, prims: Optional[Primitives]) -> Tuple[Env, Stmt]:
  if isinstance(s, DefineStmt):
    if is_value(s.expr):
      return env_bind_value(env, s.name, s.expr), BindingStmt(s.name, s.expr)
    return env, DefineStmt(s.name, step_exp(env, s.expr, prims))
  if is_value(s.expr):
    return env, ValueStmt(s.expr)
  return env, ExprStmt(step_exp(env, s.expr, prims))
