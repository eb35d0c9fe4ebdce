"""
Utilities module for the Sprout primitive table
Argument validation, error builders and operator factories shared by stdlib
"""

from typing import Any, Callable, List, Optional, Sequence
import functools

from lang import Exp, Lit, Lam, Nil, Pair, describe, make_bool, make_num
from error_handling import SproutRuntimeError, runtime_error, msg


# ==================== TYPE CHECKING UTILITIES ====================

def is_number(e: Exp) -> bool:
  return isinstance(e, Lit) and e.kind == "num"


def is_string(e: Exp) -> bool:
  return isinstance(e, Lit) and e.kind == "str"


def is_boolean(e: Exp) -> bool:
  return isinstance(e, Lit) and e.kind == "bool"


def is_procedure(e: Exp) -> bool:
  return isinstance(e, Lam)


def is_list(e: Exp) -> bool:
  """Check if e is a chain of pairs ending in the empty list"""
  while isinstance(e, Pair):
    e = e.second
  return isinstance(e, Nil)


TYPE_CHECKS = {
    "number": is_number,
    "string": is_string,
    "boolean": is_boolean,
    "procedure": is_procedure,
    "pair": lambda e: isinstance(e, Pair),
    "list": is_list,
    "any": lambda e: True,
}


# ==================== ERROR MESSAGE BUILDERS ====================

def arity_error(func_name: str, expected: int, got: int, call: Optional[Exp] = None) -> SproutRuntimeError:
  """
  Generate arity mismatch error

  Args:
    func_name: Function name
    expected: Expected number of arguments
    got: Actual number of arguments
    call: Call expression the error is reported against

  Returns:
    SproutRuntimeError with formatted message
  """
  return runtime_error(msg('error-arity', func_name, expected, got), "arity-mismatch", call)


def type_mismatch_error(
  func_name: str,
  position: int,
  expected: str,
  actual: Exp,
  call: Optional[Exp] = None
) -> SproutRuntimeError:
  """
  Generate type mismatch error

  Args:
    func_name: Function name
    position: 1-based argument position
    expected: Expected type name
    actual: Actual argument value
    call: Call expression the error is reported against

  Returns:
    SproutRuntimeError with formatted message
  """
  return runtime_error(
    msg('error-type-expected-arg', func_name, expected, position, describe(actual)),
    "type-mismatch",
    call
  )


def overflow_error(func_name: str, call: Optional[Exp] = None) -> SproutRuntimeError:
  return runtime_error(msg('error-arithmetic-overflow', func_name), "arithmetic-overflow", call)


# ==================== VALIDATION UTILITIES ====================

def validate_function_args(
  func_name: str,
  args: Sequence[Exp],
  expected_types: List[str],
  call: Optional[Exp] = None
) -> None:
  """
  Validate function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: Evaluated argument values
    expected_types: Type names from TYPE_CHECKS
    call: Call expression for error location

  Raises:
    SproutRuntimeError if validation fails
  """
  if len(args) != len(expected_types):
    raise arity_error(func_name, len(expected_types), len(args), call)

  for i, (arg, expected) in enumerate(zip(args, expected_types)):
    if not TYPE_CHECKS[expected](arg):
      raise type_mismatch_error(func_name, i + 1, expected, arg, call)


def validate_variadic_args(
  func_name: str,
  args: Sequence[Exp],
  expected_type: str,
  min_args: int = 0,
  call: Optional[Exp] = None
) -> None:
  """Validate any number (at least min_args) of arguments of a single type"""
  if len(args) < min_args:
    raise runtime_error(msg('error-arity-atleast', func_name, min_args, len(args)), "arity-mismatch", call)

  for i, arg in enumerate(args):
    if not TYPE_CHECKS[expected_type](arg):
      raise type_mismatch_error(func_name, i + 1, expected_type, arg, call)


# ==================== OPERATION FACTORIES ====================

def guard_overflow(primitive: Callable[[str, Sequence[Exp], Exp], Exp]) -> Callable[[str, Sequence[Exp], Exp], Exp]:
  """Report a number that no longer fits in a float as a runtime error"""
  @functools.wraps(primitive)
  def checked(name: str, args: Sequence[Exp], call: Exp) -> Exp:
    try:
      return primitive(name, args, call)
    except OverflowError:
      raise overflow_error(name, call) from None

  return checked


def binary_comparison_op(
  op: Callable[[Any, Any], bool],
  allowed_type: str = "number"
) -> Callable[[str, Sequence[Exp], Exp], Exp]:
  """
  Factory for chained comparison primitives such as (< 1 2 3)

  Args:
    op: Python operator function (e.g., operator.lt)
    allowed_type: Type every argument must have

  Returns:
    Primitive implementation (name, args, call) -> boolean literal

  Examples:
    sprout_lt = binary_comparison_op(operator.lt)
    sprout_lt("<", [make_num(1), make_num(2)], call) -> #t
  """
  def comparison(name: str, args: Sequence[Exp], call: Exp) -> Exp:
    validate_variadic_args(name, args, allowed_type, 2, call)
    values = [a.value for a in args]
    return make_bool(all(op(x, y) for x, y in zip(values, values[1:])))

  return comparison


def arithmetic_fold_op(
  op: Callable[[Any, Any], Any],
  identity: Any
) -> Callable[[str, Sequence[Exp], Exp], Exp]:
  """
  Factory for variadic arithmetic primitives such as (+ 1 2 3)

  Args:
    op: Python operator function (e.g., operator.add)
    identity: Result when called with no arguments

  Returns:
    Primitive implementation (name, args, call) -> number literal
  """
  def arithmetic(name: str, args: Sequence[Exp], call: Exp) -> Exp:
    validate_variadic_args(name, args, "number", 0, call)
    result = identity
    for a in args:
      result = op(result, a.value)
    return make_num(result)

  return guard_overflow(arithmetic)


def integer_division_op(
  op: Callable[[int, int], int]
) -> Callable[[str, Sequence[Exp], Exp], Exp]:
  """Factory for quotient/remainder/modulo, which reject a zero divisor"""
  def division(name: str, args: Sequence[Exp], call: Exp) -> Exp:
    validate_function_args(name, args, ["number", "number"], call)
    if args[1].value == 0:
      raise runtime_error(msg('error-division-by-zero', name), "division-by-zero", call)
    return make_num(op(args[0].value, args[1].value))

  return guard_overflow(division)
