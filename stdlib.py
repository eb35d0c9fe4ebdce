"""
Sprout Standard Library
Primitive operations dispatched by the stepper once every argument is a value.
Each primitive is strict: (name, evaluated-args, call-expression) -> Expression
"""

from typing import Callable, Dict, List, Sequence
import operator

from lang import Exp, Nil, Pair, make_bool, make_num, make_str, exp_to_string
from error_handling import runtime_error, msg
from utilities import (
  binary_comparison_op,
  arithmetic_fold_op,
  integer_division_op,
  guard_overflow,
  validate_function_args,
  validate_variadic_args,
  is_number,
  is_string,
  is_boolean,
  is_procedure,
  is_list,
)


# ============================================================================
# ARITHMETIC
# ============================================================================

sprout_add = arithmetic_fold_op(operator.add, 0)
sprout_mul = arithmetic_fold_op(operator.mul, 1)


@guard_overflow
def sprout_sub(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Subtract the rest from the first argument, or negate a single one"""
  validate_variadic_args(name, args, "number", 1, call)
  if len(args) == 1:
    return make_num(-args[0].value)
  result = args[0].value
  for a in args[1:]:
    result -= a.value
  return make_num(result)


@guard_overflow
def sprout_div(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Divide the first argument by the rest; exact integer results stay integers"""
  validate_variadic_args(name, args, "number", 1, call)
  values = [a.value for a in args]
  if len(values) == 1:
    values = [1] + values
  result = values[0]
  for v in values[1:]:
    if v == 0:
      raise runtime_error(msg('error-division-by-zero', name), "division-by-zero", call)
    if isinstance(result, int) and isinstance(v, int) and result % v == 0:
      result = result // v
    else:
      result = result / v
  return make_num(result)


def _quotient(x, y):
  q = abs(x) // abs(y)
  return q if (x >= 0) == (y >= 0) else -q


def _remainder(x, y):
  return x - y * _quotient(x, y)


sprout_quotient = integer_division_op(_quotient)
sprout_remainder = integer_division_op(_remainder)
sprout_modulo = integer_division_op(operator.mod)


def sprout_abs(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_function_args(name, args, ["number"], call)
  return make_num(abs(args[0].value))


# ============================================================================
# COMPARISON AND BOOLEANS
# ============================================================================

sprout_num_eq = binary_comparison_op(operator.eq)
sprout_lt = binary_comparison_op(operator.lt)
sprout_gt = binary_comparison_op(operator.gt)
sprout_le = binary_comparison_op(operator.le)
sprout_ge = binary_comparison_op(operator.ge)


def sprout_equal(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Structural equality of two values"""
  validate_function_args(name, args, ["any", "any"], call)
  return make_bool(args[0] == args[1])


def sprout_not(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_function_args(name, args, ["boolean"], call)
  return make_bool(not args[0].value)


def make_predicate(check: Callable[[Exp], bool]) -> Callable[[str, Sequence[Exp], Exp], Exp]:
  """Wrap a type check as a one-argument primitive"""
  def predicate(name: str, args: Sequence[Exp], call: Exp) -> Exp:
    validate_function_args(name, args, ["any"], call)
    return make_bool(check(args[0]))
  return predicate


def sprout_zero(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_function_args(name, args, ["number"], call)
  return make_bool(args[0].value == 0)


# ============================================================================
# LIST FUNCTIONS
# ============================================================================

def sprout_cons(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Build a pair (cons operator)"""
  validate_function_args(name, args, ["any", "any"], call)
  return Pair(args[0], args[1])


def sprout_car(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Get first component of a pair"""
  validate_function_args(name, args, ["pair"], call)
  return args[0].first


def sprout_cdr(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Get second component of a pair"""
  validate_function_args(name, args, ["pair"], call)
  return args[0].second


def build_list(items: Sequence[Exp], tail: Exp = None) -> Exp:
  result = tail if tail is not None else Nil()
  for item in reversed(items):
    result = Pair(item, result)
  return result


def list_items(lst: Exp) -> List[Exp]:
  items = []
  while isinstance(lst, Pair):
    items.append(lst.first)
    lst = lst.second
  return items


def sprout_list(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  return build_list(args)


def sprout_length(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Get length of a list"""
  validate_function_args(name, args, ["list"], call)
  return make_num(len(list_items(args[0])))


def sprout_append(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  """Concatenate lists"""
  validate_variadic_args(name, args, "list", 0, call)
  items = []
  for lst in args:
    items.extend(list_items(lst))
  return build_list(items)


# ============================================================================
# STRING FUNCTIONS
# ============================================================================

def sprout_string_append(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_variadic_args(name, args, "string", 0, call)
  return make_str("".join(a.value for a in args))


def sprout_string_length(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_function_args(name, args, ["string"], call)
  return make_num(len(args[0].value))


def sprout_number_to_string(name: str, args: Sequence[Exp], call: Exp) -> Exp:
  validate_function_args(name, args, ["number"], call)
  return make_str(exp_to_string(args[0]))


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_function(name: str, func: Callable, type_signature: str = "") -> Dict:
  """Create a built-in function entry"""
  return {
      'name': name,
      'func': func,
      'type_signature': type_signature
  }


BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    # Arithmetic functions
    "+": make_builtin_function("+", sprout_add, "number ... -> number"),
    "-": make_builtin_function("-", sprout_sub, "number number ... -> number"),
    "*": make_builtin_function("*", sprout_mul, "number ... -> number"),
    "/": make_builtin_function("/", sprout_div, "number number ... -> number"),
    "quotient": make_builtin_function("quotient", sprout_quotient, "number number -> number"),
    "remainder": make_builtin_function("remainder", sprout_remainder, "number number -> number"),
    "modulo": make_builtin_function("modulo", sprout_modulo, "number number -> number"),
    "abs": make_builtin_function("abs", sprout_abs, "number -> number"),

    # Comparison functions
    "=": make_builtin_function("=", sprout_num_eq, "number number ... -> boolean"),
    "<": make_builtin_function("<", sprout_lt, "number number ... -> boolean"),
    ">": make_builtin_function(">", sprout_gt, "number number ... -> boolean"),
    "<=": make_builtin_function("<=", sprout_le, "number number ... -> boolean"),
    ">=": make_builtin_function(">=", sprout_ge, "number number ... -> boolean"),
    "equal?": make_builtin_function("equal?", sprout_equal, "any any -> boolean"),
    "not": make_builtin_function("not", sprout_not, "boolean -> boolean"),

    # Predicates
    "number?": make_builtin_function("number?", make_predicate(is_number), "any -> boolean"),
    "boolean?": make_builtin_function("boolean?", make_predicate(is_boolean), "any -> boolean"),
    "string?": make_builtin_function("string?", make_predicate(is_string), "any -> boolean"),
    "procedure?": make_builtin_function("procedure?", make_predicate(is_procedure), "any -> boolean"),
    "null?": make_builtin_function("null?", make_predicate(lambda e: isinstance(e, Nil)), "any -> boolean"),
    "pair?": make_builtin_function("pair?", make_predicate(lambda e: isinstance(e, Pair)), "any -> boolean"),
    "list?": make_builtin_function("list?", make_predicate(is_list), "any -> boolean"),
    "zero?": make_builtin_function("zero?", sprout_zero, "number -> boolean"),

    # List functions
    "cons": make_builtin_function("cons", sprout_cons, "any any -> pair"),
    "car": make_builtin_function("car", sprout_car, "pair -> any"),
    "cdr": make_builtin_function("cdr", sprout_cdr, "pair -> any"),
    "list": make_builtin_function("list", sprout_list, "any ... -> list"),
    "length": make_builtin_function("length", sprout_length, "list -> number"),
    "append": make_builtin_function("append", sprout_append, "list ... -> list"),

    # String functions
    "string-append": make_builtin_function("string-append", sprout_string_append, "string ... -> string"),
    "string-length": make_builtin_function("string-length", sprout_string_length, "string -> number"),
    "number->string": make_builtin_function("number->string", sprout_number_to_string, "number -> string"),
}


# Name -> implementation, the table consumed by the stepper
PRIMITIVES: Dict[str, Callable[[str, Sequence[Exp], Exp], Exp]] = {
    name: entry['func'] for name, entry in BUILTIN_FUNCTIONS.items()
}


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())
