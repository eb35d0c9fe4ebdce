"""
Primitive operation tests for the Sprout standard library
"""

import pytest
from lang import Var, Nil, Pair, make_bool, make_num, make_str, make_call, make_lam
from stdlib import PRIMITIVES, BUILTIN_FUNCTIONS, list_builtin_functions, build_list
from error_handling import SproutRuntimeError


def call(name, *args):
  """Apply a primitive to already evaluated arguments"""
  return PRIMITIVES[name](name, list(args), make_call(Var(name), args))


def fails(name, *args):
  with pytest.raises(SproutRuntimeError) as exc_info:
    call(name, *args)
  return exc_info.value.code


n = make_num
s = make_str
T = make_bool(True)
F = make_bool(False)
IDENTITY = make_lam(["x"], Var("x"))


class TestArithmetic:
  """Test number primitives"""

  def test_add_and_multiply(self):
    assert call("+") == n(0)
    assert call("+", n(1), n(2), n(3)) == n(6)
    assert call("*", n(2), n(3)) == n(6)

  def test_subtract(self):
    assert call("-", n(10), n(3), n(2)) == n(5)
    assert call("-", n(4)) == n(-4)
    assert fails("-") == "arity-mismatch"

  def test_divide(self):
    """Exact integer quotients stay integers"""
    assert call("/", n(6), n(3)) == n(2)
    assert call("/", n(1), n(2)) == n(0.5)
    assert call("/", n(4)) == n(0.25)

  def test_divide_by_zero(self):
    assert fails("/", n(1), n(0)) == "division-by-zero"
    assert fails("quotient", n(1), n(0)) == "division-by-zero"

  def test_overflow(self):
    """Numbers too large for a float are a runtime error, not a crash"""
    huge = n(10 ** 400)
    assert fails("/", huge, n(3)) == "arithmetic-overflow"
    assert fails("+", n(0.5), huge) == "arithmetic-overflow"
    assert fails("-", n(0.5), huge) == "arithmetic-overflow"
    assert fails("quotient", n(1.5), huge) == "arithmetic-overflow"

  def test_big_integers_stay_exact(self):
    assert call("+", n(10 ** 400), n(1)) == n(10 ** 400 + 1)
    assert call("/", n(10 ** 400), n(10 ** 399)) == n(10)

  def test_integer_division(self):
    """quotient truncates, modulo follows the divisor's sign"""
    assert call("quotient", n(-7), n(2)) == n(-3)
    assert call("remainder", n(-7), n(2)) == n(-1)
    assert call("modulo", n(-7), n(2)) == n(1)

  def test_abs(self):
    assert call("abs", n(-3)) == n(3)

  def test_type_mismatch(self):
    """Arithmetic only accepts numbers, booleans are not numbers"""
    assert fails("+", n(1), T) == "type-mismatch"
    assert fails("+", n(1), s("2")) == "type-mismatch"

  def test_type_mismatch_message(self):
    with pytest.raises(SproutRuntimeError) as exc_info:
      call("*", n(1), s("2"))
    assert "argument 2" in exc_info.value.message
    assert "string" in exc_info.value.message


class TestComparison:
  """Test comparison and boolean primitives"""

  def test_chained(self):
    assert call("<", n(1), n(2), n(3)) == T
    assert call("<", n(1), n(3), n(2)) == F
    assert call("=", n(2), n(2)) == T
    assert call(">=", n(2), n(2), n(1)) == T

  def test_needs_two(self):
    assert fails("<", n(1)) == "arity-mismatch"

  def test_equal(self):
    """equal? is structural and never confuses kinds"""
    assert call("equal?", build_list([n(1), n(2)]), build_list([n(1), n(2)])) == T
    assert call("equal?", T, n(1)) == F
    assert call("equal?", s("a"), s("a")) == T

  def test_not(self):
    assert call("not", F) == T
    assert fails("not", n(0)) == "type-mismatch"


class TestPredicates:
  """Test type predicates"""

  @pytest.mark.parametrize("name,value,expected", [
    ("number?", n(1), True),
    ("number?", T, False),
    ("boolean?", F, True),
    ("string?", s(""), True),
    ("procedure?", IDENTITY, True),
    ("procedure?", n(1), False),
    ("null?", Nil(), True),
    ("null?", build_list([n(1)]), False),
    ("pair?", Pair(n(1), n(2)), True),
    ("list?", Pair(n(1), n(2)), False),
    ("list?", build_list([n(1)]), True),
  ])
  def test_predicate(self, name, value, expected):
    assert call(name, value) == make_bool(expected)

  def test_zero(self):
    assert call("zero?", n(0)) == T
    assert fails("zero?", s("0")) == "type-mismatch"


class TestLists:
  """Test pair and list primitives"""

  def test_cons_car_cdr(self):
    p = call("cons", n(1), n(2))
    assert p == Pair(n(1), n(2))
    assert call("car", p) == n(1)
    assert call("cdr", p) == n(2)

  def test_car_of_non_pair(self):
    assert fails("car", Nil()) == "type-mismatch"

  def test_list_and_length(self):
    lst = call("list", n(1), n(2), n(3))
    assert lst == Pair(n(1), Pair(n(2), Pair(n(3), Nil())))
    assert call("length", lst) == n(3)
    assert call("list") == Nil()

  def test_append(self):
    result = call("append", build_list([n(1)]), Nil(), build_list([n(2), n(3)]))
    assert result == build_list([n(1), n(2), n(3)])

  def test_length_of_improper_list(self):
    assert fails("length", Pair(n(1), n(2))) == "type-mismatch"


class TestStrings:
  """Test string primitives"""

  def test_string_append(self):
    assert call("string-append", s("a"), s("b"), s("c")) == s("abc")

  def test_string_length(self):
    assert call("string-length", s("hello")) == n(5)

  def test_number_to_string(self):
    assert call("number->string", n(42)) == s("42")
    assert call("number->string", n(2.5)) == s("2.5")


class TestRegistry:
  """Test the builtin function table"""

  def test_signatures(self):
    """Every primitive documents its signature"""
    assert BUILTIN_FUNCTIONS["cons"]["type_signature"] == "any any -> pair"
    assert all(entry["type_signature"] for entry in BUILTIN_FUNCTIONS.values())

  def test_listing_matches_table(self):
    assert set(list_builtin_functions()) == set(PRIMITIVES)
    assert "string-append" in list_builtin_functions()
