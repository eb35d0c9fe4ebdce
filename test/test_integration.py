"""
Integration tests for Sprout
Complete programs from source text to final statements
"""

import pytest
from lang import ValueStmt, ErrorStmt, make_bool, make_num, make_str, prog_to_string
from program import ProgramState, compile_program
from stdlib import build_list


def run(src):
  return ProgramState(compile_program(src)).evaluate()


def last_value(src):
  stmt = run(src).prog[-1]
  assert isinstance(stmt, ValueStmt), prog_to_string(run(src).prog)
  return stmt.value


class TestPrograms:
  """Test complete programs"""

  def test_define_and_use(self):
    state = run("(define x 1) (+ x 2)")
    assert dict(state.env) == {"x": make_num(1)}
    assert state.prog[1] == ValueStmt(make_num(3))

  def test_fibonacci(self):
    src = """
    ; naive recursion
    (define (fib n)
      (if (< n 2)
          n
          (+ (fib (- n 1)) (fib (- n 2)))))
    (fib 10)
    """
    assert last_value(src) == make_num(55)

  def test_map_over_list(self):
    src = """
    (define (map f xs)
      (if (null? xs)
          null
          (cons (f (car xs)) (map f (cdr xs)))))
    (map (lambda (x) (* x x)) (list 1 2 3))
    """
    assert last_value(src) == build_list([make_num(1), make_num(4), make_num(9)])

  def test_fold_with_cond(self):
    src = """
    (define (sum xs)
      (cond [(null? xs) 0]
            [else (+ (car xs) (sum (cdr xs)))]))
    (sum (append (list 1 2) (list 3 4)))
    """
    assert last_value(src) == make_num(10)

  def test_mutual_recursion(self):
    src = """
    (define (even? n) (if (= n 0) #t (odd? (- n 1))))
    (define (odd? n) (if (= n 0) #f (even? (- n 1))))
    (even? 10)
    """
    assert last_value(src) == make_bool(True)

  def test_closures_by_substitution(self):
    src = """
    (define (adder n) (lambda (x) (+ x n)))
    (define add5 (adder 5))
    (add5 10)
    """
    assert last_value(src) == make_num(15)

  def test_let_star_and_strings(self):
    src = """
    (let* ([greeting "hello"]
           [name "sprout"]
           [msg (string-append greeting ", " name)])
      (string-append msg " (" (number->string (string-length msg)) ")"))
    """
    assert last_value(src) == make_str("hello, sprout (13)")

  def test_short_circuit_protects(self):
    src = """
    (define xs null)
    (and (pair? xs) (= (car xs) 1))
    """
    assert last_value(src) == make_bool(False)

  def test_error_then_recovery(self):
    state = run("(define x (/ 1 0)) (+ 1 1)")
    assert isinstance(state.prog[0], ErrorStmt)
    assert state.prog[0].details.code == "division-by-zero"
    assert state.prog[1] == ValueStmt(make_num(2))

  def test_use_of_failed_define(self):
    """A define that failed never binds its name"""
    state = run("(define x (car null)) (+ x 1)")
    assert isinstance(state.prog[1], ErrorStmt)
    assert state.prog[1].details.code == "undefined-variable"


class TestTraceProperties:
  """Test history properties over real programs"""

  @pytest.fixture
  def trace(self, make_trace):
    t = make_trace("(define (sq x) (* x x)) (define y (sq 3)) (+ y 1)")
    t.evaluate_prog()
    return t

  def test_every_state_follows_from_the_previous(self, trace):
    states = trace.states
    for before, after in zip(states, states[1:]):
      assert before.step().prog == after.prog

  def test_trace_matches_direct_evaluation(self, trace):
    direct = ProgramState(compile_program("(define (sq x) (* x x)) (define y (sq 3)) (+ y 1)")).evaluate()
    assert trace.current_state().prog == direct.prog
    assert dict(trace.current_state().env) == dict(direct.env)

  def test_walk_back_to_start(self, trace):
    final = trace.current_state()
    while trace.pos > 0:
      trace.step_backward()
    assert trace.current_state() is trace.states[0]
    trace.evaluate_prog()
    assert trace.current_state() is final

  def test_statement_walk(self, trace):
    """:next from the start visits each statement once"""
    trace.reset_prog()
    seen = [trace.current_state().current_stmt_index()]
    while not trace.current_state().is_fully_evaluated():
      trace.eval_next_stmt()
      seen.append(trace.current_state().current_stmt_index())
    assert seen == [0, 1, 2, -1]

  def test_environment_grows_monotonically(self, trace):
    sizes = [len(s.env) for s in trace.states]
    assert sizes == sorted(sizes)
    assert sizes[-1] == 2
