"""
Statement stepping, program state and trace tests
"""

import sys
import pytest
from lang import (
  Var, ExprStmt, ValueStmt, DefineStmt, BindingStmt, ErrorStmt,
  make_num, make_call, prog_to_string,
)
from parsing import parse_expression
from interpreter import make_runtime_env, step_stmt
from program import ProgramState, ProgramTrace, compile_program, compile_statements
from error_handling import SproutScopeError


ONE = make_num(1)


class TestStatementStepping:
  """Test one step of a single statement"""

  def test_expression_steps(self):
    env = make_runtime_env()
    env2, s = step_stmt(env, ExprStmt(parse_expression("(+ 1 2)")))
    assert s == ExprStmt(make_num(3))
    assert env2 is env

  def test_expression_value_becomes_terminal(self):
    env, s = step_stmt(make_runtime_env(), ExprStmt(make_num(3)))
    assert s == ValueStmt(make_num(3))

  def test_define_steps_its_expression(self):
    """A pending define is stepped but not yet published"""
    env, s = step_stmt(make_runtime_env(), DefineStmt("x", parse_expression("(+ 1 2)")))
    assert s == DefineStmt("x", make_num(3))
    assert "x" not in env

  def test_define_value_is_published(self):
    env, s = step_stmt(make_runtime_env(), DefineStmt("x", ONE))
    assert s == BindingStmt("x", ONE)
    assert env["x"] == ONE

  def test_error_becomes_statement(self):
    """A stuck expression turns its statement into an error"""
    env, s = step_stmt(make_runtime_env(), ExprStmt(parse_expression("(car 1)")))
    assert isinstance(s, ErrorStmt)
    assert s.details.code == "type-mismatch"
    assert s.details.phase == "runtime"

  def test_terminal_statements_do_not_change(self):
    env = make_runtime_env()
    for s in (ValueStmt(ONE), BindingStmt("x", ONE)):
      assert step_stmt(env, s) == (env, s)


class TestProgramState:
  """Test whole-program snapshots"""

  def test_define_then_use(self):
    state = ProgramState(compile_program("(define x 1) (+ x 2)")).evaluate()
    assert dict(state.env) == {"x": ONE}
    assert state.prog == (BindingStmt("x", ONE), ValueStmt(make_num(3)))

  def test_step_leaves_original_alone(self):
    start = ProgramState(compile_program("(+ 1 2)"))
    after = start.step()
    assert start.prog == (ExprStmt(parse_expression("(+ 1 2)")),)
    assert after.prog == (ExprStmt(make_num(3)),)

  def test_left_most_statement_first(self):
    state = ProgramState(compile_program("(+ 1 1) (+ 2 2)")).step()
    assert state.current_stmt_index() == 0
    assert state.prog[1] == ExprStmt(parse_expression("(+ 2 2)"))

  def test_fully_evaluated_step_is_identity(self):
    state = ProgramState(compile_program("1")).evaluate()
    assert state.is_fully_evaluated()
    assert state.current_stmt_index() == -1
    assert state.step() is state

  def test_errors_do_not_stop_the_program(self):
    """Later statements still run after a failing one"""
    state = ProgramState(compile_program("(car 1) (+ 1 1)")).evaluate()
    assert isinstance(state.prog[0], ErrorStmt)
    assert state.prog[1] == ValueStmt(make_num(2))

  def test_statements_are_independent(self):
    """An unchecked program with an unbound name still finishes"""
    state = ProgramState((DefineStmt("x", Var("undefined_name")), ExprStmt(make_num(5)))).evaluate()
    assert state.prog[0].details.code == "undefined-variable"
    assert state.prog[1] == ValueStmt(make_num(5))
    assert state.is_fully_evaluated()

  def test_overflow_becomes_error(self):
    """A number too large for a float fails only its own statement"""
    state = ProgramState(compile_program("(/ 1" + "0" * 400 + " 3) (+ 1 1)")).evaluate()
    assert state.prog[0].details.code == "arithmetic-overflow"
    assert state.prog[1] == ValueStmt(make_num(2))

  def test_too_deep_becomes_error(self):
    """An expression nested past the recursion limit fails only its own statement"""
    e = ONE
    for _ in range(sys.getrecursionlimit()):
      e = make_call(Var("+"), [ONE, e])
    state = ProgramState((ExprStmt(e), ExprStmt(make_num(5)))).evaluate()
    assert isinstance(state.prog[0], ErrorStmt)
    assert state.prog[0].details.code == "recursion-depth-exceeded"
    assert state.prog[1] == ValueStmt(make_num(5))

  def test_failed_define_is_not_published(self):
    state = ProgramState(compile_program("(define x (car 1))")).evaluate()
    assert "x" not in state.env
    assert isinstance(state.prog[0], ErrorStmt)

  def test_recursive_function(self):
    src = """
    (define (fact n) (if (= n 0) 1 (* n (fact (- n 1)))))
    (fact 5)
    """
    state = ProgramState(compile_program(src)).evaluate()
    assert state.prog[1] == ValueStmt(make_num(120))

  def test_evaluate_with_budget(self):
    """A budget stops evaluation without raising"""
    src = "(define (loop n) (loop n)) (loop 1)"
    state = ProgramState(compile_program(src)).evaluate(max_steps=25)
    assert not state.is_fully_evaluated()

  def test_empty_program(self):
    state = ProgramState(())
    assert state.is_fully_evaluated()
    assert str(state) == ""

  def test_expression_helpers(self):
    state = ProgramState(compile_program("(define y 10)")).evaluate()
    e = parse_expression("(+ y 1)")
    assert state.step_exp(e) == make_call(Var("+"), [make_num(10), ONE])
    assert state.evaluate_exp(e) == make_num(11)

  def test_rendering(self):
    state = ProgramState(compile_program("(define x 1) (+ x 2)"))
    assert str(state) == "(define x 1)\n(+ x 2)"
    assert str(state.evaluate()) == "x: 1\n3"

  def test_accepts_plain_dict_env(self):
    state = ProgramState(compile_statements(ProgramState((), {"x": ONE}), "x"), {"x": ONE})
    assert state.evaluate().prog == (ValueStmt(ONE),)


class TestTraceNavigation:
  """Test moving through recorded states"""

  def test_initial(self, make_trace):
    trace = make_trace("(define x 1) (+ x 2)")
    assert len(trace) == 1
    assert trace.current_step() == 1
    assert trace.at_frontier()

  def test_step_forward_records(self, make_trace):
    trace = make_trace("(+ 1 2)")
    trace.step_forward()
    assert len(trace) == 2
    assert trace.pos == 1
    assert trace.current_state().prog == (ExprStmt(make_num(3)),)

  def test_step_backward_then_replay(self, make_trace):
    """Stepping forward behind the frontier replays the same state"""
    trace = make_trace("(+ (+ 1 1) 1)")
    trace.step_forward()
    recorded = trace.current_state()
    trace.step_backward()
    assert trace.pos == 0
    assert not trace.at_frontier()
    trace.step_forward()
    assert trace.current_state() is recorded
    assert len(trace) == 2

  def test_step_backward_at_start(self, make_trace):
    trace = make_trace("1")
    trace.step_backward()
    assert trace.pos == 0

  def test_step_forward_when_finished(self, make_trace):
    trace = make_trace("1")
    trace.evaluate_prog()
    length = len(trace)
    trace.step_forward()
    assert len(trace) == length

  def test_evaluate_prog(self, make_trace):
    trace = make_trace("(define x 1) (+ x 2)")
    assert trace.evaluate_prog()
    state = trace.current_state()
    assert state.is_fully_evaluated()
    assert state.prog[1] == ValueStmt(make_num(3))
    assert len(trace.states) == len(trace)

  def test_evaluate_prog_budget(self, make_trace):
    trace = make_trace("(define (loop n) (loop n)) (loop 1)")
    assert not trace.evaluate_prog(max_steps=10)
    assert trace.pos == 10

  def test_reset(self, make_trace):
    trace = make_trace("(+ 1 2)")
    trace.evaluate_prog()
    trace.reset_prog()
    assert trace.pos == 0
    assert trace.current_step() == 1

  def test_eval_next_stmt(self, make_trace):
    """Finish the current statement and stop at the next one"""
    trace = make_trace("(define x (+ 1 1)) (+ x 2)")
    trace.eval_next_stmt()
    state = trace.current_state()
    assert state.prog[0] == BindingStmt("x", make_num(2))
    assert state.current_stmt_index() == 1

  def test_eval_next_stmt_when_finished(self, make_trace):
    trace = make_trace("1")
    trace.evaluate_prog()
    pos = trace.pos
    trace.eval_next_stmt()
    assert trace.pos == pos

  def test_revert_prev_stmt(self, make_trace):
    trace = make_trace("(define x (+ 1 1)) (+ x 2)")
    trace.eval_next_stmt()
    trace.step_forward()
    trace.revert_prev_stmt()
    assert trace.current_state().current_stmt_index() == 0

  def test_revert_prev_stmt_stops_at_start(self, make_trace):
    trace = make_trace("(+ (+ 1 1) 1)")
    trace.step_forward()
    trace.revert_prev_stmt()
    assert trace.pos == 0


class TestTraceAddStatement:
  """Test appending statements to a running trace"""

  def test_add_after_finish(self, make_trace):
    """A finished program continues with the new statement"""
    trace = make_trace("(define x 1)")
    trace.evaluate_prog()
    trace.add_stmt(ExprStmt(parse_expression("(+ x 1)")))
    assert not trace.current_state().is_fully_evaluated()
    trace.evaluate_prog()
    assert trace.current_state().prog[-1] == ValueStmt(make_num(2))

  def test_add_widens_history(self, make_trace):
    """Every recorded state, past and future, ends with the new statement"""
    trace = make_trace("(+ 1 1)")
    trace.evaluate_prog()
    added = ExprStmt(parse_expression("(+ 2 2)"))
    trace.add_stmt(added)
    for state in trace.states:
      assert len(state.prog) == 2
      assert state.prog[1] == added

  def test_add_behind_frontier(self, make_trace):
    """Replaying towards the frontier shows the added statement still pending"""
    trace = make_trace("(+ (+ 1 1) 1)")
    trace.evaluate_prog()
    trace.reset_prog()
    trace.add_stmt(ExprStmt(parse_expression("(* 2 3)")))
    trace.evaluate_prog()
    assert trace.current_state().prog == (ValueStmt(make_num(3)), ValueStmt(make_num(6)))

  def test_replay_keeps_identity(self, make_trace):
    """Widened states are computed once"""
    trace = make_trace("(+ 1 1)")
    trace.step_forward()
    trace.add_stmt(ExprStmt(ONE))
    first = trace.states[0]
    assert trace.states[0] is first

  def test_compile_statements_against_state(self, make_trace):
    """Statements typed at the stepper may use the program's names"""
    trace = make_trace("(define x 1)")
    stmts = compile_statements(trace.current_state(), "(+ x 1)")
    assert stmts == (ExprStmt(parse_expression("(+ x 1)")),)
    with pytest.raises(SproutScopeError):
      compile_statements(trace.current_state(), "(define x 2)")

  def test_debug_output(self, capsys):
    trace = ProgramTrace(ProgramState(compile_program("(+ 1 2)")), debug=True)
    trace.step_forward()
    trace.add_stmt(ExprStmt(ONE))
    out = capsys.readouterr().out
    assert "step 2" in out
    assert "added statement 1" in out

  def test_rendering_of_trace(self, make_trace):
    trace = make_trace("(define x 1) (+ x 2)")
    trace.evaluate_prog()
    assert prog_to_string(trace.current_state().prog) == "x: 1\n3"
