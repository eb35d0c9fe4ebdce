"""
Sprout program execution
Whole-program states built from the statement stepper, and the trace that
records them so execution can be replayed forwards and backwards
"""

from types import MappingProxyType
from typing import Iterable, List, Optional, Sequence

from lang import Exp, Program, Stmt, is_stmt_done, index_of_current_stmt, prog_to_string, stmt_to_string
from error_handling import SproutScopeError
from parsing import parse_program, parse_expression
from semantics import scope_check_program, scope_check_exp, top_level_names
from interpreter import Env, make_runtime_env, step_exp, evaluate_exp, step_stmt


# ============================================================================
# COMPILATION
# ============================================================================

def compile_program(src: str, filename: str = "<input>") -> Program:
    """Parse and scope check a whole program"""
    prog = parse_program(src, filename)
    diagnostics = scope_check_program(prog)
    if diagnostics:
        raise SproutScopeError(diagnostics)
    return prog


def compile_expr(env: Env, src: str, filename: str = "<input>") -> Exp:
    """Parse and scope check one expression against the names bound in env"""
    e = parse_expression(src, filename)
    diagnostics = scope_check_exp(env, e)
    if diagnostics:
        raise SproutScopeError(diagnostics)
    return e


def compile_statements(state: 'ProgramState', src: str, filename: str = "<input>") -> Program:
    """Parse statements to be appended to a running program"""
    prog = parse_program(src, filename)
    bound = set(state.env) | set(top_level_names(state.prog))
    diagnostics = scope_check_program(prog, bound)
    if diagnostics:
        raise SproutScopeError(diagnostics)
    return prog


# ============================================================================
# PROGRAM STATE
# ============================================================================

class ProgramState:
    """
    One snapshot of a running program: its statements and its environment.

    Snapshots are never modified. step() and evaluate() build new ones,
    which is what lets a ProgramTrace keep every past state around.
    """

    def __init__(self, prog: Iterable[Stmt], env: Optional[Env] = None):
        self.env = env if isinstance(env, MappingProxyType) else make_runtime_env(env)
        self.prog: Program = tuple(prog)

    def is_fully_evaluated(self) -> bool:
        return all(is_stmt_done(s) for s in self.prog)

    def current_stmt_index(self) -> int:
        """Index of the statement the next step will advance, or -1"""
        return index_of_current_stmt(self.prog)

    def step(self) -> 'ProgramState':
        """Advance the left-most unfinished statement by one step"""
        i = self.current_stmt_index()
        if i < 0:
            return self
        env, stmt = step_stmt(self.env, self.prog[i])
        return ProgramState(self.prog[:i] + (stmt,) + self.prog[i + 1:], env)

    def evaluate(self, max_steps: Optional[int] = None) -> 'ProgramState':
        """
        Step until every statement is terminal.

        Without max_steps a diverging program never returns. With it, the
        state reached after that many steps is returned, finished or not.
        """
        st = self
        steps = 0
        while not st.is_fully_evaluated():
            if max_steps is not None and steps >= max_steps:
                break
            st = st.step()
            steps += 1
        return st

    def extended(self, stmts: Sequence[Stmt]) -> 'ProgramState':
        """Same snapshot with stmts appended to the program"""
        return ProgramState(self.prog + tuple(stmts), self.env)

    def step_exp(self, e: Exp) -> Exp:
        return step_exp(self.env, e)

    def evaluate_exp(self, e: Exp, max_steps: Optional[int] = None) -> Exp:
        return evaluate_exp(self.env, e, max_steps)

    def __str__(self) -> str:
        return prog_to_string(self.prog)

    def __repr__(self) -> str:
        return f"ProgramState({len(self.prog)} statements, {len(self.env)} bindings)"


# ============================================================================
# PROGRAM TRACE
# ============================================================================

class ProgramTrace:
    """
    Append-only history of ProgramStates with a cursor.

    New states are only ever computed at the frontier (the last recorded
    state). Moving the cursor anywhere else replays recorded states, so
    user code is never run twice.
    """

    def __init__(self, initial: ProgramState, debug: bool = False):
        self._states: List[ProgramState] = [initial]
        self._appended: List[Stmt] = []
        self._base_length = len(initial.prog)
        self.pos = 0
        self.debug = debug

    # Statements added with add_stmt live in one shared log. A recorded
    # state is widened from that log the first time it is read.
    def _state_at(self, i: int) -> ProgramState:
        st = self._states[i]
        missing = self._base_length + len(self._appended) - len(st.prog)
        if missing:
            st = st.extended(self._appended[-missing:])
            self._states[i] = st
        return st

    @property
    def states(self) -> Sequence[ProgramState]:
        return tuple(self._state_at(i) for i in range(len(self._states)))

    def __len__(self) -> int:
        return len(self._states)

    def current_state(self) -> ProgramState:
        return self._state_at(self.pos)

    def current_step(self) -> int:
        """1-based number of the state under the cursor"""
        return self.pos + 1

    def at_frontier(self) -> bool:
        return self.pos == len(self._states) - 1

    def step_forward(self) -> None:
        last = len(self._states) - 1
        if self.pos < last:
            self.pos += 1
            return
        current = self._state_at(last)
        if current.is_fully_evaluated():
            return
        nxt = current.step()
        self._states.append(nxt)
        self.pos += 1
        if self.debug:
            i = current.current_stmt_index()
            print(f"[trace] step {self.current_step()}: statement {i} -> {stmt_to_string(nxt.prog[i])}")

    def step_backward(self) -> None:
        if self.pos > 0:
            self.pos -= 1

    def eval_next_stmt(self) -> None:
        """Step until the statement currently being evaluated is finished"""
        if self.current_state().is_fully_evaluated():
            return
        i = self.current_state().current_stmt_index()
        while self.current_state().current_stmt_index() == i:
            self.step_forward()

    def revert_prev_stmt(self) -> None:
        """Step back until a different statement is the one being evaluated"""
        i = self.current_state().current_stmt_index()
        while self.current_state().current_stmt_index() == i and self.pos > 0:
            self.step_backward()

    def evaluate_prog(self, max_steps: Optional[int] = None) -> bool:
        """
        Step forward until the program is finished, keeping every state.

        Returns False if max_steps forward steps were taken first.
        """
        steps = 0
        while not self.current_state().is_fully_evaluated():
            if max_steps is not None and steps >= max_steps:
                return False
            self.step_forward()
            steps += 1
        return True

    def reset_prog(self) -> None:
        self.pos = 0

    def add_stmt(self, s: Stmt) -> None:
        """Append s to the program of every recorded state, past and present"""
        self._appended.append(s)
        if self.debug:
            print(f"[trace] added statement {self._base_length + len(self._appended) - 1}: {stmt_to_string(s)}")
