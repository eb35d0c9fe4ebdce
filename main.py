"""
Sprout Programming Language - Main Entry Point
A small Scheme-like language evaluated one reduction step at a time
"""

import sys
import argparse
from typing import Callable, List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from lang import ErrorStmt, exp_to_string, stmt_to_string
from error_handling import SproutError, SproutScopeError, format_error
from parsing import create_parser, create_debug_parser, SPECIAL_FORMS
from semantics import scope_check_program
from program import ProgramState, ProgramTrace, compile_statements
from stdlib import BUILTIN_FUNCTIONS, list_builtin_functions
from vfs import FileResolver


VERSION = "Sprout v0.1.0 (Stepping Interpreter)"

# Deeply recursive programs nest their pending calls; each level costs a few frames
RECURSION_LIMIT = 10000


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Sprout Programming Language - step through programs one reduction at a time',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.spr                      # Run a Sprout script
  %(prog)s -i                              # Interactive stepper
  %(prog)s -i script.spr                   # Step through a script
  %(prog)s --parse script.spr              # Parse and show the program
  %(prog)s --trace script.spr              # Show every intermediate state
  %(prog)s --max-steps 1000 script.spr     # Give up after 1000 steps
  %(prog)s --mount lib/=./vendor main.spr  # Serve lib/... from ./vendor
  %(prog)s https://example.org/demo.spr    # Run a script over http(s)
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Sprout script file or URL to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start the interactive stepper'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the program (for debugging)'
  )

  parser.add_argument(
      '--trace',
      action='store_true',
      help='Print every program state on the way to the result'
  )

  parser.add_argument(
      '--max-steps',
      type=int,
      default=None,
      metavar='N',
      help='Stop evaluating after N steps'
  )

  parser.add_argument(
      '--mount',
      action='append',
      default=[],
      metavar='PREFIX=DIR',
      help='Read paths starting with PREFIX from DIR (repeatable)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def create_resolver(mounts: List[str], debug: bool = False) -> FileResolver:
  """Mount the working directory at '' plus every PREFIX=DIR option"""
  resolver = FileResolver(debug=debug)
  resolver.mount_directory("", ".")
  for option in mounts:
    prefix, sep, root = option.partition("=")
    if not sep or not root:
      resolver.stop()
      raise ValueError(f"Invalid --mount '{option}', expected PREFIX=DIR")
    resolver.mount_directory(prefix, root)
  return resolver


def report_error(e: SproutError, script_path: str) -> None:
  """Print a Sprout error in the same shape for every phase"""
  print(f"\n{'='*70}")
  print(f"Error in '{script_path}'")
  print(f"{'='*70}")
  if isinstance(e, SproutScopeError):
    for details in e.diagnostics:
      print(f"\n{format_error(details)}")
  else:
    print(f"\n{e}")
  print(f"\n{'='*70}\n")


def load_program(resolver: FileResolver, script_path: str, debug: bool = False):
  """Read, parse and scope check a script"""
  parser = create_debug_parser() if debug else create_parser()
  source = resolver.read_text(script_path)
  prog = parser.parse_string(source, script_path)
  diagnostics = scope_check_program(prog)
  if diagnostics:
    raise SproutScopeError(diagnostics)
  if debug:
    print(f"Scope checked {len(prog)} statements")
  return prog


def parse_file(resolver: FileResolver, script_path: str, debug: bool = False) -> int:
  """Parse a Sprout script and show the program"""
  try:
    parser = create_debug_parser() if debug else create_parser()
    print(f"Parsing {script_path}...")
    prog = parser.parse_string(resolver.read_text(script_path), script_path)

    print(f"\nParsed {len(prog)} statements:")
    print("=" * 50)
    for i, stmt in enumerate(prog, 1):
      print(f"{i}: {stmt_to_string(stmt)}")
    return 0
  except SproutError as e:
    report_error(e, script_path)
    return 1


def run_script_file(resolver: FileResolver, script_path: str, trace: bool = False,
                    max_steps: Optional[int] = None, debug: bool = False) -> int:
  """Run a Sprout script to completion and print every statement's final form"""
  try:
    prog = load_program(resolver, script_path, debug)
  except SproutError as e:
    report_error(e, script_path)
    return 1
  except Exception as e:
    print(f"Unexpected error while loading '{script_path}': {e}")
    if debug:
      import traceback
      traceback.print_exc()
    return 1

  if trace:
    program_trace = ProgramTrace(ProgramState(prog), debug=debug)
    finished = program_trace.evaluate_prog(max_steps)
    for i, state in enumerate(program_trace.states, 1):
      print(f"--- step {i} ---")
      print(state)
    final = program_trace.current_state()
  else:
    final = ProgramState(prog).evaluate(max_steps)
    finished = final.is_fully_evaluated()
    print(final)

  if not finished:
    print(f"\nStopped after {max_steps} steps; the program is not finished")
    return 1
  return 1 if any(isinstance(s, ErrorStmt) for s in final.prog) else 0


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.sprout_history")
  try:
    readline.read_history_file(history_file)
  except (FileNotFoundError, PermissionError, OSError):
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(SPECIAL_FORMS) + list_builtin_functions() + list(REPL_COMMANDS) + ["exit"]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(lambda: readline.write_history_file(history_file))


# ============================================================================
# INTERACTIVE STEPPER
# ============================================================================

def show_state(program_trace: ProgramTrace) -> None:
  state = program_trace.current_state()
  print(f"[step {program_trace.current_step()}/{len(program_trace)}]")
  if state.prog:
    print(state)
  else:
    print("  (empty program)")


def show_env(program_trace: ProgramTrace) -> None:
  env = program_trace.current_state().env
  if not env:
    print("  (no bindings)")
  for name, value in env.items():
    val_str = exp_to_string(value)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    print(f"  {name} = {val_str}")


def show_help(program_trace: ProgramTrace) -> None:
  print("Stepper Commands:")
  print("  :step   - Take one step forward")
  print("  :back   - Take one step back")
  print("  :next   - Finish the current statement")
  print("  :prev   - Go back to the previous statement")
  print("  :run    - Evaluate the whole program")
  print("  :reset  - Go back to the first state")
  print("  :env    - Show the current environment")
  print("  :show   - Show the current state")
  print("  :prims  - List the primitives with their signatures")
  print("  :help   - Show this help")
  print("  exit    - Exit the stepper")
  print()
  print("Anything else is added to the program, e.g.:")
  print("  (define (square x) (* x x))")
  print("  (square 4)")


def show_primitives(program_trace: ProgramTrace) -> None:
  width = max(len(name) for name in BUILTIN_FUNCTIONS)
  for name, entry in BUILTIN_FUNCTIONS.items():
    print(f"  {name:<{width}}  {entry['type_signature']}")


def run_to_end(program_trace: ProgramTrace) -> None:
  program_trace.evaluate_prog()
  show_state(program_trace)


def moving(move: Callable[[ProgramTrace], None]) -> Callable[[ProgramTrace], None]:
  def command(program_trace: ProgramTrace) -> None:
    move(program_trace)
    show_state(program_trace)
  return command


REPL_COMMANDS = {
    ":step": moving(ProgramTrace.step_forward),
    ":back": moving(ProgramTrace.step_backward),
    ":next": moving(ProgramTrace.eval_next_stmt),
    ":prev": moving(ProgramTrace.revert_prev_stmt),
    ":run": run_to_end,
    ":reset": moving(ProgramTrace.reset_prog),
    ":env": show_env,
    ":show": show_state,
    ":prims": show_primitives,
    ":help": show_help,
}


def handle_input(program_trace: ProgramTrace, code: str) -> bool:
  """Run one line of stepper input. Returns False when the user asked to exit"""
  code = code.strip()
  if code == "exit":
    return False
  if not code:
    return True

  if code in REPL_COMMANDS:
    REPL_COMMANDS[code](program_trace)
    return True
  if code.startswith(":"):
    print(f"Unknown command '{code}', try :help")
    return True

  try:
    stmts = compile_statements(program_trace.current_state(), code, "<stdin>")
  except SproutScopeError as e:
    for details in e.diagnostics:
      print(format_error(details))
    return True
  except SproutError as e:
    print(e)
    return True

  for stmt in stmts:
    program_trace.add_stmt(stmt)
  print(f"Added {len(stmts)} statement(s)")
  return True


def run_interactive_mode(program_trace: Optional[ProgramTrace] = None, debug: bool = False,
                         read_line: Callable[[str], str] = input) -> None:
  """Run the Sprout stepper over program_trace, or over an empty program"""
  print(f"{VERSION} - Interactive Stepper")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE and read_line is input:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
    setup_readline()
  if debug:
    print("Debug mode enabled")
  print()

  if program_trace is None:
    program_trace = ProgramTrace(ProgramState(()), debug=debug)
  show_state(program_trace)

  while True:
    try:
      if not handle_input(program_trace, read_line("sprout> ")):
        break
    except KeyboardInterrupt:
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break
    except Exception as e:
      print(f"Unexpected error: {e}")
      if debug:
        import traceback
        traceback.print_exc()
      print("  Hint: If this keeps happening, try restarting or use --debug for more details")


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for Sprout"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)
  sys.setrecursionlimit(max(sys.getrecursionlimit(), RECURSION_LIMIT))

  try:
    resolver = create_resolver(args.mount, debug=args.debug)
  except ValueError as e:
    print(f"Error: {e}")
    return 2

  try:
    if args.script and args.parse:
      return parse_file(resolver, args.script, debug=args.debug)

    if args.interactive:
      program_trace = None
      if args.script:
        try:
          prog = load_program(resolver, args.script, debug=args.debug)
        except SproutError as e:
          report_error(e, args.script)
          return 1
        program_trace = ProgramTrace(ProgramState(prog), debug=args.debug)
      run_interactive_mode(program_trace, debug=args.debug)
      return 0

    if args.script:
      return run_script_file(resolver, args.script, trace=args.trace,
                             max_steps=args.max_steps, debug=args.debug)

    arg_parser.print_help()
    return 0
  finally:
    resolver.stop()


if __name__ == "__main__":
  sys.exit(main())
