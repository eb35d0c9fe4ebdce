"""
Error handling for Sprout
Error details shared by every phase, the exception taxonomy, the message
catalog and enhanced parse error reporting
"""

from typing import List, Optional, Dict
from dataclasses import dataclass
from pyparsing import ParseException
import re

from lang import SourceSpan, exp_to_string


PHASE_PARSE = "parse"
PHASE_SCOPE = "scope"
PHASE_RUNTIME = "runtime"


# ============================================================================
# MESSAGE CATALOG
# ============================================================================

MESSAGES: Dict[str, str] = {
    'error-var-undef': "Variable {0} is not defined",
    'error-var-undef-top': "Name {0} is not defined at the top level or as a primitive",
    'error-duplicate-definition': "Name {0} is defined more than once",
    'error-duplicate-parameter': "Parameter {0} appears more than once in this lambda",
    'error-arity': "{0} expects {1} argument(s), but {2} were given",
    'error-arity-atleast': "{0} expects at least {1} argument(s), but {2} were given",
    'error-type-expected-call': "Expected a procedure in call position, but found a {0}",
    'error-type-expected-cond': "Expected a boolean guard in a conditional, but found a {0}",
    'error-type-expected': "Expected a {0}, but found a {1}",
    'error-type-expected-arg': "{0} expects a {1} for argument {2}, but found a {3}",
    'error-cond-no-branch-applies': "No branch of this cond applies",
    'error-division-by-zero': "{0}: division by zero",
    'error-step-limit': "Evaluation did not finish within {0} steps",
    'error-arithmetic-overflow': "{0}: result is too large to represent",
    'error-recursion-depth': "Expression is nested too deeply to step (recursion limit {0})",
    'error-file-not-found': "File not found: {0}",
    'error-fetch-failed': "Could not fetch {0}: {1}",
    'error-file-unreadable': "Cannot read {0}: {1}",
    'error-file-decode': "Cannot decode file {0}: {1}",
    'error-ice': "Internal consistency error in {0}: {1}",
    'error-parse-empty': "Expected an expression, but found nothing",
    'error-parse-define-location': "define is only allowed at the top level of a program",
    'error-parse-form': "Malformed {0}: {1}",
}


def msg(key: str, *args) -> str:
    """Look up a catalog message and fill in its arguments"""
    return MESSAGES[key].format(*args)


# ============================================================================
# ERROR DETAILS
# ============================================================================

@dataclass(frozen=True)
class ErrorDetails:
    """What went wrong, in which phase, and where"""
    phase: str
    message: str
    code: str = ""
    span: Optional[SourceSpan] = None
    source: Optional[str] = None
    hint: Optional[str] = None


def format_error(details: ErrorDetails) -> str:
    """Format error details as a multi-line report"""
    header = f"{details.phase.capitalize()} error"
    if details.span:
        header += f" at {details.span}"
    error_msg = f"{header}:\n  {details.message}\n"

    if details.source:
        error_msg += f"  In: {details.source}\n"

    if details.hint:
        error_msg += f"  Hint: {details.hint}\n"

    return error_msg


# ============================================================================
# EXCEPTIONS
# ============================================================================

class SproutError(Exception):
    """Base class for errors carrying ErrorDetails"""
    def __init__(self, details: ErrorDetails):
        self.details = details
        super().__init__(details.message)

    @property
    def message(self) -> str:
        return self.details.message

    @property
    def code(self) -> str:
        return self.details.code

    def __str__(self) -> str:
        return format_error(self.details)


class SproutParseError(SproutError):
    """Malformed program text"""
    pass


class SproutScopeError(SproutError):
    """One or more names used without being bound"""
    def __init__(self, diagnostics: List[ErrorDetails]):
        self.diagnostics = list(diagnostics)
        super().__init__(self.diagnostics[0])

    def __str__(self) -> str:
        return "".join(format_error(d) for d in self.diagnostics)


class SproutRuntimeError(SproutError):
    """A reduction step failed"""
    pass


class InternalConsistencyError(SproutError):
    """A contract inside the implementation was violated"""
    def __init__(self, where: str, what: str):
        super().__init__(ErrorDetails(
            PHASE_RUNTIME, msg('error-ice', where, what), code="internal-consistency-error"
        ))


def runtime_error(message: str, code: str, expr=None, hint: Optional[str] = None) -> SproutRuntimeError:
    """Build a runtime error located at expr, if one is given"""
    if expr is not None:
        return SproutRuntimeError(ErrorDetails(
            PHASE_RUNTIME, message, code, getattr(expr, 'span', None), exp_to_string(expr), hint
        ))
    return SproutRuntimeError(ErrorDetails(PHASE_RUNTIME, message, code, hint=hint))


def parse_error(message: str, span: Optional[SourceSpan] = None, hint: Optional[str] = None,
                source: Optional[str] = None, code: str = "malformed-syntax") -> SproutParseError:
    return SproutParseError(ErrorDetails(PHASE_PARSE, message, code, span, source, hint))


def scope_diagnostic(message: str, code: str, expr=None) -> ErrorDetails:
    if expr is not None:
        return ErrorDetails(PHASE_SCOPE, message, code, getattr(expr, 'span', None), exp_to_string(expr))
    return ErrorDetails(PHASE_SCOPE, message, code)


def file_not_found_error(path: str) -> SproutRuntimeError:
    return runtime_error(msg('error-file-not-found', path), "file-not-found")


# ============================================================================
# PARSE ERROR ENHANCEMENT
# ============================================================================

def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")

    return '\n'.join(context_parts)


def extract_expected(exc: ParseException) -> List[str]:
    """Extract expected tokens from exception"""
    expected = []

    # pyparsing only reports what it expected in the message text
    expected_match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(|$)", str(exc))
    if expected_match:
        expected.append(expected_match.group(1))

    return expected if expected else ["valid syntax"]


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """Extract what was actually found at the error location"""
    lines = source_text.split('\n')

    if line_num <= len(lines):
        error_line = lines[line_num - 1]
        if col_num <= len(error_line):
            start = max(0, col_num - 1)
            end = min(len(error_line), col_num + 10)
            got_text = error_line[start:end].strip()
            if got_text:
                return f"'{got_text}'"
        return "end of line"
    return "end of input"


def count_unbalanced(source_text: str) -> int:
    """Open minus close parens/brackets, ignoring strings and comments"""
    depth = 0
    for m in re.finditer(r'"(?:[^"\\]|\\.)*"|;[^\n]*|[()\[\]]', source_text):
        tok = m.group(0)
        if tok in '([':
            depth += 1
        elif tok in ')]':
            depth -= 1
    return depth


def generate_suggestions(source_text: str, got: str) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []

    depth = count_unbalanced(source_text)
    if depth > 0:
        suggestions.append(f"{depth} parenthesis/bracket(s) are never closed - add a ')' or ']'")
    elif depth < 0:
        suggestions.append(f"{-depth} extra closing parenthesis/bracket(s) - remove the stray ')' or ']'")

    if "{" in got or "}" in got:
        suggestions.append("Use parentheses () or brackets [] instead of braces {}")

    if got.startswith("'\"") and source_text.count('"') % 2 == 1:
        suggestions.append("A string literal is missing its closing '\"'")

    return suggestions


def enhance_parse_exception(exc: ParseException, source_text: str, filename: str = "<input>") -> SproutParseError:
    """Convert a pyparsing exception into a located SproutParseError"""
    line_num = exc.lineno
    col_num = exc.column

    got = extract_got(source_text, line_num, col_num)
    expected = extract_expected(exc)
    suggestions = generate_suggestions(source_text, got)

    message = f"Expected {', '.join(expected)}, got {got}"
    span = SourceSpan(filename, line_num, col_num, line_num, col_num + 1)
    hint = "; ".join(suggestions) if suggestions else None
    return parse_error(message, span, hint, get_context_lines(source_text, line_num, col_num),
                       code="unexpected-token")
