"""
Sprout Programming Language Parser
S-expression grammar with source spans, lowered to the Sprout expression tree
"""

from typing import Any, List, Optional, Tuple
import re

# Import pyparsing with error handling
try:
    from pyparsing import (
        Empty, Forward, Group, ParseException, ParserElement, Regex,
        StringEnd, Suppress, ZeroOrMore, QuotedString, col, lineno
    )
    # Enable packrat parsing for performance
    ParserElement.enablePackrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from lang import (
    SourceSpan, Exp, Var, Nil, Program,
    DefineStmt, ExprStmt,
    make_bool, make_num, make_str, make_call, make_lam, make_let, make_cond,
    And, Or, If,
)
from error_handling import SproutParseError, enhance_parse_exception, parse_error, msg


# Characters that may not appear inside a symbol
_DELIMITERS = r'\s()\[\]";'

# Words that introduce special forms rather than calls
SPECIAL_FORMS = {'define', 'lambda', 'λ', 'if', 'let', 'let*', 'cond', 'and', 'or'}


class SproutGrammar:
    """Sprout grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the s-expression grammar; special forms are recognized afterwards"""

        sexp = Forward()

        # Position markers: start skips leading whitespace, end must not
        start = Empty().setParseAction(lambda s, loc, t: [loc])
        end = Empty().leaveWhitespace().setParseAction(lambda s, loc, t: [loc])

        def atom(kind):
            return lambda s, loc, t: ("ATOM", (kind, t[0]), (loc, loc + len(t[0])))

        # Literals
        string_literal = (start + QuotedString('"', escChar='\\', unquoteResults=False) + end).setParseAction(
            lambda s, loc, t: ("ATOM", ("STRING", _unescape(t[1][1:-1])), (t[0], t[2]))
        )
        number = Regex(rf'[+-]?(?:\d+\.\d*|\.\d+|\d+)(?=[{_DELIMITERS}]|$)').setParseAction(atom("NUMBER"))
        boolean = Regex(rf'#(?:true|false|t|f)(?=[{_DELIMITERS}]|$)').setParseAction(atom("BOOLEAN"))
        empty_list = Regex(r"'\(\s*\)").setParseAction(atom("NIL"))
        symbol = Regex(rf'[^{_DELIMITERS}]+').setParseAction(atom("SYMBOL"))

        # Parenthesized and bracketed lists
        def make_list(s, loc, t):
            return ("LIST", list(t[1]), (t[0], t[2]))

        paren_list = (start + Suppress("(") + Group(ZeroOrMore(sexp)) + Suppress(")") + end).setParseAction(make_list)
        bracket_list = (start + Suppress("[") + Group(ZeroOrMore(sexp)) + Suppress("]") + end).setParseAction(make_list)

        sexp <<= string_literal | number | boolean | empty_list | paren_list | bracket_list | symbol

        self.sexp = sexp
        self.program = ZeroOrMore(sexp) + StringEnd()
        self.expression = sexp + StringEnd()

    def read_program(self, text: str) -> List[Tuple]:
        """Read text into raw tagged s-expressions"""
        return list(self.program.parseString(_blank_comments(text), parseAll=True))

    def read_expression(self, text: str) -> Tuple:
        cleaned = _blank_comments(text)
        if not cleaned.strip():
            raise parse_error(msg('error-parse-empty'))
        return self.expression.parseString(cleaned, parseAll=True)[0]


def _blank_comments(text: str) -> str:
    """Replace ; comments with spaces so that positions stay put"""
    return re.sub(
        r'"(?:[^"\\]|\\.)*"|;[^\n]*',
        lambda m: m.group(0) if m.group(0).startswith('"') else ' ' * len(m.group(0)),
        text
    )


def _unescape(s: str) -> str:
    """Process escape sequences in strings"""
    escape_map = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', '0': '\0'}
    return re.sub(r'\\(.)', lambda m: escape_map.get(m.group(1), m.group(1)), s)


# ============================================================================
# LOWERING: raw s-expressions -> expressions and statements
# ============================================================================

class Lowering:
    """Turns the tagged tuples produced by SproutGrammar into the expression tree"""

    def __init__(self, text: str, filename: str = "<input>"):
        self.text = text
        self.filename = filename

    def span(self, node: Tuple) -> SourceSpan:
        start, end = node[2]
        return SourceSpan(
            self.filename, lineno(start, self.text), col(start, self.text),
            lineno(end, self.text), col(end, self.text)
        )

    def error(self, form: str, problem: str, node: Tuple, hint: Optional[str] = None) -> SproutParseError:
        source = self.text[node[2][0]:node[2][1]]
        return parse_error(msg('error-parse-form', form, problem), self.span(node), hint, source)

    def symbol_name(self, node: Tuple, form: str, what: str) -> str:
        if node[0] == "ATOM" and node[1][0] == "SYMBOL" and node[1][1] not in SPECIAL_FORMS:
            return node[1][1]
        raise self.error(form, f"expected {what}", node)

    # ------------------------------------------------------------------ program

    def statement(self, node: Tuple):
        if _head_symbol(node) == "define":
            name, body = self.define(node)
            return DefineStmt(name, body)
        return ExprStmt(self.expression(node))

    def define(self, node: Tuple) -> Tuple[str, Exp]:
        items = node[1]
        if len(items) != 3:
            raise self.error("define", "expected a name and one expression", node,
                             "write (define name expr) or (define (name arg ...) body)")
        target, body_node = items[1], items[2]
        if target[0] == "LIST":
            # (define (f x y) body) is sugar for (define f (lambda (x y) body))
            if not target[1]:
                raise self.error("define", "expected a function name", target)
            name = self.symbol_name(target[1][0], "define", "a function name")
            params = [self.symbol_name(p, "define", "a parameter name") for p in target[1][1:]]
            return name, make_lam(params, self.expression(body_node), self.span(node))
        return self.symbol_name(target, "define", "a name"), self.expression(body_node)

    # --------------------------------------------------------------- expressions

    def expression(self, node: Tuple) -> Exp:
        span = self.span(node)
        if node[0] == "ATOM":
            return self.atom(node, span)

        items = node[1]
        if not items:
            raise self.error("call", "empty application", node, "use null or '() for the empty list")

        head = _head_symbol(node)
        if head == "define":
            raise parse_error(msg('error-parse-define-location'), span)
        handlers = {
            'lambda': self.lambda_form,
            'λ': self.lambda_form,
            'if': self.if_form,
            'let': self.let_form,
            'let*': self.let_form,
            'cond': self.cond_form,
            'and': lambda n, sp: And(tuple(self.expression(x) for x in n[1][1:]), sp),
            'or': lambda n, sp: Or(tuple(self.expression(x) for x in n[1][1:]), sp),
        }
        if head in handlers:
            return handlers[head](node, span)
        return make_call(self.expression(items[0]), [self.expression(x) for x in items[1:]], span)

    def atom(self, node: Tuple, span: SourceSpan) -> Exp:
        kind, text = node[1]
        if kind == "STRING":
            return make_str(text, span)
        elif kind == "NUMBER":
            value: Any = float(text) if '.' in text else int(text)
            return make_num(value, span)
        elif kind == "BOOLEAN":
            return make_bool(text in ('#t', '#true'), span)
        elif kind == "NIL":
            return Nil(span)
        elif text in ('true', 'false'):
            return make_bool(text == 'true', span)
        elif text == 'null':
            return Nil(span)
        elif text in SPECIAL_FORMS:
            raise self.error(text, "keyword used as a variable", node)
        return Var(text, span)

    def lambda_form(self, node: Tuple, span: SourceSpan) -> Exp:
        items = node[1]
        if len(items) != 3 or items[1][0] != "LIST":
            raise self.error("lambda", "expected a parameter list and one body", node,
                             "write (lambda (x ...) body)")
        params = [self.symbol_name(p, "lambda", "a parameter name") for p in items[1][1]]
        return make_lam(params, self.expression(items[2]), span)

    def if_form(self, node: Tuple, span: SourceSpan) -> Exp:
        items = node[1]
        if len(items) != 4:
            raise self.error("if", "expected a guard, a then branch and an else branch", node)
        return If(self.expression(items[1]), self.expression(items[2]), self.expression(items[3]), span)

    def let_form(self, node: Tuple, span: SourceSpan) -> Exp:
        items = node[1]
        if len(items) != 3 or items[1][0] != "LIST":
            raise self.error("let", "expected a binding list and one body", node,
                             "write (let ([x e] ...) body)")
        bindings = []
        for b in items[1][1]:
            if b[0] != "LIST" or len(b[1]) != 2:
                raise self.error("let", "each binding must be [name expr]", b)
            bindings.append((self.symbol_name(b[1][0], "let", "a binding name"), self.expression(b[1][1])))
        return make_let(bindings, self.expression(items[2]), span)

    def cond_form(self, node: Tuple, span: SourceSpan) -> Exp:
        branches = []
        for b in node[1][1:]:
            if b[0] != "LIST" or len(b[1]) != 2:
                raise self.error("cond", "each branch must be [guard body]", b)
            guard_node = b[1][0]
            if guard_node[0] == "ATOM" and guard_node[1] == ("SYMBOL", "else"):
                guard = make_bool(True, self.span(guard_node))
            else:
                guard = self.expression(guard_node)
            branches.append((guard, self.expression(b[1][1])))
        return make_cond(branches, span)


def _head_symbol(node: Tuple) -> Optional[str]:
    if node[0] == "LIST" and node[1]:
        first = node[1][0]
        if first[0] == "ATOM" and first[1][0] == "SYMBOL":
            return first[1][1]
    return None


# ============================================================================
# PARSER ENTRY POINTS
# ============================================================================

_default_grammar: Optional[SproutGrammar] = None


def _grammar() -> SproutGrammar:
    global _default_grammar
    if _default_grammar is None:
        _default_grammar = SproutGrammar()
    return _default_grammar


def parse_program(text: str, filename: str = "<input>", grammar: Optional[SproutGrammar] = None) -> Program:
    """Parse a complete Sprout program into pending statements"""
    grammar = grammar or _grammar()
    try:
        nodes = grammar.read_program(text)
    except ParseException as e:
        raise enhance_parse_exception(e, text, filename) from e
    lowering = Lowering(text, filename)
    return tuple(lowering.statement(node) for node in nodes)


def parse_expression(text: str, filename: str = "<input>", grammar: Optional[SproutGrammar] = None) -> Exp:
    """Parse a single Sprout expression"""
    grammar = grammar or _grammar()
    try:
        node = grammar.read_expression(text)
    except ParseException as e:
        raise enhance_parse_exception(e, text, filename) from e
    return Lowering(text, filename).expression(node)


class SproutParser:
    """Main Sprout parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = SproutGrammar(debug)

    def parse_file(self, filepath: str) -> Program:
        """Parse a Sprout source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise parse_error(f"File not found: {filepath}", code="file-not-found")
        except UnicodeDecodeError as e:
            raise parse_error(f"Cannot decode file {filepath}: {e}")
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Program:
        """Parse Sprout source code from string"""
        prog = parse_program(text, filename, self.grammar)
        if self.debug:
            print(f"Parsed {len(prog)} statements from {filename}")
        return prog

    def parse_expression(self, text: str, filename: str = "<input>") -> Exp:
        """Parse a single Sprout expression"""
        return parse_expression(text, filename, self.grammar)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> SproutParser:
    """Create a Sprout parser"""
    return SproutParser(debug=debug)


def create_debug_parser() -> SproutParser:
    """Create a Sprout parser with debug enabled"""
    return SproutParser(debug=True)
