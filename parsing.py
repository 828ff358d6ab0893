"""
Reo Programming Language Parser
Tokenizer and recursive-descent parser producing the Reo AST
"""

import sys
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple

from ast_nodes import (
    NumberLiteral, TextLiteral, TruthLiteral, Name, Unary, Binary, Call, Index,
    ListLiteral, Let, Set, Say, If, While, Repeat, ForEach, Append, Remove, Return,
    ExpressionStatement, FunctionDeclaration, Program
)
from error_handling import ReoLexError, ReoParseError, ReoAssignmentTargetError
from normalizer import NormalizedSource, normalize_source


class TokenKind(str, Enum):
    EOF = "EOF"
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENT = "IDENT"

    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COMMA = "COMMA"
    DOT = "DOT"
    COLON = "COLON"

    PLUS = "PLUS"
    MINUS = "MINUS"
    STAR = "STAR"
    SLASH = "SLASH"
    PERCENT = "PERCENT"
    BANG = "BANG"
    AND_AND = "AND_AND"
    OR_OR = "OR_OR"
    EQUAL_EQUAL = "EQUAL_EQUAL"
    BANG_EQUAL = "BANG_EQUAL"
    LESS = "LESS"
    LESS_EQUAL = "LESS_EQUAL"
    GREATER = "GREATER"
    GREATER_EQUAL = "GREATER_EQUAL"

    LET = "LET"
    BE = "BE"
    SET = "SET"
    TO = "TO"
    IF = "IF"
    THEN = "THEN"
    OTHERWISE = "OTHERWISE"
    WHILE = "WHILE"
    DO = "DO"
    REPEAT = "REPEAT"
    TIMES = "TIMES"
    FOR = "FOR"
    EACH = "EACH"
    IN = "IN"
    RETURN = "RETURN"
    SAY = "SAY"
    END = "END"
    APPEND = "APPEND"
    REMOVE = "REMOVE"
    FROM = "FROM"
    TRUE = "TRUE"
    FALSE = "FALSE"
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    BY = "BY"


KEYWORDS: Dict[str, TokenKind] = {
    kind.value.lower(): kind for kind in (
        TokenKind.LET, TokenKind.BE, TokenKind.SET, TokenKind.TO, TokenKind.IF,
        TokenKind.THEN, TokenKind.OTHERWISE, TokenKind.WHILE, TokenKind.DO,
        TokenKind.REPEAT, TokenKind.TIMES, TokenKind.FOR, TokenKind.EACH,
        TokenKind.IN, TokenKind.RETURN, TokenKind.SAY, TokenKind.END,
        TokenKind.APPEND, TokenKind.REMOVE, TokenKind.FROM, TokenKind.TRUE,
        TokenKind.FALSE, TokenKind.INCREASE, TokenKind.DECREASE, TokenKind.BY,
    )
}

# Two-character operators are tried before their one-character prefixes
DOUBLE_OPERATORS: Dict[str, TokenKind] = {
    '&&': TokenKind.AND_AND,
    '||': TokenKind.OR_OR,
    '==': TokenKind.EQUAL_EQUAL,
    '!=': TokenKind.BANG_EQUAL,
    '<=': TokenKind.LESS_EQUAL,
    '>=': TokenKind.GREATER_EQUAL,
}

SINGLE_OPERATORS: Dict[str, TokenKind] = {
    '(': TokenKind.LPAREN, ')': TokenKind.RPAREN,
    '[': TokenKind.LBRACKET, ']': TokenKind.RBRACKET,
    ',': TokenKind.COMMA, '.': TokenKind.DOT, ':': TokenKind.COLON,
    '+': TokenKind.PLUS, '-': TokenKind.MINUS, '*': TokenKind.STAR,
    '/': TokenKind.SLASH, '%': TokenKind.PERCENT, '!': TokenKind.BANG,
    '<': TokenKind.LESS, '>': TokenKind.GREATER,
}

STRING_ESCAPES = {'n': '\n', 'r': '\r', 't': '\t', '"': '"', '\\': '\\'}

# Binary operator precedence, low to high
BINARY_PRECEDENCE: Dict[TokenKind, int] = {
    TokenKind.OR_OR: 1,
    TokenKind.AND_AND: 2,
    TokenKind.EQUAL_EQUAL: 3, TokenKind.BANG_EQUAL: 3,
    TokenKind.LESS: 4, TokenKind.LESS_EQUAL: 4,
    TokenKind.GREATER: 4, TokenKind.GREATER_EQUAL: 4,
    TokenKind.PLUS: 5, TokenKind.MINUS: 5,
    TokenKind.STAR: 6, TokenKind.SLASH: 6, TokenKind.PERCENT: 6,
}

UNARY_OPERATORS = (TokenKind.BANG, TokenKind.MINUS, TokenKind.PLUS)

# Tokens that would extend an assignment target past name[index]
ASSIGNABLE_CONTINUATIONS = (TokenKind.LPAREN, TokenKind.LBRACKET)

# Keywords that may echo the block keyword after 'end'
BLOCK_ECHOES: Dict[TokenKind, Tuple[TokenKind, ...]] = {
    TokenKind.IF: (TokenKind.IF,),
    TokenKind.WHILE: (TokenKind.WHILE,),
    TokenKind.REPEAT: (TokenKind.REPEAT,),
    TokenKind.FOR: (TokenKind.FOR, TokenKind.EACH),
}


@dataclass(frozen=True)
class Token:
    """Reo token; offset points into the original source text"""
    kind: TokenKind
    text: str
    offset: int

    def __str__(self) -> str:
        return f"{self.kind.value}({self.text!r}@{self.offset})"


class ReoTokenizer:
    """Turns normalized Reo text into a flat token list ending in EOF"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def tokenize(self, source: str) -> List[Token]:
        """Normalize and tokenize raw source text"""
        return self.tokenize_normalized(normalize_source(source))

    def tokenize_normalized(self, normalized: NormalizedSource) -> List[Token]:
        text = normalized.text
        tokens: List[Token] = []
        pos = 0

        def emit(kind: TokenKind, literal: str, start: int) -> None:
            tokens.append(Token(kind, literal, normalized.source_offset(start)))

        while True:
            # Skip whitespace and comments
            while pos < len(text):
                if text[pos].isspace():
                    pos += 1
                elif text[pos] == '#':
                    while pos < len(text) and text[pos] not in '\r\n':
                        pos += 1
                else:
                    break

            if pos >= len(text):
                emit(TokenKind.EOF, "", pos)
                break

            start = pos
            char = text[pos]

            if char.isdigit() and char.isascii():
                pos = self._scan_number(text, pos)
                emit(TokenKind.NUMBER, text[start:pos], start)
            elif char == '_' or (char.isascii() and char.isalpha()):
                while pos < len(text) and (text[pos] == '_' or (text[pos].isascii() and text[pos].isalnum())):
                    pos += 1
                word = text[start:pos]
                emit(KEYWORDS.get(word.lower(), TokenKind.IDENT), word, start)
            elif char == '"':
                value, pos = self._scan_string(text, pos)
                emit(TokenKind.STRING, value, start)
            elif text[pos:pos + 2] in DOUBLE_OPERATORS:
                emit(DOUBLE_OPERATORS[text[pos:pos + 2]], text[pos:pos + 2], start)
                pos += 2
            elif char in SINGLE_OPERATORS:
                emit(SINGLE_OPERATORS[char], char, start)
                pos += 1
            elif char == '=':
                raise ReoLexError(
                    "Single '=' not allowed; use 'let NAME be VALUE' or 'set NAME to VALUE'",
                    normalized.source_offset(start))
            elif char in '&|':
                raise ReoLexError(f"Unexpected '{char}'; did you mean '{char * 2}'?",
                                  normalized.source_offset(start))
            else:
                raise ReoLexError(f"Unexpected character '{char}'", normalized.source_offset(start))

        if self.debug:
            print(f"[lexer] {len(tokens)} tokens", file=sys.stderr)
        return tokens

    def _scan_number(self, text: str, pos: int) -> int:
        while pos < len(text) and text[pos].isascii() and text[pos].isdigit():
            pos += 1
        # A '.' only belongs to the number when a digit follows it
        if pos + 1 < len(text) and text[pos] == '.' and text[pos + 1].isascii() and text[pos + 1].isdigit():
            pos += 1
            while pos < len(text) and text[pos].isascii() and text[pos].isdigit():
                pos += 1
        return pos

    def _scan_string(self, text: str, pos: int) -> Tuple[str, int]:
        """Scan a string literal starting at the opening quote"""
        pos += 1
        result = []
        while pos < len(text) and text[pos] != '"':
            if text[pos] == '\\':
                pos += 1
                if pos >= len(text):
                    break
                result.append(STRING_ESCAPES.get(text[pos], text[pos]))
                pos += 1
            else:
                result.append(text[pos])
                pos += 1
        if pos < len(text):
            pos += 1  # closing quote
        return ''.join(result), pos


class ReoGrammar:
    """Recursive-descent parser over a token list"""

    def __init__(self, tokens: List[Token], debug: bool = False):
        self.tokens = tokens
        self.pos = 0
        self.debug = debug

    # ---------------------------------------------------------------- helpers

    @property
    def current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]

    def peek(self, distance: int = 1) -> Token:
        if self.pos + distance < len(self.tokens):
            return self.tokens[self.pos + distance]
        return self.tokens[-1]

    def check(self, kind: TokenKind) -> bool:
        return self.current.kind == kind

    def match(self, kind: TokenKind) -> bool:
        if self.check(kind):
            self.pos += 1
            return True
        return False

    def advance(self) -> Token:
        token = self.current
        self.pos += 1
        return token

    def expect(self, kind: TokenKind, what: Optional[str] = None) -> Token:
        if not self.check(kind):
            found = self.current
            raise ReoParseError(
                f"Expected {what or kind.value} but found {found.kind.value}"
                + (f" '{found.text}'" if found.text else ""),
                found.offset, expected=kind.value, found=found.kind.value)
        return self.advance()

    # ---------------------------------------------------------------- program

    def parse_program(self) -> Program:
        functions = []
        statements = []
        while not self.check(TokenKind.EOF):
            if (self.check(TokenKind.TO) and self.peek(1).kind == TokenKind.IDENT
                    and self.peek(2).kind == TokenKind.LPAREN):
                functions.append(self.parse_function())
            else:
                statements.append(self.parse_statement())
        if self.debug:
            print(f"[parser] {len(functions)} functions, {len(statements)} statements",
                  file=sys.stderr)
        return Program(tuple(functions), tuple(statements))

    def parse_function(self) -> FunctionDeclaration:
        start = self.expect(TokenKind.TO).offset
        name = self.expect(TokenKind.IDENT, "function name").text
        self.expect(TokenKind.LPAREN)
        parameters = []
        if not self.check(TokenKind.RPAREN):
            parameters.append(self.expect(TokenKind.IDENT, "parameter name").text)
            while self.match(TokenKind.COMMA):
                parameters.append(self.expect(TokenKind.IDENT, "parameter name").text)
        self.expect(TokenKind.RPAREN)
        self.expect(TokenKind.COLON)
        body = self.parse_block((TokenKind.END,))
        self.expect(TokenKind.END)
        self.expect(TokenKind.DOT)
        return FunctionDeclaration(name, tuple(parameters), body, start)

    def parse_block(self, terminators: Tuple[TokenKind, ...]) -> tuple:
        """Statements up to (not including) one of the terminators"""
        statements = []
        while not self.check(TokenKind.EOF) and self.current.kind not in terminators:
            statements.append(self.parse_statement())
        return tuple(statements)

    def finish_block(self, block_keyword: TokenKind) -> None:
        """Consume 'end', any echoed block keywords, and the final '.'"""
        self.expect(TokenKind.END)
        for echo in BLOCK_ECHOES[block_keyword]:
            self.match(echo)
        self.expect(TokenKind.DOT)

    # ---------------------------------------------------------------- statements

    def parse_statement(self):
        handler = self.STATEMENT_PARSERS.get(self.current.kind)
        if handler is None:
            return self.parse_expression_statement()
        return handler(self)

    def parse_let(self) -> Let:
        start = self.advance().offset
        name = self.expect(TokenKind.IDENT, "variable name").text
        self.expect(TokenKind.BE)
        value = self.parse_expression()
        self.expect(TokenKind.DOT)
        return Let(name, value, start)

    def parse_set(self) -> Set:
        start = self.advance().offset
        target = self.parse_assignable()
        self.expect(TokenKind.TO)
        value = self.parse_expression()
        self.expect(TokenKind.DOT)
        return Set(target, value, start)

    def parse_adjustment(self) -> Set:
        """increase/decrease TARGET by EXPR, desugared into a Set"""
        keyword = self.advance()
        op = '+' if keyword.kind == TokenKind.INCREASE else '-'
        target = self.parse_assignable()
        self.expect(TokenKind.BY)
        amount = self.parse_expression()
        self.expect(TokenKind.DOT)
        return Set(target, Binary(op, target, amount, keyword.offset), keyword.offset)

    def parse_say(self) -> Say:
        start = self.advance().offset
        value = self.parse_expression()
        self.expect(TokenKind.DOT)
        return Say(value, start)

    def parse_append(self) -> Append:
        start = self.advance().offset
        value = self.parse_expression()
        self.expect(TokenKind.TO)
        list_name = self.expect(TokenKind.IDENT, "list name").text
        self.expect(TokenKind.DOT)
        return Append(value, list_name, start)

    def parse_remove(self) -> Remove:
        start = self.advance().offset
        value = self.parse_expression()
        self.expect(TokenKind.FROM)
        list_name = self.expect(TokenKind.IDENT, "list name").text
        self.expect(TokenKind.DOT)
        return Remove(value, list_name, start)

    def parse_if(self) -> If:
        start = self.advance().offset
        condition = self.parse_expression()
        self.match(TokenKind.COMMA)
        self.match(TokenKind.THEN)
        self.expect(TokenKind.COLON)
        then_body = self.parse_block((TokenKind.END, TokenKind.OTHERWISE))
        else_body = ()
        if self.match(TokenKind.OTHERWISE):
            self.expect(TokenKind.COLON)
            else_body = self.parse_block((TokenKind.END,))
        self.finish_block(TokenKind.IF)
        return If(condition, then_body, else_body, start)

    def parse_while(self) -> While:
        start = self.advance().offset
        condition = self.parse_expression()
        self.match(TokenKind.COMMA)
        self.match(TokenKind.DO)
        self.expect(TokenKind.COLON)
        body = self.parse_block((TokenKind.END,))
        self.finish_block(TokenKind.WHILE)
        return While(condition, body, start)

    def parse_repeat(self) -> Repeat:
        start = self.advance().offset
        count = self.parse_expression()
        self.expect(TokenKind.TIMES)
        self.expect(TokenKind.COLON)
        body = self.parse_block((TokenKind.END,))
        self.finish_block(TokenKind.REPEAT)
        return Repeat(count, body, start)

    def parse_for_each(self) -> ForEach:
        start = self.advance().offset
        self.expect(TokenKind.EACH)
        variable = self.expect(TokenKind.IDENT, "loop variable").text
        self.expect(TokenKind.IN)
        source = self.parse_expression()
        self.expect(TokenKind.COLON)
        body = self.parse_block((TokenKind.END,))
        self.finish_block(TokenKind.FOR)
        return ForEach(variable, source, body, start)

    def parse_return(self) -> Return:
        start = self.advance().offset
        value = self.parse_expression()
        self.expect(TokenKind.DOT)
        return Return(value, start)

    def parse_expression_statement(self) -> ExpressionStatement:
        start = self.current.offset
        expression = self.parse_expression()
        self.expect(TokenKind.DOT)
        return ExpressionStatement(expression, start)

    STATEMENT_PARSERS = {
        TokenKind.LET: parse_let,
        TokenKind.SET: parse_set,
        TokenKind.INCREASE: parse_adjustment,
        TokenKind.DECREASE: parse_adjustment,
        TokenKind.SAY: parse_say,
        TokenKind.APPEND: parse_append,
        TokenKind.REMOVE: parse_remove,
        TokenKind.IF: parse_if,
        TokenKind.WHILE: parse_while,
        TokenKind.REPEAT: parse_repeat,
        TokenKind.FOR: parse_for_each,
        TokenKind.RETURN: parse_return,
    }

    def parse_assignable(self):
        """A bare name or a name indexed once"""
        token = self.current
        if token.kind == TokenKind.IDENT:
            self.advance()
            target = Name(token.text, token.offset)
            if self.match(TokenKind.LBRACKET):
                index = self.parse_expression()
                self.expect(TokenKind.RBRACKET)
                target = Index(target, index, token.offset)
            follower = self.current.kind
            if follower not in ASSIGNABLE_CONTINUATIONS and follower not in BINARY_PRECEDENCE:
                return target
        raise ReoAssignmentTargetError(
            "Assignment target must be a variable or a list element (name[index])",
            token.offset, expected=TokenKind.IDENT.value, found=self.current.kind.value)

    # ---------------------------------------------------------------- expressions

    def parse_expression(self, min_precedence: int = 1):
        left = self.parse_unary()
        while True:
            precedence = BINARY_PRECEDENCE.get(self.current.kind)
            if precedence is None or precedence < min_precedence:
                return left
            op = self.advance().text
            right = self.parse_expression(precedence + 1)
            left = Binary(op, left, right, left.offset)

    def parse_unary(self):
        if self.current.kind in UNARY_OPERATORS:
            op_token = self.advance()
            operand = self.parse_unary()
            return Unary(op_token.text, operand, op_token.offset)
        return self.parse_postfix()

    def parse_postfix(self):
        bare_name = self.check(TokenKind.IDENT)
        expr = self.parse_primary()
        while True:
            if self.check(TokenKind.LPAREN):
                paren = self.advance()
                args = self.parse_arguments(TokenKind.RPAREN)
                if not (bare_name and isinstance(expr, Name)):
                    raise ReoParseError("Only simple names can be called", paren.offset,
                                        expected=TokenKind.IDENT.value, found=type(expr).__name__)
                expr = Call(expr.name, args, expr.offset)
            elif self.match(TokenKind.LBRACKET):
                index = self.parse_expression()
                self.expect(TokenKind.RBRACKET)
                expr = Index(expr, index, expr.offset)
            else:
                return expr

    def parse_arguments(self, closing: TokenKind) -> tuple:
        """Comma-separated expressions up to the closing token (consumed)"""
        items = []
        if not self.check(closing):
            items.append(self.parse_expression())
            while self.match(TokenKind.COMMA):
                items.append(self.parse_expression())
        self.expect(closing)
        return tuple(items)

    def parse_primary(self):
        token = self.current
        kind = token.kind
        if kind == TokenKind.NUMBER:
            self.advance()
            return NumberLiteral(float(token.text), token.offset)
        if kind == TokenKind.STRING:
            self.advance()
            return TextLiteral(token.text, token.offset)
        if kind in (TokenKind.TRUE, TokenKind.FALSE):
            self.advance()
            return TruthLiteral(kind == TokenKind.TRUE, token.offset)
        if kind == TokenKind.IDENT:
            self.advance()
            return Name(token.text, token.offset)
        if kind == TokenKind.LPAREN:
            self.advance()
            expr = self.parse_expression()
            self.expect(TokenKind.RPAREN)
            return expr
        if kind == TokenKind.LBRACKET:
            self.advance()
            return ListLiteral(self.parse_arguments(TokenKind.RBRACKET), token.offset)
        raise ReoParseError(
            f"Expected an expression but found {kind.value}" + (f" '{token.text}'" if token.text else ""),
            token.offset, expected="expression", found=kind.value)


class ReoParser:
    """Main Reo parser combining normalizer, tokenizer and grammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.tokenizer = ReoTokenizer(debug)

    def parse_file(self, filepath: str) -> Program:
        """Parse a Reo source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content)

    def parse_string(self, text: str) -> Program:
        """Parse Reo source code from string"""
        normalized = normalize_source(text)
        if self.debug:
            print(f"[normalizer] {normalized.text!r}", file=sys.stderr)
        tokens = self.tokenizer.tokenize_normalized(normalized)
        grammar = ReoGrammar(tokens, self.debug)
        try:
            return grammar.parse_program()
        except RecursionError:
            raise self._too_deep(grammar) from None

    def parse_expression(self, text: str):
        """Parse a single Reo expression (no trailing '.')"""
        grammar = ReoGrammar(self.tokenize(text), self.debug)
        try:
            expr = grammar.parse_expression()
        except RecursionError:
            raise self._too_deep(grammar) from None
        grammar.expect(TokenKind.EOF, "end of input")
        return expr

    @staticmethod
    def _too_deep(grammar: ReoGrammar) -> ReoParseError:
        token = grammar.current
        return ReoParseError("Expression nested too deeply", token.offset,
                             expected="shallower nesting", found=token.kind.value)

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Reo source code"""
        return self.tokenizer.tokenize(text)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> ReoParser:
    """Create a Reo parser"""
    return ReoParser(debug=debug)


def create_debug_parser() -> ReoParser:
    """Create a Reo parser with debug enabled"""
    return ReoParser(debug=True)


def parse_source(text: str) -> Program:
    """Normalize, tokenize and parse one source unit"""
    return create_parser().parse_string(text)


# Utility functions for working with the AST
def iter_child_nodes(node: Any):
    """Yield the AST nodes directly owned by node"""
    for f in fields(node):
        value = getattr(node, f.name)
        if is_dataclass(value):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if is_dataclass(item):
                    yield item


def find_nodes_by_type(root: Any, node_type: type) -> List[Any]:
    """Find all nodes of a specific class in an AST"""
    result = []

    def search(node):
        if isinstance(node, node_type):
            result.append(node)
        for child in iter_child_nodes(node):
            search(child)

    search(root)
    return result


def pretty_print_ast(node: Any, indent: int = 0) -> str:
    """Pretty print an AST node with indentation"""
    prefix = "  " * indent
    scalars = []
    children = []
    for f in fields(node):
        if f.name == 'offset':
            continue
        value = getattr(node, f.name)
        if is_dataclass(value):
            children.append((f.name, [value]))
        elif isinstance(value, tuple) and any(is_dataclass(item) for item in value):
            children.append((f.name, list(value)))
        else:
            scalars.append(f"{f.name}={value!r}")
    offset = f" @{node.offset}" if hasattr(node, 'offset') else ""
    lines = [f"{prefix}{type(node).__name__}({', '.join(scalars)}){offset}"]
    for label, items in children:
        lines.append(f"{prefix}  {label}:")
        for item in items:
            lines.append(pretty_print_ast(item, indent + 2))
    return '\n'.join(lines)


def ast_to_dict(node: Any) -> Any:
    """Convert an AST to plain dicts/lists (for JSON output)"""
    if is_dataclass(node):
        result = {'node': type(node).__name__}
        for f in fields(node):
            result[f.name] = ast_to_dict(getattr(node, f.name))
        return result
    if isinstance(node, tuple):
        return [ast_to_dict(item) for item in node]
    return node
