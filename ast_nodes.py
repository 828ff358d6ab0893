"""
Reo abstract syntax tree
Frozen dataclasses; every node carries the source offset of its leading token
"""

from dataclasses import dataclass, field
from typing import Tuple, Union


# ============================================================================
# EXPRESSIONS
# ============================================================================

@dataclass(frozen=True)
class NumberLiteral:
    value: float
    offset: int = 0


@dataclass(frozen=True)
class TextLiteral:
    value: str
    offset: int = 0


@dataclass(frozen=True)
class TruthLiteral:
    value: bool
    offset: int = 0


@dataclass(frozen=True)
class Name:
    name: str
    offset: int = 0


@dataclass(frozen=True)
class Unary:
    op: str
    operand: 'Expression'
    offset: int = 0


@dataclass(frozen=True)
class Binary:
    op: str
    left: 'Expression'
    right: 'Expression'
    offset: int = 0


@dataclass(frozen=True)
class Call:
    """Call of a built-in or user function; the callee is always a bare name"""
    name: str
    args: Tuple['Expression', ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class Index:
    target: 'Expression'
    index: 'Expression'
    offset: int = 0


@dataclass(frozen=True)
class ListLiteral:
    items: Tuple['Expression', ...] = ()
    offset: int = 0


Expression = Union[NumberLiteral, TextLiteral, TruthLiteral, Name, Unary,
                   Binary, Call, Index, ListLiteral]


# ============================================================================
# STATEMENTS
# ============================================================================

@dataclass(frozen=True)
class Let:
    name: str
    value: Expression
    offset: int = 0


@dataclass(frozen=True)
class Set:
    """Assignment; target is a Name or an Index whose target is a Name"""
    target: Union[Name, Index]
    value: Expression
    offset: int = 0


@dataclass(frozen=True)
class Say:
    value: Expression
    offset: int = 0


@dataclass(frozen=True)
class If:
    condition: Expression
    then_body: Tuple['Statement', ...] = ()
    else_body: Tuple['Statement', ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class While:
    condition: Expression
    body: Tuple['Statement', ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class Repeat:
    count: Expression
    body: Tuple['Statement', ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class ForEach:
    variable: str
    source: Expression
    body: Tuple['Statement', ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class Append:
    value: Expression
    list_name: str
    offset: int = 0


@dataclass(frozen=True)
class Remove:
    value: Expression
    list_name: str
    offset: int = 0


@dataclass(frozen=True)
class Return:
    value: Expression
    offset: int = 0


@dataclass(frozen=True)
class ExpressionStatement:
    expression: Expression
    offset: int = 0


Statement = Union[Let, Set, Say, If, While, Repeat, ForEach, Append, Remove,
                  Return, ExpressionStatement]


# ============================================================================
# DECLARATIONS
# ============================================================================

@dataclass(frozen=True)
class FunctionDeclaration:
    name: str
    parameters: Tuple[str, ...] = ()
    body: Tuple[Statement, ...] = ()
    offset: int = 0


@dataclass(frozen=True)
class Program:
    functions: Tuple[FunctionDeclaration, ...] = field(default_factory=tuple)
    statements: Tuple[Statement, ...] = field(default_factory=tuple)


def child_blocks(statement: Statement) -> Tuple[Tuple[Statement, ...], ...]:
    """Nested statement blocks of a block statement (empty for simple statements)"""
    if isinstance(statement, If):
        return (statement.then_body, statement.else_body)
    if isinstance(statement, (While, Repeat, ForEach)):
        return (statement.body,)
    return ()
