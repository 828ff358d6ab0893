"""
Reo binding checker
Resolves every call name and checks 'return' placement before a program runs
"""

import sys
from typing import Dict, Iterable, Optional

from ast_nodes import (
  Binary, Call, FunctionDeclaration, Index, ListLiteral, Program, Return, Unary,
  child_blocks
)
from error_handling import ReoBindingError
from parsing import iter_child_nodes
from stdlib import get_builtin_function


# ============================================================================
# FUNCTION TABLE
# ============================================================================

def function_key(name: str) -> str:
  """Names are case-insensitive"""
  return name.lower()


def build_function_table(functions: Iterable[FunctionDeclaration],
                         known: Optional[Dict[str, FunctionDeclaration]] = None) -> Dict[str, FunctionDeclaration]:
  """Register every declaration by name; all are visible before any statement runs"""
  table = dict(known or {})
  declared_here = set()
  for func in functions:
    key = function_key(func.name)
    if get_builtin_function(func.name) is not None:
      raise ReoBindingError(f"Function '{func.name}' would shadow the built-in '{key}'", func.offset)
    if key in declared_here:
      raise ReoBindingError(f"Function '{func.name}' is declared more than once", func.offset)
    seen_params = set()
    for param in func.parameters:
      if param.lower() in seen_params:
        raise ReoBindingError(f"Parameter '{param}' repeated in function '{func.name}'", func.offset)
      seen_params.add(param.lower())
    declared_here.add(key)
    table[key] = func
  return table


# ============================================================================
# CHECKS
# ============================================================================

def check_call(call: Call, functions: Dict[str, FunctionDeclaration]) -> None:
  builtin = get_builtin_function(call.name)
  if builtin is not None:
    expected = builtin['arity']
  else:
    func = functions.get(function_key(call.name))
    if func is None:
      raise ReoBindingError(f"Unknown function: {call.name}", call.offset)
    expected = len(func.parameters)
  if len(call.args) != expected:
    plural = "" if expected == 1 else "s"
    raise ReoBindingError(
      f"{call.name} expects {expected} argument{plural}, got {len(call.args)}", call.offset)


def check_expression(expr, functions: Dict[str, FunctionDeclaration]) -> None:
  if isinstance(expr, Call):
    check_call(expr, functions)
  if isinstance(expr, (Call, Binary, Unary, Index, ListLiteral)):
    for child in iter_child_nodes(expr):
      check_expression(child, functions)


def check_block(statements, functions: Dict[str, FunctionDeclaration], in_function: bool) -> None:
  for statement in statements:
    if isinstance(statement, Return) and not in_function:
      raise ReoBindingError("'return' is only allowed inside a function", statement.offset)
    blocks = child_blocks(statement)
    nested = {id(inner) for block in blocks for inner in block}
    for child in iter_child_nodes(statement):
      if id(child) not in nested:
        check_expression(child, functions)
    for block in blocks:
      check_block(block, functions, in_function)


def analyze_program(program: Program,
                    known_functions: Optional[Dict[str, FunctionDeclaration]] = None,
                    debug: bool = False) -> Dict[str, FunctionDeclaration]:
  """
  Check a program and return its function table (lower-cased name -> declaration)

  Raises:
    ReoBindingError for unknown call names, argument count mismatches,
    duplicate declarations and 'return' outside a function
  """
  functions = build_function_table(program.functions, known_functions)
  for func in program.functions:
    check_block(func.body, functions, in_function=True)
  check_block(program.statements, functions, in_function=False)
  if debug:
    print(f"[binder] {len(functions)} functions bound", file=sys.stderr)
  return functions


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class ReoAnalyzer:
  """Binding checker that can carry functions across REPL inputs"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def analyze(self, program: Program,
              known_functions: Optional[Dict[str, FunctionDeclaration]] = None) -> Dict[str, FunctionDeclaration]:
    return analyze_program(program, known_functions, self.debug)


def create_analyzer(debug: bool = False) -> ReoAnalyzer:
  """Factory function returning an analyzer"""
  return ReoAnalyzer(debug=debug)


def create_debug_analyzer() -> ReoAnalyzer:
  """Factory function returning a debug analyzer"""
  return create_analyzer(debug=True)
