"""
Reo Interpreter - reference backend
Tree-walking evaluator over the AST; functions, frames and context are plain data
Side effects (console, clock, files) go through the execution context
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import sys

import pykka

from ast_nodes import (
  Append, Binary, Call, ExpressionStatement, ForEach, FunctionDeclaration, If,
  Index, Let, ListLiteral, Name, NumberLiteral, Program, Remove, Repeat, Return,
  Say, Set, TextLiteral, TruthLiteral, Unary, While
)
from error_handling import (
  ReoRuntimeError, ReoTimeoutError, ReoUndefinedVariableError
)
from parsing import create_parser
from semantics import analyze_program, function_key
from stdlib import (
  BINARY_OPERATORS, UNARY_OPERATORS,
  call_builtin, get_builtin_function,
  list_append, list_get, list_items, list_remove, list_set
)
from utilities import validate_arity
from values import (
  make_list, make_nothing, make_number, make_text, make_truth,
  to_integer, to_text, to_truth
)


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

def _console_write(text: str) -> None:
  sys.stdout.write(text)
  sys.stdout.flush()


def _console_read_line() -> Optional[str]:
  """One line from stdin without its line break; None at end of input"""
  line = sys.stdin.readline()
  if line == "":
    return None
  return line.rstrip("\r\n")


def make_execution_context(write: Optional[Callable[[str], Any]] = None,
                           read_line: Optional[Callable[[], Optional[str]]] = None,
                           clock: Optional[Callable[[], datetime]] = None,
                           debug: bool = False) -> Dict:
  """Create the execution context: I/O sinks, clock, debug flag and function table"""
  return {
      'write': write or _console_write,
      'read_line': read_line or _console_read_line,
      'clock': clock or datetime.now,
      'debug': debug,
      'functions': {},
      'halted': False
  }


# ============================================================================
# FRAME OPERATIONS
# ============================================================================

def make_frame(bindings: Optional[Dict[str, Dict]] = None) -> Dict[str, Dict]:
  """A flat name -> value mapping keyed by lower-cased names"""
  return dict(bindings or {})


def frame_bind(frame: Dict[str, Dict], name: str, value: Dict) -> None:
  frame[name.lower()] = value


def frame_lookup(frame: Dict[str, Dict], name: str, offset: int = 0) -> Dict:
  value = frame.get(name.lower())
  if value is None:
    raise ReoUndefinedVariableError(name, offset)
  return value


class _ReturnSignal(Exception):
  """Unwinds a function body when 'return' runs"""

  def __init__(self, value: Dict):
    super().__init__()
    self.value = value


# ============================================================================
# EXPRESSION EVALUATION
# ============================================================================

def eval_expression(node, frame: Dict, context: Dict) -> Dict:
  """Evaluate an expression node to a runtime value"""
  return EXPRESSION_EVALUATORS[type(node)](node, frame, context)


def eval_number(node: NumberLiteral, frame: Dict, context: Dict) -> Dict:
  return make_number(node.value)


def eval_text(node: TextLiteral, frame: Dict, context: Dict) -> Dict:
  return make_text(node.value)


def eval_truth(node: TruthLiteral, frame: Dict, context: Dict) -> Dict:
  return make_truth(node.value)


def eval_name(node: Name, frame: Dict, context: Dict) -> Dict:
  return frame_lookup(frame, node.name, node.offset)


def eval_list(node: ListLiteral, frame: Dict, context: Dict) -> Dict:
  return make_list([eval_expression(item, frame, context) for item in node.items])


def eval_unary(node: Unary, frame: Dict, context: Dict) -> Dict:
  operand = eval_expression(node.operand, frame, context)
  return UNARY_OPERATORS[node.op](operand)


def eval_binary(node: Binary, frame: Dict, context: Dict) -> Dict:
  # Both sides are always evaluated, left first
  left = eval_expression(node.left, frame, context)
  right = eval_expression(node.right, frame, context)
  return BINARY_OPERATORS[node.op](left, right)


def eval_index(node: Index, frame: Dict, context: Dict) -> Dict:
  target = eval_expression(node.target, frame, context)
  index = eval_expression(node.index, frame, context)
  return list_get(target, index, node.offset)


def eval_call(node: Call, frame: Dict, context: Dict) -> Dict:
  """Call a built-in or user function with left-to-right evaluated arguments"""
  args = [eval_expression(arg, frame, context) for arg in node.args]
  if context['debug']:
    print(f"[interpreter] call {node.name}({', '.join(to_text(a) for a in args)})",
          file=sys.stderr)

  builtin = get_builtin_function(node.name)
  if builtin is not None:
    validate_arity(node.name, args, builtin['arity'], node.offset)
    try:
      return call_builtin(builtin, args, context)
    except ReoRuntimeError as e:
      if not e.offset:
        e.offset = node.offset
      raise

  func = context['functions'].get(function_key(node.name))
  if func is None:
    raise ReoRuntimeError(f"Unknown function: {node.name}", node.offset)
  return call_function(func, args, context, node.offset)


def call_function(func: FunctionDeclaration, args: List[Dict], context: Dict,
                  offset: int = 0) -> Dict:
  """Run a user function in a fresh frame holding only its parameters"""
  validate_arity(func.name, args, len(func.parameters), offset)
  call_frame = make_frame()
  for param, arg in zip(func.parameters, args):
    frame_bind(call_frame, param, arg)
  try:
    execute_block(func.body, call_frame, context)
  except _ReturnSignal as signal:
    return signal.value
  return make_nothing()


EXPRESSION_EVALUATORS: Dict[type, Callable[[Any, Dict, Dict], Dict]] = {
    NumberLiteral: eval_number,
    TextLiteral: eval_text,
    TruthLiteral: eval_truth,
    Name: eval_name,
    ListLiteral: eval_list,
    Unary: eval_unary,
    Binary: eval_binary,
    Index: eval_index,
    Call: eval_call,
}


# ============================================================================
# STATEMENT EXECUTION
# ============================================================================

def execute_block(statements, frame: Dict, context: Dict) -> None:
  for statement in statements:
    execute_statement(statement, frame, context)


def check_halted(context: Dict, offset: int) -> None:
  if context['halted']:
    raise ReoTimeoutError("Program stopped after its time limit", offset)


def execute_statement(statement, frame: Dict, context: Dict) -> None:
  check_halted(context, statement.offset)
  if context['debug']:
    print(f"[interpreter] {type(statement).__name__} @{statement.offset}", file=sys.stderr)
  STATEMENT_EXECUTORS[type(statement)](statement, frame, context)


def exec_let(statement: Let, frame: Dict, context: Dict) -> None:
  frame_bind(frame, statement.name, eval_expression(statement.value, frame, context))


def exec_set(statement: Set, frame: Dict, context: Dict) -> None:
  """Rebind a name, or store into an element of the list a name holds"""
  target = statement.target
  if isinstance(target, Name):
    frame_bind(frame, target.name, eval_expression(statement.value, frame, context))
    return
  owner = target.target
  container = frame_lookup(frame, owner.name, owner.offset)
  index = eval_expression(target.index, frame, context)
  value = eval_expression(statement.value, frame, context)
  list_set(container, index, value, target.offset)


def exec_say(statement: Say, frame: Dict, context: Dict) -> None:
  value = eval_expression(statement.value, frame, context)
  context['write'](to_text(value) + "\n")


def exec_if(statement: If, frame: Dict, context: Dict) -> None:
  if to_truth(eval_expression(statement.condition, frame, context)):
    execute_block(statement.then_body, frame, context)
  else:
    execute_block(statement.else_body, frame, context)


def exec_while(statement: While, frame: Dict, context: Dict) -> None:
  while to_truth(eval_expression(statement.condition, frame, context)):
    check_halted(context, statement.offset)
    execute_block(statement.body, frame, context)


def exec_repeat(statement: Repeat, frame: Dict, context: Dict) -> None:
  """The count is evaluated once; below one or non-finite runs zero times"""
  count = to_integer(eval_expression(statement.count, frame, context))
  if count is None:
    return
  for _ in range(count):
    check_halted(context, statement.offset)
    execute_block(statement.body, frame, context)


def exec_for_each(statement: ForEach, frame: Dict, context: Dict) -> None:
  source = eval_expression(statement.source, frame, context)
  for item in list_items(source, statement.offset):
    check_halted(context, statement.offset)
    frame_bind(frame, statement.variable, item)
    execute_block(statement.body, frame, context)


def exec_append(statement: Append, frame: Dict, context: Dict) -> None:
  value = eval_expression(statement.value, frame, context)
  target = frame_lookup(frame, statement.list_name, statement.offset)
  list_append(target, value, statement.offset)


def exec_remove(statement: Remove, frame: Dict, context: Dict) -> None:
  value = eval_expression(statement.value, frame, context)
  target = frame_lookup(frame, statement.list_name, statement.offset)
  list_remove(target, value, statement.offset)


def exec_return(statement: Return, frame: Dict, context: Dict) -> None:
  raise _ReturnSignal(eval_expression(statement.value, frame, context))


def exec_expression(statement: ExpressionStatement, frame: Dict, context: Dict) -> None:
  eval_expression(statement.expression, frame, context)


STATEMENT_EXECUTORS: Dict[type, Callable[[Any, Dict, Dict], None]] = {
    Let: exec_let,
    Set: exec_set,
    Say: exec_say,
    If: exec_if,
    While: exec_while,
    Repeat: exec_repeat,
    ForEach: exec_for_each,
    Append: exec_append,
    Remove: exec_remove,
    Return: exec_return,
    ExpressionStatement: exec_expression,
}


# ============================================================================
# PROGRAM EXECUTION
# ============================================================================

def run_program(program: Program, context: Optional[Dict] = None,
                frame: Optional[Dict] = None) -> Dict:
  """
  Bind and run a program; returns the top-level frame.

  Functions already in context['functions'] stay visible, so a REPL session
  can feed one program after another through the same context and frame.
  """
  if context is None:
    context = make_execution_context()
  if frame is None:
    frame = make_frame()
  context['functions'] = analyze_program(program, context['functions'], context['debug'])
  try:
    execute_block(program.statements, frame, context)
  except RecursionError as e:
    raise ReoRuntimeError("Maximum call depth exceeded") from e
  return frame


def run_source(text: str, context: Optional[Dict] = None) -> Dict:
  """Normalize, parse, bind and run one source unit"""
  if context is None:
    context = make_execution_context()
  program = create_parser(context['debug']).parse_string(text)
  return run_program(program, context)


# ============================================================================
# ACTOR-HOSTED EXECUTION (Using Pykka)
# ============================================================================

class ProgramActor(pykka.ThreadingActor):
  """Actor that runs one Reo program on its own thread"""

  use_daemon_thread = True

  def __init__(self, program: Program, context: Dict, frame: Optional[Dict] = None):
    super().__init__()
    self.program = program
    self.context = context
    self.frame = frame

  def on_receive(self, message):
    if message == 'run':
      return run_program(self.program, self.context, self.frame)
    return None


def run_with_timeout(program: Program, context: Dict, timeout: Optional[float],
                     frame: Optional[Dict] = None) -> Dict:
  """
  Run a program inside a ProgramActor and wait at most timeout seconds.

  Errors raised by the program propagate to the caller. On timeout the
  run is marked halted, so the actor thread stops at its next statement
  or loop iteration, and ReoTimeoutError is raised.

  Each run gets its own copy of the context, so a later run cannot clear
  the halt flag of an abandoned one.
  """
  run_context = dict(context, halted=False)
  actor_ref = ProgramActor.start(program, run_context, frame)
  try:
    result = actor_ref.ask('run', timeout=timeout)
  except pykka.Timeout as e:
    run_context['halted'] = True
    raise ReoTimeoutError(f"Program did not finish within {timeout} seconds") from e
  finally:
    actor_ref.stop(block=False)
    context['functions'] = run_context['functions']
  return result


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class ReoInterpreter:
  """Keeps one frame and function table across runs (used by the REPL)"""

  def __init__(self, context: Optional[Dict] = None, debug: bool = False):
    self.context = context or make_execution_context(debug=debug)
    self.parser = create_parser(self.context['debug'])
    self.frame = make_frame()

  def run(self, program: Program, timeout: Optional[float] = None) -> Dict:
    if timeout is not None:
      return run_with_timeout(program, self.context, timeout, self.frame)
    return run_program(program, self.context, self.frame)

  def run_source(self, text: str, timeout: Optional[float] = None) -> Dict:
    return self.run(self.parser.parse_string(text), timeout)

  @property
  def functions(self) -> Dict[str, FunctionDeclaration]:
    return self.context['functions']


def create_interpreter(debug: bool = False, context: Optional[Dict] = None) -> ReoInterpreter:
  """Factory function returning an interpreter"""
  if context is None:
    context = make_execution_context(debug=debug)
  return ReoInterpreter(context)


def create_debug_interpreter() -> ReoInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
