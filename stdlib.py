"""
Reo Standard Library
Operator semantics, list operations and built-in functions
"""

from typing import Callable, Dict, List, Optional
import math
import operator

from error_handling import ReoRuntimeError
from utilities import (
  binary_arithmetic_op,
  binary_comparison_op,
  dispatch_by_type,
  involves,
  require_list,
  resolve_index,
  truncating_modulo,
  values_equal,
)
from values import (
  LIST, TEXT,
  make_list, make_number, make_text, make_truth,
  to_integer, to_number, to_text, to_truth
)


# ============================================================================
# ARITHMETIC FUNCTIONS
# ============================================================================

def reo_add(x: Dict, y: Dict) -> Dict:
  """Text concatenation when either side is Text, numeric sum otherwise"""
  if involves(TEXT, x, y):
    return make_text(to_text(x) + to_text(y))
  return make_number(to_number(x) + to_number(y))


reo_sub = binary_arithmetic_op(operator.sub)
reo_mul = binary_arithmetic_op(operator.mul)


def _ieee_divide(a: float, b: float) -> float:
  if b == 0:
    if a == 0 or math.isnan(a):
      return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)
  return a / b


reo_div = binary_arithmetic_op(_ieee_divide)


def reo_mod(x: Dict, y: Dict) -> Dict:
  return make_number(truncating_modulo(x, y))


# ============================================================================
# COMPARISON AND LOGIC FUNCTIONS
# ============================================================================

def reo_eq(x: Dict, y: Dict) -> Dict:
  return make_truth(values_equal(x, y))


def reo_ne(x: Dict, y: Dict) -> Dict:
  return make_truth(not values_equal(x, y))


reo_lt = binary_comparison_op(operator.lt)
reo_gt = binary_comparison_op(operator.gt)
reo_le = binary_comparison_op(operator.le)
reo_ge = binary_comparison_op(operator.ge)


def reo_and(x: Dict, y: Dict) -> Dict:
  """Both operands are already evaluated; no short-circuit"""
  return make_truth(to_truth(x) and to_truth(y))


def reo_or(x: Dict, y: Dict) -> Dict:
  return make_truth(to_truth(x) or to_truth(y))


def reo_not(x: Dict) -> Dict:
  return make_truth(not to_truth(x))


def reo_negate(x: Dict) -> Dict:
  return make_number(-to_number(x))


def reo_identity(x: Dict) -> Dict:
  return x


BINARY_OPERATORS: Dict[str, Callable[[Dict, Dict], Dict]] = {
    '+': reo_add,
    '-': reo_sub,
    '*': reo_mul,
    '/': reo_div,
    '%': reo_mod,
    '==': reo_eq,
    '!=': reo_ne,
    '<': reo_lt,
    '>': reo_gt,
    '<=': reo_le,
    '>=': reo_ge,
    '&&': reo_and,
    '||': reo_or,
}

UNARY_OPERATORS: Dict[str, Callable[[Dict], Dict]] = {
    '!': reo_not,
    '-': reo_negate,
    '+': reo_identity,
}


# ============================================================================
# LIST OPERATIONS
# ============================================================================

def list_get(target: Dict, index: Dict, offset: int = 0) -> Dict:
  """target[index]"""
  items = require_list(target, "Indexing", offset)
  return items[resolve_index(items, index, offset)]


def list_set(target: Dict, index: Dict, value: Dict, offset: int = 0) -> None:
  """target[index] = value, in place on the shared backing list"""
  items = require_list(target, "Index assignment", offset)
  items[resolve_index(items, index, offset)] = value


def list_append(target: Dict, value: Dict, offset: int = 0) -> None:
  require_list(target, "append ... to", offset).append(value)


def list_remove(target: Dict, value: Dict, offset: int = 0) -> None:
  """Delete every element whose display text equals the value's display text"""
  items = require_list(target, "remove ... from", offset)
  needle = to_text(value)
  items[:] = [item for item in items if to_text(item) != needle]


def list_items(source: Dict, offset: int = 0) -> List[Dict]:
  """Snapshot of the elements a 'for each' loop visits"""
  return list(require_list(source, "for each", offset))


# ============================================================================
# BUILT-IN FUNCTIONS
# ============================================================================

def reo_length(value: Dict) -> Dict:
  """Characters of Text, elements of a List, to_number of anything else"""
  return make_number(dispatch_by_type(
      value,
      {TEXT: lambda v: len(v['value']), LIST: lambda v: len(v['value'])},
      default_handler=to_number
  ))


def reo_range(start: Dict, end: Dict) -> Dict:
  """Inclusive integer range, counting down when start > end"""
  first = to_integer(start)
  last = to_integer(end)
  if first is None or last is None:
    raise ReoRuntimeError(f"range needs finite bounds, got {to_text(start)} and {to_text(end)}")
  step = 1 if first <= last else -1
  return make_list([make_number(i) for i in range(first, last + step, step)])


def reo_to_number(value: Dict) -> Dict:
  return make_number(to_number(value))


def reo_to_text(value: Dict) -> Dict:
  return make_text(to_text(value))


def reo_to_truth(value: Dict) -> Dict:
  return make_truth(to_truth(value))


def reo_ask(prompt: Dict, context: Dict) -> Dict:
  """Write the prompt and block until one line of input arrives"""
  context['write'](to_text(prompt))
  answer = context['read_line']()
  return make_text(answer if answer is not None else "")


def reo_now(context: Dict) -> Dict:
  return make_text(context['clock']().isoformat())


def reo_format_now(fmt: Dict, context: Dict) -> Dict:
  """Current time formatted with strftime directives"""
  return make_text(context['clock']().strftime(to_text(fmt)))


def reo_read_text(path: Dict) -> Dict:
  file_path = to_text(path)
  try:
    with open(file_path, 'r', encoding='utf-8') as f:
      return make_text(f.read())
  except (OSError, UnicodeDecodeError) as e:
    raise ReoRuntimeError(f"read_text error for '{file_path}': {e}") from e


def reo_write_text(path: Dict, content: Dict) -> Dict:
  file_path = to_text(path)
  try:
    with open(file_path, 'w', encoding='utf-8') as f:
      f.write(to_text(content))
  except OSError as e:
    raise ReoRuntimeError(f"write_text error for '{file_path}': {e}") from e
  return make_text(file_path)


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_function(name: str, func: Callable, arity: int,
                          type_signature: str = "", needs_context: bool = False) -> Dict:
  """Create a built-in function value"""
  return {
      'type': 'builtin_function',
      'name': name,
      'func': func,
      'arity': arity,
      'type_signature': type_signature,
      'needs_context': needs_context
  }


BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    "length": make_builtin_function("length", reo_length, 1, "a -> Number"),
    "range": make_builtin_function("range", reo_range, 2, "Number -> Number -> List Number"),
    "to_number": make_builtin_function("to_number", reo_to_number, 1, "a -> Number"),
    "to_text": make_builtin_function("to_text", reo_to_text, 1, "a -> Text"),
    "to_truth": make_builtin_function("to_truth", reo_to_truth, 1, "a -> Truth"),
    "ask": make_builtin_function("ask", reo_ask, 1, "a -> Text", needs_context=True),
    "now": make_builtin_function("now", reo_now, 0, "Text", needs_context=True),
    "format_now": make_builtin_function("format_now", reo_format_now, 1, "Text -> Text",
                                        needs_context=True),
    "read_text": make_builtin_function("read_text", reo_read_text, 1, "Text -> Text"),
    "write_text": make_builtin_function("write_text", reo_write_text, 2, "Text -> a -> Text"),
}


def get_builtin_function(name: str) -> Optional[Dict]:
  """Look up a built-in by name, case-insensitively"""
  return BUILTIN_FUNCTIONS.get(name.lower())


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())


def call_builtin(builtin: Dict, args: List[Dict], context: Dict) -> Dict:
  """Invoke a built-in with already-evaluated arguments"""
  if builtin['needs_context']:
    return builtin['func'](*args, context)
  return builtin['func'](*args)
