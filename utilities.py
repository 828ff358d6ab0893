"""
Utilities module for the Reo interpreter
Common helpers shared by the standard library and the interpreter
"""

from typing import Any, Callable, Dict, List, Optional
import math

from error_handling import ReoRuntimeError, ReoTypeError, ReoIndexError
from values import (
  LIST, TEXT, TRUTH,
  make_number, make_truth, to_number, to_text, to_truth, to_integer,
  EQUALITY_TOLERANCE
)


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  operation: str,
  expected: str,
  actual: Dict,
  offset: int = 0
) -> ReoTypeError:
  """
  Generate type mismatch error

  Args:
    operation: What was being done (e.g. "for each", "indexing")
    expected: Expected kind
    actual: Actual value dict
    offset: Source offset of the failing node

  Returns:
    ReoTypeError with formatted message
  """
  return ReoTypeError(
    f"{operation} requires a {expected}, got {actual.get('type', 'Unknown')}",
    offset
  )


def arity_error(func_name: str, expected: int, got: int, offset: int = 0) -> ReoRuntimeError:
  """Generate arity mismatch error"""
  plural = "" if expected == 1 else "s"
  return ReoRuntimeError(
    f"{func_name} requires {expected} argument{plural}, got {got}",
    offset
  )


# ==================== VALIDATION UTILITIES ====================

def require_list(value: Dict, operation: str, offset: int = 0) -> List[Dict]:
  """Return the backing sequence of a List value or raise ReoTypeError"""
  if value['type'] != LIST:
    raise type_mismatch_error(operation, LIST, value, offset)
  return value['value']


def resolve_index(items: List[Dict], index: Dict, offset: int = 0) -> int:
  """
  Convert an index value to a valid position in items

  Raises:
    ReoIndexError when the floored index is outside 0..len-1 or not finite
  """
  position = to_integer(index)
  if position is None or position < 0 or position >= len(items):
    raise ReoIndexError(
      f"Index out of range: {to_text(index)} (list has {len(items)} elements)",
      offset
    )
  return position


def validate_arity(func_name: str, args: List[Dict], expected: int, offset: int = 0) -> None:
  """
  Validate the number of call arguments

  Raises:
    ReoRuntimeError if the count differs
  """
  if len(args) != expected:
    raise arity_error(func_name, expected, len(args), offset)


def dispatch_by_type(
  value: Dict,
  handlers: Dict[str, Callable],
  default_handler: Optional[Callable] = None
) -> Any:
  """
  Generic type-based dispatch

  Args:
    value: Value dict with 'type' field
    handlers: Map of kind names to handler functions
    default_handler: Fallback handler

  Returns:
    Result of calling the appropriate handler

  Examples:
    dispatch_by_type(
      {"type": "Number", "value": 42.0},
      {"Number": lambda v: v['value'] * 2}
    ) -> 84.0
  """
  value_type = value.get('type', 'Unknown')
  handler = handlers.get(value_type, default_handler)
  if handler is None:
    raise ValueError(f"No handler for type: {value_type}")
  return handler(value)


# ==================== BINARY OPERATION FACTORIES ====================

def involves(kind: str, x: Dict, y: Dict) -> bool:
  return x['type'] == kind or y['type'] == kind


def binary_arithmetic_op(op: Callable[[float, float], float]) -> Callable[[Dict, Dict], Dict]:
  """
  Factory for numeric binary operations (both sides coerced with to_number)

  Examples:
    reo_sub = binary_arithmetic_op(operator.sub)
    reo_sub(make_text("5"), make_truth(True)) -> Number 4
  """
  def arithmetic(x: Dict, y: Dict) -> Dict:
    return make_number(op(to_number(x), to_number(y)))

  return arithmetic


def binary_comparison_op(op: Callable[[Any, Any], bool]) -> Callable[[Dict, Dict], Dict]:
  """
  Factory for ordering comparisons

  Compares display text ordinally when either side is Text, numbers otherwise.
  """
  def comparison(x: Dict, y: Dict) -> Dict:
    if involves(TEXT, x, y):
      return make_truth(op(to_text(x), to_text(y)))
    return make_truth(op(to_number(x), to_number(y)))

  return comparison


def values_equal(x: Dict, y: Dict) -> bool:
  """Equality: text if either is Text, truth if either is Truth, else numeric"""
  if involves(TEXT, x, y):
    return to_text(x) == to_text(y)
  if involves(TRUTH, x, y):
    return to_truth(x) == to_truth(y)
  return abs(to_number(x) - to_number(y)) < EQUALITY_TOLERANCE


def truncating_modulo(x: Dict, y: Dict) -> float:
  """Remainder of the floored operands, signed like the dividend; NaN on zero"""
  dividend = to_integer(x)
  divisor = to_integer(y)
  if dividend is None or divisor is None or divisor == 0:
    return math.nan
  remainder = abs(dividend) % abs(divisor)
  return float(-remainder if dividend < 0 else remainder)
