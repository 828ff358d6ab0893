"""
Reo runtime values
Tagged union of value dicts plus the total coercions between kinds
"""

from typing import Any, Callable, Dict, List, Optional
import math
import re


NUMBER = "Number"
TEXT = "Text"
TRUTH = "Truth"
LIST = "List"
NOTHING = "Nothing"

VALUE_KINDS = (NUMBER, TEXT, TRUTH, LIST, NOTHING)

EQUALITY_TOLERANCE = 1e-12

# Plain decimal text accepted by to_number
_DECIMAL_PATTERN = re.compile(r'\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*\Z')


# ============================================================================
# CONSTRUCTORS
# ============================================================================

def make_value(value: Any, type_name: str) -> Dict:
  """Create a runtime value; only a List's inner sequence is ever mutated"""
  return {
      'value': value,
      'type': type_name
  }


def make_number(number: float) -> Dict:
  return make_value(float(number), NUMBER)


def make_text(text: str) -> Dict:
  return make_value(text, TEXT)


def make_truth(flag: bool) -> Dict:
  return make_value(bool(flag), TRUTH)


def make_list(items: Optional[List[Dict]] = None) -> Dict:
  """Create a List value; the given sequence becomes the shared backing list"""
  return make_value(items if items is not None else [], LIST)


def make_nothing() -> Dict:
  return make_value(None, NOTHING)


# ============================================================================
# DISPLAY
# ============================================================================

def format_number(number: float) -> str:
  """Invariant display of a number: 5, 2.5, 0.30000000000000004, Infinity"""
  if math.isnan(number):
    return "NaN"
  if math.isinf(number):
    return "Infinity" if number > 0 else "-Infinity"
  if number.is_integer() and abs(number) < 1e16:
    return str(int(number))
  # repr already pads the exponent to two digits: 1e+16, 1e-05
  return repr(number).replace("e", "E")


_TEXT_COERCIONS: Dict[str, Callable[[Any], str]] = {
    NUMBER: format_number,
    TEXT: lambda text: text,
    TRUTH: lambda flag: "true" if flag else "false",
    LIST: lambda items: "[" + ", ".join(to_text(item) for item in items) + "]",
    NOTHING: lambda _: "nothing",
}


def to_text(value: Dict) -> str:
  """Canonical display form of any value"""
  return _TEXT_COERCIONS[value['type']](value['value'])


# ============================================================================
# NUMERIC AND TRUTH COERCIONS
# ============================================================================

def parse_decimal(text: str) -> float:
  """Parse plain decimal text; anything else is 0"""
  if _DECIMAL_PATTERN.match(text):
    return float(text)
  return 0.0


_NUMBER_COERCIONS: Dict[str, Callable[[Any], float]] = {
    NUMBER: lambda number: number,
    TEXT: parse_decimal,
    TRUTH: lambda flag: 1.0 if flag else 0.0,
    LIST: lambda items: float(len(items)),
    NOTHING: lambda _: 0.0,
}

_TRUTH_COERCIONS: Dict[str, Callable[[Any], bool]] = {
    NUMBER: lambda number: number != 0,
    TEXT: lambda text: text != "",
    TRUTH: lambda flag: flag,
    LIST: lambda items: len(items) > 0,
    NOTHING: lambda _: False,
}


def to_number(value: Dict) -> float:
  return _NUMBER_COERCIONS[value['type']](value['value'])


def to_truth(value: Dict) -> bool:
  return _TRUTH_COERCIONS[value['type']](value['value'])


def to_integer(value: Dict) -> Optional[int]:
  """Floor of to_number; None when the number is infinite or NaN"""
  number = to_number(value)
  if not math.isfinite(number):
    return None
  return math.floor(number)
