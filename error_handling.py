"""
Error taxonomy and error reporting for Reo
Exception classes for every pipeline stage plus pure formatting helpers
"""

from typing import List, Optional, Dict, Any
from pyparsing import lineno, col, line


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_error(
    kind: str,
    message: str,
    offset: int,
    line_num: int = 0,
    column: int = 0,
    expected: Optional[str] = None,
    found: Optional[str] = None,
    context: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable error structure"""
    return {
        'kind': kind,
        'message': message,
        'offset': offset,
        'line': line_num,
        'column': column,
        'expected': expected,
        'found': found,
        'context': context,
        'suggestions': suggestions or []
    }


def format_error(error: Dict) -> str:
    """Format error dict as string"""
    if error['line']:
        error_msg = f"{error['kind']} at line {error['line']}, column {error['column']}:\n"
    else:
        error_msg = f"{error['kind']} at offset {error['offset']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['expected']:
        error_msg += f"  Expected: {error['expected']}\n"

    if error['found']:
        error_msg += f"  Found: {error['found']}\n"

    if error['context']:
        error_msg += f"  Context:\n{error['context']}\n"

    if error['suggestions']:
        error_msg += f"  Suggestions:\n"
        for suggestion in error['suggestions']:
            error_msg += f"    - {suggestion}\n"

    return error_msg


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class ReoError(Exception):
    """Base class for every Reo failure; carries a source offset"""
    kind = "ReoError"

    def __init__(self, message: str, offset: int = 0):
        self.message = message
        self.offset = offset
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind} at {self.offset}: {self.message}"

    def to_dict(self, source_text: Optional[str] = None) -> Dict[str, Any]:
        """Structured form (kind, message, offset; line/column when source is known)"""
        line_num, column = locate(source_text, self.offset)
        return {
            'kind': self.kind,
            'message': self.message,
            'offset': self.offset,
            'line': line_num,
            'column': column,
        }


class ReoLexError(ReoError):
    kind = "LexError"


class ReoParseError(ReoError):
    """Missing expected token, non-name call target, bad assignment target"""
    kind = "ParseError"

    def __init__(self, message: str, offset: int = 0,
                 expected: Optional[str] = None, found: Optional[str] = None):
        self.expected = expected
        self.found = found
        super().__init__(message, offset)

    def to_dict(self, source_text: Optional[str] = None) -> Dict[str, Any]:
        result = super().to_dict(source_text)
        result['expected'] = self.expected
        result['found'] = self.found
        return result


class ReoAssignmentTargetError(ReoParseError):
    kind = "AssignmentTargetError"


class ReoBindingError(ReoError):
    """Raised before execution when names or return placement cannot be bound"""
    kind = "BindingError"


class ReoRuntimeError(ReoError):
    kind = "RuntimeError"


class ReoUndefinedVariableError(ReoRuntimeError):
    kind = "UndefinedVariableError"

    def __init__(self, name: str, offset: int = 0):
        self.name = name
        super().__init__(f"Undefined variable: {name}", offset)


class ReoTypeError(ReoRuntimeError):
    kind = "TypeError"


class ReoIndexError(ReoRuntimeError):
    kind = "IndexError"


class ReoTimeoutError(ReoRuntimeError):
    kind = "TimeoutError"


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def locate(source_text: Optional[str], offset: int) -> tuple:
    """Map an offset to a 1-based (line, column); (0, 0) without source"""
    if source_text is None:
        return 0, 0
    offset = max(0, min(offset, len(source_text)))
    return lineno(offset, source_text), col(offset, source_text)


def get_context_lines(source_text: str, offset: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    line_num, col_num = locate(source_text, offset)
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


def generate_suggestions(exc: ReoError, source_text: str) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []
    error_line = line(max(0, min(exc.offset, len(source_text))), source_text) if source_text else ""

    if isinstance(exc, ReoLexError):
        if "'='" in exc.message:
            suggestions.append("Use 'let NAME be VALUE.' or 'set NAME to VALUE.' to assign, "
                               "'is equal to' or '==' to compare")
        if "'&'" in exc.message or "'|'" in exc.message:
            suggestions.append("Write 'and'/'or' (or '&&'/'||') for logical operators")
        if "';'" in exc.message:
            suggestions.append("Statements end with '.', not ';'")

    if isinstance(exc, ReoAssignmentTargetError):
        suggestions.append("Only a variable or a single list element (name[index]) can be assigned")
    elif isinstance(exc, ReoParseError):
        if exc.expected == "DOT":
            suggestions.append("Every statement ends with '.'")
        if exc.expected == "END" or exc.found == "EOF":
            suggestions.append("Close every block with 'end.' (for example 'end if.')")
        if exc.expected == "COLON":
            suggestions.append("Block headers end with ':' (for example 'while x is less than 3:')")
        if "times" in error_line.lower() and exc.expected == "TIMES":
            suggestions.append("Write the count before 'times:' (for example 'repeat 3 times:')")

    if isinstance(exc, ReoUndefinedVariableError):
        suggestions.append(f"Bind '{exc.name}' with 'let {exc.name} be ...' before using it; "
                           "functions cannot see the caller's variables")

    return suggestions


def enhance_error_dict(exc: ReoError, source_text: str) -> Dict:
    """Convert a Reo exception to an error dict with context and suggestions"""
    line_num, col_num = locate(source_text, exc.offset)
    return make_error(
        kind=exc.kind,
        message=exc.message,
        offset=exc.offset,
        line_num=line_num,
        column=col_num,
        expected=getattr(exc, 'expected', None),
        found=getattr(exc, 'found', None),
        context=get_context_lines(source_text, exc.offset) if source_text else None,
        suggestions=generate_suggestions(exc, source_text)
    )


class ReoErrorHandler:
    """Formats errors against one source text"""
    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename

    def describe(self, exc: ReoError) -> str:
        """Human readable report with file name, context and suggestions"""
        return f"{self.filename}: " + format_error(enhance_error_dict(exc, self.source_text))

    def to_dict(self, exc: ReoError) -> Dict[str, Any]:
        return exc.to_dict(self.source_text)
