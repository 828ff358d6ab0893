"""
Reo Text Normalizer
Rewrites English connective phrases into operator symbols before tokenizing
"""

from typing import List, NamedTuple, Tuple

from pyparsing import (
    CaselessKeyword, FollowedBy, Literal, MatchFirst, ParserElement, Regex, alphanums
)


# Characters that count as part of a word when checking phrase boundaries
WORD_CHARS = alphanums

# Longer phrases come before their textual prefixes
PHRASE_TABLE: Tuple[Tuple[str, str], ...] = (
    ("is greater than or equal to", ">="),
    ("is less than or equal to", "<="),
    ("is greater than", ">"),
    ("is less than", "<"),
    ("is not equal to", "!="),
    ("is not", "!="),
    ("is equal to", "=="),
    ("is at least", ">="),
    ("is at most", "<="),
    ("plus", "+"),
    ("minus", "-"),
    ("multiplied by", "*"),
    ("times", "*"),
    ("divided by", "/"),
    ("modulo", "%"),
    ("mod", "%"),
    ("and", "&&"),
    ("or", "||"),
    ("not", "!"),
)


class NormalizedSource(NamedTuple):
    """Normalized text plus, for every character, the source offset it came from"""
    text: str
    origin: List[int]

    def source_offset(self, pos: int) -> int:
        if pos < len(self.origin):
            return self.origin[pos]
        return self.origin[-1]


def _make_phrase(phrase: str, symbol: str) -> ParserElement:
    matcher = CaselessKeyword(phrase, ident_chars=WORD_CHARS)
    if phrase == "times":
        # 'repeat N times:' keeps its keyword
        matcher = matcher + ~FollowedBy(Literal(":"))
    return matcher.set_parse_action(lambda: symbol)


def build_normalizer() -> ParserElement:
    """Build the scanner: string literals pass through, phrases become symbols"""
    # Unterminated literals run to end of input
    string_literal = Regex(r'"(?:[^"\\]|\\[\s\S]?)*"?')
    phrases = [_make_phrase(phrase, symbol) for phrase, symbol in PHRASE_TABLE]
    return MatchFirst([string_literal] + phrases).parse_with_tabs()


_NORMALIZER = build_normalizer()


def normalize_source(text: str) -> NormalizedSource:
    """Normalize text, keeping an origin map back to the source offsets"""
    pieces: List[str] = []
    origin: List[int] = []
    last_end = 0

    for tokens, start, end in _NORMALIZER.scan_string(text):
        pieces.append(text[last_end:start])
        origin.extend(range(last_end, start))
        replacement = tokens[0]
        pieces.append(replacement)
        if replacement.startswith('"'):
            origin.extend(range(start, end))
        else:
            origin.extend([start] * len(replacement))
        last_end = end

    pieces.append(text[last_end:])
    origin.extend(range(last_end, len(text)))
    origin.append(len(text))
    return NormalizedSource(''.join(pieces), origin)


def normalize(text: str) -> str:
    """Rewrite English phrases into canonical operator symbols"""
    return normalize_source(text).text
