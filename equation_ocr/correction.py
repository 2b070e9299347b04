"""
Text correction engine

Turns recognizer output into expression syntax with an ordered, append-only
catalogue of regex rewrite rules. Rules run once each, in catalogue order, in
a single pass. Every rule is idempotent and so is the full pass: correcting
already-corrected text returns it unchanged.

Rule order matters. Character deletions and whitespace normalization come
first, then spoken symbols, exponents, differentials and operator spacing.
Integral-sign repair runs last because operator spacing can isolate a
standalone f. No rule creates a match for a rule that ran before it.
"""

import logging
import re
from typing import List, Sequence, Tuple

from .types import CorrectionRule

logger = logging.getLogger(__name__)


_SUPERSCRIPT_DIGITS = str.maketrans("⁰¹²³⁴⁵⁶⁷⁸⁹", "0123456789")
_UNICODE_OPERATORS = {"−": "-", "–": "-", "—": "-", "×": "*", "·": "*", "÷": "/"}

_FUNCTIONS = r"(?:sin|cos|tan|sec|csc|cot|ln|log)"
_DIFFERENTIAL_VARS = "xyztuv"


def _superscript(match: "re.Match[str]") -> str:
    return "^" + match.group(1).translate(_SUPERSCRIPT_DIGITS)


def _unicode_operator(match: "re.Match[str]") -> str:
    return _UNICODE_OPERATORS[match.group(0)]


# =============================================================================
# Rule catalogue (append-only)
# =============================================================================

CORRECTION_RULES: Tuple[CorrectionRule, ...] = (
    # --- character cleanup ---------------------------------------------------
    # Everything that deletes characters runs first so no later rule can join
    # two tokens that an earlier rule has already looked at.
    CorrectionRule(
        id="unicode-operators",
        match_pattern=r"[−–—×·÷]",
        replacement=_unicode_operator,
        rationale="Typographic minus, dashes, times and division signs",
    ),
    CorrectionRule(
        id="noise-glyphs",
        match_pattern=r"[_`´\"“”]",
        replacement="",
        rationale="Underscores, backticks and quotes are scanner noise",
    ),
    CorrectionRule(
        id="integral-glyph-bar",
        match_pattern=r"^\s*[|\[]",
        replacement="∫",
        rationale="A tall integral sign at the start is often read as | or [",
    ),
    CorrectionRule(
        id="stray-bars",
        match_pattern=r"\|",
        replacement="",
        rationale="Remaining vertical bars are ruling lines or grid artifacts",
    ),
    CorrectionRule(
        id="superscript-digits",
        match_pattern=r"\s*([⁰¹²³⁴⁵⁶⁷⁸⁹]+)",
        replacement=_superscript,
        rationale="Superscript digits become caret exponents",
    ),
    CorrectionRule(
        id="caret-spacing",
        match_pattern=r"\s*\^\s*",
        replacement="^",
        rationale="No spaces around the exponent caret",
    ),
    CorrectionRule(
        id="whitespace-collapse",
        match_pattern=r"\s+",
        replacement=" ",
        rationale="Recognizers emit newlines and runs of spaces between glyphs",
    ),
    CorrectionRule(
        id="whitespace-trim",
        match_pattern=r"^ | $",
        replacement="",
        rationale="Leading/trailing space left after collapsing",
    ),
    # --- spoken symbols ------------------------------------------------------
    CorrectionRule(
        id="spoken-integral",
        match_pattern=r"\b(?:integral|int)\b",
        replacement="∫",
        rationale="Integral written or read out as a word",
        flags=re.IGNORECASE,
    ),
    CorrectionRule(
        id="spoken-sum",
        match_pattern=r"\bsum\b",
        replacement="∑",
        rationale="Summation written as a word",
        flags=re.IGNORECASE,
    ),
    CorrectionRule(
        id="spoken-root",
        match_pattern=r"\b(?:square root|sqrt)\b",
        replacement="√",
        rationale="Square root written as a word",
        flags=re.IGNORECASE,
    ),
    # --- exponents -----------------------------------------------------------
    CorrectionRule(
        id="exponential-tangent",
        match_pattern=r"\be\s*\^?\s*(\()?\s*tan\s*(\()?\s*(\d*)\s*x(?![\w^])(?(2)\s*\))(?(1)\s*\))",
        replacement=r"e^(tan(\3x))",
        rationale="A raised tan argument is flattened onto the baseline",
    ),
    CorrectionRule(
        id="trig-argument",
        match_pattern=r"(?<![a-z])(sin|cos|tan|sec|csc|cot)(?!h\b)\s*(\d*)\s*([a-z])(?![\w^(])",
        replacement=r"\1(\2\3)",
        rationale="Trig functions get an explicit bracketed argument (2tan x as well as tan x)",
        flags=re.IGNORECASE,
    ),
    CorrectionRule(
        id="exponential-power",
        match_pattern=r"\be\s*\^?\s*x(?![\w^])",
        replacement="e^x",
        rationale="A raised x after e is read as e x",
    ),
    CorrectionRule(
        id="glued-exponent",
        match_pattern=r"(?<![a-z^])([a-z])(\d+)(?![\d.])",
        replacement=r"\1^\2",
        rationale="A small raised digit after a variable lands on the baseline (5x4)",
        flags=re.IGNORECASE,
    ),
    # --- differentials -------------------------------------------------------
    CorrectionRule(
        id="differential-join",
        match_pattern=rf"\bd\s+([{_DIFFERENTIAL_VARS}])\b",
        replacement=r"d\1",
        rationale="d and its variable are recognized as separate words",
    ),
    CorrectionRule(
        id="differential-space",
        match_pattern=rf"(?:(?<=[\d)])|(?<=\^[a-z]))(d[{_DIFFERENTIAL_VARS}])$",
        replacement=r" \1",
        rationale="Trailing differential glued to the integrand",
    ),
    # --- structure -----------------------------------------------------------
    CorrectionRule(
        id="paren-open-spacing",
        match_pattern=r"\(\s+",
        replacement="(",
        rationale="No space after an opening parenthesis",
    ),
    CorrectionRule(
        id="paren-close-spacing",
        match_pattern=r"\s+\)",
        replacement=")",
        rationale="No space before a closing parenthesis",
    ),
    CorrectionRule(
        id="implicit-product-parens",
        match_pattern=r"\)\s*\(",
        replacement=")*(",
        rationale="Adjacent bracketed factors multiply",
    ),
    CorrectionRule(
        id="implicit-product-coefficient",
        match_pattern=rf"(?<![\^\d.a-zA-Z])(\d+)\s*(?=\(|√|{_FUNCTIONS}(?![a-z]))",
        replacement=r"\1*",
        rationale="A coefficient directly before a bracket or function multiplies it",
    ),
    CorrectionRule(
        id="operator-spacing",
        match_pattern=r"(?<=[\w).\]])\s*([=+\-])\s*(?=[\w(∫√∑.])",
        replacement=r" \1 ",
        rationale="Binary + - = are surrounded by single spaces",
    ),
    CorrectionRule(
        id="division-compact",
        match_pattern=r"\s*/\s*",
        replacement="/",
        rationale="Fractions are written without spaces",
    ),
    # --- integral sign -------------------------------------------------------
    # These run after operator spacing, which can put whitespace in front of
    # a standalone f. An f right after an integral sign is the integrand.
    CorrectionRule(
        id="integral-glyph-letter",
        match_pattern=r"(?<!\S)(?<!∫\s)[fJj](?=\s+[\w(√∑])|^[sS](?=\s+[\w(√∑])",
        replacement="∫",
        rationale="Standalone f, J, j (or a leading s) is a misread integral sign",
    ),
    CorrectionRule(
        id="integral-restore",
        match_pattern=rf"^(?!.*[∫∑])(?=.*(?<!/)\bd[{_DIFFERENTIAL_VARS}]$)",
        replacement="∫",
        rationale="A trailing differential with no integral sign means the sign was lost",
    ),
    CorrectionRule(
        id="integral-spacing",
        match_pattern=r"∫\s*(?=[^\s^)/])",
        replacement="∫ ",
        rationale="Exactly one space between the integral sign and its integrand",
    ),
    CorrectionRule(
        id="final-whitespace-collapse",
        match_pattern=r"\s+",
        replacement=" ",
        rationale="Removals above can leave double spaces",
    ),
    CorrectionRule(
        id="final-whitespace-trim",
        match_pattern=r"^ | $",
        replacement="",
        rationale="Removals above can leave edge spaces",
    ),
)


# =============================================================================
# Engine
# =============================================================================

class CorrectionEngine:
    """Single-pass interpreter over a correction rule catalogue"""

    def __init__(self, rules: Sequence[CorrectionRule] = CORRECTION_RULES):
        """
        Args:
            rules: Ordered rule catalogue

        Raises:
            ValueError: If two rules share an id
        """
        ids = [rule.id for rule in rules]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate correction rule ids: {duplicates}")

        self.rules = tuple(rules)
        self._compiled: List[Tuple[CorrectionRule, "re.Pattern[str]"]] = []
        for rule in self.rules:
            try:
                self._compiled.append((rule, rule.compiled()))
            except re.error as e:
                logger.warning("[Correction] rule %s has an invalid pattern: %s", rule.id, e)

    def apply(self, text: str) -> str:
        """
        Correct a text string

        Never raises: text no rule applies to is returned unchanged.
        """
        corrected, _ = self.apply_with_trace(text)
        return corrected

    def apply_with_trace(self, text: str) -> Tuple[str, Tuple[str, ...]]:
        """
        Correct a text string and report which rules changed it

        Returns:
            (corrected text, ids of rules that changed the text, in order)
        """
        if text is None:
            text = ""
        elif not isinstance(text, str):
            text = str(text)

        applied = []
        for rule, pattern in self._compiled:
            try:
                updated = pattern.sub(rule.replacement, text)
            except (re.error, IndexError, KeyError, TypeError, ValueError) as e:
                logger.debug("[Correction] rule %s skipped: %s", rule.id, e)
                continue

            if updated != text:
                applied.append(rule.id)
                text = updated

        logger.debug("[Correction] applied %s", ", ".join(applied) or "no rules")
        return text, tuple(applied)


# =============================================================================
# Expression extraction
# =============================================================================

_INTEGRAL = re.compile(rf"∫[^∫]*?\bd[{_DIFFERENTIAL_VARS}]\b")
_DERIVATIVE = re.compile(rf"d/d[{_DIFFERENTIAL_VARS}]\s*(?:\([^)]*\)|[^\s=]+)")
_LIMIT = re.compile(r"\blim\b[^=]*?=\s*[^=\s]+")
_MATH_SIGNAL = re.compile(
    r"[\d=+\-*/^()∫∑√]|\b(?:sin|cos|tan|sec|csc|cot|ln|log|lim|d[xyztuv])\b",
    re.IGNORECASE,
)

MAX_EXPRESSION_LENGTH = 200


def extract_expressions(text: str) -> List[str]:
    """
    Pull individual integrals, derivatives and limits out of corrected text

    Args:
        text: Corrected text

    Returns:
        Expressions in order of appearance, without duplicates (empty when
        none of the patterns occur)

    Examples:
        >>> extract_expressions("∫ x dx and ∫ e^x dx")
        ['∫ x dx', '∫ e^x dx']
    """
    found = []
    for pattern in (_INTEGRAL, _DERIVATIVE, _LIMIT):
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(0).strip()))

    expressions = []
    for _, expression in sorted(found):
        if expression not in expressions:
            expressions.append(expression)
    return expressions


def is_plausible_expression(text: str) -> bool:
    """Whether text carries at least one digit, operator, bracket or known function"""
    text = (text or "").strip()
    if not text or len(text) > MAX_EXPRESSION_LENGTH:
        return False
    return bool(_MATH_SIGNAL.search(text))
