"""
Expression template catalogue

Canonical expressions the recognizers are known to misread, with the
misreadings observed for each. Tokens are compared after
``scoring.clean_for_matching`` (carets and superscripts dropped, so ``x4``
matches ``x^4`` and ``x⁴``).

The catalogue is module data built at import time and never mutated.
"""

from typing import Tuple

from .types import ExpressionTemplate, TemplateSignature


EXPONENTIAL_TANGENT = ExpressionTemplate(
    name="exponential-tangent over secant squared",
    canonical_form="∫ e^(tan(2x))/sec^2(2x) dx",
    required_tokens=frozenset({"e", "tan", "sec", "2x"}),
    optional_tokens=frozenset({"dx", "sec2"}),
    known_variants=(
        "e^tan 2x",
        "e tan 2x",
        "sec 2x",
        "sec^2(2x)",
        "e tan 2x sec 2x dx",
    ),
    base_confidence=95,
    signatures=(
        TemplateSignature(r"e.*tan.*2\s*x", 10, "e..tan..2x sequence"),
        TemplateSignature(r"sec.*2.*x", 10, "sec..2x sequence"),
    ),
)

SIMPLE_EXPONENTIAL = ExpressionTemplate(
    name="simple exponential",
    canonical_form="∫ e^x dx",
    required_tokens=frozenset({"e", "x"}),
    optional_tokens=frozenset({"dx", "ex"}),
    known_variants=(
        "e^x",
        "ex",
        "e x",
        "e x dx",
    ),
    base_confidence=98,
    signatures=(
        TemplateSignature(
            r"e.*x.*dx", 30, "e..x..dx without trig",
            absent_tokens=frozenset({"tan", "sec"}),
        ),
    ),
)

POLYNOMIAL = ExpressionTemplate(
    name="polynomial 5x^4 - 6x^2 + 3",
    canonical_form="∫ (5x^4 - 6x^2 + 3) dx",
    required_tokens=frozenset({"5", "6", "3", "x"}),
    optional_tokens=frozenset({"x4", "x2", "dx"}),
    known_variants=(
        "5x^4 - 6x^2 + 3",
        "5x4 6x2 3",
        "5x4 - 6x2 + 3",
        "(5x4 - 6x2 + 3) dx",
    ),
    base_confidence=92,
    signatures=(
        TemplateSignature(r"5.*6.*3", 25, "5..6..3 coefficient sequence"),
        TemplateSignature(r"x\s*4", 15, "x4 term"),
        TemplateSignature(r"x\s*2", 15, "x2 term"),
    ),
)

SINE_COSINE = ExpressionTemplate(
    name="sine cosine product",
    canonical_form="∫ sin(x) cos(x) dx",
    required_tokens=frozenset({"sin", "cos"}),
    optional_tokens=frozenset({"dx", "x"}),
    known_variants=(
        "sin x cos x dx",
        "sinx cosx",
        "sin(x) cos(x)",
    ),
    base_confidence=90,
)

NATURAL_LOG = ExpressionTemplate(
    name="natural logarithm",
    canonical_form="∫ ln(x) dx",
    required_tokens=frozenset({"ln", "x"}),
    optional_tokens=frozenset({"dx"}),
    known_variants=(
        "ln x dx",
        "lnx dx",
        "In x dx",
    ),
    base_confidence=88,
)

POWER_DERIVATIVE = ExpressionTemplate(
    name="power rule derivative",
    canonical_form="d/dx (x^2)",
    required_tokens=frozenset({"d/dx", "x2"}),
    optional_tokens=frozenset(),
    known_variants=(
        "d/dx x^2",
        "d/dx (x2)",
        "d dx x2",
    ),
    base_confidence=88,
)


TEMPLATE_CATALOGUE: Tuple[ExpressionTemplate, ...] = (
    EXPONENTIAL_TANGENT,
    SIMPLE_EXPONENTIAL,
    POLYNOMIAL,
    SINE_COSINE,
    NATURAL_LOG,
    POWER_DERIVATIVE,
)
