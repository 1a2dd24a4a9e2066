# ABOUTME: Resolves a (course, topic) pair to a difficulty tier: K-8, HS, or AP.
# ABOUTME: Exposes a resolver protocol so the keyword heuristic can be swapped out.

from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol, Sequence, Tuple

K8 = "K-8"
HS = "HS"
AP = "AP"

TOPIC_GRADE_MAP: Dict[str, str] = {
    # K-5 arithmetic and foundations
    "Counting": K8,
    "Addition": K8,
    "Subtraction": K8,
    "Multiplication": K8,
    "Division": K8,
    "Place Value": K8,
    "Rounding": K8,
    "Estimation": K8,
    "Fractions": K8,
    "Decimals": K8,
    "Mixed Numbers": K8,
    "Factors": K8,
    "Multiples": K8,
    "Divisibility": K8,
    "Prime Numbers": K8,
    "Shapes": K8,
    "Perimeter": K8,
    "Area of Rectangles": K8,
    "Measurement": K8,
    "Money": K8,
    "Data Graphs": K8,
    # 6-8 pre-algebra and basic geometry
    "Ratios": K8,
    "Proportions": K8,
    "Percentages": K8,
    "Integers": K8,
    "Absolute Value": K8,
    "Exponents": K8,
    "Square Roots": K8,
    "Scientific Notation": K8,
    "Order of Operations": K8,
    "Variables": K8,
    "One-Step Equations": K8,
    "Two-Step Equations": K8,
    "Coordinate Plane": K8,
    "Slope": K8,
    "Linear Functions": K8,
    "Pythagorean Theorem": K8,
    "Volume": K8,
    "Surface Area": K8,
    "Transformations": K8,
    "Probability": K8,
    "Mean Median Mode": K8,
    # Algebra I
    "Systems of Equations": HS,
    "Systems of Inequalities": HS,
    "Polynomials": HS,
    "Factoring": HS,
    "Quadratic Equations": HS,
    "Quadratic Formula": HS,
    "Completing the Square": HS,
    "Exponential Functions": HS,
    "Radical Expressions": HS,
    "Rational Expressions": HS,
    "Domain and Range": HS,
    "Function Notation": HS,
    "Sequences": HS,
    # Geometry
    "Proofs": HS,
    "Logic": HS,
    "Congruence": HS,
    "Similarity": HS,
    "Right Triangles": HS,
    "Trigonometric Ratios": HS,
    "Circles": HS,
    "Arc Length": HS,
    "Sector Area": HS,
    "Polygons": HS,
    "Solids": HS,
    # Algebra II / precalculus
    "Complex Numbers": HS,
    "Logarithms": HS,
    "Natural Logarithms": HS,
    "Polynomial Functions": HS,
    "Rational Functions": HS,
    "Radical Functions": HS,
    "Inverse Functions": HS,
    "Conic Sections": HS,
    "Matrices": HS,
    "Vectors": HS,
    "Unit Circle": HS,
    "Trigonometric Identities": HS,
    "Law of Sines": HS,
    "Law of Cosines": HS,
    "Polar Coordinates": HS,
    "Parametric Equations": HS,
    "Binomial Theorem": HS,
    # AP calculus and statistics
    "Limits": AP,
    "Continuity": AP,
    "Derivatives": AP,
    "Differentiation": AP,
    "Rates of Change": AP,
    "Integrals": AP,
    "Integration": AP,
    "Riemann Sums": AP,
    "Differential Equations": AP,
    "Series Convergence": AP,
    "Hypothesis Testing": AP,
    "Confidence Intervals": AP,
    "Regression Analysis": AP,
    "Distributions": AP,
}

AP_KEYWORDS: Tuple[str, ...] = ("calculus", "ap ", "derivative", "integral")
K8_KEYWORDS: Tuple[str, ...] = (
    "grade",
    "arithmetic",
    "prealgebra",
    "elementary",
    "middle",
    "fraction",
    "decimal",
    "percent",
    "ratio",
    "integer",
    "addition",
    "subtraction",
    "multiplication",
    "division",
    "shape",
    "measurement",
    "graphing lines",
)
HS_KEYWORDS: Tuple[str, ...] = (
    "algebra",
    "geometry",
    "function",
    "quadratic",
    "linear",
    "polynomial",
    "exponent",
    "logarithm",
    "trig",
    "proof",
    "theorem",
    "matrix",
    "vector",
    "complex",
)


class TopicDifficultyResolver(Protocol):
    def __call__(self, course_name: str, topic_name: str) -> str:
        ...


class KeywordTopicResolver:
    """
    Default resolver: AP keywords first, then the curated topic map, then
    K-8 and HS keyword heuristics, defaulting to HS.

    The map is scanned in insertion order and matches on substring, so
    "Adding Fractions" resolves through "Fractions".
    """

    def __init__(
        self,
        topic_map: Optional[Mapping[str, str]] = None,
        default_tier: str = HS,
        ap_keywords: Sequence[str] = AP_KEYWORDS,
        k8_keywords: Sequence[str] = K8_KEYWORDS,
        hs_keywords: Sequence[str] = HS_KEYWORDS,
    ) -> None:
        source = TOPIC_GRADE_MAP if topic_map is None else topic_map
        self._entries = [(key.lower(), tier) for key, tier in source.items()]
        self.default_tier = default_tier
        self.ap_keywords = tuple(ap_keywords)
        self.k8_keywords = tuple(k8_keywords)
        self.hs_keywords = tuple(hs_keywords)

    def __call__(self, course_name: str, topic_name: str) -> str:
        course = (course_name or "").lower()
        topic = (topic_name or "").lower()
        combined = f"{course} {topic}"

        if any(keyword in combined for keyword in self.ap_keywords):
            return AP

        if topic:
            for key, tier in self._entries:
                if key in topic:
                    return tier

        if any(keyword in combined for keyword in self.k8_keywords):
            return K8
        if any(keyword in combined for keyword in self.hs_keywords):
            return HS
        return self.default_tier


class MappingTopicResolver:
    """Exact (case-insensitive) topic lookup with a fixed fallback tier."""

    def __init__(self, topic_map: Mapping[str, str], default_tier: str = HS) -> None:
        self._lookup = {key.strip().lower(): tier for key, tier in topic_map.items()}
        self.default_tier = default_tier

    def __call__(self, course_name: str, topic_name: str) -> str:
        return self._lookup.get((topic_name or "").strip().lower(), self.default_tier)


DEFAULT_RESOLVER = KeywordTopicResolver()
