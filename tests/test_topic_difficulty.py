# ABOUTME: Tests course/topic difficulty resolution used by DER and PDI normalization.
# ABOUTME: Verifies keyword precedence, substring map lookups, and the exact-match resolver.

from src.common.topic_difficulty import AP, HS, K8, KeywordTopicResolver, MappingTopicResolver


def test_ap_course_keywords_win_over_topic_map():
    resolver = KeywordTopicResolver()
    assert resolver("AP Calculus BC", "Fractions") == AP
    assert resolver("Algebra II", "Derivative Rules") == AP


def test_topic_map_matches_on_substring():
    resolver = KeywordTopicResolver()
    assert resolver("Algebra I", "Adding Fractions") == K8
    assert resolver("Algebra I", "Quadratic Equations") == HS
    assert resolver("Geometry", "Pythagorean Theorem") == K8
    assert resolver("", "Limits at Infinity") == AP


def test_keyword_fallbacks_then_default():
    resolver = KeywordTopicResolver()
    assert resolver("Grade 6 Math", "Word Problems") == K8
    assert resolver("Geometry", "Word Problems") == HS
    assert resolver("", "Word Problems") == HS
    assert KeywordTopicResolver(default_tier=K8)("", "Word Problems") == K8


def test_custom_topic_map_replaces_builtin_map():
    resolver = KeywordTopicResolver(topic_map={"Word Problems": K8})
    assert resolver("", "Word Problems") == K8
    assert resolver("", "Polynomials") == HS


def test_mapping_resolver_is_exact_and_case_insensitive():
    resolver = MappingTopicResolver({"Polynomials": K8}, default_tier=AP)
    assert resolver("Algebra I", "polynomials ") == K8
    assert resolver("Algebra I", "Polynomial Functions") == AP
