"""
Tests for cosine similarity, keyword extraction and the hybrid score.
"""

import random
import unittest

from rag.scoring import (
    MAX_KEYWORD_BOOST,
    STOP_WORDS,
    combined_score,
    cosine_similarity,
    extract_keywords,
    keyword_boost,
    meets_threshold,
)

from fakes import opposite_vector, unit_vector, vector_with_similarity


class TestCosineSimilarity(unittest.TestCase):

    def test_identical_vectors(self):
        self.assertAlmostEqual(cosine_similarity(unit_vector(), unit_vector()), 1.0, delta=1e-10)

    def test_opposite_vectors(self):
        self.assertAlmostEqual(cosine_similarity(unit_vector(), opposite_vector()), -1.0, delta=1e-10)

    def test_orthogonal_vectors(self):
        self.assertAlmostEqual(cosine_similarity(unit_vector(0), unit_vector(1)), 0.0, delta=1e-10)

    def test_known_similarity(self):
        self.assertAlmostEqual(
            cosine_similarity(unit_vector(), vector_with_similarity(0.6)), 0.6, delta=1e-10
        )

    def test_scale_invariant(self):
        a = [1.0, 2.0, 3.0]
        b = [10.0, 20.0, 30.0]
        self.assertAlmostEqual(cosine_similarity(a, b), 1.0, delta=1e-10)

    def test_empty_vectors(self):
        self.assertEqual(cosine_similarity([], []), 0.0)

    def test_mismatched_lengths(self):
        self.assertEqual(cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]), 0.0)

    def test_zero_norm(self):
        self.assertEqual(cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]), 0.0)


class TestExtractKeywords(unittest.TestCase):

    def test_drops_stop_words_and_short_tokens(self):
        self.assertEqual(
            extract_keywords("What is the budget for Q3 marketing?"),
            ["budget", "marketing"],
        )

    def test_query_verbs_are_stop_words(self):
        self.assertEqual(extract_keywords("Show me the notes"), ["notes"])
        self.assertEqual(extract_keywords("find"), [])

    def test_splits_on_punctuation(self):
        self.assertEqual(
            extract_keywords("roadmap-review, 2026!"),
            ["roadmap", "review", "2026"],
        )

    def test_lowercases(self):
        self.assertEqual(extract_keywords("BUDGET Review"), ["budget", "review"])

    def test_stop_words_are_a_fixed_set(self):
        self.assertIsInstance(STOP_WORDS, frozenset)
        for word in ("the", "is", "what", "show", "find"):
            self.assertIn(word, STOP_WORDS)


class TestKeywordBoost(unittest.TestCase):

    def test_no_keywords(self):
        self.assertEqual(keyword_boost([], "anything at all"), 0.0)

    def test_early_match(self):
        self.assertAlmostEqual(keyword_boost(["budget"], "Budget review for Q2"), 0.25)

    def test_late_match_gets_no_early_bonus(self):
        text = "x" * 150 + " budget"
        self.assertAlmostEqual(keyword_boost(["budget"], text), 0.15)

    def test_partial_match(self):
        self.assertAlmostEqual(keyword_boost(["budget", "hiring"], "budget talk"), 0.075 + 0.1)

    def test_no_match(self):
        self.assertEqual(keyword_boost(["budget"], "hiring plan"), 0.0)

    def test_capped(self):
        keywords = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot"]
        text = " ".join(keywords)
        self.assertEqual(keyword_boost(keywords, text), MAX_KEYWORD_BOOST)

    def test_bounds_hold_for_random_content(self):
        rng = random.Random(1234)
        vocabulary = ["budget", "hiring", "roadmap", "launch", "design", "review", "sales"]
        for _ in range(500):
            keywords = rng.sample(vocabulary, rng.randint(1, len(vocabulary)))
            text = " ".join(rng.choice(vocabulary) for _ in range(rng.randint(0, 60)))
            boost = keyword_boost(keywords, text)
            semantic = rng.uniform(-1.0, 1.0)
            self.assertLessEqual(boost, 0.5)
            self.assertLessEqual(combined_score(semantic, boost), 1.0)


class TestThreshold(unittest.TestCase):

    def test_combined_score_capped(self):
        self.assertEqual(combined_score(0.95, 0.5), 1.0)
        self.assertAlmostEqual(combined_score(0.4, 0.1), 0.5)

    def test_threshold_is_inclusive(self):
        self.assertTrue(meets_threshold(0.3))
        self.assertTrue(meets_threshold(0.31))
        self.assertFalse(meets_threshold(0.2999))

    def test_custom_threshold(self):
        self.assertTrue(meets_threshold(0.5, threshold=0.5))
        self.assertFalse(meets_threshold(0.49, threshold=0.5))


if __name__ == "__main__":
    unittest.main()
