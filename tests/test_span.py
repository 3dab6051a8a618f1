import unittest

from groups import AdditiveIntegers, CyclicGroup, MultiplicativeRationals, VectorGroup
from span import (
    express,
    in_span,
    quotient_in_span,
    quotient_span,
    signed_combination,
    span,
)

ADD = AdditiveIntegers()
MUL = MultiplicativeRationals()


class SpanTests(unittest.TestCase):
    def test_span_of_empty_set_is_identity(self):
        self.assertEqual(span(frozenset(), ADD), frozenset({0}))
        self.assertEqual(span(frozenset(), MUL), frozenset({1}))

    def test_span_of_one_two(self):
        self.assertEqual(span({1, 2}, ADD), frozenset(range(-3, 4)))

    def test_set_lies_in_its_span(self):
        cases = [
            ({1, 2, 3}, ADD),
            ({2, 3, 6}, MUL),
            ({1, 4}, CyclicGroup(6)),
            ({(1, 0), (1, 1)}, VectorGroup(3, 2)),
        ]
        for S, group in cases:
            self.assertTrue(frozenset(S) <= span(S, group), S)

    def test_span_equals_quotients_of_subcollections(self):
        cases = [
            ({1, 2, 5}, ADD),
            ({2, 3}, MUL),
            ({2, 3, 6}, MUL),
            ({1, 3}, CyclicGroup(5)),
            ({(1, 0, 0), (1, 1, 0), (0, 1, 1)}, VectorGroup(2, 3)),
        ]
        for S, group in cases:
            self.assertEqual(span(S, group), quotient_span(S, group), S)

    def test_quotient_in_span_gives_explicit_coefficients(self):
        coeffs = quotient_in_span({6}, {2, 3})
        self.assertEqual(coeffs, {6: 1, 2: -1, 3: -1})
        self.assertEqual(signed_combination(MUL, coeffs), 1)

        coeffs = quotient_in_span({1, 2}, {2, 5})
        self.assertEqual(coeffs, {1: 1, 2: 0, 5: -1})
        self.assertEqual(signed_combination(ADD, coeffs), (1 + 2) - (2 + 5))

    def test_quotient_in_span_lands_in_span_of_union(self):
        t, u = {1, 4, 9}, {4, 7}
        value = ADD.quotient(ADD.product(t), ADD.product(u))
        coeffs = quotient_in_span(t, u)
        self.assertEqual(signed_combination(ADD, coeffs), value)
        self.assertIn(value, span(set(t) | set(u), ADD))

    def test_span_is_not_closed(self):
        S = {1}
        once = span(S, ADD)
        twice = span(once, ADD)
        self.assertTrue(once <= twice)
        # Coefficients do not compose beyond {-1,0,1}: 2 = 1 + 1 needs span twice.
        self.assertNotIn(2, once)
        self.assertIn(2, twice)

    def test_express_finds_signed_combination(self):
        coeffs = express(6, {2, 3}, MUL)
        self.assertEqual(coeffs, {2: 1, 3: 1})
        coeffs = express(-1, {1, 2, 5}, ADD)
        self.assertIsNotNone(coeffs)
        self.assertEqual(signed_combination(ADD, coeffs), -1)
        self.assertIsNone(express(7, {1, 2}, ADD))
        self.assertTrue(in_span(3, {1, 2}, ADD))
        self.assertFalse(in_span(4, {1, 2}, ADD))
        self.assertEqual(express(0, frozenset(), ADD), {})


if __name__ == "__main__":
    unittest.main()
