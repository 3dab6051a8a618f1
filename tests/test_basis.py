import contextlib
import io
import json
import random
import subprocess
import sys
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

from pysat.formula import CNF
from pysat.solvers import Solver

import basis
from basis import (
    InvariantViolation,
    PreconditionViolation,
    check_bound,
    exchange,
    extract_basis,
    extract_with_witnesses,
    find_oversized_dissociated,
    is_maximal_dissociated,
    maximal_dissociated_subset,
    maximal_dissociated_subsets,
    verify_extraction,
)
from backends import ORTOOLS_LINEAR_AVAILABLE
from dimension import dissociation_dimension
from dissociation import Relation, find_relation, is_dissociated
from groups import AdditiveIntegers, CyclicGroup, MultiplicativeRationals, VectorGroup
from span import in_span, signed_combination, span

ADD = AdditiveIntegers()
MUL = MultiplicativeRationals()


class ExtractionTests(unittest.TestCase):
    def test_two_three_six_in_rationals(self):
        S = {2, 3, 6}
        result = extract_with_witnesses(S, 2, MUL)
        self.assertEqual(result.basis, frozenset({2, 3}))
        self.assertEqual(result.coefficients[6], {2: 1, 3: 1})
        self.assertIn(6, span(result.basis, MUL))
        self.assertTrue(verify_extraction(result, S, 2, MUL))
        self.assertEqual(set(result.witnesses), {6})

    def test_one_two_three_in_integers(self):
        S = {1, 2, 3}
        B = extract_basis(S, 2, ADD)
        self.assertEqual(B, frozenset({1, 2}))
        self.assertTrue(in_span(3, B, ADD))

    def test_empty_set(self):
        self.assertEqual(extract_basis(frozenset(), 0, ADD), frozenset())
        self.assertEqual(span(frozenset(), ADD), frozenset({0}))

    def test_identity_element_is_covered_by_zero_coefficients(self):
        result = extract_with_witnesses({0, 1}, 1, ADD)
        self.assertEqual(result.basis, frozenset({1}))
        self.assertEqual(signed_combination(ADD, result.coefficients[0]), 0)
        self.assertTrue(verify_extraction(result, {0, 1}, 1, ADD))

    def test_oversized_dissociated_subset_is_a_precondition_violation(self):
        with self.assertRaises(PreconditionViolation) as ctx:
            extract_basis({1, 2, 4}, 2, ADD)
        self.assertEqual(ctx.exception.bound, 2)
        self.assertEqual(len(ctx.exception.witness), 3)
        self.assertTrue(is_dissociated(ctx.exception.witness, ADD))

    def test_unchecked_extraction_still_refuses_oversized_basis(self):
        with self.assertRaises(PreconditionViolation):
            extract_basis({1, 2, 4}, 2, ADD, check=False)

    def test_negative_bound_rejected(self):
        with self.assertRaises(ValueError):
            extract_basis({1}, -1, ADD)

    def test_elements_outside_group_rejected(self):
        with self.assertRaises(ValueError):
            extract_basis({2, 0}, 2, MUL)

    def test_maximal_not_maximum(self):
        # {1,3} is maximal in {1,2,3,4} although {1,2,4} is larger.
        S = {1, 2, 3, 4}
        self.assertEqual(dissociation_dimension(S, ADD, backend="exhaustive"), 3)
        result = extract_with_witnesses(S, 3, ADD, order=[3, 1, 2, 4])
        self.assertEqual(result.basis, frozenset({1, 3}))
        self.assertTrue(is_maximal_dissociated(result.basis, S, ADD))
        self.assertTrue(verify_extraction(result, S, 3, ADD))

    def test_order_changes_basis_but_not_cover(self):
        result = extract_with_witnesses({1, 2, 3}, 2, ADD, order=[3, 1])
        self.assertEqual(result.basis, frozenset({1, 3}))
        self.assertEqual(signed_combination(ADD, result.coefficients[2]), 2)

    def test_meet_in_the_middle_oracle_can_drive_extraction(self):
        S = {2, 3, 6, 12, 18}
        d = dissociation_dimension(S, MUL, backend="exhaustive")
        result = extract_with_witnesses(S, d, MUL, witness_fn=find_relation)
        self.assertTrue(verify_extraction(result, S, d, MUL))

    def test_random_sets_are_covered(self):
        rng = random.Random(321)
        groups = [ADD, CyclicGroup(11), VectorGroup(2, 3), VectorGroup(3, 2)]
        for group in groups:
            for _ in range(8):
                if isinstance(group, VectorGroup):
                    pool = [
                        tuple(rng.randrange(group.p) for _ in range(group.dim))
                        for _ in range(6)
                    ]
                elif isinstance(group, CyclicGroup):
                    pool = [rng.randrange(group.n) for _ in range(6)]
                else:
                    pool = [rng.randrange(-20, 21) for _ in range(6)]
                S = frozenset(pool)
                d = dissociation_dimension(S, group, backend="exhaustive")
                result = extract_with_witnesses(S, d, group)
                self.assertLessEqual(len(result.basis), d)
                self.assertTrue(result.basis <= S)
                self.assertTrue(verify_extraction(result, S, d, group), (group, S))
                for a in S:
                    self.assertIn(a, span(result.basis, group))

    def test_verify_extraction_catches_bad_results(self):
        result = extract_with_witnesses({1, 2, 3}, 2, ADD)
        self.assertFalse(verify_extraction(result, {1, 2, 3}, 1, ADD))
        result.coefficients[3] = {1: 1}
        self.assertFalse(verify_extraction(result, {1, 2, 3}, 2, ADD))


class MaximalSubsetTests(unittest.TestCase):
    def test_greedy_subset_is_maximal(self):
        for S in ({1, 2, 3}, {1, 2, 3, 4, 5}, {2, 4, 6, 7}):
            T = maximal_dissociated_subset(S, ADD)
            self.assertTrue(is_maximal_dissociated(T, S, ADD), S)

    def test_all_maximal_subsets_of_one_two_three(self):
        kept = maximal_dissociated_subsets({1, 2, 3}, ADD)
        self.assertEqual(
            set(kept), {frozenset({1, 2}), frozenset({1, 3}), frozenset({2, 3})}
        )

    def test_maximal_subsets_come_largest_first(self):
        kept = maximal_dissociated_subsets({1, 2, 3, 4}, ADD)
        self.assertEqual(kept[0], frozenset({1, 2, 4}))
        self.assertIn(frozenset({1, 3}), kept)
        sizes = [len(T) for T in kept]
        self.assertEqual(sizes, sorted(sizes, reverse=True))

    def test_is_maximal_rejects_extendable_sets(self):
        self.assertFalse(is_maximal_dissociated({1}, {1, 2, 3}, ADD))
        self.assertFalse(is_maximal_dissociated({1, 2, 3}, {1, 2, 3}, ADD))
        self.assertFalse(is_maximal_dissociated({5}, {1, 2}, ADD))


class ExchangeTests(unittest.TestCase):
    def test_element_of_basis_gets_unit_coefficient(self):
        coeffs, relation = exchange(2, frozenset({2, 3}), MUL)
        self.assertEqual(coeffs, {2: 1, 3: 0})
        self.assertIsNone(relation)

    def test_exchange_on_either_side_of_the_witness(self):
        # a on the minus side.
        coeffs, relation = exchange(
            3, frozenset({1, 2}), ADD,
            witness_fn=lambda T, g: Relation(frozenset({1, 2}), frozenset({3})),
        )
        self.assertEqual(coeffs, {1: 1, 2: 1})
        # a on the plus side: 1 + 4 = 5 gives 1 = 5 - 4.
        coeffs, _ = exchange(
            1, frozenset({4, 5}), ADD,
            witness_fn=lambda T, g: Relation(frozenset({1, 4}), frozenset({5})),
        )
        self.assertEqual(coeffs, {4: -1, 5: 1})
        self.assertEqual(signed_combination(ADD, coeffs), 1)

    def test_witness_missing_the_new_element_is_an_invariant_violation(self):
        with self.assertRaises(InvariantViolation):
            exchange(
                3, frozenset({1, 2}), ADD,
                witness_fn=lambda T, g: Relation(frozenset({1}), frozenset({2})),
            )

    def test_non_maximal_basis_is_an_invariant_violation(self):
        with self.assertRaises(InvariantViolation):
            exchange(4, frozenset({1, 2}), ADD)


class BoundTests(unittest.TestCase):
    def test_find_oversized_dissociated(self):
        self.assertIsNone(find_oversized_dissociated({1, 2, 3}, 2, ADD))
        witness = find_oversized_dissociated({1, 2, 3}, 1, ADD)
        self.assertEqual(len(witness), 2)

    def test_check_bound_exhaustive(self):
        check_bound({1, 2, 3}, 2, ADD)
        with self.assertRaises(PreconditionViolation):
            check_bound({1, 2, 3}, 1, ADD)

    @unittest.skipUnless(ORTOOLS_LINEAR_AVAILABLE, "ortools not installed")
    def test_check_bound_with_cbc(self):
        check_bound({1, 2, 3, 4}, 3, ADD, backend="cbc", threads=1)
        with self.assertRaises(PreconditionViolation):
            check_bound({1, 2, 3, 4}, 2, ADD, backend="cbc", threads=1)


class CommandLineTests(unittest.TestCase):
    def _run(self, *argv):
        out = io.StringIO()
        with mock.patch.object(sys, "argv", ["basis.py", *argv]):
            with contextlib.redirect_stdout(out):
                basis.main()
        return out.getvalue()

    def test_cli_extracts_basis_in_rationals(self):
        text = self._run("2", "3", "6", "--group", "mul")
        self.assertIn("S is not dissociated", text)
        self.assertIn("largest dissociated subset: ['2', '3'] (size 2)", text)
        self.assertIn("basis (size 2 <= 2): ['2', '3']", text)
        self.assertIn("6 = 2^+1 3^+1", text)

    def test_cli_writes_certificate(self):
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cert.json"
            self._run("1", "2", "3", "--bound", "2", "--cert", str(path))
            data = json.loads(path.read_text())
        self.assertEqual(data["group"], "add")
        self.assertEqual(data["basis"], ["1", "2"])
        self.assertTrue(data["verified_cover"])
        self.assertEqual(data["coefficients"]["3"], {"1": 1, "2": 1})

    def test_cli_reports_violated_bound(self):
        with self.assertRaises(SystemExit):
            self._run("1", "2", "4", "--bound", "2")

    def test_cli_proves_bound_from_exhaustive_cuts(self):
        def fake_kissat(cmd, **kwargs):
            formula = CNF(from_file=cmd[1])
            with Solver(name="m22", bootstrap_with=formula.clauses) as solver:
                code = 10 if solver.solve() else 20
            return subprocess.CompletedProcess(cmd, code, "", "")

        with TemporaryDirectory() as tmpdir:
            with mock.patch("proofs.subprocess.run", side_effect=fake_kissat) as run:
                text = self._run(
                    "1", "2", "3", "--backend", "exhaustive", "--prove-bound", "--proof-dir", tmpdir
                )
            self.assertTrue(run.called)
        self.assertIn("no dissociated subset above 2 (proof/fallback): True", text)


if __name__ == "__main__":
    unittest.main()
