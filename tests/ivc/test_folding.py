"""
폴딩 엔진과 벡터 커밋먼트 테스트
==================================

테스트 범위:
  - CommitmentKey: 동형성, 길이 검사
  - 폴딩 한 번 / 여러 번 후 relaxed R1CS 만족
  - 교차항 공식
  - combine: 연속 구간의 누산기 결합
  - FoldingMisuse: 순서, 상태 연결, 회로 불일치
"""

import copy
import pytest

from ivc.errors import FoldingMisuse, WitnessGenerationError
from ivc.field import FR, G1, ec_add, ec_mul
from ivc.folding import (
    ACCUMULATOR_FOLD, WITNESS_FOLD, FoldingEngine, RelaxedInstance, RelaxedWitness,
    compute_cross_term, fold_challenge,
)
from ivc.witness import generate_witness


# ─────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def engine(squaring8, squaring8_keys):
    proving_key, _ = squaring8_keys
    return FoldingEngine(squaring8, proving_key.commitment_key)


@pytest.fixture(scope="module")
def witnesses(squaring8):
    """squaring/8, z0 = 2: 2 → 4 → 16."""
    w1 = generate_witness(squaring8, (2,), (2,), (), 1)
    w2 = generate_witness(squaring8, (2,), (4,), (), 2)
    return [w1, w2]


@pytest.fixture(scope="module")
def folded_two(engine, witnesses):
    acc = engine.initial((2,))
    for w in witnesses:
        acc = engine.fold(acc, w)
    return acc


# =====================================================================
# CommitmentKey
# =====================================================================

class TestCommitmentKey:
    def test_homomorphic(self, engine):
        key = engine.key
        n = len(key.w_points)
        v1 = [FR(i + 1) for i in range(n)]
        v2 = [FR(3 * i) for i in range(n)]
        r = FR(77)
        combined = [a + r * b for a, b in zip(v1, v2)]
        expected = ec_add(key.commit_witness(v1), ec_mul(key.commit_witness(v2), r))
        assert key.commit_witness(combined) == expected

    def test_zero_vector(self, engine):
        assert engine.key.commit_error([FR(0)] * len(engine.key.e_points)) is None

    def test_length_mismatch(self, engine):
        with pytest.raises(ValueError):
            engine.key.commit_witness([FR(1)])
        with pytest.raises(ValueError):
            engine.key.commit_error([FR(1)])


# =====================================================================
# NIFS
# =====================================================================

class TestCrossTerm:
    def test_formula_matches_folded_error(self, squaring8, engine, witnesses):
        """E = E₁ + r·T + r²·E₂ 이면 폴딩 결과가 만족한다."""
        circuit = squaring8.circuit
        left = engine.commit_witness(witnesses[0])
        right = engine.commit_witness(witnesses[1])
        lw = RelaxedWitness.fresh(witnesses[0].w, circuit.num_constraints)
        rw = RelaxedWitness.fresh(witnesses[1].w, circuit.num_constraints)
        cross = compute_cross_term(circuit, left, lw, right, rw)
        r = FR(5)
        folded = left.fold(right, engine.key.commit_error(cross), r)
        folded_w = lw.fold(rw, cross, r)
        assert circuit.is_satisfied(folded.x, folded_w.w, folded.u, folded_w.e)

    def test_zero_instance_cross_term_is_zero(self, squaring8, engine, witnesses):
        circuit = squaring8.circuit
        zero = RelaxedInstance.zero(circuit.num_public)
        zero_w = RelaxedWitness.zero(circuit.num_witness, circuit.num_constraints)
        fresh = engine.commit_witness(witnesses[0])
        fresh_w = RelaxedWitness.fresh(witnesses[0].w, circuit.num_constraints)
        cross = compute_cross_term(circuit, zero, zero_w, fresh, fresh_w)
        assert all(t == 0 for t in cross)

    def test_challenge_binds_inputs(self, squaring8, engine, witnesses):
        digest = squaring8.digest
        left = engine.commit_witness(witnesses[0])
        right = engine.commit_witness(witnesses[1])
        r1 = fold_challenge(digest, left, right, None)
        r2 = fold_challenge(digest, left, right, G1)
        r3 = fold_challenge(digest, right, left, None)
        assert len({int(r1), int(r2), int(r3)}) == 3


class TestFold:
    def test_initial_is_satisfied(self, engine):
        acc = engine.initial((2,))
        assert acc.is_empty()
        assert acc.next_step == 1
        assert engine.is_satisfied(acc)

    def test_fold_one(self, engine, witnesses):
        acc = engine.fold(engine.initial((2,)), witnesses[0])
        assert acc.num_steps == 1
        assert acc.state == (4,)
        assert acc.last_fold.kind == WITNESS_FOLD
        assert engine.is_satisfied(acc)

    def test_fold_two(self, engine, folded_two):
        assert folded_two.state == (16,)
        assert folded_two.next_step == 3
        assert folded_two.instance.u != FR(1)
        assert engine.is_satisfied(folded_two)

    def test_fold_returns_new_accumulator(self, engine, witnesses):
        acc0 = engine.initial((2,))
        acc1 = engine.fold(acc0, witnesses[0])
        assert acc1 is not acc0
        assert acc0.num_steps == 0

    def test_x_tracks_z0_slot(self, squaring8, folded_two):
        """x의 z0 슬롯은 항상 u·z0."""
        inst = folded_two.instance
        assert inst.x[squaring8.circuit.z0_slice()] == [inst.u * 2]

    def test_tampered_witness_breaks_satisfaction(self, engine, witnesses):
        bad = copy.deepcopy(witnesses[1])
        bad.w[0] = bad.w[0] + FR(1)
        acc = engine.fold(engine.fold(engine.initial((2,)), witnesses[0]), bad)
        assert not engine.is_satisfied(acc)

    def test_tampered_commitment_detected(self, engine, folded_two):
        bad = copy.deepcopy(folded_two)
        bad.instance.comm_w = ec_add(bad.instance.comm_w, G1)
        assert not engine.is_satisfied(bad)


class TestFoldMisuse:
    def test_out_of_order(self, engine, witnesses):
        with pytest.raises(FoldingMisuse):
            engine.fold(engine.initial((2,)), witnesses[1])

    def test_state_mismatch(self, engine, squaring8, witnesses):
        acc = engine.fold(engine.initial((2,)), witnesses[0])
        w = generate_witness(squaring8, (2,), (5,), (), 2)
        with pytest.raises(FoldingMisuse):
            engine.fold(acc, w)

    def test_z0_mismatch(self, engine, squaring8, witnesses):
        acc = engine.fold(engine.initial((2,)), witnesses[0])
        w = generate_witness(squaring8, (3,), (4,), (), 2)
        with pytest.raises(FoldingMisuse):
            engine.fold(acc, w)

    def test_start_state_offset_from_z0(self, engine, squaring8):
        """스텝 1을 z0가 아닌 상태에서 시작하는 witness는 만들 수 없다."""
        with pytest.raises(WitnessGenerationError):
            generate_witness(squaring8, (2,), (3,), (), 1)

    def test_foreign_circuit(self, engine, compiler):
        other = compiler.compile("squaring", 16)
        w = generate_witness(other, (2,), (2,), (), 1)
        with pytest.raises(FoldingMisuse):
            engine.fold(engine.initial((2,)), w)

    def test_is_value_error(self, engine, witnesses):
        with pytest.raises(ValueError):
            engine.fold(engine.initial((2,)), witnesses[1])


class TestCombine:
    def test_combine_two_ranges(self, engine, witnesses):
        left = engine.fold(engine.initial((2,)), witnesses[0])
        right = engine.fold(
            engine.initial((2,), start_state=(4,), first_step=2), witnesses[1]
        )
        acc = engine.combine(left, right)
        assert acc.num_steps == 2
        assert acc.first_step == 1
        assert acc.state == (16,)
        assert acc.start_state == (2,)
        assert acc.last_fold.kind == ACCUMULATOR_FOLD
        assert engine.is_satisfied(acc)

    def test_combine_with_empty(self, engine, witnesses):
        left = engine.fold(engine.initial((2,)), witnesses[0])
        empty = engine.initial((2,), start_state=(4,), first_step=2)
        acc = engine.combine(left, empty)
        assert acc.num_steps == 1
        assert engine.is_satisfied(acc)

    def test_gap_rejected(self, engine, witnesses):
        left = engine.fold(engine.initial((2,)), witnesses[0])
        right = engine.initial((2,), start_state=(16,), first_step=3)
        with pytest.raises(FoldingMisuse):
            engine.combine(left, right)

    def test_state_break_rejected(self, engine, witnesses):
        left = engine.fold(engine.initial((2,)), witnesses[0])
        right = engine.initial((2,), start_state=(5,), first_step=2)
        with pytest.raises(FoldingMisuse):
            engine.combine(left, right)

    def test_z0_mismatch_rejected(self, engine, witnesses):
        left = engine.fold(engine.initial((2,)), witnesses[0])
        right = engine.initial((3,), start_state=(4,), first_step=2)
        with pytest.raises(FoldingMisuse):
            engine.combine(left, right)
