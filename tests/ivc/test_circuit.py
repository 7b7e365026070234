"""
스텝 함수, R1CS, 회로 컴파일러, witness 엔진 테스트
=====================================================

테스트 범위:
  - LinearCombination / ConstraintSystem / 범위 검사 가젯
  - 레지스트리 조회와 중복 등록
  - 컴파일: 제약 수, 캐시, 지원하지 않는 크기
  - 첫 스텝 가젯: 스텝 1에서 z_in = z0
  - witness 생성: 정상 실행, 필드 위의 감싸기, 잘못된 이전 상태
"""

import copy
import pytest

from ivc.errors import UnknownComputation, UnsupportedSize, WitnessGenerationError
from ivc.field import CURVE_ORDER, FR
from ivc.r1cs import (
    Circuit, ConstraintSystem, LinearCombination, ONE, enforce_first_step, enforce_range,
)
from ivc.steps import (
    ACCUMULATE, FIBONACCI, SQUARING, StepFunction, StepRegistry, default_registry,
)
from ivc.compiler import CircuitCompiler, compile_circuit
from ivc.witness import check_witness, generate_witness


# =====================================================================
# R1CS
# =====================================================================

class TestLinearCombination:
    def test_add_merges_terms(self):
        x = LinearCombination.variable(("public", 0))
        lc = x + x * 2 + 5
        assert lc.terms[("public", 0)] == FR(3)
        assert lc.terms[ONE] == FR(5)

    def test_sub_cancels(self):
        x = LinearCombination.variable(("witness", 1))
        assert (x - x).is_empty()

    def test_zero(self):
        assert LinearCombination.zero().is_empty()


class TestConstraintSystem:
    def test_multiplication_constraint(self):
        cs = ConstraintSystem()
        x = cs.alloc_public("x", 3)
        y = cs.alloc_public("y", 9)
        cs.alloc_public("pad", 0)
        cs.alloc_public("pad", 0)
        cs.enforce(x, x, y, "square")
        circuit = cs.to_circuit("t", 8, 1, 0)
        assert circuit.num_constraints == 1
        assert circuit.is_satisfied(cs.public_values(), cs.witness_values())
        assert not circuit.is_satisfied([FR(3), FR(10), FR(0), FR(0)], [])

    def test_public_count_must_match_arity(self):
        cs = ConstraintSystem()
        cs.alloc_public("x", 1)
        with pytest.raises(ValueError):
            cs.to_circuit("t", 8, 1, 0)

    def test_shape_mismatch_reported(self):
        cs = ConstraintSystem()
        for i in range(4):
            cs.alloc_public(f"x{i}", 0)
        circuit = cs.to_circuit("t", 8, 1, 0)
        assert circuit.unsatisfied([FR(0)], []) == ["<shape>"]

    def test_relaxed_check(self):
        """u·Cz + E 형태의 relaxed 만족."""
        cs = ConstraintSystem()
        x = cs.alloc_public("x", 2)
        y = cs.alloc_public("y", 4)
        cs.alloc_public("pad", 0)
        cs.alloc_public("pad", 0)
        cs.enforce(x, x, y, "square")
        circuit = cs.to_circuit("t", 8, 1, 0)
        u = FR(3)
        x_vec = [FR(2), FR(4), FR(0), FR(0)]
        # 2·2 = 3·4 + E → E = -8
        assert circuit.is_satisfied(x_vec, [], u, [FR(-8)])
        assert not circuit.is_satisfied(x_vec, [], u, [FR(0)])


class TestRangeGadget:
    def _build(self, value, bits):
        cs = ConstraintSystem()
        v = cs.alloc_public("v", value)
        for label in ("a", "b", "c"):
            cs.alloc_public(label, 0)
        enforce_range(cs, v, bits, "r")
        return cs, cs.to_circuit("range", bits, 1, 0)

    def test_constraint_count(self):
        _, circuit = self._build(5, 8)
        assert circuit.num_constraints == 9
        assert circuit.num_witness == 8

    def test_in_range(self):
        cs, circuit = self._build(255, 8)
        assert circuit.is_satisfied(cs.public_values(), cs.witness_values())

    def test_out_of_range(self):
        """비트 분해가 값을 다시 만들지 못하면 재조합 제약이 실패한다."""
        cs, circuit = self._build(256, 8)
        failed = circuit.unsatisfied(cs.public_values(), cs.witness_values())
        assert failed == ["r.recompose"]

    def test_non_boolean_bit(self):
        cs, circuit = self._build(3, 8)
        w = cs.witness_values()
        w[0] = FR(2)
        w[1] = FR(0)
        failed = circuit.unsatisfied(cs.public_values(), w)
        assert "r.bool[0]" in failed


class TestFirstStepGadget:
    def _build(self, step, z0, z_in):
        cs = ConstraintSystem()
        index = cs.alloc_public("step", step)
        start = cs.alloc_public("z0", z0)
        current = cs.alloc_public("z_in", z_in)
        cs.alloc_public("z_out", 0)
        enforce_first_step(cs, index, [start], [current], "first")
        return cs, cs.to_circuit("first", 8, 1, 0)

    def test_constraint_count(self):
        _, circuit = self._build(1, 2, 2)
        assert circuit.num_constraints == 3
        assert circuit.num_witness == 2

    @pytest.mark.parametrize("step,z0,z_in", [(1, 2, 2), (2, 2, 4), (7, 2, 99)])
    def test_honest_assignment(self, step, z0, z_in):
        cs, circuit = self._build(step, z0, z_in)
        assert circuit.is_satisfied(cs.public_values(), cs.witness_values())

    def test_first_step_must_start_at_z0(self):
        cs, circuit = self._build(1, 2, 3)
        failed = circuit.unsatisfied(cs.public_values(), cs.witness_values())
        assert failed == ["first.start[0]"]

    def test_flag_cannot_be_cleared(self):
        """스텝 1에서 flag를 0으로 두면 역원 제약이 실패한다."""
        cs, circuit = self._build(1, 2, 3)
        w = cs.witness_values()
        w[1] = FR(0)
        assert "first.inverse" in circuit.unsatisfied(cs.public_values(), w)

    def test_flag_cannot_be_set_later(self):
        cs, circuit = self._build(3, 2, 4)
        w = cs.witness_values()
        w[1] = FR(1)
        assert "first.flag" in circuit.unsatisfied(cs.public_values(), w)


# =====================================================================
# Registry
# =====================================================================

class TestRegistry:
    def test_default_names(self, registry):
        assert registry.names() == ["accumulate", "fibonacci", "squaring"]
        assert "squaring" in registry
        assert len(registry) == 3

    def test_unknown(self, registry):
        with pytest.raises(UnknownComputation):
            registry.get("cubing")
        with pytest.raises(KeyError):
            registry.get("cubing")

    def test_duplicate(self):
        reg = StepRegistry([SQUARING])
        with pytest.raises(ValueError):
            reg.register(SQUARING)

    def test_registries_are_independent(self):
        a = default_registry()
        b = StepRegistry()
        assert len(a) == 3
        assert len(b) == 0

    def test_run_squaring(self):
        assert SQUARING.run((2,), 64, 5)[-1] == (2 ** 32,)

    def test_run_wraps_in_field(self):
        """2^(2^10)은 필드 위수를 넘으므로 mod p로 감싼다."""
        assert SQUARING.run((2,), 64, 10)[-1] == (pow(2, 2 ** 10, CURVE_ORDER),)

    def test_run_fibonacci(self):
        trajectory = FIBONACCI.run((0, 1), 8, 6)
        assert trajectory[-1] == (8, 13)

    def test_run_accumulate_default_inputs(self):
        # 0 + 1² + 2² + 3²
        assert ACCUMULATE.run((0,), 8, 3)[-1] == (14,)

    def test_run_explicit_inputs(self):
        assert ACCUMULATE.run((1,), 8, 2, inputs=[(3,), (1,)])[-1] == (11,)


# =====================================================================
# Compiler
# =====================================================================

class TestCompiler:
    @pytest.mark.parametrize("name,size,expected", [
        ("squaring", 8, 13),
        ("squaring", 64, 69),
        ("fibonacci", 8, 24),
        ("accumulate", 16, 39),
    ])
    def test_constraint_count(self, compiler, name, size, expected):
        compiled = compiler.compile(name, size)
        assert compiled.circuit.num_constraints == expected
        assert compiled.circuit.num_public == 1 + 3 * compiled.arity

    def test_cached(self, compiler):
        assert compiler.compile("squaring", 8) is compiler.compile("squaring", 8)

    def test_deterministic_digest(self, registry):
        a = CircuitCompiler(registry).compile("squaring", 8)
        b = CircuitCompiler(registry).compile("squaring", 8)
        assert a.digest == b.digest

    def test_digest_depends_on_size(self, compiler):
        assert compiler.compile("squaring", 8).digest != compiler.compile("squaring", 16).digest

    @pytest.mark.parametrize("size", [0, -8, 7, 256, "8", None])
    def test_unsupported_size(self, compiler, size):
        with pytest.raises(UnsupportedSize):
            compiler.compile("squaring", size)

    def test_accepts_descriptor(self, compiler):
        assert compiler.compile(FIBONACCI, 8).name == "fibonacci"

    def test_broken_descriptor(self):
        """선언된 제약 수와 합성 결과가 다르면 컴파일 실패."""
        broken = StepFunction(
            "broken", arity=1, input_width=0,
            transition=SQUARING.transition,
            synthesize=SQUARING.synthesize,
            constraint_count=lambda size: size,
        )
        with pytest.raises(ValueError):
            compile_circuit(broken, 8)

    def test_decider_layout(self, squaring8):
        layout = squaring8.layout
        assert len(layout.w_rows) == squaring8.circuit.num_witness
        assert len(layout.e_rows) == squaring8.circuit.num_constraints
        assert layout.num_public_inputs == 3 * (1 + 4) + 2 + 1
        assert layout.domain_size >= layout.num_rows
        assert layout.domain_size & (layout.domain_size - 1) == 0


# =====================================================================
# Witness engine
# =====================================================================

def _raw_square(state, inputs, size):
    (z,) = state
    return (z * z,)


class TestWitness:
    def test_squaring_step(self, squaring8):
        w = generate_witness(squaring8, (2,), (2,), (), 1)
        assert w.z_out == (4,)
        assert w.x == [FR(1), FR(2), FR(2), FR(4)]
        circuit = squaring8.circuit
        assert w.x[circuit.step_slice()] == [FR(1)]
        assert w.x[circuit.z0_slice()] == [FR(2)]
        assert w.x[circuit.z_in_slice()] == [FR(2)]
        assert w.x[circuit.z_out_slice()] == [FR(4)]
        assert check_witness(squaring8, w)

    def test_fibonacci_step(self, compiler):
        compiled = compiler.compile("fibonacci", 8)
        w = generate_witness(compiled, (0, 1), (5, 8), (), 6)
        assert w.z_out == (8, 13)
        assert check_witness(compiled, w)

    def test_accumulate_step(self, compiler):
        compiled = compiler.compile("accumulate", 8)
        w = generate_witness(compiled, (0,), (5,), (3,), 2)
        assert w.z_out == (14,)
        assert check_witness(compiled, w)

    def test_state_beyond_size_bits(self, squaring8):
        """16² = 256: size는 z0의 폭일 뿐이고 이후 상태는 필드 원소다."""
        w = generate_witness(squaring8, (2,), (16,), (), 3)
        assert w.z_out == (256,)
        assert check_witness(squaring8, w)

    def test_square_wraps_in_field(self, squaring8):
        w = generate_witness(squaring8, (2,), (CURVE_ORDER - 1,), (), 2)
        assert w.z_out == (1,)
        assert check_witness(squaring8, w)

    def test_unreduced_transition_rejected(self):
        """필드로 감싸지 않는 전이의 출력은 표현할 수 없다."""
        raw = StepFunction(
            "raw-squaring", arity=1, input_width=0,
            transition=_raw_square,
            synthesize=SQUARING.synthesize,
            constraint_count=SQUARING.constraint_count,
        )
        compiled = compile_circuit(raw, 8)
        assert generate_witness(compiled, (2,), (4,), (), 2).z_out == (16,)
        with pytest.raises(WitnessGenerationError):
            generate_witness(compiled, (2,), (CURVE_ORDER - 1,), (), 2)

    @pytest.mark.parametrize("z_in", [
        (CURVE_ORDER,), (-1,), (2, 3), ("2",), (True,), (2.0,),
    ])
    def test_malformed_state(self, squaring8, z_in):
        with pytest.raises(WitnessGenerationError):
            generate_witness(squaring8, (2,), z_in, (), 2)

    @pytest.mark.parametrize("z0", [(256,), (-1,)])
    def test_z0_must_fit_size(self, squaring8, z0):
        with pytest.raises(WitnessGenerationError):
            generate_witness(squaring8, z0, (4,), (), 2)

    def test_first_step_must_start_at_z0(self, squaring8):
        with pytest.raises(WitnessGenerationError):
            generate_witness(squaring8, (2,), (3,), (), 1)

    def test_input_must_fit_size(self, compiler):
        compiled = compiler.compile("accumulate", 8)
        with pytest.raises(WitnessGenerationError):
            generate_witness(compiled, (0,), (5,), (256,), 2)

    def test_wrong_input_width(self, compiler):
        compiled = compiler.compile("accumulate", 8)
        with pytest.raises(WitnessGenerationError):
            generate_witness(compiled, (0,), (0,), (), 1)

    @pytest.mark.parametrize("step", [0, -1, 1.5])
    def test_bad_step_index(self, squaring8, step):
        with pytest.raises(WitnessGenerationError):
            generate_witness(squaring8, (2,), (2,), (), step)

    def test_tampered_witness_fails_check(self, squaring8):
        w = generate_witness(squaring8, (2,), (2,), (), 1)
        bad = copy.deepcopy(w)
        bad.w[0] = FR(1)
        assert not check_witness(squaring8, bad)

    def test_foreign_digest(self, squaring8, compiler):
        w = generate_witness(squaring8, (2,), (2,), (), 1)
        assert not check_witness(compiler.compile("squaring", 16), w)


def test_circuit_repr(squaring8):
    assert "squaring" in repr(squaring8.circuit)
    assert isinstance(squaring8.circuit, Circuit)
