"""
회로 컴파일러 (Circuit Compiler)
=================================

(스텝 함수, 크기) → CompiledCircuit

CompiledCircuit은 세 가지를 묶는다:
  1. descriptor: 스텝 함수 기술자
  2. circuit: R1CS 형태 (폴딩 엔진과 witness 엔진이 사용)
  3. layout: 결정자 PLONK 회로 배치 (합성기와 검증자가 사용)

모든 당사자가 같은 CompiledCircuit에서 형태를 얻으므로 변수 배치가
일치한다. 컴파일은 0 상태로 스텝을 한 번 합성하는 결정론적 과정이다.

사용 예시:
    >>> compiler = CircuitCompiler(default_registry())
    >>> compiled = compiler.compile("squaring", 8)
    >>> compiled.circuit.num_constraints
    13
"""

import logging
import threading

from ivc.decider import DeciderLayout
from ivc.errors import UnsupportedSize
from ivc.r1cs import ConstraintSystem, enforce_first_step, enforce_range


logger = logging.getLogger(__name__)


class CompiledCircuit:
    """컴파일 결과. 생성 후 읽기 전용으로 공유된다.

    속성:
        descriptor: StepFunction
        size: 크기 파라미터
        circuit: r1cs.Circuit
        layout: decider.DeciderLayout
    """

    def __init__(self, descriptor, size, circuit, layout):
        self.descriptor = descriptor
        self.size = size
        self.circuit = circuit
        self.layout = layout

    @property
    def name(self):
        return self.descriptor.name

    @property
    def digest(self):
        return self.circuit.digest

    @property
    def arity(self):
        return self.descriptor.arity

    def __repr__(self):
        return f"CompiledCircuit({self.name!r}, size={self.size})"


def frame_constraint_count(arity, size):
    """스텝 본문 밖에서 모든 스텝에 붙는 제약 수.

    z0 범위 검사 arity·(size + 1)개와 첫 스텝 검사 2 + arity개.
    """
    return arity * (size + 1) + 2 + arity


def synthesize_step(descriptor, size, step, z0, z_in, inputs, z_out):
    """스텝 하나를 합성한다. 공개 입력 배치는 (i, z0, z_in, z_out).

    본문 제약 뒤에 공통 제약을 붙인다:
      - z0의 각 원소가 [0, 2^size) 범위
      - i = 1 이면 z_in = z0

    Returns:
        ConstraintSystem: 제약과 할당이 기록된 빌더
    """
    cs = ConstraintSystem()
    index = cs.alloc_public("step", step)
    z0_vars = [cs.alloc_public(f"z0[{i}]", value) for i, value in enumerate(z0)]
    z_in_vars = [cs.alloc_public(f"z_in[{i}]", value) for i, value in enumerate(z_in)]
    z_out_vars = [cs.alloc_public(f"z_out[{i}]", value) for i, value in enumerate(z_out)]
    input_vars = [cs.alloc_private(f"input[{i}]", value) for i, value in enumerate(inputs)]
    descriptor.synthesize(cs, size, z_in_vars, input_vars, z_out_vars)
    for i, var in enumerate(z0_vars):
        enforce_range(cs, var, size, f"z0[{i}]")
    enforce_first_step(cs, index, z0_vars, z_in_vars, "first")
    return cs


def compile_circuit(descriptor, size):
    """캐시 없이 컴파일한다.

    Raises:
        UnsupportedSize: 크기가 지원 집합에 없을 때 (0, 음수 포함)
        ValueError: 합성된 제약 수가 선언과 다를 때 (잘못된 기술자)
    """
    if not descriptor.supports(size):
        raise UnsupportedSize(
            f"{descriptor.name}은(는) 크기 {size!r}를 지원하지 않습니다 "
            f"(지원: {sorted(descriptor.supported_sizes)})"
        )

    zero_state = (0,) * descriptor.arity
    zero_inputs = (0,) * descriptor.input_width
    zero_out = descriptor.transition(zero_state, zero_inputs, size)
    cs = synthesize_step(descriptor, size, 1, zero_state, zero_state, zero_inputs, zero_out)
    circuit = cs.to_circuit(descriptor.name, size, descriptor.arity, descriptor.input_width)

    declared = descriptor.constraint_count(size) + frame_constraint_count(descriptor.arity, size)
    if circuit.num_constraints != declared:
        raise ValueError(
            f"{descriptor.name}: 합성된 제약 수 {circuit.num_constraints}가 "
            f"선언된 {declared}와 다릅니다"
        )

    layout = DeciderLayout(circuit)
    logger.info(
        "회로 컴파일: %s size=%d, 제약 %d개, witness %d개, 결정자 %d행",
        descriptor.name, size, circuit.num_constraints, circuit.num_witness,
        layout.num_rows,
    )
    return CompiledCircuit(descriptor, size, circuit, layout)


class CircuitCompiler:
    """레지스트리 이름으로 컴파일하고 (이름, 크기)별로 캐시한다."""

    def __init__(self, registry):
        self.registry = registry
        self._cache = {}
        self._lock = threading.Lock()

    def compile(self, name_or_descriptor, size):
        """컴파일된 회로를 반환한다 (같은 인자 → 같은 객체).

        Raises:
            UnknownComputation: 등록되지 않은 이름
            UnsupportedSize: 지원하지 않는 크기
        """
        if isinstance(name_or_descriptor, str):
            descriptor = self.registry.get(name_or_descriptor)
        else:
            descriptor = name_or_descriptor
        key = (descriptor.name, size)
        with self._lock:
            compiled = self._cache.get(key)
            if compiled is None:
                compiled = compile_circuit(descriptor, size)
                self._cache[key] = compiled
        return compiled
