"""
Witness 엔진 (Witness Engine)
==============================

스텝 하나를 실제 값으로 실행하고 R1CS 변수 벡터를 채운다.

  1. 입력 검증
     - 상태 폭과 정수 여부
     - z0와 비공개 입력은 [0, 2^size), z_in은 필드 범위 [0, p)
     - 스텝 1의 입력 상태는 z0
  2. 전이 실행: z_out = transition(z_in, inputs, size) (mod p)
  3. 출력 검사: 필드로 표현할 수 없는 출력이면 실패 (전이가 감싸지 않았을 때)
  4. 합성 재실행: 컴파일 때와 같은 경로로 모든 슬롯에 값을 채운다

순수 함수라 여러 스레드/프로세스에서 동시에 호출해도 안전하다.

사용 예시:
    >>> w = generate_witness(compiled, z0=(2,), z_in=(2,), inputs=(), step=1)
    >>> w.z_out
    (4,)
    >>> check_witness(compiled, w)
    True
"""

from ivc.compiler import synthesize_step
from ivc.errors import WitnessGenerationError
from ivc.field import CURVE_ORDER


class Witness:
    """스텝 하나의 실행 기록.

    속성:
        step: 스텝 번호 (1부터)
        z0, z_in, z_out, inputs: 정수 튜플
        x: 공개 입력 벡터 (FR), (i, z0, z_in, z_out) 순서
        w: 비공개 witness 벡터 (FR)
        digest: 회로 다이제스트
    """

    def __init__(self, step, z0, z_in, z_out, inputs, x, w, digest):
        self.step = step
        self.z0 = tuple(z0)
        self.z_in = tuple(z_in)
        self.z_out = tuple(z_out)
        self.inputs = tuple(inputs)
        self.x = list(x)
        self.w = list(w)
        self.digest = digest

    def __repr__(self):
        return f"Witness(step={self.step}, z_in={self.z_in}, z_out={self.z_out})"


def validate_vector(values, width, bound, what):
    """정수 시퀀스를 튜플로 만들고 폭과 [0, bound) 범위를 확인한다.

    Raises:
        WitnessGenerationError: 시퀀스가 아니거나, 폭이 다르거나, 범위를 벗어날 때
    """
    try:
        values = tuple(values)
    except TypeError:
        raise WitnessGenerationError(f"{what}는 정수 시퀀스여야 합니다: {values!r}") from None
    if len(values) != width:
        raise WitnessGenerationError(f"{what}의 길이 {len(values)} != {width}")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise WitnessGenerationError(f"{what}에 정수가 아닌 값이 있습니다: {value!r}")
        if not 0 <= value < bound:
            raise WitnessGenerationError(
                f"{what} 값 {value}가 범위 [0, {bound})를 벗어났습니다"
            )
    return values


def generate_witness(compiled, z0, z_in, inputs, step):
    """스텝 witness를 생성한다.

    Args:
        compiled: CompiledCircuit
        z0: 초기 상태 (size비트 원소)
        z_in: 이 스텝의 입력 상태 (필드 원소)
        inputs: 스텝의 비공개 입력 (input_width개, size비트 원소)
        step: 스텝 번호 (1 이상)

    Returns:
        Witness

    Raises:
        WitnessGenerationError: 잘못된 상태/입력, 또는 필드로 표현할 수 없는 출력
    """
    descriptor = compiled.descriptor
    size = compiled.size
    if isinstance(step, bool) or not isinstance(step, int) or step < 1:
        raise WitnessGenerationError(f"스텝 번호는 1 이상의 정수여야 합니다: {step!r}")

    z0 = validate_vector(z0, descriptor.arity, 1 << size, "z0")
    z_in = validate_vector(z_in, descriptor.arity, CURVE_ORDER, f"스텝 {step}의 입력 상태")
    inputs = validate_vector(inputs, descriptor.input_width, 1 << size, f"스텝 {step}의 입력")
    if step == 1 and z_in != z0:
        raise WitnessGenerationError(f"스텝 1의 입력 상태 {z_in}가 z0 {z0}와 다릅니다")

    z_out = tuple(descriptor.transition(z_in, inputs, size))
    for value in z_out:
        if not 0 <= value < CURVE_ORDER:
            raise WitnessGenerationError(
                f"{descriptor.name} 스텝 {step}: 출력 {value}를 필드로 표현할 수 없습니다"
            )

    cs = synthesize_step(descriptor, size, step, z0, z_in, inputs, z_out)
    x = cs.public_values()
    w = cs.witness_values()
    circuit = compiled.circuit
    if len(x) != circuit.num_public or len(w) != circuit.num_witness:
        raise WitnessGenerationError(
            f"{descriptor.name}: 합성 결과의 변수 배치가 컴파일된 회로와 다릅니다"
        )
    return Witness(step, z0, z_in, z_out, inputs, x, w, circuit.digest)


def check_witness(compiled, witness):
    """witness가 컴파일된 회로를 만족하는지 확인한다 (u = 1, E = 0)."""
    if witness.digest != compiled.digest:
        return False
    return compiled.circuit.is_satisfied(witness.x, witness.w)
