"""
IVC 엔진 외부 인터페이스
=========================

  ┌──────────────┐   ┌──────────┐   ┌─────────┐   ┌──────────┐
  │ 회로 컴파일  │ → │ 백엔드   │ → │ 합성기  │ → │ 검증자   │
  │ + setup      │   │ (폴딩)   │   │ (PLONK) │   │          │
  └──────────────┘   └──────────┘   └─────────┘   └──────────┘

  setup:  (이름, 크기, SRS 시드) → ProvingKey, VerifyingKey (캐시)
  prove:  n번 실행 + 폴딩 + 합성 → (FinalProof, zn)
  verify: FinalProof + (z0, zn) → VerificationResult

**SRS 크기**:
  결정자 도메인 N에 대해 차수 N + 8까지 커밋한다 (블라인딩된 z와 t_hi).
  Lagrange 점은 W*, E* 행에 대해서만 만든다.

사용 예시:
    >>> registry = default_registry()
    >>> proof, zn = prove(registry, "squaring", 64, 5)
    >>> zn
    (4294967296,)
    >>> verify(registry, proof, (2,), zn).valid
    True
"""

import logging
import threading

from ivc.backend import BackendPlan, ProcessTransport, make_backend
from ivc.commitment import CommitmentKey
from ivc.compiler import CircuitCompiler
from ivc.composer import FinalProof, compose
from ivc.config import EngineConfig
from ivc.errors import IVCError, WitnessGenerationError
from ivc.field import CURVE_ORDER, G1
from ivc.plonk.preprocessor import preprocess
from ivc.plonk.srs import SRS
from ivc.verifier import VerificationResult, Verifier
from ivc.witness import validate_vector


logger = logging.getLogger(__name__)


SRS_DEGREE_MARGIN = 8


# ─────────────────────────────────────────────────────────────────────
# ComputationInstance
# ─────────────────────────────────────────────────────────────────────

class ComputationInstance:
    """실행할 계산 하나. 생성 후 읽기 전용.

    Args:
        descriptor: StepFunction
        size: 크기 파라미터
        num_steps: 반복 횟수 n (1 이상)
        initial_state: z0 (None이면 기본값)
        inputs: 스텝별 비공개 입력 리스트 (None이면 기본 입력)

    Raises:
        ValueError: num_steps < 1 또는 inputs 개수/폭 불일치
    """

    def __init__(self, descriptor, size, num_steps, initial_state=None, inputs=None):
        if isinstance(num_steps, bool) or not isinstance(num_steps, int) or num_steps < 1:
            raise ValueError(f"num_steps는 1 이상의 정수여야 합니다: {num_steps!r}")
        if initial_state is None:
            initial_state = descriptor.default_initial_state
        if inputs is not None:
            inputs = [tuple(v) for v in inputs]
            if len(inputs) != num_steps:
                raise ValueError(f"입력 {len(inputs)}개가 스텝 수 {num_steps}와 다릅니다")
            for step, value in enumerate(inputs, start=1):
                if len(value) != descriptor.input_width:
                    raise ValueError(
                        f"스텝 {step}의 입력 폭 {len(value)} != {descriptor.input_width}"
                    )
        self.descriptor = descriptor
        self.size = size
        self.num_steps = num_steps
        self.initial_state = tuple(initial_state)
        self.inputs = inputs
        self._trajectory = None

    def step_input(self, step):
        if self.inputs is not None:
            return self.inputs[step - 1]
        return self.descriptor.default_input(step)

    def trajectory(self):
        """[z0, z1, ..., zn]. 상태는 필드 위에서 감싼다.

        Raises:
            WitnessGenerationError: z0가 size비트 원소가 아니거나, 전이가 필드
                밖의 값을 내놓을 때
        """
        if self._trajectory is not None:
            return self._trajectory
        descriptor = self.descriptor
        validate_vector(self.initial_state, descriptor.arity, 1 << self.size, "z0")
        states = descriptor.run(self.initial_state, self.size, self.num_steps, self.inputs)
        for step, state in enumerate(states[1:], start=1):
            for value in state:
                if not 0 <= value < CURVE_ORDER:
                    raise WitnessGenerationError(
                        f"{descriptor.name} 스텝 {step}: 출력 {value}를 필드로 "
                        f"표현할 수 없습니다"
                    )
        self._trajectory = states
        return states

    def __repr__(self):
        return (
            f"ComputationInstance({self.descriptor.name!r}, size={self.size}, "
            f"steps={self.num_steps})"
        )


# ─────────────────────────────────────────────────────────────────────
# 키
# ─────────────────────────────────────────────────────────────────────

class ProvingKey:
    """증명에 필요한 모든 것: 회로, SRS, 전처리 결과, 커밋먼트 키, 설정."""

    def __init__(self, compiled, srs, preprocessed, commitment_key, config):
        self.compiled = compiled
        self.srs = srs
        self.preprocessed = preprocessed
        self.commitment_key = commitment_key
        self.config = config


class VerifyingKey:
    """검증에 필요한 것만: 회로 형태, 전처리 커밋먼트, [1]₂와 [τ]₂."""

    def __init__(self, compiled, preprocessed, srs):
        self.compiled = compiled
        self.preprocessed = preprocessed
        self.srs = srs


_KEY_CACHE = {}
_KEY_LOCK = threading.Lock()
_COMPILERS = {}


def _compiler_for(registry):
    compiler = _COMPILERS.get(id(registry))
    if compiler is None or compiler.registry is not registry:
        compiler = CircuitCompiler(registry)
        _COMPILERS[id(registry)] = compiler
    return compiler


def build_keys(compiled, config):
    """SRS 생성 + 전처리 + 커밋먼트 키. 캐시하지 않는다."""
    layout = compiled.layout
    n = layout.domain_size
    srs = SRS.generate(
        n + SRS_DEGREE_MARGIN,
        seed=config.srs_seed,
        domain_size=n,
        lagrange_rows=list(layout.w_rows) + list(layout.e_rows),
    )
    preprocessed = preprocess(layout.circuit, srs, n)
    commitment_key = CommitmentKey.from_srs(srs, layout.w_rows, layout.e_rows)
    logger.info("키 생성: %s size=%d, 도메인 %d", compiled.name, compiled.size, n)
    proving_key = ProvingKey(compiled, srs, preprocessed, commitment_key, config)
    verifier_srs = SRS([G1], srs.g2_powers, 0)
    verifying_key = VerifyingKey(compiled, preprocessed, verifier_srs)
    return proving_key, verifying_key


def setup(registry, name, size, config=None):
    """(이름, 크기, SRS 시드)마다 키를 한 번 만들고 캐시한다.

    srs_seed가 None이면 매번 새 τ로 만들고 캐시하지 않는다. 이때 검증 키는
    다시 만들 수 없으므로 호출자가 돌려받은 VerifyingKey를 보관해야 한다
    (prove의 proving_key 인자, Verifier 참고).

    Raises:
        UnknownComputation, UnsupportedSize
    """
    if config is None:
        config = EngineConfig.from_env()
    with _KEY_LOCK:
        compiled = _compiler_for(registry).compile(name, size)
    if config.srs_seed is None:
        return build_keys(compiled, config)

    cache_key = (compiled.descriptor, size, config.srs_seed)
    with _KEY_LOCK:
        keys = _KEY_CACHE.get(cache_key)
        if keys is None:
            keys = build_keys(compiled, config)
            _KEY_CACHE[cache_key] = keys
    proving_key, verifying_key = keys
    if proving_key.config is not config:
        proving_key = ProvingKey(
            compiled, proving_key.srs, proving_key.preprocessed,
            proving_key.commitment_key, config,
        )
    return proving_key, verifying_key


# ─────────────────────────────────────────────────────────────────────
# prove / verify
# ─────────────────────────────────────────────────────────────────────

def prove(registry, name, size, num_steps, initial_state=None, backend="local",
          config=None, rng=None, cancel=None, transport=None, inputs=None,
          proving_key=None):
    """계산을 n번 실행하고 최종 증명을 만든다.

    Args:
        registry: StepRegistry
        name: 계산 이름
        size: 크기 파라미터
        num_steps: 반복 횟수
        initial_state: z0 (None이면 기본값)
        backend: "local" 또는 "distributed"
        config: EngineConfig (None이면 환경 변수)
        rng: 블라인딩 난수원
        cancel: CancellationToken
        transport: 분산 모드 전송 계층 (None이면 ProcessTransport)
        inputs: 스텝별 비공개 입력
        proving_key: setup이 돌려준 키 (None이면 config로 setup).
            srs_seed=None으로 만든 키를 쓸 때 필요하다

    Returns:
        tuple: (FinalProof, 최종 상태 zn)

    Raises:
        UnknownComputation, UnsupportedSize, WitnessGenerationError,
        BackendUnavailable, ComputationCancelled, CompositionError
    """
    if config is None:
        config = EngineConfig.from_env()
    descriptor = registry.get(name)
    if proving_key is None:
        proving_key, _ = setup(registry, name, size, config)
    elif (proving_key.compiled.name, proving_key.compiled.size) != (name, size):
        raise ValueError(
            f"키가 다른 계산의 것입니다: {proving_key.compiled.name}/{proving_key.compiled.size}"
        )
    instance = ComputationInstance(descriptor, size, num_steps, initial_state, inputs)

    plan = BackendPlan.from_config(backend, config)
    owned = None
    if plan.mode != "local" and transport is None:
        owned = transport = ProcessTransport(plan.workers)
    try:
        acc = make_backend(plan, transport).run(instance, proving_key, cancel=cancel)
    finally:
        if owned is not None:
            owned.close()

    proof = compose(acc, proving_key, rng=rng)
    logger.info("증명 완료: %s size=%d, 스텝 %d개 → %s", name, size, num_steps, acc.state)
    return proof, acc.state


def verify(registry, proof, z0, zn, config=None):
    """최종 증명을 검증한다. 잘못된 증명에 대해 예외를 던지지 않는다.

    검증 키를 SRS 시드로 다시 만든다. srs_seed가 None이면 그 증명을 만든
    τ를 알 수 없으므로 무효를 반환한다. 이 경우 setup이 돌려준
    VerifyingKey로 Verifier를 직접 쓴다.

    Returns:
        VerificationResult
    """
    if config is None:
        config = EngineConfig.from_env()
    if config.srs_seed is None:
        return VerificationResult.invalid(
            "srs_seed가 없으면 검증 키를 다시 만들 수 없습니다 (보관한 VerifyingKey를 쓰세요)"
        )
    if isinstance(proof, (bytes, bytearray)):
        try:
            proof = FinalProof.from_bytes(proof)
        except ValueError as exc:
            logger.info("증명 거부: 해석할 수 없습니다 (%s)", exc)
            return VerificationResult.invalid(f"증명을 해석할 수 없습니다: {exc}")
    if not isinstance(proof, FinalProof):
        return VerificationResult.invalid("FinalProof 또는 바이트열이 아닙니다")
    try:
        _, verifying_key = setup(registry, proof.name, proof.size, config)
    except (IVCError, TypeError) as exc:
        logger.info("증명 거부: %s", exc)
        return VerificationResult.invalid(str(exc))
    return Verifier(verifying_key).verify(proof, z0, zn)
