"""
재귀 증명 합성기 (Recursive Proof Composer)
=============================================

최종 누산기 하나 → 간결한 FinalProof 하나.

**합성 과정**:
  1. 누산기 검사 (CompositionError)
     - 스텝 1개 이상, 스텝 1과 z0에서 시작
     - 마지막 스텝 인스턴스의 스텝 번호가 n (n = 1이면 직전 누산기는 기저)
     - 마지막 폴딩이 새 스텝 witness를 흡수했는지
     - 기록된 마지막 폴딩을 다시 계산하면 누산기 인스턴스가 나오는지
     - strict이면 relaxed R1CS 만족 여부
  2. 블라인딩: 무작위 만족 인스턴스 R을 접어 U* = U_n ⊕_{r_b} R
     W*, E*가 원래 witness를 드러내지 않는다.
  3. 결정자 PLONK 증명: 공개 입력 (U_{n-1}, u_n, r, R, r_b, z0)
  4. 연결 증명: PLONK 배선 ↔ W̄*, Ē*

**증명 크기**:
  인스턴스 3개 + 교차항 커밋먼트 2개 + PLONK 증명 + 연결 증명.
  모두 회로 크기로 정해지고 n과 무관하다.

사용 예시:
    >>> proof = compose(acc, proving_key)
    >>> data = proof.to_bytes()
    >>> FinalProof.from_bytes(data).zn == acc.state
    True
"""

import logging
import secrets

from ivc import serialization
from ivc.decider import prove_link
from ivc.errors import CompositionError
from ivc.field import FR, CURVE_ORDER
from ivc.folding import (
    WITNESS_FOLD, RelaxedInstance, RelaxedWitness, fold_challenge, nifs_fold,
)
from ivc.plonk.prover import run_rounds


logger = logging.getLogger(__name__)


BLIND_LABEL = b"ivc-nifs-blind"


class FinalProof:
    """IVC 최종 증명. 생성 후 수정하지 않는다.

    속성:
        name, size: 계산 이름과 크기
        num_steps: 스텝 수 n
        z0, zn: 주장하는 초기/최종 상태
        left: U_{n-1} (마지막 폴딩 직전의 누산기 인스턴스)
        right: u_n (마지막 스텝의 새 인스턴스)
        cross_comm: 마지막 폴딩의 T̄
        blind: 블라인딩 인스턴스 R
        blind_cross_comm: 블라인딩 폴딩의 T̄
        plonk: 결정자 PLONK Proof
        link: LinkProof
    """

    def __init__(self, name, size, num_steps, z0, zn, left, right, cross_comm,
                 blind, blind_cross_comm, plonk, link):
        self.name = name
        self.size = size
        self.num_steps = num_steps
        self.z0 = tuple(z0)
        self.zn = tuple(zn)
        self.left = left
        self.right = right
        self.cross_comm = cross_comm
        self.blind = blind
        self.blind_cross_comm = blind_cross_comm
        self.plonk = plonk
        self.link = link

    def to_bytes(self):
        return serialization.encode(self)

    @classmethod
    def from_bytes(cls, data):
        """바이트열 → FinalProof.

        Raises:
            ValueError: 해석할 수 없는 바이트열
        """
        return cls(**serialization.decode_fields(data))

    def __repr__(self):
        return f"FinalProof({self.name!r}, size={self.size}, steps={self.num_steps})"


# ─────────────────────────────────────────────────────────────────────
# 블라인딩 인스턴스
# ─────────────────────────────────────────────────────────────────────

def _random_scalar(rng):
    return FR(rng.randrange(CURVE_ORDER))


def random_instance(circuit, key, rng):
    """무작위 W, x, u를 뽑고 E = Az∘Bz - u·Cz 로 맞춘 만족 인스턴스.

    Returns:
        tuple: (RelaxedInstance, RelaxedWitness)
    """
    u = _random_scalar(rng)
    x = [_random_scalar(rng) for _ in range(circuit.num_public)]
    w = [_random_scalar(rng) for _ in range(circuit.num_witness)]
    az, bz, cz = circuit.multiply(circuit.z_vector(u, x, w))
    e = [a * b - u * c for a, b, c in zip(az, bz, cz)]
    instance = RelaxedInstance(key.commit_witness(w), key.commit_error(e), u, x)
    return instance, RelaxedWitness(w, e)


# ─────────────────────────────────────────────────────────────────────
# 누산기 검사
# ─────────────────────────────────────────────────────────────────────

def check_accumulator(acc, compiled, key, strict=True):
    """합성 전제 조건을 확인한다.

    Raises:
        CompositionError: 조건 위반
    """
    circuit = compiled.circuit
    if acc.digest != circuit.digest:
        raise CompositionError("누산기가 다른 회로에 속합니다")
    if acc.num_steps < 1:
        raise CompositionError("폴딩된 스텝이 없습니다")
    if acc.first_step != 1 or acc.start_state != acc.initial_state:
        raise CompositionError(
            f"누산기가 스텝 1과 z0에서 시작하지 않습니다 (시작 스텝 {acc.first_step})"
        )
    record = acc.last_fold
    if record is None or record.kind != WITNESS_FOLD:
        raise CompositionError("마지막 폴딩이 스텝 witness를 흡수하지 않았습니다")
    if not record.right.is_fresh():
        raise CompositionError("마지막으로 흡수한 인스턴스가 새 스텝 인스턴스가 아닙니다")

    # 마지막 폴딩 재계산
    r = fold_challenge(circuit.digest, record.left, record.right, record.cross_comm)
    if r != record.challenge:
        raise CompositionError("기록된 폴딩 챌린지가 트랜스크립트와 다릅니다")
    if record.left.fold(record.right, record.cross_comm, r) != acc.instance:
        raise CompositionError("마지막 폴딩을 다시 계산한 결과가 누산기와 다릅니다")

    right_x = record.right.x
    if right_x[circuit.step_slice()] != [FR(acc.num_steps)]:
        raise CompositionError(
            f"마지막 스텝 인스턴스의 스텝 번호가 {acc.num_steps}가 아닙니다"
        )
    if acc.num_steps == 1 and record.left != RelaxedInstance.zero(circuit.num_public):
        raise CompositionError("스텝 1은 기저 누산기에 폴딩되어야 합니다")
    if [int(v) for v in right_x[circuit.z0_slice()]] != list(acc.initial_state):
        raise CompositionError("마지막 스텝 인스턴스의 z0가 누산기와 다릅니다")
    if [int(v) for v in right_x[circuit.z_out_slice()]] != list(acc.state):
        raise CompositionError("마지막 스텝 인스턴스의 출력이 누산기 상태와 다릅니다")

    if strict:
        inst = acc.instance
        failed = circuit.unsatisfied(inst.x, acc.witness.w, inst.u, acc.witness.e)
        if failed:
            raise CompositionError(
                f"누산된 witness가 회로를 만족하지 않습니다: {failed[:3]}"
            )
        if (key.commit_witness(acc.witness.w) != inst.comm_w
                or key.commit_error(acc.witness.e) != inst.comm_e):
            raise CompositionError("누산된 witness가 커밋먼트와 다릅니다")


# ─────────────────────────────────────────────────────────────────────
# compose
# ─────────────────────────────────────────────────────────────────────

def compose(acc, proving_key, rng=None, strict=True):
    """누산기를 최종 증명으로 합성한다.

    Args:
        acc: 최종 Accumulator
        proving_key: engine.ProvingKey
        rng: 블라인딩 난수원 (기본 secrets.SystemRandom)
        strict: False이면 만족 검사를 건너뛴다 (위조 증명이 검증에서
            거부되는지 확인하는 테스트용)

    Returns:
        FinalProof

    Raises:
        CompositionError: 누산기 형태가 잘못되었거나 (strict) 만족하지 않을 때
    """
    if rng is None:
        rng = secrets.SystemRandom()
    compiled = proving_key.compiled
    circuit = compiled.circuit
    layout = compiled.layout
    key = proving_key.commitment_key

    # ── 1. 누산기 검사 ──
    check_accumulator(acc, compiled, key, strict=strict)
    record = acc.last_fold

    # ── 2. 블라인딩 ──
    blind, blind_witness = random_instance(circuit, key, rng)
    star, star_witness, blind_cross, r_b = nifs_fold(
        circuit, key, acc.instance, acc.witness, blind, blind_witness, label=BLIND_LABEL
    )

    # ── 3. 결정자 PLONK ──
    public = layout.public_inputs(
        record.left, record.right, record.challenge, blind, r_b, acc.initial_state
    )
    a_vals, b_vals, c_vals = layout.assign(public, star_witness.w, star_witness.e)
    try:
        state = run_rounds(
            a_vals, b_vals, c_vals, public, proving_key.preprocessed, proving_key.srs,
            rng=rng, strict=strict,
        )
    except ValueError as exc:
        raise CompositionError(f"결정자 회로를 만족하지 않습니다: {exc}") from exc

    # ── 4. 연결 증명 ──
    link = prove_link(
        layout, state, star_witness.w, star_witness.e,
        star.comm_w, star.comm_e, proving_key.srs,
    )

    logger.info(
        "최종 증명 합성: %s size=%d, 스텝 %d개", compiled.name, compiled.size, acc.num_steps
    )
    return FinalProof(
        compiled.name, compiled.size, acc.num_steps, acc.initial_state, acc.state,
        record.left, record.right, record.cross_comm, blind, blind_cross,
        state.proof, link,
    )
