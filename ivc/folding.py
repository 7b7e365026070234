"""
폴딩/누적 엔진 (Folding / Accumulation Engine)
================================================

Nova 방식의 비대화형 폴딩(NIFS)으로 스텝 witness를 누산기 하나에 흡수한다.

**Relaxed R1CS**:
  Az ∘ Bz = u·Cz + E,   z = (u, x, W)

  - 인스턴스 U = (W̄, Ē, u, x)  (W̄, Ē는 벡터 커밋먼트)
  - witness  (W, E)
  - 새 스텝 인스턴스는 u = 1, E = 0

**폴딩 한 번** (U₁, W₁) ⊕ (U₂, W₂):
  1. 교차항 T = Az₁∘Bz₂ + Az₂∘Bz₁ - u₁·Cz₂ - u₂·Cz₁
  2. T̄ = Com(T)
  3. r = H(digest, U₁, U₂, T̄)
  4. W = W₁ + r·W₂,  E = E₁ + r·T + r²·E₂
     u = u₁ + r·u₂,  x = x₁ + r·x₂
     W̄ = W̄₁ + r·W̄₂,  Ē = Ē₁ + r·T̄ + r²·Ē₂

  두 입력이 모두 만족하면 결과도 만족한다. 비용은 회로 크기에만 비례하고
  지금까지 흡수한 스텝 수와 무관하다.

**기저 누산기**: 모든 값이 0인 인스턴스 (u = 0, x = 0, W̄ = Ē = 무한원점).
  자명하게 만족하며, x의 z0 슬롯 = u·z0 관계도 0 = 0으로 성립한다.

사용 예시:
    >>> engine = FoldingEngine(compiled, commitment_key)
    >>> acc = engine.initial(z0=(2,))
    >>> acc = engine.fold(acc, generate_witness(compiled, (2,), (2,), (), 1))
    >>> engine.is_satisfied(acc)
    True
"""

import logging

from ivc.errors import FoldingMisuse
from ivc.field import FR, ec_add, ec_mul
from ivc.transcript import Transcript


logger = logging.getLogger(__name__)


WITNESS_FOLD = "witness"
ACCUMULATOR_FOLD = "accumulator"


# ─────────────────────────────────────────────────────────────────────
# 인스턴스와 witness
# ─────────────────────────────────────────────────────────────────────

class RelaxedInstance:
    """폴딩 인스턴스 U = (W̄, Ē, u, x). 공개 값만 담는다."""

    def __init__(self, comm_w, comm_e, u, x):
        self.comm_w = comm_w
        self.comm_e = comm_e
        self.u = u if isinstance(u, FR) else FR(u)
        self.x = [v if isinstance(v, FR) else FR(v) for v in x]

    @classmethod
    def zero(cls, num_public):
        return cls(None, None, FR(0), [FR(0)] * num_public)

    @classmethod
    def fresh(cls, comm_w, x):
        """새 스텝 인스턴스: u = 1, E = 0."""
        return cls(comm_w, None, FR(1), x)

    def is_fresh(self):
        return self.u == 1 and self.comm_e is None

    def fold(self, other, cross_comm, r):
        """커밋먼트와 스칼라를 r로 결합한다."""
        r_sq = r * r
        comm_w = ec_add(self.comm_w, ec_mul(other.comm_w, r))
        comm_e = ec_add(self.comm_e, ec_mul(cross_comm, r))
        comm_e = ec_add(comm_e, ec_mul(other.comm_e, r_sq))
        u = self.u + r * other.u
        x = [a + r * b for a, b in zip(self.x, other.x)]
        return RelaxedInstance(comm_w, comm_e, u, x)

    def absorb(self, transcript, label):
        transcript.append_point(label + b".W", self.comm_w)
        transcript.append_point(label + b".E", self.comm_e)
        transcript.append_scalar(label + b".u", self.u)
        transcript.append_scalars(label + b".x", self.x)

    def __eq__(self, other):
        if not isinstance(other, RelaxedInstance):
            return NotImplemented
        return (
            self.comm_w == other.comm_w
            and self.comm_e == other.comm_e
            and self.u == other.u
            and self.x == other.x
        )

    def __repr__(self):
        return f"RelaxedInstance(u={int(self.u)}, x={[int(v) for v in self.x]})"


class RelaxedWitness:
    """폴딩 witness (W, E)."""

    def __init__(self, w, e):
        self.w = list(w)
        self.e = list(e)

    @classmethod
    def zero(cls, num_witness, num_constraints):
        return cls([FR(0)] * num_witness, [FR(0)] * num_constraints)

    @classmethod
    def fresh(cls, w, num_constraints):
        return cls(w, [FR(0)] * num_constraints)

    def fold(self, other, cross, r):
        r_sq = r * r
        w = [a + r * b for a, b in zip(self.w, other.w)]
        e = [a + r * t + r_sq * b for a, t, b in zip(self.e, cross, other.e)]
        return RelaxedWitness(w, e)


class FoldRecord:
    """마지막 폴딩의 기록. 합성기가 결정자 회로에서 이 폴딩을 다시 검증한다.

    속성:
        left: 폴딩 전 누산기 인스턴스 U_{n-1}
        right: 흡수된 인스턴스 (스텝 폴딩이면 새 인스턴스 u_n)
        cross_comm: 교차항 커밋먼트 T̄
        challenge: r
        kind: "witness" 또는 "accumulator"
    """

    def __init__(self, left, right, cross_comm, challenge, kind):
        self.left = left
        self.right = right
        self.cross_comm = cross_comm
        self.challenge = challenge
        self.kind = kind


class Accumulator:
    """누산기. 폴딩마다 새 객체를 만든다 (단일 소유자 전달).

    속성:
        instance, witness: 폴딩된 relaxed 인스턴스/witness
        initial_state: z0
        start_state: 이 누산기가 덮는 구간의 시작 상태
        state: 현재 상태 (구간의 마지막 출력)
        first_step: 구간의 첫 스텝 번호
        num_steps: 흡수한 스텝 수
        last_fold: 마지막 FoldRecord (없으면 None)
        digest: 회로 다이제스트
    """

    def __init__(self, instance, witness, initial_state, start_state, state,
                 first_step, num_steps, last_fold, digest):
        self.instance = instance
        self.witness = witness
        self.initial_state = tuple(initial_state)
        self.start_state = tuple(start_state)
        self.state = tuple(state)
        self.first_step = first_step
        self.num_steps = num_steps
        self.last_fold = last_fold
        self.digest = digest

    @property
    def next_step(self):
        return self.first_step + self.num_steps

    def is_empty(self):
        return self.num_steps == 0

    def __repr__(self):
        return (
            f"Accumulator(steps={self.first_step}..{self.next_step - 1}, "
            f"state={self.state})"
        )


# ─────────────────────────────────────────────────────────────────────
# NIFS
# ─────────────────────────────────────────────────────────────────────

def fold_challenge(digest, left, right, cross_comm, label=b"ivc-nifs"):
    """r = H(digest, U₁, U₂, T̄)."""
    transcript = Transcript(label)
    transcript.append_bytes(b"digest", digest)
    left.absorb(transcript, b"U1")
    right.absorb(transcript, b"U2")
    transcript.append_point(b"T", cross_comm)
    return transcript.challenge_scalar(b"r")


def compute_cross_term(circuit, left, left_witness, right, right_witness):
    """T = Az₁∘Bz₂ + Az₂∘Bz₁ - u₁·Cz₂ - u₂·Cz₁."""
    az1, bz1, cz1 = circuit.multiply(circuit.z_vector(left.u, left.x, left_witness.w))
    az2, bz2, cz2 = circuit.multiply(circuit.z_vector(right.u, right.x, right_witness.w))
    return [
        a1 * b2 + a2 * b1 - left.u * c2 - right.u * c1
        for a1, b1, c1, a2, b2, c2 in zip(az1, bz1, cz1, az2, bz2, cz2)
    ]


def nifs_fold(circuit, key, left, left_witness, right, right_witness, label=b"ivc-nifs"):
    """폴딩 한 번을 수행한다.

    Returns:
        tuple: (인스턴스, witness, T̄, r)
    """
    cross = compute_cross_term(circuit, left, left_witness, right, right_witness)
    cross_comm = key.commit_error(cross)
    r = fold_challenge(circuit.digest, left, right, cross_comm, label)
    instance = left.fold(right, cross_comm, r)
    witness = left_witness.fold(right_witness, cross, r)
    return instance, witness, cross_comm, r


# ─────────────────────────────────────────────────────────────────────
# FoldingEngine
# ─────────────────────────────────────────────────────────────────────

class FoldingEngine:
    """컴파일된 회로 하나에 대한 폴딩 연산.

    Args:
        compiled: CompiledCircuit
        commitment_key: CommitmentKey
    """

    def __init__(self, compiled, commitment_key):
        self.compiled = compiled
        self.circuit = compiled.circuit
        self.key = commitment_key

    def initial(self, z0, start_state=None, first_step=1):
        """빈 누산기 (0 인스턴스). start_state 기본값은 z0."""
        z0 = tuple(z0)
        start = z0 if start_state is None else tuple(start_state)
        return Accumulator(
            RelaxedInstance.zero(self.circuit.num_public),
            RelaxedWitness.zero(self.circuit.num_witness, self.circuit.num_constraints),
            z0, start, start, first_step, 0, None, self.circuit.digest,
        )

    def commit_witness(self, witness):
        """스텝 witness → 새 인스턴스 (u = 1, E = 0)."""
        return RelaxedInstance.fresh(self.key.commit_witness(witness.w), witness.x)

    def _check_witness_shape(self, witness):
        if witness.digest != self.circuit.digest:
            raise FoldingMisuse("witness가 다른 회로에서 만들어졌습니다")
        if len(witness.x) != self.circuit.num_public or len(witness.w) != self.circuit.num_witness:
            raise FoldingMisuse("witness 벡터 길이가 회로와 다릅니다")

    def fold(self, acc, witness):
        """스텝 witness 하나를 누산기에 흡수한다.

        만족 여부는 다시 검사하지 않는다 (is_satisfied 참고).

        Raises:
            FoldingMisuse: 회로/길이/스텝 순서/상태 연결/z0 불일치
        """
        self._check_witness_shape(witness)
        if acc.digest != self.circuit.digest:
            raise FoldingMisuse("누산기가 다른 회로에 속합니다")
        if witness.step != acc.next_step:
            raise FoldingMisuse(
                f"스텝 순서 위반: 누산기는 스텝 {acc.next_step}을 기다리는데 "
                f"스텝 {witness.step}이 들어왔습니다"
            )
        if witness.z_in != acc.state:
            raise FoldingMisuse(
                f"스텝 {witness.step}의 입력 상태가 누산기 상태와 다릅니다"
            )
        if witness.z0 != acc.initial_state:
            raise FoldingMisuse("witness의 z0가 누산기의 초기 상태와 다릅니다")

        fresh = self.commit_witness(witness)
        fresh_witness = RelaxedWitness.fresh(witness.w, self.circuit.num_constraints)
        instance, folded, cross_comm, r = nifs_fold(
            self.circuit, self.key, acc.instance, acc.witness, fresh, fresh_witness
        )
        logger.debug("스텝 %d 폴딩 완료", witness.step)
        return Accumulator(
            instance, folded, acc.initial_state, acc.start_state, witness.z_out,
            acc.first_step, acc.num_steps + 1,
            FoldRecord(acc.instance, fresh, cross_comm, r, WITNESS_FOLD),
            acc.digest,
        )

    def combine(self, left, right):
        """연속한 두 구간의 누산기를 하나로 폴딩한다.

        Raises:
            FoldingMisuse: 회로/z0가 다르거나 구간이 이어지지 않을 때
        """
        if left.digest != self.circuit.digest or right.digest != self.circuit.digest:
            raise FoldingMisuse("누산기가 다른 회로에 속합니다")
        if left.initial_state != right.initial_state:
            raise FoldingMisuse("두 누산기의 z0가 다릅니다")
        if right.first_step != left.next_step:
            raise FoldingMisuse(
                f"구간이 이어지지 않습니다: 왼쪽은 스텝 {left.next_step - 1}에서 끝나고 "
                f"오른쪽은 스텝 {right.first_step}에서 시작합니다"
            )
        if right.start_state != left.state:
            raise FoldingMisuse("오른쪽 구간의 시작 상태가 왼쪽 구간의 끝 상태와 다릅니다")

        instance, folded, cross_comm, r = nifs_fold(
            self.circuit, self.key, left.instance, left.witness,
            right.instance, right.witness,
        )
        logger.debug(
            "구간 결합: 스텝 %d..%d + %d..%d",
            left.first_step, left.next_step - 1, right.first_step, right.next_step - 1,
        )
        return Accumulator(
            instance, folded, left.initial_state, left.start_state, right.state,
            left.first_step, left.num_steps + right.num_steps,
            FoldRecord(left.instance, right.instance, cross_comm, r, ACCUMULATOR_FOLD),
            left.digest,
        )

    def is_satisfied(self, acc):
        """누산기가 relaxed R1CS를 만족하고 커밋먼트가 witness와 일치하는지."""
        inst = acc.instance
        wit = acc.witness
        if not self.circuit.is_satisfied(inst.x, wit.w, inst.u, wit.e):
            return False
        if inst.comm_w != self.key.commit_witness(wit.w):
            return False
        return inst.comm_e == self.key.commit_error(wit.e)
