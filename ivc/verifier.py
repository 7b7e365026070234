"""
IVC 검증자 (Verifier)
======================

FinalProof와 주장 (z0, zn)을 받아 유효/무효를 판정한다.

**검증 과정**:
  1. 디코딩 및 형태 검사: 이름/크기, 벡터 길이, 점이 곡선 위에 있는지
  2. 주장 일치: proof.z0 == z0, proof.zn == zn,
     u_n은 새 인스턴스 (u = 1, Ē = 0)이고 x의 스텝 번호 슬롯이 n,
     z0/z_out 슬롯이 주장과 같다. n = 1이면 U_0는 기저(0) 인스턴스
  3. 폴딩 재계산: r, U_n = U_{n-1} ⊕_r u_n, r_b, U* = U_n ⊕_{r_b} R
  4. 결정자 PLONK 페어링 항 + 연결 증명 페어링 항
  5. 두 항을 ρ로 묶어 페어링 검사 한 번 (페어링 2회)

비용은 해시, 상수 개의 군 연산, 페어링 2회로 n과 무관하다.

잘못된 증명에 대해서는 예외를 던지지 않고 VerificationResult(False, 이유)를
반환한다.

사용 예시:
    >>> verifier = Verifier(verifying_key)
    >>> result = verifier.verify(proof.to_bytes(), (2,), (2 ** 32,))
    >>> result.valid
    True
"""

import logging

from ivc.composer import BLIND_LABEL, FinalProof
from ivc.decider import LinkProof, combine_terms, link_terms
from ivc.field import FR, is_on_g1
from ivc.folding import RelaxedInstance, fold_challenge
from ivc.plonk.kzg import pairing_check
from ivc.plonk.prover import Proof
from ivc.plonk.verifier import verification_terms


logger = logging.getLogger(__name__)


class VerificationResult:
    """검증 결과. bool로 쓸 수 있다."""

    def __init__(self, valid, reason=None):
        self.valid = valid
        self.reason = reason

    @classmethod
    def accept(cls):
        return cls(True)

    @classmethod
    def invalid(cls, reason):
        return cls(False, reason)

    def __bool__(self):
        return self.valid

    def __repr__(self):
        if self.valid:
            return "VerificationResult(valid=True)"
        return f"VerificationResult(valid=False, reason={self.reason!r})"


class _Reject(Exception):
    """검증 내부에서 무효 사유를 전달한다."""


def _normalize_state(value, arity, what):
    try:
        state = tuple(value)
    except TypeError:
        raise _Reject(f"{what}는 정수 시퀀스여야 합니다") from None
    if len(state) != arity:
        raise _Reject(f"{what}의 길이가 {arity}가 아닙니다")
    for v in state:
        if isinstance(v, bool) or not isinstance(v, int):
            raise _Reject(f"{what}에 정수가 아닌 값이 있습니다")
    return state


def _check_instance(instance, num_public, what):
    if not isinstance(instance, RelaxedInstance):
        raise _Reject(f"{what}가 인스턴스가 아닙니다")
    if len(instance.x) != num_public:
        raise _Reject(f"{what}의 공개 입력 길이가 회로와 다릅니다")
    if not is_on_g1(instance.comm_w) or not is_on_g1(instance.comm_e):
        raise _Reject(f"{what}의 커밋먼트가 곡선 위의 점이 아닙니다")


def _check_fields(obj, cls, what):
    if not isinstance(obj, cls):
        raise _Reject(f"{what}의 형식이 잘못되었습니다")
    for name in cls.POINTS:
        if not is_on_g1(getattr(obj, name)):
            raise _Reject(f"{what}.{name}이 곡선 위의 점이 아닙니다")
    for name in cls.SCALARS:
        if not isinstance(getattr(obj, name), FR):
            raise _Reject(f"{what}.{name}이 필드 원소가 아닙니다")


class Verifier:
    """검증 키 하나에 묶인 검증자.

    Args:
        verifying_key: engine.VerifyingKey
    """

    def __init__(self, verifying_key):
        self.key = verifying_key
        self.compiled = verifying_key.compiled
        self.circuit = verifying_key.compiled.circuit
        self.layout = verifying_key.compiled.layout

    def verify(self, proof, z0, zn):
        """최종 증명을 검증한다. 예외를 던지지 않는다.

        Args:
            proof: FinalProof 또는 그 바이트열
            z0, zn: 주장하는 초기/최종 상태

        Returns:
            VerificationResult
        """
        try:
            self._verify(proof, z0, zn)
        except _Reject as exc:
            logger.info("증명 거부: %s", exc)
            return VerificationResult.invalid(str(exc))
        except (ValueError, TypeError, ArithmeticError) as exc:
            logger.info("증명 거부 (계산 오류): %s", exc)
            return VerificationResult.invalid(f"잘못된 증명: {exc}")
        return VerificationResult.accept()

    def _decode(self, proof):
        if isinstance(proof, (bytes, bytearray)):
            try:
                return FinalProof.from_bytes(proof)
            except ValueError as exc:
                raise _Reject(f"증명을 해석할 수 없습니다: {exc}") from None
        if not isinstance(proof, FinalProof):
            raise _Reject("FinalProof 또는 바이트열이 아닙니다")
        return proof

    def _verify(self, proof, z0, zn):
        circuit = self.circuit
        arity = circuit.arity

        # ── 1. 디코딩과 형태 ──
        proof = self._decode(proof)
        if proof.name != self.compiled.name or proof.size != self.compiled.size:
            raise _Reject(
                f"다른 계산의 증명입니다: {proof.name}/{proof.size} "
                f"(기대: {self.compiled.name}/{self.compiled.size})"
            )
        if isinstance(proof.num_steps, bool) or not isinstance(proof.num_steps, int) \
                or proof.num_steps < 1:
            raise _Reject("스텝 수가 1 이상의 정수가 아닙니다")
        z0 = _normalize_state(z0, arity, "z0")
        zn = _normalize_state(zn, arity, "zn")
        for what in ("left", "right", "blind"):
            _check_instance(getattr(proof, what), circuit.num_public, what)
        if not is_on_g1(proof.cross_comm) or not is_on_g1(proof.blind_cross_comm):
            raise _Reject("교차항 커밋먼트가 곡선 위의 점이 아닙니다")
        _check_fields(proof.plonk, Proof, "plonk")
        _check_fields(proof.link, LinkProof, "link")

        # ── 2. 주장 일치 ──
        if proof.z0 != z0 or proof.zn != zn:
            raise _Reject("증명의 (z0, zn)이 주장과 다릅니다")
        right = proof.right
        if not right.is_fresh():
            raise _Reject("마지막 스텝 인스턴스가 새 인스턴스가 아닙니다")
        if right.x[circuit.step_slice()] != [FR(proof.num_steps)]:
            raise _Reject("마지막 스텝 인스턴스의 스텝 번호가 스텝 수와 다릅니다")
        if proof.num_steps == 1 and proof.left != RelaxedInstance.zero(circuit.num_public):
            raise _Reject("스텝 1은 기저 누산기에 폴딩되어야 합니다")
        if right.x[circuit.z0_slice()] != [FR(v) for v in z0]:
            raise _Reject("마지막 스텝 인스턴스의 z0가 주장과 다릅니다")
        if right.x[circuit.z_out_slice()] != [FR(v) for v in zn]:
            raise _Reject("마지막 스텝 인스턴스의 출력이 주장과 다릅니다")

        # ── 3. 폴딩 재계산 ──
        r = fold_challenge(circuit.digest, proof.left, right, proof.cross_comm)
        folded = proof.left.fold(right, proof.cross_comm, r)
        r_b = fold_challenge(
            circuit.digest, folded, proof.blind, proof.blind_cross_comm, BLIND_LABEL
        )
        star = folded.fold(proof.blind, proof.blind_cross_comm, r_b)

        # ── 4. 페어링 항 ──
        pp = self.key.preprocessed
        public = self.layout.public_inputs(proof.left, right, r, proof.blind, r_b, z0)
        plonk_terms = verification_terms(proof.plonk, public, pp)
        try:
            link = link_terms(
                self.layout, proof.link, proof.plonk.a_comm, proof.plonk.c_comm,
                star.comm_w, star.comm_e, pp.omega,
            )
        except ValueError as exc:
            raise _Reject(f"연결 증명 실패: {exc}") from None

        # ── 5. 일괄 페어링 ──
        a_term, b_term = combine_terms([plonk_terms, link])
        if not pairing_check(a_term, b_term, self.key.srs):
            raise _Reject("페어링 검사 실패")
