"""
KZG 다항식 커밋먼트
====================

  - 커밋먼트: C = p(τ)·G1 = Σ cᵢ·[τⁱ]₁  (msm 한 번)
  - 열기 증명: q(x) = (p(x) - y)/(x - z), π = [q(τ)]₁
  - 검증: e(π, [τ]₂) == e(z·π + C - y·G1, G2)

검증식의 좌변/우변 G1 항 (A, B)를 따로 반환하는 opening_terms()는
여러 페어링 검사를 랜덤 계수로 묶어 한 번에 확인할 때 쓴다:

    e(A₁ + ρ·A₂, [τ]₂) == e(B₁ + ρ·B₂, G2)

사용 예시:
    >>> C = commit(poly, srs)
    >>> pi = create_witness(poly, FR(7), srs)
    >>> verify_opening(C, pi, FR(7), poly.evaluate(FR(7)), srs)
    True
"""

from ivc.field import FR, G1, msm, ec_mul, ec_add, ec_neg, ec_pairing
from ivc.polynomial import divide_by_linear


def commit(poly, srs):
    """다항식을 KZG 커밋한다.

    Raises:
        ValueError: 다항식 차수가 SRS 최대 차수를 초과할 때
    """
    if poly.degree > srs.max_degree:
        raise ValueError(
            f"다항식 차수 {poly.degree}가 SRS 최대 차수 {srs.max_degree}를 초과합니다"
        )
    return msm(srs.g1_powers[:len(poly.coeffs)], poly.coeffs)


def create_witness(poly, point, srs):
    """p(point)에 대한 열기 증명 π = [(p(x) - p(z))/(x - z)]₁."""
    if not isinstance(point, FR):
        point = FR(point)
    return commit(divide_by_linear(poly, point), srs)


def opening_terms(commitment, proof, point, evaluation):
    """e(A, [τ]₂) == e(B, G2) 형태의 (A, B)를 반환한다.

    A = π
    B = z·π + C - y·G1
    """
    b_term = ec_add(ec_mul(proof, point), commitment)
    b_term = ec_add(b_term, ec_neg(ec_mul(G1, evaluation)))
    return proof, b_term


def pairing_check(a_term, b_term, srs):
    """e(A, [τ]₂) == e(B, G2)."""
    return ec_pairing(srs.g2_powers[1], a_term) == ec_pairing(srs.g2_powers[0], b_term)


def verify_opening(commitment, proof, point, evaluation, srs):
    """단일 KZG 열기 증명을 검증한다."""
    a_term, b_term = opening_terms(commitment, proof, FR(point), FR(evaluation))
    return pairing_check(a_term, b_term, srs)
