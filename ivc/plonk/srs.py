"""
Structured Reference String (SRS)
==================================

KZG 커밋먼트와 폴딩 벡터 커밋먼트가 함께 쓰는 공개 파라미터.

  SRS = {
      G1 powers:   [G1, τ·G1, τ²·G1, ..., τ^d·G1]      (PLONK 다항식 커밋)
      G2 powers:   [G2, τ·G2]                          (페어링 검증)
      Lagrange:    {i: [L_i(τ)]₁}  (도메인 크기 N의 일부 행)  (폴딩 벡터 커밋)
  }

**Lagrange 점이 필요한 이유**:
  폴딩 엔진은 witness 벡터 W를 Com(W) = Σ Wᵢ·[L_{rowᵢ}(τ)]₁ 로 커밋한다.
  이 값은 "결정자 회로의 rowᵢ행에 Wᵢ를 놓은 배선 다항식"의 KZG 커밋먼트와
  같은 다항식 w(X) = Σ Wᵢ·L_{rowᵢ}(X) 의 커밋이다. 그래서 결정자가
  PLONK 배선과 폴딩 커밋먼트를 다항식 항등식으로 연결할 수 있다.

**보안**:
  τ를 아는 사람은 거짓 증명을 만들 수 있다. 여기서는 교육용으로 seed에서
  결정론적으로 τ를 유도한다. 실제 시스템은 MPC 세레모니를 쓴다.

사용 예시:
    >>> srs = SRS.generate(max_degree=136, seed=42, domain_size=128, lagrange_rows=range(15, 33))
    >>> len(srs.g1_powers)
    137
"""

import hashlib
import logging
import secrets

from ivc.field import FR, G1, G2, CURVE_ORDER, ec_mul, fixed_base_mul, get_root_of_unity


logger = logging.getLogger(__name__)


def derive_tau(seed):
    """seed → τ. seed가 None이면 안전한 난수."""
    if seed is None:
        return FR(secrets.randbelow(CURVE_ORDER - 1) + 1)
    h = hashlib.sha256(str(seed).encode()).digest()
    tau = int.from_bytes(h, "big") % CURVE_ORDER
    return FR(tau or 1)


def lagrange_values_at(tau, n, rows):
    """L_i(τ) for i in rows, 도메인 크기 n.

    L_i(τ) = ωⁱ·(τⁿ - 1) / (n·(τ - ωⁱ))
    """
    omega = get_root_of_unity(n)
    zh = tau ** n - FR(1)
    scale = zh / FR(n)
    result = {}
    for i in rows:
        omega_i = omega ** i
        result[i] = scale * omega_i / (tau - omega_i)
    return result


class SRS:
    """Structured Reference String.

    속성:
        g1_powers: [τⁱ]₁ 리스트 (길이 max_degree + 1)
        g2_powers: [G2, [τ]₂]
        max_degree: 커밋 가능한 최대 다항식 차수
        domain_size: Lagrange 점의 도메인 크기 N (없으면 None)
        lagrange_points: 행 → [L_row(τ)]₁
    """

    def __init__(self, g1_powers, g2_powers, max_degree, domain_size=None,
                 lagrange_points=None):
        self.g1_powers = g1_powers
        self.g2_powers = g2_powers
        self.max_degree = max_degree
        self.domain_size = domain_size
        self.lagrange_points = lagrange_points or {}

    @classmethod
    def generate(cls, max_degree, seed=None, domain_size=None, lagrange_rows=()):
        """SRS를 생성한다.

        Args:
            max_degree: 지원할 최대 다항식 차수 (PLONK 결정자는 N + 8 정도)
            seed: τ 유도 시드 (교육용, 결정론적)
            domain_size: Lagrange 점을 만들 도메인 크기 N
            lagrange_rows: [L_i(τ)]₁을 만들 행 번호들

        Returns:
            SRS
        """
        tau = derive_tau(seed)

        powers = []
        current = FR(1)
        for _ in range(max_degree + 1):
            powers.append(current)
            current = current * tau
        g1_powers = fixed_base_mul(G1, powers)
        g2_powers = [G2, ec_mul(G2, tau)]

        lagrange_points = {}
        rows = sorted(set(lagrange_rows))
        if rows:
            if domain_size is None:
                raise ValueError("Lagrange 점을 만들려면 domain_size가 필요합니다")
            values = lagrange_values_at(tau, domain_size, rows)
            points = fixed_base_mul(G1, [values[i] for i in rows])
            lagrange_points = dict(zip(rows, points))

        logger.debug(
            "SRS 생성: max_degree=%d, lagrange=%d행", max_degree, len(lagrange_points)
        )
        return cls(g1_powers, g2_powers, max_degree, domain_size, lagrange_points)
