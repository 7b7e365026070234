"""
유한체(Finite Field) 및 타원곡선 연산
======================================

IVC 엔진 전체에서 사용되는 기본 대수적 도구를 정의한다.

**유한체 FR**:
  bn128 곡선의 스칼라 필드. R1CS 변수, 폴딩 챌린지, PLONK 다항식이 모두
  이 필드 위에서 계산된다.
  - 위수 p ≈ 2^254, p - 1 = 2^28 × m → 최대 2^28차 단위근 지원

**타원곡선 연산**:
  - ec_mul / ec_add / ec_neg: 단일 점 연산 (아핀 좌표, py_ecc.bn128)
  - msm: 다중 스칼라 곱셈 Σ sᵢ·Pᵢ (Pippenger 버킷 방식, 사영 좌표)
  - ec_pairing: 페어링 e(G1, G2)

  폴딩 엔진은 스텝마다 witness 벡터와 교차항(cross term)을 커밋하므로
  msm이 가장 자주 호출되는 연산이다. 사영 좌표(py_ecc.optimized_bn128)를
  쓰면 점 덧셈마다 역원 계산을 피할 수 있다.

사용 예시:
    >>> from ivc.field import FR, G1, ec_mul, msm
    >>> P = ec_mul(G1, 5)
    >>> Q = msm([G1, P], [FR(2), FR(3)])   # 2·G1 + 15·G1 = 17·G1
"""

from py_ecc import bn128, optimized_bn128
from py_ecc.fields import bn128_FQ as FQ
from py_ecc.fields import optimized_bn128_FQ as _OFQ
from py_ecc.fields import optimized_bn128_FQ2 as _OFQ2


# ─────────────────────────────────────────────────────────────────────
# 유한체(Finite Field) FR
# ─────────────────────────────────────────────────────────────────────

class FR(FQ):
    """bn128 스칼라 필드 위의 유한체 원소.

    py_ecc의 FQ를 상속하여 +, -, *, /, ** 연산을 제공한다.

    예시:
        >>> FR(3) * FR(7)   # FR(21)
        >>> FR(1) / FR(3)   # 3의 모듈러 역원
        >>> FR(-1) == FR(CURVE_ORDER - 1)
        True
    """
    field_modulus = bn128.curve_order


# 곡선 위수 (필드 크기)
CURVE_ORDER = bn128.curve_order

# 베이스 필드 위수 (점 좌표의 범위)
FIELD_MODULUS = bn128.field_modulus


# ─────────────────────────────────────────────────────────────────────
# 타원곡선 상수 및 단일 점 연산
# ─────────────────────────────────────────────────────────────────────

G1 = bn128.G1
G2 = bn128.G2

# G1의 항등원 (무한원점)
Z1 = None


def ec_mul(point, scalar):
    """타원곡선 스칼라 곱셈: scalar · point.

    G1 점은 사영 좌표로 곱한다 (폴딩마다 호출되므로 역원 계산을 줄인다).

    Args:
        point: G1 또는 G2 위의 점 (None이면 무한원점)
        scalar: 정수 또는 FR 원소

    Returns:
        scalar · point
    """
    if point is None:
        return None
    scalar = int(scalar) % CURVE_ORDER
    if scalar == 0:
        return None
    if isinstance(point[0], FQ):
        return _to_affine(optimized_bn128.multiply(_to_projective(point), scalar))
    return bn128.multiply(point, scalar)


def ec_add(p1, p2):
    """타원곡선 점 덧셈: p1 + p2."""
    return bn128.add(p1, p2)


def ec_neg(point):
    """타원곡선 점의 역원: -point."""
    if point is None:
        return None
    return bn128.neg(point)


def is_on_g1(point):
    """G1 위의 점(또는 무한원점)인지 확인한다.

    직렬화된 증명에서 읽은 좌표가 곡선 위에 있는지 검증할 때 사용한다.
    """
    if point is None:
        return True
    if not isinstance(point, tuple) or len(point) != 2:
        return False
    x, y = point
    if not isinstance(x, FQ) or not isinstance(y, FQ):
        return False
    return bn128.is_on_curve(point, bn128.b)


# ─────────────────────────────────────────────────────────────────────
# 사영 좌표 변환 (py_ecc.optimized_bn128)
# ─────────────────────────────────────────────────────────────────────

def _to_projective(point):
    """아핀 G1 점 → optimized_bn128 사영 좌표 (x, y, z)."""
    if point is None:
        return optimized_bn128.Z1
    x, y = point
    return (
        _OFQ(int(x)),
        _OFQ(int(y)),
        _OFQ.one(),
    )


def _to_affine(point):
    """optimized_bn128 사영 좌표 → 아핀 G1 점 (무한원점은 None)."""
    if point[2] == 0:
        return None
    x, y = optimized_bn128.normalize(point)
    return (FQ(int(x)), FQ(int(y)))


def _g2_to_projective(point):
    """아핀 G2 점 → optimized_bn128 사영 좌표."""
    if point is None:
        return optimized_bn128.Z2
    x, y = point
    return (
        _OFQ2([int(c) for c in x.coeffs]),
        _OFQ2([int(c) for c in y.coeffs]),
        _OFQ2.one(),
    )


# ─────────────────────────────────────────────────────────────────────
# 다중 스칼라 곱셈 (Multi-Scalar Multiplication)
# ─────────────────────────────────────────────────────────────────────

def _window_bits(count):
    """점 개수에 맞는 Pippenger 윈도우 폭 (비트)."""
    return max(2, min(12, count.bit_length() - 2))


def msm(points, scalars):
    """Σ sᵢ·Pᵢ 를 계산한다 (Pippenger 버킷 방식).

    알고리즘:
        1. 스칼라를 c비트 윈도우로 나눈다.
        2. 윈도우마다 같은 digit을 가진 점들을 버킷에 모은다.
        3. 버킷을 위에서부터 누적합하여 Σ d·B_d 를 구한다.
        4. 상위 윈도우부터 c번 doubling 후 더한다.

    0 스칼라와 무한원점은 건너뛴다. 폴딩 witness의 대부분은 비트(0/1)라
    실제 작업량은 0이 아닌 항의 수에 비례한다.

    Args:
        points: 아핀 G1 점 리스트
        scalars: 정수 또는 FR 원소 리스트 (points와 같은 길이)

    Returns:
        G1 점 (아핀) 또는 None

    Raises:
        ValueError: 두 리스트의 길이가 다를 때
    """
    if len(points) != len(scalars):
        raise ValueError(
            f"점 {len(points)}개와 스칼라 {len(scalars)}개의 길이가 다릅니다"
        )

    terms = []
    for point, scalar in zip(points, scalars):
        s = int(scalar) % CURVE_ORDER
        if s == 0 or point is None:
            continue
        terms.append((_to_projective(point), s))
    if not terms:
        return None

    if len(terms) < 4:
        acc = optimized_bn128.Z1
        for point, s in terms:
            acc = optimized_bn128.add(acc, optimized_bn128.multiply(point, s))
        return _to_affine(acc)

    c = _window_bits(len(terms))
    mask = (1 << c) - 1
    max_bits = max(s for _, s in terms).bit_length()
    num_windows = (max_bits + c - 1) // c

    result = optimized_bn128.Z1
    for window in reversed(range(num_windows)):
        for _ in range(c):
            result = optimized_bn128.double(result)

        shift = window * c
        buckets = [None] * (mask + 1)
        for point, s in terms:
            digit = (s >> shift) & mask
            if digit == 0:
                continue
            if buckets[digit] is None:
                buckets[digit] = point
            else:
                buckets[digit] = optimized_bn128.add(buckets[digit], point)

        # Σ d·B_d = Σ_{k} (B_mask + ... + B_k)
        running = optimized_bn128.Z1
        window_sum = optimized_bn128.Z1
        for digit in range(mask, 0, -1):
            if buckets[digit] is not None:
                running = optimized_bn128.add(running, buckets[digit])
            window_sum = optimized_bn128.add(window_sum, running)
        result = optimized_bn128.add(result, window_sum)

    return _to_affine(result)


def fixed_base_mul(point, scalars):
    """같은 점에 여러 스칼라를 곱한다: [s₀·P, s₁·P, ...].

    SRS의 [τⁱ]₁과 [L_i(τ)]₁ 생성에 사용한다. 사영 좌표로 곱한 뒤
    점마다 한 번만 아핀으로 정규화한다.
    """
    base = _to_projective(point)
    return [
        _to_affine(optimized_bn128.multiply(base, int(s) % CURVE_ORDER))
        for s in scalars
    ]


# ─────────────────────────────────────────────────────────────────────
# 페어링
# ─────────────────────────────────────────────────────────────────────

def ec_pairing(g2_point, g1_point):
    """쌍선형 페어링 e(G1, G2) → GT.

    인자 순서는 py_ecc와 같이 (G2, G1)이다. 계산은 optimized_bn128로 한다.

    예시:
        >>> ec_pairing(G2, ec_mul(G1, 6)) == ec_pairing(ec_mul(G2, 2), ec_mul(G1, 3))
        True
    """
    return optimized_bn128.pairing(
        _g2_to_projective(g2_point), _to_projective(g1_point)
    )


# ─────────────────────────────────────────────────────────────────────
# 단위근 (Roots of Unity)
# ─────────────────────────────────────────────────────────────────────

def get_root_of_unity(n):
    """n차 원시 단위근 ω를 반환한다.

    생성자 g = FR(5)에서 ω = g^((p-1)/n).

    Args:
        n: 2의 거듭제곱 (≤ 2^28)

    Raises:
        ValueError: n이 2의 거듭제곱이 아니거나 2^28을 초과할 때
    """
    if n < 1 or (n & (n - 1)) != 0:
        raise ValueError(f"n은 2의 거듭제곱이어야 합니다: {n}")
    if n > (1 << 28):
        raise ValueError(f"n은 2^28 이하여야 합니다: {n}")
    if n == 1:
        return FR(1)
    return FR(5) ** ((CURVE_ORDER - 1) // n)


def get_roots_of_unity(n):
    """[1, ω, ω², ..., ω^(n-1)]: 평가 도메인 H."""
    omega = get_root_of_unity(n)
    roots = []
    current = FR(1)
    for _ in range(n):
        roots.append(current)
        current = current * omega
    return roots
