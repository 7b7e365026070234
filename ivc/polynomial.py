"""
다항식(Polynomial)과 평가 도메인 연산
=====================================

PLONK 결정자(decider)와 KZG 커밋먼트에서 사용하는 다항식 연산을 모은다.

**Polynomial 클래스**:
  계수 표현 p(x) = c₀ + c₁·x + c₂·x² + ...
  큰 다항식끼리의 곱셈은 NTT(FFT)로, 작은 곱셈은 나이브 합성곱으로 계산한다.

**FFT/IFFT**:
  재귀적 Cooley-Tukey radix-2 NTT. 평가 표현 ↔ 계수 표현 변환.

**도메인 유틸리티**:
  - vanishing_poly_eval: Z_H(ζ) = ζ^n - 1
  - lagrange_basis_eval: L_i(ζ)
  - subset_vanishing_eval: Z_S(ζ) = ∏_{i∈S} (ζ - ωⁱ)
  - public_input_poly_eval: PI(ζ)

사용 예시:
    >>> from ivc.polynomial import Polynomial
    >>> p = Polynomial([FR(1), FR(2), FR(3)])  # 1 + 2x + 3x²
    >>> p.evaluate(FR(2))                       # FR(17)
"""

from ivc.field import FR, get_root_of_unity


# 이 길이 이하의 곱셈은 나이브 합성곱이 NTT보다 빠르다
_NAIVE_MUL_THRESHOLD = 32


# ─────────────────────────────────────────────────────────────────────
# Polynomial 클래스
# ─────────────────────────────────────────────────────────────────────

class Polynomial:
    """유한체 FR 위의 다항식.

    coeffs = [c₀, c₁, c₂, ...] → c₀ + c₁x + c₂x² + ...
    최고차 0 계수는 항상 제거된다 (영 다항식은 [0]).

    예시:
        >>> p = Polynomial([FR(1), FR(2)])  # 1 + 2x
        >>> q = Polynomial([FR(3), FR(4)])  # 3 + 4x
        >>> p * q                           # 3 + 10x + 8x²
    """

    def __init__(self, coeffs=None):
        if not coeffs:
            self.coeffs = [FR(0)]
        else:
            self.coeffs = [c if isinstance(c, FR) else FR(c) for c in coeffs]
        self._trim()

    def _trim(self):
        while len(self.coeffs) > 1 and self.coeffs[-1] == 0:
            self.coeffs.pop()

    @property
    def degree(self):
        """다항식의 차수. 영 다항식의 차수는 0으로 정의한다."""
        return len(self.coeffs) - 1

    def is_zero(self):
        return len(self.coeffs) == 1 and self.coeffs[0] == 0

    def evaluate(self, point):
        """Horner's method로 p(point)를 계산한다."""
        if not isinstance(point, FR):
            point = FR(point)
        result = FR(0)
        for coeff in reversed(self.coeffs):
            result = result * point + coeff
        return result

    def __add__(self, other):
        if isinstance(other, (int, FR)):
            other = Polynomial([other])
        longer, shorter = self.coeffs, other.coeffs
        if len(shorter) > len(longer):
            longer, shorter = shorter, longer
        result = list(longer)
        for i, c in enumerate(shorter):
            result[i] = result[i] + c
        return Polynomial(result)

    def __radd__(self, other):
        return self.__add__(other)

    def __neg__(self):
        return Polynomial([-c for c in self.coeffs])

    def __sub__(self, other):
        if isinstance(other, (int, FR)):
            other = Polynomial([other])
        return self + (-other)

    def __rsub__(self, other):
        return (-self) + other

    def __mul__(self, other):
        """다항식 곱셈 또는 스칼라곱.

        두 다항식 모두 길이가 임계값을 넘으면 NTT 곱셈:
            1. 결과 길이 이상의 2의 거듭제곱 m으로 패딩
            2. FFT → 점별 곱 → IFFT
        """
        if isinstance(other, (int, FR)):
            if not isinstance(other, FR):
                other = FR(other)
            return Polynomial([c * other for c in self.coeffs])

        if self.is_zero() or other.is_zero():
            return Polynomial.zero()

        a, b = self.coeffs, other.coeffs
        out_len = len(a) + len(b) - 1
        if min(len(a), len(b)) <= _NAIVE_MUL_THRESHOLD:
            result = [FR(0)] * out_len
            for i, x in enumerate(a):
                if x == 0:
                    continue
                for j, y in enumerate(b):
                    result[i + j] = result[i + j] + x * y
            return Polynomial(result)

        m = next_power_of_2(out_len)
        omega = get_root_of_unity(m)
        a_evals = fft(a + [FR(0)] * (m - len(a)), omega)
        b_evals = fft(b + [FR(0)] * (m - len(b)), omega)
        product = ifft([x * y for x, y in zip(a_evals, b_evals)], omega)
        return Polynomial(product[:out_len])

    def __rmul__(self, other):
        return self.__mul__(other)

    def __eq__(self, other):
        if isinstance(other, (int, FR)):
            other = Polynomial([other])
        if not isinstance(other, Polynomial):
            return NotImplemented
        return self.coeffs == other.coeffs

    def __repr__(self):
        terms = []
        for i, c in enumerate(self.coeffs):
            if c == 0:
                continue
            if i == 0:
                terms.append(str(int(c)))
            elif i == 1:
                terms.append(f"{int(c)}*x")
            else:
                terms.append(f"{int(c)}*x^{i}")
        return "Poly(" + " + ".join(terms) + ")" if terms else "Poly(0)"

    def __len__(self):
        return len(self.coeffs)

    def shift_argument(self, factor):
        """p(factor·x)의 계수를 반환한다: cᵢ → factorⁱ·cᵢ.

        PLONK Round 3에서 z(ω·x)를 만들 때 사용한다.
        """
        result = []
        power = FR(1)
        for c in self.coeffs:
            result.append(c * power)
            power = power * factor
        return Polynomial(result)

    def divide_by_vanishing(self, n, strict=True):
        """Z_H(x) = xⁿ - 1 로 나눈다 (희소 나눗셈, O(deg)).

        xⁿ ≡ 1 (mod Z_H)을 이용해 상위 계수부터 몫을 내려 보낸다.

        Args:
            n: 도메인 크기
            strict: True이면 나머지가 0이 아닐 때 ValueError

        Returns:
            tuple: (몫 Polynomial, 나머지 Polynomial)

        Raises:
            ValueError: strict이고 나머지가 0이 아닐 때 (제약 불만족)
        """
        remainder = list(self.coeffs)
        if len(remainder) <= n:
            quotient = Polynomial.zero()
        else:
            q = [FR(0)] * (len(remainder) - n)
            for i in range(len(remainder) - 1, n - 1, -1):
                coeff = remainder[i]
                if coeff == 0:
                    continue
                q[i - n] = coeff
                remainder[i] = FR(0)
                remainder[i - n] = remainder[i - n] + coeff
            quotient = Polynomial(q)
        rest = Polynomial(remainder[:n])
        if strict and not rest.is_zero():
            raise ValueError("소거 다항식으로 나누어 떨어지지 않습니다 (제약 불만족)")
        return quotient, rest

    @classmethod
    def zero(cls):
        return cls([FR(0)])

    @classmethod
    def one(cls):
        return cls([FR(1)])

    @classmethod
    def x(cls):
        """항등 다항식 id(x) = x."""
        return cls([FR(0), FR(1)])

    @classmethod
    def vanishing(cls, n):
        """소거 다항식 Z_H(x) = xⁿ - 1."""
        coeffs = [FR(0)] * (n + 1)
        coeffs[0] = FR(-1)
        coeffs[n] = FR(1)
        return cls(coeffs)

    @classmethod
    def first_lagrange(cls, n):
        """L₀(x) = (xⁿ - 1) / (n·(x - 1)) = (1 + x + ... + x^{n-1}) / n.

        경계 제약 (z(x) - 1)·L₀(x)에 사용된다. 곱셈 없이 계수를 바로 만든다.
        """
        n_inv = FR(1) / FR(n)
        return cls([n_inv] * n)

    @classmethod
    def from_roots(cls, roots):
        """∏ (x - rᵢ) 를 계수 형태로 만든다."""
        result = [FR(1)]
        for root in roots:
            shifted = [FR(0)] + result
            for i, c in enumerate(result):
                shifted[i] = shifted[i] - root * c
            result = shifted
        return cls(result)

    @classmethod
    def from_evaluations(cls, evals, omega):
        """도메인 {1, ω, ...}에서의 평가값을 보간한다 (IFFT)."""
        return cls(ifft(list(evals), omega))


# ─────────────────────────────────────────────────────────────────────
# FFT / IFFT (Number Theoretic Transform)
# ─────────────────────────────────────────────────────────────────────

def fft(coeffs, omega):
    """계수 → 단위근 도메인 평가값 (재귀 Cooley-Tukey).

    Args:
        coeffs: FR 리스트 (길이는 2의 거듭제곱)
        omega: len(coeffs)차 원시 단위근

    Returns:
        list[FR]: [p(1), p(ω), ..., p(ω^{n-1})]
    """
    n = len(coeffs)
    if n == 1:
        return [coeffs[0] if isinstance(coeffs[0], FR) else FR(coeffs[0])]

    omega_sq = omega * omega
    even_vals = fft(coeffs[0::2], omega_sq)
    odd_vals = fft(coeffs[1::2], omega_sq)

    result = [FR(0)] * n
    half = n // 2
    omega_k = FR(1)
    for k in range(half):
        t = omega_k * odd_vals[k]
        result[k] = even_vals[k] + t
        result[k + half] = even_vals[k] - t
        omega_k = omega_k * omega
    return result


def ifft(evals, omega):
    """평가값 → 계수. ω⁻¹로 FFT한 뒤 n으로 나눈다."""
    n = len(evals)
    coeffs = fft(evals, FR(1) / omega)
    n_inv = FR(1) / FR(n)
    return [c * n_inv for c in coeffs]


# ─────────────────────────────────────────────────────────────────────
# 다항식 나눗셈
# ─────────────────────────────────────────────────────────────────────

def poly_div(a, b):
    """긴 나눗셈: a(x) = b(x)·q(x) + r(x).

    Returns:
        tuple: (몫, 나머지)

    Raises:
        ValueError: 제수가 영 다항식인 경우
    """
    if b.is_zero():
        raise ValueError("0으로 나눌 수 없습니다")

    remainder = list(a.coeffs)
    divisor = b.coeffs
    deg_b = len(divisor) - 1
    deg_a = len(remainder) - 1
    if deg_a < deg_b:
        return Polynomial.zero(), Polynomial(remainder)

    quotient = [FR(0)] * (deg_a - deg_b + 1)
    lead_inv = FR(1) / divisor[-1]
    for i in range(deg_a - deg_b, -1, -1):
        coeff = remainder[i + deg_b] * lead_inv
        if coeff == 0:
            continue
        quotient[i] = coeff
        for j in range(deg_b + 1):
            remainder[i + j] = remainder[i + j] - coeff * divisor[j]
    return Polynomial(quotient), Polynomial(remainder)


def divide_by_linear(poly, point):
    """(p(x) - p(z)) / (x - z) 를 합성 나눗셈(synthetic division)으로 구한다.

    KZG 열기 증명의 몫 다항식. 나머지 p(z)는 버린다.
    """
    coeffs = poly.coeffs
    if len(coeffs) == 1:
        return Polynomial.zero()
    quotient = [FR(0)] * (len(coeffs) - 1)
    carry = FR(0)
    for i in range(len(coeffs) - 1, 0, -1):
        carry = coeffs[i] + carry * point
        quotient[i - 1] = carry
    return Polynomial(quotient)


# ─────────────────────────────────────────────────────────────────────
# 도메인 평가 유틸리티
# ─────────────────────────────────────────────────────────────────────

def vanishing_poly_eval(n, zeta):
    """Z_H(ζ) = ζⁿ - 1."""
    return zeta ** n - FR(1)


def lagrange_basis_eval(i, n, omega, zeta):
    """L_i(ζ) = (ωⁱ / n) · (ζⁿ - 1) / (ζ - ωⁱ)."""
    if not isinstance(zeta, FR):
        zeta = FR(zeta)
    omega_i = omega ** i
    denominator = zeta - omega_i
    if denominator == 0:
        return FR(1)
    return vanishing_poly_eval(n, zeta) * omega_i / (FR(n) * denominator)


def subset_vanishing_eval(rows, omega, zeta):
    """Z_S(ζ) = ∏_{i∈S} (ζ - ωⁱ): 도메인 부분집합 S의 소거 다항식."""
    result = FR(1)
    for i in rows:
        result = result * (zeta - omega ** i)
    return result


def public_input_poly_eval(pi_values, n, omega, zeta):
    """PI(ζ) = Σᵢ PIᵢ · Lᵢ(ζ), PI 값이 도메인 앞쪽 행에 놓인다고 가정한다."""
    result = FR(0)
    for i, val in enumerate(pi_values):
        if val == 0:
            continue
        result = result + val * lagrange_basis_eval(i, n, omega, zeta)
    return result


def next_power_of_2(n):
    """n 이상의 가장 작은 2의 거듭제곱.

    예시:
        >>> next_power_of_2(5)
        8
    """
    if n <= 1:
        return 1
    p = 1
    while p < n:
        p <<= 1
    return p
