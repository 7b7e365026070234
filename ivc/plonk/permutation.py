"""
PLONK 순열 인자 (Permutation Argument)
========================================

결정자 회로의 변수 공유(같은 변수가 여러 배선에 놓임)를 순열 σ로
인코딩하고, Grand Product 누적자 z(x)로 증명한다.

**코셋 식별자 K1, K2**:
  a 배선은 H, b 배선은 K1·H, c 배선은 K2·H에 대응한다.
  세 코셋이 서로소가 되도록 K1 = 2, K2 = 3을 쓴다.

**Grand Product**:
  z(ω⁰) = 1
  z(ωⁱ⁺¹) = z(ωⁱ) · ∏ₖ (wₖ,ᵢ + β·idₖ(ωⁱ) + γ) / (wₖ,ᵢ + β·σₖ(ωⁱ) + γ)

  σ가 올바르게 만족되면 전체 곱이 1로 돌아온다.

사용 예시:
    >>> s1, s2, s3 = permutation_values(sigma, n, domain)
    >>> z_evals = compute_accumulator(a, b, c, (s1, s2, s3), domain, beta, gamma)
"""

from ivc.field import FR


K1 = FR(2)
K2 = FR(3)


def permutation_values(sigma, n, domain):
    """σ를 세 개의 평가 벡터 S_σ1, S_σ2, S_σ3로 바꾼다.

    위치 p의 값:
        p ∈ [0, n)    → ω^p
        p ∈ [n, 2n)   → K1·ω^{p-n}
        p ∈ [2n, 3n)  → K2·ω^{p-2n}
    """
    labels = list(domain) + [K1 * w for w in domain] + [K2 * w for w in domain]
    s1 = [labels[sigma[i]] for i in range(n)]
    s2 = [labels[sigma[n + i]] for i in range(n)]
    s3 = [labels[sigma[2 * n + i]] for i in range(n)]
    return s1, s2, s3


def _batch_inverse(values):
    """Montgomery 트릭: 역원 n개를 나눗셈 한 번으로 계산한다."""
    prefix = []
    running = FR(1)
    for v in values:
        prefix.append(running)
        running = running * v
    inv = FR(1) / running
    result = [FR(0)] * len(values)
    for i in range(len(values) - 1, -1, -1):
        result[i] = inv * prefix[i]
        inv = inv * values[i]
    return result


def compute_accumulator(a_vals, b_vals, c_vals, sigma_values, domain, beta, gamma):
    """순열 누적자 z의 평가값 [z(ω⁰), ..., z(ω^{n-1})]을 계산한다.

    Args:
        a_vals, b_vals, c_vals: 배선 값 (길이 n)
        sigma_values: permutation_values()의 결과
        domain: [ω⁰, ..., ω^{n-1}]
        beta, gamma: Round 2 챌린지
    """
    s1, s2, s3 = sigma_values
    n = len(domain)

    numerators = []
    denominators = []
    for i in range(n - 1):
        numerators.append(
            (a_vals[i] + beta * domain[i] + gamma)
            * (b_vals[i] + beta * K1 * domain[i] + gamma)
            * (c_vals[i] + beta * K2 * domain[i] + gamma)
        )
        denominators.append(
            (a_vals[i] + beta * s1[i] + gamma)
            * (b_vals[i] + beta * s2[i] + gamma)
            * (c_vals[i] + beta * s3[i] + gamma)
        )

    inverses = _batch_inverse(denominators)
    z_evals = [FR(1)]
    for num, den_inv in zip(numerators, inverses):
        z_evals.append(z_evals[-1] * num * den_inv)
    return z_evals
