"""
PLONK Prover Round 3: 몫 다항식 t(x) 커밋먼트
================================================

  ┌─────────────────────────────────────────────────┐
  │  Verifier → Prover: α  (Fiat-Shamir)           │
  │  Prover → Verifier: [t_lo]₁, [t_mid]₁, [t_hi]₁│
  └─────────────────────────────────────────────────┘

**세 가지 제약 항**:
  Term 1 (게이트):  q_L·a + q_R·b + q_O·c + q_M·a·b + q_C + PI
  Term 2 (순열, α): (a+βx+γ)(b+βK1x+γ)(c+βK2x+γ)·z(x)
                   - (a+βS_σ1+γ)(b+βS_σ2+γ)(c+βS_σ3+γ)·z(ωx)
  Term 3 (경계, α²): (z(x) - 1)·L₀(x)

  t(x) = (Term1 + Term2 + Term3) / Z_H(x)

Z_H(x) = xⁿ - 1 은 희소하므로 긴 나눗셈 대신 O(deg) 나눗셈을 쓴다.
strict=False이면 나머지를 버리고 계속한다. 이렇게 만든 증명은
검증을 통과하지 못해야 한다.

**t(x) 3-분할**:
  t(x) = t_lo(x) + xⁿ·t_mid(x) + x²ⁿ·t_hi(x)
"""

from ivc.field import FR
from ivc.polynomial import Polynomial
from ivc.plonk.kzg import commit
from ivc.plonk.permutation import K1, K2


def execute(state):
    """Round 3을 실행한다.

    Raises:
        ValueError: strict 모드에서 제약이 만족되지 않을 때
    """
    state.alpha = state.transcript.challenge_scalar(b"alpha")

    n = state.n
    alpha = state.alpha
    beta = state.beta
    gamma = state.gamma
    pp = state.preprocessed

    a = state.a_poly
    b = state.b_poly
    c = state.c_poly
    z = state.z_poly

    # ── 1. 보조 다항식 ──
    z_omega = z.shift_argument(state.omega)
    x_poly = Polynomial.x()
    gamma_poly = Polynomial([gamma])
    l0 = Polynomial.first_lagrange(n)

    # ── 2. Term 1: 게이트 제약 ──
    term1 = (
        pp.q_l_poly * a
        + pp.q_r_poly * b
        + pp.q_o_poly * c
        + pp.q_m_poly * (a * b)
        + pp.q_c_poly
        + state.pi_poly
    )

    # ── 3. Term 2: 순열 제약 ──
    perm_num = (
        (a + x_poly * beta + gamma_poly)
        * (b + x_poly * (beta * K1) + gamma_poly)
        * (c + x_poly * (beta * K2) + gamma_poly)
        * z
    )
    perm_den = (
        (a + pp.s_sigma1_poly * beta + gamma_poly)
        * (b + pp.s_sigma2_poly * beta + gamma_poly)
        * (c + pp.s_sigma3_poly * beta + gamma_poly)
        * z_omega
    )
    term2 = (perm_num - perm_den) * alpha

    # ── 4. Term 3: 경계 제약 z(ω⁰) = 1 ──
    term3 = (z - FR(1)) * l0 * (alpha * alpha)

    # ── 5. Z_H로 나누기 ──
    constraint = term1 + term2 + term3
    t_poly, _ = constraint.divide_by_vanishing(n, strict=state.strict)

    # ── 6. 3-분할 ──
    t_coeffs = list(t_poly.coeffs)
    t_coeffs += [FR(0)] * max(0, 3 * n - len(t_coeffs))
    state.t_lo_poly = Polynomial(t_coeffs[:n])
    state.t_mid_poly = Polynomial(t_coeffs[n:2 * n])
    state.t_hi_poly = Polynomial(t_coeffs[2 * n:])

    # ── 7. 커밋 ──
    state.proof.t_lo_comm = commit(state.t_lo_poly, state.srs)
    state.proof.t_mid_comm = commit(state.t_mid_poly, state.srs)
    state.proof.t_hi_comm = commit(state.t_hi_poly, state.srs)

    state.transcript.append_point(b"t_lo_comm", state.proof.t_lo_comm)
    state.transcript.append_point(b"t_mid_comm", state.proof.t_mid_comm)
    state.transcript.append_point(b"t_hi_comm", state.proof.t_hi_comm)
