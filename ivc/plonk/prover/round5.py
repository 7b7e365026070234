"""
PLONK Prover Round 5: 선형화 + KZG 열기 증명
===============================================

  ┌─────────────────────────────────────────────────┐
  │  Verifier → Prover: v  (Fiat-Shamir)           │
  │  Prover → Verifier: r̄, [W_ζ]₁, [W_ζω]₁         │
  └─────────────────────────────────────────────────┘

**선형화 다항식 r(x)**:
  Round 4의 평가값을 스칼라로 고정하고 z(x), S_σ3(x), 셀렉터만 다항식으로 남긴다.

  게이트: q_M(x)·ā·b̄ + q_L(x)·ā + q_R(x)·b̄ + q_O(x)·c̄ + q_C(x) + PI(ζ)
  순열:   α·(ā+βζ+γ)(b̄+βK1ζ+γ)(c̄+βK2ζ+γ)·z(x)
        - α·(ā+βs̄1+γ)(b̄+βs̄2+γ)·β·z̄ω·S_σ3(x)
        - α·(ā+βs̄1+γ)(b̄+βs̄2+γ)·(c̄+γ)·z̄ω
  경계:   α²·L₀(ζ)·(z(x) - 1)

  r(ζ) = t(ζ)·Z_H(ζ) 이므로 검증자는 t(ζ)를 r̄ / Z_H(ζ)로 얻는다.

**일괄 열기**:
  W_ζ(x) = [t_comb - t̄ + v(r - r̄) + v²(a - ā) + v³(b - b̄)
            + v⁴(c - c̄) + v⁵(S_σ1 - s̄1) + v⁶(S_σ2 - s̄2)] / (x - ζ)
  W_ζω(x) = (z(x) - z̄ω) / (x - ζω)
"""

from ivc.field import FR
from ivc.polynomial import divide_by_linear, lagrange_basis_eval
from ivc.plonk.kzg import commit
from ivc.plonk.permutation import K1, K2


def linearization_scalars(proof, zeta, alpha, beta, gamma, l0_zeta):
    """r(x)의 다항식 항 계수와 상수항 (Prover/Verifier 공용).

    Returns:
        tuple: (z 계수, S_σ3 계수, 상수항에서 PI(ζ)를 뺀 부분)
    """
    a_eval = proof.a_eval
    b_eval = proof.b_eval
    c_eval = proof.c_eval

    perm_z = (
        alpha
        * (a_eval + beta * zeta + gamma)
        * (b_eval + beta * K1 * zeta + gamma)
        * (c_eval + beta * K2 * zeta + gamma)
    )
    ab_factor = (
        (a_eval + beta * proof.s_sigma1_eval + gamma)
        * (b_eval + beta * proof.s_sigma2_eval + gamma)
    )
    perm_s3 = alpha * ab_factor * beta * proof.z_omega_eval
    alpha_sq_l0 = alpha * alpha * l0_zeta

    z_scalar = perm_z + alpha_sq_l0
    constant = (
        FR(0)
        - alpha * ab_factor * proof.z_omega_eval * (c_eval + gamma)
        - alpha_sq_l0
    )
    return z_scalar, perm_s3, constant


def execute(state):
    """Round 5를 실행한다."""
    state.v = state.transcript.challenge_scalar(b"v")
    v = state.v

    n = state.n
    zeta = state.zeta
    pp = state.preprocessed
    proof = state.proof

    # ── 1. 선형화 다항식 r(x) ──
    pi_zeta = state.pi_poly.evaluate(zeta)
    l0_zeta = lagrange_basis_eval(0, n, state.omega, zeta)
    z_scalar, s3_scalar, constant = linearization_scalars(
        proof, zeta, state.alpha, state.beta, state.gamma, l0_zeta
    )

    r_poly = (
        pp.q_m_poly * (proof.a_eval * proof.b_eval)
        + pp.q_l_poly * proof.a_eval
        + pp.q_r_poly * proof.b_eval
        + pp.q_o_poly * proof.c_eval
        + pp.q_c_poly
        + state.z_poly * z_scalar
        - pp.s_sigma3_poly * s3_scalar
        + (pi_zeta + constant)
    )
    proof.r_eval = r_poly.evaluate(zeta)

    # ── 2. t(ζ) ──
    zeta_n = zeta ** n
    zeta_2n = zeta_n * zeta_n
    t_combined = state.t_lo_poly + state.t_mid_poly * zeta_n + state.t_hi_poly * zeta_2n
    t_eval = t_combined.evaluate(zeta)

    # ── 3. W_ζ(x) ──
    opened = [
        (r_poly, proof.r_eval),
        (state.a_poly, proof.a_eval),
        (state.b_poly, proof.b_eval),
        (state.c_poly, proof.c_eval),
        (pp.s_sigma1_poly, proof.s_sigma1_eval),
        (pp.s_sigma2_poly, proof.s_sigma2_eval),
    ]
    numerator = t_combined - t_eval
    v_power = FR(1)
    for poly, evaluation in opened:
        v_power = v_power * v
        numerator = numerator + (poly - evaluation) * v_power
    W_zeta_poly = divide_by_linear(numerator, zeta)

    # ── 4. W_ζω(x) ──
    W_zeta_omega_poly = divide_by_linear(state.z_poly, zeta * state.omega)

    proof.W_zeta_comm = commit(W_zeta_poly, state.srs)
    proof.W_zeta_omega_comm = commit(W_zeta_omega_poly, state.srs)

    state.transcript.append_scalar(b"r_eval", proof.r_eval)
    state.transcript.append_point(b"W_zeta_comm", proof.W_zeta_comm)
    state.transcript.append_point(b"W_zeta_omega_comm", proof.W_zeta_omega_comm)
