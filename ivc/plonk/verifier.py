"""
PLONK Verifier
================

결정자 PLONK 증명을 검증한다.

**검증 과정**:
  1. 트랜스크립트 재생 → β, γ, α, ζ, v, u
  2. Z_H(ζ), L₀(ζ), PI(ζ) 계산
  3. 선형화 커밋먼트 [D]₁와 상수항 r₀
  4. [F]₁ (열리는 커밋먼트의 v-결합)와 스칼라 E
  5. 페어링 항 A, B:
       A = W_ζ + u·W_ζω
       B = ζ·W_ζ + u·ζω·W_ζω + F + u·[z] - E·G1
     검사: e(A, [τ]₂) == e(B, G2)

verification_terms()는 페어링 직전의 (A, B)를 반환한다. 결정자는 이
항을 연결 증명의 항과 랜덤 결합해 페어링을 한 번에 확인한다.

사용 예시:
    >>> from ivc.plonk.verifier import verify
    >>> verify(proof, public_inputs, preprocessed, srs)
    True
"""

from ivc.field import FR, G1, ec_mul, ec_add, ec_neg
from ivc.polynomial import vanishing_poly_eval, lagrange_basis_eval, public_input_poly_eval
from ivc.plonk.kzg import pairing_check
from ivc.plonk.prover import start_transcript
from ivc.plonk.prover.round5 import linearization_scalars


def verification_terms(proof, public_inputs, preprocessed):
    """페어링 검사 e(A, [τ]₂) == e(B, G2)의 (A, B)를 계산한다.

    Args:
        proof: Proof
        public_inputs: 공개 입력 값 리스트
        preprocessed: PreprocessedData (커밋먼트와 도메인만 사용)

    Returns:
        tuple: (A, B) G1 점

    Raises:
        ValueError: 공개 입력 수가 회로와 다르거나 ζ가 도메인 위의 점일 때
    """
    pp = preprocessed
    n = pp.n
    omega = pp.omega
    if len(public_inputs) != pp.num_public_inputs:
        raise ValueError(
            f"공개 입력 수 {len(public_inputs)}가 회로의 {pp.num_public_inputs}와 다릅니다"
        )

    # ── Step 1: 트랜스크립트 재생 ──
    transcript = start_transcript(public_inputs, pp)
    transcript.append_point(b"a_comm", proof.a_comm)
    transcript.append_point(b"b_comm", proof.b_comm)
    transcript.append_point(b"c_comm", proof.c_comm)
    beta = transcript.challenge_scalar(b"beta")
    gamma = transcript.challenge_scalar(b"gamma")
    transcript.append_point(b"z_comm", proof.z_comm)
    alpha = transcript.challenge_scalar(b"alpha")
    transcript.append_point(b"t_lo_comm", proof.t_lo_comm)
    transcript.append_point(b"t_mid_comm", proof.t_mid_comm)
    transcript.append_point(b"t_hi_comm", proof.t_hi_comm)
    zeta = transcript.challenge_scalar(b"zeta")
    for name in ("a_eval", "b_eval", "c_eval",
                 "s_sigma1_eval", "s_sigma2_eval", "z_omega_eval"):
        transcript.append_scalar(name.encode(), getattr(proof, name))
    v = transcript.challenge_scalar(b"v")
    transcript.append_scalar(b"r_eval", proof.r_eval)
    transcript.append_point(b"W_zeta_comm", proof.W_zeta_comm)
    transcript.append_point(b"W_zeta_omega_comm", proof.W_zeta_omega_comm)
    u = transcript.challenge_scalar(b"u")

    # ── Step 2: 공개 값 ──
    zh_zeta = vanishing_poly_eval(n, zeta)
    if zh_zeta == 0:
        raise ValueError("ζ가 평가 도메인 위의 점입니다")
    l0_zeta = lagrange_basis_eval(0, n, omega, zeta)
    pi_zeta = public_input_poly_eval(
        [FR(0) - value for value in public_inputs], n, omega, zeta
    )

    # ── Step 3: 선형화 커밋먼트 [D]₁와 r₀ ──
    a_eval = proof.a_eval
    b_eval = proof.b_eval
    c_eval = proof.c_eval
    z_scalar, s3_scalar, constant = linearization_scalars(
        proof, zeta, alpha, beta, gamma, l0_zeta
    )
    D = ec_mul(pp.q_m_comm, a_eval * b_eval)
    D = ec_add(D, ec_mul(pp.q_l_comm, a_eval))
    D = ec_add(D, ec_mul(pp.q_r_comm, b_eval))
    D = ec_add(D, ec_mul(pp.q_o_comm, c_eval))
    D = ec_add(D, pp.q_c_comm)
    D = ec_add(D, ec_mul(proof.z_comm, z_scalar))
    D = ec_add(D, ec_neg(ec_mul(pp.s_sigma3_comm, s3_scalar)))
    r_0 = pi_zeta + constant

    # ── Step 4: [F]₁와 E ──
    zeta_n = zeta ** n
    F = ec_add(
        proof.t_lo_comm,
        ec_add(ec_mul(proof.t_mid_comm, zeta_n), ec_mul(proof.t_hi_comm, zeta_n * zeta_n)),
    )
    F = ec_add(F, ec_mul(D, v))
    F = ec_add(F, ec_mul(G1, v * r_0))

    t_eval = proof.r_eval / zh_zeta
    e_scalar = t_eval + v * proof.r_eval
    v_pow = v
    for comm, evaluation in (
        (proof.a_comm, a_eval),
        (proof.b_comm, b_eval),
        (proof.c_comm, c_eval),
        (pp.s_sigma1_comm, proof.s_sigma1_eval),
        (pp.s_sigma2_comm, proof.s_sigma2_eval),
    ):
        v_pow = v_pow * v
        F = ec_add(F, ec_mul(comm, v_pow))
        e_scalar = e_scalar + v_pow * evaluation
    e_scalar = e_scalar + u * proof.z_omega_eval

    # ── Step 5: 페어링 항 ──
    A = ec_add(proof.W_zeta_comm, ec_mul(proof.W_zeta_omega_comm, u))
    B = ec_mul(proof.W_zeta_comm, zeta)
    B = ec_add(B, ec_mul(proof.W_zeta_omega_comm, u * zeta * omega))
    B = ec_add(B, F)
    B = ec_add(B, ec_mul(proof.z_comm, u))
    B = ec_add(B, ec_neg(ec_mul(G1, e_scalar)))
    return A, B


def verify(proof, public_inputs, preprocessed, srs):
    """PLONK 증명을 검증한다.

    Returns:
        bool: 검증 성공 여부 (잘못된 공개 입력 수도 False)
    """
    try:
        a_term, b_term = verification_terms(proof, public_inputs, preprocessed)
    except ValueError:
        return False
    return pairing_check(a_term, b_term, srs)
