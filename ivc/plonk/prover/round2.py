"""
PLONK Prover Round 2: 순열 누적자 z(x) 커밋먼트
=================================================

  ┌─────────────────────────────────────────────────┐
  │  Verifier → Prover: β, γ  (Fiat-Shamir)       │
  │  Prover → Verifier: [z]₁                       │
  └─────────────────────────────────────────────────┘

z(x)는 ζ와 ζω 두 점에서 열리므로 블라인딩 계수 3개를 쓴다:
  z'(x) = z(x) + (b₁·x² + b₂·x + b₃)·Z_H(x)
"""

from ivc.polynomial import Polynomial
from ivc.plonk.kzg import commit
from ivc.plonk.permutation import compute_accumulator
from ivc.plonk.prover.round1 import add_blinding


def execute(state):
    """Round 2를 실행한다."""
    # ── 1. β, γ 챌린지 ──
    state.beta = state.transcript.challenge_scalar(b"beta")
    state.gamma = state.transcript.challenge_scalar(b"gamma")

    # ── 2. 누적자 평가값 ──
    z_evals = compute_accumulator(
        state.a_vals, state.b_vals, state.c_vals,
        state.preprocessed.sigma_values, state.domain,
        state.beta, state.gamma,
    )

    # ── 3. 보간 + 블라인딩 ──
    z_poly = Polynomial.from_evaluations(z_evals, state.omega)
    state.z_poly = add_blinding(z_poly, Polynomial.vanishing(state.n), 3, state.rng)

    # ── 4. 커밋 ──
    state.proof.z_comm = commit(state.z_poly, state.srs)
    state.transcript.append_point(b"z_comm", state.proof.z_comm)
