"""
PLONK Prover Round 1: 배선(Witness) 다항식 커밋먼트
=====================================================

  ┌─────────────────────────────────────────────────┐
  │  Prover → Verifier: [a]₁, [b]₁, [c]₁          │
  └─────────────────────────────────────────────────┘

**과정**:
  1. 공개 입력 다항식 PI(x): PI(ωⁱ) = -publicᵢ (i < 공개 입력 수), 나머지 0
  2. 배선 값을 IFFT로 보간
  3. 블라인딩: a'(x) = a(x) + (b₁·x + b₂)·Z_H(x)
  4. KZG 커밋 + 트랜스크립트 기록

블라인딩 항은 Z_H의 배수라 도메인 위의 값은 바뀌지 않는다.
결정자의 연결 증명은 바로 이 성질에 기대어 a'(ωⁱ) = Wᵢ를 쓴다.
"""

from ivc.field import FR, CURVE_ORDER
from ivc.polynomial import Polynomial
from ivc.plonk.kzg import commit


def execute(state):
    """Round 1을 실행한다."""
    n = state.n
    omega = state.omega

    # ── 1. 공개 입력 다항식 ──
    pi_evals = [FR(0) - v for v in state.public_inputs]
    pi_evals += [FR(0)] * (n - len(pi_evals))
    state.pi_poly = Polynomial.from_evaluations(pi_evals, omega)

    # ── 2. 배선 다항식 보간 ──
    a_poly = Polynomial.from_evaluations(state.a_vals, omega)
    b_poly = Polynomial.from_evaluations(state.b_vals, omega)
    c_poly = Polynomial.from_evaluations(state.c_vals, omega)

    # ── 3. 블라인딩 ──
    zh = Polynomial.vanishing(n)
    state.a_poly = add_blinding(a_poly, zh, 2, state.rng)
    state.b_poly = add_blinding(b_poly, zh, 2, state.rng)
    state.c_poly = add_blinding(c_poly, zh, 2, state.rng)

    # ── 4. KZG 커밋 ──
    state.proof.a_comm = commit(state.a_poly, state.srs)
    state.proof.b_comm = commit(state.b_poly, state.srs)
    state.proof.c_comm = commit(state.c_poly, state.srs)

    state.transcript.append_point(b"a_comm", state.proof.a_comm)
    state.transcript.append_point(b"b_comm", state.proof.b_comm)
    state.transcript.append_point(b"c_comm", state.proof.c_comm)


def add_blinding(poly, zh, num_blinds, rng):
    """poly + (r₀ + r₁·x + ...)·Z_H(x)."""
    blind = Polynomial([FR(rng.randrange(CURVE_ORDER)) for _ in range(num_blinds)])
    return poly + blind * zh
