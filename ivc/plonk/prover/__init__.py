"""
PLONK Prover: 5-라운드 프로토콜 오케스트레이터
=================================================

결정자(decider) 회로의 만족을 증명한다.

  ┌─────────────────────────────────────────────────────┐
  │  Round 1: 배선 다항식 커밋 [a]₁, [b]₁, [c]₁          │
  │           + 공개 입력 다항식 PI(x)                   │
  ├─────────────────────────────────────────────────────┤
  │  Round 2: β, γ → 순열 누적자 [z]₁                    │
  ├─────────────────────────────────────────────────────┤
  │  Round 3: α → 몫 다항식 [t_lo]₁, [t_mid]₁, [t_hi]₁  │
  ├─────────────────────────────────────────────────────┤
  │  Round 4: ζ → ā, b̄, c̄, s̄_σ1, s̄_σ2, z̄_ω            │
  ├─────────────────────────────────────────────────────┤
  │  Round 5: v → 선형화 r(x), [W_ζ]₁, [W_ζω]₁           │
  └─────────────────────────────────────────────────────┘

트랜스크립트는 도메인 크기, 공개 입력, 전처리 커밋먼트로 시작한다.
그래서 공개 입력을 바꾸면 모든 챌린지가 바뀐다.

블라인딩 난수는 호출자가 넘긴 rng(random.Random 호환)에서 뽑는다.

사용 예시:
    >>> from ivc.plonk.prover import prove
    >>> proof = prove(a_vals, b_vals, c_vals, public_inputs, preprocessed, srs)
"""

import secrets

from ivc.transcript import Transcript
from ivc.plonk.preprocessor import SELECTORS, PERMUTATIONS
from ivc.plonk.prover import round1, round2, round3, round4, round5


class Proof:
    """PLONK 증명 데이터 컨테이너.

    Round 1: a_comm, b_comm, c_comm
    Round 2: z_comm
    Round 3: t_lo_comm, t_mid_comm, t_hi_comm
    Round 4: a_eval, b_eval, c_eval, s_sigma1_eval, s_sigma2_eval, z_omega_eval
    Round 5: r_eval, W_zeta_comm, W_zeta_omega_comm
    """

    POINTS = (
        "a_comm", "b_comm", "c_comm", "z_comm",
        "t_lo_comm", "t_mid_comm", "t_hi_comm",
        "W_zeta_comm", "W_zeta_omega_comm",
    )
    SCALARS = (
        "a_eval", "b_eval", "c_eval",
        "s_sigma1_eval", "s_sigma2_eval", "z_omega_eval", "r_eval",
    )

    def __init__(self):
        for name in self.POINTS + self.SCALARS:
            setattr(self, name, None)


def start_transcript(public_inputs, preprocessed):
    """Prover와 Verifier가 공유하는 PLONK 트랜스크립트 시작 상태."""
    transcript = Transcript(b"ivc-decider-plonk")
    transcript.append_int(b"n", preprocessed.n)
    transcript.append_scalars(b"pi", public_inputs)
    for name in SELECTORS + PERMUTATIONS:
        transcript.append_point(name.encode(), getattr(preprocessed, f"{name}_comm"))
    return transcript


class ProverState:
    """라운드 간 공유되는 Prover 상태.

    속성 (입력):
        a_vals, b_vals, c_vals, public_inputs, preprocessed, srs, rng
        strict: False이면 Round 3의 나머지를 버린다 (위조 증명 테스트용)

    속성 (라운드 간 생성):
        pi_poly, a_poly, b_poly, c_poly, z_poly, t_lo/mid/hi_poly
        beta, gamma, alpha, zeta, v

    속성 (출력):
        proof: Proof
    """

    def __init__(self, a_vals, b_vals, c_vals, public_inputs, preprocessed, srs,
                 rng=None, strict=True):
        self.a_vals = a_vals
        self.b_vals = b_vals
        self.c_vals = c_vals
        self.public_inputs = list(public_inputs)
        self.preprocessed = preprocessed
        self.srs = srs
        self.rng = rng if rng is not None else secrets.SystemRandom()
        self.strict = strict

        self.transcript = start_transcript(self.public_inputs, preprocessed)

        self.n = preprocessed.n
        self.omega = preprocessed.omega
        self.domain = preprocessed.domain

        self.pi_poly = None
        self.a_poly = None
        self.b_poly = None
        self.c_poly = None
        self.z_poly = None
        self.t_lo_poly = None
        self.t_mid_poly = None
        self.t_hi_poly = None

        self.beta = None
        self.gamma = None
        self.alpha = None
        self.zeta = None
        self.v = None

        self.proof = Proof()


def run_rounds(a_vals, b_vals, c_vals, public_inputs, preprocessed, srs,
               rng=None, strict=True):
    """5개 라운드를 실행하고 최종 ProverState를 반환한다.

    결정자는 Round 1의 블라인딩된 배선 다항식 a'(x), c'(x)를
    연결 증명에 다시 쓰므로 Proof만이 아니라 상태 전체가 필요하다.

    Raises:
        ValueError: strict 모드에서 제약 다항식이 Z_H로 나누어 떨어지지 않을 때
    """
    state = ProverState(
        a_vals, b_vals, c_vals, public_inputs, preprocessed, srs,
        rng=rng, strict=strict,
    )
    round1.execute(state)
    round2.execute(state)
    round3.execute(state)
    round4.execute(state)
    round5.execute(state)
    return state


def prove(a_vals, b_vals, c_vals, public_inputs, preprocessed, srs, rng=None,
          strict=True):
    """PLONK 증명을 생성한다.

    Args:
        a_vals, b_vals, c_vals: 배선 값 (길이 n)
        public_inputs: 공개 입력 값 (앞쪽 행 순서)
        preprocessed: PreprocessedData
        srs: SRS
        rng: 블라인딩 난수원 (기본 secrets.SystemRandom)
        strict: 제약 불만족 시 ValueError를 낼지 여부

    Returns:
        Proof
    """
    return run_rounds(
        a_vals, b_vals, c_vals, public_inputs, preprocessed, srs,
        rng=rng, strict=strict,
    ).proof
