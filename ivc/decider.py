"""
결정자 (Decider): 폴딩된 인스턴스의 간결한 증명
================================================

폴딩이 끝나면 누산기 하나가 남는다. 결정자는 "이 누산기가 relaxed R1CS를
만족한다"를 PLONK 증명 하나로 보인다. 크기는 반복 횟수와 무관하다.

**결정자 회로 배치** (R1CS 형태에서 유도, 행 번호 순서):

  | 행 구간            | 내용                                            |
  |--------------------|-------------------------------------------------|
  | [0, P)             | 공개 입력 (아래 순서)                            |
  | [P, P+w)           | W* 슬롯 (a 배선)                                |
  | [P+w, P+w+m)       | E* 슬롯 (c 배선) + 행 j 검사 게이트              |
  | 그 뒤              | 폴딩 검증 게이트, 선형결합, 곱셈                  |

  공개 입력: (left.u, left.x, right.u, right.x, r, blind.u, blind.x, r_b, z0)

**회로가 강제하는 것**:
  1. U_n = left ⊕_r right 의 스칼라 부분: u_n = u_L + r·u_R, x_n = x_L + r·x_R
  2. U* = U_n ⊕_{r_b} R 의 스칼라 부분 (R은 블라인딩 인스턴스)
  3. U_n.x의 z0 슬롯 = u_n·z0
  4. U*의 모든 relaxed 행: ⟨A_j,z*⟩·⟨B_j,z*⟩ - u*·⟨C_j,z*⟩ - E*_j = 0

  커밋먼트(군 원소) 쪽 폴딩은 검증자가 직접 계산한다.

**연결 증명 (Link proof)**:
  PLONK 배선 다항식 a'(X), c'(X)와 폴딩 커밋먼트 W̄*, Ē*가 같은 값을
  담고 있음을 보인다. w(X) = Σ W*ᵢ·L_{rowᵢ}(X) 이면 [w(τ)]₁ = W̄* 이므로

    a'(X) - w(X) = q_w(X)·Z_{S_w}(X)
    c'(X) - e(X) = q_e(X)·Z_{S_e}(X)

  를 트랜스크립트 점 ζ'에서 확인한다. 여섯 개의 평가값을 η로 묶어
  KZG 열기 하나로 증명한다.

사용 예시:
    >>> layout = DeciderLayout(circuit)
    >>> public = layout.public_inputs(left, right, r, blind, r_b, z0)
    >>> a, b, c = layout.assign(public, w_star, e_star)
"""

from ivc.field import FR, ec_add, ec_mul
from ivc.polynomial import Polynomial, poly_div, divide_by_linear, subset_vanishing_eval
from ivc.transcript import Transcript
from ivc.plonk.circuit import Gate, PlonkCircuit
from ivc.plonk.kzg import commit, opening_terms
from ivc.plonk.preprocessor import domain_size_for


# ─────────────────────────────────────────────────────────────────────
# 결정자 회로 배치
# ─────────────────────────────────────────────────────────────────────

class DeciderLayout:
    """R1CS 형태에서 결정자 PLONK 회로를 만든다.

    속성:
        circuit: PlonkCircuit
        num_public: R1CS 공개 입력 수 l
        arity: 상태 폭
        public_vars: 공개 입력 변수 (행 순서)
        w_vars, e_vars: W*, E* 변수
        w_rows, e_rows: W*, E*가 놓이는 행
        domain_size: PLONK 도메인 크기 N
    """

    def __init__(self, r1cs):
        self.num_public = r1cs.num_public
        self.arity = r1cs.arity
        self.num_witness = r1cs.num_witness
        self.num_constraints = r1cs.num_constraints

        pc = PlonkCircuit()
        self.circuit = pc
        self._zero = None

        # ── 1. 공개 입력 ──
        left_u, left_x = self._instance_vars()
        right_u, right_x = self._instance_vars()
        r = pc.new_variable()
        blind_u, blind_x = self._instance_vars()
        r_b = pc.new_variable()
        z0 = [pc.new_variable() for _ in range(self.arity)]
        self.public_vars = (
            [left_u] + left_x + [right_u] + right_x + [r]
            + [blind_u] + blind_x + [r_b] + z0
        )
        for var in self.public_vars:
            pc.add_public_input(var)

        # ── 2. W*, E* 슬롯 ──
        self.w_vars = [pc.new_variable() for _ in range(self.num_witness)]
        self.e_vars = [pc.new_variable() for _ in range(self.num_constraints)]
        self.w_rows = pc.reserve_rows(self.num_witness)
        self.e_rows = pc.reserve_rows(self.num_constraints)
        for row, var in zip(self.w_rows, self.w_vars):
            pc.set_gate(row, Gate.empty(), a=var)

        # ── 3. 폴딩 검증 (스칼라 부분) ──
        n_u = self._fold(left_u, r, right_u)
        n_x = [self._fold(a, r, b) for a, b in zip(left_x, right_x)]
        star_u = self._fold(n_u, r_b, blind_u)
        star_x = [self._fold(a, r_b, b) for a, b in zip(n_x, blind_x)]

        # ── 4. z0 슬롯: x_n[z0 + i] = u_n·z0[i] ──
        z0_start = r1cs.z0_slice().start
        for i in range(self.arity):
            pc.assert_equal(n_x[z0_start + i], pc.multiply(n_u, z0[i]))

        # ── 5. relaxed R1CS 행 ──
        z_vars = [star_u] + star_x + self.w_vars
        for j, row in enumerate(r1cs.constraints):
            a = self._combine(row.a, z_vars)
            b = self._combine(row.b, z_vars)
            c = self._combine(row.c, z_vars)
            product = pc.multiply(a, b)
            scaled = pc.multiply(star_u, c)
            # product - scaled - E_j = 0
            pc.set_gate(
                self.e_rows[j], Gate.linear(1, -1), a=product, b=scaled, c=self.e_vars[j]
            )

        self.domain_size = domain_size_for(pc)

    @property
    def num_rows(self):
        return self.circuit.num_rows

    @property
    def num_public_inputs(self):
        return len(self.public_vars)

    def _instance_vars(self):
        u = self.circuit.new_variable()
        x = [self.circuit.new_variable() for _ in range(self.num_public)]
        return u, x

    def _fold(self, a, r, b):
        """a + r·b."""
        return self.circuit.add(a, self.circuit.multiply(r, b))

    def _zero_var(self):
        if self._zero is None:
            self._zero = self.circuit.constant(0)
        return self._zero

    def _combine(self, terms, z_vars):
        """Σ coeff·z[index] 를 게이트 체인으로 만든다."""
        pc = self.circuit
        items = sorted(terms.items())
        if not items:
            return self._zero_var()
        if len(items) == 1:
            index, coeff = items[0]
            if coeff == 1:
                return z_vars[index]
            return pc.linear(z_vars[index], coeff)
        (i0, c0), (i1, c1) = items[0], items[1]
        acc = pc.linear(z_vars[i0], c0, z_vars[i1], c1)
        for index, coeff in items[2:]:
            acc = pc.linear(acc, 1, z_vars[index], coeff)
        return acc

    # ── 값 할당 ──

    def public_inputs(self, left, right, r, blind, r_b, z0):
        """결정자 공개 입력 벡터. left/right/blind는 RelaxedInstance."""
        values = [left.u] + list(left.x) + [right.u] + list(right.x) + [r]
        values += [blind.u] + list(blind.x) + [r_b]
        values += [FR(v) for v in z0]
        return [v if isinstance(v, FR) else FR(v) for v in values]

    def assign(self, public_values, w_values, e_values):
        """배선 값 (a, b, c)를 길이 N으로 계산한다.

        Raises:
            ValueError: 벡터 길이가 배치와 다를 때
        """
        if len(public_values) != len(self.public_vars):
            raise ValueError("결정자 공개 입력 길이가 다릅니다")
        if len(w_values) != len(self.w_vars) or len(e_values) != len(self.e_vars):
            raise ValueError("결정자 witness 길이가 다릅니다")
        inputs = dict(zip(self.public_vars, public_values))
        inputs.update(zip(self.w_vars, w_values))
        inputs.update(zip(self.e_vars, e_values))
        values = self.circuit.solve(inputs)
        return self.circuit.wire_values(values, self.domain_size)


# ─────────────────────────────────────────────────────────────────────
# 연결 증명 (Link proof)
# ─────────────────────────────────────────────────────────────────────

class LinkProof:
    """PLONK 배선과 폴딩 커밋먼트의 연결 증명.

    속성:
        q_w_comm, q_e_comm: 몫 다항식 커밋먼트
        a_eval, w_eval, q_w_eval, c_eval, e_eval, q_e_eval: ζ'에서의 값
        opening: 여섯 값의 일괄 KZG 열기 증명
    """

    POINTS = ("q_w_comm", "q_e_comm", "opening")
    SCALARS = ("a_eval", "w_eval", "q_w_eval", "c_eval", "e_eval", "q_e_eval")

    def __init__(self, **fields):
        for name in self.POINTS + self.SCALARS:
            setattr(self, name, fields.get(name))


def _link_transcript(a_comm, c_comm, comm_w, comm_e, q_w_comm, q_e_comm):
    transcript = Transcript(b"ivc-decider-link")
    transcript.append_point(b"a_comm", a_comm)
    transcript.append_point(b"c_comm", c_comm)
    transcript.append_point(b"comm_w", comm_w)
    transcript.append_point(b"comm_e", comm_e)
    transcript.append_point(b"q_w_comm", q_w_comm)
    transcript.append_point(b"q_e_comm", q_e_comm)
    return transcript


def _row_polynomial(values, rows, n, omega):
    """rows 행에만 값이 있는 평가 벡터를 보간한다."""
    evals = [FR(0)] * n
    for row, value in zip(rows, values):
        evals[row] = value
    return Polynomial.from_evaluations(evals, omega)


def prove_link(layout, prover_state, w_values, e_values, comm_w, comm_e, srs):
    """PLONK Prover 상태의 a'(X), c'(X)를 W̄*, Ē*에 연결한다.

    Returns:
        LinkProof
    """
    n = prover_state.n
    omega = prover_state.omega
    a_poly = prover_state.a_poly
    c_poly = prover_state.c_poly

    w_poly = _row_polynomial(w_values, layout.w_rows, n, omega)
    e_poly = _row_polynomial(e_values, layout.e_rows, n, omega)
    z_sw = Polynomial.from_roots([omega ** row for row in layout.w_rows])
    z_se = Polynomial.from_roots([omega ** row for row in layout.e_rows])
    q_w, _ = poly_div(a_poly - w_poly, z_sw)
    q_e, _ = poly_div(c_poly - e_poly, z_se)

    q_w_comm = commit(q_w, srs)
    q_e_comm = commit(q_e, srs)
    proof = prover_state.proof
    transcript = _link_transcript(
        proof.a_comm, proof.c_comm, comm_w, comm_e, q_w_comm, q_e_comm
    )
    point = transcript.challenge_scalar(b"zeta_link")

    polys = [a_poly, w_poly, q_w, c_poly, e_poly, q_e]
    evals = [p.evaluate(point) for p in polys]
    transcript.append_scalars(b"evals", evals)
    eta = transcript.challenge_scalar(b"eta")

    combined = Polynomial.zero()
    power = FR(1)
    for poly, value in zip(polys, evals):
        combined = combined + (poly - value) * power
        power = power * eta
    opening = commit(divide_by_linear(combined, point), srs)

    return LinkProof(
        q_w_comm=q_w_comm, q_e_comm=q_e_comm, opening=opening,
        a_eval=evals[0], w_eval=evals[1], q_w_eval=evals[2],
        c_eval=evals[3], e_eval=evals[4], q_e_eval=evals[5],
    )


def link_terms(layout, link, a_comm, c_comm, comm_w, comm_e, omega):
    """연결 증명의 페어링 항 (A, B)를 계산한다.

    Raises:
        ValueError: 몫 관계 a' - w = q_w·Z_{S_w} (또는 c/e 쪽)가 ζ'에서 성립하지 않을 때
    """
    transcript = _link_transcript(
        a_comm, c_comm, comm_w, comm_e, link.q_w_comm, link.q_e_comm
    )
    point = transcript.challenge_scalar(b"zeta_link")
    evals = [getattr(link, name) for name in LinkProof.SCALARS]
    transcript.append_scalars(b"evals", evals)
    eta = transcript.challenge_scalar(b"eta")

    z_sw = subset_vanishing_eval(layout.w_rows, omega, point)
    z_se = subset_vanishing_eval(layout.e_rows, omega, point)
    if link.a_eval - link.w_eval != link.q_w_eval * z_sw:
        raise ValueError("W 연결 관계가 성립하지 않습니다")
    if link.c_eval - link.e_eval != link.q_e_eval * z_se:
        raise ValueError("E 연결 관계가 성립하지 않습니다")

    commitments = [a_comm, comm_w, link.q_w_comm, c_comm, comm_e, link.q_e_comm]
    combined_comm = None
    combined_eval = FR(0)
    power = FR(1)
    for comm, value in zip(commitments, evals):
        combined_comm = ec_add(combined_comm, ec_mul(comm, power))
        combined_eval = combined_eval + value * power
        power = power * eta
    return opening_terms(combined_comm, link.opening, point, combined_eval)


def batch_challenge(terms):
    """여러 (A, B) 페어링 항을 묶을 랜덤 계수 ρ."""
    transcript = Transcript(b"ivc-decider-batch")
    for a_term, b_term in terms:
        transcript.append_point(b"A", a_term)
        transcript.append_point(b"B", b_term)
    return transcript.challenge_scalar(b"rho")


def combine_terms(terms):
    """Σ ρᵏ·Aₖ, Σ ρᵏ·Bₖ."""
    rho = batch_challenge(terms)
    a_total = None
    b_total = None
    power = FR(1)
    for a_term, b_term in terms:
        a_total = ec_add(a_total, ec_mul(a_term, power))
        b_total = ec_add(b_total, ec_mul(b_term, power))
        power = power * rho
    return a_total, b_total
