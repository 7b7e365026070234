"""
PLONK 회로 표현 (Circuit Representation)
==========================================

결정자(decider) 회로를 게이트와 변수로 표현한다.

**PLONK 게이트 구조**:
  각 행(row)은 3개의 배선 a, b, c와 5개의 셀렉터로 구성:

    q_L·a + q_R·b + q_O·c + q_M·(a·b) + q_C + PI(ωⁱ) = 0

**게이트 유형별 셀렉터 설정**:
  | 유형     | q_L | q_R | q_O | q_M | q_C | 의미                 |
  |----------|-----|-----|-----|-----|-----|----------------------|
  | 곱셈     |  0  |  0  | -1  |  1  |  0  | a·b = c              |
  | 선형결합 | k₁  | k₂  | -1  |  0  |  0  | k₁·a + k₂·b = c      |
  | 공개입력 |  0  |  0  |  1  |  0  |  0  | c = -PI(ωⁱ)          |
  | 빈 행    |  0  |  0  |  0  |  0  |  0  | 배선 값 보관 전용     |

**변수와 배선(Copy) 제약**:
  배선 위치마다 직접 복사 제약을 적는 대신 "변수"를 배선에 놓는다.
  같은 변수가 놓인 위치들은 하나의 순환(cycle)으로 묶여 순열 σ가 된다.

**값 풀이(solve)**:
  게이트는 추가된 순서대로 c를 a, b에서 계산한다 (q_O ≠ 0일 때).
  c가 이미 알려진 변수이면 그 행은 검사 게이트가 된다.

사용 예시:
    >>> circuit = PlonkCircuit()
    >>> x = circuit.new_variable()
    >>> circuit.add_public_input(x)
    >>> y = circuit.multiply(x, x)
    >>> values = circuit.solve({x: FR(3)})
    >>> values[y]
    FR(9)
"""

from ivc.field import FR


class Gate:
    """PLONK 산술 게이트.

    게이트 방정식: q_L·a + q_R·b + q_O·c + q_M·(a·b) + q_C = 0
    """

    def __init__(self, q_l, q_r, q_o, q_m, q_c):
        self.q_l = q_l if isinstance(q_l, FR) else FR(q_l)
        self.q_r = q_r if isinstance(q_r, FR) else FR(q_r)
        self.q_o = q_o if isinstance(q_o, FR) else FR(q_o)
        self.q_m = q_m if isinstance(q_m, FR) else FR(q_m)
        self.q_c = q_c if isinstance(q_c, FR) else FR(q_c)

    def evaluate(self, a, b, c, pi=None):
        """게이트 식의 값 (만족되면 0)."""
        result = (
            self.q_l * a
            + self.q_r * b
            + self.q_o * c
            + self.q_m * (a * b)
            + self.q_c
        )
        if pi is not None:
            result = result + pi
        return result

    def check(self, a, b, c, pi=None):
        return self.evaluate(a, b, c, pi) == FR(0)

    @classmethod
    def empty(cls):
        return cls(0, 0, 0, 0, 0)

    @classmethod
    def multiplication(cls):
        return cls(0, 0, -1, 1, 0)

    @classmethod
    def linear(cls, k_a, k_b, constant=0):
        """k_a·a + k_b·b + constant = c."""
        return cls(k_a, k_b, -1, 0, constant)

    @classmethod
    def public_input(cls):
        return cls(0, 0, 1, 0, 0)


class PlonkCircuit:
    """변수 기반 PLONK 회로 빌더.

    속성:
        gates: 행별 Gate 리스트
        wires: 행별 [a 변수, b 변수, c 변수] (빈 배선은 None)
        num_public_inputs: 공개 입력 행 수 (항상 0행부터 연속)
        num_variables: 할당된 변수 수
    """

    def __init__(self):
        self.gates = []
        self.wires = []
        self.num_public_inputs = 0
        self.num_variables = 0
        self._order = []
        self._filled = set()

    @property
    def num_rows(self):
        """게이트 수 (패딩 전)."""
        return len(self.gates)

    def new_variable(self):
        var = self.num_variables
        self.num_variables += 1
        return var

    # ── 행 추가 ──

    def add_gate(self, gate, a=None, b=None, c=None):
        """게이트 행을 추가하고 행 인덱스를 반환한다."""
        self.gates.append(gate)
        self.wires.append([a, b, c])
        row = len(self.gates) - 1
        self._order.append(row)
        self._filled.add(row)
        return row

    def reserve_rows(self, count):
        """빈 행 count개를 예약한다. 나중에 set_gate로 채운다."""
        start = len(self.gates)
        for _ in range(count):
            self.gates.append(Gate.empty())
            self.wires.append([None, None, None])
        return list(range(start, start + count))

    def set_gate(self, row, gate, a=None, b=None, c=None):
        """예약된 행에 게이트를 놓는다. 풀이 순서는 호출 순서를 따른다."""
        if row in self._filled:
            raise ValueError(f"이미 채워진 행입니다: {row}")
        self.gates[row] = gate
        self.wires[row] = [a, b, c]
        self._order.append(row)
        self._filled.add(row)

    def add_public_input(self, var):
        """공개 입력 게이트: c = var, PI(ωⁱ) = -value.

        Raises:
            ValueError: 다른 게이트 뒤에 공개 입력을 추가할 때
        """
        if self.num_public_inputs != len(self.gates):
            raise ValueError("공개 입력 행은 회로 맨 앞에 연속으로 놓여야 합니다")
        self.num_public_inputs += 1
        return self.add_gate(Gate.public_input(), c=var)

    # ── 연산 헬퍼 (출력 변수를 반환) ──

    def multiply(self, x, y):
        out = self.new_variable()
        self.add_gate(Gate.multiplication(), a=x, b=y, c=out)
        return out

    def add(self, x, y):
        out = self.new_variable()
        self.add_gate(Gate.linear(1, 1), a=x, b=y, c=out)
        return out

    def linear(self, x, k_x, y=None, k_y=0, constant=0):
        """k_x·x + k_y·y + constant."""
        out = self.new_variable()
        self.add_gate(Gate.linear(k_x, k_y, constant), a=x, b=y, c=out)
        return out

    def constant(self, value):
        out = self.new_variable()
        self.add_gate(Gate.linear(0, 0, value), c=out)
        return out

    def assert_equal(self, x, y):
        """x - y = 0 검사 게이트."""
        return self.add_gate(Gate(1, -1, 0, 0, 0), a=x, b=y)

    # ── 전처리용 벡터 ──

    def selector_vectors(self, n):
        """길이 n으로 0 패딩한 셀렉터 벡터 (q_L, q_R, q_O, q_M, q_C)."""
        if n < self.num_rows:
            raise ValueError(f"도메인 크기 {n}가 행 수 {self.num_rows}보다 작습니다")
        pad = [FR(0)] * (n - self.num_rows)
        q_l = [g.q_l for g in self.gates] + pad
        q_r = [g.q_r for g in self.gates] + pad
        q_o = [g.q_o for g in self.gates] + pad
        q_m = [g.q_m for g in self.gates] + pad
        q_c = [g.q_c for g in self.gates] + pad
        return q_l, q_r, q_o, q_m, q_c

    def build_copy_constraints(self, n):
        """배선 순열 σ를 구성한다.

        3n개 위치 (a₀..a_{n-1}, b₀..b_{n-1}, c₀..c_{n-1})에서 같은 변수가
        놓인 위치들을 순환으로 잇는다: p₀ → p₁ → ... → p_k → p₀.

        Returns:
            list[int]: 길이 3n의 순열 배열
        """
        sigma = list(range(3 * n))
        positions = {}
        for row, wires in enumerate(self.wires):
            for column, var in enumerate(wires):
                if var is not None:
                    positions.setdefault(var, []).append(column * n + row)
        for cycle in positions.values():
            for i, pos in enumerate(cycle):
                sigma[pos] = cycle[(i + 1) % len(cycle)]
        return sigma

    # ── 값 계산 ──

    def solve(self, inputs):
        """입력 변수 값에서 나머지 변수 값을 계산한다.

        Args:
            inputs: 변수 → FR 딕셔너리 (공개 입력 + 비공개 입력)

        Returns:
            dict: 모든 변수 → FR

        Raises:
            ValueError: 어떤 게이트의 입력 배선 값이 정해지지 않았을 때
        """
        values = {var: (v if isinstance(v, FR) else FR(v)) for var, v in inputs.items()}
        for row in self._order:
            gate = self.gates[row]
            a_var, b_var, c_var = self.wires[row]
            if c_var is None or c_var in values or gate.q_o == 0:
                continue
            try:
                a = values[a_var] if a_var is not None else FR(0)
                b = values[b_var] if b_var is not None else FR(0)
            except KeyError:
                raise ValueError(f"{row}행의 입력 배선 값이 정해지지 않았습니다") from None
            partial = gate.q_l * a + gate.q_r * b + gate.q_m * (a * b) + gate.q_c
            values[c_var] = FR(0) - partial / gate.q_o
        return values

    def wire_values(self, values, n):
        """변수 값 → 길이 n의 배선 값 벡터 (a, b, c)."""
        columns = ([], [], [])
        for wires in self.wires:
            for column, var in enumerate(wires):
                columns[column].append(values[var] if var is not None else FR(0))
        pad = [FR(0)] * (n - self.num_rows)
        return columns[0] + pad, columns[1] + pad, columns[2] + pad

    def unsatisfied_rows(self, a_vals, b_vals, c_vals, pi_vals):
        """게이트 식이 0이 아닌 행 번호들 (디버깅용)."""
        failed = []
        for row, gate in enumerate(self.gates):
            pi = pi_vals[row] if row < len(pi_vals) else None
            if not gate.check(a_vals[row], b_vals[row], c_vals[row], pi):
                failed.append(row)
        return failed
