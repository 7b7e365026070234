"""
R1CS 제약 시스템 (Rank-1 Constraint System)
============================================

스텝 함수 한 번의 실행을 R1CS로 표현한다.

**변수 벡터 z**:
    z = (u, x₀, ..., x_{l-1}, W₀, ..., W_{w-1})

  - u: 상수 슬롯. 새 인스턴스에서는 1, 폴딩된(relaxed) 인스턴스에서는 임의의 값
  - x: 공개 입력. 스텝 회로에서는 (i, z0, z_in, z_out) 순서로 1 + 3·arity개
    (i는 스텝 번호)
  - W: 비공개 witness. 스텝 입력(private) 다음에 보조 변수(aux)

**제약 (행 j)**:
    ⟨A_j, z⟩ · ⟨B_j, z⟩ = u · ⟨C_j, z⟩ + E_j

  새 인스턴스는 u = 1, E = 0 이므로 일반 R1CS와 같다.
  폴딩은 u와 E(error term)를 통해 교차항을 흡수한다 (relaxed R1CS).

  상수 c는 항상 c·z[0]으로 표현된다. 그래서 폴딩 후에도 상수가 u배로
  스케일되어 등식이 유지된다.

사용 예시:
    >>> cs = ConstraintSystem()
    >>> i = cs.alloc_public("i", 1)
    >>> z0 = cs.alloc_public("z0", 3)
    >>> x = cs.alloc_public("z_in", 3)
    >>> y = cs.alloc_public("z_out", 9)
    >>> cs.enforce(x, x, y, "square")
    >>> circuit = cs.to_circuit("demo", 8, arity=1, input_width=0)
    >>> circuit.is_satisfied(cs.public_values(), cs.witness_values())
    True
"""

import hashlib

from ivc.field import FR


# 변수 키: (종류, 인덱스)
ONE = ("one", 0)
PUBLIC = "public"
WITNESS = "witness"


class LinearCombination:
    """변수들의 선형결합 Σ cᵢ·zᵢ.

    속성:
        terms: 변수 키 → FR 계수 딕셔너리

    예시:
        >>> lc = LinearCombination.variable(("witness", 0)) * 2 + LinearCombination.constant(5)
    """

    def __init__(self, terms=None):
        self.terms = {}
        if terms:
            for key, coeff in terms.items():
                coeff = coeff if isinstance(coeff, FR) else FR(coeff)
                if coeff != 0:
                    self.terms[key] = coeff

    @classmethod
    def variable(cls, key):
        return cls({key: FR(1)})

    @classmethod
    def constant(cls, value):
        return cls({ONE: value})

    @classmethod
    def zero(cls):
        return cls()

    def __add__(self, other):
        if isinstance(other, (int, FR)):
            other = LinearCombination.constant(other)
        terms = dict(self.terms)
        for key, coeff in other.terms.items():
            terms[key] = terms.get(key, FR(0)) + coeff
        return LinearCombination(terms)

    def __radd__(self, other):
        return self.__add__(other)

    def __neg__(self):
        return LinearCombination({k: -c for k, c in self.terms.items()})

    def __sub__(self, other):
        if isinstance(other, (int, FR)):
            other = LinearCombination.constant(other)
        return self + (-other)

    def __mul__(self, scalar):
        if not isinstance(scalar, (int, FR)):
            raise TypeError("선형결합에는 스칼라만 곱할 수 있습니다")
        return LinearCombination({k: c * scalar for k, c in self.terms.items()})

    def __rmul__(self, scalar):
        return self.__mul__(scalar)

    def is_empty(self):
        return not self.terms

    def __repr__(self):
        parts = [f"{int(c)}*{k[0]}[{k[1]}]" for k, c in self.terms.items()]
        return "LC(" + " + ".join(parts) + ")" if parts else "LC(0)"


class Constraint:
    """정규화된 R1CS 한 행: A, B, C는 z 인덱스 → FR 계수 딕셔너리."""

    __slots__ = ("a", "b", "c", "label")

    def __init__(self, a, b, c, label):
        self.a = a
        self.b = b
        self.c = c
        self.label = label

    def __repr__(self):
        return f"Constraint({self.label!r})"


def _dot(row, z):
    total = FR(0)
    for index, coeff in row.items():
        total = total + coeff * z[index]
    return total


# ─────────────────────────────────────────────────────────────────────
# Circuit: 컴파일된 R1CS 형태 (shape)
# ─────────────────────────────────────────────────────────────────────

class Circuit:
    """스텝 함수와 크기로부터 유도된 R1CS 형태.

    값(witness)은 갖지 않고 변수 배치와 제약만 갖는다.
    Witness 엔진과 폴딩 엔진이 읽기 전용으로 공유한다.

    속성:
        name, size: 스텝 함수 이름과 크기 파라미터
        arity: 상태 폭 (z0, z_in, z_out 각각의 길이)
        input_width: 스텝 당 비공개 입력 수
        num_public: 공개 입력 수 l (= 1 + 3·arity)
        num_witness: witness 길이 w
        constraints: Constraint 리스트 (길이 m)
        public_labels, witness_labels: 디버깅용 변수 이름
        digest: 형태 전체의 SHA-256 (트랜스크립트 도메인 분리에 사용)
    """

    def __init__(self, name, size, arity, input_width, public_labels,
                 witness_labels, constraints):
        self.name = name
        self.size = size
        self.arity = arity
        self.input_width = input_width
        self.public_labels = list(public_labels)
        self.witness_labels = list(witness_labels)
        self.constraints = list(constraints)
        self.num_public = len(self.public_labels)
        self.num_witness = len(self.witness_labels)
        if self.num_public != 1 + 3 * arity:
            raise ValueError(
                f"공개 입력은 (i, z0, z_in, z_out) 1 + 3·arity개여야 합니다: "
                f"{self.num_public} != {1 + 3 * arity}"
            )
        self.digest = self._compute_digest()

    @property
    def num_constraints(self):
        return len(self.constraints)

    @property
    def num_variables(self):
        return 1 + self.num_public + self.num_witness

    # ── 공개 입력 배치 ──

    def step_slice(self):
        return slice(0, 1)

    def z0_slice(self):
        return slice(1, 1 + self.arity)

    def z_in_slice(self):
        return slice(1 + self.arity, 1 + 2 * self.arity)

    def z_out_slice(self):
        return slice(1 + 2 * self.arity, 1 + 3 * self.arity)

    # ── 평가 ──

    def z_vector(self, u, x, w):
        """z = (u, x, W)."""
        return [u] + list(x) + list(w)

    def multiply(self, z):
        """(Az, Bz, Cz) 세 벡터를 계산한다."""
        az = [_dot(row.a, z) for row in self.constraints]
        bz = [_dot(row.b, z) for row in self.constraints]
        cz = [_dot(row.c, z) for row in self.constraints]
        return az, bz, cz

    def unsatisfied(self, x, w, u=None, e=None):
        """만족되지 않는 제약의 레이블 리스트를 반환한다.

        Args:
            x, w: 공개 입력 / witness 벡터
            u: 상수 슬롯 (기본 1)
            e: error 벡터 (기본 0)
        """
        if u is None:
            u = FR(1)
        if len(x) != self.num_public or len(w) != self.num_witness:
            return ["<shape>"]
        if e is not None and len(e) != self.num_constraints:
            return ["<shape>"]
        z = self.z_vector(u, x, w)
        failed = []
        for j, row in enumerate(self.constraints):
            lhs = _dot(row.a, z) * _dot(row.b, z)
            rhs = u * _dot(row.c, z)
            if e is not None:
                rhs = rhs + e[j]
            if lhs != rhs:
                failed.append(row.label)
        return failed

    def is_satisfied(self, x, w, u=None, e=None):
        """(relaxed) R1CS 만족 여부: Az ∘ Bz == u·Cz + E."""
        return not self.unsatisfied(x, w, u, e)

    def _compute_digest(self):
        h = hashlib.sha256()
        h.update(self.name.encode())
        for value in (self.size, self.arity, self.input_width,
                      self.num_public, self.num_witness, self.num_constraints):
            h.update(int(value).to_bytes(8, "big"))
        for row in self.constraints:
            for part in (row.a, row.b, row.c):
                h.update(b"|")
                for index in sorted(part):
                    h.update(index.to_bytes(4, "big"))
                    h.update(int(part[index]).to_bytes(32, "big"))
        return h.digest()

    def __repr__(self):
        return (
            f"Circuit({self.name!r}, size={self.size}, "
            f"constraints={self.num_constraints}, witness={self.num_witness})"
        )


# ─────────────────────────────────────────────────────────────────────
# ConstraintSystem: 합성(synthesis) 중의 빌더
# ─────────────────────────────────────────────────────────────────────

class ConstraintSystem:
    """스텝 합성기가 변수를 할당하고 제약을 추가하는 빌더.

    형태(shape)와 값(assignment)을 동시에 기록한다.
    - 컴파일러는 0 상태로 합성하여 형태만 사용한다.
    - Witness 엔진은 실제 상태로 합성하여 값만 사용한다.
    두 경우 모두 같은 코드 경로를 지나므로 변수 배치가 항상 일치한다.
    """

    def __init__(self):
        self.public_labels = []
        self.witness_labels = []
        self.witness_kinds = []
        self.values = {ONE: FR(1)}
        self.constraints = []

    def one(self):
        return LinearCombination.variable(ONE)

    def alloc_public(self, label, value):
        key = (PUBLIC, len(self.public_labels))
        self.public_labels.append(label)
        self.values[key] = FR(value)
        return LinearCombination.variable(key)

    def alloc_private(self, label, value):
        """스텝의 비공개 입력 슬롯."""
        return self._alloc_witness(label, value, "private")

    def alloc_aux(self, label, value):
        """중간 계산 값 (비트 분해 등) 슬롯."""
        return self._alloc_witness(label, value, "aux")

    def _alloc_witness(self, label, value, kind):
        key = (WITNESS, len(self.witness_labels))
        self.witness_labels.append(label)
        self.witness_kinds.append(kind)
        self.values[key] = FR(value)
        return LinearCombination.variable(key)

    def enforce(self, a, b, c, label):
        """제약 ⟨a,z⟩·⟨b,z⟩ = ⟨c,z⟩ 를 추가한다."""
        self.constraints.append((a, b, c, label))

    def value(self, lc):
        """현재 할당에서 선형결합의 값을 계산한다."""
        total = FR(0)
        for key, coeff in lc.terms.items():
            total = total + coeff * self.values[key]
        return total

    def public_values(self):
        return [self.values[(PUBLIC, i)] for i in range(len(self.public_labels))]

    def witness_values(self):
        return [self.values[(WITNESS, j)] for j in range(len(self.witness_labels))]

    def _index(self, key):
        kind, i = key
        if kind == "one":
            return 0
        if kind == PUBLIC:
            return 1 + i
        return 1 + len(self.public_labels) + i

    def _row(self, lc):
        return {self._index(key): coeff for key, coeff in lc.terms.items()}

    def to_circuit(self, name, size, arity, input_width):
        """기록된 제약을 z 인덱스 기반 Circuit으로 정규화한다."""
        rows = [
            Constraint(self._row(a), self._row(b), self._row(c), label)
            for a, b, c, label in self.constraints
        ]
        return Circuit(
            name, size, arity, input_width,
            self.public_labels, self.witness_labels, rows,
        )


# ─────────────────────────────────────────────────────────────────────
# 가젯 (Gadgets)
# ─────────────────────────────────────────────────────────────────────

def enforce_boolean(cs, bit, label):
    """b · (b - 1) = 0."""
    cs.enforce(bit, bit - cs.one(), LinearCombination.zero(), label)


def enforce_range(cs, value, bits, label):
    """value가 [0, 2^bits) 범위임을 비트 분해로 강제한다.

    제약 수: bits (불리언) + 1 (재조합)

    Args:
        cs: ConstraintSystem
        value: 검사할 선형결합
        bits: 비트 폭
        label: 제약 레이블 접두사

    Returns:
        list[LinearCombination]: 하위 비트부터의 비트 변수
    """
    concrete = int(cs.value(value))
    bit_vars = []
    recomposed = LinearCombination.zero()
    for k in range(bits):
        bit = cs.alloc_aux(f"{label}.bit[{k}]", (concrete >> k) & 1)
        enforce_boolean(cs, bit, f"{label}.bool[{k}]")
        recomposed = recomposed + bit * (1 << k)
        bit_vars.append(bit)
    cs.enforce(recomposed, cs.one(), value, f"{label}.recompose")
    return bit_vars


def enforce_first_step(cs, index, z0, z_in, label):
    """index = 1 인 스텝에서 z_in = z0 를 강제한다.

    first = [index == 1] 을 역원 보조 변수 inv로 표현한다:

        (index - 1) · inv   = 1 - first
        (index - 1) · first = 0
        first · (z_in[k] - z0[k]) = 0      (k = 0..arity-1)

    index ≠ 1 이면 둘째 식이 first = 0 을, index = 1 이면 첫째 식이
    first = 1 을 강제한다. 제약 수: 2 + arity

    Args:
        cs: ConstraintSystem
        index: 스텝 번호 선형결합
        z0, z_in: 상태 선형결합 리스트 (같은 길이)
        label: 제약 레이블 접두사
    """
    offset = cs.value(index) - 1
    is_first = offset == 0
    inv = cs.alloc_aux(f"{label}.inv", 0 if is_first else FR(1) / offset)
    first = cs.alloc_aux(f"{label}.flag", 1 if is_first else 0)
    shifted = index - cs.one()
    cs.enforce(shifted, inv, cs.one() - first, f"{label}.inverse")
    cs.enforce(shifted, first, LinearCombination.zero(), f"{label}.flag")
    for k, (start, current) in enumerate(zip(z0, z_in)):
        cs.enforce(first, current - start, LinearCombination.zero(), f"{label}.start[{k}]")
