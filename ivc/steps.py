"""
스텝 함수 레지스트리 (Step Function Registry)
==============================================

반복 계산의 "한 스텝"을 기술하는 StepFunction과, 이름으로 찾는 StepRegistry.

StepFunction 하나는 두 가지 얼굴을 가진다:
  1. transition: 필드 위에서의 순수 상태 전이 (state, inputs, size) → state
  2. synthesize: 같은 전이를 R1CS 제약으로 표현하는 합성 루틴

두 루틴이 같은 계산을 나타내는지는 StepFunction 작성자의 책임이다.
컴파일러가 선언된 제약 수와 실제 합성 결과를 비교하고, 테스트가
check_witness로 만족 여부를 확인한다.

내장 스텝 함수 (모든 산술은 mod p, p = bn128 스칼라 필드 위수):
  | 이름       | 전이              | arity | 입력 | 제약 수   |
  |------------|-------------------|-------|------|-----------|
  | squaring   | z ↦ z²            | 1     | 0    | 1         |
  | fibonacci  | (a, b) ↦ (b, a+b) | 2     | 0    | 2         |
  | accumulate | s ↦ s + v²        | 1     | 1    | size + 3  |

size는 "size비트 필드 원소"의 비트 폭이다. 초기 상태 z0와 스텝의 비공개
입력이 [0, 2^size) 안에 있어야 하고, 이후 상태는 필드 안에서 자유롭게
감싼다. z0 범위 검사는 컴파일러가 모든 스텝에 공통으로 붙인다.

사용 예시:
    >>> registry = default_registry()
    >>> squaring = registry.get("squaring")
    >>> squaring.transition((3,), (), 8)
    (9,)
"""

from ivc.errors import UnknownComputation
from ivc.field import CURVE_ORDER
from ivc.r1cs import LinearCombination, enforce_range


SUPPORTED_SIZES = frozenset({8, 16, 32, 64, 128})


class StepFunction:
    """등록 가능한 스텝 함수 기술자. 생성 후에는 읽기 전용으로 다룬다.

    Args:
        name: 레지스트리 이름
        arity: 상태 폭
        input_width: 스텝 당 비공개 입력 수
        transition: (state, inputs, size) → 새 state (정수 튜플)
        synthesize: (cs, size, z_in, inputs, z_out) → None
        constraint_count: size → 선언된 제약 수
        supported_sizes: 허용 크기 집합
        default_initial_state: 기본 z0
        default_input: step → 기본 입력 튜플 (None이면 입력 없음)
    """

    def __init__(self, name, arity, input_width, transition, synthesize,
                 constraint_count, supported_sizes=SUPPORTED_SIZES,
                 default_initial_state=None, default_input=None):
        if arity < 1:
            raise ValueError(f"arity는 1 이상이어야 합니다: {arity}")
        self.name = name
        self.arity = arity
        self.input_width = input_width
        self.transition = transition
        self.synthesize = synthesize
        self.constraint_count = constraint_count
        self.supported_sizes = frozenset(supported_sizes)
        if default_initial_state is None:
            default_initial_state = (0,) * arity
        self.default_initial_state = tuple(default_initial_state)
        self._default_input = default_input

    def supports(self, size):
        return isinstance(size, int) and size in self.supported_sizes

    def default_input(self, step):
        """step번째 스텝의 기본 비공개 입력."""
        if self._default_input is None:
            return ()
        return tuple(self._default_input(step))

    def run(self, state, size, num_steps, inputs=None):
        """전이를 num_steps번 적용한 상태 궤적 [z0, z1, ..., zn]을 반환한다.

        검증 없이 전이만 계산한다. 입력 검증은 ComputationInstance와
        witness 엔진이 한다.
        """
        trajectory = [tuple(state)]
        for step in range(1, num_steps + 1):
            step_input = inputs[step - 1] if inputs is not None else self.default_input(step)
            trajectory.append(tuple(self.transition(trajectory[-1], step_input, size)))
        return trajectory

    def __repr__(self):
        return f"StepFunction({self.name!r}, arity={self.arity})"


class StepRegistry:
    """이름 → StepFunction. 시작 시 명시적으로 만들어 엔진에 넘긴다."""

    def __init__(self, descriptors=()):
        self._descriptors = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor):
        if descriptor.name in self._descriptors:
            raise ValueError(f"이미 등록된 스텝 함수입니다: {descriptor.name}")
        self._descriptors[descriptor.name] = descriptor
        return descriptor

    def get(self, name):
        """이름으로 스텝 함수를 찾는다.

        Raises:
            UnknownComputation: 등록되지 않은 이름
        """
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownComputation(
                f"등록되지 않은 계산입니다: {name!r} "
                f"(사용 가능: {', '.join(self.names())})"
            ) from None

    def names(self):
        return sorted(self._descriptors)

    def __contains__(self, name):
        return name in self._descriptors

    def __iter__(self):
        return iter(self._descriptors.values())

    def __len__(self):
        return len(self._descriptors)


# ─────────────────────────────────────────────────────────────────────
# squaring: z ↦ z²
# ─────────────────────────────────────────────────────────────────────

def _square_transition(state, inputs, size):
    (z,) = state
    return (z * z % CURVE_ORDER,)


def _square_synthesize(cs, size, z_in, inputs, z_out):
    cs.enforce(z_in[0], z_in[0], z_out[0], "square")


# ─────────────────────────────────────────────────────────────────────
# fibonacci: (a, b) ↦ (b, a + b)
# ─────────────────────────────────────────────────────────────────────

def _fib_transition(state, inputs, size):
    a, b = state
    return (b, (a + b) % CURVE_ORDER)


def _fib_synthesize(cs, size, z_in, inputs, z_out):
    # 선형 제약은 (lc) · 1 = 0 형태
    cs.enforce(z_out[0] - z_in[1], cs.one(), LinearCombination.zero(), "shift")
    cs.enforce(z_in[0] + z_in[1], cs.one(), z_out[1], "sum")


# ─────────────────────────────────────────────────────────────────────
# accumulate: s ↦ s + v² (v는 스텝마다의 비공개 입력)
# ─────────────────────────────────────────────────────────────────────

def _acc_transition(state, inputs, size):
    (s,) = state
    (v,) = inputs
    return ((s + v * v) % CURVE_ORDER,)


def _acc_synthesize(cs, size, z_in, inputs, z_out):
    v = inputs[0]
    v_val = cs.value(v)
    square = cs.alloc_aux("square", v_val * v_val)
    cs.enforce(v, v, square, "square")
    cs.enforce(z_in[0] + square, cs.one(), z_out[0], "sum")
    enforce_range(cs, v, size, "input")


# 기술자는 프로세스 워커로 pickle되므로 lambda 대신 모듈 함수를 쓴다
def _single(size):
    return 1


def _pair(size):
    return 2


def _plus_three(size):
    return size + 3


def _step_index_input(step):
    return (step,)


SQUARING = StepFunction(
    "squaring", arity=1, input_width=0,
    transition=_square_transition,
    synthesize=_square_synthesize,
    constraint_count=_single,
    default_initial_state=(2,),
)

FIBONACCI = StepFunction(
    "fibonacci", arity=2, input_width=0,
    transition=_fib_transition,
    synthesize=_fib_synthesize,
    constraint_count=_pair,
    default_initial_state=(0, 1),
)

ACCUMULATE = StepFunction(
    "accumulate", arity=1, input_width=1,
    transition=_acc_transition,
    synthesize=_acc_synthesize,
    constraint_count=_plus_three,
    default_initial_state=(0,),
    default_input=_step_index_input,
)


def default_registry():
    """내장 스텝 함수 세 개가 등록된 새 레지스트리."""
    return StepRegistry([SQUARING, FIBONACCI, ACCUMULATE])
