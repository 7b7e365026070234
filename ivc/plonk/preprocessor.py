"""
PLONK 전처리기 (Preprocessor)
===============================

결정자 회로가 정해지면 셀렉터 다항식과 순열 다항식을 한 번만 계산하고
커밋한다. 결과는 증명 키(ProvingKey)와 검증 키(VerifyingKey)에 들어간다.

**전처리 출력물**:
  - 셀렉터: q_L, q_R, q_O, q_M, q_C (다항식 + 커밋먼트)
  - 순열: S_σ1, S_σ2, S_σ3 (다항식 + 커밋먼트)
  - 도메인: n, ω
  - 공개 입력 행 수

회로 객체는 수정하지 않는다. 패딩은 벡터 단계에서만 한다.

사용 예시:
    >>> pp = preprocess(circuit, srs)
    >>> pp.n
    128
"""

from ivc.field import get_root_of_unity, get_roots_of_unity
from ivc.polynomial import Polynomial, next_power_of_2
from ivc.plonk.kzg import commit
from ivc.plonk.permutation import permutation_values


SELECTORS = ("q_l", "q_r", "q_o", "q_m", "q_c")
PERMUTATIONS = ("s_sigma1", "s_sigma2", "s_sigma3")


class PreprocessedData:
    """전처리된 회로 데이터.

    속성 (도메인):
        n, omega, domain

    속성 (다항식 + 커밋먼트):
        q_l_poly ... q_c_poly, q_l_comm ... q_c_comm
        s_sigma1_poly ... s_sigma3_poly, s_sigma1_comm ... s_sigma3_comm

    속성 (회로 정보):
        sigma: 순열 배열 (길이 3n)
        sigma_values: (S_σ1, S_σ2, S_σ3) 평가 벡터 (Round 2에서 사용)
        num_public_inputs: 공개 입력 행 수
    """

    def commitments(self):
        """검증자에게 필요한 커밋먼트만 딕셔너리로."""
        names = SELECTORS + PERMUTATIONS
        return {name: getattr(self, f"{name}_comm") for name in names}


def domain_size_for(circuit):
    """회로 행 수 이상의 2의 거듭제곱 (최소 4)."""
    return max(4, next_power_of_2(circuit.num_rows))


def preprocess(circuit, srs, n=None):
    """회로를 전처리한다.

    단계:
    1. 도메인 설정: 행 수 → 2의 거듭제곱 n, 단위근 ω
    2. 셀렉터 다항식: IFFT + KZG 커밋
    3. 순열 다항식: 변수 순환에서 σ 생성 → IFFT + KZG 커밋

    Args:
        circuit: PlonkCircuit
        srs: SRS
        n: 도메인 크기 (None이면 domain_size_for(circuit))

    Returns:
        PreprocessedData
    """
    result = PreprocessedData()

    # ── 1단계: 도메인 설정 ──
    if n is None:
        n = domain_size_for(circuit)
    result.n = n
    result.omega = get_root_of_unity(n)
    result.domain = get_roots_of_unity(n)

    # ── 2단계: 셀렉터 다항식 ──
    for name, evals in zip(SELECTORS, circuit.selector_vectors(n)):
        poly = Polynomial.from_evaluations(evals, result.omega)
        setattr(result, f"{name}_poly", poly)
        setattr(result, f"{name}_comm", commit(poly, srs))

    # ── 3단계: 순열 다항식 ──
    result.sigma = circuit.build_copy_constraints(n)
    result.sigma_values = permutation_values(result.sigma, n, result.domain)
    for name, evals in zip(PERMUTATIONS, result.sigma_values):
        poly = Polynomial.from_evaluations(evals, result.omega)
        setattr(result, f"{name}_poly", poly)
        setattr(result, f"{name}_comm", commit(poly, srs))

    result.num_public_inputs = circuit.num_public_inputs
    return result
