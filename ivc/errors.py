"""
IVC 엔진 오류 분류 (Error Taxonomy)
=====================================

엔진이 호출자에게 노출하는 예외는 모두 IVCError를 상속한다.

  | 예외                    | 발생 위치        | 재시도 |
  |-------------------------|------------------|--------|
  | UnsupportedSize         | 회로 컴파일러    | 없음   |
  | WitnessGenerationError  | Witness 엔진     | 없음   |
  | FoldingMisuse           | 폴딩 엔진        | 없음   |
  | CompositionError        | 증명 합성기      | 없음   |
  | BackendUnavailable      | 백엔드 디스패처  | 제한적 재시도 후 |
  | ComputationCancelled    | 백엔드 디스패처  | 없음   |

검증 실패(Invalid)는 예외가 아니라 VerificationResult 값으로 반환된다.
"""


class IVCError(Exception):
    """IVC 엔진 예외의 공통 부모 클래스."""


class UnknownComputation(IVCError, KeyError):
    """레지스트리에 등록되지 않은 계산 이름을 요청했을 때."""

    def __str__(self):
        return Exception.__str__(self)


class UnsupportedSize(IVCError):
    """스텝 함수가 요청된 크기(비트 폭)로 확장될 수 없을 때."""


class WitnessGenerationError(IVCError):
    """필드로 표현할 수 없는 값이나 잘못된 이전 상태로 witness를 만들려 할 때."""


class FoldingMisuse(IVCError, ValueError):
    """폴딩 입력이 회로/순서 전제 조건을 위반했을 때 (프로그래밍 오류)."""


class CompositionError(IVCError):
    """최종 누산기가 잘못된 형태여서 증명을 합성할 수 없을 때."""


class BackendUnavailable(IVCError):
    """워커/전송 실패가 재시도 한도를 넘었을 때."""

    def __init__(self, message, chunk=None, attempts=None):
        super().__init__(message)
        self.chunk = chunk
        self.attempts = attempts


class ComputationCancelled(IVCError):
    """청크 경계에서 취소 요청이 확인되었을 때."""
