"""
엔진 설정 (Engine Configuration)
=================================

설정은 다음 순서로 결정된다:
  1. 클래스 기본값
  2. 환경 변수 (EngineConfig.from_env)
  3. 호출자가 넘긴 명시적 값 (EngineConfig.replace)

환경 변수:
  IVC_SRS_SEED         SRS의 τ를 유도하는 시드 (교육용, 결정론적)
  IVC_WORKERS          로컬 스레드 / 분산 프로세스 수
  IVC_CHUNK_SIZE       분산 모드의 청크 당 스텝 수
  IVC_MAX_ATTEMPTS     청크 당 최대 시도 횟수
  IVC_CHUNK_TIMEOUT    청크 당 대기 시간 (초)
  IVC_CHECK_WITNESSES  "1"이면 폴딩 전에 각 witness의 R1CS 만족 여부를 확인

사용 예시:
    >>> config = EngineConfig.from_env().replace(workers=2)
    >>> config.max_attempts
    3
"""

import os


_TRUE_VALUES = ("1", "true", "yes", "on")


class EngineConfig:
    """IVC 엔진 실행 파라미터.

    속성:
        srs_seed: SRS 생성 시드 (같은 시드 → 같은 검증 키)
        workers: 병렬 실행 단위 수
        chunk_size: 분산 청크 크기 (None이면 워커 수로 균등 분할)
        max_attempts: 청크 당 최대 시도 횟수 (1 이상)
        chunk_timeout: 청크 결과 대기 시간 (초, None이면 무제한)
        check_witnesses: 폴딩 전 witness 만족 여부 확인
    """

    def __init__(self, srs_seed=20240601, workers=None, chunk_size=None,
                 max_attempts=3, chunk_timeout=600.0, check_witnesses=False):
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError(f"workers는 1 이상이어야 합니다: {workers}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts는 1 이상이어야 합니다: {max_attempts}")
        if chunk_size is not None and chunk_size < 1:
            raise ValueError(f"chunk_size는 1 이상이어야 합니다: {chunk_size}")
        self.srs_seed = srs_seed
        self.workers = workers
        self.chunk_size = chunk_size
        self.max_attempts = max_attempts
        self.chunk_timeout = chunk_timeout
        self.check_witnesses = check_witnesses

    @classmethod
    def from_env(cls, environ=None):
        """환경 변수에서 설정을 읽는다. 없는 항목은 기본값을 쓴다."""
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get("IVC_SRS_SEED"):
            kwargs["srs_seed"] = int(env["IVC_SRS_SEED"])
        if env.get("IVC_WORKERS"):
            kwargs["workers"] = int(env["IVC_WORKERS"])
        if env.get("IVC_CHUNK_SIZE"):
            kwargs["chunk_size"] = int(env["IVC_CHUNK_SIZE"])
        if env.get("IVC_MAX_ATTEMPTS"):
            kwargs["max_attempts"] = int(env["IVC_MAX_ATTEMPTS"])
        if env.get("IVC_CHUNK_TIMEOUT"):
            kwargs["chunk_timeout"] = float(env["IVC_CHUNK_TIMEOUT"])
        if env.get("IVC_CHECK_WITNESSES"):
            kwargs["check_witnesses"] = env["IVC_CHECK_WITNESSES"].lower() in _TRUE_VALUES
        return cls(**kwargs)

    def replace(self, **changes):
        """일부 값만 바꾼 새 설정을 반환한다."""
        values = self.as_dict()
        unknown = set(changes) - set(values)
        if unknown:
            raise TypeError(f"알 수 없는 설정 항목: {sorted(unknown)}")
        values.update(changes)
        return EngineConfig(**values)

    def as_dict(self):
        return {
            "srs_seed": self.srs_seed,
            "workers": self.workers,
            "chunk_size": self.chunk_size,
            "max_attempts": self.max_attempts,
            "chunk_timeout": self.chunk_timeout,
            "check_witnesses": self.check_witnesses,
        }

    def __repr__(self):
        items = ", ".join(f"{k}={v!r}" for k, v in self.as_dict().items())
        return f"EngineConfig({items})"
