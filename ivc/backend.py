"""
백엔드 디스패처 (Backend Dispatcher)
======================================

ComputationInstance 하나를 실행해 최종 누산기를 만든다.

**로컬 (LocalBackend)**:
  - 상태 궤적 z0..zn을 먼저 계산한다 (순수 전이, 저렴)
  - workers개 스텝씩 ThreadPoolExecutor로 witness를 병렬 생성
  - 폴딩은 스텝 번호 순서대로 한 스레드에서

**분산 (DistributedBackend)**:
  - 스텝 1..n-1을 연속 구간(청크)으로 나눠 ChunkTask로 보낸다
  - 워커는 자기 구간을 0 인스턴스에서부터 폴딩해 ChunkResult로 돌려준다
  - 디스패처는 청크 누산기를 구간 순서대로 combine 한다
  - 마지막 스텝 n은 디스패처가 직접 폴딩한다
    → 마지막 폴딩은 항상 새 스텝 witness를 흡수한다 (합성기 전제 조건)

  ┌──────────┐  ChunkTask   ┌──────────┐
  │ 디스패처 │ ───────────→ │  워커 k  │
  │          │ ←─────────── │          │
  └──────────┘  ChunkResult └──────────┘

**실패 처리**:
  - 실패/시간 초과 청크는 처음부터 다시 실행 (최대 max_attempts회)
  - 시간 초과나 풀 손상 뒤에는 전송 계층을 reset 한다 (멈춘 워커를 버림)
  - 한도를 넘으면 BackendUnavailable
  - WitnessGenerationError, FoldingMisuse는 재시도하지 않고 그대로 전파
  - 취소는 청크 경계에서만 확인 → ComputationCancelled

사용 예시:
    >>> plan = BackendPlan.from_config("distributed", EngineConfig(workers=2))
    >>> backend = make_backend(plan, transport=InlineTransport())
    >>> acc = backend.run(instance, proving_key)
"""

import logging
import threading
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from concurrent.futures.process import BrokenProcessPool

from ivc.errors import (
    BackendUnavailable, ComputationCancelled, FoldingMisuse, WitnessGenerationError,
)
from ivc.folding import FoldingEngine
from ivc.witness import check_witness, generate_witness


logger = logging.getLogger(__name__)


LOCAL = "local"
DISTRIBUTED = "distributed"
MODES = (LOCAL, DISTRIBUTED)


# ─────────────────────────────────────────────────────────────────────
# 실행 계획과 취소
# ─────────────────────────────────────────────────────────────────────

class BackendPlan:
    """실행 계획.

    속성:
        mode: "local" 또는 "distributed"
        workers: 스레드/워커 수
        chunk_size: 청크 당 스텝 수 (None이면 워커 수로 균등 분할)
        max_attempts: 청크 당 최대 시도 횟수
        chunk_timeout: 청크 결과 대기 시간 (초)
    """

    def __init__(self, mode=LOCAL, workers=1, chunk_size=None, max_attempts=3,
                 chunk_timeout=None):
        if mode not in MODES:
            raise ValueError(f"알 수 없는 백엔드 모드: {mode!r} (사용 가능: {MODES})")
        if workers < 1:
            raise ValueError(f"workers는 1 이상이어야 합니다: {workers}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts는 1 이상이어야 합니다: {max_attempts}")
        self.mode = mode
        self.workers = workers
        self.chunk_size = chunk_size
        self.max_attempts = max_attempts
        self.chunk_timeout = chunk_timeout

    @classmethod
    def from_config(cls, mode, config):
        return cls(
            mode=mode,
            workers=config.workers,
            chunk_size=config.chunk_size,
            max_attempts=config.max_attempts,
            chunk_timeout=config.chunk_timeout,
        )

    def partition(self, num_steps, first_step=1):
        """스텝 first_step..first_step+num_steps-1을 연속 구간으로 나눈다.

        Returns:
            list: (시작 스텝, 스텝 수) 튜플, 스텝 번호 순서
        """
        if num_steps <= 0:
            return []
        size = self.chunk_size
        if size is None:
            size = -(-num_steps // self.workers)
        chunks = []
        start = first_step
        end = first_step + num_steps
        while start < end:
            count = min(size, end - start)
            chunks.append((start, count))
            start += count
        return chunks

    def __repr__(self):
        return (
            f"BackendPlan(mode={self.mode!r}, workers={self.workers}, "
            f"chunk_size={self.chunk_size}, max_attempts={self.max_attempts})"
        )


class CancellationToken:
    """협조적 취소 신호. 여러 스레드에서 공유해도 안전하다."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ComputationCancelled("계산이 취소되었습니다")


def _check_cancel(cancel):
    if cancel is not None:
        cancel.raise_if_cancelled()


def _step_witness(compiled, z0, trajectory, inputs, step, check):
    witness = generate_witness(compiled, z0, trajectory[step - 1], inputs, step)
    if check and not check_witness(compiled, witness):
        raise WitnessGenerationError(f"스텝 {step}의 witness가 회로를 만족하지 않습니다")
    return witness


# ─────────────────────────────────────────────────────────────────────
# 로컬 백엔드
# ─────────────────────────────────────────────────────────────────────

class LocalBackend:
    """한 프로세스 안에서 스레드로 witness를 만들고 순서대로 폴딩한다."""

    def __init__(self, plan):
        self.plan = plan

    def run(self, instance, proving_key, cancel=None):
        """
        Returns:
            Accumulator: 스텝 1..n을 흡수한 누산기

        Raises:
            WitnessGenerationError, ComputationCancelled
        """
        compiled = proving_key.compiled
        engine = FoldingEngine(compiled, proving_key.commitment_key)
        check = proving_key.config.check_witnesses
        trajectory = instance.trajectory()
        z0 = instance.initial_state
        n = instance.num_steps

        logger.info(
            "로컬 실행: %s size=%d, 스텝 %d개, 스레드 %d개",
            compiled.name, compiled.size, n, self.plan.workers,
        )
        acc = engine.initial(z0)
        window = self.plan.workers
        with ThreadPoolExecutor(max_workers=self.plan.workers) as executor:
            for start in range(1, n + 1, window):
                _check_cancel(cancel)
                steps = range(start, min(start + window, n + 1))
                witnesses = executor.map(
                    lambda k: _step_witness(
                        compiled, z0, trajectory, instance.step_input(k), k, check
                    ),
                    steps,
                )
                for witness in witnesses:
                    acc = engine.fold(acc, witness)
        return acc


# ─────────────────────────────────────────────────────────────────────
# 청크 메시지와 워커
# ─────────────────────────────────────────────────────────────────────

class ChunkTask:
    """워커에게 보내는 작업 하나. 피클 가능해야 한다."""

    def __init__(self, index, first_step, num_steps, z0, start_state, inputs, attempt=1):
        self.index = index
        self.first_step = first_step
        self.num_steps = num_steps
        self.z0 = tuple(z0)
        self.start_state = tuple(start_state)
        self.inputs = [tuple(v) for v in inputs]
        self.attempt = attempt

    @property
    def last_step(self):
        return self.first_step + self.num_steps - 1

    def retry(self):
        return ChunkTask(
            self.index, self.first_step, self.num_steps, self.z0, self.start_state,
            self.inputs, self.attempt + 1,
        )

    def __repr__(self):
        return (
            f"ChunkTask(#{self.index}, steps={self.first_step}..{self.last_step}, "
            f"attempt={self.attempt})"
        )


class ChunkResult:
    """워커 응답. ok이면 accumulator, 아니면 reason."""

    def __init__(self, index, ok, accumulator=None, reason=None):
        self.index = index
        self.ok = ok
        self.accumulator = accumulator
        self.reason = reason

    @classmethod
    def success(cls, index, accumulator):
        return cls(index, True, accumulator=accumulator)

    @classmethod
    def failure(cls, index, reason):
        return cls(index, False, reason=reason)


class ChunkContext:
    """워커가 청크를 폴딩하는 데 필요한 읽기 전용 데이터."""

    def __init__(self, compiled, commitment_key, check_witnesses=False):
        self.compiled = compiled
        self.commitment_key = commitment_key
        self.check_witnesses = check_witnesses


def execute_chunk(task, context):
    """워커 진입점: 청크 구간을 폴딩한 하위 누산기를 만든다.

    WitnessGenerationError와 FoldingMisuse는 그대로 전파한다.
    """
    compiled = context.compiled
    engine = FoldingEngine(compiled, context.commitment_key)
    acc = engine.initial(task.z0, start_state=task.start_state, first_step=task.first_step)
    state = task.start_state
    for offset, inputs in enumerate(task.inputs):
        step = task.first_step + offset
        witness = generate_witness(compiled, task.z0, state, inputs, step)
        if context.check_witnesses and not check_witness(compiled, witness):
            raise WitnessGenerationError(f"스텝 {step}의 witness가 회로를 만족하지 않습니다")
        acc = engine.fold(acc, witness)
        state = witness.z_out
    return ChunkResult.success(task.index, acc)


# ─────────────────────────────────────────────────────────────────────
# 전송 계층
# ─────────────────────────────────────────────────────────────────────

class WorkerTransport:
    """ChunkTask를 워커에 보내고 ChunkResult의 Future를 돌려받는다."""

    def submit(self, task, context):
        raise NotImplementedError

    def reset(self):
        """멈췄거나 깨진 워커를 버린다. 이미 보낸 작업의 Future는 취소될 수 있다."""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class InlineTransport(WorkerTransport):
    """같은 프로세스에서 즉시 실행한다 (테스트, 단일 코어)."""

    def submit(self, task, context):
        future = Future()
        try:
            future.set_result(self.execute(task, context))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def execute(self, task, context):
        return execute_chunk(task, context)


class ProcessTransport(WorkerTransport):
    """ProcessPoolExecutor로 워커 프로세스에서 실행한다.

    풀이 깨지면 (워커 프로세스 비정상 종료) 다음 submit에서 새로 만든다.
    """

    def __init__(self, workers):
        self.workers = workers
        self._executor = None
        self._lock = threading.Lock()

    def _pool(self):
        with self._lock:
            if self._executor is None:
                self._executor = ProcessPoolExecutor(max_workers=self.workers)
            return self._executor

    def reset(self):
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    def submit(self, task, context):
        try:
            return self._pool().submit(execute_chunk, task, context)
        except BrokenProcessPool:
            self.reset()
            return self._pool().submit(execute_chunk, task, context)

    def close(self):
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


# ─────────────────────────────────────────────────────────────────────
# 분산 백엔드
# ─────────────────────────────────────────────────────────────────────

class DistributedBackend:
    """청크 단위로 워커에 폴딩을 맡기고 결과를 순서대로 결합한다."""

    FATAL = (WitnessGenerationError, FoldingMisuse, ComputationCancelled)

    def __init__(self, plan, transport):
        self.plan = plan
        self.transport = transport

    def _wait(self, future, task):
        """청크 결과 하나를 기다린다. 일시적 실패는 ChunkResult.failure로."""
        try:
            result = future.result(timeout=self.plan.chunk_timeout)
        except FutureTimeout:
            future.cancel()
            self.transport.reset()
            return ChunkResult.failure(task.index, "시간 초과")
        except self.FATAL:
            raise
        except BrokenProcessPool as exc:
            self.transport.reset()
            return ChunkResult.failure(task.index, f"워커 풀 손상: {exc}")
        except Exception as exc:
            return ChunkResult.failure(task.index, f"{type(exc).__name__}: {exc}")
        if not isinstance(result, ChunkResult):
            return ChunkResult.failure(task.index, "잘못된 응답 형식")
        return result

    def _collect(self, task, future, context, cancel):
        """재시도를 포함해 청크 하나의 누산기를 얻는다."""
        while True:
            result = self._wait(future, task)
            if result.ok:
                logger.info("청크 #%d 완료 (스텝 %d..%d)", task.index, task.first_step,
                            task.last_step)
                return result.accumulator
            if task.attempt >= self.plan.max_attempts:
                raise BackendUnavailable(
                    f"청크 #{task.index}가 {task.attempt}번 실패했습니다: {result.reason}",
                    chunk=task.index, attempts=task.attempt,
                )
            logger.warning(
                "청크 #%d 실패 (시도 %d/%d): %s, 다시 시도합니다",
                task.index, task.attempt, self.plan.max_attempts, result.reason,
            )
            _check_cancel(cancel)
            task = task.retry()
            future = self.transport.submit(task, context)

    def run(self, instance, proving_key, cancel=None):
        """
        Returns:
            Accumulator: 스텝 1..n을 흡수한 누산기

        Raises:
            BackendUnavailable, WitnessGenerationError, ComputationCancelled
        """
        compiled = proving_key.compiled
        engine = FoldingEngine(compiled, proving_key.commitment_key)
        check = proving_key.config.check_witnesses
        context = ChunkContext(compiled, proving_key.commitment_key, check)
        trajectory = instance.trajectory()
        z0 = instance.initial_state
        n = instance.num_steps

        chunks = self.plan.partition(n - 1)
        logger.info(
            "분산 실행: %s size=%d, 스텝 %d개, 청크 %d개",
            compiled.name, compiled.size, n, len(chunks),
        )

        pending = []
        try:
            for index, (first, count) in enumerate(chunks):
                _check_cancel(cancel)
                inputs = [instance.step_input(k) for k in range(first, first + count)]
                task = ChunkTask(index, first, count, z0, trajectory[first - 1], inputs)
                pending.append((task, self.transport.submit(task, context)))

            acc = None
            for task, future in pending:
                _check_cancel(cancel)
                part = self._collect(task, future, context, cancel)
                acc = part if acc is None else engine.combine(acc, part)
        except BaseException:
            for _, future in pending:
                future.cancel()
            raise

        _check_cancel(cancel)
        if acc is None:
            acc = engine.initial(z0)
        witness = _step_witness(compiled, z0, trajectory, instance.step_input(n), n, check)
        return engine.fold(acc, witness)


def make_backend(plan, transport=None):
    """계획에 맞는 백엔드를 만든다. 분산 모드의 기본 전송은 ProcessTransport."""
    if plan.mode == LOCAL:
        return LocalBackend(plan)
    if transport is None:
        transport = ProcessTransport(plan.workers)
    return DistributedBackend(plan, transport)
