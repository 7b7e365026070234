"""
백엔드 디스패처 테스트
========================

테스트 범위:
  - BackendPlan: 구간 분할, 잘못된 설정
  - 로컬 / 분산 (InlineTransport) 실행 결과가 같은 상태에 도달하고 만족
  - 청크 실패 → 재시도, 한도 초과 → BackendUnavailable
  - WitnessGenerationError는 재시도 없이 전파
  - 취소 → ComputationCancelled
"""

import random
from concurrent.futures import Future

import pytest

from ivc import engine
from ivc.backend import (
    BackendPlan, CancellationToken, ChunkContext, ChunkResult, ChunkTask,
    DistributedBackend, InlineTransport, LocalBackend, ProcessTransport,
    execute_chunk, make_backend,
)
from ivc.composer import compose
from ivc.errors import BackendUnavailable, ComputationCancelled, WitnessGenerationError
from ivc.field import CURVE_ORDER
from ivc.folding import WITNESS_FOLD, FoldingEngine
from ivc.verifier import Verifier


# ─────────────────────────────────────────────────────────────────────
# Fixtures / helpers
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def accumulate_keys(registry, config):
    """accumulate/8: 0 → 1 → 5 → 14 → 30 → 55."""
    return engine.setup(registry, "accumulate", 8, config)


@pytest.fixture
def instance(registry):
    return engine.ComputationInstance(registry.get("accumulate"), 8, 5)


def _satisfied(keys, acc):
    proving_key, _ = keys
    return FoldingEngine(proving_key.compiled, proving_key.commitment_key).is_satisfied(acc)


class FlakyTransport(InlineTransport):
    """청크마다 처음 failures번은 실패한다."""

    def __init__(self, failures, raise_error=False):
        self.failures = failures
        self.raise_error = raise_error
        self.attempts = {}

    def execute(self, task, context):
        count = self.attempts.get(task.index, 0) + 1
        self.attempts[task.index] = count
        if count <= self.failures:
            if self.raise_error:
                raise ConnectionError("워커 연결 끊김")
            return ChunkResult.failure(task.index, "워커 종료")
        return super().execute(task, context)


class CancellingTransport(InlineTransport):
    """첫 청크를 처리한 뒤 취소 신호를 보낸다."""

    def __init__(self, token):
        self.token = token

    def execute(self, task, context):
        result = super().execute(task, context)
        self.token.cancel()
        return result


class FailingWitnessTransport(InlineTransport):
    def __init__(self):
        self.calls = {}

    def execute(self, task, context):
        self.calls[task.index] = self.calls.get(task.index, 0) + 1
        raise WitnessGenerationError(f"스텝 {task.first_step} 실패")


class GarbageTransport(InlineTransport):
    def execute(self, task, context):
        return "not a chunk result"



class StallingTransport(InlineTransport):
    """첫 submit은 끝나지 않는 future를 돌려준다."""

    def __init__(self):
        self.submits = 0
        self.resets = 0

    def submit(self, task, context):
        self.submits += 1
        if self.submits == 1:
            return Future()
        return super().submit(task, context)

    def reset(self):
        self.resets += 1


# =====================================================================
# BackendPlan
# =====================================================================

class TestPlan:
    def test_partition_by_workers(self):
        plan = BackendPlan("distributed", workers=2)
        assert plan.partition(5) == [(1, 3), (4, 2)]

    def test_partition_by_chunk_size(self):
        plan = BackendPlan("distributed", workers=2, chunk_size=2)
        assert plan.partition(5) == [(1, 2), (3, 2), (5, 1)]

    def test_partition_offset(self):
        plan = BackendPlan("distributed", workers=1, chunk_size=3)
        assert plan.partition(4, first_step=3) == [(3, 3), (6, 1)]

    def test_partition_covers_all_steps(self):
        plan = BackendPlan("distributed", workers=3)
        for n in range(0, 12):
            steps = [s for start, count in plan.partition(n) for s in range(start, start + count)]
            assert steps == list(range(1, n + 1))

    @pytest.mark.parametrize("kwargs", [
        {"mode": "cluster"},
        {"workers": 0},
        {"max_attempts": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            BackendPlan(**kwargs)

    def test_from_config(self, config):
        plan = BackendPlan.from_config("local", config)
        assert plan.workers == config.workers
        assert plan.max_attempts == config.max_attempts

    def test_make_backend(self):
        assert isinstance(make_backend(BackendPlan("local")), LocalBackend)
        backend = make_backend(BackendPlan("distributed"), InlineTransport())
        assert isinstance(backend, DistributedBackend)
        default = make_backend(BackendPlan("distributed", workers=1))
        assert isinstance(default.transport, ProcessTransport)
        default.transport.close()


class TestCancellationToken:
    def test_token(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        assert token.cancelled
        with pytest.raises(ComputationCancelled):
            token.raise_if_cancelled()


# =====================================================================
# Chunk worker
# =====================================================================

class TestChunk:
    def test_execute_chunk(self, accumulate_keys):
        proving_key, _ = accumulate_keys
        context = ChunkContext(proving_key.compiled, proving_key.commitment_key)
        task = ChunkTask(0, 2, 2, (0,), (1,), [(2,), (3,)])
        result = execute_chunk(task, context)
        assert result.ok
        acc = result.accumulator
        assert acc.first_step == 2
        assert acc.num_steps == 2
        assert acc.start_state == (1,)
        assert acc.state == (14,)
        assert _satisfied(accumulate_keys, acc)

    def test_retry_keeps_range(self):
        task = ChunkTask(3, 4, 2, (0,), (14,), [(4,), (5,)])
        again = task.retry()
        assert again.attempt == 2
        assert (again.index, again.first_step, again.last_step) == (3, 4, 5)

    def test_first_chunk_must_start_at_z0(self, accumulate_keys):
        proving_key, _ = accumulate_keys
        context = ChunkContext(proving_key.compiled, proving_key.commitment_key)
        task = ChunkTask(0, 1, 1, (0,), (250,), [(3,)])
        with pytest.raises(WitnessGenerationError):
            execute_chunk(task, context)

    def test_start_state_outside_field(self, accumulate_keys):
        proving_key, _ = accumulate_keys
        context = ChunkContext(proving_key.compiled, proving_key.commitment_key)
        task = ChunkTask(1, 2, 1, (0,), (CURVE_ORDER,), [(3,)])
        with pytest.raises(WitnessGenerationError):
            execute_chunk(task, context)


# =====================================================================
# Local / distributed runs
# =====================================================================

class TestRuns:
    def test_local(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        acc = LocalBackend(BackendPlan("local", workers=2)).run(instance, proving_key)
        assert acc.state == (55,)
        assert acc.num_steps == 5
        assert acc.last_fold.kind == WITNESS_FOLD
        assert _satisfied(accumulate_keys, acc)

    @pytest.mark.parametrize("chunk_size", [None, 1, 2, 4])
    def test_distributed(self, accumulate_keys, instance, chunk_size):
        proving_key, _ = accumulate_keys
        plan = BackendPlan("distributed", workers=2, chunk_size=chunk_size)
        acc = DistributedBackend(plan, InlineTransport()).run(instance, proving_key)
        assert acc.state == (55,)
        assert acc.num_steps == 5
        assert acc.first_step == 1
        assert acc.last_fold.kind == WITNESS_FOLD
        assert _satisfied(accumulate_keys, acc)

    def test_distributed_single_step(self, registry, accumulate_keys):
        proving_key, _ = accumulate_keys
        single = engine.ComputationInstance(registry.get("accumulate"), 8, 1)
        plan = BackendPlan("distributed", workers=2)
        acc = DistributedBackend(plan, InlineTransport()).run(single, proving_key)
        assert acc.state == (1,)
        assert _satisfied(accumulate_keys, acc)

    def test_both_modes_verify(self, accumulate_keys, instance):
        proving_key, verifying_key = accumulate_keys
        verifier = Verifier(verifying_key)
        local = LocalBackend(BackendPlan("local", workers=2)).run(instance, proving_key)
        plan = BackendPlan("distributed", workers=2)
        dist = DistributedBackend(plan, InlineTransport()).run(instance, proving_key)
        for acc in (local, dist):
            proof = compose(acc, proving_key, rng=random.Random(3))
            assert verifier.verify(proof, (0,), (55,)).valid

    def test_explicit_inputs(self, registry, accumulate_keys):
        proving_key, _ = accumulate_keys
        inst = engine.ComputationInstance(
            registry.get("accumulate"), 8, 3, inputs=[(2,), (0,), (5,)]
        )
        plan = BackendPlan("distributed", workers=2, chunk_size=1)
        acc = DistributedBackend(plan, InlineTransport()).run(inst, proving_key)
        assert acc.state == (29,)
        assert _satisfied(accumulate_keys, acc)


# =====================================================================
# Failures
# =====================================================================

class TestFailures:
    @pytest.mark.parametrize("raise_error", [False, True])
    def test_retry_then_succeed(self, accumulate_keys, instance, raise_error):
        """재시도 끝에 얻은 누산기도 로컬 실행과 같은 명제를 증명한다."""
        proving_key, verifying_key = accumulate_keys
        transport = FlakyTransport(failures=2, raise_error=raise_error)
        plan = BackendPlan("distributed", workers=2, max_attempts=3)
        flaky = DistributedBackend(plan, transport).run(instance, proving_key)
        assert flaky.state == (55,)
        assert _satisfied(accumulate_keys, flaky)
        assert all(count == 3 for count in transport.attempts.values())

        local = LocalBackend(BackendPlan("local", workers=2)).run(instance, proving_key)
        verifier = Verifier(verifying_key)
        for acc in (flaky, local):
            proof = compose(acc, proving_key, rng=random.Random(3))
            assert verifier.verify(proof, (0,), (55,)).valid
            assert not verifier.verify(proof, (0,), (56,)).valid

    def test_timeout_resets_transport(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        transport = StallingTransport()
        plan = BackendPlan("distributed", workers=2, max_attempts=2, chunk_timeout=0.05)
        acc = DistributedBackend(plan, transport).run(instance, proving_key)
        assert acc.state == (55,)
        assert transport.resets >= 1

    def test_attempts_exhausted(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        plan = BackendPlan("distributed", workers=2, max_attempts=2)
        with pytest.raises(BackendUnavailable) as info:
            DistributedBackend(plan, FlakyTransport(failures=5)).run(instance, proving_key)
        assert info.value.attempts == 2
        assert info.value.chunk == 0

    def test_bad_response(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        plan = BackendPlan("distributed", workers=2, max_attempts=2)
        with pytest.raises(BackendUnavailable):
            DistributedBackend(plan, GarbageTransport()).run(instance, proving_key)

    def test_witness_error_not_retried(self, accumulate_keys, instance):
        """워커의 witness 오류는 재시도하지 않고 그대로 전파된다."""
        proving_key, _ = accumulate_keys
        transport = FailingWitnessTransport()
        plan = BackendPlan("distributed", workers=2, max_attempts=3)
        with pytest.raises(WitnessGenerationError):
            DistributedBackend(plan, transport).run(instance, proving_key)
        assert transport.calls[0] == 1

    def test_bad_initial_state_before_dispatch(self, registry, accumulate_keys):
        proving_key, _ = accumulate_keys
        inst = engine.ComputationInstance(
            registry.get("accumulate"), 8, 3, initial_state=(256,),
        )
        plan = BackendPlan("distributed", workers=2)
        transport = FlakyTransport(failures=0)
        with pytest.raises(WitnessGenerationError):
            DistributedBackend(plan, transport).run(inst, proving_key)
        assert transport.attempts == {}

    def test_witness_error_local(self, registry, accumulate_keys):
        proving_key, _ = accumulate_keys
        inst = engine.ComputationInstance(
            registry.get("accumulate"), 8, 3, inputs=[(1,), (2,), (256,)],
        )
        with pytest.raises(WitnessGenerationError):
            LocalBackend(BackendPlan("local", workers=2)).run(inst, proving_key)

    def test_cancelled_before_start(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ComputationCancelled):
            LocalBackend(BackendPlan("local")).run(instance, proving_key, cancel=token)

    def test_cancelled_between_chunks(self, accumulate_keys, instance):
        proving_key, _ = accumulate_keys
        token = CancellationToken()
        plan = BackendPlan("distributed", workers=2, chunk_size=1)
        backend = DistributedBackend(plan, CancellingTransport(token))
        with pytest.raises(ComputationCancelled):
            backend.run(instance, proving_key, cancel=token)
