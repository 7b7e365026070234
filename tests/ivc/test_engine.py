"""
엔진 인터페이스 테스트: setup / prove / verify
================================================

테스트 범위:
  - squaring/64, z0 = 2, n = 10 → zn = 2^(2^10) mod p
  - 지원하지 않는 크기, 등록되지 않은 이름
  - ComputationInstance 입력 검증과 궤적
  - EngineConfig (환경 변수, replace)
  - 키 캐시
  - 내장 계산 세 개의 E2E, 분산 모드 포함
"""

import random
import pytest

from ivc import engine
from ivc.backend import InlineTransport, ProcessTransport
from ivc.config import EngineConfig
from ivc.errors import (
    IVCError, UnknownComputation, UnsupportedSize, WitnessGenerationError,
)
from ivc.field import CURVE_ORDER
from ivc.steps import SQUARING, StepFunction, StepRegistry
from ivc.verifier import Verifier


# =====================================================================
# squaring/64
# =====================================================================

SQUARING64_ZN = (pow(2, 2 ** 10, CURVE_ORDER),)


@pytest.fixture(scope="module")
def squaring64(registry, config):
    """squaring/64, z0 = 2, n = 10 → 2^(2^10) mod p."""
    proof, zn = engine.prove(registry, "squaring", 64, 10, initial_state=(2,),
                             config=config, rng=random.Random(21))
    return proof, zn


class TestSquaring64:
    def test_final_state(self, squaring64):
        _, zn = squaring64
        assert zn == SQUARING64_ZN
        assert zn != (2 ** 1024,)

    def test_fifth_step_is_two_to_the_32(self, registry):
        inst = engine.ComputationInstance(registry.get("squaring"), 64, 10, (2,))
        assert inst.trajectory()[5] == (2 ** 32,)

    def test_verifies(self, registry, config, squaring64):
        proof, _ = squaring64
        assert engine.verify(registry, proof, (2,), SQUARING64_ZN, config=config).valid

    @pytest.mark.parametrize("z0,zn", [
        ((2,), (SQUARING64_ZN[0] + 1,)),
        ((3,), SQUARING64_ZN),
        ((2,), (2 ** 32,)),
        ((2,), (2 ** 1024,)),
    ])
    def test_rejects_other_claims(self, registry, config, squaring64, z0, zn):
        proof, _ = squaring64
        assert not engine.verify(registry, proof, z0, zn, config=config).valid

    def test_other_seed_rejects(self, registry, config, squaring64):
        """다른 SRS로 만든 검증 키는 증명을 받아들이지 않는다."""
        proof, zn = squaring64
        other = config.replace(srs_seed=config.srs_seed + 1)
        assert not engine.verify(registry, proof, (2,), zn, config=other).valid


# =====================================================================
# Errors
# =====================================================================

def _exploding_transition(state, inputs, size):
    raise AssertionError("전이 함수가 호출되면 안 됩니다")


def _raw_square(state, inputs, size):
    (z,) = state
    return (z * z,)


class TestErrors:
    @pytest.mark.parametrize("size", [0, 7, 256])
    def test_unsupported_size(self, registry, config, size):
        with pytest.raises(UnsupportedSize):
            engine.prove(registry, "squaring", size, 3, config=config)

    def test_unsupported_size_runs_nothing(self, config):
        """크기 검사는 어떤 스텝도 실행하기 전에 일어난다."""
        registry = StepRegistry([StepFunction(
            "exploding", arity=1, input_width=0,
            transition=_exploding_transition,
            synthesize=SQUARING.synthesize,
            constraint_count=SQUARING.constraint_count,
            default_initial_state=(2,),
        )])
        with pytest.raises(UnsupportedSize):
            engine.prove(registry, "exploding", 0, 3, config=config)

    def test_unknown_computation(self, registry, config):
        with pytest.raises(UnknownComputation):
            engine.prove(registry, "cubing", 8, 3, config=config)
        with pytest.raises(UnknownComputation):
            engine.setup(registry, "cubing", 8, config)

    def test_initial_state_wider_than_size(self, registry, config):
        """z0는 size비트 원소여야 한다."""
        with pytest.raises(WitnessGenerationError):
            engine.prove(registry, "squaring", 8, 2, initial_state=(256,), config=config)

    def test_errors_share_base(self):
        for cls in (UnknownComputation, UnsupportedSize, WitnessGenerationError):
            assert issubclass(cls, IVCError)


# =====================================================================
# ComputationInstance
# =====================================================================

class TestComputationInstance:
    @pytest.mark.parametrize("num_steps", [0, -1, 1.5, True, "3"])
    def test_invalid_step_count(self, registry, num_steps):
        with pytest.raises(ValueError):
            engine.ComputationInstance(registry.get("squaring"), 8, num_steps)

    def test_input_count(self, registry):
        with pytest.raises(ValueError):
            engine.ComputationInstance(registry.get("accumulate"), 8, 3, inputs=[(1,)])

    def test_input_width(self, registry):
        with pytest.raises(ValueError):
            engine.ComputationInstance(registry.get("accumulate"), 8, 1, inputs=[(1, 2)])

    def test_defaults(self, registry):
        inst = engine.ComputationInstance(registry.get("fibonacci"), 8, 3)
        assert inst.initial_state == (0, 1)
        assert inst.step_input(2) == ()

    def test_trajectory(self, registry):
        inst = engine.ComputationInstance(registry.get("squaring"), 16, 3, (2,))
        assert inst.trajectory() == [(2,), (4,), (16,), (256,)]
        assert inst.trajectory() is inst.trajectory()

    @pytest.mark.parametrize("z0", [(256,), (-1,), (2, 2), ("2",)])
    def test_bad_initial_state(self, registry, z0):
        inst = engine.ComputationInstance(registry.get("squaring"), 8, 1, z0)
        with pytest.raises(WitnessGenerationError):
            inst.trajectory()

    def test_trajectory_wraps_in_field(self, registry):
        inst = engine.ComputationInstance(registry.get("squaring"), 8, 1000, (2,))
        assert inst.trajectory()[-1] == (pow(2, 2 ** 1000, CURVE_ORDER),)

    def test_trajectory_uses_explicit_inputs(self, registry):
        inst = engine.ComputationInstance(
            registry.get("accumulate"), 8, 2, inputs=[(3,), (4,)]
        )
        assert inst.trajectory() == [(0,), (9,), (25,)]

    def test_unreduced_transition_rejected(self):
        raw = StepFunction(
            "raw-squaring", arity=1, input_width=0,
            transition=_raw_square,
            synthesize=SQUARING.synthesize,
            constraint_count=SQUARING.constraint_count,
        )
        inst = engine.ComputationInstance(raw, 8, 10, (2,))
        with pytest.raises(WitnessGenerationError):
            inst.trajectory()


# =====================================================================
# Config
# =====================================================================

class TestConfig:
    def test_from_env(self):
        config = EngineConfig.from_env({
            "IVC_SRS_SEED": "7",
            "IVC_WORKERS": "3",
            "IVC_CHUNK_SIZE": "2",
            "IVC_MAX_ATTEMPTS": "5",
            "IVC_CHUNK_TIMEOUT": "1.5",
            "IVC_CHECK_WITNESSES": "yes",
        })
        assert config.srs_seed == 7
        assert config.workers == 3
        assert config.chunk_size == 2
        assert config.max_attempts == 5
        assert config.chunk_timeout == 1.5
        assert config.check_witnesses is True

    def test_from_env_defaults(self):
        config = EngineConfig.from_env({})
        assert config.srs_seed == EngineConfig().srs_seed
        assert config.workers >= 1
        assert config.check_witnesses is False

    def test_replace(self):
        base = EngineConfig(workers=1)
        changed = base.replace(workers=4)
        assert changed.workers == 4
        assert base.workers == 1
        with pytest.raises(TypeError):
            base.replace(threads=4)

    @pytest.mark.parametrize("kwargs", [
        {"workers": 0}, {"max_attempts": 0}, {"chunk_size": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


# =====================================================================
# Keys
# =====================================================================

class TestSetup:
    def test_cached(self, registry, config):
        pk1, vk1 = engine.setup(registry, "squaring", 8, config)
        pk2, vk2 = engine.setup(registry, "squaring", 8, config)
        assert vk1 is vk2
        assert pk1.srs is pk2.srs

    def test_config_carried(self, registry, config):
        other = config.replace(check_witnesses=True)
        pk, _ = engine.setup(registry, "squaring", 8, other)
        assert pk.config is other

    def test_verifying_key_is_small(self, squaring8_keys):
        proving_key, verifying_key = squaring8_keys
        assert len(verifying_key.srs.g1_powers) == 1
        assert verifying_key.srs.g2_powers == proving_key.srs.g2_powers
        assert not hasattr(verifying_key, "commitment_key")


class TestUnseededKeys:
    """srs_seed=None이면 검증 키는 setup이 돌려준 것만 쓸 수 있다."""

    def test_engine_verify_reports_missing_seed(self, registry, config):
        proof, zn = engine.prove(registry, "squaring", 8, 2, config=config,
                                 rng=random.Random(12))
        result = engine.verify(registry, proof, (2,), zn,
                               config=config.replace(srs_seed=None))
        assert not result.valid
        assert "srs_seed" in result.reason

    def test_kept_verifying_key(self, registry, config):
        unseeded = config.replace(srs_seed=None)
        proving_key, verifying_key = engine.setup(registry, "squaring", 8, unseeded)
        proof, zn = engine.prove(registry, "squaring", 8, 2, config=unseeded,
                                 rng=random.Random(13), proving_key=proving_key)
        assert zn == (16,)
        assert Verifier(verifying_key).verify(proof, (2,), zn).valid
        assert not Verifier(verifying_key).verify(proof, (2,), (17,)).valid

    def test_fresh_keys_differ(self, registry, config):
        unseeded = config.replace(srs_seed=None)
        _, vk1 = engine.setup(registry, "squaring", 8, unseeded)
        _, vk2 = engine.setup(registry, "squaring", 8, unseeded)
        assert vk1 is not vk2

    def test_mismatched_key(self, registry, config):
        proving_key, _ = engine.setup(registry, "squaring", 16, config)
        with pytest.raises(ValueError):
            engine.prove(registry, "squaring", 8, 2, config=config,
                         proving_key=proving_key)


# =====================================================================
# E2E
# =====================================================================

class TestEndToEnd:
    @pytest.mark.parametrize("name,size,num_steps,z0,expected", [
        ("fibonacci", 8, 6, (0, 1), (8, 13)),
        ("accumulate", 8, 4, (0,), (30,)),
        ("squaring", 8, 1, (15,), (225,)),
    ])
    def test_builtin(self, registry, config, name, size, num_steps, z0, expected):
        proof, zn = engine.prove(registry, name, size, num_steps, initial_state=z0,
                                 config=config, rng=random.Random(5))
        assert zn == expected
        assert engine.verify(registry, proof, z0, zn, config=config).valid
        assert engine.verify(registry, proof.to_bytes(), z0, zn, config=config).valid

    def test_distributed_inline(self, registry, config):
        proof, zn = engine.prove(registry, "accumulate", 8, 5, backend="distributed",
                                 config=config.replace(chunk_size=2),
                                 rng=random.Random(6), transport=InlineTransport())
        assert zn == (55,)
        assert engine.verify(registry, proof, (0,), (55,), config=config).valid

    def test_distributed_processes(self, registry, config):
        with ProcessTransport(2) as transport:
            proof, zn = engine.prove(registry, "accumulate", 8, 3, backend="distributed",
                                     config=config, rng=random.Random(8),
                                     transport=transport)
        assert zn == (14,)
        assert engine.verify(registry, proof, (0,), zn, config=config).valid

    def test_explicit_inputs(self, registry, config):
        proof, zn = engine.prove(registry, "accumulate", 8, 2, inputs=[(3,), (4,)],
                                 config=config, rng=random.Random(9))
        assert zn == (25,)
        assert engine.verify(registry, proof, (0,), (25,), config=config).valid

    def test_check_witnesses(self, registry, config):
        checked = config.replace(check_witnesses=True)
        proof, zn = engine.prove(registry, "squaring", 8, 2, config=checked,
                                 rng=random.Random(10))
        assert zn == (16,)
        assert engine.verify(registry, proof, (2,), zn, config=checked).valid
