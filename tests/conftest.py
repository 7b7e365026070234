import sys
import os
import random
import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ivc.config import EngineConfig
from ivc.compiler import CircuitCompiler
from ivc.engine import setup
from ivc.steps import default_registry


# ── 테스트 상수 ──
TEST_SRS_SEED = 424242
TEST_WORKERS = 2


@pytest.fixture(scope="session")
def registry():
    """내장 스텝 함수 레지스트리."""
    return default_registry()


@pytest.fixture(scope="session")
def compiler(registry):
    return CircuitCompiler(registry)


@pytest.fixture(scope="session")
def config():
    """결정론적 SRS와 2개 워커를 쓰는 테스트 설정."""
    return EngineConfig(
        srs_seed=TEST_SRS_SEED, workers=TEST_WORKERS, max_attempts=3,
        chunk_timeout=None,
    )


@pytest.fixture(scope="session")
def squaring8(compiler):
    return compiler.compile("squaring", 8)


@pytest.fixture(scope="session")
def squaring8_keys(registry, config):
    """squaring/8의 (ProvingKey, VerifyingKey)."""
    return setup(registry, "squaring", 8, config)


@pytest.fixture
def rng():
    """블라인딩용 결정론적 난수원."""
    return random.Random(7)
