import pytest

from clothpd.config import SimulationConfig
from clothpd.pre.topology import GridTopology


@pytest.fixture
def small_config() -> SimulationConfig:
    return SimulationConfig(nside=4, size=1.0, stiffness=1000.0, n_iter=5)


@pytest.fixture
def small_topology(small_config: SimulationConfig) -> GridTopology:
    topology = GridTopology(nside=small_config.nside, size=small_config.size)
    topology.generate_constraints()
    return topology
