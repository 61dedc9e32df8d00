from typing import Callable

import pytest

from cluster_builder import Cluster, build_cluster


@pytest.fixture
def cluster() -> Cluster:
    return build_cluster(3)


@pytest.fixture
def cluster_factory() -> Callable[[int], Cluster]:
    return build_cluster
