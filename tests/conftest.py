"""Pytest configuration and shared fixtures for celltype-propeller tests."""

import sys
from pathlib import Path

import pytest
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import mock data generators
from tests.fixtures import (
    create_constant_cluster_cells,
    create_mock_adata,
    create_multi_group_cells,
    create_two_group_cells,
    create_zero_in_group_cells,
)


# ============================================================================
# Mock Label Fixtures
# ============================================================================


@pytest.fixture
def two_group_cells() -> pd.DataFrame:
    """Four samples in two groups, three clusters, known counts."""
    return create_two_group_cells()


@pytest.fixture
def constant_cluster_cells() -> pd.DataFrame:
    """Two groups with one cluster at the same proportion in every sample."""
    return create_constant_cluster_cells()


@pytest.fixture
def zero_in_group_cells() -> pd.DataFrame:
    """Two groups with one cluster absent from every sample of one group."""
    return create_zero_in_group_cells()


@pytest.fixture
def three_group_cells() -> pd.DataFrame:
    """Three groups of three samples, five clusters."""
    return create_multi_group_cells(n_groups=3, samples_per_group=3, n_clusters=5)


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# AnnData Fixtures
# ============================================================================


@pytest.fixture
def mock_adata(two_group_cells):
    """AnnData whose obs holds the two-group labels."""
    pytest.importorskip("anndata")
    return create_mock_adata(two_group_cells)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_propeller_config(tmp_path) -> Path:
    """Create sample propeller configuration file."""
    import yaml

    config = {
        "propeller": {
            "transform": "asin",
            "robust": False,
            "trend": False,
            "sort": True,
            "alpha": 0.1,
        },
    }

    path = tmp_path / "propeller.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
