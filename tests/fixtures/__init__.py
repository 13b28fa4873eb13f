"""Test fixtures for celltype-propeller tests."""

from .mock_labels import (
    TWO_GROUP_GROUPS,
    TWO_GROUP_NUMCELLS,
    TWO_GROUP_PROPORTIONS,
    create_cells_from_counts,
    create_constant_cluster_cells,
    create_mock_adata,
    create_multi_group_cells,
    create_two_group_cells,
    create_zero_in_group_cells,
)

__all__ = [
    "TWO_GROUP_GROUPS",
    "TWO_GROUP_NUMCELLS",
    "TWO_GROUP_PROPORTIONS",
    "create_cells_from_counts",
    "create_constant_cluster_cells",
    "create_mock_adata",
    "create_multi_group_cells",
    "create_two_group_cells",
    "create_zero_in_group_cells",
]
