"""Mock per-cell label generators for testing.

Provides functions to create per-cell cluster/sample/group tables with
known counts, so proportions and test outcomes can be checked by hand.
"""

from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd


# Four samples, two per group, three clusters
TWO_GROUP_PROPORTIONS: Dict[str, List[float]] = {
    "s1": [0.5, 0.3, 0.2],
    "s2": [0.6, 0.3, 0.1],
    "s3": [0.3, 0.4, 0.3],
    "s4": [0.4, 0.3, 0.3],
}
TWO_GROUP_NUMCELLS: Dict[str, int] = {"s1": 1000, "s2": 1500, "s3": 900, "s4": 1200}
TWO_GROUP_GROUPS: Dict[str, str] = {"s1": "grp1", "s2": "grp1", "s3": "grp2", "s4": "grp2"}


def create_cells_from_counts(
    counts: Mapping[str, Mapping[str, int]],
    groups: Mapping[str, str],
    shuffle: bool = True,
    seed: int = 42,
) -> pd.DataFrame:
    """Create a per-cell table with exact cluster counts per sample.

    Parameters
    ----------
    counts : Mapping[str, Mapping[str, int]]
        sample -> cluster -> number of cells
    groups : Mapping[str, str]
        sample -> group
    shuffle : bool
        Shuffle the cell order
    seed : int
        Random seed for the shuffle

    Returns
    -------
    pd.DataFrame
        One row per cell with clusters, sample and group columns
    """
    rows = []
    for sample, per_cluster in counts.items():
        for cluster, n in per_cluster.items():
            rows.extend([(cluster, sample, groups[sample])] * int(n))

    cells = pd.DataFrame(rows, columns=["clusters", "sample", "group"])
    if shuffle:
        rng = np.random.default_rng(seed)
        cells = cells.iloc[rng.permutation(len(cells))].reset_index(drop=True)
    cells.index = pd.Index([f"cell_{i}" for i in range(len(cells))], name="cell_id")
    return cells


def create_two_group_cells(seed: int = 42) -> pd.DataFrame:
    """Create the four-sample, two-group, three-cluster table.

    Cluster c0 has the largest change in proportion between groups.
    """
    counts = {
        sample: {
            f"c{k}": int(round(p * TWO_GROUP_NUMCELLS[sample]))
            for k, p in enumerate(props)
        }
        for sample, props in TWO_GROUP_PROPORTIONS.items()
    }
    return create_cells_from_counts(counts, TWO_GROUP_GROUPS, seed=seed)


def create_constant_cluster_cells() -> pd.DataFrame:
    """Two groups where cluster c1 has the same proportion in every sample."""
    counts = {
        "s1": {"c0": 500, "c1": 100, "c2": 400},
        "s2": {"c0": 600, "c1": 100, "c2": 300},
        "s3": {"c0": 300, "c1": 100, "c2": 600},
        "s4": {"c0": 400, "c1": 100, "c2": 500},
    }
    return create_cells_from_counts(counts, TWO_GROUP_GROUPS)


def create_zero_in_group_cells() -> pd.DataFrame:
    """Two groups where cluster c2 has no cells in any grp1 sample."""
    counts = {
        "s1": {"c0": 600, "c1": 400, "c2": 0},
        "s2": {"c0": 550, "c1": 450, "c2": 0},
        "s3": {"c0": 400, "c1": 400, "c2": 200},
        "s4": {"c0": 450, "c1": 400, "c2": 150},
    }
    return create_cells_from_counts(counts, TWO_GROUP_GROUPS)


def create_multi_group_cells(
    n_groups: int = 3,
    samples_per_group: int = 3,
    n_clusters: int = 5,
    cells_per_sample: int = 800,
    seed: int = 7,
    group_shift: Optional[float] = 0.1,
) -> pd.DataFrame:
    """Create a table with several groups and multinomial cluster counts.

    Parameters
    ----------
    n_groups : int
        Number of experimental groups
    samples_per_group : int
        Biological replicates in each group
    n_clusters : int
        Number of clusters
    cells_per_sample : int
        Cells drawn per sample
    seed : int
        Random seed for reproducibility
    group_shift : float, optional
        Extra proportion given to cluster c0 per group index

    Returns
    -------
    pd.DataFrame
        One row per cell with clusters, sample and group columns
    """
    rng = np.random.default_rng(seed)
    base = np.full(n_clusters, 1.0 / n_clusters)

    counts: Dict[str, Dict[str, int]] = {}
    groups: Dict[str, str] = {}
    for g in range(n_groups):
        probs = base.copy()
        if group_shift:
            probs[0] += group_shift * g
        probs = probs / probs.sum()
        for r in range(samples_per_group):
            sample = f"g{g}_r{r}"
            drawn = rng.multinomial(cells_per_sample, probs)
            counts[sample] = {f"c{k}": int(n) for k, n in enumerate(drawn)}
            groups[sample] = f"grp{g}"

    return create_cells_from_counts(counts, groups, seed=seed)


def create_mock_adata(cells: Optional[pd.DataFrame] = None, n_features: int = 5) -> "AnnData":
    """Wrap a per-cell label table in an AnnData object.

    Parameters
    ----------
    cells : pd.DataFrame, optional
        Per-cell labels; defaults to :func:`create_two_group_cells`
    n_features : int
        Number of dummy features in X

    Returns
    -------
    AnnData
        Mock AnnData with the labels as categorical obs columns
    """
    import anndata as ad

    if cells is None:
        cells = create_two_group_cells()

    obs = cells.astype("category")
    X = np.zeros((len(obs), n_features), dtype=np.float32)
    var = pd.DataFrame(index=[f"Feature_{i}" for i in range(n_features)])
    return ad.AnnData(X=X, obs=obs, var=var)
