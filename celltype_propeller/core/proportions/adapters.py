"""Label-source adapters.

Adapters extract the per-cell (cluster, sample, group) labels from an
annotated container. The engine only ever calls :func:`extract_labels`; it
never inspects the container type itself.

Metadata keys are resolved explicitly: an exact column name wins, otherwise
exactly one case-insensitive match is accepted. Missing or ambiguous keys
raise instead of being guessed. Categorical columns keep only the levels that
occur in the extracted rows, so a filtered container tests what it holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Sequence, Union, runtime_checkable

import pandas as pd

from .errors import (
    AmbiguousColumnError,
    LabelShapeError,
    MissingColumnError,
    UnsupportedSourceError,
)

logger = logging.getLogger(__name__)

DEFAULT_CLUSTER_KEY = ("clusters", "cluster")
DEFAULT_SAMPLE_KEY = "sample"
DEFAULT_GROUP_KEY = "group"

KeySpec = Union[str, Sequence[str]]


@dataclass(frozen=True)
class CellLabels:
    """Per-cell cluster, sample and group labels.

    Attributes
    ----------
    clusters : pd.Categorical
        Cluster or cell type of each cell
    sample : pd.Categorical
        Biological replicate of each cell
    group : pd.Categorical
        Experimental group of each cell
    """

    clusters: pd.Categorical
    sample: pd.Categorical
    group: pd.Categorical

    def __post_init__(self) -> None:
        lengths = {len(self.clusters), len(self.sample), len(self.group)}
        if len(lengths) != 1:
            raise LabelShapeError(
                f"clusters ({len(self.clusters)}), sample ({len(self.sample)}) and "
                f"group ({len(self.group)}) must have one entry per cell"
            )

    @property
    def n_cells(self) -> int:
        return len(self.clusters)


def resolve_column(columns: Iterable[str], key: KeySpec) -> str:
    """Find the metadata column matching ``key``.

    Parameters
    ----------
    columns : Iterable[str]
        Available column names
    key : str or Sequence[str]
        Requested column name, or candidates tried in order

    Returns
    -------
    str
        The matching column name

    Raises
    ------
    MissingColumnError
        If no candidate matches.
    AmbiguousColumnError
        If a candidate matches several columns case-insensitively.
    """
    columns = [str(c) for c in columns]
    candidates = [key] if isinstance(key, str) else list(key)

    for candidate in candidates:
        if candidate in columns:
            return candidate
        folded = [c for c in columns if c.casefold() == candidate.casefold()]
        if len(folded) > 1:
            raise AmbiguousColumnError(
                f"Key '{candidate}' matches several columns: {folded}"
            )
        if folded:
            return folded[0]

    raise MissingColumnError(
        f"None of {candidates} found in metadata columns {columns}"
    )


@runtime_checkable
class LabelSource(Protocol):
    """Anything that can provide per-cell cluster, sample and group labels."""

    def extract(
        self,
        cluster_key: KeySpec = DEFAULT_CLUSTER_KEY,
        sample_key: KeySpec = DEFAULT_SAMPLE_KEY,
        group_key: KeySpec = DEFAULT_GROUP_KEY,
    ) -> CellLabels:
        ...


def _column_factor(frame: pd.DataFrame, column: str) -> pd.Categorical:
    """Categorical of ``frame[column]`` keeping only levels that occur."""
    factor = pd.Categorical(frame[column])
    used = set(factor.codes.tolist())
    unused = [level for code, level in enumerate(factor.categories) if code not in used]
    if unused:
        logger.info(f"Dropping unused levels of '{column}': {unused}")
        factor = factor.remove_unused_categories()
    return factor


def _labels_from_frame(
    frame: pd.DataFrame,
    cluster_key: KeySpec,
    sample_key: KeySpec,
    group_key: KeySpec,
) -> CellLabels:
    cluster_col = resolve_column(frame.columns, cluster_key)
    sample_col = resolve_column(frame.columns, sample_key)
    group_col = resolve_column(frame.columns, group_key)
    logger.debug(
        f"Label columns: clusters={cluster_col}, sample={sample_col}, group={group_col}"
    )
    return CellLabels(
        clusters=_column_factor(frame, cluster_col),
        sample=_column_factor(frame, sample_col),
        group=_column_factor(frame, group_col),
    )


class DataFrameLabelSource:
    """Labels stored as columns of a per-cell DataFrame.

    Parameters
    ----------
    frame : pd.DataFrame
        One row per cell
    """

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame

    def extract(
        self,
        cluster_key: KeySpec = DEFAULT_CLUSTER_KEY,
        sample_key: KeySpec = DEFAULT_SAMPLE_KEY,
        group_key: KeySpec = DEFAULT_GROUP_KEY,
    ) -> CellLabels:
        logger.info("Extracting sample information from DataFrame")
        return _labels_from_frame(self.frame, cluster_key, sample_key, group_key)


class AnnDataLabelSource:
    """Labels stored in the ``obs`` table of an AnnData-like object.

    Parameters
    ----------
    adata : AnnData
        Any object exposing a per-cell ``obs`` DataFrame
    """

    def __init__(self, adata: Any):
        self.adata = adata

    def extract(
        self,
        cluster_key: KeySpec = DEFAULT_CLUSTER_KEY,
        sample_key: KeySpec = DEFAULT_SAMPLE_KEY,
        group_key: KeySpec = DEFAULT_GROUP_KEY,
    ) -> CellLabels:
        logger.info("Extracting sample information from AnnData object")
        return _labels_from_frame(self.adata.obs, cluster_key, sample_key, group_key)


def as_label_source(x: Any) -> LabelSource:
    """Wrap ``x`` in the matching adapter.

    Raises
    ------
    UnsupportedSourceError
        If ``x`` is not a DataFrame, an AnnData-like object or a LabelSource.
    """
    if isinstance(x, LabelSource):
        return x
    if isinstance(x, pd.DataFrame):
        return DataFrameLabelSource(x)
    if isinstance(getattr(x, "obs", None), pd.DataFrame):
        return AnnDataLabelSource(x)
    raise UnsupportedSourceError(
        f"Cannot extract cluster, sample and group labels from {type(x).__name__}"
    )


def extract_labels(
    x: Any,
    cluster_key: Optional[KeySpec] = None,
    sample_key: Optional[KeySpec] = None,
    group_key: Optional[KeySpec] = None,
) -> CellLabels:
    """Extract per-cell labels from a DataFrame, AnnData or LabelSource."""
    return as_label_source(x).extract(
        cluster_key=cluster_key or DEFAULT_CLUSTER_KEY,
        sample_key=sample_key or DEFAULT_SAMPLE_KEY,
        group_key=group_key or DEFAULT_GROUP_KEY,
    )
