"""Configuration for proportion testing.

Test options and metadata column names are loaded from YAML rather than
being hardcoded at each call site.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import TransformConfigError
from .transform import DEFAULT_TRANSFORM, TRANSFORMS


@dataclass
class PropellerConfig:
    """Main configuration for differential proportion testing.

    Attributes
    ----------
    transform : str
        Proportion transform: "logit" or "asin"
    robust : bool
        Robust empirical Bayes estimation of the variance prior
    trend : bool
        Fit a mean-variance trend for the variance prior
    sort : bool
        Sort results by ascending p-value
    cluster_column : str, optional
        Column with cluster labels in the cell metadata. None tries
        "clusters" then "cluster"
    sample_column : str, optional
        Column with biological replicate labels (default "sample")
    group_column : str, optional
        Column with experimental group labels (default "group")
    alpha : float
        FDR threshold used when counting significant clusters
    """

    transform: str = DEFAULT_TRANSFORM
    robust: bool = True
    trend: bool = False
    sort: bool = True
    cluster_column: Optional[str] = None
    sample_column: Optional[str] = None
    group_column: Optional[str] = None
    alpha: float = 0.05

    def validate(self) -> None:
        """Check option values.

        Raises
        ------
        TransformConfigError
            If the transform name is unknown.
        ValueError
            If alpha is outside (0, 1).
        """
        if self.transform not in TRANSFORMS:
            raise TransformConfigError(
                f"Unknown transform '{self.transform}'. Available: {sorted(TRANSFORMS)}"
            )
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")

    @classmethod
    def from_yaml(cls, path: Path) -> "PropellerConfig":
        """Load configuration from YAML file.

        Parameters
        ----------
        path : Path
            Path to YAML configuration file. Options may sit at the top level
            or under a ``propeller`` key.

        Returns
        -------
        PropellerConfig
            Configuration instance
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("propeller", data))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropellerConfig":
        """Create from dictionary, ignoring unknown keys."""
        config = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        config.validate()
        return config

    @classmethod
    def default(cls) -> "PropellerConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "transform": self.transform,
            "robust": self.robust,
            "trend": self.trend,
            "sort": self.sort,
            "cluster_column": self.cluster_column,
            "sample_column": self.sample_column,
            "group_column": self.group_column,
            "alpha": self.alpha,
        }

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file.

        Parameters
        ----------
        path : Path
            Output path for YAML file
        """
        with open(path, "w") as f:
            yaml.dump({"propeller": self.to_dict()}, f, default_flow_style=False, sort_keys=False)
