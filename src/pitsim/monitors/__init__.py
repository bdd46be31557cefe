"""Monitor implementations (log tables, PCA diagnostics)."""

from pitsim.monitors.logs import DEFAULT_COLUMNS, SimLogs
from pitsim.monitors.pca import STRONG_EIGEN_THRESHOLD, ActivationPCA

__all__ = [
    "ActivationPCA",
    "DEFAULT_COLUMNS",
    "STRONG_EIGEN_THRESHOLD",
    "SimLogs",
]
