"""Periodic PCA diagnostics over hidden-layer activation patterns."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from pitsim.contracts.network import IActivationProbe
from pitsim.core.torch_utils import require_torch

if TYPE_CHECKING:
    from pitsim.simulation.stats import Stats

STRONG_EIGEN_THRESHOLD = 0.01


class ActivationPCA:
    """Collect per-trial activations and summarize their covariance spectrum.

    For every layer, :meth:`compute` writes ``<Layer>_PCA_NStrong`` (eigenvalues
    above :data:`STRONG_EIGEN_THRESHOLD`), ``<Layer>_PCA_Top5`` (sum of the
    five largest eigenvalues), ``<Layer>_PCA_Next5`` and ``<Layer>_PCA_Rest``.
    """

    def __init__(self, layers: Sequence[str], *, top: int = 5) -> None:
        self.layers = tuple(layers)
        self.top = max(1, int(top))
        self._rows: dict[str, list[list[float]]] = {layer: [] for layer in self.layers}

    @property
    def n_samples(self) -> int:
        if not self.layers:
            return 0
        return len(self._rows[self.layers[0]])

    def record(self, probe: IActivationProbe) -> None:
        for layer in self.layers:
            self._rows[layer].append([float(v) for v in probe.layer_activations(layer)])

    def compute(self, stats: Stats) -> dict[str, float]:
        torch = require_torch()
        results: dict[str, float] = {}
        for layer in self.layers:
            rows = self._rows[layer]
            if len(rows) < 2:
                continue
            acts = torch.tensor(rows, dtype=torch.float64)
            acts = acts - acts.mean(dim=0, keepdim=True)
            cov = acts.T.matmul(acts) / float(acts.shape[0] - 1)
            eig = torch.linalg.eigvalsh(cov).flip(0).clamp_min(0.0)
            top = eig[: self.top]
            nxt = eig[self.top : 2 * self.top]
            rest = eig[2 * self.top :]
            results[f"{layer}_PCA_NStrong"] = float((eig > STRONG_EIGEN_THRESHOLD).sum().item())
            results[f"{layer}_PCA_Top5"] = float(top.sum().item())
            results[f"{layer}_PCA_Next5"] = float(nxt.sum().item())
            results[f"{layer}_PCA_Rest"] = float(rest.sum().item())
        for name, value in results.items():
            stats.set_float(name, value)
        self.clear()
        return results

    def clear(self) -> None:
        for layer in self.layers:
            self._rows[layer].clear()


__all__ = ["STRONG_EIGEN_THRESHOLD", "ActivationPCA"]
