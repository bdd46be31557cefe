"""Torch reference engine implementing the network boundary.

Rate-coded units with sigmoidal activation and contrastive Hebbian weight
deltas (plus-phase minus minus-phase coproducts). It is small on purpose: the
controller only needs something that honors the call contract, clamps by
role, skips lesioned layers and round-trips checkpoints losslessly.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeAlias

from pitsim.contracts.network import LayerRole, Pattern, TrialError, cast_layer_role
from pitsim.core.errors import CheckpointNotFound, ConfigurationError, InvalidPatternShape
from pitsim.core.torch_utils import require_torch, resolve_device_dtype
from pitsim.engine.specs import LayerSpec, ProjectionKind, ProjectionPattern, ProjectionSpec, RateNetworkConfig

if TYPE_CHECKING:
    import torch  # type: ignore[import-not-found]  # pyright: ignore[reportMissingImports]

    from pitsim.simulation.time_state import TimeState

    Tensor: TypeAlias = "torch.Tensor"
else:
    Tensor: TypeAlias = Any

WeightDelta: TypeAlias = dict[int, Any]  # noqa: UP040

MINUS_PHASE_QUARTER = 2
PLUS_PHASE_QUARTER = 3


@dataclass(slots=True)
class _LayerState:
    spec: LayerSpec
    role: LayerRole | None
    active: bool
    act: Tensor
    ext: Tensor | None = None
    ext_fresh: bool = False
    act_m: Tensor | None = None
    act_p: Tensor | None = None


@dataclass(slots=True)
class _Projection:
    spec: ProjectionSpec
    weights: Tensor
    scale: float = 1.0


class RateNetwork:
    """In-process :class:`~pitsim.contracts.network.INetwork` backed by torch tensors."""

    def __init__(
        self,
        name: str,
        layers: Sequence[LayerSpec],
        projections: Sequence[ProjectionSpec],
        *,
        config: RateNetworkConfig | None = None,
        seed: int | None = None,
    ) -> None:
        torch = require_torch()
        self.name = name
        self.config = config or RateNetworkConfig()
        device, dtype = resolve_device_dtype(self.config.device, self.config.dtype)
        self._torch = torch
        self._device = device if device is not None else torch.device("cpu")
        self._dtype = dtype
        self._generator = torch.Generator()
        if seed is not None:
            self._generator.manual_seed(int(seed))
        self._layers: dict[str, _LayerState] = {}
        for spec in layers:
            if spec.name in self._layers:
                raise ConfigurationError(f"Duplicate layer '{spec.name}'", context={"network": name})
            self._layers[spec.name] = _LayerState(
                spec=spec,
                role=spec.role,
                active=True,
                act=torch.zeros(spec.size, device=self._device, dtype=self._dtype),
            )
        self._projections: list[_Projection] = []
        for proj in projections:
            send = self._layer(proj.sender)
            recv = self._layer(proj.receiver)
            if proj.pattern == ProjectionPattern.ONE_TO_ONE:
                if send.spec.size != recv.spec.size:
                    raise ConfigurationError(
                        f"One-to-one projection {proj.name} needs equal sizes "
                        f"({send.spec.size} != {recv.spec.size})",
                        context={"network": name},
                    )
                shape: tuple[int, ...] = (recv.spec.size,)
            else:
                shape = (recv.spec.size, send.spec.size)
            weights = torch.zeros(shape, device=self._device, dtype=self._dtype)
            self._projections.append(_Projection(spec=proj, weights=weights))
        self._memory_checkpoints: dict[str, dict[str, Tensor]] = {}
        self._plus_done = False
        self.reset_weights()

    # ------------------------------------------------------------------
    # structure
    # ------------------------------------------------------------------
    def layer_names(self) -> Sequence[str]:
        return tuple(self._layers)

    def layer_size(self, layer: str) -> int:
        return self._layer(layer).spec.size

    def layer_role(self, layer: str) -> LayerRole | None:
        return self._layer(layer).role

    def is_layer_active(self, layer: str) -> bool:
        return self._layer(layer).active

    def set_layer_role(self, layer: str, role: LayerRole) -> None:
        self._layer(layer).role = cast_layer_role(role)

    def set_layer_active(self, layer: str, active: bool) -> None:
        state = self._layer(layer)
        state.active = bool(active)
        if not state.active:
            state.act = self._torch.zeros_like(state.act)

    def projections(self) -> tuple[ProjectionSpec, ...]:
        return tuple(proj.spec for proj in self._projections)

    # ------------------------------------------------------------------
    # trial framing
    # ------------------------------------------------------------------
    def apply_external_values(self, layer: str, pattern: Pattern) -> None:
        state = self._layer(layer)
        values = self._torch.as_tensor(pattern, device=self._device, dtype=self._dtype).reshape(-1)
        if values.numel() != state.spec.size:
            raise InvalidPatternShape(layer, expected=state.spec.size, actual=int(values.numel()))
        state.ext = values.clone()
        state.ext_fresh = True

    def begin_trial(self, is_training: bool) -> None:
        for state in self._layers.values():
            if not state.ext_fresh:
                state.ext = None
            state.ext_fresh = False
            state.act = self._torch.zeros_like(state.act)
            state.act_m = None
            state.act_p = None
        self._plus_done = False
        self._update_scales()

    def step_cycle(self, time: TimeState) -> None:
        torch = self._torch
        plus = time.is_plus_phase
        acts = {name: state.act for name, state in self._layers.items()}
        excit: dict[str, Tensor] = {}
        inhib: dict[str, Tensor] = {}
        for proj in self._projections:
            spec = proj.spec
            send = self._layers[spec.sender]
            recv = self._layers[spec.receiver]
            if not send.active or not recv.active:
                continue
            send_act = acts[spec.sender]
            if spec.pattern == ProjectionPattern.ONE_TO_ONE:
                contrib = proj.weights * send_act
            else:
                contrib = proj.weights.matmul(send_act) / float(send.spec.size)
            contrib = contrib * proj.scale
            bucket = inhib if spec.kind == ProjectionKind.INHIB else excit
            if spec.receiver in bucket:
                bucket[spec.receiver] = bucket[spec.receiver] + contrib
            else:
                bucket[spec.receiver] = contrib
        updated: dict[str, Tensor] = {}
        rate = self.config.integ_rate
        for name, state in self._layers.items():
            if not state.active:
                continue
            if self._clamped(state, plus=plus):
                assert state.ext is not None
                updated[name] = state.ext.clone()
                continue
            net = state.act.new_full((state.spec.size,), float(state.spec.tonic))
            if name in excit:
                net = net + excit[name]
            if name in inhib:
                net = net - inhib[name]
            gain = state.spec.gain if state.spec.gain is not None else self.config.gain
            thr = state.spec.threshold if state.spec.threshold is not None else self.config.threshold
            target = torch.sigmoid(gain * (net - thr))
            updated[name] = state.act + rate * (target - state.act)
        for name, value in updated.items():
            self._layers[name].act = value

    def finalize_quarter(self, time: TimeState) -> None:
        if time.quarter == MINUS_PHASE_QUARTER:
            for state in self._layers.values():
                state.act_m = state.act.clone()
        elif time.quarter == PLUS_PHASE_QUARTER:
            for state in self._layers.values():
                state.act_p = state.act.clone()
            self._plus_done = True

    # ------------------------------------------------------------------
    # learning
    # ------------------------------------------------------------------
    def compute_weight_delta(self) -> WeightDelta:
        if not self._plus_done:
            raise RuntimeError("compute_weight_delta called before the plus phase finished")
        lr = self.config.learning_rate
        delta: WeightDelta = {}
        for idx, proj in enumerate(self._projections):
            spec = proj.spec
            if not spec.learn:
                continue
            send = self._layers[spec.sender]
            recv = self._layers[spec.receiver]
            if not send.active or not recv.active or recv.role == LayerRole.COMPARE:
                continue
            assert send.act_m is not None and send.act_p is not None
            assert recv.act_m is not None and recv.act_p is not None
            if spec.pattern == ProjectionPattern.ONE_TO_ONE:
                dwt = recv.act_p * send.act_p - recv.act_m * send.act_m
            else:
                dwt = self._torch.outer(recv.act_p, send.act_p) - self._torch.outer(recv.act_m, send.act_m)
            delta[idx] = lr * dwt
        return delta

    def apply_weight_delta(self, delta: WeightDelta) -> None:
        for idx, dwt in delta.items():
            weights = self._projections[idx].weights
            weights.add_(dwt).clamp_(0.0, 1.0)

    # ------------------------------------------------------------------
    # statistics / probes
    # ------------------------------------------------------------------
    def trial_error(self, layer: str, tolerance: float) -> TrialError:
        state = self._layer(layer)
        if not state.active or state.ext is None or state.act_m is None:
            return TrialError()
        diff = state.ext - state.act_m
        diff = self._torch.where(diff.abs() < float(tolerance), self._torch.zeros_like(diff), diff)
        sse = float(diff.pow(2).sum().item())
        avg_sse = sse / float(state.spec.size)
        cos_diff = 0.0
        if state.act_p is not None:
            m = state.act_m - state.act_m.mean()
            p = state.act_p - state.act_p.mean()
            denom = float((m.norm() * p.norm()).item())
            if denom > 0.0:
                cos_diff = float((m * p).sum().item()) / denom
        return TrialError(sse=sse, avg_sse=avg_sse, cos_diff=cos_diff)

    def layer_activations(self, layer: str) -> Sequence[float]:
        state = self._layer(layer)
        source = state.act_m if state.act_m is not None else state.act
        return [float(v) for v in source.detach().cpu().tolist()]

    def weights_snapshot(self) -> dict[str, Tensor]:
        return {self._weight_key(idx, proj): proj.weights.detach().clone() for idx, proj in enumerate(self._projections)}

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def seed(self, value: int) -> None:
        self._generator.manual_seed(int(value))

    def reset_weights(self) -> None:
        torch = self._torch
        cfg = self.config
        low = cfg.init_mean - cfg.init_var
        high = cfg.init_mean + cfg.init_var
        for proj in self._projections:
            if proj.spec.fixed_weight is not None:
                proj.weights.fill_(float(proj.spec.fixed_weight))
                continue
            values = torch.empty(tuple(proj.weights.shape), dtype=self._dtype).uniform_(
                low, high, generator=self._generator
            )
            proj.weights.copy_(values.clamp_(0.0, 1.0).to(self._device))
        for state in self._layers.values():
            state.act = torch.zeros_like(state.act)
            state.act_m = None
            state.act_p = None

    def save_checkpoint(self, name: str) -> None:
        payload = self.weights_snapshot()
        path = self._checkpoint_path(name)
        if path is None:
            self._memory_checkpoints[name] = payload
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        self._torch.save(
            {"network": self.name, "weights": {key: value.cpu() for key, value in payload.items()}},
            path,
        )

    def load_checkpoint(self, name: str) -> None:
        if not self.has_checkpoint(name):
            raise CheckpointNotFound(name)
        path = self._checkpoint_path(name)
        if path is None:
            weights = self._memory_checkpoints[name]
        else:
            payload = self._torch.load(path, map_location=self._device, weights_only=True)
            weights = payload["weights"]
        self._restore_weights(name, weights)

    def has_checkpoint(self, name: str) -> bool:
        path = self._checkpoint_path(name)
        if path is None:
            return name in self._memory_checkpoints
        return path.exists()

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _layer(self, layer: str) -> _LayerState:
        try:
            return self._layers[layer]
        except KeyError as exc:
            raise ConfigurationError(
                f"Unknown layer '{layer}'", context={"layer": layer, "network": self.name}
            ) from exc

    def _clamped(self, state: _LayerState, *, plus: bool) -> bool:
        if state.ext is None:
            return False
        if state.role == LayerRole.INPUT:
            return True
        return state.role == LayerRole.TARGET and plus

    def _update_scales(self) -> None:
        rel_totals: dict[str, float] = {}
        for proj in self._projections:
            spec = proj.spec
            if spec.kind == ProjectionKind.INHIB:
                continue
            if not self._layers[spec.sender].active:
                continue
            rel_totals[spec.receiver] = rel_totals.get(spec.receiver, 0.0) + spec.rel_scale
        for proj in self._projections:
            spec = proj.spec
            if spec.kind == ProjectionKind.INHIB:
                proj.scale = spec.abs_scale
                continue
            total = rel_totals.get(spec.receiver, 0.0)
            proj.scale = spec.abs_scale * (spec.rel_scale / total if total > 0.0 else 0.0)

    def _checkpoint_path(self, name: str) -> Path | None:
        root = self.config.checkpoint_dir
        if root is None:
            return None
        return root / name

    def _restore_weights(self, name: str, weights: dict[str, Tensor]) -> None:
        expected = {self._weight_key(idx, proj): proj for idx, proj in enumerate(self._projections)}
        missing = sorted(set(expected) - set(weights))
        if missing:
            raise ConfigurationError(
                f"Checkpoint '{name}' does not match network '{self.name}'",
                context={"checkpoint": name, "missing": missing},
            )
        for key, proj in expected.items():
            value = weights[key]
            if tuple(value.shape) != tuple(proj.weights.shape):
                raise ConfigurationError(
                    f"Checkpoint '{name}' has shape {tuple(value.shape)} for {key}, "
                    f"expected {tuple(proj.weights.shape)}",
                    context={"checkpoint": name},
                )
            proj.weights.copy_(value.to(device=self._device, dtype=self._dtype))

    @staticmethod
    def _weight_key(idx: int, proj: _Projection) -> str:
        return f"{idx:02d}:{proj.spec.name}"


def build_rate_network(
    name: str,
    layers: Iterable[LayerSpec],
    projections: Iterable[ProjectionSpec],
    *,
    config: RateNetworkConfig | None = None,
    seed: int | None = None,
) -> RateNetwork:
    return RateNetwork(name, tuple(layers), tuple(projections), config=config, seed=seed)


__all__ = ["MINUS_PHASE_QUARTER", "PLUS_PHASE_QUARTER", "RateNetwork", "WeightDelta", "build_rate_network"]
