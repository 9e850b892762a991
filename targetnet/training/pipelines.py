"""Pipeline assembly: presets, the target brain, and end-to-end runs."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ..core.errors import ConfigurationError, MaxEpochsExceeded, PersistenceLoadError
from ..core.network import DEFAULT_LEARNING_RATE, NeuralNetwork
from ..core.types import Array, RunResult, TrainingResult, TrainingSample
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.telemetry import TelemetryLog, TelemetrySink, emit
from ..steering import PredictionConsumer
from ..vision.raster import FrameGeometry, RasterContext
from ..vision.silhouette import SilhouetteRenderer
from .convergence import CancellationToken, ConvergencePolicy, TolerancePolicy
from .samples import SampleIndex, default_positions, default_sizes, synthesize_samples, value_grid
from .trainer import TargetScale, Trainer, predict_offset

_PRESETS: Dict[str, Mapping[str, object]] = {
    "camera-200x80": {
        "data": {
            "width": 200,
            "height": 80,
            "sizes": {"start": 25, "stop": 175, "step": 5},
            "grayscale": True,
            "edge_filter": True,
        },
        "model": {"hidden": [5], "learning_rate": 0.01},
        "train": {
            "seed": 0,
            "max_epochs": None,
            "accept_exhausted": False,
            "tolerance": {"size_threshold": 40, "tight": 2, "loose": 5},
            "model_path": "models/target-offset.ai",
            "run_dir": "runs/camera-200x80",
            "enable_plots": False,
        },
    },
    "quick-40x16": {
        "data": {
            "width": 40,
            "height": 16,
            "sizes": {"start": 20, "stop": 60, "step": 20},
            "grayscale": True,
            "edge_filter": True,
        },
        "model": {"hidden": [5], "learning_rate": 0.01},
        "train": {
            "seed": 1,
            "max_epochs": 200,
            "accept_exhausted": True,
            "tolerance": {"size_threshold": 40, "tight": 2, "loose": 5},
            "run_dir": "runs/quick-40x16",
            "enable_plots": False,
        },
    },
    "smoke": {
        "data": {
            "width": 24,
            "height": 8,
            "sizes": {"start": 16, "stop": 17, "step": 1},
            "positions": {"start": 4, "stop": 20, "step": 4},
            "grayscale": True,
            "edge_filter": True,
        },
        "model": {"hidden": [3], "learning_rate": 0.01},
        "train": {
            "seed": 7,
            "max_epochs": 2,
            "accept_exhausted": True,
            "tolerance": {"size_threshold": 40, "tight": 2, "loose": 5},
            "run_dir": "runs/smoke",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_PRESET_SUFFIXES = (".yaml", ".yml", ".json")


def read_config_file(path: str | Path) -> Dict[str, object]:
    """Decode a JSON or YAML config file into a mapping."""

    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{path.name} must hold a mapping, not {type(data).__name__}")
    return dict(data)


def _preset_files() -> Dict[str, Path]:
    if not _PRESET_DIR.is_dir():
        return {}
    return {
        file.stem: file
        for file in sorted(_PRESET_DIR.iterdir())
        if file.suffix.lower() in _PRESET_SUFFIXES
    }


def _read_preset(path: Path) -> Mapping[str, object]:
    data = read_config_file(path)
    missing = sorted({"data", "model", "train"} - set(data))
    if missing:
        raise ConfigurationError(f"preset {path.name} lacks sections: {', '.join(missing)}")
    return data


def presets() -> Mapping[str, Mapping[str, object]]:
    """Every preset by name; files in ``configs/presets`` shadow built-in ones."""

    combined: Dict[str, Mapping[str, object]] = deepcopy(_PRESETS)
    for name, path in _preset_files().items():
        combined[name] = _read_preset(path)
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    path = _preset_files().get(name)
    if path is not None:
        return _read_preset(path)
    if name not in _PRESETS:
        raise KeyError(f"Unknown preset: {name}")
    return deepcopy(_PRESETS[name])


class FrameCollaborator(Protocol):
    """Renderer/featurizer pair the brain trains and predicts with."""

    geometry: FrameGeometry

    def synthesize(self, size: float, position: float) -> Array:
        ...

    def featurize(self, frame: Array) -> Array:
        ...


class TargetBrain:
    """Network that maps a camera frame to the column of the target's centre.

    Construction either loads a previously saved model whose shape matches
    ``network`` or synthesizes training frames, trains until convergence and
    saves the result to ``model_path``.
    """

    def __init__(
        self,
        network: NeuralNetwork,
        renderer: FrameCollaborator,
        *,
        model_path: str | Path | None = None,
        reuse_model: bool = True,
        allow_training: bool = True,
        policy: ConvergencePolicy | None = None,
        sizes: Iterable[float] | None = None,
        positions: Sequence[float] | None = None,
        callbacks: Sequence[object] | None = None,
        telemetry: Optional[TelemetrySink] = None,
        cancel: CancellationToken | None = None,
        accept_exhausted: bool = False,
        keep_samples: bool = False,
        consumer: PredictionConsumer | None = None,
    ) -> None:
        geometry = renderer.geometry
        if geometry.pixels != network.input_width:
            raise ConfigurationError(
                f"frame {geometry.width}x{geometry.height} has {geometry.pixels} pixels "
                f"but the network expects {network.input_width} inputs"
            )
        self.network = network
        self.renderer = renderer
        self.scale = TargetScale(float(geometry.width))
        self.model_path = Path(model_path) if model_path is not None else None
        self.telemetry = telemetry
        self.consumer = consumer
        self.result: TrainingResult | None = None
        self.loaded = False
        self.samples: List[TrainingSample] = []
        self._index = SampleIndex([])

        if reuse_model and self.model_path is not None and network.load(self.model_path):
            self.loaded = True
            emit(telemetry, ">> LOADED AI MODEL")
            return
        if not allow_training:
            raise PersistenceLoadError(f"No usable model at {self.model_path}")

        samples = synthesize_samples(
            renderer,
            default_sizes() if sizes is None else sizes,
            default_positions(geometry.width) if positions is None else positions,
            telemetry=telemetry,
        )
        trainer = Trainer(
            network,
            self.scale,
            policy=policy,
            callbacks=callbacks,
            telemetry=telemetry,
            cancel=cancel,
        )
        self.result = trainer.run(samples)
        if not self.result.converged and not accept_exhausted:
            raise MaxEpochsExceeded(self.result)

        if self.model_path is not None:
            network.save(self.model_path)
            emit(telemetry, ">> AI MODEL SAVED")

        if keep_samples:
            self.samples = samples
            self._index = SampleIndex(samples)

    @property
    def epochs(self) -> int:
        return self.result.epochs if self.result is not None else 0

    def predict(self, features: Array) -> int:
        """Predicted target column for an already featurized frame."""

        return predict_offset(self.network, self.scale, features)

    def locate(self, frame: Array, size_class: int = 0) -> int:
        """Featurize a live frame, predict the target column and notify the consumer."""

        offset = self.predict(self.renderer.featurize(frame))
        if self.consumer is not None:
            self.consumer.on_prediction(offset, size_class)
        return offset

    def sample_for(self, position: float, size: int) -> TrainingSample | None:
        """Training sample drawn at ``position``/``size``; needs ``keep_samples``."""

        return self._index.get(position, size)


def run_pipeline(
    config: Mapping[str, object],
    *,
    telemetry: Optional[TelemetrySink] = None,
    cancel: CancellationToken | None = None,
) -> RunResult:
    data_cfg = dict(config.get("data", {}))
    model_cfg = dict(config.get("model", {}))
    train_cfg = dict(config.get("train", {}))

    geometry = FrameGeometry(int(data_cfg.get("width", 200)), int(data_cfg.get("height", 80)))
    context = RasterContext(
        geometry,
        grayscale=bool(data_cfg.get("grayscale", True)),
        edge_filter=bool(data_cfg.get("edge_filter", True)),
    )
    renderer = SilhouetteRenderer(geometry, context)
    sizes = _build_grid(data_cfg.get("sizes")) or default_sizes()
    positions = _build_grid(data_cfg.get("positions")) or default_positions(geometry.width)

    dims = _build_dims(model_cfg, geometry)
    seed = train_cfg.get("seed")
    seed = int(seed) if seed is not None else None
    network = NeuralNetwork(
        dims,
        learning_rate=float(model_cfg.get("learning_rate", DEFAULT_LEARNING_RATE)),
        seed=seed,
    )
    max_epochs = train_cfg.get("max_epochs")
    policy = ConvergencePolicy(
        max_epochs=int(max_epochs) if max_epochs is not None else None,
        tolerance=TolerancePolicy(**dict(train_cfg.get("tolerance", {}))),
    )

    run_dir = _resolve_run_dir(train_cfg)
    run_dir.mkdir(parents=True, exist_ok=True)
    model_path = Path(train_cfg.get("model_path") or run_dir / "model.ai")

    _print_startup_summary(
        dims=dims,
        samples=len(sizes) * len(positions),
        learning_rate=network.learning_rate,
        max_epochs=policy.max_epochs,
        model_path=model_path,
        param_count=network.parameter_count(),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    log = TelemetryLog(run_dir / "telemetry.log", echo=bool(train_cfg.get("echo", False)))

    brain = TargetBrain(
        network,
        renderer,
        model_path=model_path,
        reuse_model=bool(train_cfg.get("reuse_model", True)),
        policy=policy,
        sizes=sizes,
        positions=positions,
        callbacks=[jsonl, csv_sink, plots],
        telemetry=_tee(log, telemetry),
        cancel=cancel,
        accept_exhausted=bool(train_cfg.get("accept_exhausted", False)),
    )
    plots.close()

    converged = brain.loaded or bool(brain.result is not None and brain.result.converged)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=_safe_config(config, dims),
        outcome={
            "loaded": brain.loaded,
            "converged": converged,
            "epochs": brain.epochs,
            "model_path": str(model_path),
        },
    )
    (run_dir / "config.json").write_text(json.dumps(_safe_config(config, dims), indent=2))

    return RunResult(
        epochs=brain.epochs,
        converged=converged,
        loaded=brain.loaded,
        model_path=str(model_path),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
    )


def build_brain(config: Mapping[str, object]) -> TargetBrain:
    """Load the model a previous :func:`run_pipeline` saved for ``config``."""

    data_cfg = dict(config.get("data", {}))
    model_cfg = dict(config.get("model", {}))
    train_cfg = dict(config.get("train", {}))
    geometry = FrameGeometry(int(data_cfg.get("width", 200)), int(data_cfg.get("height", 80)))
    renderer = SilhouetteRenderer(
        geometry,
        RasterContext(
            geometry,
            grayscale=bool(data_cfg.get("grayscale", True)),
            edge_filter=bool(data_cfg.get("edge_filter", True)),
        ),
    )
    network = NeuralNetwork(_build_dims(model_cfg, geometry))
    model_path = Path(train_cfg.get("model_path") or _resolve_run_dir(train_cfg) / "model.ai")
    return TargetBrain(network, renderer, model_path=model_path, allow_training=False)


def _tee(*sinks: Optional[TelemetrySink]) -> TelemetrySink:
    active = [sink for sink in sinks if sink is not None]

    def _emit(line: str) -> None:
        for sink in active:
            sink(line)

    return _emit


def _build_grid(grid: object) -> List[float]:
    if grid is None:
        return []
    if isinstance(grid, Mapping):
        return value_grid(float(grid["start"]), float(grid["stop"]), float(grid.get("step", 1)))
    return [float(v) for v in grid]  # type: ignore[union-attr]


def _build_dims(model_cfg: Mapping[str, object], geometry: FrameGeometry) -> List[int]:
    dims = [geometry.pixels]
    dims.extend(int(h) for h in model_cfg.get("hidden", [5]))
    dims.append(1)
    return dims


def _resolve_run_dir(train_cfg: Mapping[str, object]) -> Path:
    if train_cfg.get("run_dir"):
        return Path(train_cfg["run_dir"])
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp


def _safe_config(config: Mapping[str, object], dims: Iterable[int]) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config))
    copied.setdefault("model", {})["layer_dims"] = list(dims)
    return copied


def _print_startup_summary(
    *,
    dims: Sequence[int],
    samples: int,
    learning_rate: float,
    max_epochs: int | None,
    model_path: Path,
    param_count: int,
) -> None:
    print("=== targetnet run ===")
    print(f"Topology      : {list(dims)}")
    print(f"Samples       : {samples}")
    print(f"Learning rate : {learning_rate}")
    print(f"Max epochs    : {max_epochs if max_epochs is not None else 'unbounded'}")
    print(f"Model file    : {model_path}")
    print(f"Parameters    : {param_count}")
    print("=====================")


__all__ = [
    "FrameCollaborator",
    "TargetBrain",
    "build_brain",
    "load_preset",
    "read_config_file",
    "presets",
    "run_pipeline",
]
