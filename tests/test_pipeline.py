import json
from pathlib import Path

import numpy as np
import pytest

from targetnet.core.errors import (
    ConfigurationError,
    MaxEpochsExceeded,
    PersistenceLoadError,
)
from targetnet.core.network import NeuralNetwork
from targetnet.reporting.telemetry import TelemetryLog
from targetnet.steering import HeadingLock
from targetnet.training import pipelines
from targetnet.training.convergence import ConvergencePolicy
from targetnet.vision.raster import FrameGeometry
from targetnet.vision.silhouette import SilhouetteRenderer

GEOMETRY = FrameGeometry(24, 8)
POSITIONS = [4.0, 8.0, 12.0, 16.0]


def _brain(tmp_path, dims=None, **kwargs):
    kwargs.setdefault("policy", ConvergencePolicy(max_epochs=2))
    kwargs.setdefault("accept_exhausted", True)
    network = NeuralNetwork(dims or [GEOMETRY.pixels, 3, 1], seed=0)
    return pipelines.TargetBrain(
        network,
        SilhouetteRenderer(GEOMETRY),
        model_path=tmp_path / "model.ai",
        sizes=[16],
        positions=POSITIONS,
        **kwargs,
    )


def test_brain_trains_then_reuses_saved_model(tmp_path):
    log = TelemetryLog()
    trained = _brain(tmp_path, telemetry=log)
    assert not trained.loaded
    assert trained.epochs == 2
    assert (tmp_path / "model.ai").exists()
    assert log.lines[0] == ">> CREATING TRAINING DATA"
    assert ">> TRAINING AI MODEL" in log.lines
    assert log.lines[-1] == ">> AI MODEL SAVED"

    reload_log = TelemetryLog()
    network = NeuralNetwork([GEOMETRY.pixels, 3, 1], seed=123)
    reloaded = pipelines.TargetBrain(
        network,
        SilhouetteRenderer(GEOMETRY),
        model_path=tmp_path / "model.ai",
        telemetry=reload_log,
    )
    assert reloaded.loaded
    assert reloaded.result is None
    assert reload_log.lines == [">> LOADED AI MODEL"]

    features = SilhouetteRenderer(GEOMETRY).synthesize(16, 12)
    assert reloaded.predict(features) == trained.predict(features)


def test_mismatched_model_file_triggers_retraining(tmp_path):
    _brain(tmp_path)
    with pytest.warns(RuntimeWarning):
        retrained = _brain(tmp_path, dims=[GEOMETRY.pixels, 4, 1])
    assert not retrained.loaded
    assert retrained.result is not None
    assert len((tmp_path / "model.ai").read_text().splitlines()) == retrained.network.parameter_count()


def test_non_finite_model_file_triggers_retraining(tmp_path):
    trained = _brain(tmp_path)
    path = tmp_path / "model.ai"
    lines = path.read_text().splitlines()
    lines[0] = "nan"
    path.write_text("\n".join(lines) + "\n")

    with pytest.warns(RuntimeWarning, match="non-finite"):
        retrained = _brain(tmp_path)
    assert not retrained.loaded
    features = SilhouetteRenderer(GEOMETRY).synthesize(16, 12)
    assert retrained.predict(features) == trained.predict(features)
    assert "nan" not in path.read_text()


def test_retrain_can_be_forced(tmp_path):
    _brain(tmp_path)
    again = _brain(tmp_path, reuse_model=False)
    assert not again.loaded


def test_unconverged_training_raises_and_does_not_save(tmp_path):
    with pytest.raises(MaxEpochsExceeded) as info:
        _brain(tmp_path, accept_exhausted=False)
    assert info.value.result.epochs == 2
    assert not (tmp_path / "model.ai").exists()


def test_renderer_must_match_input_layer(tmp_path):
    with pytest.raises(ConfigurationError):
        _brain(tmp_path, dims=[GEOMETRY.pixels + 1, 3, 1])


def test_locate_notifies_consumer_and_samples_can_be_looked_up(tmp_path):
    consumer = HeadingLock(frame_width=GEOMETRY.width)
    brain = _brain(tmp_path, consumer=consumer, keep_samples=True)
    frame = SilhouetteRenderer(GEOMETRY).render(16, 8)
    offset = brain.locate(frame, size_class=16)
    assert consumer.predictions == [(offset, 16)]

    sample = brain.sample_for(8, 16)
    assert sample is not None
    np.testing.assert_array_equal(sample.features, brain.renderer.featurize(frame))
    assert brain.sample_for(9, 16) is None


def test_samples_are_dropped_by_default(tmp_path):
    brain = _brain(tmp_path)
    assert brain.samples == []
    assert brain.sample_for(8, 16) is None


def _smoke_config(run_dir: Path) -> dict:
    config = json.loads(json.dumps(pipelines.load_preset("smoke")))
    config["train"]["run_dir"] = str(run_dir)
    return config


def test_run_pipeline_writes_artifacts(tmp_path):
    config = _smoke_config(tmp_path / "run")
    result = pipelines.run_pipeline(config)

    run_dir = tmp_path / "run"
    assert Path(result.model_path) == run_dir / "model.ai"
    assert Path(result.model_path).exists()
    assert (run_dir / "metrics.csv").exists()
    assert (run_dir / "config.json").exists()
    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [r["epoch"] for r in records] == list(range(1, result.epochs + 1))
    assert all("loss" in r and "within_tolerance" in r for r in records)

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["model"]["layer_dims"] == [24 * 8, 3, 1]
    assert manifest["outcome"]["loaded"] is False
    telemetry = (run_dir / "telemetry.log").read_text().splitlines()
    assert telemetry[0] == ">> CREATING TRAINING DATA"

    second = pipelines.run_pipeline(config)
    assert second.loaded
    assert second.epochs == 0

    brain = pipelines.build_brain(config)
    assert brain.loaded


def test_pipeline_is_deterministic(tmp_path):
    first = pipelines.run_pipeline(_smoke_config(tmp_path / "a"))
    second = pipelines.run_pipeline(_smoke_config(tmp_path / "b"))
    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()
    assert Path(first.model_path).read_text() == Path(second.model_path).read_text()


def test_build_brain_requires_a_model(tmp_path):
    with pytest.raises(PersistenceLoadError):
        pipelines.build_brain(_smoke_config(tmp_path / "empty"))


def test_presets_include_file_presets():
    names = set(pipelines.presets())
    assert {"camera-200x80", "quick-40x16", "smoke"} <= names
    assert "camera-100x40" in names
    with pytest.raises(KeyError):
        pipelines.load_preset("does-not-exist")


def test_preset_files_shadow_builtins_and_are_validated(tmp_path, monkeypatch):
    monkeypatch.setattr(pipelines, "_PRESET_DIR", tmp_path)
    (tmp_path / "smoke.json").write_text(
        json.dumps({"data": {"width": 12}, "model": {"hidden": [2]}, "train": {"seed": 3}})
    )
    (tmp_path / "notes.txt").write_text("ignored")
    assert pipelines.load_preset("smoke")["data"] == {"width": 12}
    assert "notes" not in pipelines.presets()

    (tmp_path / "broken.yaml").write_text("data: {}\nmodel: {}\n")
    with pytest.raises(ConfigurationError, match="train"):
        pipelines.load_preset("broken")

    (tmp_path / "listing.yaml").write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        pipelines.read_config_file(tmp_path / "listing.yaml")
