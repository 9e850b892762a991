import numpy as np
import pytest

from targetnet.core.errors import ConfigurationError
from targetnet.core.network import NeuralNetwork
from targetnet.core.types import Converged, Exhausted, TrainingSample
from targetnet.reporting.metrics import MetricsCapture
from targetnet.reporting.telemetry import TelemetryLog
from targetnet.training.convergence import (
    CancellationToken,
    ConvergencePolicy,
    TolerancePolicy,
)
from targetnet.training.samples import SampleIndex, synthesize_samples, value_grid
from targetnet.training.trainer import TargetScale, Trainer, predict_offset


def _conflicting_samples():
    # identical inputs with different targets can never all be in tolerance
    features = np.array([1.0, 0.0, 1.0, 0.0])
    return [
        TrainingSample(features, target=10, size_class=100),
        TrainingSample(features, target=90, size_class=100),
    ]


def test_single_sample_converges_within_tolerance():
    net = NeuralNetwork([4, 2, 1], seed=3)
    scale = TargetScale(100.0)
    sample = TrainingSample([1.0, 0.0, 1.0, 0.0], target=50, size_class=100)
    policy = ConvergencePolicy(max_epochs=5000, tolerance=TolerancePolicy(loose=5))

    result = Trainer(net, scale, policy=policy).run([sample])

    assert isinstance(result, Converged)
    assert result.converged
    assert 0 < result.epochs < 5000
    assert abs(predict_offset(net, scale, sample.features) - 50) <= 5
    assert abs(net.feed_forward(sample.features)[0] - 0.5) <= 0.055


def test_two_tier_tolerance():
    policy = TolerancePolicy(size_threshold=40, tight=2, loose=5)
    small = TrainingSample([0.0], target=100, size_class=39)
    large = TrainingSample([0.0], target=100, size_class=40)
    assert policy.for_sample(small) == 2
    assert policy.for_sample(large) == 5
    assert policy.accepts(small, 102) and not policy.accepts(small, 103)
    assert policy.accepts(large, 95) and not policy.accepts(large, 94)


def test_target_scale_rounds_to_pixels():
    scale = TargetScale(200.0)
    assert scale.normalize(50) == pytest.approx(0.25)
    assert scale.denormalize(0.2526) == 51
    with pytest.raises(ConfigurationError):
        TargetScale(0.0)


def test_epoch_cap_returns_best_parameters():
    net = NeuralNetwork([4, 3, 1], seed=0)
    capture = MetricsCapture()
    result = Trainer(
        net, TargetScale(100.0), policy=ConvergencePolicy(max_epochs=3), callbacks=[capture]
    ).run(_conflicting_samples())

    assert isinstance(result, Exhausted)
    assert result.reason == "max_epochs"
    assert result.epochs == 3
    assert len(result.history) == 3
    assert result.best_epoch == int(np.argmin(result.history)) + 1
    assert [epoch for epoch, _ in capture.history] == [1, 2, 3]
    assert all(metrics["converged"] == 0.0 for _, metrics in capture.history)
    assert all("train_loss" in metrics for _, metrics in capture.history)


def test_restored_parameters_score_the_best_recorded_loss():
    net = NeuralNetwork([4, 3, 1], seed=0)
    trainer = Trainer(net, TargetScale(100.0), policy=ConvergencePolicy(max_epochs=4))
    samples = _conflicting_samples()
    result = trainer.run(samples)

    loss, passed = trainer.evaluate(samples)
    assert loss == pytest.approx(min(result.history), abs=1e-15)
    assert loss == pytest.approx(result.history[result.best_epoch - 1], abs=1e-15)
    assert passed == trainer.leading_within_tolerance(samples)


def test_zero_epoch_cap_leaves_network_untouched():
    net = NeuralNetwork([4, 3, 1], seed=0)
    before = {k: v.copy() for k, v in net.state_dict().items()}
    result = Trainer(net, TargetScale(100.0), policy=ConvergencePolicy(max_epochs=0)).run(
        _conflicting_samples()
    )
    assert result.epochs == 0
    for key, value in net.state_dict().items():
        np.testing.assert_array_equal(value, before[key])


def test_cancellation_is_checked_between_epochs():
    token = CancellationToken()

    def _cancel_after_second(epoch, metrics):
        if epoch == 2:
            token.cancel()

    net = NeuralNetwork([4, 3, 1], seed=0)
    result = Trainer(
        net, TargetScale(100.0), callbacks=[_cancel_after_second], cancel=token
    ).run(_conflicting_samples())

    assert isinstance(result, Exhausted)
    assert result.reason == "cancelled"
    assert result.epochs == 2


def test_telemetry_is_optional_and_line_oriented():
    log = TelemetryLog()
    net = NeuralNetwork([4, 3, 1], seed=0)
    Trainer(net, TargetScale(100.0), policy=ConvergencePolicy(max_epochs=2), telemetry=log).run(
        _conflicting_samples()
    )
    assert log.lines[0] == ">> TRAINING AI MODEL"
    assert ">> EPOCH 1" in log.lines and ">> EPOCH 2" in log.lines

    silent = NeuralNetwork([4, 3, 1], seed=0)
    Trainer(silent, TargetScale(100.0), policy=ConvergencePolicy(max_epochs=2)).run(
        _conflicting_samples()
    )
    for key, value in silent.state_dict().items():
        np.testing.assert_array_equal(value, net.state_dict()[key])


def test_empty_sample_set_is_rejected():
    with pytest.raises(ConfigurationError):
        Trainer(NeuralNetwork([4, 1]), TargetScale(10.0)).run([])


def test_multi_output_network_is_rejected():
    with pytest.raises(ConfigurationError):
        Trainer(NeuralNetwork([4, 2]), TargetScale(10.0))


def test_negative_epoch_cap_is_rejected():
    with pytest.raises(ConfigurationError):
        ConvergencePolicy(max_epochs=-1)


class _StripeRenderer:
    width = 8

    def synthesize(self, size, position):
        features = np.zeros(self.width)
        features[int(position)] = 1.0
        return features


def test_synthesis_is_size_major_grid():
    log = TelemetryLog()
    samples = synthesize_samples(_StripeRenderer(), [10, 20], [0, 3, 5], telemetry=log)
    assert [(s.size_class, s.target) for s in samples] == [
        (10, 0.0),
        (10, 3.0),
        (10, 5.0),
        (20, 0.0),
        (20, 3.0),
        (20, 5.0),
    ]
    assert log.lines[0] == ">> CREATING TRAINING DATA"
    index = SampleIndex(samples)
    assert len(index) == 6
    assert index.get(3, 20) is samples[4]
    assert index.get(4, 20) is None


def test_samples_are_immutable():
    sample = TrainingSample([1, 0, 1], target=2, size_class=30)
    with pytest.raises(ValueError):
        sample.features[0] = 0.0
    assert sample.features.dtype == np.float64


def test_value_grid_is_half_open():
    assert value_grid(25, 175, 5)[0] == 25.0
    assert value_grid(25, 175, 5)[-1] == 170.0
    assert len(value_grid(25, 175, 5)) == 30
    with pytest.raises(ValueError):
        value_grid(0, 10, 0)
