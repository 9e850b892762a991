"""Command line entry point for training and probing the target-offset network."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from targetnet.core.errors import TargetNetError
from targetnet.training import pipelines


def _format_result(result, probe: dict | None = None) -> str:
    payload = {
        "epochs": result.epochs,
        "converged": result.converged,
        "loaded": result.loaded,
        "model": result.model_path,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if probe is not None:
        payload["probe"] = probe
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="camera-200x80",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument("--seed", type=int, help="Seed for parameter initialisation")
    parser.add_argument(
        "--max-epochs",
        type=int,
        help="Stop after this many epochs even if not every sample is in tolerance",
    )
    parser.add_argument(
        "--accept-exhausted",
        action="store_true",
        help="Keep and save the best parameters when --max-epochs is reached",
    )
    parser.add_argument("--model-path", type=Path, help="Where the model file lives")
    parser.add_argument("--run-dir", type=Path, help="Directory for run artifacts")
    parser.add_argument(
        "--retrain",
        action="store_true",
        help="Ignore an existing model file and train from scratch",
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a training curve PNG"
    )
    parser.add_argument(
        "--echo", action="store_true", help="Print telemetry lines while training"
    )
    parser.add_argument(
        "--probe",
        nargs=2,
        type=float,
        metavar=("SIZE", "POSITION"),
        help="After training, predict the column of a synthetic target",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> dict:
    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = pipelines.read_config_file(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.max_epochs is not None:
        train_cfg["max_epochs"] = int(args.max_epochs)
    if args.accept_exhausted:
        train_cfg["accept_exhausted"] = True
    if args.model_path is not None:
        train_cfg["model_path"] = str(args.model_path)
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    if args.retrain:
        train_cfg["reuse_model"] = False
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.echo:
        train_cfg["echo"] = True
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = resolve_config(args)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    try:
        result = pipelines.run_pipeline(config)
        probe = None
        if args.probe:
            size, position = args.probe
            brain = pipelines.build_brain(config)
            features = brain.renderer.synthesize(size, position)
            probe = {"size": size, "position": position, "predicted": brain.predict(features)}
    except TargetNetError as exc:
        raise SystemExit(f"targetnet: {exc}") from exc

    print(_format_result(result, probe))


if __name__ == "__main__":
    main()
