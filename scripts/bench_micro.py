from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from statistics import mean, pstdev

import numpy as np

FRAMES = {"40x16": (40, 16), "100x40": (100, 40), "200x80": (200, 80)}


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.1f} ± {sd:.1f}"


def _time_calls(fn, inputs, repeats):
    start = time.perf_counter()
    for i in range(repeats):
        fn(inputs[i % len(inputs)])
    return (time.perf_counter() - start) / repeats * 1e6


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    from targetnet.core.network import NeuralNetwork

    ap = argparse.ArgumentParser()
    ap.add_argument("--frames", nargs="+", choices=sorted(FRAMES), default=["40x16", "200x80"])
    ap.add_argument("--hidden", type=int, default=5)
    ap.add_argument("--seeds", nargs="+", type=int, default=[123, 124, 125])
    ap.add_argument("--repeats", type=int, default=200)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for frame in args.frames:
        width, height = FRAMES[frame]
        for s in args.seeds:
            rng = np.random.default_rng(s)
            net = NeuralNetwork([width * height, args.hidden, 1], seed=s)
            inputs = (rng.random((8, width * height)) < 0.05).astype(np.float64)
            forward_us = _time_calls(net.feed_forward, inputs, args.repeats)
            backprop_us = _time_calls(lambda x: net.back_propagate(x, [0.5]), inputs, args.repeats)
            runs.append(
                {"frame": frame, "seed": s, "forward_us": forward_us, "backprop_us": backprop_us}
            )
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["frame", "seeds", "repeats", "forward_us_mu", "backprop_us_mu"])
        for frame in args.frames:
            fw = [r["forward_us"] for r in runs if r["frame"] == frame]
            bp = [r["backprop_us"] for r in runs if r["frame"] == frame]
            w.writerow([frame, len(fw), args.repeats, f"{mean(fw):.2f}", f"{mean(bp):.2f}"])

    md_path = out / "bench_micro.md"
    lines = []
    lines.append("### Micro-Benchmark: per-sample forward and backprop cost")
    lines.append("")
    lines.append(
        f"- Seeds: `{args.seeds}`; Hidden: `{args.hidden}`; Repeats: `{args.repeats}`"
    )
    lines.append("")
    lines.append("| Frame | Forward µs (μ±σ) | Backprop µs (μ±σ) | Seeds |")
    lines.append("|---|---:|---:|---:|")
    for frame in args.frames:
        fw = [r["forward_us"] for r in runs if r["frame"] == frame]
        bp = [r["backprop_us"] for r in runs if r["frame"] == frame]
        lines.append(f"| {frame} | {_fmt_mu_sigma(fw)} | {_fmt_mu_sigma(bp)} | {len(fw)} |")
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
