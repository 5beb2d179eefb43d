#!/usr/bin/env python3
"""
Headless Simulation CLI

Run a single sonar simulation without a display.

Usage:
    python headless.py                                  # Default scenario
    python headless.py --seed 7 --duration 120          # Longer run
    python headless.py --scenario scenarios/layer_hunter.yaml

Examples:
    # Ping every 15 s and focus classification on one target
    python headless.py --ping-every 15 --select target-02

    # Seamount ridge blocking part of the field
    python headless.py --terrain ridge --verbose
"""

import argparse
import logging
import os
import sys

import yaml

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sonarsim.simulation.headless_runner import TERRAIN_PRESETS, HeadlessConfig, HeadlessRunner


def main():
    parser = argparse.ArgumentParser(description="Run headless sonar simulation")

    # Scenario
    parser.add_argument("--scenario", type=str, default=None, help="YAML scenario file")
    parser.add_argument("--seed", type=int, default=12345, help="Random seed (default: 12345)")
    parser.add_argument(
        "--terrain",
        choices=TERRAIN_PRESETS,
        default="none",
        help="Seabed preset (default: none)",
    )

    # Simulation parameters
    parser.add_argument(
        "--duration", type=float, default=60.0, help="Simulated duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--ping-every",
        type=float,
        default=0.0,
        help="Active ping interval in seconds, 0 for passive only (default: 0)",
    )
    parser.add_argument(
        "--select", type=str, default=None, help="Target id under operator focus"
    )

    # Options
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.scenario and not os.path.exists(args.scenario):
        print(f"Error: Scenario file not found: {args.scenario}")
        return 1

    try:
        config = HeadlessConfig(
            seed=args.seed,
            duration_s=args.duration,
            ping_interval_s=args.ping_every,
            selected_target_id=args.select,
            scenario_path=args.scenario,
            terrain=args.terrain,
        )
        runner = HeadlessRunner(config)
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}")
        return 1

    print("=" * 72)
    print("SonarSim Headless Mode")
    print("=" * 72)
    print(f"Scenario: {runner.scenario_id}")
    print(f"Seed: {config.seed}")
    print(f"Duration: {config.duration_s:.1f} s")
    print(f"Terrain: {config.terrain}")
    if config.ping_interval_s > 0:
        print(f"Ping interval: {config.ping_interval_s:.1f} s")
    if config.selected_target_id:
        print(f"Selected: {config.selected_target_id}")
    print("=" * 72)

    result = runner.run()

    print("\n--- TARGETS ---")
    print(f"{'ID':<10} {'TYPE':<11} {'STATE':<10} {'SNR':>6} {'BRG':>6} {'RNG':>7}  CLASS")
    for t in result.targets:
        label = t.classification
        if t.identified_class:
            label = f"{label} ({t.identified_class})"
        print(
            f"{t.target_id:<10} {t.target_type:<11} {t.state:<10} "
            f"{t.snr:6.1f} {t.bearing:6.1f} {t.range:7.1f}  {label}"
        )

    print("\n--- RESULTS ---")
    print(f"Ticks: {result.tick_count:,}")
    print(f"Tracked: {result.tracked_count} / {len(result.targets)}")
    print(f"Contacts: {result.contacts}")
    print(f"Pings: {result.pings}")
    for name, count in sorted(result.event_counts.items()):
        print(f"  {name}: {count:,}")
    if result.completed_objectives:
        print(f"Objectives: {', '.join(result.completed_objectives)}")
    print(f"Runtime: {result.runtime_s * 1000:.1f} ms")
    print("=" * 72)

    return 0


if __name__ == "__main__":
    sys.exit(main())
