"""CLI for running an elevator bank scenario: N cars at random floors, M random riders."""
from __future__ import annotations

import argparse
import json
import logging
import random
import time
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from elevator_bank import BankConfig, Dispatcher, RideRequest

DEFAULT_CONFIG: Dict = {
    "elevator_count": 4,
    "request_count": 8,
    "settle_time": 5.0,
    "bank": {},
}


def build_dispatcher(config: Dict, rng: random.Random) -> Dispatcher:
    bank_config = BankConfig.from_dict(config.get("bank", {}))
    elevator_count = config.get("elevator_count", 4)
    initial_floors = [
        rng.randint(bank_config.min_floor, bank_config.max_floor) for _ in range(elevator_count)
    ]
    return Dispatcher.from_config(bank_config, initial_floors)


def generate_requests(config: Dict, bank_config: BankConfig, rng: random.Random) -> List[RideRequest]:
    return [
        RideRequest(
            request_id=i,
            origin=rng.randint(bank_config.min_floor, bank_config.max_floor),
            destination=rng.randint(bank_config.min_floor, bank_config.max_floor),
            has_credential=rng.random() < 0.5,
        )
        for i in range(1, config.get("request_count", 8) + 1)
    ]


def print_status(dispatcher: Dispatcher) -> None:
    print("\n[Current Status]")
    for elevator_id, floor in dispatcher.status():
        print(f"[Elevator {elevator_id}] at Floor {floor}")


def run_scenario(dispatcher: Dispatcher, requests: List[RideRequest], settle_time: float) -> Dict[str, int]:
    outcomes: Dict[str, int] = {}
    for request in requests:
        outcome = dispatcher.submit(request)
        outcomes[outcome.value] = outcomes.get(outcome.value, 0) + 1
        print(f"[Request] {request} ({outcome.value})")

    time.sleep(settle_time)

    print("\nShutting down elevator system...")
    dispatcher.shutdown()
    return outcomes


def save_results(output_path: Optional[Path], data: Dict) -> None:
    if not output_path:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(data, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("config", type=Path, nargs="?", help="Path to a JSON scenario configuration file")
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional file path to write the event log and counts as JSON",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every elevator event")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s (%(threadName)s) %(message)s",
    )

    config = json.loads(args.config.read_text()) if args.config else dict(DEFAULT_CONFIG)
    rng = random.Random(config.get("random_seed"))
    dispatcher = build_dispatcher(config, rng)
    requests = generate_requests(config, dispatcher.config, rng)

    print_status(dispatcher)
    outcomes = run_scenario(dispatcher, requests, config.get("settle_time", 5.0))
    print_status(dispatcher)

    counts = asdict(dispatcher.events.snapshot())
    results = {
        "scenario": config.get("name", args.config.stem if args.config else "default"),
        "description": config.get("description"),
        "bank": dispatcher.config.to_dict(),
        "outcomes": outcomes,
        "counts": counts,
        "events": [event.to_dict() for event in dispatcher.events.events()],
    }
    save_results(args.output, results)

    print(f"\nScenario: {results['scenario']}")
    if results["description"]:
        print(results["description"])
    print("Final counts:")
    for key, value in counts.items():
        print(f"  {key}: {value}")
    if args.output:
        print(f"Saved events to {args.output}")


if __name__ == "__main__":
    main()
