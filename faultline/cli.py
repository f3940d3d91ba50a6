"""Plan a fault-injection scenario from the command line.

Prints the identity groups, voting weights and nemesis schedule a run with
the given options would use, without touching a cluster.
"""

import argparse
import logging
import sys

from .nemesis.errors import ScenarioError
from .nemesis.profiles import NemesisProfile
from .scenario import DEFAULT_NODES, ScenarioConfig, build_scenario
from .workload import WorkloadKind


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plan a BFT fault-injection scenario.")
    parser.add_argument("--workload", choices=[w.value for w in WorkloadKind],
                        default=WorkloadKind.CAS_REGISTER.value,
                        help="Test workload to run. Default: cas-register")
    parser.add_argument("--nemesis", choices=[p.value for p in NemesisProfile],
                        default=NemesisProfile.NONE.value,
                        help="Nemesis profile to use. Default: none")
    parser.add_argument("--nodes", default=",".join(DEFAULT_NODES),
                        help="Comma-separated node names")
    parser.add_argument("--dup-validators", action="store_true",
                        help="Have multiple validators share the same key")
    parser.add_argument("--super-dup-validators", action="store_true",
                        help="Give duplicate validators just shy of 2/3 of the voting weight")
    parser.add_argument("--time-limit", type=float, default=60.0,
                        help="Seconds to run the workload. Default: 60")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = ScenarioConfig(
            workload=args.workload,
            nemesis=args.nemesis,
            nodes=[n.strip() for n in args.nodes.split(",") if n.strip()],
            dup_validators=args.dup_validators or args.super_dup_validators,
            super_dup_validators=args.super_dup_validators,
            time_limit=args.time_limit,
            seed=args.seed,
        )
        scenario = build_scenario(config)
    except ScenarioError as e:
        logging.getLogger(__name__).error("Invalid scenario: %s", e)
        return 2

    print(scenario.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
