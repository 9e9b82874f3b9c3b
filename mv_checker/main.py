#!/usr/bin/env python3

import argparse
import logging
import sys

from cassandra import DriverException
from cassandra.cluster import NoHostAvailable

from .config import Settings
from .runner import Runner


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr, stdout is left for the operator."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
    )


def load_config(args) -> Settings:
    config = Settings()
    if args.config:
        config.load(args.config)
    else:
        config.apply_env_overrides()
        config.validate()

    if args.settle_delay is not None:
        config.verifier.settle_delay = args.settle_delay
    if args.max_passes is not None:
        config.verifier.max_passes = args.max_passes
    if args.exit_on_match:
        config.verifier.exit_on_match = True
    config.verifier.validate()
    return config


def exit_code(report, interrupted=False) -> int:
    # SIGINT/SIGTERM is the normal way to end an endless run, the last pass
    # only decides the status when max_passes or exit_on_match ended the loop
    if interrupted or report is None:
        return 0
    if report.all_matched:
        return 0
    return 1


def run_all(args, config: Settings):
    set_logging_config('mvcheck', log_level_str=config.log_level)
    runner = Runner(config)
    report = runner.run(with_writes=True)
    return exit_code(report, interrupted=runner.interrupted)


def run_verify(args, config: Settings):
    set_logging_config('mvverify', log_level_str=config.log_level)
    runner = Runner(config)
    report = runner.run(with_writes=False)
    return exit_code(report, interrupted=runner.interrupted)


def run_setup_schema(args, config: Settings):
    set_logging_config('mvschema', log_level_str=config.log_level)
    runner = Runner(config)
    try:
        runner.connect()
        runner.setup_schema()
    finally:
        runner.close()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description='Checks that a materialized view converges to its base table on every node',
    )
    parser.add_argument(
        "mode", help="run mode",
        type=str,
        choices=["run_all", "verify", "setup_schema"])
    parser.add_argument("--config", help="config file path, built-in defaults when omitted", default=None, type=str)
    parser.add_argument(
        "--settle-delay", type=float, default=None,
        help="seconds to wait before every verification pass",
    )
    parser.add_argument(
        "--max-passes", type=int, default=None,
        help="stop after this many verification passes (0 - run until interrupted)",
    )
    parser.add_argument(
        "--exit-on-match", action="store_true", default=False,
        help="stop verification after the first pass where every node matches",
    )
    args = parser.parse_args()

    config = load_config(args)

    modes = {
        'run_all': run_all,
        'verify': run_verify,
        'setup_schema': run_setup_schema,
    }
    try:
        code = modes[args.mode](args, config)
    except (NoHostAvailable, DriverException) as e:
        logging.critical(f'cannot work with the cluster: {e}')
        sys.exit(1)
    sys.exit(code)


if __name__ == '__main__':
    main()
