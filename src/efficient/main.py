#!/usr/bin/env python3
"""
===============================================================================
EFFICIENT - MAIN ENTRY POINT
===============================================================================
Runs the Monte Carlo area estimators for the integral of x^2 over [0, 1]
and reports each estimate, its error against 1/3 and the time it took.

USAGE:
    efficient                              # All methods, config defaults
    efficient --method vectorized          # One method
    efficient --samples 1e7 --seed 7       # Override config values
    efficient --method parallel --workers 8
    efficient --convergence                # Error vs sample size table

CONFIGURATION:
    config/estimator_config.yaml           - default run configuration
    --config PATH                          - alternative YAML file

DEPENDENCIES:
    numpy, scipy, pandas, pyyaml
===============================================================================
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import yaml

from efficient.core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_SAMPLE_SIZES,
    DEFAULT_SAMPLES,
    DEFAULT_SEED,
    DEFAULT_TRIALS,
    DEFAULT_WORKERS,
    TRUE_INTEGRAL,
)
from efficient.core.errors import InvalidArgumentError, check_sample_count, check_seed
from efficient.performance.stopwatch import Stopwatch
from efficient.simulation.monte_carlo import (
    convergence_study,
    estimate_iterative,
    estimate_mean_value,
    estimate_parallel,
    estimate_vectorized,
)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / 'config' / 'estimator_config.yaml'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

METHODS = ('iterative', 'vectorized', 'mean-value', 'parallel')

DEFAULT_CONFIG: Dict[str, Any] = {
    'estimator': {
        'samples': DEFAULT_SAMPLES,
        'seed': DEFAULT_SEED,
        'batch_size': DEFAULT_BATCH_SIZE,
        'workers': DEFAULT_WORKERS,
    },
    'convergence': {
        'sample_sizes': list(DEFAULT_SAMPLE_SIZES),
        'trials': DEFAULT_TRIALS,
    },
}

logger = logging.getLogger('EFFICIENT_MAIN')


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure root logging to stdout and, optionally, a log file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT,
                        handlers=handlers)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load run configuration from YAML, layered over DEFAULT_CONFIG.

    Args:
        config_path: Path to a YAML file.  Defaults to
            config/estimator_config.yaml; if that default is absent the
            built-in defaults are used.

    Returns:
        Configuration dictionary with 'estimator' and 'convergence' blocks.

    Raises:
        FileNotFoundError: an explicitly given path does not exist.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.info("No config file found; using built-in defaults")
            return copy.deepcopy(DEFAULT_CONFIG)
        config_path = str(DEFAULT_CONFIG_PATH)

    logger.info(f"Loading configuration from: {config_path}")
    with open(config_path, 'r') as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise InvalidArgumentError(f"{config_path}: top level must be a mapping")
    return _merge(DEFAULT_CONFIG, loaded)


def run_estimators(config: Dict[str, Any], methods: List[str]) -> pd.DataFrame:
    """
    Run each requested estimator once and tabulate the outcome.

    Every method is reseeded from the configured seed, so the iterative and
    vectorised rows use the same draws and report the same estimate.

    Returns:
        DataFrame indexed by method with columns estimate, abs_error,
        elapsed_s.

    Raises:
        InvalidArgumentError: samples, seed or batch_size is out of range
            or of the wrong type.
    """
    est_cfg = config['estimator']
    n = check_sample_count(est_cfg['samples'], name='samples')
    seed = check_seed(est_cfg['seed'])
    batch_size = check_sample_count(est_cfg['batch_size'], name='batch_size')

    runners = {
        'iterative': lambda: estimate_iterative(n, np.random.default_rng(seed)),
        'vectorized': lambda: estimate_vectorized(
            n, np.random.default_rng(seed), batch_size=batch_size),
        'mean-value': lambda: estimate_mean_value(
            n, np.random.default_rng(seed), batch_size=batch_size),
        'parallel': lambda: estimate_parallel(
            n, num_workers=est_cfg['workers'], seed=seed, batch_size=batch_size),
    }

    logger.info("=" * 60)
    logger.info(f"ESTIMATING INTEGRAL OF x^2 ON [0, 1]  (N = {n:,}, seed = {seed})")
    logger.info("=" * 60)

    rows = []
    for method in methods:
        with Stopwatch() as sw:
            estimate = runners[method]()
        error = abs(estimate - TRUE_INTEGRAL)
        logger.info(f"  {method:<12} estimate={estimate:.6f}  |error|={error:.2e}  "
                    f"time={sw.elapsed:.3f}s")
        rows.append({'method': method, 'estimate': estimate,
                     'abs_error': error, 'elapsed_s': sw.elapsed})

    return pd.DataFrame(rows).set_index('method')


def run_convergence(config: Dict[str, Any]) -> pd.DataFrame:
    """Run the convergence study from the 'convergence' config block."""
    conv_cfg = config['convergence']
    logger.info("=" * 60)
    logger.info("CONVERGENCE STUDY")
    logger.info("=" * 60)

    table = convergence_study(
        sample_sizes=conv_cfg['sample_sizes'],
        num_trials=conv_cfg['trials'],
        seed=config['estimator']['seed'],
    )
    logger.info("\n%s", table.to_string())
    return table


def _count(text: str):
    """argparse type for sample counts; accepts '1000000' and '1e6'."""
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            raise argparse.ArgumentTypeError(f"not a number: {text!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='efficient',
        description='Monte Carlo estimate of the integral of x^2 over [0, 1]',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  efficient                              All methods
  efficient --method iterative           Element-at-a-time loop only
  efficient --samples 1e7                Ten million draws
  efficient --method parallel --workers 8
  efficient --convergence                Error vs sample size
        """
    )

    parser.add_argument('--config', type=str, default=None,
                        help='Path to run config YAML')
    parser.add_argument('--samples', type=_count, default=None,
                        help='Number of draw pairs (overrides config)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed (overrides config)')
    parser.add_argument('--method', choices=METHODS + ('all',), default='all',
                        help='Estimator to run (default: all)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes for --method parallel')
    parser.add_argument('--convergence', action='store_true',
                        help='Also run the convergence study')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write the log to this file')
    parser.add_argument('--log-level', default='INFO',
                        choices=('DEBUG', 'INFO', 'WARNING', 'ERROR'),
                        help='Logging level (default: INFO)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point. Parses command line arguments and runs the requested
    estimator(s).

    Returns:
        Process exit status: 0 on success, 1 if the config file is missing,
        2 on an invalid argument.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error(f"Config file not found: {e.filename}")
        return 1
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid config: {e}")
        return 2

    est_cfg = config['estimator']
    if args.samples is not None:
        est_cfg['samples'] = args.samples
    if args.seed is not None:
        est_cfg['seed'] = args.seed
    if args.workers is not None:
        est_cfg['workers'] = args.workers

    methods = list(METHODS) if args.method == 'all' else [args.method]

    try:
        run_estimators(config, methods)
        if args.convergence:
            run_convergence(config)
    except ValueError as e:
        # InvalidArgumentError, plus numpy's own seed validation
        logger.error(f"Invalid argument: {e}")
        return 2

    return 0


if __name__ == '__main__':
    sys.exit(main())
