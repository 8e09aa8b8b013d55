"""
===============================================================================
EFFICIENT - Numerical Constants and Run Defaults
===============================================================================
Central repository for the constants shared by the estimators, the cache and
the command-line entry point.
===============================================================================
"""

# =============================================================================
# ESTIMATOR TARGET
# =============================================================================
TRUE_INTEGRAL = 1.0 / 3.0               # integral of x^2 over [0, 1]

# =============================================================================
# RUN DEFAULTS
# =============================================================================
DEFAULT_SEED = 42
DEFAULT_SAMPLES = 1_000_000
DEFAULT_BATCH_SIZE = 1_000_000          # rows of (u1, u2); 16 MB per batch
DEFAULT_WORKERS = 4

# =============================================================================
# CONVERGENCE STUDY
# =============================================================================
DEFAULT_SAMPLE_SIZES = (1_000, 10_000, 100_000, 1_000_000)
DEFAULT_TRIALS = 20
CONFIDENCE_LEVEL = 0.99                 # two-sided binomial band
