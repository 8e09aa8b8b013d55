"""
===============================================================================
EFFICIENT - Simulation Module
===============================================================================
Monte Carlo estimators for the area under a curve on [0, 1].

Modules:
    monte_carlo -- Iterative, vectorised and partitioned hit-or-miss
                   estimators, mean-value estimator, convergence study
===============================================================================
"""
