"""
Core functionality for two-steps benchmarking.

This package contains the numerical engine: the time series model, the
linear algebra kernel, the Prais-Winsten estimator, the additive Denton
smoother and the benchmark that composes them.
"""
