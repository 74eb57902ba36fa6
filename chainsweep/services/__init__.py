"""
Service layer: watchers, sweeps, orchestration and prices.
"""
