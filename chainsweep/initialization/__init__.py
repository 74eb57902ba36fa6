"""
Runtime initialization: logging and component wiring.
"""
