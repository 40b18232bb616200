"""
Stateless helpers: coordinate parsing, route codes and distance estimation.
"""
