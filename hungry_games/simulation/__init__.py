"""Day simulation: event selection, team coordination, effects and reveal stepping.

Every function here takes an injected `random.Random`; nothing reads the clock or global randomness.
"""
