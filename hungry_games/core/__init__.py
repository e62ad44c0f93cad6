"""Engine primitives (weighted draws, narration, notification records).

Kept free of FastAPI and Redis concerns so the simulator and tests can use them directly.
"""
