"""posts/ -- Post persistence and validation for PostGate.

Layer rule: posts/ imports only stdlib, third-party libraries and auth.errors.
Ownership checks and authentication happen in api/, not here.
"""
