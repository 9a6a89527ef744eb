"""ledger/ -- Append-only login-attempt audit log and its statistics.

Layer rule: ledger/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or auth/. auth/flow.py writes to the ledger and
api/ reads from it, not the other way around.
"""
