"""auth/ -- Authentication and authorization package for AuthLedger.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and the
ledger/ write side. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
