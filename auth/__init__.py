"""auth/ -- Authentication orchestration engine for the gateway.

Layer rule: auth/ imports only stdlib and third-party libraries. It does NOT import from
api/ or core/. api/ and main.py import from auth/, not the other way around.
"""
