"""auth/ -- Credential lifecycle and session state for the login service.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
