"""auth/ -- Credential checking and session tokens for the ESCC Report API.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/ or store/; the store is injected as a
CredentialStore. api/ imports from auth/, not the other way around.
"""
