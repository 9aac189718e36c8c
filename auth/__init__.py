"""auth/ -- Identity reconciliation and session policy for AdminDesk.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or catalog/.
api/ and web/ import from auth/, not the other way around.
"""
