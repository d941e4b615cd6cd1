"""auth/ -- Authentication package for InvoiceDesk.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, invoices/, or cache/.
api/ and web/ import from auth/, not the other way around.
"""
