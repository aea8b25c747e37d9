"""
Craftshop inventory/CRM backend.

This package provides a FastAPI application over a small document store
(inventory, customers, sales, gallery, ideas), a cookie-backed admin
session and an out-of-band backup job.
"""
