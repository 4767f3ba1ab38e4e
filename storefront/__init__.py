"""
Storefront service.

A small FastAPI application backing an e-commerce demo: a product
catalogue with search, filtering, sorting and pagination, a single
process-wide session store with user/admin roles, and admin endpoints
for products, orders and users held in in-memory repositories.
"""
