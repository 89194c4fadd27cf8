"""
                        Services Module

Business logic behind the API routes.

Services:
    - pricing: subtotal / platform fee / total arithmetic
    - lifecycle: order status and payment status state machine
    - access: request identity resolution and ownership checks
    - accounts: registration, login, password changes
    - restaurants: public listing and detail
    - orders: booking creation, listing, updates
    - reviews / favorites: per-user restaurant feedback and bookmarks
"""
