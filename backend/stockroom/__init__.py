"""
Stockroom - inventory tracking and sales backend with Shopify catalog sync
"""
