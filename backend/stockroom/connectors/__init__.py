"""
Connectors - clients for remote sales channels
"""
