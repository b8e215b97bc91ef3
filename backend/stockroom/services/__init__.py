"""
Service Layer - Business Logic

Services orchestrate repositories and connectors.
"""
