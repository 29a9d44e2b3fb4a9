# src/jewelrate/adapters/__init__.py
"""
Adapters Layer - Infrastructure and External Integrations

This package contains adapters for external systems:
- Spot price providers (live metal rate feed)
- Persistence (relational store)
- Payment gateway client
- HTTP API
"""
