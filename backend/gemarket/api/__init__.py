"""
FastAPI read layer for the GE Market data.

Provides REST endpoints for:
- Items, prices and trade analytics
- Cost-efficient equipment per slot
- Healing efficiency of consumables
- Pipeline run history and alerts
"""
