"""
HTTP control plane for the consolidation scheduler.

Run with: uvicorn memory_consolidation.api.main:app
"""
