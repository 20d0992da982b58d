# api/__init__.py
"""
API Routers Package

- search: /api/hotels/* (stream, two-stage, legacy, ai-insights, stored search)
- health: /health
- sse: Server-Sent Events framing
"""
