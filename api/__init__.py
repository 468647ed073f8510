"""
API layer

FastAPI routers: board, claims, websocket
"""
