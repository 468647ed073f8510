from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, SessionLocal, get_settings
from api import board, claims, websocket
from core.unit_store import UnitStore
from core.change_notifier import notifier

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables and provision the 30 units
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        UnitStore.ensure_units(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Khatam Tracker API",
    description="Backend API for collaborative monthly Khatam tracking",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(board.router)
app.include_router(claims.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Khatam Tracker API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy", "subscribers": notifier.subscriber_count()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
