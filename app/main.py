from fastapi import FastAPI

from app.core.config import settings
from app.core.logging_config import configure_logging
from app.routes import tournament_routes

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.APP_NAME)

# Include routers
app.include_router(tournament_routes.router, prefix=f"{settings.API_PREFIX}/tournaments", tags=["Tournaments"])


@app.get("/")
async def read_root():
    return {"message": settings.APP_NAME}
