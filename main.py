import uvicorn
from fastapi import FastAPI
from app.api.routers import upload
from app.api.errors import setup_error_handlers
from app.core.config import settings

# Create FastAPI application
app = FastAPI(title=settings.PROJECT_NAME)

# Include routers
app.include_router(upload.router, prefix=settings.API_PREFIX)

# Turn upload failures into 500 responses with diagnostics
setup_error_handlers(app)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8005, reload=True)
