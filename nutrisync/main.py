from fastapi import FastAPI

from nutrisync.api import analysis, analysis_sse

app = FastAPI(title="NutriSync Meal Analysis", version="0.1.0")


# Include routers
app.include_router(analysis.router)
app.include_router(analysis_sse.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
