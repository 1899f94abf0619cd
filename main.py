from fastapi import FastAPI
from app.logging_config import setup_logging
from app.routers import webhook, reports

setup_logging()

app = FastAPI(title="Rescate Animal")

# Include Routers
app.include_router(webhook.router)
app.include_router(reports.router)

@app.get("/")
def read_root():
    return {"message": "Rescate Animal API is ready"}
