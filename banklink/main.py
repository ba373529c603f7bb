from fastapi import FastAPI
from banklink.app.routes import bank_connections

app = FastAPI(
    title="Banklink API",
    description="Open-banking account linking and transaction sync",
    version="1.0.0"
)

app.include_router(bank_connections.router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {"status": "healthy"}
