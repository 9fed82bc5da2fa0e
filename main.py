from fastapi import FastAPI

from db import init_db
from routes import budget, cron, forecast, recurring

app = FastAPI(title="Budget Forecast Engine")


@app.on_event("startup")
def startup():
    init_db()


app.include_router(forecast.router)
app.include_router(budget.router)
app.include_router(cron.router)
app.include_router(recurring.router)


@app.get("/health")
def health():
    return {"status": "ok"}
