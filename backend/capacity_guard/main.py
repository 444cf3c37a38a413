import logging

from fastapi import FastAPI

from .routers import hooks, slots
from .utils.request_context import request_id_middleware

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Child Capacity Guard")

app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(hooks.router)
app.include_router(slots.router)
