from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

import config  # noqa: F401  (loads backend/.env before anything reads the environment)
from database import engine, Base
import models  # noqa: F401  (registers tables on Base)
from llm_service import llm_service
from routes import turns_router


# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Turn Engine API",
    description="Stateful multi-axis conversational turn engine",
    version="1.0.0",
)

# CORS settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "null",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(turns_router)


@app.middleware("http")
async def utf8_charset_middleware(request: Request, call_next):
    response = await call_next(request)
    ct = response.headers.get("content-type", "")
    if "application/json" in ct and "charset" not in ct:
        response.headers["content-type"] = ct + "; charset=utf-8"
    return response


@app.get("/")
async def root():
    return {
        "message": "Turn Engine API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "model": llm_service.config.model_name,
        "openai_compatible": llm_service.is_openai_compatible(),
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
