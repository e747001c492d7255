# onetask/main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onetask.config import FRONTEND_ORIGIN

logger = logging.getLogger("onetask")

app = FastAPI(title="OneTask API")

# ---------------- CORS ----------------
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if FRONTEND_ORIGIN:
    origins.append(FRONTEND_ORIGIN)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- DATABASE INIT ----------------
from onetask.database import Base, engine  # noqa: E402
from onetask.models.kv_entry import KVEntry  # noqa: E402,F401

Base.metadata.create_all(bind=engine)
logger.info("database_ready")

# ---------------- ROUTERS ----------------
from onetask.auth.auth_router import router as auth_router  # noqa: E402
from onetask.data.data_router import router as data_router  # noqa: E402
from onetask.project.project_router import router as project_router  # noqa: E402
from onetask.task.task_router import router as task_router  # noqa: E402
from onetask.users.users_router import router as users_router  # noqa: E402

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(data_router)
app.include_router(project_router)
app.include_router(task_router)


# ---------------- HEALTH ----------------
@app.get("/api/health")
def health():
    return {"status": "healthy"}


@app.get("/")
def read_root():
    return {"message": "OneTask API running"}
