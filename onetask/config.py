# onetask/config.py

import os
from pathlib import Path

from dotenv import load_dotenv

# ================= ENV =================
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))
load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# ================= DATABASE =================
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./onetask.db")
SQL_ECHO = _flag("SQL_ECHO")

# ================= SECURITY =================
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MIN_PASSWORD_LENGTH = 6

# ================= FRONTEND =================
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN")

# ================= BOARD =================
UNDO_GRACE_SECONDS = float(os.getenv("UNDO_GRACE_SECONDS", "5"))
DEFAULT_AUTO_PRIORITY_HOURS = 24

# ================= SYNC =================
PERSIST_DEBOUNCE_SECONDS = float(os.getenv("PERSIST_DEBOUNCE_SECONDS", "0.5"))
SYNC_TIMEOUT_SECONDS = float(os.getenv("SYNC_TIMEOUT_SECONDS", "1.5"))
API_BASE_URL = os.getenv("ONETASK_API_URL", "http://localhost:8000")
DATA_DIR = Path(os.getenv("ONETASK_DATA_DIR", str(Path.home() / ".onetask")))
