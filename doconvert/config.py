# doconvert/config.py
import os


# ----------------------------
# Uploads
# ----------------------------
MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024
MAX_FILES = int(os.environ.get("MAX_FILES", "50"))


# ----------------------------
# Office conversion backends
# ----------------------------
# "auto" | "convertapi" | "soffice"
OFFICE_BACKEND = os.environ.get("OFFICE_BACKEND", "auto").strip().lower()

CONVERTAPI_SECRET = os.environ.get("CONVERTAPI_SECRET", "")
CONVERTAPI_BASE_URL = os.environ.get("CONVERTAPI_BASE_URL", "https://v2.convertapi.com").rstrip("/")
CONVERTAPI_TIMEOUT = float(os.environ.get("CONVERTAPI_TIMEOUT", "120"))

SOFFICE_BIN = os.environ.get("SOFFICE_BIN", "soffice")
SOFFICE_TIMEOUT = float(os.environ.get("SOFFICE_TIMEOUT", "180"))


# ----------------------------
# Server
# ----------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))
