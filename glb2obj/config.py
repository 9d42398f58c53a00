"""
Service configuration, read from the environment (and a local .env file)
"""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Directory holding the GLB models addressed by modelId
MODELS_DIR = os.getenv("MODELS_DIR", os.path.join("public", "models"))

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(100 * 1024 * 1024)))  # 100 MB
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "8000"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Hosts modelUrl may point at (comma list, subdomains included); empty allows any public host
MODEL_URL_HOSTS = [h.strip().lower() for h in os.getenv("MODEL_URL_HOSTS", "").split(",") if h.strip()]
