from dotenv import load_dotenv
load_dotenv()

import os

MONGO_URL = os.getenv("MONGO_URL")
MONGO_DB = os.getenv("MONGO_DB", "fleet_dispatch")
# Atlas clusters need the certifi CA bundle; a local mongod usually runs without TLS
MONGO_TLS = os.getenv("MONGO_TLS", "").lower() in ("1", "true", "yes")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", "60"))

CORS_ORIGIN_REGEX = os.getenv("CORS_ORIGIN_REGEX", r"^http://(localhost|127\.0\.0\.1)(:\d+)?$")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Drivers provisioned by a dispatcher get this until they change it
DRIVER_TEMP_PASSWORD = os.getenv("DRIVER_TEMP_PASSWORD", "temp_password_123")
