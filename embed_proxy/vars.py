import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "embed-proxy")

TARGET_SERVER_URL = os.environ.get("TARGET_SERVER_URL", "https://web.telegram.org/k/")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "51837"))
# Seconds; 0 disables the outbound timeout entirely
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "info").lower()

CORS_HANDLE_PREFLIGHT = (
    os.environ.get("CORS_HANDLE_PREFLIGHT", "true").lower() == "true"
)
ENABLE_METRICS = os.environ.get("ENABLE_METRICS", "true").lower() == "true"
METRICS_PATH = os.environ.get("METRICS_PATH", "/metrics")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
