import os
from pathlib import Path

from dotenv import load_dotenv

# -------------------------
# .env opcional (instance/.env)
# -------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "instance" / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def normalize_database_url(raw_url: str) -> str:
    """
    Normaliza a URL do banco do cache local.
      - vazio: SQLite em instance/local_cache.db
      - postgres://... ou postgresql://...: força o driver psycopg
    """
    if not raw_url:
        return f"sqlite:///{(BASE_DIR / 'instance' / 'local_cache.db').as_posix()}"
    url = raw_url
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


class Config:
    """Configuração da aplicação.

    - ``SQLALCHEMY_DATABASE_URI``: banco onde fica o cache local (fallback
      quando o banco remoto não responde). SQLite por padrão.
    - ``REMOTE_BACKEND``: ``""`` (somente cache local), ``"http"`` (banco de
      documentos hospedado em ``REMOTE_STORE_URL``) ou ``"demo"`` (banco em
      memória, para demonstração).
    - ``REMOTE_AUTH_URL``: provedor de identidade; se vazio usa a mesma URL do
      banco remoto.
    - ``CACHE_PREFIX``: prefixo das chaves do cache local (``biobox_orders``...).
    - ``LOCAL_FALLBACK_PASSWORD``: senha aceita no login offline contra os
      usuários em cache.
    """

    SECRET_KEY = os.getenv("SECRET_KEY", "biobox-dev-secret")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(os.getenv("DATABASE_URL", ""))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    REMOTE_BACKEND = os.getenv("REMOTE_BACKEND", "").strip().lower()
    REMOTE_STORE_URL = os.getenv("REMOTE_STORE_URL", "")
    REMOTE_STORE_API_KEY = os.getenv("REMOTE_STORE_API_KEY", "")
    REMOTE_AUTH_URL = os.getenv("REMOTE_AUTH_URL", "")
    REMOTE_TIMEOUT = int(os.getenv("REMOTE_TIMEOUT", "15"))

    CACHE_PREFIX = os.getenv("CACHE_PREFIX", "biobox")
    LOCAL_FALLBACK_PASSWORD = os.getenv("LOCAL_FALLBACK_PASSWORD", "password")

    # Origem do painel (a sessão vai no cookie assinado)
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:8080").split(",")
                    if o.strip()]
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
