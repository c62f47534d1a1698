from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class CacheEntry(db.Model):
    """Uma chave do cache local com o valor JSON serializado"""
    __tablename__ = "local_cache"

    key = db.Column(db.String(190), primary_key=True)
    value = db.Column(db.Text, nullable=False, default="null")
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self):
        return f"<CacheEntry key={self.key!r}>"

__all__ = ["db", "CacheEntry"]
