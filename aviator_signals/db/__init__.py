from aviator_signals.db.base import Base

__all__ = ["Base"]
