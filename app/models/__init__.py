from app.models.analysis import Analysis
from app.models.plant import Plant

__all__ = ["Analysis", "Plant"]
