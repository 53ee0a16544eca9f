"""
Warp 10 backend: selector translation and the directory find client.
"""

from .client import SeriesFinder, Warp10Client, Warp10Error
from .models import APP_LABEL, FindParameters, GeoTimeSeries
from .selector import TranslatedSelector, build_selector, translate_matchers

__all__ = [
    "APP_LABEL",
    "FindParameters",
    "GeoTimeSeries",
    "SeriesFinder",
    "TranslatedSelector",
    "Warp10Client",
    "Warp10Error",
    "build_selector",
    "translate_matchers",
]
