from .base import Api
from .http import HttpApi

__all__ = ["Api", "HttpApi"]
