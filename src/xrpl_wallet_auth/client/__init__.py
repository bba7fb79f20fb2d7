from .http import AuthHttpClient
from .xumm import XummClient

__all__ = ["AuthHttpClient", "XummClient"]
