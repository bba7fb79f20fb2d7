from .challenge import ChallengeIssuer, FlowHooks, SignatureVerifier
from .config import Settings
from .flow import AuthFlow, LocalBackend
from .runtime import run
from .security import NonceTokenService, SessionTokenService
from .service import AuthService
from .types import FlowState, Provider, SessionGrant, WalletAccountClaim
from .websocket import CompletionWatcher

__all__ = [
    "AuthFlow",
    "AuthService",
    "ChallengeIssuer",
    "CompletionWatcher",
    "FlowHooks",
    "FlowState",
    "LocalBackend",
    "NonceTokenService",
    "Provider",
    "SessionGrant",
    "SessionTokenService",
    "Settings",
    "SignatureVerifier",
    "WalletAccountClaim",
    "run",
]
