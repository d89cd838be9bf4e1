from .audit_client import AuditClient
from .audit_orchestrator import AuditOrchestrator
from .encoder import encode_asset
from .prompt_builder import build_prompt

__all__ = [
    "AuditClient",
    "AuditOrchestrator",
    "encode_asset",
    "build_prompt",
]
