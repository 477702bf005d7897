"""memevidence: evidence generation and verification for long-term memory benchmarks.

Builds question/answer items whose evidence messages are embedded, one per
conversation, in realistic multi-session dialogues, and keeps only items a
judge model confirms are answerable with the evidence and not without it.

Public API:
    GenerationSupervisor: Runs a whole generation over a set of personas
    EvidencePipeline: Generates one verified item per use case
    RuntimeContext: Shared model clients, judge, stats and reporter
    PipelineConfig / load_config: Configuration
    get_strategy / STRATEGIES: Evidence type registry
    ConversationValidator: Deterministic evidence placement checks
    VerificationExecutor: Ordered semantic checks
    load_personas / load_evidence_items / save_evidence_to_file: I/O
"""

from __future__ import annotations

__version__ = "0.1.0"

from .core.config import PipelineConfig, load_config
from .core.result import GenerationError, GenerationFailed, Result, SystemicFailureError
from .core.runtime import RuntimeContext
from .core.stats import GenerationStats
from .data.personas import load_personas
from .data.schema import EvidenceItem, Persona
from .generation.persistence import load_evidence_items, save_evidence_to_file
from .generation.pipeline import EvidencePipeline
from .generation.supervisor import GenerationSupervisor
from .generation.validator import ConversationValidator
from .strategies import STRATEGIES, EvidenceTypeStrategy, get_strategy
from .verification.executor import VerificationExecutor

__all__ = [
    # Core
    "PipelineConfig",
    "load_config",
    "GenerationError",
    "GenerationFailed",
    "Result",
    "SystemicFailureError",
    "RuntimeContext",
    "GenerationStats",
    # Data
    "EvidenceItem",
    "Persona",
    "load_personas",
    "load_evidence_items",
    "save_evidence_to_file",
    # Generation
    "EvidencePipeline",
    "GenerationSupervisor",
    "ConversationValidator",
    "VerificationExecutor",
    # Strategies
    "EvidenceTypeStrategy",
    "STRATEGIES",
    "get_strategy",
]
