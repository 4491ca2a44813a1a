"""Pipeline stages, in execution order.

rustup-init -> Cargo -> Rustup -> Rust
"""

from rustforge.stages.base import BaseStage, StageContext
from rustforge.stages.cargo import CargoStage
from rustforge.stages.rust import RustStage
from rustforge.stages.rustup import RustupStage
from rustforge.stages.rustup_init import RustupInitStage

__all__ = [
    "BaseStage",
    "StageContext",
    "RustupInitStage",
    "CargoStage",
    "RustupStage",
    "RustStage",
]
