"""rustforge: cached Rust toolchain layers for container image builds.

Installs rustup-init, rustup, cargo and a Rust toolchain (with an optional
cross-compilation target) into named layers, and reuses each layer across
builds for as long as its fingerprinted inputs are unchanged.
"""

__version__ = "0.1.0"
__description__ = "Cached Rust toolchain layers for container image builds"

from rustforge.core.orchestrator import BuildContext, Orchestrator, detect

__all__ = ["BuildContext", "Orchestrator", "detect", "__version__"]
