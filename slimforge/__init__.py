"""slimforge: size-governed WebAssembly build orchestration.

Applies optimization profiles to Cargo.toml behind reversible backups, runs
the cargo -> wasm-bindgen -> wasm-opt -> wasm-snip pipeline, and classifies
the resulting artifact against a size budget and the recorded build history.
"""

__version__ = "0.1.0"
__description__ = "Size-governed WebAssembly build orchestration"

from slimforge.core.orchestrator import Orchestrator
from slimforge.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
