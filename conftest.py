"""
Project-wide PyTest bootstrap.

Responsibilities
────────────────
1.  Put every `*/src` directory on PYTHONPATH so tests can import the
    project's packages without editable installs.
2.  Fail early when the async / env plugins are missing.
"""

from pathlib import Path
import sys

# ── 1 · add all source roots to PYTHONPATH (prepend so we win over site-packages) ─
ROOT = Path(__file__).parent.resolve()
_paths = (
    [str(ROOT)]                                           # project root
    + [str(p) for p in (ROOT / "packages").glob("*/src")] # packages/*/src
    + [str(p) for p in (ROOT / "services").glob("*/src")] # services/*/src
)
# Preserve order but ensure local paths take precedence
for _p in reversed(_paths):
    if _p not in sys.path:
        sys.path.insert(0, _p)

# ── 2 · plugin presence ─────────────────────────────────────────────────
for _plugin in ("pytest_asyncio", "pytest_env"):
    try:
        __import__(_plugin)
    except ImportError as exc:
        raise RuntimeError(
            f"{_plugin} is required for the test-suite – "
            "install the project with the `test` extra."
        ) from exc
