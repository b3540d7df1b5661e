"""doc-mirror core library.

This package incrementally mirrors a versioned documentation site into a
local corpus (per-page JSON/HTML/Markdown records, a manifest and a single
concatenated ``llms-full.txt``) while avoiding redundant fetches across runs.

Repo rules:
- Crawl a single fixed origin, strictly sequentially.
- Persisted records are only trusted when every companion file exists.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
