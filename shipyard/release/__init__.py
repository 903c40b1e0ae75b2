"""Release pipeline.

Stages, in order:
- version: trigger classification and version/channel resolution
- coordinator + builder: concurrent per-platform packaging and signing
- aggregator: flat staging of every artifact
- checksums: SHA256SUMS.txt compute-then-verify
- publishers: nightly mirror or draft release
- orchestrator: the state machine tying the stages together
"""

from __future__ import annotations
