"""Release engine.

Commit parsing, version bumping and changelog rendering are pure
functions over the model in :mod:`rpl.release.model`. The reconciler and
publisher drive them against a :class:`~rpl.release.platform.ReleasePlatform`.
"""

from __future__ import annotations
