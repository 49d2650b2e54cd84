"""issuemirror - incremental offline mirror of GitHub issues as Markdown.

High-level public API:

from issuemirror import IssueMirror, load_config

mirror = IssueMirror.from_config_path('.issuemirror.yaml')
result = mirror.sync()
print(result.count, result.quiescent)

Issues are written to ``{output}/{open,closed}/{number}.md``; with milestone
grouping enabled each file is also linked under
``{output}/milestones/{milestone}/{state}/``. The CLI (``issuemirror``)
delegates to this library.
"""

from __future__ import annotations

from .config import MirrorConfig, load_config
from .core import IssueMirror
from .errors import ConfigError, MirrorError, MirrorFilesystemError, SourceError
from .models import SyncResult

# Version constant (keep in sync with pyproject)
__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "IssueMirror",
    "MirrorConfig",
    "MirrorError",
    "MirrorFilesystemError",
    "SourceError",
    "SyncResult",
    "load_config",
    "__version__",
]
