"""CLI command implementations for mhf_patcher.

- patch: Update a game folder from a patch server
- diff: List the files a patch would download
- etag: Inspect or change the stored patch etag
"""

from mhf_patcher.commands.etag import etag_group
from mhf_patcher.commands.patch import diff, patch

__all__ = ["diff", "etag_group", "patch"]
