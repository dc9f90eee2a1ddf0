"""
Deprecated calling conventions kept for callers migrating from older SDKs.
"""

import warnings
from typing import Optional

from flagvault.client import FlagVaultClient


async def is_enabled_with_context(
    client: FlagVaultClient,
    flag_key: str,
    default_value: bool = False,
    context: Optional[str] = None,
) -> bool:
    """
    Evaluate a flag using a positional string context.

    .. deprecated::
        Use ``client.is_enabled(flag_key, default_value, target_id=...)``.
    """
    warnings.warn(
        "The context parameter is deprecated. Please use target_id instead.",
        DeprecationWarning,
        stacklevel=2,
    )
    return await client.is_enabled(flag_key, default_value, target_id=context)
