"""
Client-side flag evaluation logic.
Mirrors the server-side rollout bucketing for consistency.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

BUCKET_COUNT = 10000


@dataclass
class FlagMetadata:
    """Represents a feature flag definition as returned by the API."""
    key: str
    is_enabled: bool
    name: str = ""
    rollout_percentage: Optional[float] = None
    rollout_seed: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FlagMetadata":
        """Build flag metadata from an API payload (camelCase keys)."""
        percentage = data.get("rolloutPercentage")
        return cls(
            key=data["key"],
            is_enabled=bool(data.get("isEnabled", False)),
            name=data.get("name") or "",
            rollout_percentage=float(percentage) if percentage is not None else None,
            rollout_seed=data.get("rolloutSeed"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API's camelCase representation."""
        return {
            "key": self.key,
            "isEnabled": self.is_enabled,
            "name": self.name,
            "rolloutPercentage": self.rollout_percentage,
            "rolloutSeed": self.rollout_seed,
        }


def rollout_bucket(target_id: str, flag_key: str, rollout_seed: str) -> int:
    """
    Consistent hashing for rollout percentage.
    Uses SHA-256 of targetId-flagKey-seed so that:
    - Same target always lands in the same bucket for a given flag and seed
    - Distribution across targets is statistically uniform

    Returns:
        Bucket in [0, 9999] (0.01% granularity)
    """
    hash_input = f"{target_id}-{flag_key}-{rollout_seed}".encode("utf-8")
    hash_bytes = hashlib.sha256(hash_input).digest()
    return (hash_bytes[0] * 256 + hash_bytes[1]) % BUCKET_COUNT


def evaluate_flag(flag: FlagMetadata, target_id: Optional[str] = None) -> bool:
    """
    Evaluate a flag for a target using its rollout settings.

    Evaluation priority:
    1. If flag is disabled, return false
    2. If rollout percentage or seed is missing, return the enabled state
    3. Otherwise hash the target into a bucket and compare to the percentage

    Without a target id a random one is used, so the result is not
    reproducible across calls.
    """
    if not flag.is_enabled:
        return False

    if flag.rollout_percentage is None or flag.rollout_seed is None:
        return flag.is_enabled

    effective_target_id = target_id or secrets.token_hex(16)
    bucket = rollout_bucket(effective_target_id, flag.key, flag.rollout_seed)
    threshold = flag.rollout_percentage * 100
    return bucket < threshold
