"""
Uniqueness Resolver
Turns random candidates into a batch of tokens that are distinct from each
other and absent from the store at the moment they were checked.

The existence check is optimistic: another writer can claim a token between
the check and our insert, so the store's insert-skip-duplicates primitive
remains the real uniqueness gate.
"""

from typing import List, Optional

from qr_assets.buisness.token_generator import TokenGenerator
from qr_assets.data.asset_store import AssetStore
from qr_assets.errors import ExhaustedRetries
from qr_assets.logger import get_logger

logger = get_logger("qr_assets.buisness.uniqueness_resolver")

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_OVERSAMPLE_FACTOR = 2
DEFAULT_MAX_ROUND_SIZE = 1000


class UniquenessResolver:
    """
    Bounded collision-retry loop over the token namespace.

    Attempt count, oversampling factor and per-round cap are policy knobs;
    none of them encodes a target failure probability.
    """

    def __init__(
        self,
        store: AssetStore,
        generator: Optional[TokenGenerator] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        oversample_factor: int = DEFAULT_OVERSAMPLE_FACTOR,
        max_round_size: int = DEFAULT_MAX_ROUND_SIZE,
    ):
        self.store = store
        self.generator = generator or TokenGenerator()
        self.max_attempts = max_attempts
        self.oversample_factor = oversample_factor
        self.max_round_size = max_round_size

    def generate_unique_tokens(self, count: int, max_attempts: Optional[int] = None) -> List[str]:
        """
        Generate exactly `count` distinct tokens not present in the store.

        Args:
            count: Number of tokens required
            max_attempts: Override for the configured round bound

        Returns:
            list: `count` tokens in generation order

        Raises:
            ExhaustedRetries: If the target is not reached within the round bound
        """
        if max_attempts is None:
            max_attempts = self.max_attempts

        accepted = {}  # dict keeps insertion order
        attempts = 0

        while len(accepted) < count and attempts < max_attempts:
            deficit = min(count - len(accepted), self.max_round_size)
            candidates = self.generator.generate_many(deficit * self.oversample_factor)
            existing = self.store.exists_any(candidates)

            for token in candidates:
                if token in existing or token in accepted:
                    continue
                accepted[token] = None
                if len(accepted) >= count:
                    break

            attempts += 1
            if existing:
                logger.debug(f"Round {attempts}: {len(existing)} candidate(s) collided with stored tokens")

        if len(accepted) < count:
            logger.warning(
                f"Failed to generate {count} unique tokens after {max_attempts} attempts "
                f"(generated {len(accepted)})"
            )
            raise ExhaustedRetries(
                f"Failed to generate {count} unique tokens after {max_attempts} attempts. "
                f"Generated {len(accepted)} tokens.",
                requested=count,
                obtained=len(accepted),
                attempts=attempts,
            )

        return list(accepted)
