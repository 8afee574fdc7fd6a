"""
Risk Ladder — leveraged-profit thresholds mapped to stop-loss percentages.

  Leveraged profit below the first threshold → default SL (loss side of entry)
  Leveraged profit ≥ threshold(n)            → lock stop_loss_pct(n) of leveraged profit

Tiers are immutable and strictly ascending in threshold.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

# Index reported when no real tier applies (below first threshold or not profitable)
FLOOR_TIER = -1

# Max distance, in raw price %, between a resting stop and a tier's lock
# level for the stop to count as placed by that tier. Absorbs price rounding.
TIER_MATCH_TOLERANCE_PCT = Decimal("0.05")


class LadderError(ValueError):
    """Ladder definition is malformed."""


@dataclass(frozen=True)
class LadderTier:
    threshold: Decimal          # Leveraged profit %
    stop_loss_pct: Decimal      # Leveraged profit % to lock once threshold is reached


class RiskLadder:
    """Ordered profit-threshold → stop-loss-percent table."""

    def __init__(self, tiers: Iterable[LadderTier]):
        self._tiers: Tuple[LadderTier, ...] = tuple(tiers)
        if not self._tiers:
            raise LadderError("ladder needs at least one tier")

        for prev, curr in zip(self._tiers, self._tiers[1:]):
            if curr.threshold <= prev.threshold:
                raise LadderError(
                    f"thresholds must be strictly ascending ({prev.threshold} then {curr.threshold})"
                )
            if curr.stop_loss_pct < prev.stop_loss_pct:
                raise LadderError(
                    f"stop-loss percents must not decrease ({prev.stop_loss_pct} then {curr.stop_loss_pct})"
                )
        for tier in self._tiers:
            if tier.threshold <= 0:
                raise LadderError(f"threshold must be positive, got {tier.threshold}")
            if tier.stop_loss_pct < 0:
                raise LadderError(f"stop-loss percent must not be negative, got {tier.stop_loss_pct}")
            # A lock at or past its threshold would put the stop beyond mark
            if tier.stop_loss_pct >= tier.threshold:
                raise LadderError(
                    f"stop-loss percent {tier.stop_loss_pct} must be below its threshold {tier.threshold}"
                )

    @classmethod
    def parse(cls, text: str) -> "RiskLadder":
        """Build from "threshold:pct,threshold:pct,..." e.g. "150:0,300:100"."""
        tiers = []
        for chunk in text.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            try:
                threshold, pct = chunk.split(":")
                tiers.append(LadderTier(Decimal(threshold.strip()), Decimal(pct.strip())))
            except (ValueError, InvalidOperation):
                raise LadderError(f"bad tier {chunk!r}, expected threshold:pct") from None
        return cls(tiers)

    @property
    def tiers(self) -> Tuple[LadderTier, ...]:
        return self._tiers

    @property
    def first_threshold(self) -> Decimal:
        return self._tiers[0].threshold

    def __len__(self) -> int:
        return len(self._tiers)

    def __repr__(self) -> str:
        body = ",".join(f"{t.threshold}:{t.stop_loss_pct}" for t in self._tiers)
        return f"RiskLadder({body})"

    def lookup(self, leveraged_profit_pct: Decimal, default_pct: Decimal) -> Tuple[int, Decimal]:
        """
        Return (tier_index, stop_loss_pct) for a leveraged profit percent.
        The active tier is the last one whose threshold ≤ profit;
        FLOOR_TIER with `default_pct` when no tier applies.
        """
        index = FLOOR_TIER
        if leveraged_profit_pct > 0:
            for i, tier in enumerate(self._tiers):
                if tier.threshold <= leveraged_profit_pct:
                    index = i
                else:
                    break

        if index == FLOOR_TIER:
            return FLOOR_TIER, default_pct
        return index, self._tiers[index].stop_loss_pct

    def tier_for_stop(
        self,
        stop_raw_pct: Decimal,
        leverage: Decimal,
        tolerance_pct: Decimal = TIER_MATCH_TOLERANCE_PCT,
    ) -> int:
        """
        Infer which tier placed a stop from its signed raw percent.
        Picks the closest tier within `tolerance_pct`; FLOOR_TIER if none.
        Callers pass at least one price tick (as raw %) for coarse-tick symbols.
        """
        best: Optional[Tuple[Decimal, int]] = None
        for i, tier in enumerate(self._tiers):
            distance = abs(stop_raw_pct - tier.stop_loss_pct / leverage)
            if distance > tolerance_pct:
                continue
            # Later tiers win ties so a matching lock never reads as a lower tier
            if best is None or distance <= best[0]:
                best = (distance, i)
        return best[1] if best else FLOOR_TIER
