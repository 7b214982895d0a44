"""Cross-warehouse rebalancing heuristic.

Pairs warehouses holding more than their buffer target with warehouses below
it, largest surplus to largest deficit, until moves run out.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from replenish.domain.buffers.zones import Zone, buffer_penetration, resolve_zone, round_to

# Remainders below this are treated as settled
SETTLED_EPSILON = 0.01


@dataclass
class WarehousePosition:
    """Buffer and on-hand of one SKU at one warehouse."""

    warehouse_id: str
    warehouse_name: str
    target: float
    on_hand: float
    red_threshold: float
    yellow_threshold: float
    surplus: float = field(init=False)
    deficit: float = field(init=False)

    def __post_init__(self) -> None:
        self.surplus = max(0.0, self.on_hand - self.target)
        self.deficit = max(0.0, self.target - self.on_hand)

    @property
    def zone(self) -> Zone:
        return resolve_zone(self.on_hand, self.red_threshold, self.yellow_threshold)

    @property
    def penetration(self) -> float | None:
        value = buffer_penetration(self.on_hand, self.target)
        return round_to(value, 2) if value is not None else None


@dataclass(frozen=True)
class TransferMove:
    """Suggested stock transfer between two warehouses."""

    from_warehouse_id: str
    from_warehouse_name: str
    to_warehouse_id: str
    to_warehouse_name: str
    qty: float
    note: str


def plan_rebalance(positions: list[WarehousePosition], max_moves: int = 5) -> list[TransferMove]:
    """Greedy surplus → deficit matching.

    Args:
        positions: Per-warehouse positions for a single SKU
        max_moves: Maximum number of transfers to suggest

    Returns:
        Transfers in the order they were matched

    """
    donors = sorted(
        ([p.warehouse_id, p.warehouse_name, p.surplus] for p in positions if p.surplus > 0),
        key=lambda d: -d[2],
    )
    receivers = sorted(
        ([p.warehouse_id, p.warehouse_name, p.deficit] for p in positions if p.deficit > 0),
        key=lambda r: -r[2],
    )

    moves: list[TransferMove] = []
    i = j = 0
    while len(moves) < max_moves and i < len(donors) and j < len(receivers):
        donor, receiver = donors[i], receivers[j]
        qty = min(donor[2], receiver[2])
        if qty <= 0:
            break
        moves.append(
            TransferMove(
                from_warehouse_id=donor[0],
                from_warehouse_name=donor[1],
                to_warehouse_id=receiver[0],
                to_warehouse_name=receiver[1],
                qty=round_to(qty),
                note=(
                    f"{donor[1]} holds {round_to(donor[2])} above target, "
                    f"{receiver[1]} is short {round_to(receiver[2])}."
                ),
            )
        )
        donor[2] -= qty
        if donor[2] <= SETTLED_EPSILON:
            i += 1
        receiver[2] -= qty
        if receiver[2] <= SETTLED_EPSILON:
            j += 1

    return moves
