"""
Leaderboard service.

Builds the ranked projection of a room's scores. The leaderboard is never
persisted; it is recomputed from the room record on every request.
"""
from typing import List

from schemas import LeaderboardEntry, Room


def build_leaderboard(room: Room) -> List[LeaderboardEntry]:
    """
    Rank players by score, highest first.

    Ties keep join order (the order of ``room.players``, which is also the
    order the ``scores`` entries were created), so repeated calls on the same
    data always return the same sequence. Ranks are 1-based positions, not
    competition ranks: equal scores still get distinct consecutive ranks.
    """
    ordered = sorted(
        enumerate(room.players),
        key=lambda item: (-room.scores.get(item[1], 0), item[0])
    )
    return [
        LeaderboardEntry(rank=position, name=name, score=room.scores.get(name, 0))
        for position, (_, name) in enumerate(ordered, start=1)
    ]
