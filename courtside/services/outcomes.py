"""Bet grading and American odds payout math.

Money is handled in ``Decimal`` and rounded to cents only at the end.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from courtside.domain.definitions import BetSide, Market
from courtside.domain.signals import Outcome, SignalValue

CENT = Decimal("0.01")


def resolve_bet_team(bet_side: BetSide, entry: SignalValue) -> str:
    """Return ``"home"`` or ``"away"`` for the side a signal backs.

    The leading team is taken at entry time; a tie counts as home.
    """
    if bet_side is BetSide.HOME:
        return "home"
    if bet_side is BetSide.AWAY:
        return "away"
    leader = entry.leading_team or "home"
    if bet_side is BetSide.LEADING_TEAM:
        return leader
    return "away" if leader == "home" else "home"


def _sign(value: Decimal) -> Outcome:
    if value > 0:
        return Outcome.WON
    if value < 0:
        return Outcome.LOST
    return Outcome.PUSHED


def grade_bet(
    market: Market,
    bet_side: BetSide,
    entry: SignalValue,
    home_score: int,
    away_score: int,
) -> Optional[Outcome]:
    """Grade a bet against a score.

    Returns:
        The outcome, or None when the line the market needs was never
        recorded at entry
    """
    if market in (Market.TOTAL_OVER, Market.TOTAL_UNDER):
        if entry.total is None:
            return None
        difference = Decimal(home_score + away_score) - Decimal(str(entry.total))
        if market is Market.TOTAL_UNDER:
            difference = -difference
        return _sign(difference)

    team = resolve_bet_team(bet_side, entry)
    margin = home_score - away_score if team == "home" else away_score - home_score

    if market is Market.MONEYLINE:
        return _sign(Decimal(margin))

    # Spread: the stored line is the home spread
    if entry.spread is None:
        return None
    team_spread = Decimal(str(entry.spread))
    if team == "away":
        team_spread = -team_spread
    return _sign(Decimal(margin) + team_spread)


def bet_odds(
    market: Market,
    bet_side: BetSide,
    entry: SignalValue,
    default_odds: Optional[int] = None,
) -> Optional[int]:
    """Pick the American odds a bet is settled at.

    Trigger odds win; moneyline bets fall back to the entry moneyline of
    the backed side; otherwise ``default_odds`` (None = flat 1:1).
    """
    if entry.odds:
        return entry.odds
    if market is Market.MONEYLINE:
        team = resolve_bet_team(bet_side, entry)
        line = entry.moneyline_home if team == "home" else entry.moneyline_away
        if line:
            return line
    return default_odds


def american_payout(stake: Decimal, odds: Optional[int]) -> Decimal:
    """Profit on a winning bet of ``stake`` at American ``odds``.

    Examples:
        stake 100 at +150 -> 150.00
        stake 100 at -110 -> 90.91
        stake 100 with no odds -> 100.00 (flat 1:1)
    """
    if not odds:
        payout = stake
    elif odds > 0:
        payout = stake * Decimal(odds) / Decimal(100)
    else:
        payout = stake * Decimal(100) / Decimal(abs(odds))
    return payout.quantize(CENT, rounding=ROUND_HALF_UP)


def settle(outcome: Outcome, stake: Decimal, odds: Optional[int]) -> Decimal:
    """Net profit for a graded bet; pushes refund the stake."""
    if outcome is Outcome.WON:
        return american_payout(stake, odds)
    if outcome is Outcome.LOST:
        return -stake
    return Decimal("0")
