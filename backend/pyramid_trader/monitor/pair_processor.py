"""
Pair Processor for the trading loop

Runs one trading-cycle step for a single pair:
fetch candles -> indicators -> (open position) refresh, exit checks, pyramid
adds / (no position) entry decision. Orders go through the exchange client;
all position state changes go through the ledger.
Entry sizing refreshes the ledger's account balance from the exchange first.
"""

import logging
from typing import Any, Dict, Optional

from pyramid_trader.ai_service import DecisionProvider
from pyramid_trader.config import Settings
from pyramid_trader.exchange_clients.base import ExchangeClient
from pyramid_trader.indicator_calculator import IndicatorCalculator, classify_regime
from pyramid_trader.schemas import IndicatorSnapshot
from pyramid_trader.trading_engine.position_ledger import PositionLedger

logger = logging.getLogger(__name__)


def erosion_cap_for_regime(regime: str, settings: Settings) -> float:
    """Tighter erosion cap in ranging markets, looser in trends"""
    if regime in ("choppy", "weak"):
        return settings.pyramid_erosion_cap_choppy
    return settings.pyramid_erosion_cap_trend


def check_exit_conditions(
    ledger: PositionLedger, pair: str, current_price: float, settings: Settings
) -> Optional[str]:
    """
    Run the risk gates in priority order (position must already be refreshed)

    Returns:
        Exit reason of the first gate that fires, or None
    """
    if ledger.check_stop_loss(pair, current_price):
        return "stop_loss"
    if ledger.check_profit_target(pair, current_price):
        return "profit_target"
    if settings.profit_lock_enabled and ledger.check_erosion_cap(pair):
        return "erosion_cap"
    if ledger.check_profitable_collapse(pair):
        return "profitable_collapse"
    if ledger.check_underwater_exit(
        pair,
        settings.underwater_exit_min_time_minutes,
        settings.underwater_exit_threshold_pct,
    ):
        return "underwater_exit"
    return None


async def refresh_account_balance(ledger: PositionLedger, exchange: ExchangeClient, pair: str) -> float:
    """
    Pull the quote-currency balance into the ledger before sizing an entry

    On an exchange error the last known balance is kept.
    """
    quote_currency = pair.split("/")[-1] if "/" in pair else "USD"
    try:
        balance = float(await exchange.get_balance(quote_currency))
    except Exception as e:
        logger.warning(f"  {pair}: could not fetch {quote_currency} balance, keeping {ledger.account_balance:.2f}: {e}")
        return ledger.account_balance

    ledger.update_account_balance(balance)
    return balance


async def process_pair(
    ledger: PositionLedger,
    exchange: ExchangeClient,
    decision_provider: DecisionProvider,
    pair: str,
    settings: Settings,
    calculator: Optional[IndicatorCalculator] = None,
) -> Dict[str, Any]:
    """
    Process one pair for this cycle

    Args:
        ledger: Position ledger (sole owner of position state)
        exchange: Exchange client for candles, ticker and orders
        decision_provider: AI decision source
        pair: Trading pair (e.g., "ETH/USD")
        settings: Risk and sizing configuration
        calculator: Indicator calculator (built from settings if omitted)

    Returns:
        Result dictionary with action info; exchange/AI failures come back as
        {"action": "error"} so the loop moves on to the next pair
    """
    calculator = calculator or IndicatorCalculator(settings.incremental_macd_signal)

    try:
        candles = await exchange.get_candles(pair, settings.candle_timeframe, settings.candle_limit)
        ticker = await exchange.get_ticker(pair)

        current_price = float(ticker.get("price") or 0)
        if current_price <= 0 and candles:
            current_price = float(candles[-1]["close"])
        if current_price <= 0:
            logger.warning(f"  {pair}: no usable price, skipping")
            return {"pair": pair, "action": "skip", "reason": "no price"}

        indicators = calculator.calculate_all_indicators(candles)

        if ledger.has_position(pair):
            return await _manage_open_position(
                ledger, exchange, decision_provider, pair, current_price, indicators, settings
            )

        return await _evaluate_entry(
            ledger, exchange, decision_provider, pair, current_price, indicators, settings
        )

    except Exception as e:
        logger.error(f"Error processing {pair}: {e}", exc_info=True)
        return {"pair": pair, "action": "error", "reason": str(e)}


async def _manage_open_position(
    ledger: PositionLedger,
    exchange: ExchangeClient,
    decision_provider: DecisionProvider,
    pair: str,
    current_price: float,
    indicators: IndicatorSnapshot,
    settings: Settings,
) -> Dict[str, Any]:
    ledger.update_position(pair, current_price)

    exit_reason = check_exit_conditions(ledger, pair, current_price, settings)
    if exit_reason:
        position = ledger.get_position(pair)
        order = await exchange.place_order(pair, "sell", position.total_volume)
        exit_price = float(order.get("price") or current_price)
        closed = ledger.close_position(pair, exit_price, exit_reason)
        return {
            "pair": pair,
            "action": "exit",
            "reason": exit_reason,
            "exit_price": exit_price,
            "profit_pct": closed.profit_pct,
        }

    if settings.pyramiding_enabled:
        result = await _evaluate_pyramid(
            ledger, exchange, decision_provider, pair, current_price, indicators, settings
        )
        if result:
            return result

    position = ledger.get_position(pair)
    return {"pair": pair, "action": "hold", "profit_pct": position.profit_pct}


async def _evaluate_pyramid(
    ledger: PositionLedger,
    exchange: ExchangeClient,
    decision_provider: DecisionProvider,
    pair: str,
    current_price: float,
    indicators: IndicatorSnapshot,
    settings: Settings,
) -> Optional[Dict[str, Any]]:
    position = ledger.get_position(pair)
    profit = position.profit_fraction

    if ledger.is_ready_for_l1(pair, profit, settings.pyramid_l1_trigger_pct):
        level = 1
        min_confidence = settings.pyramid_l1_confidence_min
        add_size_pct = settings.pyramid_add_size_pct_l1
    elif ledger.is_ready_for_l2(pair, profit, settings.pyramid_l2_trigger_pct):
        level = 2
        min_confidence = settings.pyramid_l2_confidence_min
        add_size_pct = settings.pyramid_add_size_pct_l2
    else:
        return None

    decision = await decision_provider.get_decision(pair, indicators)
    if decision.decision != "BUY" or decision.confidence < min_confidence:
        logger.info(
            f"  {pair}: L{level} ready but AI {decision.decision} "
            f"{decision.confidence:.0f}% < {min_confidence:.0f}%"
        )
        return {"pair": pair, "action": "hold", "reason": f"L{level} confidence too low"}

    volume = position.volume * add_size_pct
    order = await exchange.place_order(pair, "buy", volume)
    fill_price = float(order.get("price") or current_price)

    if not ledger.add_pyramid_level(pair, level, fill_price, volume, decision.confidence):
        return {"pair": pair, "action": "error", "reason": f"L{level} rejected by ledger"}

    return {"pair": pair, "action": "pyramid", "level": level, "price": fill_price, "volume": volume}


async def _evaluate_entry(
    ledger: PositionLedger,
    exchange: ExchangeClient,
    decision_provider: DecisionProvider,
    pair: str,
    current_price: float,
    indicators: IndicatorSnapshot,
    settings: Settings,
) -> Dict[str, Any]:
    open_count = len(ledger.get_open_positions())
    if open_count >= settings.max_concurrent_trades:
        return {"pair": pair, "action": "skip", "reason": f"max concurrent trades ({open_count})"}

    if indicators.adx < settings.min_adx_for_entry:
        logger.info(f"  {pair}: ADX {indicators.adx:.1f} below {settings.min_adx_for_entry:.0f}, skipping chop")
        return {"pair": pair, "action": "skip", "reason": "choppy market"}

    decision = await decision_provider.get_decision(pair, indicators)
    if decision.decision != "BUY" or decision.confidence < settings.ai_min_confidence:
        return {
            "pair": pair,
            "action": "hold",
            "reason": f"AI {decision.decision} ({decision.confidence:.0f}%)",
        }

    balance = await refresh_account_balance(ledger, exchange, pair)
    if balance <= 0:
        return {"pair": pair, "action": "skip", "reason": "no available balance"}

    volume = balance * settings.risk_per_trade_pct / current_price
    order = await exchange.place_order(pair, "buy", volume)
    entry_price = float(order.get("price") or current_price)

    regime = classify_regime(indicators.adx, settings.adx_choppy_threshold, settings.adx_strong_threshold)
    opened = ledger.open_position(
        pair,
        entry_price,
        volume,
        stop_loss=entry_price * (1 - settings.stop_loss_pct),
        profit_target=entry_price * (1 + settings.profit_target_pct),
        ai_reasoning=decision.reasoning,
        adx=indicators.adx,
        regime=regime,
        erosion_cap=erosion_cap_for_regime(regime, settings),
    )
    if not opened:
        return {"pair": pair, "action": "error", "reason": "entry rejected by ledger"}

    return {"pair": pair, "action": "entry", "price": entry_price, "volume": volume, "regime": regime}
