"""Unit tests for indicators.library, indicators.registry and indicators.cache."""

import numpy as np
import pandas as pd
import pytest

from strategy_backtester.core.errors import InputError
from strategy_backtester.indicators.cache import IndicatorCache
from strategy_backtester.indicators.library import (
    atr,
    bollinger_bands,
    ema,
    macd,
    momentum,
    roc,
    rsi,
    sma,
    true_range,
    wma,
)
from strategy_backtester.indicators.registry import IndicatorKind, IndicatorSpec, compute_indicator, parse_kind


def _frame(closes):
    closes = [float(c) for c in closes]
    n = len(closes)
    return pd.DataFrame({
        "open_time": [i * 60_000 for i in range(n)],
        "open": closes,
        "high": [c + 1.0 for c in closes],
        "low": [c - 1.0 for c in closes],
        "close": closes,
        "volume": [10.0] * n,
    })


def _random_walk(n=120, seed=7):
    rng = np.random.default_rng(seed)
    return pd.Series(100.0 + np.cumsum(rng.normal(0, 1, n)))


def test_sma_warmup_and_value():
    s = sma(pd.Series([1.0, 2.0, 3.0, 4.0]), 3)
    assert s.iloc[:2].isna().all()
    assert s.iloc[2] == pytest.approx(2.0)
    assert s.iloc[3] == pytest.approx(3.0)


def test_ema_seed_and_recurrence():
    prices = pd.Series([10.0, 11.0, 12.0, 11.0])
    out = ema(prices, 3)
    k = 2 / (3 + 1)
    assert out.iloc[0] == pytest.approx(10.0)
    assert out.iloc[1] == pytest.approx(11.0 * k + 10.0 * (1 - k))
    assert out.iloc[3] == pytest.approx(11.0 * k + out.iloc[2] * (1 - k))


def test_ema_keeps_undefined_prefix():
    out = ema(pd.Series([np.nan, np.nan, 5.0, 7.0]), 3)
    assert out.iloc[:2].isna().all()
    assert out.iloc[2] == pytest.approx(5.0)
    assert out.iloc[3] == pytest.approx(7.0 * 0.5 + 5.0 * 0.5)


def test_wma_weights_newest_heaviest():
    out = wma(pd.Series([1.0, 2.0, 3.0]), 3)
    assert out.iloc[2] == pytest.approx((1 * 1 + 2 * 2 + 3 * 3) / 6)


def test_rsi_first_defined_at_period():
    out = rsi(_random_walk(40), 14)
    assert out.iloc[:14].isna().all()
    assert not np.isnan(out.iloc[14])
    assert ((out.dropna() >= 0) & (out.dropna() <= 100)).all()


def test_rsi_saturates_without_losses():
    rising = pd.Series(np.arange(1.0, 30.0))
    assert (rsi(rising, 14).dropna() == 100.0).all()
    flat = pd.Series([5.0] * 20)
    assert (rsi(flat, 14).dropna() == 100.0).all()


def test_rsi_all_losses_is_zero():
    falling = pd.Series(np.arange(30.0, 1.0, -1.0))
    assert rsi(falling, 14).dropna().iloc[-1] == pytest.approx(0.0)


def test_bollinger_population_std():
    upper, middle, lower = bollinger_bands(pd.Series([1.0, 2.0, 3.0]), 3, 2.0)
    std = np.sqrt(2.0 / 3.0)
    assert middle.iloc[2] == pytest.approx(2.0)
    assert upper.iloc[2] == pytest.approx(2.0 + 2 * std)
    assert lower.iloc[2] == pytest.approx(2.0 - 2 * std)
    assert upper.iloc[:2].isna().all()


def test_true_range_and_atr_warmup():
    df = _frame([10, 11, 12, 11, 13, 12])
    tr = true_range(df)
    assert np.isnan(tr.iloc[0])
    assert tr.iloc[1] == pytest.approx(2.0)
    # gap up: |high - prev close| wins over high - low
    gapped = _frame([10, 20])
    assert true_range(gapped).iloc[1] == pytest.approx(11.0)
    out = atr(df, 3)
    assert out.iloc[:3].isna().all()
    assert not np.isnan(out.iloc[3])


def test_momentum_and_roc():
    prices = pd.Series([10.0, 11.0, 12.0, 15.0])
    assert momentum(prices, 2).iloc[3] == pytest.approx(4.0)
    assert roc(prices, 2).iloc[3] == pytest.approx(4.0 / 11.0 * 100)
    assert roc(pd.Series([0.0, 1.0, 2.0]), 1).isna().iloc[1]


def test_macd_defined_from_first_candle():
    out = macd(_random_walk(50))
    assert out.iloc[0] == pytest.approx(0.0)
    assert out.notna().all()


def test_invalid_period_rejected():
    with pytest.raises(InputError):
        sma(pd.Series([1.0, 2.0]), 0)


@pytest.mark.parametrize("fn", [
    lambda s: sma(s, 5),
    lambda s: ema(s, 5),
    lambda s: wma(s, 5),
    lambda s: rsi(s, 14),
    lambda s: bollinger_bands(s, 20, 2.0)[0],
    lambda s: macd(s),
    lambda s: momentum(s, 10),
    lambda s: roc(s, 12),
])
def test_no_look_ahead(fn):
    full = _random_walk(120)
    complete = fn(full)
    for cut in (30, 61, 119):
        partial = fn(full.iloc[:cut])
        np.testing.assert_allclose(partial.to_numpy(), complete.iloc[:cut].to_numpy(), equal_nan=True)


def test_atr_no_look_ahead():
    df = _frame(_random_walk(80).tolist())
    complete = atr(df, 14)
    partial = atr(df.iloc[:40], 14)
    np.testing.assert_allclose(partial.to_numpy(), complete.iloc[:40].to_numpy(), equal_nan=True)


def test_parse_kind_aliases_and_unknown():
    assert parse_kind("close") is IndicatorKind.PRICE
    assert parse_kind("Bollinger_Bands") is IndicatorKind.BOLLINGER_UPPER
    with pytest.raises(InputError) as exc:
        parse_kind("stochastic")
    assert exc.value.field == "indicator_type"


def test_spec_defaults_and_key():
    assert IndicatorSpec(IndicatorKind.RSI).period == 14
    assert IndicatorSpec(IndicatorKind.PRICE, 50).period is None
    assert IndicatorSpec(IndicatorKind.SMA, 20).key == "sma_20"
    assert IndicatorSpec(IndicatorKind.BOLLINGER_LOWER, 20, 2.5).key == "bollinger_lower_20_2.5"
    with pytest.raises(InputError):
        IndicatorSpec(IndicatorKind.SMA, 0)


@pytest.mark.parametrize("kind", list(IndicatorKind))
def test_warmup_matches_first_defined_value(kind):
    df = _frame(_random_walk(80).tolist())
    spec = IndicatorSpec(kind, 9 if kind not in (IndicatorKind.PRICE, IndicatorKind.VOLUME) else None)
    series = compute_indicator(df, spec)
    assert len(series) == len(df)
    assert series.name == spec.key
    assert series.first_valid_index() == spec.warmup - 1


def test_cache_memoizes_per_frame():
    df = _frame(_random_walk(40).tolist())
    cache = IndicatorCache(df)
    spec = IndicatorSpec(IndicatorKind.SMA, 5)
    first = cache.get(spec)
    second = cache.get(spec)
    assert first is second
    assert cache.hits == 1 and cache.misses == 1
    assert "sma_5" in cache.to_frame().columns


def test_cache_fingerprint_depends_on_content():
    a = IndicatorCache(_frame([1, 2, 3]))
    b = IndicatorCache(_frame([1, 2, 4]))
    c = IndicatorCache(_frame([1, 2, 3]))
    assert a.series_id != b.series_id
    assert a.series_id == c.series_id
