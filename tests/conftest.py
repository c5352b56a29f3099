import numpy as np
import pandas as pd
import pytest

from bidcurves import (
    BasisSmoother,
    BidLadder,
    CurveKey,
    CurveSmoothingConfig,
    MarketSideEnum,
    SplineBasis,
)


def make_bid_rows(date: str, hour: int, bids: list[tuple[float, float]], clearing_price: float = 60.0) -> list[dict]:
    return [
        {
            'date': date,
            'hour': hour,
            'price': price,
            'quantity': quantity,
            'zone_clearing_price': clearing_price,
        }
        for price, quantity in bids
    ]


def ramp_bids(num_bids: int = 50, low: float = 10.0, high: float = 100.0, quantity: float = 20.0):
    return [(p, quantity) for p in np.linspace(low, high, num_bids)]


@pytest.fixture
def supply_bid_df() -> pd.DataFrame:
    """Supply bids for four units in January 2018, sorted by ascending price per unit."""
    rows = []
    rows += make_bid_rows('2018-01-01', 18, ramp_bids(30, 20.0, 120.0), clearing_price=75.0)
    rows += make_bid_rows('2018-01-01', 19, [(50.0, 100.0), (80.0, 50.0)], clearing_price=80.0)
    rows += make_bid_rows('2018-01-06', 18, ramp_bids(20, 15.0, 90.0, quantity=35.0), clearing_price=55.0)
    rows += make_bid_rows('2018-02-05', 3, ramp_bids(25, 5.0, 60.0, quantity=10.0), clearing_price=30.0)
    return pd.DataFrame(rows)


@pytest.fixture
def config() -> CurveSmoothingConfig:
    return CurveSmoothingConfig()


@pytest.fixture
def basis(config) -> SplineBasis:
    return config.build_basis()


@pytest.fixture
def smoother(config, basis) -> BasisSmoother:
    return BasisSmoother(
        basis=basis,
        grid=config.evaluation_grid,
        lambda_candidates=config.lambda_candidates,
        penalty_derivative=config.penalty_derivative,
    )


@pytest.fixture
def two_bid_ladder() -> BidLadder:
    return BidLadder(
        key=CurveKey.from_values('2018-01-01', 19),
        prices=np.array([50.0, 80.0]),
        quantities=np.array([100.0, 50.0]),
        zone_clearing_price=80.0,
        market_side=MarketSideEnum.SUPPLY,
    )


@pytest.fixture
def ramp_ladder() -> BidLadder:
    bids = ramp_bids(50)
    return BidLadder(
        key=CurveKey.from_values('2018-03-12', 8),
        prices=np.array([p for p, _ in bids]),
        quantities=np.array([q for _, q in bids]),
        zone_clearing_price=70.0,
    )
