import datetime as dt

import numpy as np
import pandas as pd
import pytest

from bidcurves import (
    BidCurveExtractor,
    BidLadder,
    BidRecordFilter,
    CurveKey,
    DegenerateVolumeError,
    EmptyLadderError,
    MarketSideEnum,
    StepFunction,
    StepFunctionBuilder,
    VolumeNormalizer,
)
from bidcurves.bid_data_handling import append_calendar_columns

from conftest import make_bid_rows


class TestCurveKey:
    def test_calendar_attributes(self):
        key = CurveKey.from_values('2018-01-06', 18)
        assert key.date == dt.date(2018, 1, 6)
        assert key.calendar_attributes() == {'year': 2018, 'month': 1, 'day': 6, 'weekday': 5, 'hour': 18}

    def test_keys_from_different_date_types_are_equal(self):
        assert CurveKey.from_values(pd.Timestamp('2018-01-06 00:00'), 3) == CurveKey.from_values(dt.date(2018, 1, 6), 3.0)

    def test_append_calendar_columns(self):
        df = pd.DataFrame({'date': ['2019-12-30', '2019-12-31'], 'hour': [1, 24]})
        result = append_calendar_columns(df)
        assert result['year'].tolist() == [2019, 2019]
        assert result['weekday'].tolist() == [0, 1]
        assert 'year' not in df.columns


class TestBidRecordFilter:
    @pytest.fixture
    def raw_df(self):
        bids = [(-10.0, 5.0), (0.0, 5.0), (25.0, 10.0), (3000.0, 40.0), (4000.0, 10.0), (3000.5, 3.0)]
        return pd.DataFrame(make_bid_rows('2018-01-01', 1, bids))

    def test_supply_drops_close_bids_zero_prices_and_sentinels(self, raw_df):
        filtered = BidRecordFilter(MarketSideEnum.SUPPLY).apply(raw_df)
        assert filtered['price'].tolist() == [25.0, 3000.5]

    def test_demand_keeps_sentinel_prices(self, raw_df):
        filtered = BidRecordFilter(MarketSideEnum.DEMAND).apply(raw_df)
        assert filtered['price'].tolist() == [25.0, 3000.0, 4000.0, 3000.5]

    def test_zero_prices_can_be_kept(self, raw_df):
        filtered = BidRecordFilter(MarketSideEnum.SUPPLY, drop_zero_prices=False).apply(raw_df)
        assert filtered['price'].tolist() == [0.0, 25.0, 3000.5]

    def test_all_negative_group_yields_no_records(self):
        df = pd.DataFrame(make_bid_rows('2018-01-01', 1, [(-5.0, 10.0), (-1.0, 3.0)]))
        assert BidRecordFilter().apply(df).empty


class TestBidCurveExtractor:
    def test_keys_are_sorted_and_unique(self, supply_bid_df):
        extractor = BidCurveExtractor(supply_bid_df)
        assert extractor.keys == [
            CurveKey.from_values('2018-01-01', 18),
            CurveKey.from_values('2018-01-01', 19),
            CurveKey.from_values('2018-01-06', 18),
            CurveKey.from_values('2018-02-05', 3),
        ]

    def test_ladder_keeps_row_order_and_clearing_price(self, supply_bid_df):
        ladder = BidCurveExtractor(supply_bid_df).get_ladder(CurveKey.from_values('2018-01-01', 19))
        np.testing.assert_array_equal(ladder.prices, [50.0, 80.0])
        np.testing.assert_array_equal(ladder.cumulative_volumes, [100.0, 150.0])
        assert ladder.max_volume == 150.0
        assert ladder.zone_clearing_price == 80.0

    def test_known_keys_without_bids_give_empty_ladders(self):
        df = pd.DataFrame(make_bid_rows('2018-01-01', 2, [(30.0, 10.0)]))
        missing_key = CurveKey.from_values('2018-01-01', 1)
        extractor = BidCurveExtractor(df, known_keys=[missing_key])
        ladder = extractor.get_ladder(missing_key)
        assert ladder.is_empty
        assert ladder.max_volume == 0.0
        assert len(extractor) == 2

    def test_unknown_key_raises(self, supply_bid_df):
        with pytest.raises(KeyError):
            BidCurveExtractor(supply_bid_df).get_ladder(CurveKey.from_values('2020-01-01', 1))

    def test_unsorted_supply_ladder_is_reported_not_reordered(self):
        df = pd.DataFrame(make_bid_rows('2018-01-01', 5, [(80.0, 10.0), (20.0, 10.0), (50.0, 5.0)]))
        ladder = BidCurveExtractor(df).get_ladder(CurveKey.from_values('2018-01-01', 5))
        assert not ladder.is_price_monotonic
        np.testing.assert_array_equal(ladder.prices, [80.0, 20.0, 50.0])

    def test_demand_ladders_are_expected_descending(self):
        key = CurveKey.from_values('2018-01-01', 5)
        descending = BidLadder(key, [300.0, 100.0, 20.0], [5.0, 5.0, 5.0], market_side=MarketSideEnum.DEMAND)
        ascending = BidLadder(key, [20.0, 100.0], [5.0, 5.0], market_side=MarketSideEnum.DEMAND)
        assert descending.is_price_monotonic
        assert not ascending.is_price_monotonic


class TestVolumeNormalizer:
    def test_two_bid_scenario(self, two_bid_ladder):
        samples = VolumeNormalizer().normalize(two_bid_ladder)
        assert samples.max_volume == 150.0
        np.testing.assert_allclose(samples.volumes, [0.0, 2 / 3, 1.0])
        np.testing.assert_array_equal(samples.prices, [50.0, 50.0, 80.0])

    def test_volumes_start_at_zero_are_non_decreasing_and_bounded(self, ramp_ladder):
        volumes = VolumeNormalizer().normalize(ramp_ladder).volumes
        assert volumes[0] == 0.0
        assert volumes[-1] == 1.0
        assert (np.diff(volumes) >= 0).all()
        assert ((volumes >= 0) & (volumes <= 1)).all()

    def test_zero_quantity_bids_keep_volumes_non_decreasing(self):
        ladder = BidLadder(CurveKey.from_values('2018-01-01', 1), [10.0, 20.0, 30.0], [5.0, 0.0, 5.0])
        volumes = VolumeNormalizer().normalize(ladder).volumes
        np.testing.assert_allclose(volumes, [0.0, 0.5, 0.5, 1.0])

    def test_single_bid(self):
        ladder = BidLadder(CurveKey.from_values('2018-01-01', 1), [42.0], [12.5])
        samples = VolumeNormalizer().normalize(ladder)
        assert samples.max_volume == 12.5
        np.testing.assert_array_equal(samples.volumes, [0.0, 1.0])
        np.testing.assert_array_equal(samples.prices, [42.0, 42.0])

    def test_empty_ladder_raises(self):
        key = CurveKey.from_values('2018-01-01', 1)
        with pytest.raises(EmptyLadderError) as excinfo:
            VolumeNormalizer().normalize(BidLadder(key, [], []))
        assert excinfo.value.key == key

    def test_zero_volume_raises(self):
        key = CurveKey.from_values('2018-01-01', 1)
        with pytest.raises(DegenerateVolumeError) as excinfo:
            VolumeNormalizer().normalize(BidLadder(key, [10.0, 20.0], [0.0, 0.0]))
        assert excinfo.value.key == key


class TestStepFunction:
    def test_two_bid_scenario(self, two_bid_ladder):
        step = StepFunctionBuilder().build(VolumeNormalizer().normalize(two_bid_ladder))
        query = np.array([0.0, 0.3, 0.66, 100 / 150, 0.7, 0.99, 1.0])
        np.testing.assert_array_equal(step(query), [50.0, 50.0, 50.0, 80.0, 80.0, 80.0, 80.0])

    def test_single_bid_is_one_flat_step(self):
        step = StepFunctionBuilder.from_breakpoints([0.0, 1.0], [42.0, 42.0])
        np.testing.assert_array_equal(step(np.linspace(0, 1, 11)), np.full(11, 42.0))

    def test_flat_extrapolation(self):
        step = StepFunction(breakpoints=[0.0, 0.5], levels=[10.0, 20.0])
        np.testing.assert_array_equal(step([-0.5, 1.5]), [10.0, 20.0])

    def test_right_continuous(self):
        step = StepFunction(breakpoints=[0.0, 0.25, 0.75], levels=[1.0, 2.0, 3.0])
        assert step(0.25) == 2.0
        assert step(np.nextafter(0.25, 0)) == 1.0

    def test_duplicate_breakpoints_take_the_later_level(self):
        step = StepFunctionBuilder.from_breakpoints([0.0, 0.5, 0.5, 1.0], [10.0, 10.0, 20.0, 30.0])
        assert step(0.5) == 30.0

    def test_decreasing_breakpoints_are_rejected(self):
        with pytest.raises(ValueError):
            StepFunction(breakpoints=[0.0, 0.5, 0.4], levels=[1.0, 2.0, 3.0])

    def test_non_finite_query_points_are_rejected(self):
        step = StepFunction(breakpoints=[0.0], levels=[1.0])
        with pytest.raises(ValueError):
            step([np.nan])
