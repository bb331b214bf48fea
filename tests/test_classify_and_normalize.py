import math
import unittest

import numpy as np
import pandas as pd

from drivetest_AnalyticsReporter.core.classify import configure_from_config, classify_rsrp
from drivetest_AnalyticsReporter.core.errors import IngestionError
from drivetest_AnalyticsReporter.core.geo import DEFAULT_CENTER, dataset_center, is_valid_coordinate
from drivetest_AnalyticsReporter.core.mapping import propose_mapping
from drivetest_AnalyticsReporter.core.model import FieldMapping, RawTable
from drivetest_AnalyticsReporter.core.normalize import (
    NormalizeOptions, build_dataset, normalize_rows, parse_timestamp,
)


class ClassificationTests(unittest.TestCase):
    def tearDown(self):
        configure_from_config({})

    def test_boundaries(self):
        self.assertEqual(1, classify_rsrp(-70.0))
        self.assertEqual(2, classify_rsrp(-70.1))
        self.assertEqual(2, classify_rsrp(-85.0))
        self.assertEqual(3, classify_rsrp(-85.1))
        self.assertEqual(3, classify_rsrp(-100.0))
        self.assertEqual(4, classify_rsrp(-100.1))

    def test_monotonic_over_sweep(self):
        classes = [classify_rsrp(v) for v in np.linspace(-140.0, -40.0, 1001)]
        # ascending rsrp never gives a numerically larger (worse) class
        self.assertTrue(all(a >= b for a, b in zip(classes, classes[1:])))
        self.assertEqual({1, 2, 3, 4}, set(classes))

    def test_missing_value_reads_as_default(self):
        self.assertEqual(2, classify_rsrp(float("nan")))
        self.assertEqual(2, classify_rsrp(None))
        self.assertEqual(2, classify_rsrp("not a number"))

    def test_thresholds_from_config_and_reset(self):
        configure_from_config({"classification": {"thresholds": [-60, -80, -90]}})
        self.assertEqual(2, classify_rsrp(-65))
        configure_from_config({})
        self.assertEqual(1, classify_rsrp(-65))

    def test_bad_thresholds_are_ignored(self):
        configure_from_config({"classification": {"thresholds": [-100, -85, -70]}})
        self.assertEqual(1, classify_rsrp(-70))


class CoordinateTests(unittest.TestCase):
    def test_valid_and_invalid_pairs(self):
        self.assertTrue(is_valid_coordinate(-26.1, 28.0))
        self.assertTrue(is_valid_coordinate("-26.1", "28.0"))
        self.assertTrue(is_valid_coordinate(0.0, 28.0))
        self.assertFalse(is_valid_coordinate(0, 0))
        self.assertFalse(is_valid_coordinate(91, 10))
        self.assertFalse(is_valid_coordinate(10, -180.5))
        self.assertFalse(is_valid_coordinate(float("nan"), 10))
        self.assertFalse(is_valid_coordinate(None, 10))
        self.assertFalse(is_valid_coordinate("north", 10))

    def test_dataset_center_ignores_default_and_null_island(self):
        frame = pd.DataFrame({"lat": [-26.0, -27.0, DEFAULT_CENTER[0], 0.0],
                              "lon": [28.0, 29.0, DEFAULT_CENTER[1], 0.0]})
        self.assertEqual((-26.5, 28.5), dataset_center(frame))
        self.assertEqual(DEFAULT_CENTER, dataset_center(frame.iloc[2:]))
        self.assertEqual(DEFAULT_CENTER, dataset_center([]))


class MappingTests(unittest.TestCase):
    def test_cues_in_header_order(self):
        headers = ["Time", "Signal Strength", "Quality", "SNR", "RAT",
                   "Cell ID", "DL Speed", "latitude", "Longitude"]
        m = propose_mapping(headers)
        self.assertEqual("Time", m.timestamp)
        self.assertEqual("Signal Strength", m.rsrp)
        self.assertEqual("Quality", m.rsrq)
        self.assertEqual("SNR", m.sinr)
        self.assertEqual("RAT", m.technology)
        self.assertEqual("Cell ID", m.location)
        self.assertEqual("DL Speed", m.throughput)
        self.assertEqual("latitude", m.latitude)
        self.assertEqual("Longitude", m.longitude)

    def test_coordinate_patterns_are_first_match_not_first_header(self):
        m = propose_mapping(["Lat", "lat", "LON"])
        self.assertEqual("lat", m.latitude)
        self.assertEqual("LON", m.longitude)

    def test_each_field_assigned_once(self):
        m = propose_mapping(["RSRP_serving", "RSRP_neighbour"])
        self.assertEqual("RSRP_serving", m.rsrp)

    def test_unmatched_fields_stay_empty_and_override(self):
        m = propose_mapping(["foo", "bar"])
        self.assertEqual({}, m.mapped())
        m.override({"rsrp": "foo", "unknown": "bar", "location": None})
        self.assertEqual({"rsrp": "foo"}, m.mapped())


class NormalizeTests(unittest.TestCase):
    def test_scenario_a_real_coordinates_and_timestamp(self):
        headers = ["Lat", "Lon", "RSRP", "Date"]
        rows = [{"Lat": -26.1, "Lon": 28.0, "RSRP": -65, "Date": "2025-08-01T05:00:00Z"}]
        rec, = normalize_rows(rows, propose_mapping(headers), rng=np.random.default_rng(1))
        self.assertEqual(1, rec.signal_class)
        self.assertEqual(-26.1, rec.lat)
        self.assertEqual(28.0, rec.lon)
        self.assertEqual(5, rec.hour)
        self.assertEqual(1, rec.day)
        self.assertEqual("Fri Aug 01 2025", rec.date)
        self.assertEqual(-65.0, rec.rsrp)

    def test_scenario_d_missing_coordinates_get_jittered_center(self):
        rows = [{"RSRP": "-90"} for _ in range(6)]
        recs = normalize_rows(rows, propose_mapping(["RSRP"]), rng=np.random.default_rng(7))
        lat0, lon0 = DEFAULT_CENTER
        for i, r in enumerate(recs):
            self.assertTrue(is_valid_coordinate(r.lat, r.lon))
            self.assertNotEqual((lat0, lon0), (r.lat, r.lon))
            self.assertLessEqual(abs(r.lat - (lat0 + (i % 100) / 1000)), 0.025 + 1e-9)
            self.assertLessEqual(abs(r.lon - (lon0 + ((i * 7) % 100) / 1000)), 0.035 + 1e-9)

    def test_invalid_coordinates_fall_back(self):
        rows = [{"lat": 0, "lon": 0}, {"lat": 95, "lon": 10}, {"lat": "x", "lon": 10}]
        recs = normalize_rows(rows, propose_mapping(["lat", "lon"]), rng=np.random.default_rng(0))
        for r in recs:
            self.assertTrue(is_valid_coordinate(r.lat, r.lon))
            self.assertLess(abs(r.lat - DEFAULT_CENTER[0]), 0.2)

    def test_n_rows_in_n_records_out_all_populated(self):
        rows = [{"RSRP": v, "RSRQ": "", "SINR": None, "Speed": "oops"}
                for v in ("-60", "abc", "-101.26", "", "-85")]
        recs = normalize_rows(rows, propose_mapping(["RSRP", "RSRQ", "SINR", "Speed"]),
                              rng=np.random.default_rng(3))
        self.assertEqual(5, len(recs))
        self.assertEqual(list(range(5)), [r.source_row_index for r in recs])
        for r in recs:
            for value in (r.rsrp, r.rsrq, r.sinr, r.throughput, r.lat, r.lon):
                self.assertFalse(math.isnan(value))
            self.assertEqual(classify_rsrp(r.rsrp), r.signal_class)
            self.assertEqual(-10.0, r.rsrq)
            self.assertEqual(15.0, r.sinr)
            self.assertTrue(50.0 <= r.throughput <= 150.0)
            self.assertEqual(round(r.throughput, 1), r.throughput)
        self.assertEqual([-60.0, -80.0, -101.3, -80.0, -85.0], [r.rsrp for r in recs])

    def test_synthesized_timestamps_and_sectors(self):
        rows = [{"RSRP": "-80"} for _ in range(30)]
        recs = normalize_rows(rows, FieldMapping(rsrp="RSRP"), rng=np.random.default_rng(0))
        self.assertEqual(list(range(24)), [r.hour for r in recs[:24]])
        self.assertEqual((2, 0), (recs[24].day, recs[24].hour))
        self.assertEqual(pd.Timestamp("2025-08-01T00:00:00Z"), pd.Timestamp(recs[0].timestamp))
        self.assertEqual("Sector_1", recs[23].location)
        self.assertEqual("Sector_2", recs[24].location)

    def test_unparseable_timestamp_uses_row_fallback(self):
        rows = [{"time": "2025-08-03 14:30:00"}, {"time": "garbage"}]
        recs = normalize_rows(rows, FieldMapping(timestamp="time"), rng=np.random.default_rng(0))
        self.assertEqual((3, 14), (recs[0].day, recs[0].hour))
        self.assertEqual((1, 1), (recs[1].day, recs[1].hour))

    def test_technology_and_location(self):
        values = ["NR", "LTE", "5G NSA", "New Radio", "", "4g"]
        rows = [{"RAT": v, "Site": "S1" if i % 2 else "  "} for i, v in enumerate(values)]
        recs = normalize_rows(rows, propose_mapping(["RAT", "Site"]), rng=np.random.default_rng(0))
        self.assertEqual(["5G", "4G", "5G", "5G", "4G", "4G"], [r.technology for r in recs])
        self.assertEqual(["Sector_1", "S1", "Sector_1", "S1", "Sector_1", "S1"], [r.location for r in recs])

    def test_seeded_runs_are_reproducible(self):
        rows = [{"x": 1} for _ in range(10)]
        opts = NormalizeOptions(seed=42)
        a = normalize_rows(rows, FieldMapping(), options=opts)
        b = normalize_rows(rows, FieldMapping(), options=opts)
        self.assertEqual(a, b)

    def test_empty_input_is_an_ingestion_error(self):
        with self.assertRaises(IngestionError):
            normalize_rows([], FieldMapping())

    def test_build_dataset_keeps_applied_mapping_snapshot(self):
        table = RawTable(name="t", headers=("RSRP",), rows=[{"RSRP": "-60"}], source_path=None)
        mapping = propose_mapping(table.headers)
        ds = build_dataset(table, mapping, rng=np.random.default_rng(0))
        mapping.rsrp = ""
        self.assertEqual("RSRP", ds.mapping.rsrp)
        self.assertEqual(("RSRP",), ds.columns)
        self.assertEqual(1, len(ds))

    def test_options_from_config(self):
        opts = NormalizeOptions.from_config({"normalization": {
            "base_date": "2024-01-01", "center": [51.5, -0.12], "seed": 3,
            "defaults": {"rsrp": -95, "throughput_range": [10, 20]},
        }})
        self.assertEqual(pd.Timestamp("2024-01-01", tz="UTC"), opts.base_date)
        self.assertEqual((51.5, -0.12), opts.center)
        self.assertEqual(-95.0, opts.rsrp_default)
        rec, = normalize_rows([{"a": 1}], FieldMapping(), options=opts)
        self.assertEqual(3, rec.signal_class)
        self.assertTrue(10.0 <= rec.throughput <= 20.0)
        self.assertEqual(2024, rec.timestamp.year)

    def test_parse_timestamp_naive_is_utc(self):
        ts = parse_timestamp("2025-08-02 07:15:00")
        self.assertEqual("UTC", str(ts.tz))
        self.assertEqual(7, ts.hour)
        self.assertTrue(pd.isna(parse_timestamp("")))
        self.assertTrue(pd.isna(parse_timestamp(None)))

    def test_epoch_millisecond_text_and_numbers_agree(self):
        expected = pd.Timestamp("2025-08-01 05:00:00", tz="UTC")
        self.assertEqual(expected, parse_timestamp("1754024400000"))
        self.assertEqual(expected, parse_timestamp(" 1754024400000 "))
        self.assertEqual(expected, parse_timestamp(1754024400000))
        self.assertTrue(pd.isna(parse_timestamp("99999999999999999999999")))

    def test_single_row_without_coordinate_columns(self):
        records = normalize_rows([{"RSRP": "-65"}], propose_mapping(["RSRP"]))
        self.assertEqual(1, len(records))
        rec = records[0]
        self.assertEqual(1, rec.signal_class)
        self.assertTrue(is_valid_coordinate(rec.lat, rec.lon))
        self.assertAlmostEqual(DEFAULT_CENTER[0], rec.lat, delta=0.2)
        self.assertAlmostEqual(DEFAULT_CENTER[1], rec.lon, delta=0.2)


if __name__ == "__main__":
    unittest.main()
