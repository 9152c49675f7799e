import unittest
from unittest.mock import MagicMock

import requests

from ingestion.aqi_stream import WaqiClient, parse_aqi, parse_station, BOUNDS_URL, FEED_URL


def _response(payload=None, status=200, json_error=None):
    resp = MagicMock()
    resp.status_code = status
    if json_error:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


def _client(*responses, token="test-token"):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return WaqiClient(token=token, bounds="28.3,76.8,29.0,77.5", session=session), session


class TestParsing(unittest.TestCase):

    def test_parse_aqi(self):
        self.assertEqual(parse_aqi("152"), 152)
        self.assertEqual(parse_aqi(" 87.9 "), 87)
        self.assertEqual(parse_aqi(301), 301)
        for bad in ("-", "", None, "abc", 0, "0", -4, float("nan"), True):
            self.assertIsNone(parse_aqi(bad), bad)

    def test_parse_station(self):
        raw = {"uid": 2553, "lat": 28.6468, "lon": 77.3162, "aqi": "412",
               "station": {"name": "Anand Vihar, Delhi"}}
        station = parse_station(raw)
        self.assertEqual(station.id, "2553")
        self.assertEqual(station.aqi, 412)
        self.assertEqual(station.station_name, "Anand Vihar, Delhi")

    def test_parse_station_rejects(self):
        self.assertIsNone(parse_station({"uid": 1, "lat": 28.6, "lon": 77.2, "aqi": "-"}))
        self.assertIsNone(parse_station({"uid": 1, "lat": "x", "lon": 77.2, "aqi": "90"}))
        self.assertIsNone(parse_station({"uid": 1, "aqi": "90"}))
        self.assertIsNone(parse_station("garbage"))

    def test_missing_station_name(self):
        station = parse_station({"uid": 9, "lat": 28.6, "lon": 77.2, "aqi": 90})
        self.assertEqual(station.station_name, "Station 9")


class TestWaqiClient(unittest.IsolatedAsyncioTestCase):

    async def test_stations_filtered(self):
        payload = {"status": "ok", "data": [
            {"uid": 1, "lat": 28.6, "lon": 77.2, "aqi": "250", "station": {"name": "A"}},
            {"uid": 2, "lat": 28.7, "lon": 77.1, "aqi": "-", "station": {"name": "B"}},
            {"uid": 3, "lat": 28.5, "lon": 77.3, "aqi": "0", "station": {"name": "C"}},
            {"uid": 4, "lat": 28.4, "lon": 77.0, "aqi": "388", "station": {"name": "D"}},
        ]}
        client, session = _client(_response(payload))
        stations = await client.fetch_stations()
        self.assertEqual([s.station_name for s in stations], ["A", "D"])

        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(url, BOUNDS_URL)
        self.assertEqual(params["latlng"], "28.3,76.8,29.0,77.5")
        self.assertEqual(params["token"], "test-token")
        self.assertIn("timeout", session.get.call_args.kwargs)

    async def test_stations_failure_modes_are_empty(self):
        cases = [
            _response({"status": "error", "data": "Invalid key"}),
            _response(status=503),
            _response(json_error=ValueError("bad json")),
            _response({"status": "ok", "data": "nope"}),
            _response(["not", "a", "dict"]),
            requests.ConnectionError("offline"),
            requests.Timeout("slow"),
        ]
        for case in cases:
            client, _ = _client(case)
            self.assertEqual(await client.fetch_stations(), [], case)

    async def test_city_feed(self):
        payload = {"status": "ok", "data": {"aqi": 276, "dominentpol": "pm10",
                                            "city": {"name": "Delhi US Embassy"}}}
        client, session = _client(_response(payload))
        feed = await client.fetch_city_feed()
        self.assertEqual(feed, {"aqi": 276, "dominant_pollutant": "pm10", "city_name": "Delhi US Embassy"})
        self.assertEqual(session.get.call_args.args[0], FEED_URL)

    async def test_city_feed_unusable(self):
        for payload in (
            {"status": "ok", "data": {"aqi": "-"}},
            {"status": "nug", "data": {"aqi": 100}},
            {"status": "ok", "data": None},
        ):
            client, _ = _client(_response(payload))
            self.assertIsNone(await client.fetch_city_feed(), payload)

    async def test_no_token_skips_network(self):
        client, session = _client(_response({}), token="")
        self.assertEqual(await client.fetch_stations(), [])
        self.assertIsNone(await client.fetch_city_feed())
        session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
