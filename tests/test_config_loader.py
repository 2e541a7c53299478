# tests/test_config_loader.py
import pytest

from bmw_saver.config.errors import ConfigError, InvalidDuration
from bmw_saver.config.loader import read_config, read_config_from_bytes
from bmw_saver.model.config import DEFAULT_CREDENTIALS_PATH, parse_duration

FULL_CONFIG = """
schedule:
  startTime: "08:30"
  endTime: "19:00"
  timeZone: Asia/Shanghai
  workDays:
    monday: true
    tuesday: true
    wednesday: true
    thursday: true
    friday: true
    saturday: true
    sunday: false
  googleCalendar:
    calendarId: team@example.com
    credentialsPath: /var/run/secrets/google/credentials.json
    offTimeEvents: Vacation
    syncInterval: 30m
    cacheDays: 14
  icsCalendar:
    url: https://example.com/cn_zh.ics
    workDayPatterns: [".*（班）"]
    holidayPatterns: [".*（休）"]
nodeSpecs:
  - nodePoolName: default-pool
    cloudProvider: gke
    offTimeCount: 0
  - nodePoolName: workers
    cloudProvider: aws
    offTimeCount: 1
"""


class TestReadConfig:

    def test_full_config(self):
        cfg = read_config_from_bytes(FULL_CONFIG)
        s = cfg.schedule
        assert (s.start_time, s.end_time, s.time_zone) == ("08:30", "19:00", "Asia/Shanghai")
        assert s.work_days.as_weekdays() == {0, 1, 2, 3, 4, 5}
        assert s.google_calendar.calendar_id == "team@example.com"
        assert s.google_calendar.sync_interval_seconds == 1800
        assert s.google_calendar.cache_days == 14
        assert s.ics_calendar.work_day_patterns == [".*（班）"]
        assert s.ics_calendar.sync_interval_seconds == 3600
        assert [n.node_pool_name for n in cfg.node_specs] == ["default-pool", "workers"]
        assert cfg.node_specs[1].cloud_provider == "aws"
        assert cfg.node_specs[1].off_time_count == 1

    def test_defaults(self):
        cfg = read_config_from_bytes("nodeSpecs: []\n")
        s = cfg.schedule
        assert (s.start_time, s.end_time, s.time_zone) == ("09:00", "17:00", "UTC")
        assert s.work_days.as_weekdays() == {0, 1, 2, 3, 4}
        assert s.google_calendar is None
        assert s.ics_calendar is None

    def test_empty_strings_fall_back_to_defaults(self):
        cfg = read_config_from_bytes('schedule: {startTime: "", endTime: "", timeZone: ""}\n')
        assert (cfg.schedule.start_time, cfg.schedule.end_time, cfg.schedule.time_zone) == ("09:00", "17:00", "UTC")

    def test_google_defaults(self):
        cfg = read_config_from_bytes("schedule:\n  googleCalendar:\n    calendarId: x\n    cacheDays: 0\n")
        gcal = cfg.schedule.google_calendar
        assert gcal.credentials_path == DEFAULT_CREDENTIALS_PATH
        assert gcal.cache_days == 7
        assert gcal.sync_interval_seconds == 3600

    def test_read_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(FULL_CONFIG, encoding="utf-8")
        assert len(read_config(path).node_specs) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            read_config(tmp_path / "missing.yaml")


class TestValidation:

    @pytest.mark.parametrize(
        "text, message",
        [
            ("schedule: [1, 2\n", "failed to parse config"),
            ("- just\n- a list\n", "top level must be a mapping"),
            ("schedule:\n  googleCalendar:\n    offTimeEvents: x\n", "calendar ID is required"),
            ("schedule:\n  googleCalendar:\n    calendarId: x\n    credentialsPath: creds.json\n", "must be absolute"),
            ("schedule:\n  icsCalendar:\n    workDayPatterns: [a]\n", "url is required"),
            ("nodeSpecs:\n  - cloudProvider: gke\n", "node pool name is required for spec 0"),
            ("nodeSpecs:\n  - nodePoolName: a\n", "cloud provider is required for spec 0"),
            ("nodeSpecs:\n  - {nodePoolName: a, cloudProvider: gke, offTimeCount: -1}\n",
             "invalid off-time node count for spec 0"),
            ("nodeSpecs:\n  - {nodePoolName: a, cloudProvider: gke}\n  - {nodePoolName: a, cloudProvider: aws}\n",
             "duplicate node pool name"),
            ("schedule:\n  icsCalendar:\n    url: http://x\n    syncInterval: soon\n", "invalid config"),
        ],
    )
    def test_rejected(self, text, message):
        with pytest.raises(ConfigError, match=message):
            read_config_from_bytes(text)


class TestParseDuration:

    @pytest.mark.parametrize(
        "value, seconds",
        [("1h", 3600), ("30m", 1800), ("45s", 45), ("1h30m", 5400), ("500ms", 0.5), ("1.5h", 5400)],
    )
    def test_valid(self, value, seconds):
        assert parse_duration(value) == pytest.approx(seconds)

    @pytest.mark.parametrize("value", ["", "soon", "10", "1d", "0s", "h1"])
    def test_invalid(self, value):
        with pytest.raises(InvalidDuration):
            parse_duration(value)
