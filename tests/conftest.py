from datetime import datetime, timedelta, timezone

import pytest

from energy_costs.db import init_db, save_readings
from energy_costs.models import HourlyReading


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "energy.db"
    init_db(path)
    return path


@pytest.fixture
def populated_db(db_path):
    """Two days of readings on 2025-07-14/15 plus one on 1 August."""
    start = datetime(2025, 7, 14, tzinfo=timezone.utc)
    readings = [
        HourlyReading(start + timedelta(hours=i), 1.0 + (i % 24) / 10, 0.5 if 10 <= i % 24 < 16 else 0.0, 0.25)
        for i in range(48)
    ]
    readings.append(HourlyReading(datetime(2025, 8, 1, 12, tzinfo=timezone.utc), 2.0, 1.0, 0.4))
    save_readings(readings, db_path)
    return db_path
