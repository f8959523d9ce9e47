from datetime import datetime, timezone

import netCDF4 as nc
import numpy as np
import pytest

from floatchat.ingest import describe_dataset, json_safe, read_argo_rows
from floatchat.visualization import map_visualization


@pytest.fixture
def argo_file(tmp_path):
    """Two profiles x three levels, ARGO naming, second profile's deepest level missing."""
    path = tmp_path / "argo.nc"
    with nc.Dataset(path, "w") as ds:
        ds.title = "test profiles"
        ds.createDimension("N_PROF", 2)
        ds.createDimension("N_LEVELS", 3)
        ds.createDimension("STRING8", 8)

        lat = ds.createVariable("LATITUDE", "f8", ("N_PROF",))
        lon = ds.createVariable("LONGITUDE", "f8", ("N_PROF",))
        juld = ds.createVariable("JULD", "f8", ("N_PROF",))
        juld.units = "days since 1950-01-01 00:00:00"
        platform = ds.createVariable("PLATFORM_NUMBER", "S1", ("N_PROF", "STRING8"))
        pres = ds.createVariable("PRES", "f4", ("N_PROF", "N_LEVELS"), fill_value=99999.0)
        temp = ds.createVariable("TEMP", "f4", ("N_PROF", "N_LEVELS"), fill_value=99999.0)
        temp.units = "degree_Celsius"
        psal = ds.createVariable("PSAL", "f4", ("N_PROF", "N_LEVELS"), fill_value=99999.0)

        lat[:] = [15.5, 10.2]
        lon[:] = [68.2, 65.8]
        juld[:] = [26663.0, 26664.0]  # 2023-01-01, 2023-01-02
        platform[:] = nc.stringtochar(np.array(["2903334 ", "2903335 "], dtype="S8"))
        pres[:] = np.ma.masked_values([[5.0, 50.0, 100.0], [5.0, 50.0, 99999.0]], 99999.0)
        temp[:] = np.ma.masked_values([[28.0, 27.0, 20.0], [29.0, 26.5, 99999.0]], 99999.0)
        psal[:] = np.ma.masked_values([[35.0, 35.2, 35.4], [34.8, 35.0, 99999.0]], 99999.0)
    return str(path)


class TestReadArgoRows:
    def test_rows_flattened_and_masked_levels_skipped(self, argo_file):
        rows = read_argo_rows(argo_file)
        assert len(rows) == 5
        first = rows[0]
        assert first.entity_id == "2903334"
        assert first.latitude == pytest.approx(15.5)
        assert first.depth == pytest.approx(5.0)  # pressure used as depth
        assert first.temperature == pytest.approx(28.0)
        assert first.date == datetime(2023, 1, 1, tzinfo=timezone.utc)
        assert {r.entity_id for r in rows} == {"2903334", "2903335"}

    def test_rows_feed_profile_mapping(self, argo_file):
        spec = map_visualization("profile", read_argo_rows(argo_file))
        assert list(spec.series) == ["temperature_2903334", "temperature_2903335"]
        assert [p.depth for p in spec.series["temperature_2903335"]] == pytest.approx([5.0, 50.0])

    def test_file_without_physical_variables(self, tmp_path):
        path = tmp_path / "empty.nc"
        with nc.Dataset(path, "w") as ds:
            ds.createDimension("N", 1)
            ds.createVariable("LATITUDE", "f8", ("N",))[:] = [1.0]
        assert read_argo_rows(str(path)) == []


class TestDescribeDataset:
    def test_metadata(self, argo_file):
        meta = describe_dataset(argo_file)
        assert meta["dimensions"]["N_PROF"] == {"size": 2, "unlimited": False}
        assert meta["variables"]["TEMP"]["shape"] == [2, 3]
        assert meta["variables"]["TEMP"]["attributes"]["units"] == "degree_Celsius"
        assert meta["global_attributes"] == {"title": "test profiles"}

    def test_json_safe(self):
        assert json_safe(np.float32(1.5)) == 1.5
        assert json_safe(np.int64(3)) == 3
        assert json_safe(np.array([1, 2])) == [1, 2]
        assert json_safe(b"abc") == "abc"
