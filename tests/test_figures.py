import pytest

from floatchat.figures import placeholder, to_figure
from floatchat.visualization import map_visualization


class TestFigures:
    def test_profile_traces_per_float(self, profile_rows):
        fig = to_figure(map_visualization("profile", profile_rows))
        assert [t["name"] for t in fig["data"]] == ["Float A", "Float B"]
        assert fig["data"][0]["y"] == [0.0, 50.0]
        assert fig["layout"]["yaxis"]["autorange"] == "reversed"

    def test_time_series_one_trace_per_metric(self, ocean_rows):
        fig = to_figure(map_visualization("timeSeries", ocean_rows))
        assert [t["name"] for t in fig["data"]] == ["Temperature", "Salinity"]
        assert fig["data"][0]["x"][0].startswith("2023-03-01")

    def test_scatter_title_shows_missing_correlation(self):
        rows = [{"temperature": 5, "salinity": s} for s in (30, 31)]
        fig = to_figure(map_visualization("scatter", rows))
        assert "r = N/A" in fig["layout"]["title"]

    def test_heatmap_axes(self, ocean_rows):
        fig = to_figure(map_visualization("heatmap", ocean_rows))
        trace = fig["data"][0]
        assert trace["type"] == "heatmap"
        assert trace["y"] == [15.0, 10.0] and trace["x"] == [68.0, 70.0]
        assert trace["colorscale"][0][0] == 0.0 and trace["colorscale"][-1][0] == 1.0

    def test_placeholder(self):
        fig = placeholder("Title", "note")
        assert fig["layout"]["annotations"][0]["text"] == "note"

    def test_rejects_non_spec(self):
        with pytest.raises(TypeError):
            to_figure({"kind": "profile"})
