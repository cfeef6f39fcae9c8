"""Tests for chart scales, layouts and SVG rendering."""

import math
from datetime import datetime, timedelta

import pytest

from pageboard.charts import bar, choropleth, line, pie
from pageboard.charts.scales import LinearScale, TimeScale, tick_step
from pageboard.core.models import BounceBucket, CategoricalItem, Granularity, TimeBucket
from pageboard.core.selection import Selection


def series(*values: int) -> list[TimeBucket]:
    start = datetime(2024, 1, 1)
    return [TimeBucket(bucket_start=start + timedelta(days=i), value=v) for i, v in enumerate(values)]


def items(**values: int) -> list[CategoricalItem]:
    return [CategoricalItem(name=k, value=v) for k, v in values.items()]


class TestScales:
    """Linear and time scales."""

    def test_linear_maps_and_inverts(self):
        scale = LinearScale(domain=(0, 100), range=(0, 500))

        assert scale(50) == 250
        assert scale.invert(250) == 50

    def test_linear_zero_width_domain_maps_to_middle(self):
        scale = LinearScale(domain=(5, 5), range=(0, 100))
        assert scale(5) == 50

    def test_linear_ticks_are_round(self):
        assert LinearScale(domain=(0, 100), range=(0, 1)).ticks(5) == [0, 20, 40, 60, 80, 100]

    def test_nice_extends_domain(self):
        assert LinearScale(domain=(0, 97), range=(0, 1)).nice().domain == (0, 100)

    def test_tick_step_zero_span(self):
        assert tick_step(3, 3, 5) == 0.0

    def test_time_scale_round_trip(self):
        d0 = datetime(2024, 1, 1)
        scale = TimeScale(domain=(d0, d0 + timedelta(days=10)), range=(0, 100))

        assert scale(d0 + timedelta(days=5)) == 50
        assert scale.invert(50) == d0 + timedelta(days=5)

    def test_time_ticks_aligned_to_midnight(self):
        d0 = datetime(2024, 1, 1, 6)
        scale = TimeScale(domain=(d0, d0 + timedelta(days=5)), range=(0, 100))

        ticks = scale.ticks(6)
        assert ticks
        assert all(t.hour == 0 and t.minute == 0 for t in ticks)
        assert all(d0 <= t <= d0 + timedelta(days=5) for t in ticks)


class TestLineChart:
    """Line layout and hover lookup."""

    def test_value_domain_has_headroom(self):
        assert line.value_domain([0, 50, 100]) == (0.0, pytest.approx(110.0))

    def test_value_domain_all_zero(self):
        assert line.value_domain([0, 0]) == (0.0, 1.0)
        assert line.value_domain([]) == (0.0, 1.0)

    def test_layout_points_within_plot_area(self):
        chart = line.layout(series(3, 7, 1))

        assert len(chart.points) == 3
        assert chart.points[0].x == 0
        assert chart.points[-1].x == pytest.approx(chart.inner_width)
        assert all(0 <= p.y <= chart.inner_height for p in chart.points)
        assert chart.path.startswith("M")

    def test_empty_layout(self):
        chart = line.layout([])

        assert chart.empty
        assert chart.path == ""
        assert line.nearest_point(chart, 100) is None

    def test_nearest_point_by_time(self):
        chart = line.layout(series(1, 2, 3))
        left = chart.margin.left

        assert line.nearest_point(chart, left + 10).value == 1
        assert line.nearest_point(chart, left + chart.inner_width * 0.45).value == 2
        assert line.nearest_point(chart, left + chart.inner_width).value == 3

    def test_nearest_point_outside_plot_area(self):
        chart = line.layout(series(1, 2, 3))

        assert line.nearest_point(chart, chart.margin.left - 1) is None
        assert line.nearest_point(chart, chart.margin.left + chart.inner_width + 1) is None

    def test_single_point_series(self):
        chart = line.layout(series(5))

        assert chart.points[0].x == pytest.approx(chart.inner_width / 2)
        assert line.nearest_point(chart, chart.margin.left + 1).value == 5

    def test_render_svg(self):
        svg = line.render(series(1, 2), color="#123456", title="Pageviews <all>")

        assert svg.lstrip().startswith("<svg")
        assert "#123456" in svg
        assert "Pageviews &lt;all&gt;" in svg

    def test_render_hourly_labels(self):
        start = datetime(2024, 1, 15)
        data = [TimeBucket(bucket_start=start + timedelta(hours=h), value=h) for h in range(24)]
        svg = line.render(data, granularity=Granularity.HOUR)

        assert "09:00" in svg

    def test_render_empty_state(self):
        assert "No data for this period" in line.render([])


class TestBarChart:
    """Bar domain, minimum length and stacked rows."""

    def test_all_zero_domain(self):
        assert bar.value_domain([0, 0, 0]) == (0.0, 1.0)

    def test_empty_domain(self):
        assert bar.value_domain([]) == (0.0, 1.0)

    def test_domain_floored_at_zero(self):
        assert bar.value_domain([3, 10]) == (0.0, 10.0)

    def test_bars_sorted_and_min_length(self):
        chart = bar.layout(items(small=1, big=1000), height=240)

        assert [b.name for b in chart.bars] == ["big", "small"]
        assert chart.bars[0].height == pytest.approx(240)
        assert chart.bars[1].height == bar.MIN_BAR_PX

    def test_zero_values_still_visible(self):
        chart = bar.layout(items(a=0, b=0))
        assert all(b.height == bar.MIN_BAR_PX for b in chart.bars)

    def test_horizontal_bars(self):
        chart = bar.layout(items(a=10, b=5), width=400, horizontal=True)

        assert chart.bars[0].width == pytest.approx(400)
        assert chart.bars[1].width == pytest.approx(200)
        assert chart.bars[0].x == 0

    def test_crowded_chart_keeps_positive_band(self):
        crowded = [CategoricalItem(name=f"page-{i}", value=i) for i in range(60)]

        vertical = bar.layout(crowded, width=100, gap=8)
        horizontal = bar.layout(crowded, height=100, gap=8, horizontal=True)

        assert all(b.width >= 1.0 for b in vertical.bars)
        assert all(b.height >= 1.0 for b in horizontal.bars)

    def test_limit(self):
        assert len(bar.layout(items(a=3, b=2, c=1), limit=2).bars) == 2

    def test_stacked_layout(self):
        rows = [
            BounceBucket(bucket_start=datetime(2024, 1, 1), bounce=2, non_bounce=2),
            BounceBucket(bucket_start=datetime(2024, 1, 2), bounce=0, non_bounce=0),
        ]
        chart = bar.stacked_layout(rows, height=200)

        first = chart.bars[0]
        assert first.bounce_height == pytest.approx(100)
        assert first.rest_height == pytest.approx(100)
        assert first.rest_y == pytest.approx(0)
        assert chart.bars[1].bounce_height == 0
        assert chart.bars[1].rest_height == 0

    def test_render_stacked_empty(self):
        assert "No data for this period" in bar.render_stacked([])


class TestPieChart:
    """Donut slices and the empty state."""

    def test_empty_when_no_items(self):
        chart = pie.layout([])
        assert chart.empty
        assert chart.total == 0

    def test_empty_when_total_zero(self):
        chart = pie.layout(items(a=0, b=0))
        assert chart.empty

    def test_fractions_sum_to_one(self):
        chart = pie.layout(items(chrome=6, firefox=3, safari=1))

        assert [s.name for s in chart.slices] == ["chrome", "firefox", "safari"]
        assert sum(s.fraction for s in chart.slices) == pytest.approx(1.0)
        assert chart.slices[-1].end_angle == pytest.approx(2 * math.pi)
        assert chart.slices[0].percentage == 60.0

    def test_full_circle_split_into_two_arcs(self):
        chart = pie.layout(items(only=5))

        assert len(chart.slices) == 1
        assert chart.slices[0].path.count("Z") == 2
        assert "nan" not in chart.slices[0].path

    def test_render_empty_state(self):
        assert "No data" in pie.render([])


class TestChoropleth:
    """Fills, highlighting and lifted events."""

    def test_color_endpoints(self):
        assert choropleth.interpolate_color("#000000", "#ffffff", 0) == "#000000"
        assert choropleth.interpolate_color("#000000", "#ffffff", 1) == "#ffffff"

    def test_fill_scale(self):
        assert choropleth.fill_for(None, 10) == choropleth.FILL_EMPTY
        assert choropleth.fill_for(10, 10) == choropleth.FILL_HIGH

    def test_present_zero_uses_low_end_of_scale(self):
        """A country reported with 0 visitors is data, not absence."""
        assert choropleth.fill_for(0, 10) == choropleth.FILL_LOW

        chart = choropleth.layout({"USA": 0, "FRA": 5})
        fills = {r.iso_code: r.fill for r in chart.regions}

        assert fills["USA"] == choropleth.FILL_LOW
        assert fills["DEU"] == choropleth.FILL_EMPTY

    def test_regions_without_data_are_neutral(self):
        chart = choropleth.layout({"USA": 40})
        fills = {r.iso_code: r.fill for r in chart.regions}

        assert fills["USA"] == choropleth.FILL_HIGH
        assert fills["FRA"] == choropleth.FILL_EMPTY
        assert chart.max_value == 40

    def test_empty_map(self):
        chart = choropleth.layout({})

        assert not chart.has_data
        assert all(r.fill == choropleth.FILL_EMPTY for r in chart.regions)

    def test_selection_highlight(self):
        chart = choropleth.layout({"USA": 1}, Selection(hovered="FRA", selected="USA"))
        regions = {r.iso_code: r for r in chart.regions}

        assert regions["USA"].selected
        assert regions["USA"].stroke_width == choropleth.STROKE_WIDTH_SELECTED
        assert regions["FRA"].hovered
        assert regions["FRA"].stroke_width == choropleth.STROKE_WIDTH_HOVER
        assert regions["DEU"].stroke_width == choropleth.STROKE_WIDTH

    def test_dispatch_routes_events(self):
        calls = []
        handlers = dict(
            on_hover=lambda code: calls.append(("hover", code)),
            on_select=lambda code: calls.append(("select", code)),
            on_clear=lambda: calls.append(("clear", None)),
        )

        choropleth.dispatch(choropleth.RegionEvent(kind="hover", iso_code="USA"), **handlers)
        choropleth.dispatch(choropleth.RegionEvent(kind="select", iso_code="USA"), **handlers)
        choropleth.dispatch(choropleth.RegionEvent(kind="clear"), **handlers)

        assert calls == [("hover", "USA"), ("select", "USA"), ("clear", None)]

    def test_dispatch_into_selection(self):
        state = {"selection": Selection()}

        def on_select(code):
            state["selection"] = state["selection"].select(code)

        choropleth.dispatch(choropleth.RegionEvent(kind="select", iso_code="DEU"), on_select=on_select)
        assert state["selection"].is_selected("DEU")

    def test_render_links_regions(self):
        svg = choropleth.render({"USA": 5}, query="from=2024-01-01&to=2024-01-07")

        assert 'data-iso="USA"' in svg
        assert "partials/countries?select=USA&amp;from=2024-01-01" in svg

    def test_region_clicks_replace_countries_section(self):
        """The partial returns the whole #countries section, so it must replace it."""
        svg = choropleth.render({"USA": 5})

        assert svg.count('hx-target="#countries"') == svg.count('hx-swap="outerHTML"')
        assert svg.count('hx-swap="outerHTML"') == len(choropleth.layout({}).regions)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
