import math
from pathlib import Path

from bitaxe_monitor.telemetry import (
    MAX_SAMPLES,
    Sample,
    SeriesBank,
    TelemetryLogger,
    TimeSeriesBuffer,
    compute_render_geometry,
)


def make_buffer(clock, window_seconds=300.0, **kwargs):
    return TimeSeriesBuffer(window_seconds=window_seconds, clock=clock, **kwargs)


def test_buffer_enforces_hard_cap(clock):
    buffer = make_buffer(clock)
    for index in range(MAX_SAMPLES + 100):
        buffer.push(float(index))
        clock.advance(0.1)

    assert len(buffer) == MAX_SAMPLES
    assert buffer.snapshot()[0].value == 100.0


def test_buffer_prunes_outside_window(clock):
    buffer = make_buffer(clock, window_seconds=30)
    buffer.push(1.0)
    clock.advance(10)
    buffer.push(2.0)
    clock.advance(40)
    buffer.push(3.0)

    assert [sample.value for sample in buffer] == [3.0]


def test_buffer_keeps_lone_stale_sample(clock):
    buffer = make_buffer(clock, window_seconds=30)
    buffer.push(5.0)
    clock.advance(1000)
    buffer.set_window_seconds(30)

    assert len(buffer) == 1
    assert buffer.latest().value == 5.0


def test_buffer_window_floor_and_normalisation(clock):
    buffer = make_buffer(clock, window_seconds=5)
    assert buffer.window_seconds == 30

    assert buffer.push(float("nan")).value is None
    assert buffer.push("12").value == 12.0
    assert buffer.push(True).value is None
    assert buffer.consume_dirty() is True
    assert buffer.consume_dirty() is False

    data = buffer.to_dict_of_lists()
    assert math.isnan(data["value"][0])
    assert data["value"][1] == 12.0


def test_geometry_maps_observed_span_while_warming_up():
    samples = [Sample(0.0, 1.0), Sample(10.0, 2.0)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50, padding=2)

    assert geometry.time_span == (0.0, 10.0)
    (segment,) = geometry.segments
    assert segment[0][0] == 2.0
    assert segment[-1][0] == 98.0
    # higher values are drawn nearer the top
    assert segment[-1][1] < segment[0][1]


def test_geometry_uses_trailing_window_when_full():
    samples = [Sample(float(t), float(t)) for t in range(0, 601, 60)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50, padding=0)

    assert geometry.time_span == (300.0, 300.0)
    points = [point for segment in geometry.segments for point in segment]
    # samples older than the window are clamped to the left edge
    assert points[0][0] == 0.0
    assert points[-1][0] == 100.0


def test_geometry_splits_segments_at_gaps():
    samples = [Sample(0.0, 1.0), Sample(1.0, None), Sample(2.0, 2.0), Sample(3.0, 3.0)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50)

    assert [len(segment) for segment in geometry.segments] == [1, 2]
    assert geometry.latest_point == geometry.segments[-1][-1]


def test_geometry_all_gaps_has_no_segments():
    samples = [Sample(0.0, None), Sample(5.0, None)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50)

    assert geometry.is_empty
    assert geometry.latest_point is None
    assert geometry.value_range is None
    assert geometry.time_span == (0.0, 5.0)


def test_geometry_isolated_reading_between_gaps_is_a_dot():
    samples = [Sample(0.0, None), Sample(5.0, 4.0), Sample(10.0, None)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50, padding=2)

    assert geometry.segments == (((50.0, 25.0),),)
    assert geometry.latest_point == (50.0, 25.0)
    assert geometry.time_span == (0.0, 10.0)


def test_geometry_three_samples_span_observed_seconds():
    samples = [Sample(0.0, 1.0), Sample(5.0, 3.0), Sample(10.0, 2.0)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50, padding=0)

    assert geometry.time_span == (0.0, 10.0)
    assert [x for x, _ in geometry.segments[0]] == [0.0, 50.0, 100.0]


def test_geometry_flat_series_is_centred():
    samples = [Sample(0.0, 5.0), Sample(1.0, 5.0)]
    geometry = compute_render_geometry(samples, 300.0, 100, 50, padding=2)

    assert geometry.value_range == (4.0, 6.0)
    assert all(y == 25.0 for _, y in geometry.segments[0])


def test_geometry_single_sample_sits_on_right_edge():
    geometry = compute_render_geometry([Sample(7.0, 3.0)], 300.0, 100, 50, padding=2)
    assert geometry.segments == (((98.0, 25.0),),)


def test_geometry_is_pure(clock):
    buffer = make_buffer(clock)
    for value in (1.0, None, 4.0):
        buffer.push(value)
        clock.advance(2)
    before = buffer.snapshot()

    first = buffer.compute_render_geometry(120, 30)
    second = buffer.compute_render_geometry(120, 30)

    assert first == second
    assert buffer.snapshot() == before
    assert compute_render_geometry([], 300.0, 120, 30).is_empty


def test_series_bank_push_stats_and_gaps(clock):
    bank = SeriesBank(clock=clock)
    assert bank.push_gap("a") == []

    pushed = dict(bank.push_stats("a", {"hashRate": 550, "power": 12.0, "temp": 58}))
    assert pushed["hashrate"].value == 550.0
    assert math.isclose(pushed["efficiency"].value, 45.8333, rel_tol=1e-4)
    assert pushed["vrm_temp"].value is None

    clock.advance(10)
    gaps = bank.push_gap("a")
    assert len(gaps) == len(bank.metrics)
    assert all(sample.value is None for _, sample in gaps)


def test_series_bank_window_and_retain(clock):
    bank = SeriesBank(window_seconds=300, clock=clock)
    bank.push_stats("a", {"hashRate": 1})
    bank.push_stats("b", {"hashRate": 2})

    bank.set_window_seconds(600)
    assert bank.get("a", "hashrate").window_seconds == 600

    bank.retain(["b"])
    assert bank.find("a", "hashrate") is None
    assert len(bank.get("b", "hashrate")) == 1

    bank.clear_device("b")
    assert len(bank.get("b", "hashrate")) == 0


def test_telemetry_logger(tmp_path: Path):
    log_path = tmp_path / "log.csv"
    logger = TelemetryLogger(log_path)
    with logger:
        logger.log("a", {"hashRate": 550, "power": 12.0, "temp": 58}, timestamp=1.234)
        logger.log_cycle({"b": None}, timestamp=2.0)

    text = log_path.read_text().strip().splitlines()
    assert text[0] == "timestamp,device_id,hashrate,asic_temp,vrm_temp,power,efficiency,fan,error_rate"
    first = text[1].split(",")
    assert first[:4] == ["1.234", "a", "550.000", "58.000"]
    assert first[4] == ""
    assert first[6] == "45.833"
    assert text[-1] == "2.000,b,,,,,,,"
