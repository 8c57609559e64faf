import matplotlib.pyplot as plt
import pandas as pd
import pytest

from ddg_assay import plots
from ddg_assay.analysis import concentration_view, count_view, derive_metrics, summarise_fits
from ddg_assay.errors import OutputWriteFailure
from ddg_assay.plots import CHART_NAMES, RenderConfig, render_all, save_figure


@pytest.fixture
def frames(observations):
    table = derive_metrics(observations)
    counts = count_view(table)
    return concentration_view(table), counts, summarise_fits(counts).fits


def test_render_all_writes_one_file_per_chart(tmp_path, frames):
    config = RenderConfig(output_dir=tmp_path / "charts", sizes={"accuracy_box": (4.0, 3.0)})

    report = render_all(*frames, config)

    assert report.ok
    assert set(report.written) == set(CHART_NAMES)
    for name in CHART_NAMES:
        assert (tmp_path / "charts" / f"{name}.png").is_file()
    assert plt.get_fignums() == []


def test_render_all_skips_empty_charts(tmp_path, frames):
    conc, counts, _ = frames
    no_fits = pd.DataFrame(columns=["total_species", "ddG_range", "depth", "rep", "accuracy"])

    report = render_all(conc, counts, no_fits, RenderConfig(output_dir=tmp_path))

    assert report.skipped == ["accuracy_box"]
    assert not (tmp_path / "accuracy_box.png").exists()


def test_write_failure_does_not_stop_other_charts(tmp_path, frames):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")

    report = render_all(*frames, RenderConfig(output_dir=blocker))

    assert not report.ok
    assert set(report.failed) == set(CHART_NAMES)
    assert plt.get_fignums() == []


def test_save_figure_wraps_os_errors(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    fig, _ = plt.subplots()

    with pytest.raises(OutputWriteFailure):
        save_figure(fig, blocker / "chart.png", (3.0, 2.0), dpi=50)
    assert plt.get_fignums() == []


def test_render_config_paths_and_sizes(tmp_path):
    config = RenderConfig(output_dir=tmp_path, fmt="svg", sizes={"conc_vs_kd": (6.0, 4.0)})

    assert config.path_for("conc_vs_kd") == tmp_path / "conc_vs_kd.svg"
    assert config.size_for("conc_vs_kd") == (6.0, 4.0)
    assert config.size_for("accuracy_box") == config.default_size


def test_build_error_does_not_stop_other_charts(tmp_path, frames, monkeypatch):
    def broken(conc):
        plt.figure()
        raise ValueError("cannot draw")

    monkeypatch.setattr(plots, "concentration_vs_kd", broken)

    report = render_all(*frames, RenderConfig(output_dir=tmp_path))

    assert list(report.failed) == ["conc_vs_kd"]
    assert "cannot draw" in report.failed["conc_vs_kd"]
    assert set(report.written) == set(CHART_NAMES) - {"conc_vs_kd"}
    assert plt.get_fignums() == []


def test_true_vs_input_reference_lines_follow_ddg_range(frames):
    conc, _, _ = frames

    fig = plots.true_vs_input_ddg(conc)
    try:
        # one row (total_species=10), columns ordered by ddG_range 2.0 then 4.0
        for ax, half in zip(fig.axes, (1.0, 2.0)):
            vertical = sorted(
                line.get_xdata()[0] for line in ax.lines if line.get_xdata()[0] == line.get_xdata()[1]
            )
            horizontal = sorted(
                line.get_ydata()[0] for line in ax.lines if line.get_ydata()[0] == line.get_ydata()[1]
            )
            assert vertical == [-half, half]
            assert horizontal == [-half, half]
    finally:
        plt.close(fig)


def test_concentration_hist_drops_zero_on_log_axis(frames):
    conc, _, _ = frames
    conc = conc.copy()
    conc.loc[conc.index[0], "unbound_conc"] = 0.0

    fig = plots.concentration_hist(conc, "unbound_conc")
    try:
        assert all(ax.get_xscale() == "log" for ax in fig.axes)
    finally:
        plt.close(fig)

    assert plots.concentration_hist(conc.assign(unbound_conc=0.0), "unbound_conc") is None
