"""
Pytest configuration for the os1_decoder test suite.

Registers the test_meta marker and writes a pytest-html report to
tests/test_reports/ with two extra columns: the test_meta text and any
plots a test attached through attach_plot_to_html_report().
"""

import sys
from html import escape
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

# Make os1_decoder importable without installation
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _report_name(args):
    """
    Name the report after the test module when exactly one is selected.

    :param args: pytest command-line arguments.
    :return: e.g. "report_raster.html", otherwise "report_all.html".
    """
    modules = {Path(str(arg).split("::", 1)[0]) for arg in args if not str(arg).startswith("-")}
    modules = {path for path in modules if path.suffix == ".py" and path.name.startswith("test_")}
    if len(modules) == 1:
        return f"report_{modules.pop().stem[len('test_'):]}.html"
    return "report_all.html"


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "test_meta(description, goal, passing_criteria): test documentation shown in the HTML report",
    )

    # An explicit --html wins over the default location
    if any(str(arg).startswith("--html") for arg in config.invocation_params.args):
        return
    report_dir = ROOT / "tests" / "test_reports"
    report_dir.mkdir(parents=True, exist_ok=True)
    config.option.htmlpath = str(report_dir / _report_name(config.invocation_params.args))


def pytest_html_results_table_header(cells):
    cells.insert(3, '<th class="col-testmeta">Test Description</th>')
    cells.insert(4, '<th class="col-plot">Plot</th>')


def pytest_html_results_table_row(report, cells):
    meta = getattr(report, "test_meta", None)
    if meta:
        text = "".join(
            f"<div><strong>{label}:</strong> {escape(str(meta[key]))}</div>"
            for label, key in (("Test Description", "description"), ("Test Goal", "goal"),
                               ("Passing Criteria", "passing_criteria"))
        )
    else:
        text = '<div style="color:#666;">n/a</div>'
    cells.insert(3, f'<td class="col-testmeta">{text}</td>')

    images = "".join(
        f'<img src="{extra["content"]}" alt="plot" style="max-width:320px;height:auto;" />'
        for extra in getattr(report, "extras", [])
        if extra.get("format_type") == "image" and extra.get("content")
    )
    cells.insert(4, f'<td class="col-plot">{images}</td>')


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when != "call":
        return

    marker = item.get_closest_marker("test_meta")
    if marker:
        report.test_meta = {key: marker.kwargs.get(key, "") for key in ("description", "goal", "passing_criteria")}

    # Plots collected by attach_plot_to_html_report()
    extra = getattr(item, "extra", None)
    if extra:
        report.extras = getattr(report, "extras", []) + [dict(entry) for entry in extra]
