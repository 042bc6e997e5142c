import plotly.graph_objects as go

from ledger_insights.budgets import calculate_budget_progress
from ledger_insights.models import (
    BoxPlotData,
    BoxPlotStat,
    Budget,
    FlowGraph,
    FlowLink,
    FlowNode,
    FunnelBucket,
    ParetoResult,
    QuadrantPoint,
    ThemeRiver,
    ThemeRiverPoint,
)
from ledger_insights.visualization import (
    COLOR_PALETTE,
    color_for,
    create_box_plot,
    create_budget_progress_chart,
    create_flow_chart,
    create_funnel_chart,
    create_pareto_chart,
    create_quadrant_chart,
    create_theme_river_chart,
    quadrant_color,
)


def test_color_for_is_stable_and_order_based():
    labels = ['Food', 'Rent', 'Food', 'Travel']
    assert color_for('Food', labels) == COLOR_PALETTE[0]
    assert color_for('Travel', labels) == COLOR_PALETTE[2]
    assert color_for('Gifts', labels) == COLOR_PALETTE[3]
    assert color_for('Travel', labels) == color_for('Travel', list(labels))


def test_color_for_wraps_around_palette():
    labels = [f'c{i}' for i in range(len(COLOR_PALETTE) + 1)]
    assert color_for(labels[-1], labels) == COLOR_PALETTE[0]


def test_quadrant_color_quadrants():
    points = [
        QuadrantPoint('A', 'x', 10, 100.0, 1000.0),
        QuadrantPoint('B', 'x', 1, 100.0, 100.0),
        QuadrantPoint('C', 'x', 10, 1.0, 10.0),
        QuadrantPoint('D', 'x', 1, 1.0, 1.0),
    ]
    assert [quadrant_color(p, points) for p in points] == ['#ff7f0e', '#d62728', '#2ca02c', '#1f77b4']


def test_empty_inputs_give_titled_empty_figures():
    figures = [
        create_flow_chart(FlowGraph()),
        create_pareto_chart(ParetoResult()),
        create_box_plot(BoxPlotData(stats=[BoxPlotStat('Gifts')])),
        create_funnel_chart([]),
        create_theme_river_chart(ThemeRiver()),
        create_quadrant_chart([]),
    ]
    for fig in figures:
        assert isinstance(fig, go.Figure)
        assert fig.layout.title.text == "No data to display"
        assert len(fig.data) == 0


def test_flow_chart_builds_sankey():
    graph = FlowGraph(
        nodes=[FlowNode('Total expense'), FlowNode('Food'), FlowNode('Cafe')],
        links=[FlowLink(0, 1, 10.0), FlowLink(1, 2, 10.0)],
    )
    fig = create_flow_chart(graph)
    assert fig.data[0].type == 'sankey'
    assert list(fig.data[0].link.value) == [10.0, 10.0]


def test_charts_render_results():
    pareto = create_pareto_chart(ParetoResult(['Rent', 'Food'], [900.0, 100.0], [90.0, 100.0]))
    assert len(pareto.data) == 2

    boxes = create_box_plot(BoxPlotData(stats=[BoxPlotStat('Food', 1, 2, 3, 4, 5), BoxPlotStat('Gifts')]))
    assert len(boxes.data) == 1

    river = create_theme_river_chart(
        ThemeRiver(
            points=[ThemeRiverPoint('2024-01', 'Food', 5.0), ThemeRiverPoint('2024-02', 'Rent', 7.0)],
            categories=['Rent', 'Food'],
        )
    )
    assert {trace.name for trace in river.data} == {'Rent', 'Food'}

    funnel = create_funnel_chart([FunnelBucket('0-50', 10.0, 100.0)])
    assert funnel.data[0].type == 'funnel'


def test_budget_chart_marks_over_budget():
    report = calculate_budget_progress(Budget(2024, category_budgets={'Food': 100}), 150, {'Food': 150})
    fig = create_budget_progress_chart(report)
    assert list(fig.data[1].marker.color) == [COLOR_PALETTE[3]]
