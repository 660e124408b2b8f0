"""
Visualization of extracted contact activity.

Provides plotting capabilities using plotly.
"""

import logging
from dataclasses import fields
from typing import List, Optional, Sequence

import plotly.graph_objects as go  # type: ignore[import-untyped]

from msgintel.extract.records import ContactAggregate, ContactTypeCounts

logger = logging.getLogger(__name__)

# Per-category counters, in legend order
CATEGORIES: List[str] = [f.name for f in fields(ContactTypeCounts)]


def _contact_label(contact: ContactAggregate) -> str:
    info = contact.contact_info
    return info.id or info.phone_number or info.email or f"handle {contact.handle_id}"


def plot_contact_activity(
    contacts: Sequence[ContactAggregate],
    output_file: Optional[str] = None,
    limit: Optional[int] = 25,
) -> go.Figure:
    """
    Plot per-contact message category counts as a stacked bar chart.

    Args:
        contacts: Contact aggregates from an extraction run.
        output_file: Optional HTML file path to save the plot.
        limit: Show only the contacts with the most messages (None for all).

    Returns:
        The plotly figure.
    """
    ranked = sorted(contacts, key=lambda c: c.stats.message_count, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]

    labels = [_contact_label(c) for c in ranked]
    figure = go.Figure()
    for category in CATEGORIES:
        counts = [getattr(c.stats.types, category) for c in ranked]
        if not any(counts):
            continue
        figure.add_trace(go.Bar(name=category.replace("_", " "), x=labels, y=counts))

    figure.update_layout(
        barmode="stack",
        title="Message categories by contact",
        xaxis_title="Contact",
        yaxis_title="Messages",
    )

    if output_file:
        figure.write_html(output_file)
        logger.info(f"Contact activity chart written to {output_file}")

    return figure
