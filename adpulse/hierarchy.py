"""Campaign → ad group → search term tree built from flat calculated rows."""

from __future__ import annotations

from typing import Dict, Iterator, List, Sequence, Tuple

from adpulse.aggregator import aggregate
from adpulse.collation import collation_key
from adpulse.schema import CalculatedMetricRow, TreeNode

UNKNOWN_CAMPAIGN = "(unknown)"
NO_AD_GROUP = "(none)"


def _leaf_rows(node: TreeNode) -> List[CalculatedMetricRow]:
    if node.is_leaf:
        return [node.leaf_data] if node.leaf_data is not None else []
    out: List[CalculatedMetricRow] = []
    for child in node.children:
        out.extend(_leaf_rows(child))
    return out


def _sort_nodes(nodes: List[TreeNode]) -> List[TreeNode]:
    return sorted(nodes, key=lambda n: collation_key(n.name))


def _id_part(value: str) -> str:
    # Escape the separator so name parts joined by "-" decode back unambiguously.
    return value.replace("\\", "\\\\").replace("-", "\\-")


def _node_id(kind: str, *parts: str) -> str:
    return "-".join([kind, *(_id_part(p) for p in parts)])


def build(rows: Sequence[CalculatedMetricRow]) -> List[TreeNode]:
    """Return a forest of campaign nodes, fully rebuilt from *rows*.

    Every row becomes its own leaf. Leaves hold references to the input
    rows; callers must not mutate them afterwards. Nodes are keyed on the
    raw names, so a blank campaign and one literally named ``(unknown)``
    stay separate even though they display the same.
    """
    campaigns: Dict[str, TreeNode] = {}
    ad_groups: Dict[Tuple[str, str], TreeNode] = {}

    for row in rows:
        campaign = row.campaign or ""
        ad_group = row.ad_group or ""

        campaign_node = campaigns.get(campaign)
        if campaign_node is None:
            campaign_node = TreeNode(
                id=_node_id("campaign", campaign),
                name=campaign or UNKNOWN_CAMPAIGN,
                kind="campaign",
            )
            campaigns[campaign] = campaign_node

        group_node = ad_groups.get((campaign, ad_group))
        if group_node is None:
            group_node = TreeNode(
                id=_node_id("adgroup", campaign, ad_group),
                name=ad_group or NO_AD_GROUP,
                kind="adGroup",
            )
            ad_groups[(campaign, ad_group)] = group_node
            campaign_node.children.append(group_node)

        term = row.search_term or ""
        index = len(group_node.children)
        group_node.children.append(
            TreeNode(
                id=_node_id("searchterm", campaign, ad_group, term, str(index)),
                name=term,
                kind="searchTerm",
                leaf_data=row,
            )
        )

    forest = _sort_nodes(list(campaigns.values()))
    for campaign_node in forest:
        campaign_node.children = _sort_nodes(campaign_node.children)
        for group_node in campaign_node.children:
            group_node.children = _sort_nodes(group_node.children)
            for leaf in group_node.children:
                leaf.totals = aggregate(_leaf_rows(leaf), label=leaf.name)
            group_node.totals = aggregate(_leaf_rows(group_node), label=group_node.name)
        campaign_node.totals = aggregate(_leaf_rows(campaign_node), label=campaign_node.name)

    return forest


def walk(forest: Sequence[TreeNode]) -> Iterator[Tuple[TreeNode, int]]:
    """Depth-first ``(node, depth)`` pairs in display order."""
    stack: List[Tuple[TreeNode, int]] = [(n, 0) for n in reversed(forest)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        stack.extend((c, depth + 1) for c in reversed(node.children))


def tree_counts(forest: Sequence[TreeNode]) -> Dict[str, int]:
    ad_groups = sum(len(c.children) for c in forest)
    terms = sum(len(g.children) for c in forest for g in c.children)
    return {"campaigns": len(forest), "ad_groups": ad_groups, "search_terms": terms}
