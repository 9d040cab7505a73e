"""Static site publishing."""

from .generator import BuildResult, GardenGraph, SiteGenerator, SitemapUrl, build_garden_graph
from .tree import TreeFile, TreeNode, build_tree

__all__ = [
    "BuildResult",
    "GardenGraph",
    "SiteGenerator",
    "SitemapUrl",
    "build_garden_graph",
    "TreeFile",
    "TreeNode",
    "build_tree",
]
