"""
Visualization utilities for genomes and evolution runs.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import networkx as nx
from matplotlib.lines import Line2D

from .genes import NodeType
from .genome import Genome
from .population import PopulationStats

NODE_COLORS = {
    NodeType.INPUT: "#1B1464",  # Deep navy
    NodeType.BIAS: "#F39C12",  # Golden orange
    NodeType.HIDDEN: "#2ECC71",  # Bright green
    NodeType.OUTPUT: "#6F1E51",  # Deep magenta
}


def layer_positions(
    genome: Genome, layer_spacing: float = 2.0, node_spacing: float = 1.0
) -> Dict[int, Tuple[float, float]]:
    """Place each node by its depth, centring every layer vertically."""
    pos = {}
    layers = genome.layers
    for depth, layer in enumerate(layers):
        for i, node in enumerate(layer):
            pos[node.innovation_id] = (
                depth * layer_spacing,
                (i - (len(layer) - 1) / 2) * node_spacing,
            )
    # Outputs always go in the last column
    last_column = max(len(layers) - 1, 1) * layer_spacing
    outputs = [node for node in genome.nodes if node.node_type == NodeType.OUTPUT]
    for i, node in enumerate(outputs):
        pos[node.innovation_id] = (last_column, (i - (len(outputs) - 1) / 2) * node_spacing)
    return pos


def build_graph(genome: Genome) -> nx.DiGraph:
    G = nx.DiGraph()
    for node in genome.nodes:
        G.add_node(node.innovation_id, node_type=node.node_type)
    for conn in genome.connections:
        if conn.enabled:
            G.add_edge(conn.source_id, conn.target_id, weight=conn.weight)
    return G


def plot_network(genome: Genome, title: Optional[str] = None):
    """Visualize network topology using networkx, one column per layer."""
    G = build_graph(genome)
    pos = layer_positions(genome)

    plt.figure(figsize=(10, 8))

    for node_type, color in NODE_COLORS.items():
        nodes = [n.innovation_id for n in genome.nodes if n.node_type == node_type]
        if nodes:
            nx.draw_networkx_nodes(
                G,
                pos,
                nodelist=nodes,
                node_color=color,
                node_shape="o",
                node_size=500,
            )

    # Positive weights in red, negative in blue, width by magnitude
    edges = list(G.edges(data=True))
    if edges:
        nx.draw_networkx_edges(
            G,
            pos,
            edgelist=[(u, v) for u, v, _ in edges],
            edge_color=["#E74C3C" if d["weight"] >= 0 else "#3498DB" for _, _, d in edges],
            width=[0.5 + min(abs(d["weight"]), 3.0) for _, _, d in edges],
            arrows=True,
            alpha=0.6,
            arrowsize=10,
        )

    labels = {node: str(node) for node in G.nodes()}
    nx.draw_networkx_labels(G, pos, labels, font_color="white")

    legend_elements = [
        Line2D(
            [0],
            [0],
            marker="o",
            color="w",
            markerfacecolor=color,
            label=node_type.value.capitalize(),
            markersize=10,
        )
        for node_type, color in NODE_COLORS.items()
    ]
    legend_elements.append(Line2D([0], [0], color="#E74C3C", label="Positive weight"))
    legend_elements.append(Line2D([0], [0], color="#3498DB", label="Negative weight"))
    plt.legend(handles=legend_elements, loc="center left", bbox_to_anchor=(1, 0.5))
    plt.title(f"Genome {genome.genome_id} (fitness {genome.fitness:.3f})")
    plt.axis("off")

    # Save or display
    if title:
        plt.savefig(f"{title}.png", bbox_inches="tight", dpi=150)
        plt.close()
    else:
        plt.show()


def plot_fitness_history(history: Sequence[PopulationStats], title: Optional[str] = None):
    """Plot max/mean fitness and mean complexity per generation."""
    generations: List[int] = [s.generation for s in history]

    fig, axes = plt.subplots(1, 2, figsize=(16, 6))

    axes[0].plot(generations, [s.max_fitness for s in history], label="Max fitness")
    axes[0].plot(generations, [s.mean_fitness for s in history], label="Mean fitness")
    axes[0].set_xlabel("Generation", fontsize=12)
    axes[0].set_ylabel("Fitness", fontsize=12)
    axes[0].legend()

    axes[1].plot(generations, [s.mean_complexity for s in history], color="#9C27B0", label="Mean complexity")
    axes[1].plot(generations, [s.max_complexity for s in history], color="#F39C12", label="Max complexity")
    axes[1].set_xlabel("Generation", fontsize=12)
    axes[1].set_ylabel("Genes", fontsize=12)
    axes[1].legend()

    fig.tight_layout()

    if title:
        plt.savefig(f"{title}.png", bbox_inches="tight", dpi=150)
        plt.close()
    else:
        plt.show()
