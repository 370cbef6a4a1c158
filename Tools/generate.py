import sys
import random


def generate_graph(num_nodes: int, file_name: str, extra_edges: int = None, seed: int = None,
                   self_loops: bool = False, undirected: bool = False) -> None:
    """
    Generates a random graph in DOT format for Prime_Master trials:
      - header: digraph (or graph with undirected=True) named "generated"
      - one node statement per node, in order n1..nN
      - one two-endpoint edge statement per edge (never chains)

    Guarantees:
      - a backbone chain n1 -> n2 -> ... -> nN
      - no duplicate edges
      - no self-loops unless self_loops=True
    """

    if seed is not None:
        random.seed(seed)

    nodes = [f"n{i}" for i in range(1, num_nodes + 1)]

    # Reasonable default edge density
    if extra_edges is None:
        extra_edges = num_nodes

    edges = []
    seen = set()

    # --------------------------------------------------
    # 1) Backbone chain
    # --------------------------------------------------
    for i in range(num_nodes - 1):
        edges.append((nodes[i], nodes[i + 1]))
        seen.add((nodes[i], nodes[i + 1]))

    # --------------------------------------------------
    # 2) Add extra random edges (back edges make cycles)
    # --------------------------------------------------
    max_attempts = extra_edges * 20
    attempts = 0
    target = len(edges) + extra_edges

    while len(edges) < target and attempts < max_attempts:
        attempts += 1

        u = random.choice(nodes)
        v = random.choice(nodes)

        if u == v and not self_loops:
            continue
        if (u, v) in seen:
            continue

        seen.add((u, v))
        edges.append((u, v))

    # --------------------------------------------------
    # 3) Write DOT
    # --------------------------------------------------
    kind, op = ("graph", "--") if undirected else ("digraph", "->")
    with open(file_name, "w", newline="\n", encoding="utf-8") as f:
        f.write(f"{kind} generated {{\n")
        for n in nodes:
            f.write(f"  {n};\n")
        for u, v in edges:
            f.write(f"  {u} {op} {v};\n")
        f.write("}\n")


if __name__ == "__main__":
    # Usage:
    #   python generate.py <num_nodes> <file_name> [extra_edges] [seed]

    if len(sys.argv) not in (3, 4, 5):
        print("Usage: python generate.py <num_nodes> <file_name> [extra_edges] [seed]")
        sys.exit(1)

    try:
        num_nodes = int(sys.argv[1])
    except ValueError:
        print("Error: <num_nodes> must be a positive whole number.")
        sys.exit(1)

    file_name = sys.argv[2]

    if num_nodes < 1:
        print("Error: Number of nodes must be at least 1.")
        sys.exit(1)

    extra_edges = None
    seed = None

    if len(sys.argv) >= 4:
        try:
            extra_edges = int(sys.argv[3])
            if extra_edges < 0:
                raise ValueError
        except ValueError:
            print("Error: [extra_edges] must be a non-negative whole number.")
            sys.exit(1)

    if len(sys.argv) == 5:
        try:
            seed = int(sys.argv[4])
        except ValueError:
            print("Error: [seed] must be a whole number.")
            sys.exit(1)

    generate_graph(num_nodes, file_name, extra_edges, seed)
