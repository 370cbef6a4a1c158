import pytest

SEEDS = list(range(12))


def _load(pm, path):
    text, dot = pm.load_dot(str(path))
    return pm.Graph.from_dot(dot, text)


def _seed_param(seed):
    return pytest.param(
        seed,
        marks=[pytest.mark.objective(
            id=f"QF-GEN-{seed:03d}",
            text=f"Random graph (seed {seed}): with length order, prime paths are valid simple walks, mutually non-containing and cover every terminal walk.",
            ideas=["Quality Factors"],
        )],
        id=f"seed-{seed}",
    )


@pytest.mark.parametrize("seed", [_seed_param(s) for s in SEEDS])
def test_generated_graph_properties(pm, generator, checks, tmp_path, seed):
    path = tmp_path / f"generated_{seed}.dot"
    generator.generate_graph(6, str(path), extra_edges=6, seed=seed, self_loops=(seed % 2 == 0))

    graph = _load(pm, path)
    checks.check(len(graph.nodes) == 6, "all nodes declared", details={"nodes": [n.id for n in graph.nodes]})

    result = pm.find_prime_paths(graph, order="length")
    report = pm.confirm_prime_paths(graph, result.terminal, result.prime)
    checks.check(report["pass"], "prime path properties hold", details=report)

    ids = [w.path.node_ids for w in result.prime]
    checks.check(len(ids) == len(set(ids)), "no duplicate prime paths")

    discovery = pm.remove_subpaths(result.terminal, "discovery")
    compat = pm.confirm_prime_paths(graph, result.terminal, discovery)
    checks.check(compat["checks"]["coverage"], "discovery order still covers every terminal walk",
                 details=compat["checks"])
    checks.check(set(ids) <= {w.path.node_ids for w in discovery}, "discovery order keeps every true maximum")


@pytest.mark.objective(
    id="QF-GEN-100",
    text="An undirected generated graph parses and every prime path follows declared source -> target edges.",
    ideas=["Quality Factors"],
)
def test_generated_undirected_graph(pm, generator, checks, tmp_path):
    path = tmp_path / "generated_undirected.dot"
    generator.generate_graph(5, str(path), extra_edges=3, seed=7, undirected=True)

    graph = _load(pm, path)
    checks.check(graph.kind is pm.GraphKind.UNDIRECTED, "undirected kind")

    result = pm.find_prime_paths(graph, order="length")
    report = pm.confirm_prime_paths(graph, result.terminal, result.prime)
    checks.check(report["pass"], "prime path properties hold", details=report)


@pytest.mark.objective(
    id="US-GEN-001",
    text="The generator writes a backbone chain without duplicate edges, so a graph with no extra edges has exactly one prime path.",
    ideas=["Usage Scenarios"],
)
def test_generator_backbone(pm, generator, checks, tmp_path):
    path = tmp_path / "backbone.dot"
    generator.generate_graph(4, str(path), extra_edges=0, seed=1)

    graph = _load(pm, path)
    pairs = [(e.source, e.target) for e in graph.edges]
    checks.check(pairs == [("n1", "n2"), ("n2", "n3"), ("n3", "n4")], "backbone chain", details={"edges": pairs})

    result = pm.find_prime_paths(graph)
    checks.check([w.path.node_ids for w in result.prime] == [("n1", "n2", "n3", "n4")], "one prime path")
