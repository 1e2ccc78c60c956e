import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from workflow_canvas.workflow import mutations
from workflow_canvas.workflow.categories import DEFAULT_CATEGORY_RULES
from workflow_canvas.workflow.convert import hydrate, linearize
from workflow_canvas.workflow.errors import NodeNotFoundError, TriggerNodeError
from workflow_canvas.workflow.schema import Graph, RetryConfig, Step


def chain(*step_ids: str) -> Graph:
    steps = [Step(id=sid, step_number=i + 1, tool_name=f"tool_{sid}") for i, sid in enumerate(step_ids)]
    return hydrate(steps, "manual", DEFAULT_CATEGORY_RULES)


def edge_pairs(graph: Graph) -> set[tuple[str, str]]:
    return {(e.source, e.target) for e in graph.edges}


class AddNodeTests(unittest.TestCase):
    def test_first_node_connects_to_trigger(self):
        graph, node = mutations.add_node(chain(), "slack_post", DEFAULT_CATEGORY_RULES, step_id="s1")

        self.assertEqual(node.id, "step-s1")
        self.assertEqual(edge_pairs(graph), {("trigger", "step-s1")})
        self.assertEqual((node.position.x, node.position.y), (250, 180))
        self.assertEqual(node.data.description, "Execute slack_post")
        self.assertEqual(node.data.parameters, {})
        self.assertFalse(node.data.is_configured)
        self.assertEqual(node.data.step_number, 1)
        self.assertEqual(node.data.category, "Slack")

    def test_new_node_extends_chain_from_tail(self):
        before = chain("a", "b", "c")

        after, node = mutations.add_node(before, "web_fetch", DEFAULT_CATEGORY_RULES, step_id="d")

        new_edges = edge_pairs(after) - edge_pairs(before)
        self.assertEqual(new_edges, {("step-c", "step-d")})
        self.assertEqual(len(after.edges), len(before.edges) + 1)
        self.assertEqual([s.id for s in linearize(after)], ["a", "b", "c", "d"])
        self.assertEqual(node.position.y, 180 + 3 * 160)
        self.assertEqual(node.data.step_number, 4)

    def test_tail_is_last_node_in_storage_order(self):
        graph = mutations.connect(chain("a", "b"), "step-b", "step-a")
        graph, _ = mutations.add_node(graph, "x", DEFAULT_CATEGORY_RULES, step_id="c")

        self.assertIn(("step-b", "step-c"), edge_pairs(graph))

    def test_generated_step_ids_are_unique(self):
        graph, first = mutations.add_node(chain(), "x", DEFAULT_CATEGORY_RULES)
        graph, second = mutations.add_node(graph, "x", DEFAULT_CATEGORY_RULES)

        self.assertNotEqual(first.id, second.id)
        self.assertTrue(first.id.startswith("step-s_"))

    def test_defaults_are_applied(self):
        _, node = mutations.add_node(
            chain(),
            "x",
            DEFAULT_CATEGORY_RULES,
            step_id="a",
            retry_config=RetryConfig(max_retries=1, retry_delay=2),
            timeout=90,
        )

        self.assertEqual(node.data.retry_config, RetryConfig(max_retries=1, retry_delay=2))
        self.assertEqual(node.data.timeout, 90)

    def test_duplicate_step_id_rejected(self):
        with self.assertRaises(ValueError):
            mutations.add_node(chain("a"), "x", DEFAULT_CATEGORY_RULES, step_id="a")

    def test_input_graph_is_not_modified(self):
        before = chain("a")
        snapshot = before.model_dump()

        mutations.add_node(before, "x", DEFAULT_CATEGORY_RULES, step_id="b")

        self.assertEqual(before.model_dump(), snapshot)


class ConnectTests(unittest.TestCase):
    def test_allows_fan_out_and_cycles(self):
        graph = chain("a", "b", "c")
        graph = mutations.connect(graph, "step-a", "step-c")
        graph = mutations.connect(graph, "step-c", "step-a")

        self.assertIn(("step-a", "step-c"), edge_pairs(graph))
        self.assertIn(("step-c", "step-a"), edge_pairs(graph))
        self.assertEqual(len(linearize(graph)), 3)

    def test_duplicate_connection_is_noop(self):
        graph = chain("a", "b")

        self.assertIs(mutations.connect(graph, "step-a", "step-b"), graph)

    def test_unknown_nodes_rejected(self):
        with self.assertRaises(NodeNotFoundError):
            mutations.connect(chain("a"), "step-a", "step-missing")

    def test_trigger_cannot_be_a_target(self):
        with self.assertRaises(TriggerNodeError):
            mutations.connect(chain("a"), "step-a", "trigger")


class DeleteNodeTests(unittest.TestCase):
    def test_middle_delete_fragments_chain_without_losing_nodes(self):
        graph = mutations.delete_node(chain("a", "b", "c"), "step-b")

        self.assertEqual(edge_pairs(graph), {("trigger", "step-a")})
        self.assertIsNone(graph.get_node("step-b"))
        self.assertEqual([s.id for s in linearize(graph)], ["a", "c"])

    def test_display_numbers_follow_storage_order(self):
        graph = chain("a", "b", "c", "d")
        # a fans out to b and d, so saved order and storage order disagree
        graph = mutations.connect(graph, "step-a", "step-d")
        graph = mutations.delete_node(graph, "step-c")

        display = {n.id: n.data.step_number for n in graph.step_nodes()}
        self.assertEqual(display, {"step-a": 1, "step-b": 2, "step-d": 3})
        self.assertEqual([(s.id, s.step_number) for s in linearize(graph)], [("a", 1), ("d", 2), ("b", 3)])

    def test_trigger_cannot_be_deleted(self):
        with self.assertRaises(TriggerNodeError):
            mutations.delete_node(chain("a"), "trigger")

    def test_unknown_node(self):
        with self.assertRaises(NodeNotFoundError):
            mutations.delete_node(chain("a"), "step-zzz")


class AutoLayoutTests(unittest.TestCase):
    def test_layout_only_moves_nodes(self):
        graph = chain("a", "b", "c")
        graph = mutations.move_node(graph, "step-a", 900, 1000)
        graph = mutations.move_node(graph, "step-c", 10, 200)
        edges_before = graph.edges

        once = mutations.auto_layout(graph)
        twice = mutations.auto_layout(once)

        self.assertEqual(once.edges, edges_before)
        self.assertEqual(twice.edges, edges_before)
        self.assertEqual({n.id for n in twice.nodes}, {n.id for n in graph.nodes})
        self.assertEqual(
            [n.data for n in sorted(twice.nodes, key=lambda n: n.id)],
            [n.data for n in sorted(graph.nodes, key=lambda n: n.id)],
        )

    def test_layout_stacks_by_height_with_trigger_on_top(self):
        graph = chain("a", "b", "c")
        graph = mutations.move_node(graph, "trigger", 0, 5000)
        graph = mutations.move_node(graph, "step-a", 0, 700)

        laid_out = mutations.auto_layout(graph)

        self.assertEqual([n.id for n in laid_out.nodes], ["trigger", "step-b", "step-c", "step-a"])
        self.assertEqual([n.position.y for n in laid_out.nodes], [40, 200, 360, 520])
        self.assertTrue(all(n.position.x == 250 for n in laid_out.nodes))

    def test_positions_increase_along_chain(self):
        graph = mutations.auto_layout(mutations.auto_layout(chain("a", "b", "c", "d")))

        by_id = {n.id: n.position.y for n in graph.nodes}
        order = ["trigger"] + [f"step-{s.id}" for s in linearize(graph)]
        heights = [by_id[node_id] for node_id in order]
        self.assertEqual(heights, sorted(heights))
        self.assertEqual(len(set(heights)), len(heights))


class UpdateNodeTests(unittest.TestCase):
    def test_parameters_toggle_configured_flag(self):
        graph = mutations.update_node(chain("a"), "step-a", parameters={"channel": "#ops"})
        self.assertTrue(graph.get_node("step-a").data.is_configured)

        graph = mutations.update_node(graph, "step-a", parameters={})
        self.assertFalse(graph.get_node("step-a").data.is_configured)

    def test_config_survives_linearization(self):
        graph = mutations.update_node(
            chain("a"),
            "step-a",
            parameters={"amount": "{{order.total}}", "notify": True},
            description="Charge customer",
            retry_config=RetryConfig(max_retries=5, retry_delay=10),
            timeout=120,
        )

        (step,) = linearize(graph)
        self.assertEqual(step.tool_parameters, {"amount": "{{order.total}}", "notify": True})
        self.assertEqual(step.description, "Charge customer")
        self.assertEqual(step.retry_config.max_retries, 5)
        self.assertEqual(step.timeout, 120)

    def test_rejects_trigger_and_bad_timeout(self):
        with self.assertRaises(TriggerNodeError):
            mutations.update_node(chain("a"), "trigger", description="x")
        with self.assertRaises(ValueError):
            mutations.update_node(chain("a"), "step-a", timeout=0)

    def test_set_trigger_type_updates_trigger_payload(self):
        graph = mutations.set_trigger_type(chain("a"), "event")
        trigger = graph.get_node("trigger")

        self.assertEqual(trigger.data.trigger_type, "event")
        self.assertEqual(trigger.data.description, "event trigger")


if __name__ == "__main__":
    unittest.main()
