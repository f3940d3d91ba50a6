"""
Fake collaborators shared by the test modules.
"""

import threading

import numpy as np
import pytest

from faultline.nemesis import ScenarioContext, ValidatorConfig


class RecordingControl:
    """Process control layer that records calls and tracks process state."""

    def __init__(self, nodes):
        self.calls = []
        self.running = {node: {"storage": True, "consensus": True} for node in nodes}
        self.clock_offsets = {node: 0 for node in nodes}
        self.keys = {}
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def calls_for(self, node):
        return [c[0] for c in self.calls if c[1] == node]

    def stop_consensus(self, node):
        self._record("stop_consensus", node)
        self.running[node]["consensus"] = False

    def start_consensus(self, node):
        self._record("start_consensus", node)
        self.running[node]["consensus"] = True

    def stop_storage(self, node):
        self._record("stop_storage", node)
        self.running[node]["storage"] = False

    def start_storage(self, node):
        self._record("start_storage", node)
        self.running[node]["storage"] = True

    def truncate_log(self, node, nbytes):
        self._record("truncate_log", node, nbytes)

    def write_validator_key(self, node, validator):
        self._record("write_validator_key", node, validator)
        self.keys[node] = validator

    def reset_node_state(self, node):
        self._record("reset_node_state", node)

    def bump_clock(self, node, delta_ms):
        self._record("bump_clock", node, delta_ms)
        self.clock_offsets[node] += delta_ms

    def reset_clock(self, node):
        self._record("reset_clock", node)
        self.clock_offsets[node] = 0


class RecordingNetwork:
    def __init__(self):
        self.drops = []
        self.heals = 0

    def drop(self, drops):
        self.drops.append(drops)

    def heal(self):
        self.heals += 1


class ScriptedClient:
    """Cluster client backed by a dict, raising scripted errors on demand.

    ``fail_with[method]`` is either one exception raised on every call or a
    list of exceptions raised on successive calls (``None`` entries succeed).
    """

    def __init__(self):
        self.data = {}
        self.calls = []
        self.fail_with = {}

    def _maybe_fail(self, method):
        script = self.fail_with.get(method)
        if script is None:
            return
        if isinstance(script, list):
            error = script.pop(0) if script else None
        else:
            error = script
        if error is not None:
            raise error

    def read(self, node, key):
        self.calls.append(("read", node, key))
        self._maybe_fail("read")
        return self.data.get(key)

    def write(self, node, key, value):
        self.calls.append(("write", node, key, value))
        self._maybe_fail("write")
        self.data[key] = value

    def cas(self, node, key, old, new):
        self.calls.append(("cas", node, key, old, new))
        self._maybe_fail("cas")
        self.data[key] = new

    def validator_set_cas(self, node, version, pub_key, votes):
        self.calls.append(("validator_set_cas", node, version, pub_key, votes))
        self._maybe_fail("validator_set_cas")


NODES = ["n1", "n2", "n3", "n4", "n5"]


@pytest.fixture
def nodes():
    return list(NODES)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def control(nodes):
    return RecordingControl(nodes)


@pytest.fixture
def network():
    return RecordingNetwork()


@pytest.fixture
def client():
    return ScriptedClient()


@pytest.fixture
def context(nodes, control, network, client, rng):
    return ScenarioContext(
        nodes=nodes,
        control=control,
        network=network,
        client=client,
        validator_config=ValidatorConfig(),
        clone_map={"n2": "n1"},
        rng=rng,
    )
