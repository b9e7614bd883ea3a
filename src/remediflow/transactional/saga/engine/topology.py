# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Saga topology — group steps into dependency layers via Kahn's algorithm."""

from __future__ import annotations

from collections import defaultdict


class SagaTopology:
    """Computes execution layers from a step dependency graph.

    Each layer holds steps whose dependencies all sit in earlier layers, so
    the steps of one layer may run concurrently. Within a layer, steps keep
    the order in which they were declared.
    """

    @staticmethod
    def compute_layers(deps: dict[str, list[str]]) -> list[list[str]]:
        """Compute execution layers from a dependency map.

        Parameters
        ----------
        deps:
            Mapping of ``step_id -> [dependency_ids]`` in declaration order.
            Every step must appear as a key, even with no dependencies.

        Raises
        ------
        ValueError
            If the dependency graph contains a cycle.
        """
        if not deps:
            return []

        order = {node: index for index, node in enumerate(deps)}
        in_degree: dict[str, int] = {node: 0 for node in deps}
        dependants: dict[str, list[str]] = defaultdict(list)

        for node, predecessors in deps.items():
            for pred in predecessors:
                dependants[pred].append(node)
                in_degree[node] += 1

        layer = [node for node in deps if in_degree[node] == 0]
        layers: list[list[str]] = []
        processed = 0

        while layer:
            layers.append(layer)
            processed += len(layer)

            ready: list[str] = []
            for node in layer:
                for dependant in dependants[node]:
                    in_degree[dependant] -= 1
                    if in_degree[dependant] == 0:
                        ready.append(dependant)
            layer = sorted(ready, key=order.__getitem__)

        if processed != len(deps):
            raise ValueError(
                f"dependency graph contains a cycle (layered {processed} of {len(deps)} steps)"
            )

        return layers
