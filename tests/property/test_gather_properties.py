# tests/property/test_gather_properties.py
"""Property tests for whole-group gathers over LocalGroup.

Whatever the partition of records across participants, the coordinator
must decode exactly the concatenation of every participant's records in
rank order, and the plan must account for every serialized byte.
"""

from __future__ import annotations

import io
from itertools import chain

from hypothesis import given

from gtgather.contracts import ColumnInterval, QueryConfig, Variant
from gtgather.engine.channel import LocalChannel
from gtgather.engine.clock import MockClock
from gtgather.engine.orchestrator import GatherOrchestrator, GatherResult, GatherRunConfig, run_local_group
from tests.fixtures.fakes import FakeQueryEngine
from tests.property.conftest import ATTRIBUTES, partitioned_variants
from tests.property.settings import SLOW_SETTINGS

QUERY = QueryConfig(attributes=ATTRIBUTES, column_intervals=(ColumnInterval(0, 1),))


def _gather(per_rank: list[list[Variant]], *, skip_query_on_root: bool = False) -> list[GatherResult]:
    def build(channel: LocalChannel) -> GatherOrchestrator:
        return GatherOrchestrator(
            channel,
            FakeQueryEngine(per_rank[channel.rank], schema_attributes=ATTRIBUTES),
            GatherRunConfig(query_config=QUERY, skip_query_on_root=skip_query_on_root, initial_buffer_capacity=16),
            sink=io.StringIO(),
            clock=MockClock(),
        )

    return run_local_group(len(per_rank), build, timeout=30)


class TestGatherProperties:
    @given(per_rank=partitioned_variants())
    @SLOW_SETTINGS
    def test_coordinator_decodes_rank_ordered_concatenation(self, per_rank: list[list[Variant]]) -> None:
        results = _gather(per_rank)
        assert results[0].records == list(chain.from_iterable(per_rank))

    @given(per_rank=partitioned_variants())
    @SLOW_SETTINGS
    def test_plan_accounts_for_every_byte(self, per_rank: list[list[Variant]]) -> None:
        results = _gather(per_rank)
        plan = results[0].plan
        assert plan is not None
        assert plan.recv_counts == tuple(r.serialized_length for r in results)
        assert plan.total_size == sum(r.serialized_length for r in results)

    @given(per_rank=partitioned_variants())
    @SLOW_SETTINGS
    def test_skipping_coordinator_contributes_nothing(self, per_rank: list[list[Variant]]) -> None:
        results = _gather(per_rank, skip_query_on_root=True)
        assert results[0].serialized_length == 0
        assert results[0].records == list(chain.from_iterable(per_rank[1:]))
