"""Unit tests for the decision engine."""

import pytest

from tablekeeper.maintenance.actions import Action
from tablekeeper.maintenance.engine import DecisionEngine, check_age, check_change
from tablekeeper.maintenance.metadata import MetadataReader
from tablekeeper.maintenance.models import CapabilitySet, TableSnapshot
from tablekeeper.maintenance.policy import PolicyBuilder
from tablekeeper.maintenance.settings import (
    FULLTEXT_ONLY_DEFAULT,
    FULLTEXT_ONLY_OFF,
    FULLTEXT_ONLY_ON,
)

NOW = 1_700_000_000
DAY = 86400


def make_snapshot(**overrides) -> TableSnapshot:
    values = dict(
        name="orders",
        engine="InnoDB",
        row_format="Dynamic",
        rows=100,
        data_length=80000,
        index_length=0,
        data_free=0,
    )
    values.update(overrides)
    return TableSnapshot(**values)


def fragmented(**overrides) -> TableSnapshot:
    """Snapshot with 20% free space."""
    values = dict(data_length=60000, index_length=20000, data_free=20000)
    values.update(overrides)
    return make_snapshot(**values)


async def evaluate_one(engine, snapshot, policy, history=None, auto=False):
    evaluations = await engine.evaluate(
        "shop", [snapshot], history or {}, policy, auto=auto, now=NOW
    )
    return evaluations[0]


def flags(evaluation):
    return {action: evaluation.should_run(action) for action in Action}


@pytest.fixture
def engine(fake_server, mysql_capabilities):
    fake_server.add_table("orders")
    return DecisionEngine(mysql_capabilities, MetadataReader(fake_server))


class TestCheckAge:
    """Test the staleness check."""

    @pytest.mark.parametrize("previous", [None, 0, -1])
    def test_never_run_is_stale(self, previous):
        assert check_age(previous, 30, NOW)

    @pytest.mark.parametrize("days", [0, None])
    def test_zero_window_is_always_stale(self, days):
        assert check_age(NOW - 1, days, NOW)

    def test_boundary(self):
        """Test a full window must have elapsed, to the second."""
        assert check_age(NOW - 14 * DAY, 14, NOW)
        assert not check_age(NOW - 14 * DAY + 1, 14, NOW)


class TestCheckChange:
    """Test change detection against the previous run's record."""

    @pytest.mark.parametrize(
        "rows,zero_matters,expected",
        [(0, False, False), (0, True, True), (5, False, True), (5, True, True)],
    )
    def test_no_history(self, rows, zero_matters, expected):
        assert check_change(make_snapshot(rows=rows), None, zero_matters) is expected

    @pytest.mark.parametrize(
        "rows,zero_matters,expected",
        [(0, False, False), (0, True, True), (7, False, True), (7, True, True)],
    )
    def test_row_count_changed(self, rows, zero_matters, expected):
        previous = make_snapshot(rows=3).to_record()

        assert check_change(make_snapshot(rows=rows), previous, zero_matters) is expected

    @pytest.mark.parametrize("zero_matters", [False, True])
    def test_same_rows_different_sizes(self, zero_matters):
        """Test rewritten rows count as a change in both modes."""
        previous = make_snapshot(data_length=16384).to_record()

        assert check_change(make_snapshot(data_length=32768), previous, zero_matters)

    @pytest.mark.parametrize("zero_matters", [False, True])
    def test_unchanged(self, zero_matters):
        snapshot = make_snapshot()

        assert check_change(snapshot, snapshot.to_record(), zero_matters) is zero_matters


class TestCompressDecision:
    """Test the compression branch."""

    @pytest.mark.asyncio
    async def test_uncompressed_table_is_only_compressed(self, engine, policy):
        """Test compression excludes every other action in the same pass."""
        evaluation = await evaluate_one(engine, fragmented(), policy)

        assert flags(evaluation) == {
            Action.COMPRESS: True,
            Action.ANALYZE: False,
            Action.CHECK: False,
            Action.HISTOGRAM: False,
            Action.OPTIMIZE: False,
            Action.REPAIR: False,
        }
        assert evaluation.command(Action.COMPRESS) == (
            "ALTER TABLE `shop`.`orders` ROW_FORMAT=COMPRESSED;"
        )
        assert evaluation.commands == [
            "SET @@SESSION.old_alter_table=false;",
            "ALTER TABLE `shop`.`orders` ROW_FORMAT=COMPRESSED;",
            "SET @@SESSION.old_alter_table=DEFAULT;",
            FULLTEXT_ONLY_DEFAULT,
        ]

    @pytest.mark.asyncio
    async def test_copy_algorithm_with_multiple_fulltext_indexes(self, fake_server, policy):
        capabilities = CapabilitySet(alter_algorithm=True, compress=True)
        engine = DecisionEngine(capabilities, MetadataReader(fake_server))

        evaluation = await evaluate_one(engine, make_snapshot(fulltext_indexes=2), policy)

        assert evaluation.command(Action.COMPRESS) == (
            "ALTER TABLE `shop`.`orders` ROW_FORMAT=COMPRESSED ALGORITHM=COPY;"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "snapshot",
        [make_snapshot(row_format="COMPRESSED"), make_snapshot(engine="MyISAM")],
    )
    async def test_not_compressible(self, engine, policy, snapshot):
        evaluation = await evaluate_one(engine, snapshot, policy)

        assert not evaluation.should_run(Action.COMPRESS)

    @pytest.mark.asyncio
    async def test_without_capability(self, fake_server, policy):
        engine = DecisionEngine(CapabilitySet(histogram=True), MetadataReader(fake_server))

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert not evaluation.should_run(Action.COMPRESS)
        assert evaluation.should_run(Action.ANALYZE)

    @pytest.mark.asyncio
    async def test_excluded_from_compression(self, engine, ledger_path):
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_exclusions("compress", "orders")
            .build()
        )

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert not evaluation.should_run(Action.COMPRESS)


class TestOptimizeAndAnalyze:
    """Test fragmentation, engine gating and the ANALYZE guard."""

    @pytest.mark.asyncio
    async def test_compressed_fragmented_table_is_optimized_not_analyzed(self, engine, policy):
        """Test OPTIMIZE suppresses ANALYZE since it refreshes statistics itself."""
        snapshot = fragmented(
            row_format="Compressed", data_length=92000, index_length=0, data_free=8000
        )

        evaluation = await evaluate_one(engine, snapshot, policy)

        assert snapshot.fragmentation == pytest.approx(8.0)
        assert evaluation.should_run(Action.OPTIMIZE)
        assert not evaluation.should_run(Action.ANALYZE)
        assert evaluation.command(Action.OPTIMIZE) == "OPTIMIZE TABLE `shop`.`orders`;"

    @pytest.mark.asyncio
    async def test_below_threshold_is_analyzed(self, engine, no_compress_policy):
        evaluation = await evaluate_one(engine, make_snapshot(data_free=1000), no_compress_policy)

        assert not evaluation.should_run(Action.OPTIMIZE)
        assert evaluation.should_run(Action.ANALYZE)
        assert evaluation.command(Action.ANALYZE) == "ANALYZE TABLE `shop`.`orders`;"

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, engine, ledger_path):
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_suggest("compress", False)
            .set_threshold(20)
            .build()
        )

        evaluation = await evaluate_one(engine, fragmented(), policy)

        assert evaluation.should_run(Action.OPTIMIZE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("engine_name", ["MEMORY", "memory", "CSV"])
    async def test_engine_gating_for_optimize(self, engine, no_compress_policy, engine_name):
        evaluation = await evaluate_one(engine, fragmented(engine=engine_name), no_compress_policy)

        assert not evaluation.should_run(Action.OPTIMIZE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "engine_name,expected",
        [("MEMORY", False), ("InnoDB", False), ("CSV", True), ("Aria", True), ("MyISAM", True)],
    )
    async def test_engine_gating_for_repair(
        self, engine, no_compress_policy, engine_name, expected
    ):
        evaluation = await evaluate_one(engine, fragmented(engine=engine_name), no_compress_policy)

        assert evaluation.should_run(Action.REPAIR) is expected
        if expected:
            assert evaluation.command(Action.REPAIR) == "REPAIR TABLE `shop`.`orders` EXTENDED;"

    @pytest.mark.asyncio
    async def test_recent_optimize_is_not_repeated(self, engine, no_compress_policy):
        snapshot = fragmented()
        previous = dict(snapshot.to_record(), OPTIMIZE_DATE=NOW - DAY)

        evaluation = await evaluate_one(
            engine, snapshot, no_compress_policy, {"orders": previous}
        )

        assert not evaluation.should_run(Action.OPTIMIZE)

    @pytest.mark.asyncio
    async def test_recent_optimize_counts_as_analyze(self, engine, no_compress_policy):
        snapshot = make_snapshot()
        previous = dict(snapshot.to_record(), OPTIMIZE_DATE=NOW - DAY)

        evaluation = await evaluate_one(
            engine, snapshot, no_compress_policy, {"orders": previous}
        )

        assert not evaluation.should_run(Action.ANALYZE)

    @pytest.mark.asyncio
    async def test_analyze_staleness_boundary(self, engine, no_compress_policy):
        snapshot = make_snapshot()
        window = 14 * DAY
        almost = {"orders": dict(snapshot.to_record(), ANALYZE_DATE=NOW - window + 1)}
        exactly = {"orders": dict(snapshot.to_record(), ANALYZE_DATE=NOW - window)}

        not_yet = await evaluate_one(engine, snapshot, no_compress_policy, almost)
        due = await evaluate_one(engine, snapshot, no_compress_policy, exactly)

        assert not not_yet.should_run(Action.ANALYZE)
        assert due.should_run(Action.ANALYZE)


class TestCheckAndRepair:
    """Test the strict change-detection actions."""

    @pytest.mark.asyncio
    async def test_check_on_table_with_rows(self, engine, no_compress_policy):
        evaluation = await evaluate_one(engine, make_snapshot(), no_compress_policy)

        assert evaluation.should_run(Action.CHECK)
        assert evaluation.command(Action.CHECK) == (
            "CHECK TABLE `shop`.`orders` FOR UPGRADE EXTENDED;"
        )

    @pytest.mark.asyncio
    async def test_zero_rows_first_run(self, engine, no_compress_policy):
        """Test an empty unseen table is analyzed but neither checked nor repaired."""
        evaluation = await evaluate_one(
            engine, make_snapshot(rows=0, engine="MyISAM"), no_compress_policy
        )

        assert not evaluation.should_run(Action.CHECK)
        assert not evaluation.should_run(Action.REPAIR)
        assert evaluation.should_run(Action.ANALYZE)
        assert evaluation.should_run(Action.HISTOGRAM)

    @pytest.mark.asyncio
    async def test_unchanged_table_is_not_checked_again(self, engine, ledger_path):
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_suggest("compress", False)
            .set_days("check", 0)
            .build()
        )
        snapshot = make_snapshot()

        evaluation = await evaluate_one(engine, snapshot, policy, {"orders": snapshot.to_record()})

        assert not evaluation.should_run(Action.CHECK)

    @pytest.mark.asyncio
    async def test_disabled_and_excluded_actions(self, engine, ledger_path):
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_suggest("compress", False)
            .set_suggest("check", False)
            .set_exclusions("analyze", "orders")
            .build()
        )

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert not evaluation.should_run(Action.CHECK)
        assert not evaluation.should_run(Action.ANALYZE)
        assert evaluation.should_run(Action.HISTOGRAM)


class TestHistogramDecision:
    """Test histogram candidates and per-server statements."""

    @pytest.mark.asyncio
    async def test_mysql_histogram_lists_columns(
        self, fake_server, engine, no_compress_policy, make_column
    ):
        fake_server.add_table(
            "orders",
            columns=[
                make_column("id", "int", key="PRI"),
                make_column("status"),
                make_column("customer_id", "int", key="MUL"),
            ],
        )

        evaluation = await evaluate_one(engine, make_snapshot(), no_compress_policy)

        assert evaluation.command(Action.HISTOGRAM) == (
            "ANALYZE TABLE `shop`.`orders` UPDATE HISTOGRAM ON `status`, `customer_id`;"
        )

    @pytest.mark.asyncio
    async def test_no_candidate_columns_flips_histogram(
        self, fake_server, engine, no_compress_policy, make_column
    ):
        """Test JSON and GEOMETRY only tables get no histogram."""
        fake_server.add_table(
            "orders",
            columns=[
                make_column("id", "int", key="PRI"),
                make_column("payload", "json"),
                make_column("area", "geometry"),
            ],
        )

        evaluation = await evaluate_one(engine, make_snapshot(), no_compress_policy)

        assert not evaluation.should_run(Action.HISTOGRAM)
        assert evaluation.command(Action.HISTOGRAM) is None
        assert evaluation.should_run(Action.ANALYZE)

    @pytest.mark.asyncio
    async def test_excluded_columns_are_passed_on(
        self, fake_server, engine, ledger_path, make_column
    ):
        fake_server.add_table("orders", columns=[make_column("status"), make_column("notes")])
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_suggest("compress", False)
            .set_exclusions("histogram", "orders", ["notes"])
            .build()
        )

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert evaluation.command(Action.HISTOGRAM) == (
            "ANALYZE TABLE `shop`.`orders` UPDATE HISTOGRAM ON `status`;"
        )
        assert fake_server.params[-1] == ("shop", "orders", "notes")

    @pytest.mark.asyncio
    async def test_excluded_table_skips_column_lookup(self, fake_server, engine, ledger_path):
        policy = (
            PolicyBuilder()
            .set_ledger_path(ledger_path)
            .set_suggest("compress", False)
            .set_exclusions("histogram", "orders")
            .build()
        )

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert not evaluation.should_run(Action.HISTOGRAM)
        assert not any("GENERATION_EXPRESSION" in query for query in fake_server.queries)

    @pytest.mark.asyncio
    async def test_mariadb_persistent_statistics(self, fake_server, mariadb_capabilities, policy):
        engine = DecisionEngine(mariadb_capabilities, MetadataReader(fake_server))

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert evaluation.command(Action.HISTOGRAM) == (
            "ANALYZE TABLE `shop`.`orders` PERSISTENT FOR ALL;"
        )
        assert not fake_server.queries

    @pytest.mark.asyncio
    async def test_no_histogram_support(self, fake_server, policy):
        engine = DecisionEngine(CapabilitySet(), MetadataReader(fake_server))

        evaluation = await evaluate_one(engine, make_snapshot(), policy)

        assert not evaluation.should_run(Action.HISTOGRAM)


class TestOutputModes:
    """Test inspection command lists and automatic mode."""

    @pytest.mark.asyncio
    async def test_inspection_order_and_fulltext_toggle(self, engine, no_compress_policy):
        evaluation = await evaluate_one(
            engine, fragmented(engine="MyISAM", fulltext_indexes=1), no_compress_policy
        )

        assert evaluation.commands == [
            "SET @@SESSION.old_alter_table=false;",
            "CHECK TABLE `shop`.`orders` FOR UPGRADE EXTENDED;",
            "REPAIR TABLE `shop`.`orders` EXTENDED;",
            FULLTEXT_ONLY_ON,
            "OPTIMIZE TABLE `shop`.`orders`;",
            "ANALYZE TABLE `shop`.`orders` UPDATE HISTOGRAM ON `value`;",
            "SET @@SESSION.old_alter_table=DEFAULT;",
            FULLTEXT_ONLY_DEFAULT,
        ]

    @pytest.mark.asyncio
    async def test_toggle_off_without_fulltext(self, engine, no_compress_policy):
        evaluation = await evaluate_one(engine, fragmented(), no_compress_policy)

        assert evaluation.fulltext_toggle == FULLTEXT_ONLY_OFF

    @pytest.mark.asyncio
    async def test_no_toggle_without_global_write(self, fake_server, no_compress_policy):
        engine = DecisionEngine(CapabilitySet(histogram=True), MetadataReader(fake_server))

        evaluation = await evaluate_one(engine, fragmented(fulltext_indexes=1), no_compress_policy)

        assert evaluation.fulltext_toggle is None
        assert FULLTEXT_ONLY_ON not in evaluation.commands

    @pytest.mark.asyncio
    async def test_auto_mode(self, engine, no_compress_policy):
        evaluation = await evaluate_one(
            engine, fragmented(fulltext_indexes=1), no_compress_policy, auto=True
        )
        data = evaluation.to_dict(auto=True)

        assert evaluation.commands is None
        assert evaluation.fulltext_toggle is None
        assert data["OPTIMIZE"] == "OPTIMIZE TABLE `shop`.`orders`;"
        assert data["TO_OPTIMIZE"] is True
        assert "COMMANDS" not in data

    @pytest.mark.asyncio
    async def test_nothing_to_do_gives_empty_command_list(self, engine, no_compress_policy):
        snapshot = make_snapshot()
        previous = dict(
            snapshot.to_record(),
            CHECK_DATE=NOW,
            ANALYZE_DATE=NOW,
            HISTOGRAM_DATE=NOW,
            OPTIMIZE_DATE=NOW,
            REPAIR_DATE=NOW,
        )

        evaluation = await evaluate_one(engine, snapshot, no_compress_policy, {"orders": previous})

        assert not evaluation.has_pending_actions
        assert evaluation.commands == []

    @pytest.mark.asyncio
    async def test_identifiers_are_quoted(
        self, fake_server, mysql_capabilities, no_compress_policy
    ):
        fake_server.add_table("odd`name")
        engine = DecisionEngine(mysql_capabilities, MetadataReader(fake_server))

        evaluations = await engine.evaluate(
            "my`shop", [make_snapshot(name="odd`name")], {}, no_compress_policy, now=NOW
        )

        assert evaluations[0].command(Action.ANALYZE) == "ANALYZE TABLE `my``shop`.`odd``name`;"
