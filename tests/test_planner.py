import pytest

from flat_spmv import SpmvConfig, plan_partition
from flat_spmv.config import DEFAULT_MAX_THREADS
from flat_spmv.device import max_active_units


def test_plan_arithmetic():
    plan = plan_partition(1000, 32, 8)
    assert plan.num_units == 31
    assert plan.active_units == 8
    assert plan.iters == 4
    assert plan.interval_size == 128
    assert plan.tail == 992
    assert plan.tail_size == 8
    assert plan.num_intervals == 8


def test_intervals_cover_up_to_tail():
    plan = plan_partition(1000, 32, 8)
    intervals = plan.intervals()
    assert intervals[0].begin == 0
    assert intervals[-1].end == plan.tail
    for prev, cur in zip(intervals, intervals[1:]):
        assert prev.end == cur.begin
    assert sum(i.size for i in intervals) == plan.tail
    assert all(i.size % 32 == 0 for i in intervals)


def test_groups_past_the_tail_have_no_interval():
    # 9 full groups, 8 allowed: two strides each, only 5 intervals needed
    plan = plan_partition(9 * 32 + 5, 32, 8)
    assert plan.active_units == 8
    assert plan.iters == 2
    assert plan.interval_size == 64
    assert plan.num_intervals == 5
    assert plan.interval(5).size == 0
    assert plan.interval(4).size == 32


def test_fewer_units_than_limit():
    plan = plan_partition(100, 32, 480)
    assert plan.active_units == 3
    assert plan.iters == 1
    assert plan.interval_size == 32
    assert plan.tail == 96
    assert plan.num_intervals == 3


@pytest.mark.parametrize("num_entries", [0, 1, 31])
def test_serial_only_plans(num_entries):
    plan = plan_partition(num_entries, 32, 480)
    assert plan.serial_only
    assert plan.tail == 0
    assert plan.tail_size == num_entries
    assert plan.num_intervals == 0
    assert plan.num_blocks == 0
    assert plan.intervals() == []


def test_exact_multiple_has_no_tail():
    plan = plan_partition(64, 32, 480)
    assert plan.tail == 64
    assert plan.tail_size == 0
    assert not plan.serial_only


def test_blocks_group_units():
    plan = plan_partition(32 * 20, 32, 20, warps_per_block=8)
    assert plan.num_blocks == 3
    assert list(plan.units_of_block(0)) == list(range(8))
    assert list(plan.units_of_block(2)) == list(range(16, 20))


@pytest.mark.parametrize("args", [(-1, 32, 8), (10, 0, 8), (10, 32, 0), (10, 32, 8, 0)])
def test_invalid_plan_arguments(args):
    with pytest.raises(ValueError):
        plan_partition(*args)


def test_device_limits_from_default_threads():
    config = SpmvConfig()
    # 60 blocks of 8 groups, and 960 blocks of 4 groups
    assert max_active_units("cpu", config, atomic=False) == 480
    assert max_active_units("cpu", config, atomic=True) == 3840
    assert DEFAULT_MAX_THREADS == 30 * 1024


def test_device_limits_overrides():
    assert max_active_units("cpu", SpmvConfig(max_active_units=7), atomic=False) == 7
    assert max_active_units("cpu", SpmvConfig(max_threads=1024), atomic=False) == 16
    # never fewer than one group
    assert max_active_units("cpu", SpmvConfig(max_threads=1), atomic=False) == 1


@pytest.mark.parametrize("kwargs", [
    {"warp_size": 24},
    {"block_size": 48},
    {"warp_size": 64, "block_size": 32},
    {"atomic_block_size": 100},
    {"update_block_size": 500},
    {"carry_update": "sideways"},
    {"num_workers": 0},
    {"max_active_units": 0},
    {"max_threads": -5},
    {"max_carry_entries": -1},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        SpmvConfig(**kwargs)


def test_config_from_env():
    config = SpmvConfig.from_env({
        "FLAT_SPMV_WARP_SIZE": "16",
        "FLAT_SPMV_BLOCK_SIZE": "64",
        "FLAT_SPMV_CARRY_UPDATE": "scatter",
        "FLAT_SPMV_DEBUG_SYNCHRONOUS": "true",
        "FLAT_SPMV_MAX_ACTIVE_UNITS": "",
    })
    assert config.warp_size == 16
    assert config.block_size == 64
    assert config.carry_update == "scatter"
    assert config.debug_synchronous is True
    assert config.max_active_units is None
    assert config.atomic_block_size == 128


def test_config_replace_keeps_other_fields():
    config = SpmvConfig(num_workers=2).replace(warp_size=8)
    assert config.warp_size == 8
    assert config.num_workers == 2
