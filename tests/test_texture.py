import pytest
import torch

from flat_spmv import CacheBindingError, bind_x, is_bound
from flat_spmv.texture import DirectReader, reader_for


def test_bind_and_release():
    x = torch.arange(6, dtype=torch.float64)
    assert not is_bound(x)
    with bind_x(x) as reader:
        assert is_bound(x)
        assert reader.cached
        assert reader.fetch(torch.tensor([[5, 0], [2, 2]])).tolist() == [[5.0, 0.0], [2.0, 2.0]]
    assert not is_bound(x)


def test_double_bind_rejected():
    x = torch.ones(4)
    with bind_x(x):
        with pytest.raises(CacheBindingError):
            with bind_x(x):
                pass
        # the first binding survives the failed attempt
        assert is_bound(x)
    assert not is_bound(x)


def test_distinct_vectors_bind_independently():
    x1 = torch.ones(4)
    x2 = torch.zeros(4)
    with bind_x(x1), bind_x(x2):
        assert is_bound(x1) and is_bound(x2)
    assert not is_bound(x1) and not is_bound(x2)


def test_released_on_error():
    x = torch.ones(3)
    with pytest.raises(RuntimeError, match="boom"):
        with bind_x(x):
            raise RuntimeError("boom")
    assert not is_bound(x)


def test_read_after_release_rejected():
    x = torch.ones(3)
    with bind_x(x) as reader:
        pass
    with pytest.raises(CacheBindingError):
        reader.fetch(torch.tensor([0]))


def test_direct_reader():
    x = torch.tensor([1.0, 2.0, 3.0])
    with reader_for(x, cached=False) as reader:
        assert isinstance(reader, DirectReader)
        assert not reader.cached
        assert reader.fetch(torch.tensor([2, 1])).tolist() == [3.0, 2.0]
        assert not is_bound(x)


def test_reader_for_cached_binds():
    x = torch.tensor([1.0, 2.0, 3.0])
    with reader_for(x, cached=True) as reader:
        assert reader.cached
        assert is_bound(x)
    assert not is_bound(x)
