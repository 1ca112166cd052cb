from unittest.mock import patch

import pytest

from sysmetrics.backends import factory
from sysmetrics.backends.accelerated import NumpyCounterBackend
from sysmetrics.backends.base import CounterBackend
from sysmetrics.backends.factory import create_counter_backend, is_fast_path_available
from sysmetrics.backends.fallback import FallbackCounterBackend
from sysmetrics.config import SysMetricsSettings


@pytest.fixture(autouse=True)
def fresh_self_test():
    factory._self_test_numpy.cache_clear()
    yield
    factory._self_test_numpy.cache_clear()


class TestFastPathSelection:
    def test_self_test_passes(self):
        assert is_fast_path_available() is True
        assert isinstance(create_counter_backend(), NumpyCounterBackend)

    def test_disabled_by_settings(self):
        settings = SysMetricsSettings(enable_fast_path=False)
        assert is_fast_path_available(settings) is False
        backend = create_counter_backend(settings)
        assert isinstance(backend, FallbackCounterBackend)
        assert not backend.is_accelerated

    def test_self_test_failure_falls_back(self):
        with patch.object(
            NumpyCounterBackend, "cpu_usage_percent", side_effect=RuntimeError("broken")
        ):
            assert is_fast_path_available() is False
            assert isinstance(create_counter_backend(), FallbackCounterBackend)

    def test_self_test_mismatch_falls_back(self):
        with patch.object(NumpyCounterBackend, "byte_rates", return_value=(1.0, 2.0)):
            assert is_fast_path_available() is False

    def test_self_test_runs_once(self):
        with patch.object(
            NumpyCounterBackend, "parse_cpu_line", wraps=NumpyCounterBackend().parse_cpu_line
        ) as spy:
            is_fast_path_available()
            calls = spy.call_count
            is_fast_path_available()
            create_counter_backend()
            assert spy.call_count == calls


class TestBackendInterface:
    @pytest.mark.parametrize("cls", [FallbackCounterBackend, NumpyCounterBackend])
    def test_implements_contract(self, cls):
        backend = cls()
        assert isinstance(backend, CounterBackend)
        assert backend.name in repr(backend)

    def test_accelerated_flag(self):
        assert NumpyCounterBackend().is_accelerated
        assert not FallbackCounterBackend().is_accelerated

    def test_abstract_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            CounterBackend()
