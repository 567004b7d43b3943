import attrs
import numpy as np
import pytest

from cusurface.CUDAFactory import (
    CUDADispatcherCache,
    CUDAFactory,
    CUDAFactoryConfig,
    _hash_tuple,
)


@attrs.define
class ExampleConfig(CUDAFactoryConfig):
    manually_overwritten_1: bool = False
    manually_overwritten_2: bool = False
    extent: int = attrs.field(
        default=4, validator=attrs.validators.gt(0)
    )
    callback: object = attrs.field(default=None, eq=False)


@attrs.define
class ExampleOutputs(CUDADispatcherCache):
    test_output1: str = "value1"
    test_output2: str = "value2"


@pytest.fixture(scope="function")
def factory():
    """A concrete factory whose build returns ExampleOutputs."""

    class ConcreteFactory(CUDAFactory):
        def __init__(self):
            super().__init__()
            self.builds = 0

        def build(self):
            self.builds += 1
            return ExampleOutputs()

    return ConcreteFactory()


@pytest.fixture(scope="function")
def factory_with_settings(factory):
    factory.setup_compile_settings(ExampleConfig(precision=np.float32))
    return factory


def test_setup_compile_settings(factory):
    factory.setup_compile_settings(ExampleConfig(precision=np.float32))
    assert factory.compile_settings.manually_overwritten_1 is False, (
        "setup_compile_settings did not set compile settings"
    )
    assert factory.compile_settings.precision is np.float32
    assert not hasattr(factory, "precision")


def test_setup_compile_settings_rejects_non_attrs(factory):
    with pytest.raises(TypeError, match="attrs"):
        factory.setup_compile_settings({"precision": np.float32})


def test_update_before_setup_raises(factory):
    with pytest.raises(ValueError, match="set up"):
        factory.update_compile_settings(manually_overwritten_1=True)


def test_update_compile_settings(factory_with_settings):
    recognized = factory_with_settings.update_compile_settings(
        manually_overwritten_1=True
    )
    assert recognized == {"manually_overwritten_1"}
    assert (
        factory_with_settings.compile_settings.manually_overwritten_1 is True
    ), "compile settings were not updated correctly"
    with pytest.raises(KeyError):
        factory_with_settings.update_compile_settings(non_existent_key=True)


def test_update_compile_settings_reports_correct_key(factory_with_settings):
    with pytest.raises(KeyError) as exc:
        factory_with_settings.update_compile_settings(
            {"non_existent_key": True, "manually_overwritten_1": True}
        )
    assert "non_existent_key" in str(exc.value)
    assert "manually_overwritten_1" not in str(exc.value)


def test_update_silent_ignores_unknown(factory_with_settings):
    recognized = factory_with_settings.update_compile_settings(
        non_existent_key=True, silent=True
    )
    assert recognized == set()


def test_update_runs_validators_and_converters(factory_with_settings):
    with pytest.raises(ValueError):
        factory_with_settings.update_compile_settings(extent=0)
    assert factory_with_settings.compile_settings.extent == 4

    factory_with_settings.update_compile_settings(precision="float16")
    assert factory_with_settings.compile_settings.precision is np.float16


def test_cache_invalidation(factory_with_settings):
    assert factory_with_settings.cache_valid is False, (
        "Cache should be invalid initially"
    )
    factory_with_settings.get_cached_output("test_output1")
    assert factory_with_settings.cache_valid is True

    factory_with_settings.update_compile_settings(manually_overwritten_1=True)
    assert factory_with_settings.cache_valid is False, (
        "Cache should be invalidated after updating compile settings"
    )

    factory_with_settings.get_cached_output("test_output1")
    assert factory_with_settings.cache_valid is True
    assert factory_with_settings.builds == 2


def test_unchanged_update_keeps_cache(factory_with_settings):
    factory_with_settings.get_cached_output("test_output1")
    factory_with_settings.update_compile_settings(manually_overwritten_1=False)
    assert factory_with_settings.cache_valid is True
    assert factory_with_settings.builds == 1


def test_eq_false_fields_are_not_compile_settings(factory_with_settings):
    factory_with_settings.get_cached_output("test_output1")
    with pytest.raises(KeyError):
        factory_with_settings.update_compile_settings(callback=print)
    assert factory_with_settings.cache_valid is True


def test_config_hash_tracks_values(factory_with_settings):
    first = factory_with_settings.config_hash
    factory_with_settings.update_compile_settings(extent=8)
    second = factory_with_settings.config_hash
    assert first != second
    factory_with_settings.update_compile_settings(extent=4)
    assert factory_with_settings.config_hash == first


def test_hash_tuple_handles_none():
    a = _hash_tuple((None, 3, 1))
    assert a == _hash_tuple((None, 3, 1))
    assert a != _hash_tuple((None, 4, 1))
    assert a != _hash_tuple(("x", 3, 1))


def test_build_must_return_dispatcher_cache(factory_with_settings,
                                            monkeypatch):
    monkeypatch.setattr(factory_with_settings, "build", lambda: 10.0)
    with pytest.raises(TypeError, match="CUDADispatcherCache"):
        factory_with_settings.get_cached_output("test_output1")


def test_get_cached_output(factory_with_settings):
    assert factory_with_settings.get_cached_output("test_output2") == "value2"
    with pytest.raises(KeyError, match="not found"):
        factory_with_settings.get_cached_output("missing")
